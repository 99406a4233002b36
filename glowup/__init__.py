"""GlowUp gamification backend."""

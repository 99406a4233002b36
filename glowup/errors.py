"""Domain errors raised by the GlowUp services."""


class GlowUpError(Exception):
    """Base class for service errors."""


class SignupRejectedError(GlowUpError):
    """The identity provider refused to create the account."""


class ConcurrentUpdateError(GlowUpError):
    """A profile kept changing underneath a points award."""

    def __init__(self, user_id: str, attempts: int):
        super().__init__(
            f"Profile {user_id} changed concurrently; gave up after {attempts} attempts"
        )
        self.user_id = user_id
        self.attempts = attempts

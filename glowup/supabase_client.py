"""Supabase client wrapper shared by the auth provider and the KV store."""
from supabase import create_client, Client
import logging

logger = logging.getLogger(__name__)


class SupabaseClient:
    """Wrapper for Supabase client with utility methods."""

    def __init__(self, url: str, service_role_key: str, kv_table: str):
        """Initialize Supabase client with the service role key."""
        self.url = url
        self.kv_table = kv_table
        self.client: Client = create_client(url, service_role_key)
        logger.info(f"Supabase client initialized for {url}")

    def get_client(self) -> Client:
        """Get Supabase client instance."""
        return self.client

    async def test_connection(self) -> bool:
        """Test Supabase connection."""
        try:
            self.client.table(self.kv_table).select("key").limit(1).execute()
            return True
        except Exception as e:
            logger.error(f"Supabase connection test failed: {e}")
            return False

    def get_auth(self):
        """Get auth client."""
        return self.client.auth

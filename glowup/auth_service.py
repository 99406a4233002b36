"""Identity provider: account creation and access token verification."""
from typing import Any, Dict, Optional, Protocol
from datetime import datetime, timezone
import logging
import uuid

from supabase import AuthError, Client

from .errors import SignupRejectedError
from .models import AuthUser

logger = logging.getLogger(__name__)


class AuthProvider(Protocol):
    """Operations the API needs from the identity provider."""

    async def create_user(
        self,
        email: str,
        password: str,
        metadata: Dict[str, Any]
    ) -> AuthUser:
        ...

    async def verify_token(self, token: str) -> Optional[AuthUser]:
        ...


def _to_auth_user(user) -> AuthUser:
    return AuthUser(
        id=str(user.id),
        email=user.email,
        user_metadata=user.user_metadata or {},
        created_at=user.created_at
    )


class SupabaseAuthProvider:
    """Supabase Auth through the admin API (requires the service role key)."""

    def __init__(self, client: Client):
        self.client = client

    async def create_user(
        self,
        email: str,
        password: str,
        metadata: Dict[str, Any]
    ) -> AuthUser:
        """
        Create a pre-confirmed account.

        No email server is configured, so the address is confirmed on creation.

        Raises:
            SignupRejectedError: Supabase refused the account (duplicate email,
                weak password, malformed address)
        """
        try:
            response = self.client.auth.admin.create_user({
                "email": email,
                "password": password,
                "user_metadata": metadata,
                "email_confirm": True
            })
        except AuthError as e:
            logger.warning(f"Signup rejected for {email}: {e}")
            raise SignupRejectedError(str(e)) from e

        if not response or not response.user:
            raise SignupRejectedError("Identity provider returned no user")

        return _to_auth_user(response.user)

    async def verify_token(self, token: str) -> Optional[AuthUser]:
        """Resolve an access token to its user, or None if it is not valid."""
        try:
            response = self.client.auth.get_user(token)
        except AuthError as e:
            logger.info(f"Rejected access token: {e}")
            return None

        if not response or not response.user:
            return None

        return _to_auth_user(response.user)


class InMemoryAuthProvider:
    """Process-local accounts and opaque tokens for development and tests."""

    def __init__(self):
        self.users: Dict[str, AuthUser] = {}
        self.passwords: Dict[str, str] = {}
        self.tokens: Dict[str, str] = {}

    async def create_user(
        self,
        email: str,
        password: str,
        metadata: Dict[str, Any]
    ) -> AuthUser:
        normalized = email.strip().lower()
        if any(u.email == normalized for u in self.users.values()):
            raise SignupRejectedError(
                "A user with this email address has already been registered"
            )

        user = AuthUser(
            id=str(uuid.uuid4()),
            email=normalized,
            user_metadata=dict(metadata),
            created_at=datetime.now(timezone.utc)
        )
        self.users[user.id] = user
        self.passwords[user.id] = password
        return user

    async def verify_token(self, token: str) -> Optional[AuthUser]:
        user_id = self.tokens.get(token)
        if user_id is None:
            return None
        return self.users.get(user_id)

    def issue_token(self, user_id: str) -> str:
        """Mint an access token for an existing user."""
        if user_id not in self.users:
            raise KeyError(user_id)
        token = uuid.uuid4().hex
        self.tokens[token] = user_id
        return token

    def reset(self) -> None:
        self.users.clear()
        self.passwords.clear()
        self.tokens.clear()

"""
Dependency wiring for the FastAPI app.
"""
from typing import Optional
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .auth_service import AuthProvider, InMemoryAuthProvider, SupabaseAuthProvider
from .config import get_settings
from .kv_store import InMemoryKVStore, KVStore, SupabaseKVStore
from .models import AuthUser
from .profile_service import ProfileService
from .supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

_supabase: Optional[SupabaseClient] = None
_kv_store: Optional[KVStore] = None
_auth_provider: Optional[AuthProvider] = None

bearer_scheme = HTTPBearer(auto_error=False)


def use_in_memory_backends() -> bool:
    settings = get_settings()
    return settings.use_in_memory_backends or not settings.supabase_configured


def get_supabase() -> SupabaseClient:
    global _supabase
    if _supabase is None:
        settings = get_settings()
        _supabase = SupabaseClient(
            settings.supabase_url,
            settings.supabase_service_role_key,
            settings.kv_table
        )
    return _supabase


def get_kv_store() -> KVStore:
    """
    Return a process-wide store so in-memory state survives across requests.
    """
    global _kv_store
    if _kv_store is None:
        if use_in_memory_backends():
            logger.error(
                "Supabase not configured; using in-memory backends. "
                "No route issues tokens in this mode, so authenticated routes return 401"
            )
            _kv_store = InMemoryKVStore()
        else:
            _kv_store = SupabaseKVStore(get_supabase().get_client(), get_settings().kv_table)
    return _kv_store


def get_auth_provider() -> AuthProvider:
    global _auth_provider
    if _auth_provider is None:
        if use_in_memory_backends():
            _auth_provider = InMemoryAuthProvider()
        else:
            _auth_provider = SupabaseAuthProvider(get_supabase().get_client())
    return _auth_provider


def get_profile_service(store: KVStore = Depends(get_kv_store)) -> ProfileService:
    settings = get_settings()
    return ProfileService(
        store,
        write_mode=settings.points_write_mode,
        max_retries=settings.max_update_retries
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    auth: AuthProvider = Depends(get_auth_provider)
) -> AuthUser:
    """Resolve the bearer token to an authenticated user or fail with 401."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    user = await auth.verify_token(credentials.credentials)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    return user

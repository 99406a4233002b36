"""FastAPI main application for the GlowUp backend."""
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import logging
import time
from typing import List

from .auth_service import AuthProvider
from .config import get_settings
from .dependencies import (
    get_auth_provider,
    get_current_user,
    get_profile_service,
    get_supabase,
    use_in_memory_backends,
)
from .errors import ConcurrentUpdateError, SignupRejectedError
from .models import (
    AuthUser,
    HealthResponse,
    LeaderboardEntry,
    PointsUpdateRequest,
    ProgressResponse,
    SignupRequest,
    SignupResponse,
    UserProfile,
)
from .profile_service import ProfileService

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"
INTERNAL_ERROR = "Internal server error"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting GlowUp backend...")

    if use_in_memory_backends():
        logger.error("Using in-memory auth and profile store; intended for tests only")
    else:
        supabase = get_supabase()
        if await supabase.test_connection():
            logger.info(f"Using Supabase at: {settings.supabase_url}")
        else:
            logger.error(f"Supabase at {settings.supabase_url} is not reachable")

    logger.info(f"Points write mode: {settings.points_write_mode}")
    logger.info("GlowUp backend started successfully")

    yield

    logger.info("Shutting down GlowUp backend...")


# Create FastAPI app
app = FastAPI(
    title="GlowUp API",
    description="Points, levels and profiles for the GlowUp advice community",
    version=VERSION,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_headers=["Content-Type", "Authorization"],
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    expose_headers=["Content-Length"],
    max_age=600,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with its status and latency."""
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)")
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors as ``{"error": ...}``."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and unknown actions are client errors."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())}
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": INTERNAL_ERROR}
    )


router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="ok", version=VERSION)


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    request: SignupRequest,
    auth: AuthProvider = Depends(get_auth_provider),
    profiles: ProfileService = Depends(get_profile_service)
):
    """
    Create an account and its starting profile.

    The account is created first; if the profile write then fails the
    account is left without a profile and the caller gets a 500.
    """
    if not (request.email and request.password and request.username):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email, password, and username are required"
        )

    try:
        user = await auth.create_user(
            request.email,
            request.password,
            {
                "username": request.username,
                "level": 1,
                "points": 0,
                "badge": "Newbie"
            }
        )
    except SignupRejectedError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Server error during signup: {e}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)

    try:
        await profiles.create_profile(user.id, request.username, user.email or request.email)
    except Exception as e:
        logger.error(f"Account {user.id} created but profile write failed: {e}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)

    return SignupResponse(message="User created successfully", user=user)


@router.get("/user/{user_id}", response_model=UserProfile)
async def get_user(
    user_id: str,
    current_user: AuthUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service)
):
    """Get a user's profile. Any authenticated user may read any profile."""
    try:
        profile = await profiles.get_profile(user_id)

        if profile is None:
            raise HTTPException(status_code=404, detail="User not found")

        return profile

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching user {user_id}: {e}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@router.post("/user/{user_id}/points", response_model=UserProfile)
async def update_points(
    user_id: str,
    request: PointsUpdateRequest,
    current_user: AuthUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service)
):
    """Award points for an action; level and badge follow the new total."""
    try:
        profile = await profiles.award_points(user_id, request.points, request.action)

        if profile is None:
            raise HTTPException(status_code=404, detail="User not found")

        return profile

    except HTTPException:
        raise
    except ConcurrentUpdateError as e:
        logger.warning(str(e))
        raise HTTPException(status_code=409, detail="Concurrent update conflict")
    except Exception as e:
        logger.error(f"Error updating user points for {user_id}: {e}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@router.get("/user/{user_id}/progress", response_model=ProgressResponse)
async def get_user_progress(
    user_id: str,
    current_user: AuthUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service)
):
    """Get progress towards the user's next level."""
    try:
        progress = await profiles.get_progress(user_id)

        if progress is None:
            raise HTTPException(status_code=404, detail="User not found")

        return progress

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching progress for {user_id}: {e}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@router.get("/leaderboard", response_model=List[LeaderboardEntry])
async def get_leaderboard(
    limit: int = Query(10, ge=1, le=100),
    profiles: ProfileService = Depends(get_profile_service)
):
    """Get top users by points"""
    try:
        return await profiles.get_leaderboard(limit)
    except Exception as e:
        logger.error(f"Error building leaderboard: {e}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@router.get("/")
async def root():
    """Root endpoint."""
    prefix = settings.route_prefix
    return {
        "service": "GlowUp API",
        "version": VERSION,
        "status": "running",
        "endpoints": {
            "health": f"{prefix}/health",
            "signup": f"{prefix}/signup",
            "user": f"{prefix}/user/{{user_id}}",
            "points": f"{prefix}/user/{{user_id}}/points",
            "progress": f"{prefix}/user/{{user_id}}/progress",
            "leaderboard": f"{prefix}/leaderboard",
            "docs": "/docs"
        }
    }


app.include_router(router, prefix=settings.route_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "glowup.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )

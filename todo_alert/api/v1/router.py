from fastapi import APIRouter

# Expose the routers under /api/v1 as well; the versioned namespace is the canonical one
from ...routers import auth as auth_router
from ...routers import preferences as preferences_router
from ...routers import stats as stats_router
from ...routers import tasks as tasks_router


api_router = APIRouter(prefix="/api/v1")

api_router.include_router(auth_router.router)
api_router.include_router(tasks_router.router)
api_router.include_router(preferences_router.router)
api_router.include_router(stats_router.router)


@api_router.get("/", tags=["auth"])  # lightweight meta endpoint
def api_info():
    return {
        "name": "Todo Alert API",
        "version": "v1",
        "docs": "/docs",
        "auth": {
            "register": "/api/v1/auth/register",
            "login": "/api/v1/auth/login",
            "otp_request": "/api/v1/auth/otp/request",
            "otp_verify": "/api/v1/auth/otp/verify",
            "me": "/api/v1/auth/me",
        },
        "tasks": "/api/v1/tasks",
        "preferences": "/api/v1/user/preferences",
        "stats": "/api/v1/stats/summary",
    }

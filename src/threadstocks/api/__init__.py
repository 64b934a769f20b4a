"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter. This protects all routes in each router
without modifying individual handlers. Health and auth routers are
open (no session required).
"""

from fastapi import APIRouter, Depends

from threadstocks.api.auth import router as auth_router
from threadstocks.api.health import router as health_router
from threadstocks.api.threads import router as threads_router
from threadstocks.api.users import router as users_router
from threadstocks.auth.dependencies import get_current_user

# All protected routers require a valid session token
_auth = [Depends(get_current_user)]

api_router = APIRouter(prefix="/api/v1")

# Open routes — no session required
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

# Protected routes — require a valid session cookie or bearer token
api_router.include_router(users_router, tags=["users"], dependencies=_auth)
api_router.include_router(threads_router, tags=["threads"], dependencies=_auth)

from fastapi import APIRouter
from pharmacy_portal.api.v1.auth import router as auth_router
from pharmacy_portal.api.v1.users import router as users_router
from pharmacy_portal.api.v1.pac import router as pac_router
from pharmacy_portal.api.v1.productivity import router as productivity_router, ws_router as productivity_ws_router
from pharmacy_portal.api.v1.wellca import router as wellca_router
from pharmacy_portal.api.v1.audit import router as audit_router

# Create main API router
api_router = APIRouter(prefix="/api/v1")

# Include routers
api_router.include_router(auth_router)
api_router.include_router(users_router)
api_router.include_router(pac_router)
api_router.include_router(productivity_router)
api_router.include_router(productivity_ws_router)
api_router.include_router(wellca_router)
api_router.include_router(audit_router)

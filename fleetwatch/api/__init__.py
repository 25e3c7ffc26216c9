"""
API routes package
"""
from fastapi import APIRouter
from fleetwatch.api.routes import auth, users, geofences

api_router = APIRouter()

# Include all route modules
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(geofences.router)

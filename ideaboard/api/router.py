from fastapi import APIRouter

from ideaboard.api.routes import admin, auth, backlog, projects, suggestions, system

api_router = APIRouter()
api_router.include_router(system.router, prefix="/system", tags=["system"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(auth.me_router, prefix="/me", tags=["auth"])
api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
api_router.include_router(suggestions.router, prefix="/projects", tags=["suggestions"])
api_router.include_router(backlog.router, prefix="/projects", tags=["backlog"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])

from fastapi import APIRouter
from latepass.api.v1.routes.auth import router as auth_router
from latepass.api.v1.routes.late_pass import router as late_pass_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth_router)
api_router.include_router(late_pass_router)

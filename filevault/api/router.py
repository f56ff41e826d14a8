from fastapi import APIRouter
from filevault.api import auth, files

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Auth"])
api_router.include_router(files.router, prefix="/files", tags=["Files"])

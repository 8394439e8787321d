from fastapi import APIRouter

from app.api.v1.endpoints import recordings, video

api_router = APIRouter()
api_router.include_router(video.router, tags=["video"])
api_router.include_router(recordings.router, prefix="/recordings", tags=["recordings"])

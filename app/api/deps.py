from fastapi import Depends, Request

from app.config import Settings, get_settings
from app.services.video_analyzer import VideoAnalyzer
from app.utils.recording import RecordingStore


def get_analyzer(settings: Settings = Depends(get_settings)) -> VideoAnalyzer:
    return VideoAnalyzer(settings)


def get_recording_store(request: Request) -> RecordingStore:
    return request.app.state.recordings

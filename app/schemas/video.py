from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class Citation(BaseModel):
    uri: str
    title: Optional[str] = None


class AnalysisResult(BaseModel):
    prompt: str
    sources: List[Citation] = Field(default_factory=list)


class FramePayload(BaseModel):
    data: str = Field(..., min_length=1, description="Base64-encoded image bytes without a data URL prefix.")
    mime_type: str = "image/jpeg"
    timestamp_sec: Optional[float] = None

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


class FramesRequest(BaseModel):
    frames: List[FramePayload] = Field(..., min_length=1)


class VideoUrlRequest(BaseModel):
    url: str = Field(..., description="Public video URL, e.g. a YouTube link.")

    @field_validator("url")
    @classmethod
    def _require_http_url(cls, value: str) -> str:
        value = value.strip()
        if not value.lower().startswith(("http://", "https://")):
            raise ValueError("url must be an http(s) URL")
        return value


class RefineRequest(BaseModel):
    original_prompt: str = Field(..., min_length=1)
    feedback: str = Field(..., min_length=1)


class VideoAnalysisResponse(AnalysisResult):
    frames_used: int
    model: str
    frame_timestamps: List[float] | None = None
    total_frames: Optional[int] = None
    video_duration_sec: Optional[float] = None
    sampling_interval_sec: Optional[float] = None


class SampledFramesResponse(BaseModel):
    frames: List[FramePayload]
    video_duration_sec: Optional[float] = None
    sampling_interval_sec: Optional[float] = None


class RecordingCreated(BaseModel):
    recording_id: str


class RecordingStatus(BaseModel):
    recording_id: str
    chunks: int
    size_bytes: int

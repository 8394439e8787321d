from app.schemas.video import (
    AnalysisResult,
    Citation,
    FramePayload,
    FramesRequest,
    RecordingCreated,
    RecordingStatus,
    RefineRequest,
    SampledFramesResponse,
    VideoAnalysisResponse,
    VideoUrlRequest,
)

__all__ = [
    "AnalysisResult",
    "Citation",
    "FramePayload",
    "FramesRequest",
    "RecordingCreated",
    "RecordingStatus",
    "RefineRequest",
    "SampledFramesResponse",
    "VideoAnalysisResponse",
    "VideoUrlRequest",
]

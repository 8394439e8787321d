import logging
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from app.api.deps import get_analyzer
from app.config import Settings, get_settings
from app.schemas import (
    AnalysisResult,
    FramePayload,
    FramesRequest,
    RefineRequest,
    SampledFramesResponse,
    VideoAnalysisResponse,
    VideoUrlRequest,
)
from app.services.video_analyzer import VideoAnalyzer
from app.utils.video import FrameSampler, save_upload_to_temp

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_video(file: UploadFile) -> None:
    if not file.content_type or not file.content_type.startswith("video/"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please upload a valid video file.")


def _log_progress(name: str):
    def report(fraction: float) -> None:
        logger.debug("Extracting frames from %s... %d%%", name, round(fraction * 100))

    return report


@router.post(
    "/analyze",
    response_model=VideoAnalysisResponse,
    summary="Generate an app prompt from an uploaded video",
    response_description="Six-section Markdown app specification inferred from the video.",
)
async def analyze_video(
    file: UploadFile = File(..., description="Video file to analyze."),
    settings: Settings = Depends(get_settings),
    analyzer: VideoAnalyzer = Depends(get_analyzer),
) -> VideoAnalysisResponse:
    _require_video(file)
    temp_path: Path = await save_upload_to_temp(file, max_bytes=settings.max_upload_mb * 1024 * 1024)
    try:
        return await analyzer.analyze_video(temp_path, _log_progress(file.filename or temp_path.name))
    finally:
        temp_path.unlink(missing_ok=True)


@router.post(
    "/frames",
    response_model=SampledFramesResponse,
    summary="Sample still frames from an uploaded video",
)
async def sample_frames(
    file: UploadFile = File(..., description="Video file to sample."),
    settings: Settings = Depends(get_settings),
) -> SampledFramesResponse:
    _require_video(file)
    temp_path: Path = await save_upload_to_temp(file, max_bytes=settings.max_upload_mb * 1024 * 1024)
    sampler = FrameSampler(
        max_frames=settings.max_frames,
        base_interval=settings.seconds_per_frame,
        jpeg_quality=settings.jpeg_quality,
    )
    try:
        frames = await sampler.sample(temp_path, _log_progress(file.filename or temp_path.name))
    finally:
        temp_path.unlink(missing_ok=True)

    return SampledFramesResponse(
        frames=[FramePayload(data=f.data, mime_type=f.mime_type, timestamp_sec=f.timestamp_sec) for f in frames],
        video_duration_sec=sampler.last_metadata.duration_sec if sampler.last_metadata else None,
        sampling_interval_sec=sampler.last_plan.interval_seconds if sampler.last_plan else None,
    )


@router.post("/analyze/frames", response_model=AnalysisResult, summary="Generate an app prompt from still frames")
async def analyze_frames(
    request: FramesRequest, analyzer: VideoAnalyzer = Depends(get_analyzer)
) -> AnalysisResult:
    return await analyzer.analyze_frames(request.frames)


@router.post("/analyze/url", response_model=AnalysisResult, summary="Generate an app prompt from a video URL")
async def analyze_video_url(
    request: VideoUrlRequest, analyzer: VideoAnalyzer = Depends(get_analyzer)
) -> AnalysisResult:
    return await analyzer.analyze_video_url(request.url)


@router.post("/refine", response_model=AnalysisResult, summary="Revise a generated prompt from feedback")
async def refine_prompt(request: RefineRequest, analyzer: VideoAnalyzer = Depends(get_analyzer)) -> AnalysisResult:
    return await analyzer.refine(request.original_prompt, request.feedback)

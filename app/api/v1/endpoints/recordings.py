from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import Response

from app.api.deps import get_analyzer, get_recording_store
from app.config import Settings, get_settings
from app.schemas import RecordingCreated, RecordingStatus, VideoAnalysisResponse
from app.services.video_analyzer import VideoAnalyzer
from app.utils.recording import RecordingSession, RecordingStore

router = APIRouter()


def _get_session(recording_id: str, store: RecordingStore) -> RecordingSession:
    session = store.get(recording_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recording not found.")
    return session


@router.post("", response_model=RecordingCreated, status_code=status.HTTP_201_CREATED, summary="Start a recording")
async def start_recording(
    settings: Settings = Depends(get_settings),
    store: RecordingStore = Depends(get_recording_store),
) -> RecordingCreated:
    session = store.create(
        max_bytes=settings.max_upload_mb * 1024 * 1024,
        ttl_seconds=settings.recording_ttl_seconds,
    )
    return RecordingCreated(recording_id=session.id)


@router.post("/{recording_id}/chunks", response_model=RecordingStatus, summary="Append a recorded chunk")
async def append_chunk(
    recording_id: str,
    request: Request,
    store: RecordingStore = Depends(get_recording_store),
) -> RecordingStatus:
    session = _get_session(recording_id, store)
    try:
        session.append(await request.body())
    except OverflowError as exc:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return RecordingStatus(recording_id=session.id, chunks=session.chunk_count, size_bytes=session.size)


@router.post(
    "/{recording_id}/stop",
    response_model=VideoAnalysisResponse,
    summary="Stop a recording and generate an app prompt from it",
)
async def stop_recording(
    recording_id: str,
    store: RecordingStore = Depends(get_recording_store),
    analyzer: VideoAnalyzer = Depends(get_analyzer),
) -> VideoAnalysisResponse:
    session = _get_session(recording_id, store)
    if session.stopping:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Recording is already being stopped.")
    try:
        video_path = session.stop()
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    # The session stays registered while sampling so DELETE can cancel it.
    try:
        return await analyzer.analyze_video(video_path, cancel_event=session.cancel_event)
    finally:
        store.pop(recording_id)
        session.discard()


@router.delete("/{recording_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Discard a recording")
async def discard_recording(recording_id: str, store: RecordingStore = Depends(get_recording_store)) -> Response:
    session = store.pop(recording_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recording not found.")
    if session.stopping:
        session.cancel()
    else:
        session.discard()
    return Response(status_code=status.HTTP_204_NO_CONTENT)

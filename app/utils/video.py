import asyncio
import base64
import logging
import math
import tempfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

import cv2  # type: ignore
from fastapi import HTTPException, UploadFile, status

from app.errors import DecodeError, LoadError, SamplingCancelledError

logger = logging.getLogger(__name__)

DEFAULT_MAX_FRAMES = 15
DEFAULT_SECONDS_PER_FRAME = 2.0
DEFAULT_JPEG_QUALITY = 70

# Tolerance for float error when comparing timeline positions against the duration.
_EPSILON = 1e-9
# How far before a target time a decoded frame may start and still count as that position.
_POSITION_TOLERANCE = 1e-3

ProgressCallback = Callable[[float], None]


@dataclass
class FrameSample:
    """Represents a sampled frame that can be sent to the vision model."""

    index: int
    timestamp_sec: float
    data: str
    mime_type: str = "image/jpeg"

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass
class VideoMetadata:
    """Basic video metadata used to derive sampling density."""

    frame_count: int
    fps: float
    duration_sec: Optional[float]
    width: int = 0
    height: int = 0
    seekable: bool = True


@dataclass(frozen=True)
class SampleIntervalPlan:
    capacity: int
    interval_seconds: float


async def save_upload_to_temp(upload_file: UploadFile, max_bytes: Optional[int] = None) -> Path:
    """Persist an uploaded file to a temporary location and return the path."""
    suffix = Path(upload_file.filename or "video").suffix or ".mp4"
    written = 0
    with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp:
        while True:
            chunk = await upload_file.read(1024 * 1024)
            if not chunk:
                break
            written += len(chunk)
            if max_bytes is not None and written > max_bytes:
                tmp.close()
                Path(tmp.name).unlink(missing_ok=True)
                raise HTTPException(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    detail="Uploaded video exceeds the maximum allowed size.",
                )
            tmp.write(chunk)
    await upload_file.seek(0)
    return Path(tmp.name)


def plan_sample_interval(duration_sec: float, max_frames: int, base_interval: float) -> SampleIntervalPlan:
    """
    Derive the spacing between captures for a video of the given length.

    - Start from `base_interval`
    - Stretch it so long videos yield at most `max_frames` captures
    - Halve the duration for clips shorter than one interval
    """
    if max_frames < 1:
        raise ValueError("max_frames must be at least 1.")
    if base_interval <= 0:
        raise ValueError("base_interval must be positive.")

    if duration_sec <= 0:
        return SampleIntervalPlan(capacity=1, interval_seconds=1.0)

    interval = base_interval
    if duration_sec / interval > max_frames:
        interval = duration_sec / max_frames
    if duration_sec < interval:
        interval = duration_sec / 2 or 1.0

    positions = math.floor(duration_sec / interval + _EPSILON) + 1
    return SampleIntervalPlan(capacity=max(1, min(positions, max_frames)), interval_seconds=interval)


def _open_capture(video_path: Path):
    cap = cv2.VideoCapture(str(video_path))
    if not cap.isOpened():
        cap.release()
        raise LoadError("Could not load video metadata. Please ensure it is a valid video file.")
    return cap


def _read_metadata(cap) -> VideoMetadata:
    total_frames = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
    fps = float(cap.get(cv2.CAP_PROP_FPS) or 0.0)
    duration = (total_frames / fps) if fps > 0 and total_frames > 0 else None
    return VideoMetadata(
        frame_count=total_frames,
        fps=fps,
        duration_sec=duration,
        width=int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
        height=int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
    )


def _encode_frame(frame, quality: int) -> str:
    success, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
    if not success:
        raise DecodeError("Failed to encode a captured frame.")
    return base64.b64encode(buffer.tobytes()).decode("utf-8")


class _DecodeHandle:
    """Owns the capture of one sampling run. Only touched from the sampler's worker thread."""

    def __init__(self, video_path: Path) -> None:
        self.video_path = video_path
        self.cap = None
        self.grabbed = 0
        self.position_sec = 0.0

    def open(self) -> "_DecodeHandle":
        self.release()
        self.cap = _open_capture(self.video_path)
        self.grabbed = 0
        self.position_sec = 0.0
        return self

    def grab(self) -> bool:
        """Decode the next frame in stream order and remember its presentation time."""
        if not self.cap.grab():
            return False
        self.grabbed += 1
        self.position_sec = self.cap.get(cv2.CAP_PROP_POS_MSEC) / 1000.0
        return True

    def release(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None


def _probe(handle: _DecodeHandle) -> VideoMetadata:
    metadata = _read_metadata(handle.cap)
    if metadata.duration_sec is not None:
        return metadata

    # Streamed containers such as MediaRecorder webm carry no frame count or index:
    # decode once to measure them, then reopen and read forward only.
    last_position = 0.0
    while handle.grab():
        last_position = handle.position_sec
    frames = handle.grabbed
    handle.open()

    duration = last_position or (frames / metadata.fps if metadata.fps > 0 else 0.0)
    metadata.frame_count = frames
    metadata.duration_sec = duration if frames and duration > 0 else None
    metadata.seekable = False
    logger.debug("Measured unindexed stream: %d frames over %.3fs", frames, duration)
    return metadata


def get_video_metadata(video_path: Path) -> VideoMetadata:
    """Extract lightweight metadata to inform sampling density."""
    handle = _DecodeHandle(video_path).open()
    try:
        return _probe(handle)
    finally:
        handle.release()


class FrameSampler:
    """
    Walks a video timeline at a computed interval and captures JPEG stills.

    Every OpenCV call for one sampling run goes through a single worker
    thread: the capture handle is one shared decode surface, so seeks are
    strictly sequential and the final release cannot overlap a read that is
    still in flight after the awaiting task was cancelled.
    """

    def __init__(
        self,
        max_frames: int = DEFAULT_MAX_FRAMES,
        base_interval: float = DEFAULT_SECONDS_PER_FRAME,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
    ) -> None:
        if max_frames < 1:
            raise ValueError("max_frames must be at least 1.")
        if base_interval <= 0:
            raise ValueError("base_interval must be positive.")
        self.max_frames = max_frames
        self.base_interval = base_interval
        self.jpeg_quality = jpeg_quality
        self.last_metadata: Optional[VideoMetadata] = None
        self.last_plan: Optional[SampleIntervalPlan] = None

    async def sample(
        self,
        video_path: Path,
        on_progress: Optional[ProgressCallback] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[FrameSample]:
        loop = asyncio.get_running_loop()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="frame-sampler")
        handle = _DecodeHandle(video_path)
        try:
            await loop.run_in_executor(executor, handle.open)
            metadata = await loop.run_in_executor(executor, _probe, handle)
            duration = metadata.duration_sec
            if not duration or duration <= 0:
                raise LoadError("The video reports no playable duration.")

            plan = plan_sample_interval(duration, self.max_frames, self.base_interval)
            self.last_metadata = metadata
            self.last_plan = plan
            logger.info(
                "Sampling %s: duration=%.2fs size=%dx%d interval=%.3fs capacity=%d",
                video_path.name,
                duration,
                metadata.width,
                metadata.height,
                plan.interval_seconds,
                plan.capacity,
            )

            frames: List[FrameSample] = []
            previous_index: Optional[int] = None
            step = 0
            while True:
                current_time = step * plan.interval_seconds
                if current_time > duration + _EPSILON or len(frames) >= self.max_frames:
                    break
                if cancel_event is not None and cancel_event.is_set():
                    raise SamplingCancelledError("Frame sampling was cancelled.")
                step += 1

                frame = await loop.run_in_executor(
                    executor, self._capture_at, handle, metadata, current_time, previous_index
                )
                if frame is None:
                    continue
                previous_index = frame.index
                frames.append(frame)

                progress = min(current_time / duration, 1.0)
                logger.debug("Captured frame %d at %.3fs (%.0f%%)", len(frames), current_time, progress * 100)
                if on_progress is not None:
                    on_progress(progress)

            return frames
        finally:
            # Queued behind any in-flight read, so it runs even if this task is cancelled.
            released = executor.submit(handle.release)
            executor.shutdown(wait=False)
            await asyncio.wrap_future(released)

    def _capture_at(
        self, handle: _DecodeHandle, metadata: VideoMetadata, timestamp: float, previous_index: Optional[int]
    ) -> Optional[FrameSample]:
        """
        Position the decoder at `timestamp` and encode the visible frame.

        Returns None when that position resolves to the frame captured last,
        which happens once the interval is shorter than a frame.
        """
        if metadata.seekable:
            index = min(int(round(timestamp * metadata.fps)), max(metadata.frame_count - 1, 0))
            if index == previous_index:
                return None
            if not handle.cap.set(cv2.CAP_PROP_POS_FRAMES, index):
                raise DecodeError(f"Failed to seek to {timestamp:.2f}s in the video.")
            success, frame = handle.cap.read()
        else:
            while handle.grabbed == 0 or handle.position_sec < timestamp - _POSITION_TOLERANCE:
                if not handle.grab():
                    raise DecodeError(f"The video ended before {timestamp:.2f}s.")
            index = handle.grabbed - 1
            if index == previous_index:
                return None
            success, frame = handle.cap.retrieve()

        if not success or frame is None:
            raise DecodeError(
                "Failed to load or process the video file. It may be corrupt or in an unsupported format."
            )
        return FrameSample(index=index, timestamp_sec=timestamp, data=_encode_frame(frame, self.jpeg_quality))


async def sample_video_frames_async(
    video_path: Path,
    max_frames: int = DEFAULT_MAX_FRAMES,
    base_interval: float = DEFAULT_SECONDS_PER_FRAME,
    on_progress: Optional[ProgressCallback] = None,
    *,
    jpeg_quality: int = DEFAULT_JPEG_QUALITY,
    cancel_event: Optional[asyncio.Event] = None,
) -> List[FrameSample]:
    """Sample frames across a video without blocking the event loop."""
    sampler = FrameSampler(max_frames=max_frames, base_interval=base_interval, jpeg_quality=jpeg_quality)
    return await sampler.sample(video_path, on_progress, cancel_event=cancel_event)

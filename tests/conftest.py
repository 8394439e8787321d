"""
Test Configuration
==================

Synthetic videos, a fake OpenAI client and settings shared by the test suite.
"""

import shutil
import subprocess
from pathlib import Path
from types import SimpleNamespace

import cv2
import httpx
import numpy as np
import openai
import pytest

from app.config import Settings
from app.services.prompts import SECTION_HEADINGS

SAMPLE_PROMPT = "\n\n".join(f"{heading}\nDetails for section {i}." for i, heading in enumerate(SECTION_HEADINGS, 1))


def write_video(path: Path, duration_sec: float, fps: int = 2, size=(64, 48)) -> Path:
    """Write an MJPG clip whose frames get brighter over time."""
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), fps, size)
    total = int(round(duration_sec * fps))
    for i in range(total):
        shade = int(255 * i / max(total - 1, 1))
        writer.write(np.full((size[1], size[0], 3), shade, dtype=np.uint8))
    writer.release()
    return path


class FakeCompletions:
    def __init__(self, content=SAMPLE_PROMPT, annotations=None, error=None, choices=True):
        self.content = content
        self.annotations = annotations or []
        self.error = error
        self.choices = choices
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        if not self.choices:
            return SimpleNamespace(choices=[])
        message = SimpleNamespace(content=self.content, annotations=self.annotations)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeOpenAI:
    def __init__(self, **kwargs):
        self.completions = FakeCompletions(**kwargs)
        self.chat = SimpleNamespace(completions=self.completions)


def auth_error():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(401, request=request)
    return openai.AuthenticationError("Incorrect API key provided", response=response, body=None)


def url_citation(url, title=None):
    return SimpleNamespace(type="url_citation", url_citation=SimpleNamespace(url=url, title=title))


@pytest.fixture
def settings():
    return Settings(OPENAI_API_KEY="test-key", _env_file=None)


@pytest.fixture
def fake_client():
    return FakeOpenAI()


@pytest.fixture
def video_30s(tmp_path):
    return write_video(tmp_path / "thirty.avi", 30)


@pytest.fixture
def video_100s(tmp_path):
    return write_video(tmp_path / "hundred.avi", 100)


@pytest.fixture
def video_1s(tmp_path):
    return write_video(tmp_path / "short.avi", 1, fps=10)


@pytest.fixture
def corrupt_video(tmp_path):
    path = tmp_path / "corrupt.mp4"
    path.write_bytes(b"this is not a video container")
    return path


@pytest.fixture
def streamed_webm(tmp_path):
    """A 6s VP8 clip written to a pipe, so like a browser recording it has no duration or cues."""
    if shutil.which("ffmpeg") is None:
        pytest.skip("ffmpeg is not installed")
    result = subprocess.run(
        [
            "ffmpeg",
            "-loglevel",
            "error",
            "-f",
            "lavfi",
            "-i",
            "testsrc=duration=6:size=160x120:rate=30",
            "-c:v",
            "libvpx",
            "-f",
            "webm",
            "pipe:1",
        ],
        capture_output=True,
        check=False,
    )
    if result.returncode != 0 or not result.stdout:
        pytest.skip("ffmpeg cannot encode VP8")
    path = tmp_path / "recording.webm"
    path.write_bytes(result.stdout)
    return path

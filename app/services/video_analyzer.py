import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import openai
from openai import OpenAI

from app.config import Settings
from app.errors import AnalysisError, ConfigurationError, EmptyResultError, InvalidCredentialError
from app.schemas.video import AnalysisResult, Citation, VideoAnalysisResponse
from app.services import prompts
from app.utils.video import FrameSample, FrameSampler, ProgressCallback

logger = logging.getLogger(__name__)

_INVALID_KEY_MARKERS = ("invalid_api_key", "api_key_invalid", "incorrect api key")


class VideoAnalyzer:
    """Handles frame extraction and GPT vision calls that turn a video into an app prompt."""

    def __init__(self, settings: Settings, client: Optional[OpenAI] = None) -> None:
        if not settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is not configured.")
        self.settings = settings
        self.client = client or OpenAI(api_key=settings.openai_api_key)

    def new_sampler(self) -> FrameSampler:
        return FrameSampler(
            max_frames=self.settings.max_frames,
            base_interval=self.settings.seconds_per_frame,
            jpeg_quality=self.settings.jpeg_quality,
        )

    async def analyze_video(
        self,
        video_path: Path,
        on_progress: Optional[ProgressCallback] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> VideoAnalysisResponse:
        sampler = self.new_sampler()
        frames: List[FrameSample] = await sampler.sample(video_path, on_progress, cancel_event=cancel_event)
        if not frames:
            raise EmptyResultError("Could not extract any frames from the video. Please try a different video file.")

        result = await self.analyze_frames(frames)
        metadata = sampler.last_metadata
        return VideoAnalysisResponse(
            prompt=result.prompt,
            sources=result.sources,
            frames_used=len(frames),
            model=self.settings.openai_model,
            frame_timestamps=[f.timestamp_sec for f in frames],
            total_frames=metadata.frame_count if metadata else None,
            video_duration_sec=metadata.duration_sec if metadata else None,
            sampling_interval_sec=sampler.last_plan.interval_seconds if sampler.last_plan else None,
        )

    async def analyze_frames(self, frames: Sequence[Any]) -> AnalysisResult:
        """Infer an app concept from still frames; never grounded, so sources stay empty."""
        if not frames:
            raise EmptyResultError("No frames were provided for analysis.")

        messages = [
            {"role": "system", "content": prompts.SYSTEM_ROLE},
            {"role": "user", "content": self._build_user_content(prompts.frames_instruction(), frames)},
        ]
        message = await self._complete(model=self.settings.openai_model, messages=messages)
        return AnalysisResult(prompt=self._prompt_text(message), sources=[])

    async def analyze_video_url(self, url: str) -> AnalysisResult:
        messages = [
            {"role": "system", "content": prompts.SYSTEM_ROLE},
            {"role": "user", "content": prompts.video_url_instruction(url)},
        ]
        message = await self._complete(
            model=self.settings.openai_search_model,
            messages=messages,
            web_search_options={},
        )
        return AnalysisResult(prompt=self._prompt_text(message), sources=self._citations(message))

    async def refine(self, original_prompt: str, feedback: str) -> AnalysisResult:
        messages = [
            {"role": "system", "content": prompts.SYSTEM_ROLE},
            {"role": "user", "content": prompts.refine_instruction(original_prompt, feedback)},
        ]
        message = await self._complete(model=self.settings.openai_model, messages=messages)
        prompt = self._prompt_text(message)
        missing = prompts.missing_sections(prompt)
        if missing:
            logger.warning("Refined prompt lost sections: %s", ", ".join(missing))
        return AnalysisResult(prompt=prompt, sources=[])

    async def _complete(self, *, model: str, messages: List[Dict[str, Any]], **extra: Any):
        logger.info("Requesting completion from %s", model)
        try:
            completion = await asyncio.to_thread(
                self.client.chat.completions.create,
                model=model,
                messages=messages,
                max_tokens=self.settings.max_tokens,
                **extra,
            )
        except Exception as exc:
            raise self._translate_error(exc) from exc

        if not completion.choices:
            raise AnalysisError("Failed to get a response from the AI model. Details: no choices returned.")
        return completion.choices[0].message

    @staticmethod
    def _translate_error(exc: Exception) -> AnalysisError:
        logger.error("Model call failed: %s", exc)
        detail = str(exc)
        if isinstance(exc, openai.AuthenticationError) or any(
            marker in detail.lower() for marker in _INVALID_KEY_MARKERS
        ):
            return InvalidCredentialError(
                "The provided API Key is invalid. Please check your environment configuration."
            )
        return AnalysisError(f"Failed to get a response from the AI model. Details: {detail}")

    @staticmethod
    def _prompt_text(message) -> str:
        content = prompts.clean_markdown(getattr(message, "content", None) or "")
        if not content:
            raise AnalysisError("Failed to get a response from the AI model. Details: empty response.")
        return content

    @staticmethod
    def _citations(message) -> List[Citation]:
        citations: List[Citation] = []
        seen = set()
        for annotation in getattr(message, "annotations", None) or []:
            if getattr(annotation, "type", None) != "url_citation":
                continue
            cited = annotation.url_citation
            if not cited.url or cited.url in seen:
                continue
            seen.add(cited.url)
            citations.append(Citation(uri=cited.url, title=getattr(cited, "title", None) or None))
        return citations

    @staticmethod
    def _build_user_content(instruction: str, frames: Sequence[Any]):
        content = [{"type": "text", "text": instruction}]
        for frame in frames:
            content.append({"type": "image_url", "image_url": {"url": frame.data_url}})
        return content

class VideoAnalyzerError(Exception):
    """Base class for errors surfaced to API callers."""

    category = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(VideoAnalyzerError):
    category = "configuration"


class SamplingError(VideoAnalyzerError):
    category = "sampling"


class LoadError(SamplingError):
    """Video metadata could not be read (corrupt file, unsupported container, zero duration)."""

    category = "load"


class DecodeError(SamplingError):
    """Seeking to or encoding a frame failed part way through sampling."""

    category = "decode"


class EmptyResultError(SamplingError):
    category = "empty"


class SamplingCancelledError(SamplingError):
    category = "cancelled"


class AnalysisError(VideoAnalyzerError):
    """The remote model call failed or returned an unusable response."""

    category = "analysis"


class InvalidCredentialError(AnalysisError):
    category = "invalid_credential"

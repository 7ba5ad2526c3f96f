"""Exceptions raised by the banana weather services."""


class BananaWeatherError(Exception):
    """Base exception for the backend."""


class ConfigurationError(BananaWeatherError):
    """A provider client could not be configured."""


class ResolutionError(BananaWeatherError):
    """Location lookup found no match or the geocoding provider failed."""


class SynthesisError(BananaWeatherError):
    """Image generation produced no usable output."""


class StorageError(BananaWeatherError):
    """Object storage upload or read failed."""


class VideoGenerationError(BananaWeatherError):
    """Base class for failures of the image-to-video pipeline."""


class SubmissionError(VideoGenerationError):
    """The provider refused the video job."""


class PollError(VideoGenerationError):
    """A status query failed. Only logged, the poll loop keeps going."""


class ProviderError(VideoGenerationError):
    """The provider reported the job as failed."""


class ExtractionError(VideoGenerationError):
    """The job completed but no result location could be found."""


class JobCancelledError(VideoGenerationError):
    """Polling stopped because the request was cancelled or timed out."""


class UnsupportedTransportError(BananaWeatherError):
    """The response sink cannot deliver events incrementally."""

"""Video provider implementations."""

from clipper.providers.base import VideoProvider
from clipper.providers.exceptions import (
    AcquisitionError,
    ClipperError,
    EncoderUnavailableError,
    FormatUnavailableError,
    InvalidRequestError,
    InvalidURLError,
    JobNotFoundError,
    NoVideoLoadedError,
    PathNotAllowedError,
    ProcessFailedError,
    ProcessLaunchError,
    TransferError,
    VideoUnavailableError,
)

__all__ = [
    "VideoProvider",
    "ClipperError",
    "InvalidURLError",
    "VideoUnavailableError",
    "FormatUnavailableError",
    "TransferError",
    "ProcessLaunchError",
    "ProcessFailedError",
    "InvalidRequestError",
    "EncoderUnavailableError",
    "NoVideoLoadedError",
    "PathNotAllowedError",
    "JobNotFoundError",
    "AcquisitionError",
]

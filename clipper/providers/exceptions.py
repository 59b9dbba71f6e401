"""Error taxonomy for acquisition and export."""

from typing import Dict, Optional


class ClipperError(Exception):
    """Base exception for all acquisition and export errors."""

    pass


class InvalidURLError(ClipperError):
    """Raised when a URL or video ID is invalid or unsupported."""

    pass


class VideoUnavailableError(ClipperError):
    """Raised when the remote video is not accessible."""

    pass


class FormatUnavailableError(ClipperError):
    """Raised when no usable stream combination exists for a video."""

    pass


class TransferError(ClipperError):
    """Raised when a stream fetch fails on the network or on disk."""

    pass


class ProcessLaunchError(ClipperError):
    """Raised when an external tool binary cannot be started."""

    pass


class ProcessFailedError(ClipperError):
    """Raised when an external tool exits with a non-zero status.

    The encoder's or downloader's diagnostic output is kept verbatim on
    ``stderr`` since it is the most actionable signal available.
    """

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        if stderr:
            message = f"{message}: {stderr}"
        super().__init__(message)


class InvalidRequestError(ClipperError):
    """Raised when a trim/export request fails validation."""

    pass


class EncoderUnavailableError(ClipperError):
    """Raised when an operation requires an encoder and none is configured."""

    pass


class NoVideoLoadedError(ClipperError):
    """Raised when an export is requested before any video was acquired."""

    pass


class JobNotFoundError(ClipperError):
    """Raised when a job is not found."""

    pass


class AcquisitionError(ClipperError):
    """Raised when every acquisition strategy has been exhausted.

    ``errors`` maps strategy names to the error each one failed with.
    """

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        self.errors = errors or {}
        super().__init__(message)


class PathNotAllowedError(ClipperError):
    """Raised when a file to be served lies outside the session directory."""

    pass

"""Centralized error handling for the API.

This module provides standardized error codes, exception-to-response mapping,
and a global exception handler for FastAPI.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Type

import structlog
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from clipper.core.logging import get_job_id
from clipper.core.metrics import MetricsCollector
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

logger = structlog.get_logger(__name__)


class ErrorCode:
    """Standardized error codes for API responses.

    These codes provide machine-readable identifiers for error conditions
    that clients can use to implement error handling logic.
    """

    # Client Errors (4xx)
    INVALID_URL = "INVALID_URL"
    INVALID_REQUEST = "INVALID_REQUEST"
    ACCESS_DENIED = "ACCESS_DENIED"
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    NO_VIDEO_LOADED = "NO_VIDEO_LOADED"
    VIDEO_UNAVAILABLE = "VIDEO_UNAVAILABLE"

    # Server Errors (5xx)
    FORMAT_UNAVAILABLE = "FORMAT_UNAVAILABLE"
    TRANSFER_FAILED = "TRANSFER_FAILED"
    PROCESS_FAILED = "PROCESS_FAILED"
    ACQUISITION_FAILED = "ACQUISITION_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Service Unavailable (503)
    ENCODER_UNAVAILABLE = "ENCODER_UNAVAILABLE"
    COMPONENT_UNAVAILABLE = "COMPONENT_UNAVAILABLE"


# Error code to HTTP status code mapping
ERROR_CODE_TO_STATUS: Dict[str, int] = {
    # 400 Bad Request
    ErrorCode.INVALID_URL: HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_REQUEST: HTTP_400_BAD_REQUEST,
    # 403 Forbidden
    ErrorCode.ACCESS_DENIED: HTTP_403_FORBIDDEN,
    # 404 Not Found
    ErrorCode.JOB_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.NO_VIDEO_LOADED: HTTP_404_NOT_FOUND,
    ErrorCode.VIDEO_UNAVAILABLE: HTTP_404_NOT_FOUND,
    # 5xx
    ErrorCode.FORMAT_UNAVAILABLE: HTTP_502_BAD_GATEWAY,
    ErrorCode.TRANSFER_FAILED: HTTP_502_BAD_GATEWAY,
    ErrorCode.PROCESS_FAILED: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.ACQUISITION_FAILED: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.INTERNAL_ERROR: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.ENCODER_UNAVAILABLE: HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.COMPONENT_UNAVAILABLE: HTTP_503_SERVICE_UNAVAILABLE,
}


# User-friendly suggestions for error resolution
ERROR_SUGGESTIONS: Dict[str, str] = {
    ErrorCode.INVALID_URL: (
        "Provide a YouTube URL (youtube.com, youtu.be, /shorts/, /embed/) "
        "or an 11 character video ID"
    ),
    ErrorCode.INVALID_REQUEST: (
        "Check that end_time is greater than start_time and output_dir is an absolute path"
    ),
    ErrorCode.ACCESS_DENIED: "Only the currently loaded video can be served",
    ErrorCode.JOB_NOT_FOUND: "The job ID does not exist or has expired",
    ErrorCode.NO_VIDEO_LOADED: "Load a video with POST /api/v1/videos first",
    ErrorCode.VIDEO_UNAVAILABLE: "The video may be private, deleted, age-restricted, or geo-blocked",
    ErrorCode.FORMAT_UNAVAILABLE: "The video does not advertise any playable stream",
    ErrorCode.TRANSFER_FAILED: "The stream download failed. Try loading the video again",
    ErrorCode.PROCESS_FAILED: "An external tool failed. The message contains its diagnostics",
    ErrorCode.ACQUISITION_FAILED: "Every download strategy failed. Check server logs for details",
    ErrorCode.INTERNAL_ERROR: "An unexpected error occurred. Check server logs for details",
    ErrorCode.ENCODER_UNAVAILABLE: "Install FFmpeg or set CLIPPER_TOOLS_FFMPEG_PATH",
    ErrorCode.COMPONENT_UNAVAILABLE: "A required tool is unavailable. Check /health for status",
}


# Exception type to error code mapping
# Order matters: subclasses must come before their base classes
EXCEPTION_TO_ERROR_CODE: Dict[Type[Exception], str] = {
    InvalidURLError: ErrorCode.INVALID_URL,
    InvalidRequestError: ErrorCode.INVALID_REQUEST,
    PathNotAllowedError: ErrorCode.ACCESS_DENIED,
    JobNotFoundError: ErrorCode.JOB_NOT_FOUND,
    NoVideoLoadedError: ErrorCode.NO_VIDEO_LOADED,
    VideoUnavailableError: ErrorCode.VIDEO_UNAVAILABLE,
    FormatUnavailableError: ErrorCode.FORMAT_UNAVAILABLE,
    TransferError: ErrorCode.TRANSFER_FAILED,
    ProcessFailedError: ErrorCode.PROCESS_FAILED,
    AcquisitionError: ErrorCode.ACQUISITION_FAILED,
    EncoderUnavailableError: ErrorCode.ENCODER_UNAVAILABLE,
    ProcessLaunchError: ErrorCode.COMPONENT_UNAVAILABLE,
    # ClipperError must be last (after its subclasses)
    ClipperError: ErrorCode.INTERNAL_ERROR,
}


class APIError(Exception):
    """Structured API error that can be converted to ErrorDetail response.

    This exception class provides a standardized way to raise errors
    that will be converted to consistent error responses by the global
    exception handler.
    """

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[str] = None,
        suggestion: Optional[str] = None,
    ):
        """Initialize an API error.

        Args:
            error_code: Machine-readable error code from ErrorCode class.
            message: Human-readable error message.
            details: Optional additional details about the error.
            suggestion: Optional suggestion for resolution. If not provided,
                        the default suggestion for the error code is used.
        """
        self.error_code = error_code
        self.message = message
        self.details = details
        self.suggestion = suggestion or ERROR_SUGGESTIONS.get(error_code)
        super().__init__(message)


def map_exception_to_api_error(exc: Exception) -> APIError:
    """Map acquisition, export and service exceptions to APIError.

    Dictionary order ensures subclasses are checked before their base classes.

    Args:
        exc: The exception to map.

    Returns:
        An APIError with the appropriate error code and message.
    """
    for exc_type, error_code in EXCEPTION_TO_ERROR_CODE.items():
        if isinstance(exc, exc_type):
            details = None
            if isinstance(exc, AcquisitionError) and exc.errors:
                details = "; ".join(f"{name}: {reason}" for name, reason in exc.errors.items())
            return APIError(error_code, str(exc), details=details)
    return APIError(ErrorCode.INTERNAL_ERROR, "An unexpected error occurred")


def _build_error_response(
    error_code: str,
    message: str,
    details: Optional[str] = None,
    suggestion: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a standardized error response dictionary.

    Args:
        error_code: Machine-readable error code.
        message: Human-readable error message.
        details: Optional additional details.
        suggestion: Optional suggestion for resolution.

    Returns:
        Dictionary matching the ErrorDetail schema.
    """
    job_id = get_job_id()
    timestamp = datetime.now(timezone.utc).isoformat()

    response: Dict[str, Any] = {
        "error_code": error_code,
        "message": message,
        "timestamp": timestamp,
    }

    if details:
        response["details"] = details
    if job_id:
        response["job_id"] = job_id
    if suggestion:
        response["suggestion"] = suggestion

    return response


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for FastAPI.

    Converts all exceptions to standardized ErrorDetail responses with
    consistent structure and proper HTTP status codes.

    Args:
        request: The FastAPI request object.
        exc: The exception that was raised.

    Returns:
        JSONResponse with ErrorDetail body and appropriate status code.
    """
    if isinstance(exc, APIError):
        error_code = exc.error_code
        status_code = ERROR_CODE_TO_STATUS.get(error_code, HTTP_500_INTERNAL_SERVER_ERROR)
        response = _build_error_response(
            error_code=error_code,
            message=exc.message,
            details=exc.details,
            suggestion=exc.suggestion,
        )
        logger.warning(
            "api_error",
            error_code=error_code,
            message=exc.message,
            path=request.url.path,
        )

    elif isinstance(exc, HTTPException):
        # FastAPI HTTPException - preserve status code
        status_code = exc.status_code

        if isinstance(exc.detail, dict) and "error_code" in exc.detail:
            error_code = exc.detail["error_code"]
            message = exc.detail.get("message", str(exc.detail))
            details = exc.detail.get("details")
        else:
            error_code = _status_to_error_code(status_code)
            message = str(exc.detail) if exc.detail else "An error occurred"
            details = None

        response = _build_error_response(
            error_code=error_code,
            message=message,
            details=details,
            suggestion=ERROR_SUGGESTIONS.get(error_code),
        )
        logger.warning(
            "http_exception",
            status_code=status_code,
            error_code=error_code,
            path=request.url.path,
        )

    elif isinstance(exc, ClipperError):
        api_error = map_exception_to_api_error(exc)
        error_code = api_error.error_code
        status_code = ERROR_CODE_TO_STATUS.get(error_code, HTTP_500_INTERNAL_SERVER_ERROR)
        response = _build_error_response(
            error_code=error_code,
            message=api_error.message,
            details=api_error.details,
            suggestion=api_error.suggestion,
        )
        logger.warning(
            "clipper_error",
            error_code=error_code,
            error_type=type(exc).__name__,
            message=str(exc),
            path=request.url.path,
        )

    else:
        # Unexpected error - log with full traceback
        error_code = ErrorCode.INTERNAL_ERROR
        status_code = HTTP_500_INTERNAL_SERVER_ERROR
        response = _build_error_response(
            error_code=error_code,
            message="An unexpected error occurred",
            suggestion=ERROR_SUGGESTIONS.get(error_code),
        )
        logger.error(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error=str(exc),
            path=request.url.path,
            exc_info=True,
        )

    MetricsCollector.record_error(error_code, request.url.path)
    return JSONResponse(status_code=status_code, content=response)


def _status_to_error_code(status_code: int) -> str:
    """Infer error code from HTTP status code.

    Args:
        status_code: HTTP status code.

    Returns:
        Appropriate error code string.
    """
    if status_code == HTTP_400_BAD_REQUEST:
        return ErrorCode.INVALID_REQUEST
    elif status_code == HTTP_403_FORBIDDEN:
        return ErrorCode.ACCESS_DENIED
    elif status_code == HTTP_404_NOT_FOUND:
        return ErrorCode.JOB_NOT_FOUND
    elif status_code == HTTP_503_SERVICE_UNAVAILABLE:
        return ErrorCode.COMPONENT_UNAVAILABLE
    else:
        return ErrorCode.INTERNAL_ERROR

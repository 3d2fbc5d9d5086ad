"""
Exception taxonomy and engine error classification
"""

from typing import Any, Dict, List, Optional

from .models import ErrorCode, ErrorDetail
from .platforms import Platform

PROXY_HINT = (
    "YouTube is blocking requests from this server. "
    "Set YTDLP_PROXY to a residential proxy to bypass bot detection."
)


class MediaGrabError(Exception):
    """Base error mapped to an HTTP status and a structured ErrorDetail."""

    status_code: int = 500
    code: ErrorCode = ErrorCode.SERVER_ERROR
    is_transient: bool = True
    retry_after_seconds: Optional[int] = None

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[ErrorCode] = None,
        hint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        is_transient: Optional[bool] = None,
        retry_after_seconds: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        if is_transient is not None:
            self.is_transient = is_transient
        if retry_after_seconds is not None:
            self.retry_after_seconds = retry_after_seconds
        self.hint = hint
        self.details = details

    def to_detail(self) -> ErrorDetail:
        return ErrorDetail(
            code=self.code,
            message=self.message,
            is_transient=self.is_transient,
            retry_after_seconds=self.retry_after_seconds,
            hint=self.hint,
            details=self.details,
        )


class InputError(MediaGrabError):
    """Missing or malformed URL"""
    status_code = 400
    code = ErrorCode.INVALID_URL
    is_transient = False


class PlatformUnsupported(MediaGrabError):
    """The engine has no extractor for this URL"""
    status_code = 400
    code = ErrorCode.UNSUPPORTED_PLATFORM
    is_transient = False


class AccessRestricted(MediaGrabError):
    """Bot detection, age gate, geo block or login wall"""
    status_code = 403
    code = ErrorCode.LOGIN_REQUIRED
    is_transient = False


class NotFound(MediaGrabError):
    """Deleted, private or otherwise unavailable media"""
    status_code = 404
    code = ErrorCode.VIDEO_UNAVAILABLE
    is_transient = False


class AllStrategiesFailed(MediaGrabError):
    """Every strategy's engine call errored."""
    status_code = 500
    code = ErrorCode.ALL_STRATEGIES_FAILED
    is_transient = True
    retry_after_seconds = 120

    def __init__(
        self,
        last_error: str,
        attempts: Optional[List[Dict[str, str]]] = None,
        *,
        proxy_could_help: bool = False,
        hint: Optional[str] = None,
    ):
        self.last_error = last_error
        self.attempts = attempts or []
        self.proxy_could_help = proxy_could_help
        details: Dict[str, Any] = {"lastError": last_error}
        if self.attempts:
            details["attempts"] = self.attempts
        if proxy_could_help:
            details["proxyCouldHelp"] = True
        super().__init__(
            f"Failed to fetch media information: {last_error}",
            hint=hint,
            details=details,
        )


class StreamFailure(MediaGrabError):
    """Error while transmitting the response body; headers are already sent."""


class DownloadFailed(MediaGrabError):
    """The engine failed to produce a file after metadata resolved"""
    status_code = 500
    code = ErrorCode.SERVER_ERROR


def _contains(text: str, *needles: str) -> bool:
    return any(needle in text for needle in needles)


def classify_engine_error(
    message: str,
    platform: Platform,
    proxy_configured: bool,
    attempts: Optional[List[Dict[str, str]]] = None,
) -> MediaGrabError:
    """Map an engine error message to the error taxonomy by substring."""
    lower = message.lower()
    proxy_could_help = platform == Platform.YOUTUBE and not proxy_configured
    hint = PROXY_HINT if proxy_could_help else None
    details: Dict[str, Any] = {"error": message}
    if attempts:
        details["attempts"] = attempts

    if "unsupported url" in lower:
        return PlatformUnsupported(
            "This URL is not supported", details=details,
        )

    if _contains(lower, "not a bot", "bot detection", "bot check"):
        return AccessRestricted(
            "Bot detection triggered by the platform. Try again later.",
            status_code=503,
            code=ErrorCode.BOT_DETECTED,
            hint=hint,
            details=details,
            is_transient=True,
            retry_after_seconds=300,
        )

    if _contains(lower, "age-restricted", "age restricted", "confirm your age", "inappropriate for some users"):
        return AccessRestricted(
            "This video is age-restricted",
            code=ErrorCode.AGE_RESTRICTED,
            details=details,
        )

    if _contains(lower, "in your country", "geo restrict", "geo-restrict", "geo-block", "geo block"):
        return AccessRestricted(
            "This video is not available in the server's region",
            status_code=451,
            code=ErrorCode.GEO_RESTRICTED,
            details=details,
        )

    if _contains(lower, "private", "not found", "404", "deleted", "removed", "unavailable", "does not exist"):
        return NotFound(
            "Video not found, private, or deleted", details=details,
        )

    if _contains(lower, "login required", "log in", "login", "sign in", "cookies"):
        return AccessRestricted(
            "This content requires login",
            code=ErrorCode.LOGIN_REQUIRED,
            hint=hint,
            details=details,
        )

    return AllStrategiesFailed(
        message,
        attempts,
        proxy_could_help=proxy_could_help,
        hint=hint,
    )

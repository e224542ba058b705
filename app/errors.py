"""
Lookup error taxonomy. Every failure surfaces with a stable code and HTTP status; no partial results.
"""
from enum import Enum


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    INTENT_EXTRACTION_FAILED = "INTENT_EXTRACTION_FAILED"
    LOCATION_REQUIRED = "LOCATION_REQUIRED"
    CURRENT_LOCATION_REQUIRED = "CURRENT_LOCATION_REQUIRED"
    LOCATION_NOT_FOUND = "LOCATION_NOT_FOUND"
    LOCATION_TOO_BROAD = "LOCATION_TOO_BROAD"
    INVALID_SELECTION = "INVALID_SELECTION"
    LOCATION_NOT_SUPPORTED = "LOCATION_NOT_SUPPORTED"
    AI_RATE_LIMITED = "AI_RATE_LIMITED"
    AI_SERVICE_ERROR = "AI_SERVICE_ERROR"
    AI_AUTH_ERROR = "AI_AUTH_ERROR"
    GEOCODING_ERROR = "GEOCODING_ERROR"
    WEATHER_API_ERROR = "WEATHER_API_ERROR"
    LOOKUP_ERROR = "LOOKUP_ERROR"


STATUS_BY_CODE = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.CONFIGURATION_ERROR: 500,
    ErrorCode.INTENT_EXTRACTION_FAILED: 400,
    ErrorCode.LOCATION_REQUIRED: 400,
    ErrorCode.CURRENT_LOCATION_REQUIRED: 400,
    ErrorCode.LOCATION_NOT_FOUND: 404,
    ErrorCode.LOCATION_TOO_BROAD: 400,
    ErrorCode.INVALID_SELECTION: 400,
    ErrorCode.LOCATION_NOT_SUPPORTED: 404,
    ErrorCode.AI_RATE_LIMITED: 429,
    ErrorCode.AI_SERVICE_ERROR: 502,
    ErrorCode.AI_AUTH_ERROR: 500,
    ErrorCode.GEOCODING_ERROR: 500,
    ErrorCode.WEATHER_API_ERROR: 500,
    ErrorCode.LOOKUP_ERROR: 500,
}


class WeatherLookupError(RuntimeError):
    """Raised for user-facing lookup failures; rendered as {"error": {"code", "message"}}."""

    def __init__(self, code: ErrorCode, message: str, status_code: int | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code or STATUS_BY_CODE.get(code, 500)

    def to_body(self) -> dict:
        return {"error": {"code": self.code.value, "message": self.message}}

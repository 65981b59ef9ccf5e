# errors.py
from typing import List, Optional

from schemas import ValidationIssue


class AnalysisError(Exception):
    """Base for every failure the API turns into a JSON error body."""

    status_code = 500
    code = "ANALYSIS_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code


class InvalidImageError(AnalysisError):
    status_code = 400
    code = "INVALID_IMAGE"

    def __init__(self, issues: List[ValidationIssue]):
        self.issues = list(issues)
        message = ". ".join(i.message for i in self.issues) or "Invalid image"
        code = self.issues[0].code if self.issues else None
        super().__init__(message, code=code)


class EncodingError(AnalysisError):
    status_code = 400
    code = "ENCODING_ERROR"


class ConfigurationError(AnalysisError):
    status_code = 500
    code = "CONFIGURATION_ERROR"


class AuthError(AnalysisError):
    status_code = 401
    code = "AI_AUTH_FAILED"


class ExternalBadRequestError(AnalysisError):
    status_code = 400
    code = "AI_BAD_REQUEST"


class ServiceUnavailableError(AnalysisError):
    status_code = 503
    code = "AI_SERVICE_UNAVAILABLE"


class InvalidAnalysisError(AnalysisError):
    status_code = 500
    code = "INVALID_ANALYSIS"

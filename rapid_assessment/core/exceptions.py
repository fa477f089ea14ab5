"""
Domain errors raised by services and repositories.

Routes let these propagate; ``main.py`` renders them as
``{"detail": ..., "code": ..., "details": ...}`` with the error's status code.
"""

from typing import Any, Dict, Optional


class RapidAssessmentError(Exception):
    """Base exception for all service errors"""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "code": self.code,
            "details": self.details,
        }


class NotFoundError(RapidAssessmentError):
    status_code = 404

    def __init__(self, resource_type: str, resource_id: Optional[str] = None):
        super().__init__(
            f"{resource_type} not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"id": resource_id} if resource_id else None,
        )


class InvalidRequestError(RapidAssessmentError):
    status_code = 400

    def __init__(self, message: str, code: str = "INVALID_REQUEST", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class ConflictError(RapidAssessmentError):
    status_code = 409

    def __init__(self, message: str, code: str = "CONFLICT", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class ReportGenerationError(RapidAssessmentError):
    """Upstream model call failed; status_code mirrors the upstream cause"""

    def __init__(self, message: str, status_code: int = 500, code: str = "REPORT_GENERATION_FAILED"):
        super().__init__(message, code=code, status_code=status_code)

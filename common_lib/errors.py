"""검색 서비스 에러 계층(Error hierarchy of the search service).

Core code raises these; the HTTP layer turns them into
``{"error": {"code", "message", "details"?}}`` bodies with ``status_code``.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional


class AppException(Exception):
    """애플리케이션 기본 예외(Base application exception).

    Subclasses fix ``status_code``/``error_code`` as class attributes;
    ``log_level`` is the level the HTTP layer reports them at.
    """

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    log_level: int = logging.ERROR

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        *,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ) -> None:
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """응답 본문 변환(Render the error body)."""
        body: Dict[str, Any] = {"code": self.error_code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return {"error": body}


class ResourceNotFound(AppException):
    """단건 조회 대상 없음(A directly addressed record does not exist - 404)."""

    status_code = 404
    error_code = "RESOURCE_NOT_FOUND"
    log_level = logging.WARNING

    def __init__(self, resource_type: str, identifier: Any, details: Optional[Dict[str, Any]] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier
        super().__init__(
            f"{resource_type.capitalize()} '{identifier}' not found.",
            details or {"resource_type": resource_type, "identifier": str(identifier)},
        )


class InvalidInputError(AppException):
    """잘못된 검색 입력(Rejected search input - 400).

    Raised before any storage access: blank terms, empty filter maps, bad
    paging values, unknown sort fields or periods, unparseable scores and dates.
    """

    status_code = 400
    error_code = "INVALID_INPUT"
    log_level = logging.WARNING

    def __init__(self, field: str, reason: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid input for '{field}': {reason}", details or {"field": field, "reason": reason})


class ExternalServiceError(AppException):
    """저장소 장애(Storage or other collaborator failure - 503).

    The original driver error is chained as ``__cause__``.
    """

    status_code = 503
    error_code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, service_name: str, reason: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.service_name = service_name
        self.reason = reason
        super().__init__(
            f"{service_name} is currently unavailable: {reason}",
            details or {"service_name": service_name, "reason": reason},
        )

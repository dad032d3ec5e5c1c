"""Uniform return value for public service operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, Optional, TypeVar

from .time_utils import now_utc

T = TypeVar("T")

STATUS_OK = "ok"
STATUS_FAILED = "failed"
STATUS_SUPPRESSED = "suppressed"


@dataclass(frozen=True)
class Result(Generic[T]):
    status: str
    value: Optional[T] = None
    code: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=now_utc)

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    @property
    def suppressed(self) -> bool:
        return self.status == STATUS_SUPPRESSED

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(status=STATUS_OK, value=value)

    @classmethod
    def fail(cls, code: str, error: str) -> "Result[T]":
        return cls(status=STATUS_FAILED, code=code, error=error)

    @classmethod
    def suppress(cls, code: str, reason: str) -> "Result[T]":
        """Not an error: the operation ran and produced nothing."""
        return cls(status=STATUS_SUPPRESSED, code=code, error=reason)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "code": self.code,
            "error": self.error,
            "timestamp": self.timestamp.isoformat(),
        }

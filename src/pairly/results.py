"""Uniform service result shape.

Every service operation returns a ``ServiceResult`` instead of raising for expected
outcomes, so callers check ``success``/``error`` explicitly. ``to_dict()`` renders the
wire shape ``{"success": ..., <payload>..., "error": ..., "errorCode": ...}``.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ParamSpec

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

P = ParamSpec("P")


class ErrorCode(str, Enum):
    """Named failure reasons."""

    INVALID_INVITE_CODE = "InvalidInviteCode"
    SELF_PAIRING = "SelfPairing"
    PARTNER_ALREADY_PAIRED = "PartnerAlreadyPaired"
    CALLER_ALREADY_PAIRED = "CallerAlreadyPaired"
    USER_NOT_FOUND = "UserNotFound"
    COUPLE_NOT_FOUND = "CoupleNotFound"
    NOT_COUPLE_MEMBER = "NotCoupleMember"
    INSUFFICIENT_HEARTS = "InsufficientHearts"
    PET_NOT_FOUND = "PetNotFound"
    NOTE_NOT_FOUND = "NoteNotFound"
    DATE_NOT_FOUND = "DateNotFound"
    NOTIFICATION_NOT_FOUND = "NotificationNotFound"
    INVALID_FIELD = "InvalidField"
    CONCURRENT_UPDATE = "ConcurrentUpdate"
    BACKEND_ERROR = "BackendError"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS.get(self, 400)


_HTTP_STATUS = {
    ErrorCode.USER_NOT_FOUND: 404,
    ErrorCode.COUPLE_NOT_FOUND: 404,
    ErrorCode.PET_NOT_FOUND: 404,
    ErrorCode.NOTE_NOT_FOUND: 404,
    ErrorCode.DATE_NOT_FOUND: 404,
    ErrorCode.NOTIFICATION_NOT_FOUND: 404,
    ErrorCode.NOT_COUPLE_MEMBER: 403,
    ErrorCode.PARTNER_ALREADY_PAIRED: 409,
    ErrorCode.CALLER_ALREADY_PAIRED: 409,
    ErrorCode.CONCURRENT_UPDATE: 409,
    ErrorCode.INSUFFICIENT_HEARTS: 402,
    ErrorCode.INVALID_FIELD: 422,
    ErrorCode.BACKEND_ERROR: 503,
}


@dataclass
class ServiceResult:
    success: bool
    error: str | None = None
    code: ErrorCode | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, **data: Any) -> ServiceResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: ErrorCode, message: str, **data: Any) -> ServiceResult:
        return cls(success=False, error=message, code=code, data=data)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            **self.data,
            "error": self.error,
            "errorCode": self.code.value if self.code else None,
        }


def guarded(
    operation: str,
) -> Callable[[Callable[P, Awaitable[ServiceResult]]], Callable[P, Awaitable[ServiceResult]]]:
    """Turn backend failures into a ``BackendError`` result.

    The wrapped coroutine must take the ``AsyncSession`` as its first argument; the
    session is rolled back before the failure is returned.
    """

    def decorator(
        func: Callable[P, Awaitable[ServiceResult]],
    ) -> Callable[P, Awaitable[ServiceResult]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> ServiceResult:
            try:
                return await func(*args, **kwargs)
            except SQLAlchemyError as exc:
                db = args[0]
                if isinstance(db, AsyncSession):
                    await db.rollback()
                logger.warning("%s failed", operation, exc_info=True)
                return ServiceResult.fail(ErrorCode.BACKEND_ERROR, str(exc))

        return wrapper

    return decorator

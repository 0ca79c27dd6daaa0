"""Tests for the uniform service result shape."""

import pytest
from sqlalchemy.exc import OperationalError

from pairly.results import ErrorCode, ServiceResult, guarded


class TestServiceResult:
    def test_ok_to_dict(self):
        result = ServiceResult.ok(coupleId="c1")
        assert result.to_dict() == {"success": True, "coupleId": "c1", "error": None, "errorCode": None}

    def test_fail_to_dict(self):
        result = ServiceResult.fail(ErrorCode.SELF_PAIRING, "Cannot connect with yourself", coupleId=None)
        assert result.to_dict() == {
            "success": False,
            "coupleId": None,
            "error": "Cannot connect with yourself",
            "errorCode": "SelfPairing",
        }

    def test_item_access(self):
        result = ServiceResult.ok(count=3)
        assert result["count"] == 3
        assert result.get("missing", 0) == 0

    def test_http_status_mapping(self):
        assert ErrorCode.USER_NOT_FOUND.http_status == 404
        assert ErrorCode.PARTNER_ALREADY_PAIRED.http_status == 409
        assert ErrorCode.INSUFFICIENT_HEARTS.http_status == 402
        assert ErrorCode.INVALID_INVITE_CODE.http_status == 400


class TestGuarded:
    @pytest.mark.asyncio
    async def test_backend_failure_becomes_result(self):
        @guarded("explode")
        async def explode(db: object) -> ServiceResult:
            raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

        result = await explode(None)
        assert not result.success
        assert result.code == ErrorCode.BACKEND_ERROR

    @pytest.mark.asyncio
    async def test_other_exceptions_propagate(self):
        @guarded("bug")
        async def bug(db: object) -> ServiceResult:
            raise ValueError("boom")

        with pytest.raises(ValueError):
            await bug(None)

"""Tests for the error model."""

import requests

from adlstore.core.model import (
    AccessDeniedError,
    CallResult,
    PathExistsError,
    PathNotFoundError,
    ProtocolError,
    StoreError,
    TransportError,
)
from adlstore.core.util import error_asdict


class TestStoreError:
    """Mapping failed results to exceptions."""

    def test_transport(self):
        cause = requests.ConnectionError("reset")
        exc = StoreError.from_result(CallResult(error=cause, num_retries=2), "boom")
        assert isinstance(exc, TransportError)
        assert exc.__cause__ is cause
        assert exc.transient
        assert exc.num_retries == 2

    def test_by_remote_name(self):
        result = CallResult(status_code=400, remote_exception_name="FileAlreadyExistsException",
                            remote_exception_message="exists")
        exc = StoreError.from_result(result, "boom")
        assert isinstance(exc, PathExistsError)
        assert isinstance(exc, FileExistsError)
        assert not exc.transient

    def test_by_status(self):
        assert isinstance(StoreError.from_result(CallResult(status_code=404), "x"), PathNotFoundError)
        assert isinstance(StoreError.from_result(CallResult(status_code=403), "x"), PermissionError)
        assert isinstance(StoreError.from_result(CallResult(status_code=403), "x"), AccessDeniedError)
        other = StoreError.from_result(CallResult(status_code=500), "x")
        assert type(other) is ProtocolError
        assert other.transient

    def test_message_details(self):
        result = CallResult(status_code=404, request_id="srv-1", remote_exception_name="FileNotFoundException",
                            remote_exception_message="/a", message="Error getting info for file /a")
        text = str(StoreError.from_result(result, "ignored"))
        assert text.startswith("Error getting info for file /a")
        assert "HTTP404" in text
        assert "FileNotFoundException: /a" in text
        assert "srv-1" in text

    def test_error_asdict(self):
        exc = StoreError.from_result(CallResult(status_code=404), "missing")
        payload = error_asdict(exc)
        assert payload["success"] is False
        assert payload["type"] == "PathNotFoundError"
        assert payload["status_code"] == 404

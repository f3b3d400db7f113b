"""Unit tests for the error taxonomy and HTTP mapping."""

import pytest
from fastapi import HTTPException

from society_portal.errors import (
    ConcurrentUpdateError,
    GatewayError,
    InvalidScheduleError,
    NotFoundError,
    PersistenceError,
    SignatureVerificationError,
    ValidationError,
    error_response,
    raise_app_error,
)


@pytest.mark.parametrize(
    "error,code,status",
    [
        (ValidationError(), "validation_error", 400),
        (InvalidScheduleError(), "invalid_schedule", 400),
        (NotFoundError(), "not_found", 404),
        (GatewayError(), "gateway_error", 502),
        (SignatureVerificationError(), "signature_mismatch", 400),
        (PersistenceError(), "persistence_error", 500),
        (ConcurrentUpdateError(), "concurrent_update", 409),
    ],
)
def test_error_codes(error, code, status):
    assert error.code == code
    assert error.http_status == status


def test_subclass_relationships():
    assert isinstance(InvalidScheduleError(), ValidationError)
    assert isinstance(ConcurrentUpdateError(), PersistenceError)


def test_error_response_shape():
    body = error_response(NotFoundError("Resident 3 not found"))
    assert body == {"error": {"code": "not_found", "message": "Resident 3 not found"}}


def test_raise_app_error_chains_http_exception():
    error = ValidationError("Fee schedule must contain at least one charge")
    with pytest.raises(HTTPException) as exc_info:
        raise_app_error(error)

    assert exc_info.value.status_code == 400
    assert exc_info.value.detail["error"]["code"] == "validation_error"
    assert exc_info.value.__cause__ is error

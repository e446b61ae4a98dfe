"""Tests for the scrub error taxonomy."""

import pytest

from adas_scrub.errors import (
    InputError,
    OracleUnavailable,
    PersistenceError,
    ScrubError,
    ScrubErrorCode,
)


class TestScrubErrors:
    @pytest.mark.parametrize(
        "cls,code",
        [
            (InputError, ScrubErrorCode.EMPTY_ESTIMATE),
            (OracleUnavailable, ScrubErrorCode.ASSIST_FAILED),
            (PersistenceError, ScrubErrorCode.STORE_WRITE_FAILED),
        ],
    )
    def test_default_codes(self, cls, code):
        error = cls("boom")
        assert error.code == code
        assert isinstance(error, ScrubError)

    def test_explicit_code(self):
        error = OracleUnavailable("NHTSA timeout", code=ScrubErrorCode.VIN_DECODE_FAILED)
        assert error.code == ScrubErrorCode.VIN_DECODE_FAILED
        assert str(error) == "NHTSA timeout"

    def test_to_dict(self):
        error = InputError("Estimate text is empty")
        assert error.to_dict() == {"error": "Estimate text is empty", "code": "EMPTY_ESTIMATE"}

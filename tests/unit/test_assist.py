"""Tests for assist response cleaning and the OpenAI-backed estimate assist."""

import json
import math
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from adas_scrub.assist.extractor import (
    AssistPort,
    OpenAIEstimateAssist,
    _message_text,
    build_operation_hint_text,
    clean_line_number,
    clean_year,
    normalize_confidence,
    normalize_document_type,
    normalize_operations,
    parse_assist_payload,
)
from adas_scrub.config import AssistSettings
from adas_scrub.errors import OracleUnavailable, ScrubErrorCode
from adas_scrub.schemas.assist import AssistOperation, DocumentType

PAYLOAD = {
    "documentType": "Calibration_Report",
    "confidence": 1.7,
    "vehicle": {"vin": " 4T1B11HK5NU123456 ", "year": "2022", "make": "Toyota", "model": "  Camry   SE "},
    "metadata": {"roNumber": "RO-1001", "shopName": 42},
    "operations": [
        {"lineNumber": 6, "opCode": "overhaul", "component": "Front Bumper Cover"},
        {"lineNumber": "2", "opCode": "R & I", "description": "Windshield"},
        {"lineNumber": 1000, "opCode": "Repl", "rawText": "Grille assy"},
        {"lineNumber": 6, "opCode": "O/H", "component": "front bumper cover"},
        {"opCode": "Paint", "component": "Hood"},
        {"opCode": "Repl"},
        "junk",
    ],
}


def _client_returning(content):
    client = MagicMock()
    client.chat.completions.create.return_value = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )
    return client


class TestFieldCleaning:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (2022, 2022),
            ("2022", 2022),
            (2022.9, 2022),
            (1979, None),
            (2036, None),
            ("22", None),
            (True, None),
            (math.nan, None),
            (None, None),
        ],
    )
    def test_clean_year(self, value, expected):
        assert clean_year(value) == expected

    @pytest.mark.parametrize(
        "value,expected", [(6, 6), ("12", 12), (0, None), (1000, None), ("1000", None)]
    )
    def test_clean_line_number(self, value, expected):
        assert clean_line_number(value) == expected

    @pytest.mark.parametrize(
        "value,expected", [(0.42, 0.42), (-1, 0.0), ("0.9", 0.0), (True, 0.0), (math.inf, 0.0)]
    )
    def test_normalize_confidence(self, value, expected):
        assert normalize_confidence(value) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("estimate", DocumentType.ESTIMATE),
            ("REPORT", DocumentType.ADAS_REPORT),
            ("adas_report", DocumentType.ADAS_REPORT),
            ("invoice", DocumentType.UNKNOWN),
            (None, DocumentType.UNKNOWN),
        ],
    )
    def test_normalize_document_type(self, value, expected):
        assert normalize_document_type(value) == expected


class TestParseAssistPayload:
    def test_untrusted_fields_cleaned(self):
        extraction = parse_assist_payload(PAYLOAD, "gpt-test")

        assert extraction.model == "gpt-test"
        assert extraction.document_type == DocumentType.ADAS_REPORT
        assert extraction.confidence == 1.0
        assert extraction.vehicle.vin == "4T1B11HK5NU123456"
        assert extraction.vehicle.year == 2022
        assert extraction.vehicle.model == "Camry SE"
        assert extraction.metadata.ro_number == "RO-1001"
        assert extraction.metadata.shop_name is None

    def test_operations_allow_listed_and_deduplicated(self):
        operations = parse_assist_payload(PAYLOAD, "gpt-test").operations

        assert [(op.line_number, op.op_code, op.component) for op in operations] == [
            (6, "O/H", "Front Bumper Cover"),
            (2, "R&I", "Windshield"),
            (None, "Repl", "Grille assy"),
        ]
        assert operations[2].raw_text == "Grille assy"

    def test_missing_sections(self):
        extraction = parse_assist_payload({"vehicle": "Camry", "operations": {}}, "gpt-test")
        assert extraction.document_type == DocumentType.UNKNOWN
        assert extraction.vehicle.make is None
        assert extraction.operations == []

    def test_max_operations(self):
        entries = [{"opCode": "Repl", "component": f"Clip {i}"} for i in range(5)]
        assert len(normalize_operations(entries, max_operations=2)) == 2


class TestOperationHintText:
    def test_missing_line_numbers_use_position(self):
        operations = [
            AssistOperation(line_number=6, op_code="Repl", component="Front Bumper Cover"),
            AssistOperation(op_code="Aim", component="Front Radar Sensor"),
        ]
        assert build_operation_hint_text(operations) == (
            "6 Repl Front Bumper Cover\n2 Aim Front Radar Sensor"
        )

    def test_empty(self):
        assert build_operation_hint_text([]) == ""


class TestMessageText:
    def test_string_content(self):
        assert _message_text('{"a": 1}') == '{"a": 1}'

    def test_content_parts(self):
        parts = ["a", {"text": "b"}, SimpleNamespace(text="c"), {"type": "image"}]
        assert _message_text(parts) == "a\nb\nc"

    def test_unknown_content(self):
        assert _message_text(None) == ""


class TestOpenAIEstimateAssist:
    def test_is_an_assist_port(self):
        assert isinstance(OpenAIEstimateAssist(client=MagicMock()), AssistPort)

    def test_request_shape(self):
        client = _client_returning(json.dumps({"documentType": "estimate", "confidence": 0.7}))
        assist = OpenAIEstimateAssist(
            AssistSettings(model="test-model", timeout_seconds=12), client=client
        )

        extraction = assist.extract("6 O/H Front Bumper Cover", "claim-55.pdf")

        assert extraction.document_type == DocumentType.ESTIMATE
        assert extraction.model == "test-model"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["temperature"] == 0
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["timeout"] == 12
        user_content = json.loads(kwargs["messages"][1]["content"])
        assert user_content == {
            "fileName": "claim-55.pdf",
            "estimateText": "6 O/H Front Bumper Cover",
        }

    def test_prompt_truncated(self):
        client = _client_returning("{}")
        assist = OpenAIEstimateAssist(AssistSettings(max_prompt_chars=1000), client=client)
        assist.extract("x" * 1500)

        kwargs = client.chat.completions.create.call_args.kwargs
        user_content = json.loads(kwargs["messages"][1]["content"])
        assert len(user_content["estimateText"]) == 1000
        assert user_content["fileName"] == "estimate.pdf"

    @pytest.mark.parametrize("failure", ["call", "json"])
    def test_failures_raise_oracle_unavailable(self, failure):
        if failure == "call":
            client = MagicMock()
            client.chat.completions.create.side_effect = RuntimeError("rate limited")
        else:
            client = _client_returning("not json")

        with pytest.raises(OracleUnavailable) as exc_info:
            OpenAIEstimateAssist(client=client).extract("6 O/H Front Bumper Cover")
        assert exc_info.value.code == ScrubErrorCode.ASSIST_FAILED

    def test_non_object_response_ignored(self):
        assist = OpenAIEstimateAssist(client=_client_returning("[]"))
        assert assist.extract("6 O/H Front Bumper Cover") is None

    def test_blank_text_not_sent(self):
        client = MagicMock()
        assert OpenAIEstimateAssist(client=client).extract("   ") is None
        client.chat.completions.create.assert_not_called()

    def test_no_credentials(self):
        assist = OpenAIEstimateAssist()
        assert assist.is_available() is False
        assert assist.extract("6 O/H Front Bumper Cover") is None

    def test_credentials_from_environment(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert OpenAIEstimateAssist().is_available() is True

    def test_model_from_environment(self, monkeypatch):
        monkeypatch.setenv("ADAS_SCRUB_ASSIST_MODEL", "estimate-deploy")
        assert OpenAIEstimateAssist(client=MagicMock()).model == "estimate-deploy"

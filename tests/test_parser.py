"""
Tests for the Submission Parser
"""

import json

import pytest

from formsheet_core.errors import ParseError
from formsheet_core.parser import (
    SubmissionRequest,
    parse_submission,
    request_from_fields,
    utc_now_iso,
)


class TestContentTypes:
    """Body decoding by content type."""

    def test_form_urlencoded(self, clock):
        request = SubmissionRequest(
            content_type="application/x-www-form-urlencoded",
            body="nom=Dupont&prenom=Jean&universite=ESPRIT%20Tunis&email=jean%40example.com".encode(),
        )
        record = parse_submission(request, now=clock)
        assert record["nom"] == "Dupont"
        assert record["prenom"] == "Jean"
        assert record["universite"] == "ESPRIT Tunis"
        assert record["email"] == "jean@example.com"

    def test_form_with_charset_parameter(self, clock):
        request = SubmissionRequest(
            content_type="application/x-www-form-urlencoded; charset=UTF-8",
            body="nom=B%C3%A9ji".encode(),
        )
        assert parse_submission(request, now=clock)["nom"] == "Béji"

    def test_json_object(self, clock, sample_fields):
        request = SubmissionRequest(
            content_type="application/json",
            body=json.dumps(sample_fields).encode(),
        )
        record = parse_submission(request, now=clock)
        for key, value in sample_fields.items():
            assert record[key] == value

    def test_json_keeps_extra_keys(self, clock):
        request = SubmissionRequest(
            content_type="application/json",
            body=b'{"nom": "Dupont", "promo": "2026"}',
        )
        assert parse_submission(request, now=clock)["promo"] == "2026"

    def test_query_params_fallback_without_body(self, clock):
        request = SubmissionRequest(params={"nom": "Test", "prenom": "User"})
        record = parse_submission(request, now=clock)
        assert record["nom"] == "Test"
        assert record["prenom"] == "User"

    def test_unknown_content_type_yields_defaults_only(self, clock):
        request = SubmissionRequest(content_type="text/plain", body=b"nom=Dupont")
        record = parse_submission(request, now=clock)
        assert record == {"timestamp": "2025-10-19T08:30:15.000Z"}

    def test_empty_request(self, clock):
        record = parse_submission(SubmissionRequest(), now=clock)
        assert list(record) == ["timestamp"]


class TestTimestamp:
    """Default timestamp handling."""

    def test_server_timestamp_added(self, clock):
        record = parse_submission(SubmissionRequest(params={"nom": "X"}), now=clock)
        assert record["timestamp"] == "2025-10-19T08:30:15.000Z"

    def test_supplied_timestamp_kept(self, clock):
        request = SubmissionRequest(
            content_type="application/json",
            body=b'{"timestamp": "2025-01-02T03:04:05.000Z"}',
        )
        assert parse_submission(request, now=clock)["timestamp"] == "2025-01-02T03:04:05.000Z"

    def test_blank_timestamp_replaced(self, clock):
        request = request_from_fields({"timestamp": "", "nom": "X"})
        assert parse_submission(request, now=clock)["timestamp"] == "2025-10-19T08:30:15.000Z"

    def test_utc_now_iso_format(self):
        stamp = utc_now_iso()
        assert stamp.endswith("Z")
        assert "T" in stamp


class TestMalformedBodies:
    """Bodies that must be rejected."""

    def test_invalid_json(self):
        request = SubmissionRequest(content_type="application/json", body=b"{nom: Dupont")
        with pytest.raises(ParseError) as exc:
            parse_submission(request)
        assert exc.value.message == "Impossible de parser les données du formulaire"

    def test_json_array_rejected(self):
        request = SubmissionRequest(content_type="application/json", body=b"[1, 2, 3]")
        with pytest.raises(ParseError):
            parse_submission(request)

    def test_undecodable_bytes(self):
        request = SubmissionRequest(content_type="application/json", body=b"\xff\xfe{")
        with pytest.raises(ParseError):
            parse_submission(request)

from __future__ import annotations

import json
from datetime import date

from harvester.domain.models import IngestionBatch, LogLevel, NormalizedDocument
from harvester.processing.extractor import (
    PLACEHOLDER_LOG_MESSAGE,
    decode_document,
    deduplicate_documents,
    extract_valid_data,
)

ROUND_TRIP = json.dumps(
    {
        "documents": [
            {"url_doc": "https://ex.com/a.pdf"},
            {"url_doc": "https://ex.com/a.pdf", "document_name": "dup"},
            {"url_doc": "not-a-url"},
            {"document_name": "no url"},
        ],
        "logs": [],
        "obstacles-globaux": ["x"],
        "recommandations": "y",
    }
)


def _fixed_now() -> str:
    return "2024-05-01T00:00:00Z"


def test_round_trip_scenario_extracts_single_document() -> None:
    batch = extract_valid_data(ROUND_TRIP)

    assert len(batch.documents) == 1
    assert batch.documents[0].url_doc == "https://ex.com/a.pdf"
    assert batch.documents[0].document_name == ""
    assert batch.obstacles_global == ("x",)
    assert batch.recommendations == "y"


def test_entries_without_parseable_url_are_excluded() -> None:
    bad = [
        {"document_name": "complete but no url", "filename": "a.pdf", "annee": 2020},
        {"url_doc": "", "document_name": "blank"},
        {"url_doc": 123},
        {"url_doc": "relative/path.pdf"},
        "https://ex.com/string-entry.pdf",
    ]
    batch = extract_valid_data(json.dumps({"documents": bad + [{"url_doc": "https://ex.com/ok.pdf"}]}))
    assert [d.url_doc for d in batch.documents] == ["https://ex.com/ok.pdf"]


def test_optional_fields_get_defaults() -> None:
    batch = extract_valid_data(json.dumps({"documents": [{"url_doc": "  https://ex.com/a.pdf  "}]}))
    doc = batch.documents[0]

    assert doc.url_doc == "https://ex.com/a.pdf"
    assert doc.filename == ""
    assert doc.resume == ""
    assert doc.pattern_verified is False
    assert doc.annee == date.today().year


def test_loose_values_are_coerced() -> None:
    raw = {
        "url_doc": "https://ex.com/a.pdf",
        "annee": "2021",
        "pattern_verified": "oui",
        "issue_number": 7,
        "auteurs": ["A. Author", "", "B. Author"],
    }
    doc = decode_document(raw).value
    assert doc.annee == 2021
    assert doc.pattern_verified is True
    assert doc.issue_number == "7"
    assert doc.auteurs == "A. Author; B. Author"


def test_decode_document_reports_why_it_failed() -> None:
    result = decode_document({"url_doc": "not-a-url"}, 4)
    assert result.ok is False
    assert result.findings[0].field == "url_doc"
    assert result.findings[0].document_index == 4


def test_duplicates_keep_first_occurrence() -> None:
    payload = {
        "documents": [
            {"url_doc": "https://ex.com/a.pdf", "document_name": "first"},
            {"url_doc": "https://ex.com/b.pdf"},
            {"url_doc": "https://ex.com/a.pdf ", "document_name": "second"},
        ]
    }
    batch = extract_valid_data(json.dumps(payload))
    assert [d.url_doc for d in batch.documents] == ["https://ex.com/a.pdf", "https://ex.com/b.pdf"]
    assert batch.documents[0].document_name == "first"


def test_deduplicate_documents_preserves_order() -> None:
    docs = [NormalizedDocument(url_doc=u) for u in ("c", "a", "c", "b", "a")]
    assert [d.url_doc for d in deduplicate_documents(docs)] == ["c", "a", "b"]


def test_logs_are_normalized() -> None:
    payload = {
        "documents": [],
        "logs": [
            {"level": "error", "message": "Timeout", "timestamp": "2024-01-15T10:30:00Z", "details": {"page": 3}},
            {"level": "verbose"},
            {"details": "not a mapping"},
        ],
    }
    batch = extract_valid_data(json.dumps(payload), now=_fixed_now)

    assert [log.level for log in batch.logs] == [LogLevel.ERROR, LogLevel.INFO, LogLevel.INFO]
    assert batch.logs[0].details == {"page": 3}
    assert batch.logs[1].message == PLACEHOLDER_LOG_MESSAGE
    assert batch.logs[1].timestamp == "2024-05-01T00:00:00Z"
    assert batch.logs[2].details == {}


def test_site_fields_are_normalized() -> None:
    blank = extract_valid_data(json.dumps({"documents": [], "obstacles-globaux": [" a ", "", 3], "recommandations": "  "}))
    assert blank.obstacles_global == ("a",)
    assert blank.recommendations is None

    english = extract_valid_data(json.dumps({"documents": [], "recommendations": " Use the sitemap "}))
    assert english.recommendations == "Use the sitemap"


def test_extraction_is_idempotent() -> None:
    payload = json.dumps({"documents": [{"url_doc": "https://ex.com/a.pdf"}], "logs": [{"message": "m"}]})
    assert extract_valid_data(payload, now=_fixed_now) == extract_valid_data(payload, now=_fixed_now)


def test_extraction_never_raises() -> None:
    for text in ("", "{broken", "null", "[]", '"text"', '{"documents": "nope", "logs": 5}'):
        assert extract_valid_data(text) == IngestionBatch.empty()


def test_url_with_spaces_is_imported() -> None:
    payload = json.dumps({"documents": [{"url_doc": "https://ex.com/Rapport annuel 2024.pdf"}], "logs": []})
    batch = extract_valid_data(payload, now=_fixed_now)
    assert [d.url_doc for d in batch.documents] == ["https://ex.com/Rapport annuel 2024.pdf"]

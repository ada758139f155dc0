from __future__ import annotations

from datetime import date

from harvester.domain.models import Severity
from harvester.processing.field_validator import has_error, validate_document, validate_log


def _fields(findings, severity: Severity) -> list[str]:
    return [f.field for f in findings if f.severity is severity]


def test_complete_document_has_no_findings() -> None:
    doc = {
        "url_doc": "https://ex.com/a.pdf",
        "document_name": "Annual report",
        "filename": "a.pdf",
        "date_edition": "2024-01-15",
        "annee": 2024,
    }
    assert validate_document(doc, 0) == []


def test_non_object_document_yields_single_error() -> None:
    findings = validate_document(["https://ex.com/a.pdf"], 3)
    assert len(findings) == 1
    assert findings[0].is_error
    assert findings[0].field == "document"
    assert findings[0].document_index == 3


def test_url_doc_checks_stop_at_first_failure() -> None:
    cases = {
        "missing": {},
        "type": {"url_doc": 42},
        "blank": {"url_doc": "   "},
        "unparseable": {"url_doc": "not-a-url"},
    }
    for raw in cases.values():
        errors = [f for f in validate_document(raw, 0) if f.is_error]
        assert len(errors) == 1
        assert errors[0].field == "url_doc"

    assert "must be a string" in validate_document(cases["type"], 0)[0].message
    assert "cannot be empty" in validate_document(cases["blank"], 0)[0].message
    assert "invalid URL" in validate_document(cases["unparseable"], 0)[0].message


def test_non_string_url_doc_is_a_type_error() -> None:
    for value in ([], {}, 0, False):
        findings = validate_document({"url_doc": value}, 0)
        assert "must be a string" in findings[0].message
    assert "is missing" in validate_document({"url_doc": None}, 0)[0].message
    assert "is missing" in validate_document({"url_doc": ""}, 0)[0].message


def test_spaces_in_url_path_are_accepted() -> None:
    findings = validate_document({"url_doc": "https://ex.com/Rapport annuel 2024.pdf"}, 0)
    assert not has_error(findings)
    host_findings = validate_document({"url_doc": "https://ex .com/a.pdf"}, 0)
    assert has_error(host_findings)


def test_missing_recommended_fields_are_warnings() -> None:
    findings = validate_document({"url_doc": "https://ex.com/a.pdf"}, 0)
    assert not has_error(findings)
    assert set(_fields(findings, Severity.WARNING)) == {"document_name", "filename"}
    assert all(f.recommendation for f in findings)


def test_implausible_year_is_a_warning() -> None:
    base = {"url_doc": "https://ex.com/a.pdf", "document_name": "x", "filename": "x.pdf"}
    assert _fields(validate_document({**base, "annee": 1850}, 0), Severity.WARNING) == ["annee"]
    assert _fields(validate_document({**base, "annee": date.today().year + 2}, 0), Severity.WARNING) == ["annee"]
    assert _fields(validate_document({**base, "annee": "soon"}, 0), Severity.WARNING) == ["annee"]
    assert validate_document({**base, "annee": date.today().year + 1}, 0) == []


def test_bad_date_edition_is_a_warning() -> None:
    raw = {"url_doc": "https://ex.com/a.pdf", "document_name": "x", "filename": "x.pdf", "date_edition": "yesterday"}
    assert _fields(validate_document(raw, 0), Severity.WARNING) == ["date_edition"]


def test_log_defaults_are_warnings_only() -> None:
    findings = validate_log({}, 1)
    assert not has_error(findings)
    assert set(_fields(findings, Severity.WARNING)) == {"level", "message"}
    assert all(f.log_index == 1 for f in findings)
    assert findings[0].message.startswith("Log 2:")


def test_log_unknown_level_and_bad_fields() -> None:
    findings = validate_log(
        {"level": "debug", "message": 12, "timestamp": "later", "url": "nope"},
        0,
    )
    assert set(_fields(findings, Severity.WARNING)) == {"level", "message", "timestamp", "url"}


def test_log_with_unhashable_level_does_not_raise() -> None:
    findings = validate_log({"level": ["error"], "message": "m"}, 0)
    assert _fields(findings, Severity.WARNING) == ["level"]


def test_non_object_log_yields_single_error() -> None:
    findings = validate_log("boom", 0)
    assert len(findings) == 1
    assert findings[0].is_error
    assert findings[0].field == "log"

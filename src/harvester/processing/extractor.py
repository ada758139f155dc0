"""Extraction of a clean ``IngestionBatch`` from an import envelope.

Works independently of the batch validator: it re-decodes every entry,
drops the ones whose ``url_doc`` does not decode, deduplicates on the
trimmed URL (first occurrence wins) and defaults every optional field.
``extract_valid_data`` never raises.
"""

from __future__ import annotations

import json
from datetime import date
from typing import Any, Callable, Iterable, Mapping, Optional

from ..domain.models import DecodeResult, IngestionBatch, LogLevel, NormalizedDocument, NormalizedLog
from ..observability.logger import get_logger
from ..utils.time import utc_now_iso
from ..utils.validators import parse_year
from .field_validator import LOG_LEVELS, check_url_doc, validate_document, validate_log

logger = get_logger(__name__)

PLACEHOLDER_LOG_MESSAGE = "Imported log without message"
OBSTACLES_KEY = "obstacles-globaux"
RECOMMENDATIONS_KEYS = ("recommandations", "recommendations")

_TEXT_FIELDS = (
    "document_name",
    "filename",
    "date_edition",
    "auteurs",
    "langue",
    "resume",
    "statut",
    "issue_number",
    "format",
    "type_document",
    "contient_texte",
    "notes",
    "obstacles",
    "source_page",
)

_TRUE_STRINGS = frozenset({"true", "yes", "oui", "1", "y", "vrai"})


def _text(value: Any) -> str:
    """Coerce a loosely-typed JSON value to text; empty/None become ''."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value if value.strip() else ""
    if isinstance(value, bool):
        return "true" if value else ""
    if isinstance(value, (int, float)):
        return str(value) if value else ""
    if isinstance(value, (list, tuple)):
        return "; ".join(t for t in (_text(v) for v in value) if t)
    if isinstance(value, Mapping):
        return json.dumps(value, ensure_ascii=False, default=str) if value else ""
    return str(value)


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def decode_document(raw: Any, index: int = 0) -> DecodeResult[NormalizedDocument]:
    if not isinstance(raw, Mapping):
        return DecodeResult.failure(tuple(validate_document(raw, index)))

    url_finding = check_url_doc(raw, index)
    if url_finding is not None:
        return DecodeResult.failure((url_finding,))

    fields = {name: _text(raw.get(name)) for name in _TEXT_FIELDS}
    doc = NormalizedDocument(
        url_doc=raw["url_doc"].strip(),
        annee=parse_year(raw.get("annee")) or date.today().year,
        pattern_verified=_flag(raw.get("pattern_verified")),
        **fields,
    )
    return DecodeResult.success(doc)


def decode_log(raw: Any, index: int = 0, *, now: Callable[[], str] = utc_now_iso) -> DecodeResult[NormalizedLog]:
    if not isinstance(raw, Mapping):
        return DecodeResult.failure(tuple(validate_log(raw, index)))

    level = raw.get("level")
    details = raw.get("details")
    timestamp = raw.get("timestamp")
    log = NormalizedLog(
        level=LogLevel(level) if isinstance(level, str) and level in LOG_LEVELS else LogLevel.INFO,
        message=_text(raw.get("message")) or PLACEHOLDER_LOG_MESSAGE,
        timestamp=timestamp.strip() if isinstance(timestamp, str) and timestamp.strip() else now(),
        url=_text(raw.get("url")).strip(),
        details=dict(details) if isinstance(details, Mapping) else {},
    )
    return DecodeResult.success(log)


def deduplicate_documents(documents: Iterable[NormalizedDocument]) -> list[NormalizedDocument]:
    """Keep the first document per trimmed ``url_doc``, preserving order."""
    seen: set[str] = set()
    kept: list[NormalizedDocument] = []
    for doc in documents:
        key = doc.url_doc.strip()
        if key in seen:
            logger.warning("duplicate_document_discarded", url_doc=key)
            continue
        seen.add(key)
        kept.append(doc)
    return kept


def normalize_obstacles(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(o.strip() for o in value if isinstance(o, str) and o.strip())


def normalize_recommendations(data: Mapping[str, Any]) -> Optional[str]:
    for key in RECOMMENDATIONS_KEYS:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def build_batch(data: Any, *, now: Callable[[], str] = utc_now_iso) -> IngestionBatch:
    """Build a batch from an already-parsed envelope.

    ``now`` stamps logs that carry no timestamp.
    """
    if not isinstance(data, Mapping):
        return IngestionBatch.empty()

    raw_documents = data.get("documents")
    decoded: list[NormalizedDocument] = []
    if isinstance(raw_documents, list):
        for index, raw in enumerate(raw_documents):
            result = decode_document(raw, index)
            if result.ok:
                decoded.append(result.value)
            else:
                logger.debug("document_excluded", document_index=index, reasons=[f.message for f in result.findings])

    raw_logs = data.get("logs")
    logs: list[NormalizedLog] = []
    if isinstance(raw_logs, list):
        for index, raw in enumerate(raw_logs):
            result = decode_log(raw, index, now=now)
            if result.ok:
                logs.append(result.value)

    return IngestionBatch(
        documents=tuple(deduplicate_documents(decoded)),
        logs=tuple(logs),
        obstacles_global=normalize_obstacles(data.get(OBSTACLES_KEY)),
        recommendations=normalize_recommendations(data),
    )


def extract_valid_data(json_content: str, *, now: Callable[[], str] = utc_now_iso) -> IngestionBatch:
    """Parse and normalise an import envelope; any failure yields an empty batch."""
    try:
        return build_batch(json.loads(json_content), now=now)
    except Exception as e:
        logger.warning("extract_valid_data_failed", error=str(e))
        return IngestionBatch.empty()

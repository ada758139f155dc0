#!/usr/bin/env python3
"""Validate an import JSON file and print the report.

Exit code 0 when the file can be imported, 1 when it has blocking errors,
2 when the file cannot be read.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from harvester.domain.models import DuplicatePolicy
from harvester.processing.batch_validator import generate_validation_report, validate_import_json


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Validate a harvest import JSON file.")
    parser.add_argument("path", type=Path, help="JSON file to validate")
    parser.add_argument(
        "--duplicates",
        choices=[p.value for p in DuplicatePolicy],
        default=DuplicatePolicy.REJECT.value,
        help="How duplicate url_doc values are reported (default: reject)",
    )
    args = parser.parse_args(argv)

    try:
        content = args.path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f"Cannot read {args.path}: {e}", file=sys.stderr)
        return 2

    report = validate_import_json(content, duplicate_policy=DuplicatePolicy(args.duplicates))
    print(generate_validation_report(report))
    return 0 if report.is_valid else 1


if __name__ == "__main__":
    sys.exit(main())

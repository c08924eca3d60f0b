#!/usr/bin/env python3
"""
Validate a patterns.json rule file before merging it.

Usage:
    python src/pattern_validator.py [path/to/patterns.json]
"""

import json
import re
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from constants import SEVERITIES
from patterns import compile_pattern, default_patterns_path

REQUIRED_FIELDS = ("id", "category", "priority", "pattern", "flags", "rootCause", "suggestion", "severity", "tags")
VALID_FLAGS_RE = re.compile(r"^[gimsuy]*$")


@dataclass
class ValidationReport:
    passed: int = 0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def fail(self, pattern_id: str, message: str) -> None:
        self.errors.append(f"FAIL [{pattern_id}] {message}")

    def warn(self, pattern_id: Optional[str], message: str) -> None:
        prefix = f"WARN [{pattern_id}]" if pattern_id else "WARN:"
        self.warnings.append(f"{prefix} {message}")


def _check_structure(entries: List[Dict[str, Any]], report: ValidationReport) -> None:
    ids = set()
    for entry in entries:
        pattern_id = entry.get("id") or "UNKNOWN"
        structure_ok = True

        for name in REQUIRED_FIELDS:
            value = entry.get(name)
            # "flags" must be present but "" means no flags
            if value is None or (value == "" and name != "flags"):
                report.fail(pattern_id, f"Missing required field: '{name}'")
                structure_ok = False

        if pattern_id in ids:
            report.fail(pattern_id, "Duplicate ID found")
            structure_ok = False
        ids.add(pattern_id)

        if entry.get("severity") not in SEVERITIES:
            report.fail(pattern_id, f"Invalid severity: '{entry.get('severity')}'. Must be critical, warning or info.")
            structure_ok = False

        if not VALID_FLAGS_RE.match(str(entry.get("flags", ""))):
            report.fail(pattern_id, f"Invalid regex flags: '{entry.get('flags')}'")
            structure_ok = False

        priority = entry.get("priority")
        if isinstance(priority, (int, float)) and not 1 <= priority <= 100:
            report.warn(pattern_id, f"Priority {priority} is outside recommended range 1-100")

        tests = entry.get("tests") or {}
        if not tests.get("shouldMatch"):
            report.warn(pattern_id, "No test cases defined — add tests.shouldMatch and tests.shouldNotMatch")

        if structure_ok:
            report.passed += 1


def _compiled(entries: List[Dict[str, Any]], report: ValidationReport) -> Dict[str, Any]:
    compiled = {}
    for entry in entries:
        pattern_id = entry.get("id") or "UNKNOWN"
        try:
            compiled[pattern_id] = compile_pattern(entry.get("pattern") or "", entry.get("flags") or "")
        except re.error as e:
            report.fail(pattern_id, f"Invalid regex: {e}")
    return compiled


def _check_test_cases(entries: List[Dict[str, Any]], compiled: Dict[str, Any], report: ValidationReport) -> None:
    for entry in entries:
        regex = compiled.get(entry.get("id") or "UNKNOWN")
        tests = entry.get("tests") or {}
        if regex is None:
            continue
        for case in tests.get("shouldMatch") or []:
            if not regex.search(case):
                report.fail(entry["id"], f'shouldMatch FAILED: "{case}"')
        for case in tests.get("shouldNotMatch") or []:
            if regex.search(case):
                report.fail(entry["id"], f'shouldNotMatch FAILED (matched but should not): "{case}"')


def _check_categories(entries: List[Dict[str, Any]], settings: Dict[str, Any], report: ValidationReport) -> None:
    listed = set(settings.get("categoryPriority") or [])
    for category in dict.fromkeys(entry.get("category") for entry in entries):
        if category and category not in listed:
            report.warn(None, f"Category '{category}' is used in patterns but not in settings.categoryPriority")


def _check_conflicts(entries: List[Dict[str, Any]], compiled: Dict[str, Any], report: ValidationReport) -> None:
    """An earlier entry's example matched by a later entry means order decides the result"""
    for i, first in enumerate(entries):
        cases = (first.get("tests") or {}).get("shouldMatch") or []
        for later in entries[i + 1:]:
            regex = compiled.get(later.get("id") or "UNKNOWN")
            if regex is None or not later.get("tests"):
                continue
            for case in cases:
                if regex.search(case):
                    report.warn(first.get("id"), f'and [{later.get("id")}] both match: "{case}" — check priority ordering')


def validate_patterns(data: Any) -> ValidationReport:
    """Run every rule-file check and collect the findings"""
    report = ValidationReport()
    if not isinstance(data, dict) or not isinstance(data.get("patterns"), list):
        report.fail("file", "expected an object with a 'patterns' list")
        return report

    entries = [entry for entry in data["patterns"] if isinstance(entry, dict)]
    if len(entries) != len(data["patterns"]):
        report.fail("file", "every entry in 'patterns' must be an object")

    _check_structure(entries, report)
    compiled = _compiled(entries, report)
    _check_test_cases(entries, compiled, report)
    _check_categories(entries, data.get("settings") or {}, report)
    _check_conflicts(entries, compiled, report)
    return report


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    path = argv[0] if argv else default_patterns_path()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        print(f"❌ Could not read {path}: {e}")
        return 1

    if isinstance(data, dict):
        print(f"🔍 Validating {len(data.get('patterns') or [])} patterns from {path} (v{data.get('version', '?')})")
    report = validate_patterns(data)

    for message in report.errors + report.warnings:
        print(f"   {message}")
    print(f"📊 Passed: {report.passed}  Warnings: {len(report.warnings)}  Failed: {len(report.errors)}")

    if not report.ok:
        print("❌ Pattern validation FAILED — fix errors before merging")
        return 1
    print("✅ Pattern validation passed" + (" with warnings" if report.warnings else ""))
    return 0


if __name__ == "__main__":
    sys.exit(main())

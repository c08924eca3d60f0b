#!/usr/bin/env python3
"""
Failure classification: pick the root cause of a failed job from its log
"""

import re
from typing import Dict, Iterable, List, Optional, Tuple

from constants import (
    CONTEXT_LINES,
    FALLBACK_ROOT_CAUSE,
    FALLBACK_SEVERITY,
    FALLBACK_SUGGESTION,
    GENERAL_WARNING_CATEGORY,
    NO_MATCH_PATTERN_ID,
    OTHER_ERROR_CATEGORY,
    UNKNOWN_CATEGORY,
    UNKNOWN_STEP,
)
from extractors import extract_build_params
from models import AnalysisResult, FailureSignature
from normalizer import normalize_line, split_lines, strip_decorations

ERROR_VOCABULARY_RE = re.compile(r"error|failed|fatal|exception|FAIL|ERR!", re.IGNORECASE)
WARNING_VOCABULARY_RE = re.compile(r"\bwarn(ing)?\b|WARN|⚠", re.IGNORECASE)
# "3 warnings" on its own is a tally, not a warning
WARNING_COUNT_RE = re.compile(r"^\s*\d+\s+warn(ing)?s?\s*$", re.IGNORECASE)
FAILED_STEP_RE = re.compile(
    r"##\[error\].*step[:\s]+(.+)|Run (.+) failed|^Step failed:\s*(.+)",
    re.IGNORECASE,
)


def is_error_line(line: str) -> bool:
    return bool(line) and ERROR_VOCABULARY_RE.search(line) is not None


def is_warning_line(line: str) -> bool:
    if not line or is_error_line(line):
        return False
    return WARNING_VOCABULARY_RE.search(line) is not None and not WARNING_COUNT_RE.match(line)


def classify_lines(lines: Iterable[str]) -> Tuple[List[str], List[str]]:
    """Split normalized lines into error lines and warning lines (never both)"""
    error_lines = []
    warning_lines = []
    for line in lines:
        if not line:
            continue
        if is_error_line(line):
            error_lines.append(line)
        elif is_warning_line(line):
            warning_lines.append(line)
    return error_lines, warning_lines


def _categorize(lines: List[str], catalog: Iterable[FailureSignature], default: str) -> Dict[str, List[str]]:
    signatures = list(catalog)
    by_category: Dict[str, List[str]] = {}
    for line in lines:
        category = default
        for signature in signatures:
            if signature.matches(line):
                category = signature.category
                break
        by_category.setdefault(category, []).append(line)
    return by_category


def categorize_error_lines(error_lines: List[str], catalog: Iterable[FailureSignature]) -> Dict[str, List[str]]:
    """Group error lines by the category of the first catalog entry matching each"""
    return _categorize(error_lines, catalog, OTHER_ERROR_CATEGORY)


def categorize_warning_lines(warning_lines: List[str], catalog: Iterable[FailureSignature]) -> Dict[str, List[str]]:
    """Group warning lines by the category of the first catalog entry matching each"""
    return _categorize(warning_lines, catalog, GENERAL_WARNING_CATEGORY)


def extract_failed_step(raw_lines: Iterable[str]) -> Optional[str]:
    """Find a step name from a ##[error] step annotation or a 'Run X failed' line"""
    for raw in raw_lines:
        match = FAILED_STEP_RE.search(strip_decorations(raw))
        if match:
            name = next(group for group in match.groups() if group)
            return name.strip()
    return None


def _context(normalized: List[str], idx: int) -> Tuple[List[str], List[str]]:
    before = normalized[max(0, idx - CONTEXT_LINES):idx]
    after = normalized[idx + 1:idx + 1 + CONTEXT_LINES]
    return [line for line in before if line], [line for line in after if line]


def analyze_logs(logs: str, catalog: Iterable[FailureSignature], step_name: Optional[str] = None) -> AnalysisResult:
    """
    Analyze one job's log against the pattern catalog.

    Catalog order is match priority: the first entry with any matching line
    wins, and within that entry the earliest line wins. Without a match the
    result carries fallback values and matched pattern "none".

    Args:
        logs: Complete raw log text of the job
        catalog: Ordered failure signatures (a PatternCatalog or any iterable)
        step_name: Failed step name when already known from job metadata

    Returns:
        AnalysisResult for the job
    """
    signatures = list(catalog)
    raw_lines = split_lines(logs)
    normalized = [normalize_line(raw) for raw in raw_lines]

    error_lines, warning_lines = classify_lines(normalized)
    build_params = extract_build_params(raw_lines)
    print(
        f"🔍 Scanned {len(raw_lines)} log lines, found {len(error_lines)} error lines, "
        f"{len(warning_lines)} warning lines, {len(build_params)} build params"
    )

    error_lines_by_category = categorize_error_lines(error_lines, signatures)
    warning_lines_by_category = categorize_warning_lines(warning_lines, signatures)
    failed_step = step_name or extract_failed_step(raw_lines) or UNKNOWN_STEP

    for signature in signatures:
        for idx, line in enumerate(normalized):
            if not line or not signature.matches(line):
                continue

            print(f"🎯 Matched pattern: {signature.id} ({signature.category}) at line {idx + 1}")
            context_before, context_after = _context(normalized, idx)
            return AnalysisResult(
                root_cause=signature.root_cause,
                failed_step=failed_step,
                suggestion=signature.suggestion,
                error_lines=error_lines,
                error_lines_by_category=error_lines_by_category,
                warning_lines=warning_lines,
                warning_lines_by_category=warning_lines_by_category,
                exact_match_line=line,
                exact_match_line_number=idx + 1,
                context_before=context_before,
                context_after=context_after,
                total_lines=len(raw_lines),
                severity=signature.severity,
                matched_pattern=signature.id,
                category=signature.category,
                docs_url=signature.docs_url,
                build_params=build_params,
            )

    print("ℹ️  No pattern matched - using generic fallback")
    return AnalysisResult(
        root_cause=FALLBACK_ROOT_CAUSE,
        failed_step=failed_step,
        suggestion=FALLBACK_SUGGESTION,
        error_lines=error_lines,
        error_lines_by_category=error_lines_by_category,
        warning_lines=warning_lines,
        warning_lines_by_category=warning_lines_by_category,
        exact_match_line=error_lines[0] if error_lines else "",
        exact_match_line_number=0,
        context_before=[],
        context_after=error_lines[1:3],
        total_lines=len(raw_lines),
        severity=FALLBACK_SEVERITY,
        matched_pattern=NO_MATCH_PATTERN_ID,
        category=UNKNOWN_CATEGORY,
        docs_url=None,
        build_params=build_params,
    )

#!/usr/bin/env python3
"""
Line normalization for GitHub Actions job logs
"""

import re
from typing import List

# 2026-02-22T19:12:50.8020453Z
TIMESTAMP_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T[\d:.]+Z(?:\s+|$)")
# \x1b[36;1m, \x1b[0K ...
ANSI_RE = re.compile(r"\x1b\[[0-9;]*[mGKHF]")
ANNOTATION_MARKER_RE = re.compile(r"##\[(?:error|warning|debug|group|endgroup)\]")


def split_lines(text: str) -> List[str]:
    """Split a log blob into raw lines, keeping 1-based numbering stable"""
    if not text:
        return [""]
    return text.split("\n")


def strip_decorations(raw: str) -> str:
    """Remove the timestamp prefix and colour codes, keep annotation markers"""
    line = raw
    while True:
        cleaned = ANSI_RE.sub("", TIMESTAMP_RE.sub("", line.strip())).strip()
        if cleaned == line:
            return cleaned
        line = cleaned


def normalize_line(raw: str) -> str:
    """
    Canonical form of a log line used by every matcher.

    Timestamps, ANSI escapes and ##[error]-style markers are removed until
    nothing changes, so normalizing twice gives the same text.
    """
    line = raw
    while True:
        cleaned = ANNOTATION_MARKER_RE.sub("", strip_decorations(line)).strip()
        if cleaned == line:
            return cleaned
        line = cleaned

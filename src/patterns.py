#!/usr/bin/env python3
"""
Pattern catalog loading: bundled patterns.json plus an optional remote set
"""

import json
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

import requests

from constants import DEFAULT_PATTERNS_FILE, REMOTE_PATTERNS_TIMEOUT, SEVERITIES
from models import FailureSignature

# JavaScript flag letters understood by catalog files
_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "g": 0,
    "u": 0,
    "y": 0,
}
_JS_NAMED_GROUP_RE = re.compile(r"\(\?<(?=[A-Za-z_])")

REQUIRED_FIELDS = ("id", "category", "pattern", "rootCause", "suggestion")


def default_patterns_path() -> str:
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", DEFAULT_PATTERNS_FILE)


def compile_pattern(pattern: str, flags: str = ""):
    """Compile a catalog regex written for a JavaScript engine.

    Raises re.error for a pattern or flag string that cannot be used.
    """
    compiled_flags = 0
    for flag in flags or "":
        if flag not in _FLAG_MAP:
            raise re.error(f"unsupported regex flag '{flag}'")
        compiled_flags |= _FLAG_MAP[flag]
    return re.compile(_JS_NAMED_GROUP_RE.sub("(?P<", pattern), compiled_flags)


@dataclass(frozen=True)
class PatternCatalog:
    """Ordered, read-only set of failure signatures; order is match priority"""
    signatures: Tuple[FailureSignature, ...] = ()

    def __iter__(self) -> Iterator[FailureSignature]:
        return iter(self.signatures)

    def __len__(self) -> int:
        return len(self.signatures)

    @property
    def ids(self) -> List[str]:
        return [signature.id for signature in self.signatures]

    def get(self, pattern_id: str) -> Optional[FailureSignature]:
        for signature in self.signatures:
            if signature.id == pattern_id:
                return signature
        return None


def parse_signature(entry: Dict[str, Any]) -> FailureSignature:
    """Build a FailureSignature from one JSON entry, raising ValueError if unusable"""
    if not isinstance(entry, dict):
        raise ValueError("entry is not an object")

    missing = [name for name in REQUIRED_FIELDS if not entry.get(name)]
    if missing:
        raise ValueError(f"missing required field(s): {', '.join(missing)}")

    severity = entry.get("severity", "warning")
    if severity not in SEVERITIES:
        raise ValueError(f"invalid severity '{severity}'")

    flags = entry.get("flags", "") or ""
    try:
        regex = compile_pattern(entry["pattern"], flags)
    except re.error as e:
        raise ValueError(f"invalid regex: {e}")

    return FailureSignature(
        id=str(entry["id"]),
        category=entry["category"],
        pattern=entry["pattern"],
        flags=flags,
        root_cause=entry["rootCause"],
        suggestion=entry["suggestion"],
        severity=severity,
        regex=regex,
        tags=tuple(entry.get("tags") or ()),
        docs_url=entry.get("docsUrl") or None,
    )


def parse_patterns(data: Any, source: str) -> List[FailureSignature]:
    """Turn a patterns document into signatures, skipping entries that can't be used"""
    if not isinstance(data, dict) or not isinstance(data.get("patterns"), list):
        print(f"⚠️  {source}: expected an object with a 'patterns' list")
        return []

    signatures = []
    for i, entry in enumerate(data["patterns"]):
        try:
            signatures.append(parse_signature(entry))
        except ValueError as e:
            entry_id = entry.get("id", f"#{i}") if isinstance(entry, dict) else f"#{i}"
            print(f"⚠️  Skipping pattern {entry_id} from {source}: {e}")
    return signatures


def load_local_patterns(path: Optional[str] = None) -> List[FailureSignature]:
    """Load the local rule set. Never raises; problems yield an empty list."""
    path = path or default_patterns_path()
    if not os.path.exists(path):
        print(f"⚠️  Local patterns file not found: {path}")
        return []

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        print(f"⚠️  Could not load local patterns file {path}: {e}")
        return []

    signatures = parse_patterns(data, os.path.basename(path))
    version = data.get("version", "?") if isinstance(data, dict) else "?"
    print(f"📥 Loaded {len(signatures)} patterns from {os.path.basename(path)} (v{version})")
    return signatures


def fetch_remote_patterns(remote_url: str, timeout: float = REMOTE_PATTERNS_TIMEOUT) -> List[FailureSignature]:
    """Fetch a community rule set. Network or HTTP problems yield an empty list."""
    print(f"🌐 Fetching remote patterns from {remote_url}...")
    try:
        response = requests.get(remote_url, headers={"Accept": "application/json"}, timeout=timeout)
    except requests.RequestException as e:
        print(f"⚠️  Could not fetch remote patterns: {e}")
        return []

    if not 200 <= response.status_code < 300:
        print(f"⚠️  Remote patterns fetch failed: HTTP {response.status_code}")
        return []

    try:
        data = response.json()
    except ValueError as e:
        print(f"⚠️  Remote patterns are not valid JSON: {e}")
        return []

    signatures = parse_patterns(data, remote_url)
    version = data.get("version", "?") if isinstance(data, dict) else "?"
    print(f"📥 Loaded {len(signatures)} remote patterns (v{version})")
    return signatures


def merge_patterns(local: List[FailureSignature], remote: List[FailureSignature]) -> List[FailureSignature]:
    """Local entries first, then remote entries whose id is not defined locally"""
    local_ids = {signature.id for signature in local}
    remote_only = [signature for signature in remote if signature.id not in local_ids]
    merged = list(local) + remote_only
    print(f"📚 Using {len(merged)} total patterns ({len(local)} local + {len(remote_only)} remote)")
    return merged


def load_patterns(local_path: Optional[str] = None, remote_url: Optional[str] = None) -> PatternCatalog:
    """Build the catalog used for every job of a run"""
    path = local_path or default_patterns_path()
    signatures = load_local_patterns(path)
    if remote_url:
        signatures = merge_patterns(signatures, fetch_remote_patterns(remote_url))
    return PatternCatalog(tuple(signatures))

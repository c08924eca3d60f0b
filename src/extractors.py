#!/usr/bin/env python3
"""
Field extractors: build parameters, action/image references, cloned
repositories, test-runner summaries and workflow annotations
"""

import re
from dataclasses import dataclass, replace
from functools import reduce
from typing import Callable, Iterable, List, Optional, Tuple

from constants import (
    FULL_DEPTH,
    MAX_BUILD_PARAMS,
    MAX_CLONED_REPOS,
    MAX_FAILED_TESTS,
    MAX_GIT_REFS,
    UNKNOWN_VALUE,
)
from models import Annotation, BuildParam, CappedList, ClonedRepo, GitRef, TestSummary
from normalizer import normalize_line, split_lines, strip_decorations


def _normalized(lines: Iterable[str]) -> List[str]:
    return [line for line in (normalize_line(raw) for raw in lines) if line]


# ---------------------------------------------------------------------------
# Build parameters
# ---------------------------------------------------------------------------

# Ordered: the first matcher that fits a line decides its key, value and source
BUILD_PARAM_MATCHERS = [
    # KEY=value, export KEY=value
    (re.compile(r"^(?:export\s+)?([A-Z][A-Z0-9_]{2,})=(.+)$"), "env"),
    # Input 'name' has been set to 'value'
    (re.compile(r"Input '([^']+)' has been set to '([^']*)'$"), "input"),
    # docker build --build-arg KEY=value
    (re.compile(r"--build-arg\s+([A-Za-z_][A-Za-z0-9_]*)=(\S+)"), "cli-flag"),
    # Maven / Gradle -Dkey=value
    (re.compile(r"-D([A-Za-z_][A-Za-z0-9_.]+)=(\S+)"), "cli-flag"),
    # npm_config_KEY=value, NODE_ENV=value, NODE_OPTIONS=value
    (re.compile(r"^(npm_config_[A-Za-z_]+|NODE_ENV|NODE_OPTIONS)=(.+)$"), "env"),
    # ::set-env name=KEY::value (deprecated)
    (re.compile(r"::set-env name=([^:]+)::(.*)$"), "env"),
    # ::set-output name=KEY::value (legacy)
    (re.compile(r"::set-output name=([^:]+)::(.*)$"), "output"),
    # with: key: value
    (re.compile(r"^\s*with:\s+([A-Za-z_-]+):\s+(.+)$"), "input"),
    # env: KEY: value
    (re.compile(r"^\s*env:\s+([A-Z][A-Z0-9_]+):\s+(.+)$"), "env"),
]

# Block form printed under a "Run ..." group:
#   with:
#     node-version: 20
STEP_BLOCK_HEADERS = {"with:": "input", "env:": "env"}
STEP_BLOCK_ITEM_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_.-]*):\s+(.+)$")

SECRET_KEY_RE = re.compile(r"token|secret|password|passwd|api_key|apikey|auth|credential|private", re.IGNORECASE)
REDACTION_MARKER = "***"


def looks_like_secret(key: str, value: str) -> bool:
    """Best-effort credential heuristic; not a substitute for keeping secrets out of logs"""
    if SECRET_KEY_RE.search(key):
        return True
    return REDACTION_MARKER in value


def _match_build_param(line: str, block_source: Optional[str]) -> Optional[BuildParam]:
    if block_source:
        match = STEP_BLOCK_ITEM_RE.match(line)
        if match:
            return BuildParam(match.group(1), match.group(2), block_source)
    for regex, source in BUILD_PARAM_MATCHERS:
        match = regex.search(line)
        if match:
            return BuildParam(match.group(1), match.group(2), source)
    return None


def extract_build_params(lines: Iterable[str]) -> CappedList:
    """Collect build parameters from raw log lines, dropping credential-looking pairs"""
    params = []
    seen = set()
    block_source = None

    for raw in lines:
        line = normalize_line(raw)
        if not line:
            if "##[endgroup]" in raw:
                block_source = None
            continue

        if line in STEP_BLOCK_HEADERS:
            block_source = STEP_BLOCK_HEADERS[line]
            continue

        param = _match_build_param(line, block_source)
        if block_source and not STEP_BLOCK_ITEM_RE.match(line):
            block_source = None
        if param is None:
            continue

        uid = f"{param.key}={param.value}"
        if uid in seen or looks_like_secret(param.key, param.value):
            continue
        seen.add(uid)
        params.append(param)

    return CappedList(params, MAX_BUILD_PARAMS)


# ---------------------------------------------------------------------------
# Action / image / ref references
# ---------------------------------------------------------------------------

ACTION_DOWNLOAD_RE = re.compile(r"Download action repository '([^']+@[^']+)'")
DOCKER_PULL_RE = re.compile(r"(?:docker\s+pull|Pulling\s+from)\s+([a-z0-9_./-]+(?::[a-z0-9_.-]+)?)", re.IGNORECASE)
DOCKER_FROM_RE = re.compile(r"^FROM\s+([a-z0-9_./-]+(?::[a-z0-9_.-]+)?)", re.IGNORECASE)
CLONING_INTO_RE = re.compile(r"Cloning into '([^']+)'", re.IGNORECASE)
REF_CHECKOUT_RE = re.compile(r"(?:Checking out|checkout)\s+(?:ref:\s+)?refs/(heads|tags)/(\S+)", re.IGNORECASE)
SUBMODULE_RE = re.compile(r"[Ss]ubmodule\s+'([^']+)'\s+\(([^)]+)\)")
RUN_ACTION_RE = re.compile(r"^Run\s+([a-zA-Z0-9_.-]+/[a-zA-Z0-9_.-]+)@(\S+)")


def _split_image(image: str) -> Tuple[str, str]:
    repo, _, tag = image.partition(":")
    return repo, tag or "latest"


def _git_refs_in_line(line: str) -> List[GitRef]:
    """Every reference shape is tested independently; one line may yield several"""
    refs = []

    match = ACTION_DOWNLOAD_RE.search(line)
    if match:
        repo, _, ref = match.group(1).partition("@")
        refs.append(GitRef(repo, ref, "action"))

    for regex in (DOCKER_PULL_RE, DOCKER_FROM_RE):
        match = regex.search(line)
        if match:
            repo, tag = _split_image(match.group(1))
            refs.append(GitRef(repo, tag, "docker"))

    match = CLONING_INTO_RE.search(line)
    if match:
        refs.append(GitRef(match.group(1), "HEAD", "git-checkout"))

    match = REF_CHECKOUT_RE.search(line)
    if match:
        refs.append(GitRef("", f"{match.group(1)}/{match.group(2)}", "git-checkout"))

    match = SUBMODULE_RE.search(line)
    if match:
        url = re.sub(r"\.git$", "", match.group(2))
        repo = re.sub(r"^https?://github\.com/", "", url)
        refs.append(GitRef(repo, match.group(1), "submodule"))

    return refs


def _dedupe_refs(refs: Iterable[GitRef]) -> List[GitRef]:
    seen = set()
    unique = []
    for ref in refs:
        if ref.key not in seen:
            seen.add(ref.key)
            unique.append(ref)
    return unique


def extract_git_refs_from_logs(lines: Iterable[str]) -> CappedList:
    """Actions, images, checkouts and submodules referenced while setting up the job"""
    refs = [ref for line in _normalized(lines) for ref in _git_refs_in_line(line)]
    return CappedList(_dedupe_refs(refs), MAX_GIT_REFS)


def extract_git_refs_from_steps(logs: str) -> List[GitRef]:
    """Actions that actually ran, from 'Run owner/repo@ref' step headers"""
    refs = []
    for line in _normalized(split_lines(logs)):
        match = RUN_ACTION_RE.match(line)
        if match:
            refs.append(GitRef(match.group(1), match.group(2), "action"))
    return _dedupe_refs(refs)


def _hidden(refs: List[GitRef]) -> int:
    return getattr(refs, "total", len(refs)) - len(refs)


def merge_git_refs(log_refs: List[GitRef], step_refs: List[GitRef]) -> CappedList:
    """Combine both sources; refs already cut from a capped input still count toward the total"""
    merged = CappedList(_dedupe_refs(list(log_refs) + list(step_refs)), MAX_GIT_REFS)
    merged.total += _hidden(log_refs) + _hidden(step_refs)
    return merged


# ---------------------------------------------------------------------------
# Cloned repositories
# ---------------------------------------------------------------------------

SYNC_RE = re.compile(r"Syncing repository:\s+(\S+)")
AUTH_RE = re.compile(r"Setting up auth.*github\.com/([^\s'\"]+)")
CHECKOUT_RE = re.compile(r"[Cc]hecking out (?:ref:\s*)?refs/(heads|tags|pull)/(\S+)")
HEAD_RE = re.compile(r"HEAD is now at\s+([a-f0-9]{7,40})")
DEPTH_FLAG_RE = re.compile(r"--depth[= ](\d+)")
FETCH_DEPTH_RE = re.compile(r"fetch-depth:\s*(\d+)")
GIT_CLONE_RE = re.compile(r"git\s+clone\s+(?:--?\S+\s+(?:\d+\s+)?)*(?:https?://github\.com/)?([^\s'\"]+)", re.IGNORECASE)
GIT_FETCH_RE = re.compile(r"git\s+fetch\s+\S+\s+(\S+)", re.IGNORECASE)


@dataclass(frozen=True)
class RepoDraft:
    """Fields gathered so far for the repository being checked out"""
    repository: str = ""
    branch: str = ""
    commit: str = ""
    depth: str = ""

    def to_cloned_repo(self) -> ClonedRepo:
        return ClonedRepo(
            repository=self.repository,
            branch=self.branch or UNKNOWN_VALUE,
            commit=self.commit or UNKNOWN_VALUE,
            depth=self.depth or FULL_DEPTH,
        )


@dataclass(frozen=True)
class CloneScanState:
    repos: Tuple[ClonedRepo, ...] = ()
    current: RepoDraft = RepoDraft()

    def has(self, repository: str) -> bool:
        return any(repo.repository == repository for repo in self.repos)

    def emit(self, repo: ClonedRepo) -> "CloneScanState":
        if self.has(repo.repository):
            return self
        return replace(self, repos=self.repos + (repo,))


def flush_repo(state: CloneScanState) -> CloneScanState:
    """Emit the in-progress repository (unless already seen) and start afresh"""
    if state.current.repository:
        state = state.emit(state.current.to_cloned_repo())
    return replace(state, current=RepoDraft())


def _branch_for(ref_type: str, ref_name: str) -> str:
    if ref_type == "tags":
        return f"tag: {ref_name}"
    if ref_type == "pull":
        return f"PR #{ref_name.replace('/merge', '')}"
    return ref_name


def scan_clone_line(state: CloneScanState, line: str) -> CloneScanState:
    """Advance the clone state machine by one normalized line"""
    sync = SYNC_RE.search(line)
    if sync:
        state = replace(flush_repo(state), current=RepoDraft(repository=sync.group(1)))

    current = state.current

    auth = AUTH_RE.search(line)
    if auth and not current.repository:
        current = replace(current, repository=re.sub(r"\.git$", "", auth.group(1)))

    checkout = CHECKOUT_RE.search(line)
    if checkout:
        current = replace(current, branch=_branch_for(checkout.group(1), checkout.group(2)))

    head = HEAD_RE.search(line)
    if head:
        current = replace(current, commit=head.group(1))

    depth = DEPTH_FLAG_RE.search(line)
    if depth:
        current = replace(current, depth=depth.group(1))

    fetch_depth = FETCH_DEPTH_RE.search(line)
    if fetch_depth:
        value = fetch_depth.group(1)
        current = replace(current, depth=FULL_DEPTH if value == "0" else value)

    fetch = GIT_FETCH_RE.search(line)
    if fetch and current.repository:
        fetched = re.sub(r"^refs/heads/", "", fetch.group(1))
        if not current.branch and not fetched.startswith("-"):
            current = replace(current, branch=fetched)

    state = replace(state, current=current)

    clone = GIT_CLONE_RE.search(line)
    if clone and not sync:
        repository = re.sub(r"\.git$", "", clone.group(1))
        if "/" in repository:
            state = state.emit(ClonedRepo(repository, UNKNOWN_VALUE, UNKNOWN_VALUE, FULL_DEPTH))

    return state


def extract_cloned_repos(lines: Iterable[str]) -> CappedList:
    """Repositories checked out during the job, in first-seen order"""
    state = reduce(scan_clone_line, _normalized(lines), CloneScanState())
    return CappedList(flush_repo(state).repos, MAX_CLONED_REPOS)


# ---------------------------------------------------------------------------
# Test runner summaries
# ---------------------------------------------------------------------------

def _count(pattern: str, text: str) -> int:
    match = re.search(pattern, text, re.IGNORECASE)
    return int(match.group(1)) if match else 0


def _collect(regex, lines: List[str]) -> List[str]:
    names = []
    for line in lines:
        match = regex.search(line)
        if match and match.group(1) not in names:
            names.append(match.group(1))
    return names[:MAX_FAILED_TESTS]


PYTEST_SUMMARY_RE = re.compile(r"^=+ (.*\b(?:passed|failed|errors?|skipped)\b.*) in [\d.]+s(?: \([^)]*\))? =+$")
PYTEST_FAILED_RE = re.compile(r"^(?:FAILED|ERROR) (\S+::\S+)")


def _parse_pytest(lines: List[str]) -> TestSummary:
    body = ""
    for line in lines:
        match = PYTEST_SUMMARY_RE.match(line)
        if match:
            body = match.group(1)
    passed = _count(r"(\d+) passed", body)
    failed = _count(r"(\d+) failed", body) + _count(r"(\d+) errors?", body)
    skipped = _count(r"(\d+) skipped", body)
    return TestSummary("pytest", passed, failed, skipped, passed + failed + skipped,
                       _collect(PYTEST_FAILED_RE, lines))


JEST_SUMMARY_RE = re.compile(r"^Tests:\s+(.*\d+ total)")
JEST_FAILED_RE = re.compile(r"^(?:✕|×)\s+(.+?)(?:\s+\(\d+\s*m?s\))?$")


def _parse_jest(lines: List[str]) -> TestSummary:
    body = ""
    for line in lines:
        match = JEST_SUMMARY_RE.match(line)
        if match:
            body = match.group(1)
    passed = _count(r"(\d+) passed", body)
    failed = _count(r"(\d+) failed", body)
    skipped = _count(r"(\d+) skipped", body) + _count(r"(\d+) todo", body)
    total = _count(r"(\d+) total", body) or passed + failed + skipped
    return TestSummary("jest", passed, failed, skipped, total, _collect(JEST_FAILED_RE, lines))


MOCHA_PASSING_RE = re.compile(r"^(\d+) passing\b")
MOCHA_FAILED_RE = re.compile(r"^\d+\) (.+)$")


def _parse_mocha(lines: List[str]) -> TestSummary:
    passed = failed = skipped = 0
    for line in lines:
        passed = _count(r"^(\d+) passing\b", line) or passed
        failed = _count(r"^(\d+) failing\b", line) or failed
        skipped = _count(r"^(\d+) pending\b", line) or skipped
    return TestSummary("mocha", passed, failed, skipped, passed + failed + skipped,
                       _collect(MOCHA_FAILED_RE, lines))


GO_RESULT_RE = re.compile(r"^\s*--- (PASS|FAIL|SKIP): (\S+)")


def _parse_go(lines: List[str]) -> TestSummary:
    counts = {"PASS": 0, "FAIL": 0, "SKIP": 0}
    failed_tests = []
    for line in lines:
        match = GO_RESULT_RE.match(line)
        if match:
            counts[match.group(1)] += 1
            if match.group(1) == "FAIL" and match.group(2) not in failed_tests:
                failed_tests.append(match.group(2))
    return TestSummary("go test", counts["PASS"], counts["FAIL"], counts["SKIP"], sum(counts.values()),
                       failed_tests[:MAX_FAILED_TESTS])


CARGO_SUMMARY_RE = re.compile(r"test result: (?:ok|FAILED)\. (\d+) passed; (\d+) failed; (\d+) ignored")
CARGO_FAILED_RE = re.compile(r"^test (\S+) \.\.\. FAILED$")


def _parse_cargo(lines: List[str]) -> TestSummary:
    passed = failed = skipped = 0
    for line in lines:
        match = CARGO_SUMMARY_RE.search(line)
        if match:
            passed += int(match.group(1))
            failed += int(match.group(2))
            skipped += int(match.group(3))
    return TestSummary("cargo test", passed, failed, skipped, passed + failed + skipped,
                       _collect(CARGO_FAILED_RE, lines))


MAVEN_SUMMARY_RE = re.compile(r"Tests run: (\d+), Failures: (\d+), Errors: (\d+), Skipped: (\d+)")
MAVEN_FAILED_RE = re.compile(r"^(?:\[ERROR\]\s+)?(?!Tests run|\[)(\S+).*<<< (?:FAILURE|ERROR)!")


def _parse_maven(lines: List[str]) -> TestSummary:
    total = failed = skipped = 0
    for line in lines:
        # surefire prints per-class lines, then the module total last
        match = MAVEN_SUMMARY_RE.search(line)
        if match:
            total = int(match.group(1))
            failed = int(match.group(2)) + int(match.group(3))
            skipped = int(match.group(4))
    return TestSummary("maven surefire", max(total - failed - skipped, 0), failed, skipped, total,
                       _collect(MAVEN_FAILED_RE, lines))


# (framework detector, parser); the first detector to fire in log order wins
TEST_FRAMEWORKS: List[Tuple[re.Pattern, Callable[[List[str]], TestSummary]]] = [
    (PYTEST_SUMMARY_RE, _parse_pytest),
    (JEST_SUMMARY_RE, _parse_jest),
    (MOCHA_PASSING_RE, _parse_mocha),
    (GO_RESULT_RE, _parse_go),
    (CARGO_SUMMARY_RE, _parse_cargo),
    (MAVEN_SUMMARY_RE, _parse_maven),
]


def extract_test_summary(lines: Iterable[str]) -> Optional[TestSummary]:
    """Summary of the first test framework recognized in the log, if any"""
    normalized = _normalized(lines)
    for line in normalized:
        for detector, parse in TEST_FRAMEWORKS:
            if detector.search(line):
                return parse(normalized)
    return None


# ---------------------------------------------------------------------------
# Workflow annotations
# ---------------------------------------------------------------------------

WORKFLOW_COMMAND_RE = re.compile(r"^::(error|warning|notice)(?:\s+([^:]*))?::(.*)$")
RENDERED_ANNOTATION_RE = re.compile(r"##\[(error|warning|notice)\](.*)$")
# "src/app.ts:12:5" or "src/app.ts(12,5)" inside a message
LOCATION_RE = re.compile(r"([\w./\\-]+\.[A-Za-z0-9]+)(?::|\()(\d+)")


def _command_properties(properties: str) -> dict:
    values = {}
    for item in (properties or "").split(","):
        name, _, value = item.partition("=")
        if name.strip():
            values[name.strip()] = value.strip()
    return values


def _parse_annotation(line: str) -> Optional[Annotation]:
    match = WORKFLOW_COMMAND_RE.match(line)
    if match:
        properties = _command_properties(match.group(2))
        message = match.group(3).strip()
        if not message:
            return None
        line_no = properties.get("line", "")
        return Annotation(match.group(1), message, properties.get("file") or None,
                          int(line_no) if line_no.isdecimal() else None)

    match = RENDERED_ANNOTATION_RE.search(line)
    if match:
        message = match.group(2).strip()
        if not message:
            return None
        location = LOCATION_RE.search(message)
        if location:
            return Annotation(match.group(1), message, location.group(1), int(location.group(2)))
        return Annotation(match.group(1), message)

    return None


def extract_annotations(lines: Iterable[str]) -> List[Annotation]:
    """Error/warning/notice annotations, read before normalization strips their markers"""
    annotations = []
    for raw in lines:
        line = strip_decorations(raw)
        if not line:
            continue
        annotation = _parse_annotation(line)
        if annotation:
            annotations.append(annotation)
    return annotations

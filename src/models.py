#!/usr/bin/env python3
"""
Data models for Action Log Analyzer
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class FailureSignature:
    """One catalog rule: a regex plus the diagnosis it stands for"""
    id: str
    category: str
    pattern: str
    flags: str
    root_cause: str
    suggestion: str
    severity: str
    regex: re.Pattern = field(compare=False, repr=False)
    tags: Tuple[str, ...] = ()
    docs_url: Optional[str] = None

    def matches(self, line: str) -> bool:
        return self.regex.search(line) is not None


@dataclass
class BuildParam:
    key: str
    value: str
    source: str  # env, input, cli-flag, output


@dataclass
class GitRef:
    repo: str
    ref: str
    type: str  # action, docker, git-checkout, submodule

    @property
    def key(self) -> str:
        return f"{self.type}:{self.repo}@{self.ref}"


@dataclass
class ClonedRepo:
    repository: str
    branch: str
    commit: str
    depth: str


@dataclass
class TestSummary:
    """Counts reported by a test runner's summary output"""
    __test__ = False  # keep pytest from collecting this class

    framework: str
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    total: int = 0
    failed_tests: List[str] = field(default_factory=list)


@dataclass
class Annotation:
    level: str  # error, warning, notice
    message: str
    file: Optional[str] = None
    line: Optional[int] = None


@dataclass
class ExtractedLink:
    url: str
    label: str


@dataclass
class StepInfo:
    """Step metadata as reported by the jobs API"""
    name: str
    conclusion: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    number: int = 0


@dataclass
class JobInfo:
    """Container for a workflow job and its steps"""
    id: int
    name: str
    conclusion: Optional[str] = None
    created_at: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    html_url: str = ""
    steps: List[StepInfo] = field(default_factory=list)

    @property
    def failed_step(self) -> Optional[str]:
        for step in self.steps:
            if step.conclusion == "failure":
                return step.name
        return None


@dataclass
class StepTiming:
    name: str
    duration_ms: int
    is_slow: bool = False


@dataclass
class JobTiming:
    job_name: str
    job_duration_ms: int = 0
    queue_time_ms: int = 0
    slowest_step: Optional[StepTiming] = None
    steps: List[StepTiming] = field(default_factory=list)


@dataclass
class AnalysisResult:
    """Diagnosis of a single job's log"""
    root_cause: str
    failed_step: str
    suggestion: str
    error_lines: List[str]
    error_lines_by_category: Dict[str, List[str]]
    warning_lines: List[str]
    warning_lines_by_category: Dict[str, List[str]]
    exact_match_line: str
    exact_match_line_number: int
    context_before: List[str]
    context_after: List[str]
    total_lines: int
    severity: str
    matched_pattern: str
    category: str
    docs_url: Optional[str] = None
    build_params: List[BuildParam] = field(default_factory=list)


@dataclass
class JobReport:
    """Everything extracted for one failed job, ready for rendering"""
    job_name: str
    analysis: AnalysisResult
    git_refs: List[GitRef] = field(default_factory=list)
    cloned_repos: List[ClonedRepo] = field(default_factory=list)
    test_summary: Optional[TestSummary] = None
    annotations: List[Annotation] = field(default_factory=list)
    links: List[ExtractedLink] = field(default_factory=list)
    timing: Optional[JobTiming] = None
    steps: List[StepInfo] = field(default_factory=list)


class CappedList(list):
    """A list cut down to ``cap`` items that remembers how many were found"""

    def __init__(self, items: Iterable = (), cap: Optional[int] = None):
        items = list(items)
        super().__init__(items if cap is None else items[:cap])
        self.total = len(items)
        self.cap = cap

    @property
    def truncated(self) -> bool:
        return self.total > len(self)

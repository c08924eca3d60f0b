#!/usr/bin/env python3
"""
Tests for markdown report rendering
"""

import unittest
import os
import sys

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from constants import LOG_ANALYZER_COMMENT_MARKER, NO_MATCH_PATTERN_ID, REPORT_TITLE
from extractors import extract_build_params
from models import (
    AnalysisResult,
    Annotation,
    BuildParam,
    CappedList,
    ClonedRepo,
    ExtractedLink,
    GitRef,
    JobInfo,
    JobReport,
    JobTiming,
    StepTiming,
    TestSummary,
)
from report import format_duration, format_grouped_lines, format_job_report, format_success_report

RUN_URL = "https://github.com/acme/widgets/actions/runs/42"


def make_analysis(**overrides):
    values = dict(
        root_cause="Missing file",
        failed_step="Install",
        suggestion="Check path",
        error_lines=["npm ERR! code ENOENT"],
        error_lines_by_category={"npm": ["npm ERR! code ENOENT"]},
        warning_lines=[],
        warning_lines_by_category={},
        exact_match_line="npm ERR! code ENOENT",
        exact_match_line_number=3,
        context_before=["Run npm ci"],
        context_after=["npm ERR! syscall open"],
        total_lines=5,
        severity="critical",
        matched_pattern="npm-missing",
        category="npm",
    )
    values.update(overrides)
    return AnalysisResult(**values)


class TestFormatDuration(unittest.TestCase):
    """Test human readable durations"""

    def test_seconds_and_minutes(self):
        self.assertEqual(format_duration(45000), "45s")
        self.assertEqual(format_duration(125000), "2m 5s")
        self.assertEqual(format_duration(120000), "2m")


class TestFormatGroupedLines(unittest.TestCase):
    """Test category grouping with a display cap"""

    def test_under_cap(self):
        text = format_grouped_lines({"npm": ["a error", "b error"]}, 2, 10, highlight="b error")
        self.assertIn("<summary>npm (2)</summary>", text)
        self.assertIn("    a error", text)
        self.assertIn(">>> b error", text)
        self.assertNotIn("more (see full log)", text)

    def test_cap_spans_categories(self):
        grouped = {"B": [f"b{i}" for i in range(8)], "A": [f"a{i}" for i in range(5)]}
        text = format_grouped_lines(grouped, 13, 10)
        self.assertIn("<summary>A (5)</summary>", text)
        self.assertIn("<summary>B (5 of 8)</summary>", text)
        self.assertIn("... 3 more (see full log)", text)
        self.assertLess(text.index("A (5)"), text.index("B (5 of 8)"))


class TestFormatJobReport(unittest.TestCase):
    """Test the failed job report"""

    def test_core_fields(self):
        report = JobReport(job_name="build", analysis=make_analysis(docs_url="https://docs.npmjs.com/"))
        text = format_job_report(report, RUN_URL)

        self.assertIn(f"## {REPORT_TITLE} — build", text)
        self.assertIn("Missing file", text)
        self.assertIn("`Install`", text)
        self.assertIn("`npm-missing`", text)
        self.assertIn("**💡 Suggestion:** Check path", text)
        self.assertIn("[Documentation](https://docs.npmjs.com/)", text)
        self.assertIn("(line 3 of 5)", text)
        self.assertIn(">>> npm ERR! code ENOENT", text)
        self.assertIn(f"[View workflow run]({RUN_URL})", text)
        self.assertNotIn(LOG_ANALYZER_COMMENT_MARKER, text)

    def test_fallback_hides_pattern_row(self):
        analysis = make_analysis(matched_pattern=NO_MATCH_PATTERN_ID, exact_match_line_number=0)
        text = format_job_report(JobReport(job_name="build", analysis=analysis), RUN_URL)
        self.assertNotIn("**Pattern**", text)
        self.assertNotIn("(line ", text)

    def test_display_cap_leaves_analysis_intact(self):
        lines = [f"error number {i}" for i in range(35)]
        analysis = make_analysis(error_lines=lines, error_lines_by_category={"Other": list(lines)})
        report = JobReport(job_name="build", analysis=analysis)

        text = format_job_report(report, RUN_URL, max_error_lines=10)

        self.assertIn("❌ Errors (35)", text)
        self.assertIn("Other (10 of 35)", text)
        self.assertIn("View full log", text)
        self.assertIn("25 more lines not shown", text)
        self.assertNotIn("error number 10\n", text)
        self.assertEqual(len(report.analysis.error_lines), 35)
        self.assertEqual(len(report.analysis.error_lines_by_category["Other"]), 35)

    def test_optional_sections(self):
        report = JobReport(
            job_name="build",
            analysis=make_analysis(
                warning_lines=["npm WARN deprecated x"],
                warning_lines_by_category={"General": ["npm WARN deprecated x"]},
                build_params=[BuildParam("NODE_ENV", "production", "env"), BuildParam("LONG", "v" * 80, "env")],
            ),
            git_refs=[
                GitRef("actions/checkout", "v4", "action"),
                GitRef("node", "20-alpine", "docker"),
                GitRef("", "heads/main", "git-checkout"),
            ],
            cloned_repos=[ClonedRepo("acme/widgets", "main", "1a2b3c4d5e6f", "1")],
            test_summary=TestSummary("jest", 8, 1, 1, 10, ["renders the header"]),
            annotations=[Annotation("error", "Undefined name", "src/app.py", 12)],
            links=[ExtractedLink("https://codecov.io/gh/acme/widgets", "Coverage report")],
            timing=JobTiming(
                "build", 18 * 60 * 1000, 45 * 1000,
                StepTiming("Build", 12 * 60 * 1000, True),
                [StepTiming("Build", 12 * 60 * 1000, True), StepTiming("Test", 6 * 60 * 1000, True)],
            ),
        )
        artifacts = [{"name": "coverage", "size_in_bytes": 2048, "url": "https://api.github.com/x"}]

        text = format_job_report(report, RUN_URL, artifacts=artifacts)

        self.assertIn("⚠️ Warnings (1)", text)
        self.assertIn("| `NODE_ENV` | `production` | env |", text)
        self.assertIn("v" * 57 + "...", text)
        self.assertNotIn("v" * 58, text)
        self.assertIn("[actions/checkout](https://github.com/actions/checkout)", text)
        self.assertIn("| 🐳 Docker | `node` | `20-alpine` |", text)
        self.assertNotIn("heads/main", text)
        self.assertIn("[acme/widgets](https://github.com/acme/widgets)", text)
        self.assertIn("`1a2b3c4`", text)
        self.assertIn("| jest | 8 | 1 | 1 | 10 | ❌ |", text)
        self.assertIn("renders the header", text)
        self.assertIn("Undefined name [src/app.py:12]", text)
        self.assertIn("**18m**", text)
        self.assertIn("| Queue wait | 45s |", text)
        self.assertIn("(67%)", text)
        self.assertIn("Other slow steps | `Test` (6m)", text)
        self.assertIn("- 📦 coverage (2 KB)", text)
        self.assertIn("- [Coverage report](https://codecov.io/gh/acme/widgets)", text)

    def test_truncated_sections_show_total(self):
        params = extract_build_params([f"VAR_{i:02d}=v{i}" for i in range(35)])
        report = JobReport(
            job_name="build",
            analysis=make_analysis(build_params=params),
            git_refs=CappedList([GitRef(f"img{i}", "1", "docker") for i in range(45)], 40),
            cloned_repos=CappedList([ClonedRepo(f"acme/repo{i}", "main", "1a2b3c4", "1") for i in range(25)], 20),
            links=CappedList([ExtractedLink(f"https://codecov.io/gh/acme/r{i}", "Coverage report") for i in range(22)], 20),
        )

        text = format_job_report(report, RUN_URL)

        self.assertIn("### ⚙️ Build Parameters (30 of 35)", text)
        self.assertIn("### 📂 Cloned Repositories (20 of 25)", text)
        self.assertIn("### 🧩 Actions & Images (40 of 45)", text)
        self.assertIn("### 🔗 Artifacts & Links (20 of 22)", text)
        self.assertNotIn("VAR_30", text)

    def test_untruncated_sections_have_plain_titles(self):
        report = JobReport(
            job_name="build",
            analysis=make_analysis(build_params=extract_build_params(["NODE_ENV=production"])),
        )
        text = format_job_report(report, RUN_URL)
        self.assertIn("### ⚙️ Build Parameters\n", text)


class TestFormatSuccessReport(unittest.TestCase):
    """Test the all-green report"""

    def test_lists_jobs_and_links(self):
        jobs = [JobInfo(1, "lint", "success"), JobInfo(2, "test", "skipped")]
        links = [ExtractedLink("https://ghcr.io/acme/widgets", "Container registry")]

        text = format_success_report(jobs, RUN_URL, links)

        self.assertIn("✅ All jobs completed successfully", text)
        self.assertIn("- ✅ lint (success)", text)
        self.assertIn("- ✅ test (skipped)", text)
        self.assertIn("[Container registry](https://ghcr.io/acme/widgets)", text)

    def test_without_links(self):
        text = format_success_report([], RUN_URL)
        self.assertNotIn("Artifacts & Links", text)

    def test_truncated_links_show_total(self):
        links = CappedList([ExtractedLink(f"https://ghcr.io/acme/r{i}", "Container registry") for i in range(25)], 20)
        text = format_success_report([], RUN_URL, links)
        self.assertIn("### 🔗 Artifacts & Links (20 of 25)", text)


if __name__ == "__main__":
    unittest.main()

#!/usr/bin/env python3
"""
Action Log Analyzer - GitHub Action that explains why CI jobs failed
"""

import os
import sys
import uuid
from typing import List
from github_client import GitHubClient
from analyzer import analyze_logs
from extractors import (
    extract_annotations,
    extract_cloned_repos,
    extract_git_refs_from_logs,
    extract_git_refs_from_steps,
    extract_test_summary,
    merge_git_refs,
)
from links import extract_links, merge_links
from models import JobInfo, JobReport
from normalizer import split_lines
from patterns import PatternCatalog, load_patterns
from report import format_job_report, format_success_report
from timing import compute_job_timing
from constants import DEFAULT_MAX_ERROR_LINES, NO_MATCH_PATTERN_ID


def _input_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() == "true"


def analyze_job(job: JobInfo, logs: str, catalog: PatternCatalog) -> JobReport:
    """Run the classifier and every extractor over one job's log and steps"""
    lines = split_lines(logs)
    analysis = analyze_logs(logs, catalog, job.failed_step)
    return JobReport(
        job_name=job.name,
        analysis=analysis,
        git_refs=merge_git_refs(extract_git_refs_from_logs(lines), extract_git_refs_from_steps(logs)),
        cloned_repos=extract_cloned_repos(lines),
        test_summary=extract_test_summary(lines),
        annotations=extract_annotations(lines),
        links=extract_links(logs),
        timing=compute_job_timing(job.name, job.steps, job.created_at),
        steps=job.steps,
    )


def synthesize_logs(job: JobInfo) -> str:
    """Stand-in log when the real one can't be downloaded"""
    return "\n".join(f"Step failed: {step.name}" for step in job.steps if step.conclusion == "failure")


class LogAnalyzerAction:
    """Main class for Action Log Analyzer functionality"""

    def __init__(self):
        self.github_token = os.getenv("INPUT_GITHUB_TOKEN")
        self.post_comment = _input_flag("INPUT_POST_COMMENT", True)
        self.post_summary = _input_flag("INPUT_POST_SUMMARY", True)
        self.failed_job_name = os.getenv("INPUT_FAILED_JOB_NAME") or None
        self.remote_patterns_url = os.getenv("INPUT_REMOTE_PATTERNS_URL") or None
        self.patterns_file = os.getenv("INPUT_PATTERNS_FILE") or None
        self.max_error_lines = int(os.getenv("INPUT_MAX_ERROR_LINES") or DEFAULT_MAX_ERROR_LINES)

        # GitHub context
        self.repository = os.getenv("GITHUB_REPOSITORY")
        self.run_id = os.getenv("GITHUB_RUN_ID")
        self.server_url = os.getenv("GITHUB_SERVER_URL", "https://github.com")
        self.output_path = os.getenv("GITHUB_OUTPUT")
        self.summary_path = os.getenv("GITHUB_STEP_SUMMARY")

        if not all([self.github_token, self.repository, self.run_id]):
            raise ValueError("Missing required environment variables")

        self.github = GitHubClient(self.github_token, self.repository, self.run_id)

    @property
    def run_url(self) -> str:
        return f"{self.server_url}/{self.repository}/actions/runs/{self.run_id}"

    def run(self) -> None:
        """Main execution method"""
        print("🔍 Action Log Analyzer starting failure analysis...")

        catalog = load_patterns(self.patterns_file, self.remote_patterns_url)
        jobs = self.github.get_run_jobs()
        failed_jobs = self.github.get_failed_jobs(self.failed_job_name, jobs)

        artifacts = self.github.list_artifacts()

        if not failed_jobs:
            self._report_success(jobs, artifacts)
            return

        print(f"🚨 Found {len(failed_jobs)} failed job(s). Analyzing...")
        pr = self.github.get_pull_request() if self.post_comment else None

        for job in failed_jobs:
            print(f"🤖 Analyzing job: {job.name}")
            logs = self.github.get_job_logs(job.id)
            if logs is None:
                print(f"⚠️  Using step metadata in place of logs for job {job.name}")
                logs = synthesize_logs(job)

            report = analyze_job(job, logs, catalog)
            analysis = report.analysis
            print(f"📋 Root cause: {analysis.root_cause}")
            print(f"🏷️  Category: {analysis.category}")
            print(f"🎯 Matched pattern: {analysis.matched_pattern}")

            self.set_outputs({
                "root-cause": analysis.root_cause,
                "failed-step": analysis.failed_step,
                "suggestion": analysis.suggestion,
                "matched-pattern": analysis.matched_pattern,
                "category": analysis.category,
                "severity": analysis.severity,
                "error-count": len(analysis.error_lines),
                "warning-count": len(analysis.warning_lines),
                "job-duration-ms": report.timing.job_duration_ms if report.timing else 0,
            })

            markdown = format_job_report(report, self.run_url, self.max_error_lines, artifacts)
            if self.post_summary:
                self.write_summary(markdown)
            if pr:
                self.github.post_or_update_comment(pr, markdown, job.name)

        print("✅ Analysis complete!")

    def _report_success(self, jobs: List[JobInfo], artifacts: List[dict]) -> None:
        print("✅ No failed jobs in this workflow run")
        completed = [job for job in jobs if job.conclusion is not None]

        links = []
        for job in [j for j in jobs if j.conclusion == "success"][:3]:
            logs = self.github.get_job_logs(job.id)
            if logs:
                links = merge_links(links, extract_links(logs))

        self.set_outputs({
            "root-cause": "",
            "failed-step": "",
            "suggestion": "",
            "matched-pattern": NO_MATCH_PATTERN_ID,
            "category": "Success",
        })
        if self.post_summary:
            self.write_summary(format_success_report(completed, self.run_url, links, artifacts))

    def set_outputs(self, outputs: dict) -> None:
        """Write step outputs using the GITHUB_OUTPUT file protocol"""
        if not self.output_path:
            for name, value in outputs.items():
                print(f"   {name}: {value}")
            return

        with open(self.output_path, "a", encoding="utf-8") as f:
            for name, value in outputs.items():
                delimiter = f"ghadelimiter_{uuid.uuid4()}"
                f.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")

    def write_summary(self, markdown: str) -> None:
        if not self.summary_path:
            print(markdown)
            return
        with open(self.summary_path, "a", encoding="utf-8") as f:
            f.write(markdown + "\n")
        print("📝 Job summary posted.")


def main():
    """Entry point for Action Log Analyzer"""
    try:
        action = LogAnalyzerAction()
        action.run()
    except Exception as e:
        print(f"❌ Action Log Analyzer failed: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()

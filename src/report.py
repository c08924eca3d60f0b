#!/usr/bin/env python3
"""
Markdown rendering of job analyses for job summaries and PR comments
"""

from typing import Dict, List, Optional

from constants import DEFAULT_MAX_ERROR_LINES, NO_MATCH_PATTERN_ID, REPORT_TITLE, UNKNOWN_VALUE
from models import Annotation, BuildParam, ClonedRepo, ExtractedLink, GitRef, JobInfo, JobReport, JobTiming, TestSummary

SEVERITY_EMOJI = {
    "critical": "🔴",
    "warning": "🟡",
    "info": "🔵",
}

ANNOTATION_LEVELS = ("error", "warning", "notice")
MAX_ANNOTATIONS_PER_LEVEL = 10
MAX_PARAM_VALUE_LENGTH = 60


def format_duration(ms: int) -> str:
    seconds = round(ms / 1000)
    if seconds < 60:
        return f"{seconds}s"
    minutes, seconds = divmod(seconds, 60)
    return f"{minutes}m {seconds}s" if seconds else f"{minutes}m"


def _code(text: str) -> str:
    return "`" + (text or "").replace("`", "\\`").replace("\n", " ") + "`"


def _details(summary: str, body: str) -> str:
    return f"<details>\n<summary>{summary}</summary>\n\n```text\n{body}\n```\n</details>"


def format_grouped_lines(
    lines_by_category: Dict[str, List[str]],
    total_count: int,
    max_lines: int,
    highlight: str = "",
) -> str:
    """Render categorized lines, showing at most ``max_lines`` across all groups"""
    truncated = total_count > max_lines
    parts = []
    shown = 0

    for category in sorted(lines_by_category):
        lines = lines_by_category[category]
        visible = lines[:max(0, max_lines - shown)] if truncated else lines
        hidden = len(lines) - len(visible)

        body = "\n".join(f">>> {line}" if line == highlight else f"    {line}" for line in visible)
        if hidden:
            body += f"\n    ... {hidden} more (see full log)"
        header = f"{category} ({len(visible)} of {len(lines)})" if hidden else f"{category} ({len(lines)})"
        parts.append(_details(header, body))

        shown += len(visible)
        if truncated and shown >= max_lines:
            break

    return "\n\n".join(parts)


def _format_params(params: List[BuildParam]) -> str:
    rows = ["| Parameter | Value | Source |", "|:----------|:------|:-------|"]
    for param in params:
        value = param.value
        if len(value) > MAX_PARAM_VALUE_LENGTH:
            value = value[:MAX_PARAM_VALUE_LENGTH - 3] + "..."
        rows.append(f"| {_code(param.key)} | {_code(value)} | {param.source} |")
    return "\n".join(rows)


def _format_cloned_repos(repos: List[ClonedRepo]) -> str:
    rows = ["| Repository | Branch / Tag | Commit | Depth |", "|:-----------|:-------------|:-------|:------|"]
    for repo in repos:
        name = f"[{repo.repository}](https://github.com/{repo.repository})" if "/" in repo.repository else _code(repo.repository)
        commit = _code(repo.commit[:7]) if repo.commit != UNKNOWN_VALUE else UNKNOWN_VALUE
        rows.append(f"| {name} | {_code(repo.branch)} | {commit} | {repo.depth} |")
    return "\n".join(rows)


def _format_refs(refs: List[GitRef]) -> str:
    shown = [ref for ref in refs if ref.type in ("action", "docker")]
    if not shown:
        return ""
    rows = ["| Type | Repository / Image | Ref / Tag |", "|:-----|:-------------------|:----------|"]
    for ref in shown:
        if ref.type == "action":
            rows.append(f"| 🔧 Action | [{ref.repo}](https://github.com/{ref.repo}) | {_code(ref.ref)} |")
        else:
            rows.append(f"| 🐳 Docker | {_code(ref.repo)} | {_code(ref.ref)} |")
    return "\n".join(rows)


def _format_timing(timing: JobTiming) -> str:
    if not timing.job_duration_ms:
        return ""
    rows = ["| Metric | Value |", "|:-------|:------|", f"| Total duration | **{format_duration(timing.job_duration_ms)}** |"]
    if timing.queue_time_ms > 30_000:
        rows.append(f"| Queue wait | {format_duration(timing.queue_time_ms)} |")
    if timing.slowest_step:
        share = round(timing.slowest_step.duration_ms / timing.job_duration_ms * 100)
        rows.append(
            f"| Slowest step | {_code(timing.slowest_step.name)} — "
            f"{format_duration(timing.slowest_step.duration_ms)} ({share}%) |"
        )
    others = [s for s in timing.steps if s.is_slow and timing.slowest_step and s.name != timing.slowest_step.name]
    if others:
        names = ", ".join(f"{_code(s.name)} ({format_duration(s.duration_ms)})" for s in others)
        rows.append(f"| Other slow steps | {names} |")
    return "\n".join(rows)


def _format_tests(summary: TestSummary) -> str:
    status = "❌" if summary.failed else "✅"
    text = (
        "| Framework | Passed | Failed | Skipped | Total | Status |\n"
        "|:----------|-------:|-------:|--------:|------:|:------:|\n"
        f"| {summary.framework} | {summary.passed} | {summary.failed} | {summary.skipped} | {summary.total} | {status} |"
    )
    if summary.failed_tests:
        text += "\n\n" + _details(f"Failed tests ({len(summary.failed_tests)})", "\n".join(summary.failed_tests))
    return text


def _format_annotations(annotations: List[Annotation]) -> str:
    parts = []
    for level in ANNOTATION_LEVELS:
        items = [a for a in annotations if a.level == level]
        if not items:
            continue
        lines = []
        for a in items[:MAX_ANNOTATIONS_PER_LEVEL]:
            location = f" [{a.file}{':' + str(a.line) if a.line else ''}]" if a.file else ""
            lines.append(f"{a.message}{location}")
        if len(items) > MAX_ANNOTATIONS_PER_LEVEL:
            lines.append(f"... {len(items) - MAX_ANNOTATIONS_PER_LEVEL} more")
        parts.append(_details(f"{SEVERITY_EMOJI.get(level, '🔵')} {level.capitalize()} ({len(items)})", "\n".join(lines)))
    return "\n".join(parts)


def _format_links(links: List[ExtractedLink], artifacts: Optional[List[dict]] = None) -> str:
    lines = []
    for artifact in artifacts or []:
        size_kb = round(artifact.get("size_in_bytes", 0) / 1024)
        lines.append(f"- 📦 {artifact.get('name', 'artifact')} ({size_kb} KB)")
    for link in links:
        lines.append(f"- [{link.label}]({link.url})")
    return "\n".join(lines)


def _shown_of(items: list) -> str:
    """' (30 of 35)' for an extractor result that was cut down, '' otherwise"""
    if getattr(items, "truncated", False):
        return f" ({len(items)} of {items.total})"
    return ""


def _section(title: str, body: str) -> str:
    return f"\n\n### {title}\n\n{body}" if body else ""


def format_job_report(
    report: JobReport,
    run_url: str,
    max_error_lines: int = DEFAULT_MAX_ERROR_LINES,
    artifacts: Optional[List[dict]] = None,
) -> str:
    """Markdown report for one failed job; display caps never alter the analysis"""
    analysis = report.analysis
    emoji = SEVERITY_EMOJI.get(analysis.severity, "🟡")

    text = f"## {REPORT_TITLE} — {report.job_name}\n\n"
    text += "| | |\n|:--|:--|\n"
    text += f"| **Root cause** | {emoji} {analysis.root_cause} |\n"
    text += f"| **Failed step** | {_code(analysis.failed_step)} |\n"
    text += f"| **Category** | {analysis.category} |\n"
    if analysis.matched_pattern != NO_MATCH_PATTERN_ID:
        text += f"| **Pattern** | {_code(analysis.matched_pattern)} |\n"
    text += f"\n**💡 Suggestion:** {analysis.suggestion}\n"
    if analysis.docs_url:
        text += f"\n📖 [Documentation]({analysis.docs_url})\n"

    if analysis.exact_match_line:
        where = f" (line {analysis.exact_match_line_number} of {analysis.total_lines})" if analysis.exact_match_line_number else ""
        context = [f"    {line}" for line in analysis.context_before]
        context.append(f">>> {analysis.exact_match_line}")
        context.extend(f"    {line}" for line in analysis.context_after)
        text += f"\n> **Error{where}:** {_code(analysis.exact_match_line)}\n\n```text\n" + "\n".join(context) + "\n```"

    if analysis.error_lines:
        grouped = format_grouped_lines(
            analysis.error_lines_by_category, len(analysis.error_lines), max_error_lines, analysis.exact_match_line
        )
        hidden = len(analysis.error_lines) - max_error_lines
        if hidden > 0:
            grouped += f"\n\n> **[View full log]({run_url})** — {hidden} more line{'' if hidden == 1 else 's'} not shown"
        text += _section(f"❌ Errors ({len(analysis.error_lines)})", grouped)

    if analysis.warning_lines:
        text += _section(
            f"⚠️ Warnings ({len(analysis.warning_lines)})",
            format_grouped_lines(analysis.warning_lines_by_category, len(analysis.warning_lines), max_error_lines),
        )

    if report.test_summary:
        text += _section("🧪 Test Results", _format_tests(report.test_summary))
    if report.annotations:
        text += _section("📌 Annotations", _format_annotations(report.annotations))
    if analysis.build_params:
        text += _section(f"⚙️ Build Parameters{_shown_of(analysis.build_params)}", _format_params(analysis.build_params))
    if report.cloned_repos:
        text += _section(f"📂 Cloned Repositories{_shown_of(report.cloned_repos)}", _format_cloned_repos(report.cloned_repos))
    text += _section(f"🧩 Actions & Images{_shown_of(report.git_refs)}", _format_refs(report.git_refs))
    if report.timing:
        text += _section("⏱️ Timing", _format_timing(report.timing))
    text += _section(f"🔗 Artifacts & Links{_shown_of(report.links)}", _format_links(report.links, artifacts))

    text += f"\n\n---\n[View workflow run]({run_url})\n"
    return text


def format_success_report(
    jobs: List[JobInfo],
    run_url: str,
    links: Optional[List[ExtractedLink]] = None,
    artifacts: Optional[List[dict]] = None,
) -> str:
    text = f"## {REPORT_TITLE}\n\n✅ All jobs completed successfully\n\n"
    for job in jobs:
        text += f"- ✅ {job.name} ({job.conclusion})\n"
    text += _section(f"🔗 Artifacts & Links{_shown_of(links or [])}", _format_links(links or [], artifacts))
    text += f"\n\n---\n[View workflow run]({run_url})\n"
    return text

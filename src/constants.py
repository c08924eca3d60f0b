#!/usr/bin/env python3
"""
Constants for Action Log Analyzer
"""

# Main report title used in job summaries and PR comments
REPORT_TITLE = "🔍 **Log Analyzer Report**"

# Comment marker for PR comments (for update/replace functionality)
LOG_ANALYZER_COMMENT_MARKER = "<!-- ACTION-LOG-ANALYZER -->"

# Bundled rule set, relative to the repository root
DEFAULT_PATTERNS_FILE = "patterns.json"

# Remote rule sets must answer within this many seconds
REMOTE_PATTERNS_TIMEOUT = 5

# Sentinels used when no catalog entry matched
NO_MATCH_PATTERN_ID = "none"
UNKNOWN_CATEGORY = "Unknown"
UNKNOWN_STEP = "Unknown step"
FALLBACK_ROOT_CAUSE = "Unknown failure — could not automatically detect root cause"
FALLBACK_SUGGESTION = (
    "Review the error lines below. Consider adding a custom pattern to "
    "patterns.json to handle this error in future runs."
)
FALLBACK_SEVERITY = "warning"

# Buckets for lines no catalog entry claims
OTHER_ERROR_CATEGORY = "Other"
GENERAL_WARNING_CATEGORY = "General"

SEVERITIES = ("critical", "warning", "info")

# Lines of context kept on each side of the matched line
CONTEXT_LINES = 2

# Extraction caps
MAX_BUILD_PARAMS = 30
MAX_GIT_REFS = 40
MAX_CLONED_REPOS = 20
MAX_LINKS = 20
MAX_FAILED_TESTS = 20

# Display cap for error lines in rendered reports
DEFAULT_MAX_ERROR_LINES = 10

# Placeholder for unknown branch/commit of a cloned repository
UNKNOWN_VALUE = "—"
FULL_DEPTH = "full"

# Slow step thresholds
SLOW_STEP_ABSOLUTE_MS = 5 * 60 * 1000
SLOW_STEP_JOB_SHARE = 0.6

# Job conclusions treated as failures when picking jobs to analyze
FAILED_CONCLUSIONS = ("failure",)

#!/usr/bin/env python3
"""
Job and step durations from step timestamps
"""

from datetime import datetime
from typing import List, Optional

from constants import SLOW_STEP_ABSOLUTE_MS, SLOW_STEP_JOB_SHARE
from models import JobTiming, StepInfo, StepTiming


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an API timestamp such as 2024-01-01T00:00:00Z; None if missing or malformed"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _ms_between(start: Optional[datetime], end: Optional[datetime]) -> int:
    if start is None or end is None:
        return 0
    return max(0, int((end - start).total_seconds() * 1000))


def is_slow(duration_ms: int, job_duration_ms: int) -> bool:
    if duration_ms > SLOW_STEP_ABSOLUTE_MS:
        return True
    return job_duration_ms > 0 and duration_ms > job_duration_ms * SLOW_STEP_JOB_SHARE


def compute_job_timing(job_name: str, steps: List[StepInfo], job_created_at=None) -> JobTiming:
    """
    Durations for a job and each of its steps.

    Job duration runs from the earliest step start to the latest step
    completion. Queue time is the wait between job creation and the first
    step starting, when the creation time is known.
    """
    starts = [t for t in (parse_timestamp(step.started_at) for step in steps) if t]
    ends = [t for t in (parse_timestamp(step.completed_at) for step in steps) if t]

    first_start = min(starts) if starts else None
    job_duration_ms = _ms_between(first_start, max(ends) if ends else None)
    queue_time_ms = _ms_between(parse_timestamp(job_created_at), first_start)

    step_timings = []
    for step in steps:
        duration_ms = _ms_between(parse_timestamp(step.started_at), parse_timestamp(step.completed_at))
        step_timings.append(StepTiming(step.name, duration_ms, is_slow(duration_ms, job_duration_ms)))

    slowest = None
    for timing in step_timings:
        if timing.duration_ms > 0 and (slowest is None or timing.duration_ms > slowest.duration_ms):
            slowest = timing

    return JobTiming(
        job_name=job_name,
        job_duration_ms=job_duration_ms,
        queue_time_ms=queue_time_ms,
        slowest_step=slowest,
        steps=step_timings,
    )

#!/usr/bin/env python3
"""
Data models for CircleCI job stats
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from exceptions import ConfigurationError, MalformedInputError

NANOS_PER_SECOND = 1_000_000_000

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# RFC 3339 with an optional fraction of up to nine digits
_TIMESTAMP_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d{1,9}))?(Z|[+-]\d{2}:\d{2})$"
)


class JobStatus(Enum):
    """Status of a finished (or pending) CircleCI job, as found in build results."""
    RETRIED = "retried"
    CANCELED = "canceled"
    INFRASTRUCTURE_FAIL = "infrastructure_fail"
    TIMEDOUT = "timedout"
    NOT_RUN = "not_run"
    RUNNING = "running"
    FAILED = "failed"
    QUEUED = "queued"
    SCHEDULED = "scheduled"
    NOT_RUNNING = "not_running"
    NO_TESTS = "no_tests"
    FIXED = "fixed"
    SUCCESS = "success"

    @classmethod
    def parse(cls, value: Any) -> "JobStatus":
        try:
            return cls(value)
        except ValueError:
            raise MalformedInputError(f"Unexpected job status value: {value!r}") from None

    @property
    def is_countable(self) -> bool:
        """Only successes and failures feed the statistics"""
        return self in (JobStatus.SUCCESS, JobStatus.FAILED)


class JobStatusFilter(Enum):
    """Server-side status filter accepted by the CircleCI recent-builds endpoints"""
    COMPLETED = "completed"
    SUCCESSFUL = "successful"
    FAILED = "failed"
    RUNNING = "running"

    @classmethod
    def parse(cls, value: str) -> "JobStatusFilter":
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise ConfigurationError(
                f"Unexpected job status filter {value!r}, expected one of: {allowed}"
            ) from None


def parse_timestamp(value: str) -> int:
    """Parse an RFC 3339 timestamp into integer nanoseconds since the epoch.

    datetime only keeps microseconds, so the fraction is handled separately
    to keep the full nanosecond precision CircleCI reports.
    """
    if not isinstance(value, str):
        raise MalformedInputError(f"Failed to parse time {value!r}: not a string")
    match = _TIMESTAMP_RE.match(value)
    if not match:
        raise MalformedInputError(f"Failed to parse time {value!r}")
    base, fraction, offset = match.groups()
    if offset == "Z":
        offset = "+00:00"
    try:
        parsed = datetime.fromisoformat(base + offset)
    except ValueError as e:
        raise MalformedInputError(f"Failed to parse time {value!r}: {e}") from None
    seconds = (parsed - _EPOCH) // timedelta(seconds=1)
    nanos = int(fraction.ljust(9, "0")) if fraction else 0
    return seconds * NANOS_PER_SECOND + nanos


def _optional_timestamp(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return parse_timestamp(value)


@dataclass(frozen=True)
class JobResult:
    """A single CircleCI job result"""
    name: str
    owner: str
    repo: str
    branch: str
    status: JobStatus
    start_ns: Optional[int]
    end_ns: Optional[int]
    build_num: Optional[int] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any], source: Optional[str] = None) -> "JobResult":
        """Build a JobResult from one element of a CircleCI build results array"""
        if not isinstance(data, dict):
            raise MalformedInputError(f"Expected a JSON object, got {type(data).__name__}", source)
        try:
            status = JobStatus.parse(data.get("status"))
            start_ns = _optional_timestamp(data.get("start_time"))
            end_ns = _optional_timestamp(data.get("stop_time"))
        except MalformedInputError as e:
            raise MalformedInputError(_describe(data, e.message), source) from None

        # Pending or skipped jobs may lack timestamps, counted ones may not
        if status.is_countable and (start_ns is None or end_ns is None):
            raise MalformedInputError(_describe(data, "missing start_time or stop_time"), source)

        workflows = data.get("workflows") or {}
        if not isinstance(workflows, dict):
            raise MalformedInputError(_describe(data, "workflows is not an object"), source)
        return cls(
            name=workflows.get("job_name") or "",
            owner=data.get("username") or "",
            repo=data.get("reponame") or "",
            branch=data.get("branch") or "",
            status=status,
            start_ns=start_ns,
            end_ns=end_ns,
            build_num=data.get("build_num"),
        )

    @property
    def duration_ns(self) -> int:
        if self.start_ns is None or self.end_ns is None:
            raise MalformedInputError(f"Job {self.name!r} (build {self.build_num}) has no timestamps")
        return self.end_ns - self.start_ns

    @property
    def duration_seconds(self) -> float:
        return self.duration_ns / NANOS_PER_SECOND


def _describe(data: Dict[str, Any], message: str) -> str:
    return f"build {data.get('build_num', '?')}: {message}"


@dataclass(frozen=True)
class FilterCriteria:
    """Optional analysis filters; None or empty means no constraint"""
    username: Optional[str] = None
    repository_name: Optional[str] = None
    branch_name: Optional[str] = None
    name: Optional[str] = None
    status: Optional[str] = None

    def active(self) -> List[Tuple[str, str]]:
        """Labels and values of the criteria that are set"""
        labels = [
            ("username", self.username),
            ("repository name", self.repository_name),
            ("branch", self.branch_name),
            ("job name", self.name),
            ("job result", self.status),
        ]
        return [(label, value) for label, value in labels if value]


@dataclass
class AggregateEntry:
    """Per-job rollup built by one aggregation pass"""
    name: str
    frequency: int = 0
    cumulative_duration_ns: int = 0
    success_count: int = 0
    failure_count: int = 0

    @property
    def total(self) -> int:
        return self.success_count + self.failure_count

    @property
    def average_duration_ns(self) -> int:
        # Truncates toward zero, rounding only happens for display
        quotient = abs(self.cumulative_duration_ns) // self.frequency
        return quotient if self.cumulative_duration_ns >= 0 else -quotient

    @property
    def success_rate_percent(self) -> int:
        if self.total == 0:
            return 0
        return (100 * self.success_count) // self.total

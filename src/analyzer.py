#!/usr/bin/env python3
"""
Aggregation and ranking of CircleCI job results
"""

import logging
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Dict, Iterable, List, Optional, Sequence

from constants import MAX_GRAPH_HEIGHT, MAX_GRAPH_WIDTH, MOVING_AVERAGE_WINDOW
from exceptions import InternalConsistencyError
from models import NANOS_PER_SECOND, AggregateEntry, JobResult, JobStatus
import timeseries

logger = logging.getLogger(__name__)


@dataclass
class AnalyzeOptions:
    """Which reports to print in analyze mode"""
    print_success_rate: bool = True
    print_duration: bool = True
    print_duration_graph: bool = True
    print_success_graph: bool = False
    window: int = MOVING_AVERAGE_WINDOW
    max_graph_width: int = MAX_GRAPH_WIDTH
    max_graph_height: int = MAX_GRAPH_HEIGHT


def aggregate_results(results: Iterable[JobResult]) -> Dict[str, AggregateEntry]:
    """Roll up successes and failures per job name"""
    entries: Dict[str, AggregateEntry] = {}
    for result in results:
        if not result.status.is_countable:
            continue
        entry = entries.get(result.name)
        if entry is None:
            entry = entries[result.name] = AggregateEntry(result.name)
        entry.frequency += 1
        entry.cumulative_duration_ns += result.duration_ns
        if result.status is JobStatus.SUCCESS:
            entry.success_count += 1
        elif result.status is JobStatus.FAILED:
            entry.failure_count += 1
        else:
            raise InternalConsistencyError(f"Unexpected status: {result.status.value}")
    return entries


def rank_by_duration(entries: Iterable[AggregateEntry]) -> List[AggregateEntry]:
    """Slowest job first; equal averages fall back to descending name"""
    return sorted(entries, key=lambda e: (e.average_duration_ns, e.name), reverse=True)


def _compare_success_rate(a: AggregateEntry, b: AggregateEntry) -> int:
    # Cross products of a 0/0 entry tie with everything, so those sort last
    if (a.total == 0) != (b.total == 0):
        return 1 if a.total == 0 else -1
    # a/(a+fa) vs b/(b+fb) without division: a.s * b.f vs b.s * a.f
    comparison = a.success_count * b.failure_count - b.success_count * a.failure_count
    if comparison != 0:
        # Lowest failure rate first
        return -1 if comparison > 0 else 1
    if a.name == b.name:
        return 0
    return -1 if a.name > b.name else 1


def rank_by_success_rate(entries: Iterable[AggregateEntry]) -> List[AggregateEntry]:
    """Lowest failure rate first; equal rates fall back to descending name"""
    return sorted(entries, key=cmp_to_key(_compare_success_rate))


def format_duration(duration_ns: int) -> str:
    """Round to the nearest second (half away from zero) and show as H:MM:SS"""
    sign = "-" if duration_ns < 0 else ""
    seconds = (abs(duration_ns) + NANOS_PER_SECOND // 2) // NANOS_PER_SECOND
    hours, remainder = divmod(seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{sign}{hours}:{minutes:02d}:{seconds:02d}"


def format_success_rate(entry: AggregateEntry) -> str:
    return f"{entry.success_count}/{entry.total} ({entry.success_rate_percent}%)"


def format_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    """Left-aligned columns separated by a single space"""
    underline = ["-" * len(header) for header in headers]
    all_rows = [list(headers), underline] + [list(row) for row in rows]
    widths = [max(len(row[i]) for row in all_rows) for i in range(len(headers))]
    lines = []
    for row in all_rows:
        cells = [cell.ljust(widths[i]) for i, cell in enumerate(row[:-1])] + [row[-1]]
        lines.append(" ".join(cells))
    return "\n".join(lines)


def format_duration_table(entries: Iterable[AggregateEntry]) -> str:
    rows = [(e.name, format_duration(e.average_duration_ns)) for e in rank_by_duration(entries)]
    return format_table(("Job name", "Average job duration"), rows)


def format_success_rate_table(entries: Iterable[AggregateEntry]) -> str:
    rows = [(e.name, format_success_rate(e)) for e in rank_by_success_rate(entries)]
    return format_table(("Job name", "Success Rate"), rows)


def print_job_stats(results: List[JobResult], options: AnalyzeOptions,
                    log: Optional[logging.Logger] = None) -> None:
    """Print every report enabled in options"""
    log = log or logger
    print(f"Number of job results: {len(results)}")
    entries = list(aggregate_results(results).values())
    log.debug("Aggregated %d job name(s)", len(entries))

    if options.print_success_rate:
        print(format_success_rate_table(entries))
        print("")
    if options.print_duration:
        print(format_duration_table(entries))
        print("")
    if options.print_duration_graph:
        timeseries.print_duration_graphs(results, options.window, options.max_graph_width,
                                         options.max_graph_height, log)
    if options.print_success_graph:
        timeseries.print_success_graphs(results, options.window, options.max_graph_width,
                                        options.max_graph_height, log)

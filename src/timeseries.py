#!/usr/bin/env python3
"""
Per-job time series and their ASCII graphs
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import asciichartpy

from constants import MAX_GRAPH_HEIGHT, MAX_GRAPH_WIDTH, MOVING_AVERAGE_WINDOW
from models import JobResult, JobStatus

logger = logging.getLogger(__name__)

Series = List[Tuple[int, float]]


def _chronological(series_by_name: Dict[str, Series]) -> Dict[str, List[float]]:
    # Sorted on the start timestamp alone, so equal starts keep input order
    return {
        name: [value for _, value in sorted(points, key=lambda point: point[0])]
        for name, points in series_by_name.items()
    }


def build_duration_series(results: Iterable[JobResult]) -> Dict[str, List[float]]:
    """Chronological durations in seconds per job, successful runs only.

    Failed jobs are left out since they often stop early and would skew
    the trend.
    """
    series: Dict[str, Series] = defaultdict(list)
    for result in results:
        if result.status is not JobStatus.SUCCESS:
            continue
        series[result.name].append((result.start_ns, result.duration_seconds))
    return _chronological(series)


def build_success_series(results: Iterable[JobResult]) -> Dict[str, List[float]]:
    """Chronological 1.0 (success) / 0.0 (failure) samples per job"""
    series: Dict[str, Series] = defaultdict(list)
    for result in results:
        if not result.status.is_countable:
            continue
        value = 1.0 if result.status is JobStatus.SUCCESS else 0.0
        series[result.name].append((result.start_ns, value))
    return _chronological(series)


def moving_average(values: Sequence[float], window: int,
                   log: Optional[logging.Logger] = None) -> List[float]:
    """Trailing simple moving average; one point per full window"""
    log = log or logger
    if window <= 0:
        raise ValueError(f"Moving average window must be positive, got {window}")
    if len(values) < window:
        raise ValueError(
            f"Cannot average {len(values)} point(s) over a window of {window}, check the length first"
        )
    size = len(values) - (window - 1)
    log.debug("Moving average size: %d", size)
    averaged = []
    for i in range(size):
        averaged.append(sum(values[i:i + window]) / window)
        log.debug("Average from %d to %d: %f", i, i + window, averaged[-1])
    return averaged


def smooth(values: Sequence[float], window: int = MOVING_AVERAGE_WINDOW,
           log: Optional[logging.Logger] = None) -> List[float]:
    """Apply the moving average only when there are more points than the window"""
    if len(values) > window:
        return moving_average(values, window, log)
    return list(values)


def resample(values: Sequence[float], width: int) -> List[float]:
    """Linearly interpolate values onto width evenly spaced points"""
    if width <= 0 or not values:
        return []
    if len(values) == 1 or width == 1:
        return [float(values[0])] * width
    if len(values) == width:
        return [float(v) for v in values]
    step = (len(values) - 1) / (width - 1)
    resampled = []
    for i in range(width):
        position = i * step
        low = int(position)
        high = min(low + 1, len(values) - 1)
        fraction = position - low
        resampled.append(values[low] + (values[high] - values[low]) * fraction)
    return resampled


def render_graph(values: Sequence[float], max_width: int = MAX_GRAPH_WIDTH,
                 height: int = MAX_GRAPH_HEIGHT, log: Optional[logging.Logger] = None) -> str:
    """Draw values as an ASCII line chart at most max_width columns wide"""
    log = log or logger
    width = min(len(values), max_width)
    log.debug("Print graph(height=%d, width=%d), %d values", height, width, len(values))
    if width == 0:
        return ""
    return asciichartpy.plot(resample(values, width), {"height": height})


def _print_graphs(series_by_name: Dict[str, List[float]], window: int, max_width: int,
                  height: int, log: logging.Logger) -> None:
    for name in sorted(series_by_name):
        values = smooth(series_by_name[name], window, log)
        print(f"\nJob name: {name} ({len(values)} data points)\n")
        print(render_graph(values, max_width, height, log))


def print_duration_graphs(results: Iterable[JobResult], window: int = MOVING_AVERAGE_WINDOW,
                          max_width: int = MAX_GRAPH_WIDTH, height: int = MAX_GRAPH_HEIGHT,
                          log: Optional[logging.Logger] = None) -> None:
    print("Printing job duration graphs")
    _print_graphs(build_duration_series(results), window, max_width, height, log or logger)


def print_success_graphs(results: Iterable[JobResult], window: int = MOVING_AVERAGE_WINDOW,
                         max_width: int = MAX_GRAPH_WIDTH, height: int = MAX_GRAPH_HEIGHT,
                         log: Optional[logging.Logger] = None) -> None:
    print("Printing job success graphs")
    _print_graphs(build_success_series(results), window, max_width, height, log or logger)

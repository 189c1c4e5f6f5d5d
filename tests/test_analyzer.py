#!/usr/bin/env python3
"""
Tests for aggregation and ranking
"""

import io
import json
import random
import tempfile
import unittest
from contextlib import redirect_stdout
from unittest.mock import patch
import os
import sys

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from analyzer import (
    AnalyzeOptions,
    aggregate_results,
    format_duration,
    format_duration_table,
    format_success_rate_table,
    print_job_stats,
    rank_by_duration,
    rank_by_success_rate,
)
from loader import load_all
from models import AggregateEntry, JobResult, JobStatus

SECOND = 1_000_000_000


def make_result(name, status, seconds, start=0):
    return JobResult(name=name, owner="acme", repo="rocket", branch="master", status=status,
                     start_ns=start * SECOND, end_ns=(start + seconds) * SECOND)


class TestAggregateResults(unittest.TestCase):
    """Test the aggregator"""

    def test_counts_success_and_failure_only(self):
        results = [
            make_result("build", JobStatus.SUCCESS, 10),
            make_result("build", JobStatus.FAILED, 5),
            make_result("build", JobStatus.CANCELED, 100),
            make_result("build", JobStatus.FIXED, 100),
            make_result("lint", JobStatus.RETRIED, 100),
        ]
        entries = aggregate_results(results)
        self.assertEqual(list(entries), ["build"])
        entry = entries["build"]
        self.assertEqual(entry.frequency, 2)
        self.assertEqual(entry.cumulative_duration_ns, 15 * SECOND)
        self.assertEqual(entry.success_count, 1)
        self.assertEqual(entry.failure_count, 1)

    def test_frequency_invariant(self):
        rng = random.Random(7)
        statuses = list(JobStatus)
        results = [
            make_result(rng.choice(["a", "b", "c"]), rng.choice(statuses), rng.randint(1, 50))
            for _ in range(200)
        ]
        entries = aggregate_results(results)
        for name, entry in entries.items():
            expected = sum(1 for r in results if r.name == name and r.status.is_countable)
            self.assertEqual(entry.frequency, expected)
            self.assertEqual(entry.frequency, entry.success_count + entry.failure_count)
            self.assertGreater(entry.frequency, 0)

    def test_fresh_state_per_call(self):
        results = [make_result("build", JobStatus.SUCCESS, 10)]
        aggregate_results(results)
        self.assertEqual(aggregate_results(results)["build"].frequency, 1)

    def test_no_countable_records(self):
        self.assertEqual(aggregate_results([make_result("build", JobStatus.QUEUED, 1)]), {})


class TestRankByDuration(unittest.TestCase):
    """Test the duration ranker"""

    def test_slowest_first(self):
        entries = [
            AggregateEntry("fast", 1, 1 * SECOND, 1, 0),
            AggregateEntry("slow", 2, 20 * SECOND, 2, 0),
            AggregateEntry("medium", 1, 5 * SECOND, 0, 1),
        ]
        self.assertEqual([e.name for e in rank_by_duration(entries)], ["slow", "medium", "fast"])

    def test_equal_average_ties_on_descending_name(self):
        entries = [
            AggregateEntry("alpha", 1, 10 * SECOND, 1, 0),
            AggregateEntry("gamma", 2, 20 * SECOND, 2, 0),
            AggregateEntry("beta", 4, 40 * SECOND, 4, 0),
        ]
        for _ in range(5):
            random.shuffle(entries)
            self.assertEqual([e.name for e in rank_by_duration(entries)], ["gamma", "beta", "alpha"])

    def test_compares_at_nanosecond_precision(self):
        entries = [
            AggregateEntry("a", 1, 10 * SECOND, 1, 0),
            AggregateEntry("b", 1, 10 * SECOND + 1, 1, 0),
        ]
        self.assertEqual([e.name for e in rank_by_duration(entries)], ["b", "a"])


class TestRankBySuccessRate(unittest.TestCase):
    """Test the success-rate ranker"""

    def test_lowest_failure_rate_first(self):
        entries = [
            AggregateEntry("flaky", 4, 0, 2, 2),
            AggregateEntry("solid", 5, 0, 5, 0),
            AggregateEntry("broken", 3, 0, 0, 3),
            AggregateEntry("mostly", 4, 0, 3, 1),
        ]
        self.assertEqual([e.name for e in rank_by_success_rate(entries)],
                         ["solid", "mostly", "flaky", "broken"])

    def test_equal_cross_products_tie_on_descending_name(self):
        # 8 * 1 == 4 * 2
        a = AggregateEntry("a", 10, 0, 8, 2)
        b = AggregateEntry("b", 5, 0, 4, 1)
        self.assertEqual([e.name for e in rank_by_success_rate([a, b])], ["b", "a"])
        self.assertEqual([e.name for e in rank_by_success_rate([b, a])], ["b", "a"])

    def test_entries_without_runs_sort_last(self):
        entries = [
            AggregateEntry("empty-b"),
            AggregateEntry("broken", 3, 0, 0, 3),
            AggregateEntry("empty-a"),
            AggregateEntry("solid", 5, 0, 5, 0),
        ]
        for _ in range(5):
            random.shuffle(entries)
            self.assertEqual([e.name for e in rank_by_success_rate(entries)],
                             ["solid", "broken", "empty-b", "empty-a"])


class TestFormatting(unittest.TestCase):
    """Test table output"""

    def test_format_duration_rounds_to_seconds(self):
        self.assertEqual(format_duration(7_499_999_999), "0:00:07")
        self.assertEqual(format_duration(7_500_000_000), "0:00:08")
        self.assertEqual(format_duration(3723 * SECOND), "1:02:03")
        self.assertEqual(format_duration(0), "0:00:00")

    def test_duration_table(self):
        entries = [
            AggregateEntry("build", 2, 15 * SECOND, 1, 1),
            AggregateEntry("integration-test", 1, 90 * SECOND, 1, 0),
        ]
        self.assertEqual(format_duration_table(entries).splitlines(), [
            "Job name         Average job duration",
            "--------         --------------------",
            "integration-test 0:01:30",
            "build            0:00:08",
        ])

    def test_success_rate_table(self):
        entries = [
            AggregateEntry("build", 2, 0, 1, 1),
            AggregateEntry("lint", 3, 0, 3, 0),
        ]
        self.assertEqual(format_success_rate_table(entries).splitlines(), [
            "Job name Success Rate",
            "-------- ------------",
            "lint     3/3 (100%)",
            "build    1/2 (50%)",
        ])


class TestEndToEnd(unittest.TestCase):
    """Two input files through load, aggregate and print"""

    def write_file(self, directory, filename, documents):
        path = os.path.join(directory, filename)
        with open(path, "w") as f:
            json.dump(documents, f)
        return path

    def test_two_files(self):
        with tempfile.TemporaryDirectory() as tmp:
            first = self.write_file(tmp, "from-0-to-0.json", [{
                "username": "acme", "reponame": "rocket", "branch": "master", "build_num": 1,
                "status": "success",
                "start_time": "2020-01-01T00:00:00.000Z", "stop_time": "2020-01-01T00:00:10.000Z",
                "workflows": {"job_name": "build"},
            }])
            second = self.write_file(tmp, "from-1-to-1.json", [{
                "username": "acme", "reponame": "rocket", "branch": "master", "build_num": 2,
                "status": "failed",
                "start_time": "2020-01-02T00:00:00.000Z", "stop_time": "2020-01-02T00:00:05.000Z",
                "workflows": {"job_name": "build"},
            }])
            results = load_all([first, second])

        entries = aggregate_results(results)
        self.assertEqual(entries, {"build": AggregateEntry("build", 2, 15 * SECOND, 1, 1)})
        self.assertEqual(entries["build"].average_duration_ns, 7_500_000_000)

        out = io.StringIO()
        with redirect_stdout(out):
            print_job_stats(results, AnalyzeOptions(print_duration_graph=False))
        output = out.getvalue()
        self.assertIn("Number of job results: 2", output)
        self.assertIn("build    1/2 (50%)", output)
        self.assertIn("build    0:00:08", output)

    @patch("analyzer.timeseries.print_success_graphs")
    @patch("analyzer.timeseries.print_duration_graphs")
    def test_options_select_reports(self, mock_duration, mock_success):
        results = [make_result("build", JobStatus.SUCCESS, 10)]
        out = io.StringIO()
        with redirect_stdout(out):
            print_job_stats(results, AnalyzeOptions(print_success_rate=False, print_duration=False,
                                                    print_success_graph=True))
        self.assertNotIn("Success Rate", out.getvalue())
        self.assertNotIn("Average job duration", out.getvalue())
        mock_duration.assert_called_once()
        mock_success.assert_called_once()


if __name__ == "__main__":
    unittest.main()

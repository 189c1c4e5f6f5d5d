#!/usr/bin/env python3
"""
CircleCI job stats - download CircleCI build results and analyze job
duration and success rate
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from analyzer import AnalyzeOptions, print_job_stats
from circleci_client import CircleCIClient, DownloadParams
from constants import DEFAULT_DOWNLOAD_DIR, DEFAULT_VCS_TYPE, VERSION
from exceptions import CircleStatsError, ConfigurationError
from filters import filter_results
from loader import discover_input_files, load_all
from models import FilterCriteria, JobStatusFilter

logger = logging.getLogger("circle_stats")

MODES = ("analyze", "download", "version")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="circle-stats",
        description="Download CircleCI build results and print per-job duration and success rate",
    )
    parser.add_argument("--mode", choices=MODES, default="analyze",
                        help="\"download\", \"analyze\" or \"version\"")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    filters = parser.add_argument_group("filters")
    filters.add_argument("--username", help="Only consider builds of this user/organization")
    filters.add_argument("--reponame", help="Only consider builds of this repository")
    filters.add_argument("--branch", help="Only consider builds of this branch")
    filters.add_argument("--jobname", help="Only consider job results for this job name. Analyze mode only.")
    filters.add_argument("--jobstatus",
                         help="Only consider job results with this completion status")

    analyze = parser.add_argument_group("analyze mode")
    analyze.add_argument("--input-files", default="",
                         help="Comma-separated list of files containing downloaded job results "
                              "(default: every *.json file in --download-dir)")
    analyze.add_argument("files", nargs="*", help="More input files")
    analyze.add_argument("--print-success-rate", action=argparse.BooleanOptionalAction, default=True,
                         help="Print per-job aggregated success rate")
    analyze.add_argument("--print-duration", action=argparse.BooleanOptionalAction, default=True,
                         help="Print per-job average duration")
    analyze.add_argument("--print-duration-graph", action=argparse.BooleanOptionalAction, default=True,
                         help="Print per-job duration time series graph")
    analyze.add_argument("--print-success-graph", action=argparse.BooleanOptionalAction, default=False,
                         help="Print per-job success time series graph")

    download = parser.add_argument_group("download mode")
    download.add_argument("--circle-token", default=os.getenv("CIRCLE_TOKEN"),
                          help="CircleCI access token (default: $CIRCLE_TOKEN)")
    download.add_argument("--vcs-type", default=DEFAULT_VCS_TYPE,
                          help="VCS type, see https://circleci.com/docs/api/#version-control-systems-vcs-type")
    download.add_argument("--offset", type=int, default=0, help="Build results download start offset")
    download.add_argument("--limit", type=int, default=0, help="Number of build results to download")
    download.add_argument("--download-dir", default=DEFAULT_DOWNLOAD_DIR,
                          help="Directory to download CircleCI data to")
    return parser


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


class CircleStats:
    """Runs one CLI invocation"""

    def __init__(self, args: argparse.Namespace, log: Optional[logging.Logger] = None):
        self.args = args
        self.log = log or logger

    def run(self) -> int:
        if self.args.mode == "version":
            print(VERSION)
            return 0
        if self.args.mode == "download":
            return self.download()
        return self.analyze()

    def input_files(self) -> List[str]:
        files = [f for f in self.args.input_files.split(",") if f]
        # Positional arguments are input files as well
        files.extend(f for f in self.args.files if f)
        if not files:
            files = discover_input_files(self.args.download_dir)
            self.log.debug("Discovered %d input file(s) in %s", len(files), self.args.download_dir)
        return files

    def filter_criteria(self) -> FilterCriteria:
        return FilterCriteria(
            username=self.args.username,
            repository_name=self.args.reponame,
            branch_name=self.args.branch,
            name=self.args.jobname,
            status=self.args.jobstatus,
        )

    def analyze(self) -> int:
        files = self.input_files()
        if not files:
            print(f"❌ No input files given and no *.json files found in {self.args.download_dir}",
                  file=sys.stderr)
            return 1

        print(f"🔍 Analyzing {len(files)} input file(s)...")
        results = load_all(files, self.log)
        results = filter_results(results, self.filter_criteria(), self.log)
        options = AnalyzeOptions(
            print_success_rate=self.args.print_success_rate,
            print_duration=self.args.print_duration,
            print_duration_graph=self.args.print_duration_graph,
            print_success_graph=self.args.print_success_graph,
        )
        print_job_stats(results, options, self.log)
        return 0

    def download_params(self) -> DownloadParams:
        job_status = JobStatusFilter.parse(self.args.jobstatus) if self.args.jobstatus else None
        return DownloadParams(
            circle_token=self.args.circle_token,
            vcs_type=self.args.vcs_type,
            username=self.args.username,
            repository_name=self.args.reponame,
            branch_name=self.args.branch,
            start=self.args.offset,
            limit=self.args.limit,
            download_dir=self.args.download_dir,
            job_status=job_status,
        )

    def download(self) -> int:
        params = self.download_params()
        params.validate()
        print(f"📥 Downloading {params.limit} build result(s) starting at offset {params.start}...")
        written = CircleCIClient(params, log=self.log).download()
        print(f"✅ Downloaded {len(written)} page(s) to {params.download_dir}")
        return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for CircleCI job stats"""
    args = create_parser().parse_args(argv)
    configure_logging(args.debug)
    try:
        return CircleStats(args).run()
    except ConfigurationError as e:
        print(f"❌ Invalid configuration: {e}", file=sys.stderr)
        return 1
    except CircleStatsError as e:
        print(f"❌ CircleCI job stats failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

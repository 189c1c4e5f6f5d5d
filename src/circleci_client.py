#!/usr/bin/env python3
"""
CircleCI client utilities
"""

import logging
import os
import time
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple
from urllib.parse import quote

import requests

from constants import (
    CIRCLECI_API_BASE,
    DEFAULT_DOWNLOAD_DIR,
    DEFAULT_VCS_TYPE,
    MAX_DOWNLOAD_PAGE_SIZE,
    MAX_FETCH_RETRY_COUNT,
    OUTPUT_FILENAME_PATTERN,
    REQUEST_TIMEOUT_SECONDS,
)
from exceptions import ConfigurationError, DownloadError
from models import JobStatusFilter

logger = logging.getLogger(__name__)


@dataclass
class DownloadParams:
    """Parameters for downloading build results from CircleCI"""
    circle_token: Optional[str]
    vcs_type: Optional[str] = DEFAULT_VCS_TYPE
    username: Optional[str] = None
    repository_name: Optional[str] = None
    branch_name: Optional[str] = None
    start: int = 0
    limit: int = 0
    download_dir: str = DEFAULT_DOWNLOAD_DIR
    job_status: Optional[JobStatusFilter] = None

    def validate(self) -> None:
        """Fail fast, before any network or file activity"""
        if not self.circle_token:
            raise ConfigurationError("Circle CI token is empty")
        if not self.vcs_type:
            raise ConfigurationError("VCS name cannot be empty")
        username_provided = bool(self.username)
        repository_provided = bool(self.repository_name)
        if username_provided != repository_provided:
            raise ConfigurationError(
                f"Only one of the username({self.username!r}) or "
                f"repository name({self.repository_name!r}) is provided"
            )
        if self.branch_name and not (username_provided and repository_provided):
            raise ConfigurationError(
                f"branch name({self.branch_name!r}) cannot be provided without username and repository name"
            )
        if self.start < 0:
            raise ConfigurationError(f"start offset cannot be negative, it is {self.start}")
        if self.limit <= 0:
            raise ConfigurationError(f"limit must be > 0, it is {self.limit}")


def page_ranges(start: int, limit: int, page_size: int = MAX_DOWNLOAD_PAGE_SIZE) -> List[Tuple[int, int]]:
    """Split [start, start + limit) into (offset, count) pages"""
    end = start + limit - 1
    pages = []
    while start <= end:
        pages.append((start, min(page_size, end - start + 1)))
        start += page_size
    return pages


def output_filename(download_dir: str, start: int, limit: int) -> str:
    return os.path.join(download_dir, OUTPUT_FILENAME_PATTERN.format(start=start, end=start + limit - 1))


class CircleCIClient:
    """Downloads recent build results, one JSON file per page"""

    def __init__(self, params: DownloadParams, base_url: str = CIRCLECI_API_BASE,
                 max_retries: int = MAX_FETCH_RETRY_COUNT, log: Optional[logging.Logger] = None):
        self.params = params
        self.base_url = base_url
        self.max_retries = max_retries
        self.log = log or logger

    def download(self) -> List[str]:
        """Download every page of the configured range, returns the files written"""
        self.params.validate()
        written = []
        for start, count in page_ranges(self.params.start, self.params.limit):
            self.log.debug("Downloading from %d to %d (both inclusive)", start, start + count - 1)
            written.append(self.download_page(start, count))
        self.log.debug("Downloading finished")
        return written

    def download_page(self, start: int, limit: int) -> str:
        page_params = replace(self.params, start=start, limit=limit)
        url = self.build_url(page_params)
        query = self.build_query(page_params)
        self.log.debug("Downloading from %s", url)
        body = self.fetch(url, query)

        filename = output_filename(self.params.download_dir, start, limit)
        self._ensure_directory(os.path.dirname(filename))
        with open(filename, "wb") as f:
            f.write(body)
        print(f"📥 Wrote {filename}")
        return filename

    def build_url(self, params: DownloadParams) -> str:
        """Project URL when a project is given, recent builds across all projects otherwise"""
        if not params.username:
            return f"{self.base_url}/recent-builds"
        url = "{}/project/{}/{}/{}".format(
            self.base_url,
            quote(params.vcs_type, safe=""),
            quote(params.username, safe=""),
            quote(params.repository_name, safe=""),
        )
        if params.branch_name:
            url = f"{url}/tree/{quote(params.branch_name, safe='')}"
        return url

    def build_query(self, params: DownloadParams) -> dict:
        query = {
            "circle-token": params.circle_token,
            "offset": str(params.start),
            "limit": str(params.limit),
            "shallow": "true",
        }
        # The all-projects endpoint does not accept a status filter
        if params.username and params.job_status is not None:
            query["filter"] = params.job_status.value
        return query

    def fetch(self, url: str, query: dict) -> bytes:
        """GET url, retrying transport failures with a growing pause"""
        headers = {
            # Without it CircleCI answers in EDN
            "Accept": "application/json",
        }
        last_error = None
        for attempt in range(1, self.max_retries + 1):
            time.sleep(attempt - 1)
            try:
                response = requests.get(url, params=query, headers=headers, timeout=REQUEST_TIMEOUT_SECONDS)
                body = response.content
            except requests.RequestException as e:
                print(f"⚠️  Failed to fetch on try {attempt}: {url}")
                last_error = e
                continue

            if response.status_code != 200:
                raise DownloadError(url, f"HTTP {response.status_code} {response.reason}", attempt)
            try:
                documents = response.json()
            except ValueError as e:
                raise DownloadError(url, f"response is not JSON: {e}", attempt) from None
            if not isinstance(documents, list):
                raise DownloadError(url, "response is not a JSON array", attempt)
            return body

        raise DownloadError(url, str(last_error), self.max_retries)

    def _ensure_directory(self, dirpath: str) -> None:
        # Creates at most one missing level, like the download directory itself
        if not dirpath or os.path.isdir(dirpath):
            return
        os.mkdir(dirpath)

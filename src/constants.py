#!/usr/bin/env python3
"""
Constants for CircleCI job stats
"""

VERSION = "0.1.0"

# CircleCI v1.1 REST API
CIRCLECI_API_BASE = "https://circleci.com/api/v1.1"

# CircleCI refuses to return more than 100 builds in a single request
MAX_DOWNLOAD_PAGE_SIZE = 100
MAX_FETCH_RETRY_COUNT = 5
REQUEST_TIMEOUT_SECONDS = 60

DEFAULT_VCS_TYPE = "github"
DEFAULT_DOWNLOAD_DIR = "./circleci_data"

# Page files are named after the inclusive offset range they hold
OUTPUT_FILENAME_PATTERN = "from-{start}-to-{end}.json"

# Number of consecutive points averaged into one graph point
MOVING_AVERAGE_WINDOW = 10
MAX_GRAPH_WIDTH = 100  # characters
MAX_GRAPH_HEIGHT = 20  # lines

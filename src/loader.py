#!/usr/bin/env python3
"""
Loading of downloaded CircleCI build results
"""

import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from exceptions import MalformedInputError
from models import JobResult

logger = logging.getLogger(__name__)


def load_job_results(filename: str) -> List[JobResult]:
    """Read one JSON array file of build results"""
    path = Path(filename)
    try:
        contents = path.read_bytes()
    except OSError as e:
        raise MalformedInputError(f"Unable to read file: {e.strerror or e}", filename) from None

    try:
        documents = json.loads(contents)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedInputError(f"Failed to extract JSON: {e}", filename) from None

    if not isinstance(documents, list):
        raise MalformedInputError("Expected a JSON array of build results", filename)

    return [JobResult.from_json(document, source=filename) for document in documents]


def load_all(filenames: Iterable[str], log: Optional[logging.Logger] = None) -> List[JobResult]:
    """Concatenate the results of every file, in the order given"""
    log = log or logger
    results: List[JobResult] = []
    for filename in filenames:
        # Ignore empty file names, e.g. from a trailing comma
        if not filename:
            continue
        log.debug("Input file: %s", filename)
        results.extend(load_job_results(filename))
    return results


def discover_input_files(directory: str) -> List[str]:
    """List the *.json files directly inside directory, sorted by name"""
    path = Path(directory)
    if not path.is_dir():
        return []
    return sorted(str(child) for child in path.glob("*.json") if child.is_file())

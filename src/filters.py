#!/usr/bin/env python3
"""
Filtering of job results before analysis
"""

import logging
from typing import List, Optional

from models import FilterCriteria, JobResult

logger = logging.getLogger(__name__)


def filter_results(results: List[JobResult], criteria: FilterCriteria,
                   log: Optional[logging.Logger] = None) -> List[JobResult]:
    """Keep the results matching every set criterion, preserving order"""
    log = log or logger
    for label, value in criteria.active():
        log.debug("Filtering on %s: %s", label, value)

    return [result for result in results if matches(result, criteria)]


def matches(result: JobResult, criteria: FilterCriteria) -> bool:
    """Exact, case-sensitive match against each criterion that is set"""
    if criteria.username and result.owner != criteria.username:
        return False
    if criteria.repository_name and result.repo != criteria.repository_name:
        return False
    if criteria.branch_name and result.branch != criteria.branch_name:
        return False
    if criteria.name and result.name != criteria.name:
        return False
    if criteria.status and result.status.value != criteria.status:
        return False
    return True

"""
Relative velocity estimate from paired satellite measurements.

For every satellite seen by both devices, the difference of their
pseudorange rates approximates the rate at which the two receivers move
relative to each other along that satellite's line of sight. Averaging over
the common satellites gives a single scalar:

    v_rel = mean(a.prRate[svid] - b.prRate[svid])  for svid in common

This is a rough approximation, not a relative velocity vector. It carries no
direction information and makes no correction for carrier frequency or clock
drift. Negative values are read as "closing".
"""

import logging
from typing import List, Optional

import numpy as np

from cpm_core.proto.report import Report

logger = logging.getLogger(__name__)


def matched_rate_differences(a: Report, b: Report) -> List[float]:
    """
    Pseudorange-rate differences for satellites present in both reports.

    Args:
        a: Reference report
        b: Other report

    Returns:
        List of (a.rate - b.rate), one per matching (svid, svid) pair, in
        the order of a's measurements
    """
    diffs = []
    for ma in a.measurements:
        for mb in b.measurements:
            if ma.svid == mb.svid:
                diffs.append(ma.pseudorange_rate_mps - mb.pseudorange_rate_mps)
    return diffs


def relative_velocity(a: Optional[Report], b: Optional[Report]) -> float:
    """
    Average pseudorange-rate difference between two reports.

    Args:
        a: Reference report, or None
        b: Other report, or None

    Returns:
        Mean of (a.rate - b.rate) over matched satellites in m/s, or 0.0
        when either side is missing, has no measurements, or no satellite
        ids match
    """
    if a is None or b is None:
        return 0.0
    if not a.measurements or not b.measurements:
        return 0.0

    diffs = matched_rate_differences(a, b)
    if not diffs:
        logger.debug(f"No common satellites between {a.device_id} and {b.device_id}")
        return 0.0

    return float(np.mean(diffs))

"""Task classification and status policy.

Both are pure functions of a single string so the graph builder and the
renderer agree on them without sharing state.
"""

import re
from enum import StrEnum


class Partition(StrEnum):
    APP = "APP"
    EPOS = "EPOS"


# Literal, case-sensitive bracketed tags anywhere in the summary.
_APP_TAG_PATTERN = re.compile(r"\[(APP|API|BO)\]")

CLOSED_STATUSES: frozenset[str] = frozenset({"Done", "Closed", "Resolved"})

BLOCKED_VISUAL_STATUSES: frozenset[str] = frozenset(
    {"On Hold", "In Review", "QA Ready", "QA In Progress"}
)


def classify(summary: str) -> Partition:
    """Return APP if the summary carries an [APP], [API] or [BO] tag, else EPOS."""
    if _APP_TAG_PATTERN.search(summary):
        return Partition.APP
    return Partition.EPOS


def is_closed(status: str) -> bool:
    """Closed tasks are left out of the graph entirely."""
    return status in CLOSED_STATUSES


def is_blocked_visual(status: str) -> bool:
    """Return True if the task should be drawn with the "blocked" style.

    Only affects rendering; graph topology ignores it.
    """
    return status in BLOCKED_VISUAL_STATUSES

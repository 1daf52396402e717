"""
Productivity arithmetic over check records.

Everything here is a pure function of its arguments so the Overall
snapshot and the per-user snapshots can be derived from one read of the
record set. Intervals are taken to start and end on the same calendar
day; a check that crosses midnight is not unwrapped.
"""
import math
from collections import OrderedDict
from datetime import time
from typing import Dict, Iterable, List, Optional, Sequence

from pharmacy_portal.schemas.pac import PacRecord
from pharmacy_portal.schemas.productivity import (
    OVERALL_USERNAME,
    UNKNOWN_USERNAME,
    ProductivityPage,
    UserProductivity,
    UserProductivityStreamItem,
)
from pharmacy_portal.logs import debug_logger

SECONDS_PER_HOUR = 3600.0


def _seconds_of_day(value: time) -> int:
    return value.hour * 3600 + value.minute * 60 + value.second


def elapsed_seconds(start: time, end: time) -> int:
    """Whole seconds between two times of the same day"""
    return _seconds_of_day(end) - _seconds_of_day(start)


def average_time_per_pouch(total_seconds: float, total_pouches: int) -> float:
    return total_seconds / total_pouches if total_pouches > 0 else 0.0


def average_pouches_per_hour(total_pouches: int, total_seconds: float) -> float:
    return (total_pouches * SECONDS_PER_HOUR) / total_seconds if total_seconds > 0 else 0.0


def compute_user_snapshot(username: Optional[str], records: Iterable[PacRecord]) -> UserProductivity:
    """Snapshot for one user from that user's check records"""
    total_submissions = 0
    total_pouches = 0
    total_seconds = 0.0
    for record in records:
        total_submissions += 1
        total_pouches += record.pouches_checked
        total_seconds += elapsed_seconds(record.start_time, record.end_time)

    return UserProductivity(
        username=username or UNKNOWN_USERNAME,
        total_submissions=total_submissions,
        total_pouches_checked=total_pouches,
        avg_time_per_pouch=average_time_per_pouch(total_seconds, total_pouches),
        avg_pouches_per_hour=average_pouches_per_hour(total_pouches, total_seconds),
    )


def compute_overall_snapshot(snapshots: Sequence[UserProductivity]) -> UserProductivity:
    """
    Combine per-user snapshots into the Overall snapshot.

    Time per pouch is weighted by each user's pouch count. Pouches per
    hour is the plain mean of the per-user rates, so a user with a single
    short check counts as much as a full-time checker.
    """
    total_submissions = sum(s.total_submissions for s in snapshots)
    total_pouches = sum(s.total_pouches_checked for s in snapshots)

    weighted_time = sum(s.avg_time_per_pouch * s.total_pouches_checked for s in snapshots)
    avg_time_per_pouch = weighted_time / total_pouches if total_pouches > 0 else 0.0

    if snapshots:
        avg_pouches_per_hour = sum(s.avg_pouches_per_hour for s in snapshots) / len(snapshots)
    else:
        avg_pouches_per_hour = 0.0

    return UserProductivity(
        username=OVERALL_USERNAME,
        total_submissions=total_submissions,
        total_pouches_checked=total_pouches,
        avg_time_per_pouch=avg_time_per_pouch,
        avg_pouches_per_hour=avg_pouches_per_hour,
    )


def group_by_user(records: Iterable[PacRecord]) -> Dict[str, List[PacRecord]]:
    grouped: Dict[str, List[PacRecord]] = OrderedDict()
    for record in records:
        grouped.setdefault(record.username, []).append(record)
    return grouped


def rank_snapshots(snapshots: Iterable[UserProductivity]) -> List[UserProductivity]:
    """Most submissions first, ties broken by username so pages never shuffle"""
    return sorted(snapshots, key=lambda s: (-s.total_submissions, s.username))


def compute_user_snapshots(records: Iterable[PacRecord]) -> List[UserProductivity]:
    grouped = group_by_user(records)
    return rank_snapshots(compute_user_snapshot(username, pacs) for username, pacs in grouped.items())


def paginate(snapshots: Sequence[UserProductivity], page: int, size: int) -> ProductivityPage:
    if page < 0:
        raise ValueError("Page index must not be negative")
    if size < 1:
        raise ValueError("Page size must be at least 1")

    total = len(snapshots)
    start = page * size
    return ProductivityPage(
        content=list(snapshots[start:start + size]),
        page=page,
        size=size,
        total_elements=total,
        total_pages=math.ceil(total / size) if total else 0,
    )


def snapshot_from_row(row: Sequence) -> UserProductivity:
    """
    Map a storage aggregate row to a snapshot.

    Row layout: (username, submissions, pouches, avg time per pouch,
    avg pouches per hour). Rows that cannot be read become an all-zero
    "Unknown" snapshot instead of failing the whole page.
    """
    try:
        username, submissions, pouches, avg_time, avg_rate = row
        debug_logger.debug(f"Mapping productivity data for user: {username}")
        return UserProductivity(
            username=str(username),
            total_submissions=int(submissions),
            total_pouches_checked=int(pouches),
            avg_time_per_pouch=float(avg_time),
            avg_pouches_per_hour=float(avg_rate),
        )
    except (TypeError, ValueError) as e:
        debug_logger.error(f"Error mapping productivity data: {e}")
        return UserProductivity(username=UNKNOWN_USERNAME)


def format_duration(seconds: float) -> str:
    """Render seconds as H:MM, rounding to the nearest minute"""
    total_minutes = int(round(max(seconds, 0.0) / 60.0))
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours}:{minutes:02d}"


def to_stream_item(snapshot: UserProductivity) -> UserProductivityStreamItem:
    return UserProductivityStreamItem(
        username=snapshot.username,
        total_submissions=snapshot.total_submissions,
        total_pouches_checked=snapshot.total_pouches_checked,
        avg_time_duration=format_duration(snapshot.avg_time_per_pouch),
        avg_pouches_per_hour=snapshot.avg_pouches_per_hour,
    )

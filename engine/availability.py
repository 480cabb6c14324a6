"""Free-slot computation over a contractor's working day"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from backend.app.core.exceptions import ValidationException
from backend.app.schemas.availability import AssignmentWindow, TimeSlot

DEFAULT_SLOT_GRANULARITY = timedelta(hours=1)

Interval = Tuple[datetime, datetime]


def to_naive_utc(value: datetime) -> datetime:
    """Calendar math runs on naive UTC datetimes"""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def working_window(working_start: time, working_end: time, target_date: date) -> Interval:
    """
    Working hours of one day as absolute datetimes

    Raises:
        ValidationException: If working_start is not before working_end
    """
    if working_start >= working_end:
        raise ValidationException(
            f"Working hours start {working_start} must be before end {working_end}",
            details={"working_start": str(working_start), "working_end": str(working_end)}
        )
    return datetime.combine(target_date, working_start), datetime.combine(target_date, working_end)


def busy_intervals(
    assignments: Iterable[AssignmentWindow],
    window: Interval,
    buffer: timedelta = timedelta(0)
) -> List[Interval]:
    """
    Occupied time inside the window, sorted and merged

    Assignments may arrive unsorted or overlapping; anything entirely
    outside the window is dropped and the rest is clipped to it.
    """
    window_start, window_end = window
    clipped: List[Interval] = []
    for assignment in assignments:
        start = to_naive_utc(assignment.start) - buffer
        end = to_naive_utc(assignment.start) + timedelta(hours=assignment.duration_hours) + buffer
        if end <= window_start or start >= window_end:
            continue
        clipped.append((max(start, window_start), min(end, window_end)))

    clipped.sort()
    merged: List[Interval] = []
    for start, end in clipped:
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def _iter_free_slots(
    working_start: time,
    working_end: time,
    assignments: Iterable[AssignmentWindow],
    target_date: date,
    minimum: timedelta,
    buffer: timedelta
) -> Iterator[TimeSlot]:
    window = working_window(working_start, working_end, target_date)
    cursor, window_end = window

    for busy_start, busy_end in busy_intervals(assignments, window, buffer):
        if busy_start > cursor and busy_start - cursor >= minimum:
            yield TimeSlot(start=cursor, end=busy_start)
        cursor = max(cursor, busy_end)

    if window_end > cursor and window_end - cursor >= minimum:
        yield TimeSlot(start=cursor, end=window_end)


def compute_available_slots(
    working_start: time,
    working_end: time,
    assignments: Iterable[AssignmentWindow],
    target_date: date,
    slot_granularity: timedelta = DEFAULT_SLOT_GRANULARITY,
    min_slot_length: Optional[timedelta] = None,
    buffer: timedelta = timedelta(0)
) -> List[TimeSlot]:
    """
    Open intervals on target_date after subtracting active assignments

    Args:
        working_start: Start of the working day (time of day)
        working_end: End of the working day (time of day)
        assignments: Active assignment windows, any order
        target_date: Day to compute
        slot_granularity: Shortest interval worth returning
        min_slot_length: Overrides slot_granularity, e.g. a job's duration
        buffer: Padding added on both sides of every assignment

    Returns:
        Chronologically ordered free slots; empty when the day is full.
        A day with no assignments is one slot spanning the working hours,
        even when those hours are shorter than slot_granularity.
    """
    if min_slot_length is not None:
        minimum = min_slot_length
    else:
        window_start, window_end = working_window(working_start, working_end, target_date)
        minimum = min(slot_granularity, window_end - window_start)
    return list(_iter_free_slots(working_start, working_end, assignments, target_date, minimum, buffer))


def has_any_availability(
    working_start: time,
    working_end: time,
    assignments: Iterable[AssignmentWindow],
    target_date: date,
    min_slot_length: timedelta = DEFAULT_SLOT_GRANULARITY,
    buffer: timedelta = timedelta(0)
) -> bool:
    """Stops at the first free interval of at least min_slot_length"""
    slots = _iter_free_slots(working_start, working_end, assignments, target_date, min_slot_length, buffer)
    return next(slots, None) is not None


def slot_covers(slots: Sequence[TimeSlot], start: datetime, duration: timedelta) -> bool:
    """Whether any slot fully contains [start, start + duration]"""
    start = to_naive_utc(start)
    return any(slot.covers(start, duration) for slot in slots)

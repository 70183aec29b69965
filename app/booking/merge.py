"""
Merge-on-refresh for booking records.

A refreshed record must not drop segments the cache already had, while
genuinely updated segments override their cached version.
"""
from collections import OrderedDict
from dataclasses import replace
from typing import Dict, Iterable, Tuple

from .models import BookingRecord, Segment


def merge_segments(
    cached: Iterable[Segment],
    incoming: Iterable[Segment],
) -> Tuple[Segment, ...]:
    """
    Merge two segment collections by id.

    Ids present on both sides keep the incoming segment; ids unique to
    either side are kept. Result is sorted ascending by id.
    """
    by_id: Dict[int, Segment] = OrderedDict()
    for segment in cached:
        by_id[segment.id] = segment
    for segment in incoming:
        by_id[segment.id] = segment
    return tuple(by_id[segment_id] for segment_id in sorted(by_id))


def merge_booking_data(cached: BookingRecord, incoming: BookingRecord) -> BookingRecord:
    """Scalars from the incoming record, segments merged by id."""
    return replace(incoming, segments=merge_segments(cached.segments, incoming.segments))

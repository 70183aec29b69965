"""
Tests for domain expiry evaluation, formatting, and merge-on-refresh.
"""
import pytest

from app.booking.errors import DataExpiredError, ErrorType
from app.booking.expiry import (
    WARNING_WINDOW_MS,
    ensure_not_expired,
    evaluate_expiry,
    format_remaining_time,
    format_time_until_expiry,
    should_refresh,
)
from app.booking.merge import merge_booking_data, merge_segments


EXPIRY_SECONDS = 1_722_409_261
EXPIRY_MS = EXPIRY_SECONDS * 1000


# =============================================================================
# Expiry Evaluator
# =============================================================================

class TestEvaluateExpiry:
    """Tests for evaluate_expiry and should_refresh."""

    @pytest.fixture
    def record(self, record_factory):
        return record_factory(expiry_time=str(EXPIRY_SECONDS))

    @pytest.mark.parametrize("offset_ms, expired", [
        (-3_600_000, False),
        (-1, False),
        (0, True),
        (1, True),
        (3_600_000, True),
    ])
    def test_expired_iff_now_at_or_after_expiry(self, record, offset_ms, expired):
        info = evaluate_expiry(record, now=EXPIRY_MS + offset_ms)
        assert info.is_expired is expired

    def test_time_until_expiry_uses_seconds_to_ms(self, record):
        info = evaluate_expiry(record, now=EXPIRY_MS - 90_000)
        assert info.time_until_expiry_ms == 90_000

    def test_time_until_expiry_may_be_negative(self, record):
        info = evaluate_expiry(record, now=EXPIRY_MS + 5_000)
        assert info.time_until_expiry_ms == -5_000

    @pytest.mark.parametrize("offset_ms", [0, 1, 60_000, 86_400_000])
    def test_near_expiry_is_superset_of_expired(self, record, offset_ms):
        info = evaluate_expiry(record, now=EXPIRY_MS + offset_ms)
        assert info.is_expired
        assert info.is_near_expiry

    def test_warning_window_boundary(self, record):
        at_window = evaluate_expiry(record, now=EXPIRY_MS - WARNING_WINDOW_MS)
        inside = evaluate_expiry(record, now=EXPIRY_MS - WARNING_WINDOW_MS + 1)
        assert not at_window.is_near_expiry
        assert inside.is_near_expiry
        assert not inside.is_expired

    def test_should_refresh(self, record):
        assert not should_refresh(record, now=EXPIRY_MS - 2 * WARNING_WINDOW_MS)
        assert should_refresh(record, now=EXPIRY_MS - 60_000)
        assert should_refresh(record, now=EXPIRY_MS + 60_000)

    def test_to_dict_uses_wire_names(self, record):
        info = evaluate_expiry(record, now=EXPIRY_MS - 1000)
        assert info.to_dict() == {
            "isExpired": False,
            "timeUntilExpiry": 1000,
            "isNearExpiry": True,
        }

    def test_ensure_not_expired(self, record):
        assert ensure_not_expired(record, now=EXPIRY_MS - 1) is record
        with pytest.raises(DataExpiredError) as exc_info:
            ensure_not_expired(record, now=EXPIRY_MS + 30_000)
        assert exc_info.value.error_type == ErrorType.DATA_EXPIRED


# =============================================================================
# Formatting
# =============================================================================

class TestFormatting:
    """Tests for expiry display strings."""

    @pytest.mark.parametrize("time_ms", [0, -1, -3_600_000])
    def test_zero_or_negative_is_expired(self, time_ms):
        assert format_time_until_expiry(time_ms) == "expired"

    def test_hours_and_minutes(self):
        assert format_time_until_expiry(90 * 60_000) == "expires in 1h 30m"

    def test_minutes_only(self):
        assert format_time_until_expiry(45 * 60_000) == "expires in 45m"

    def test_ninety_and_forty_five_minutes_differ(self):
        assert format_time_until_expiry(90 * 60_000) != format_time_until_expiry(45 * 60_000)

    def test_minutes_are_floored(self):
        assert format_time_until_expiry(59_999) == "expires in 0m"
        assert format_time_until_expiry(2 * 3_600_000 + 59_999) == "expires in 2h 0m"

    def test_countdown(self):
        assert format_remaining_time(3_725_000) == "01:02:05"
        assert format_remaining_time(0) == "00:00:00"
        assert format_remaining_time(-10_000) == "00:00:00"


# =============================================================================
# Merge-on-refresh
# =============================================================================

class TestMerge:
    """Tests for segment merging."""

    def test_merge_with_itself_is_unchanged(self, record_factory):
        record = record_factory(segment_ids=(1, 2, 3))
        merged = merge_booking_data(record, record)
        assert merged.segments == record.segments
        assert merged.segment_ids == [1, 2, 3]

    def test_fresh_overrides_shared_ids_and_keeps_the_rest(self, record_factory):
        cached = record_factory(segment_ids=(1, 2), tag=" cached")
        fresh = record_factory(segment_ids=(2, 3), tag=" fresh")

        merged = merge_booking_data(cached, fresh)

        assert merged.segment_ids == [1, 2, 3]
        assert merged.segments[0] == cached.segments[0]
        assert merged.segments[1] == fresh.segments[0]
        assert merged.segments[2] == fresh.segments[1]

    def test_scalars_come_from_fresh_record(self, record_factory):
        cached = record_factory(reference="OLD", duration=100, expiry_time="1000")
        fresh = record_factory(reference="NEW", duration=200, expiry_time="2000")

        merged = merge_booking_data(cached, fresh)

        assert merged.ship_reference == "NEW"
        assert merged.duration == 200
        assert merged.expiry_time == "2000"

    def test_result_sorted_by_id(self, record_factory):
        cached = record_factory(segment_ids=(9, 4))
        fresh = record_factory(segment_ids=(7, 1))
        assert [s.id for s in merge_segments(cached.segments, fresh.segments)] == [1, 4, 7, 9]

    def test_merge_does_not_mutate_inputs(self, record_factory):
        cached = record_factory(segment_ids=(1,))
        fresh = record_factory(segment_ids=(2,))
        merge_booking_data(cached, fresh)
        assert cached.segment_ids == [1]
        assert fresh.segment_ids == [2]

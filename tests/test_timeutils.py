from __future__ import annotations

from datetime import datetime, timezone

import pytest

from sellerhub.common.timeutils import (
    extract_from_history,
    first_epoch_ms,
    ms_to_date,
    ms_to_iso,
    to_epoch_ms,
    to_iso,
)

JAN_1_2024_MS = 1_704_067_200_000


def test_epoch_seconds_and_ms_same_moment() -> None:
    assert to_epoch_ms(JAN_1_2024_MS // 1000) == JAN_1_2024_MS
    assert to_epoch_ms(JAN_1_2024_MS) == JAN_1_2024_MS
    assert to_epoch_ms(float(JAN_1_2024_MS // 1000)) == JAN_1_2024_MS


def test_iso_z_is_utc() -> None:
    assert to_epoch_ms("2024-01-01T00:00:00Z") == JAN_1_2024_MS
    assert to_epoch_ms("2024-01-01T08:00:00+08:00") == JAN_1_2024_MS


def test_naive_datetime_assumed_utc() -> None:
    assert to_epoch_ms(datetime(2024, 1, 1)) == JAN_1_2024_MS
    assert to_epoch_ms(datetime(2024, 1, 1, tzinfo=timezone.utc)) == JAN_1_2024_MS


def test_serialized_firestore_timestamps() -> None:
    assert to_epoch_ms({"seconds": 1_704_067_200, "nanoseconds": 500_000_000}) == JAN_1_2024_MS + 500
    assert to_epoch_ms({"_seconds": 1_704_067_200, "_nanoseconds": 0}) == JAN_1_2024_MS


def test_protobuf_style_timestamp() -> None:
    class _Ts:
        def ToMilliseconds(self) -> int:  # noqa: N802
            return JAN_1_2024_MS

    assert to_epoch_ms(_Ts()) == JAN_1_2024_MS


@pytest.mark.parametrize("value", [None, True, False, "", "not a date", float("nan"), {"nope": 1}, [1, 2], object()])
def test_unparseable_values_are_none(value) -> None:
    assert to_epoch_ms(value) is None


def test_first_epoch_ms_skips_zero_and_garbage() -> None:
    assert first_epoch_ms(None, 0, "garbage", 5) == 5000
    assert first_epoch_ms(None, "", 0) is None


def test_history_array_earliest_match_wins() -> None:
    data = {
        "statusHistory": [
            {"status": "packed", "at": 200},
            {"status": "PACKED", "at": 100},
            {"status": "shipped", "at": 50},
        ]
    }
    assert extract_from_history(data, ("packed",)) == 100 * 1000


def test_history_array_alternate_keys() -> None:
    data = {"history": [{"state": "delivered", "timestamp": "2024-01-01T00:00:00Z"}]}
    assert extract_from_history(data, ("delivered",)) == JAN_1_2024_MS


def test_history_map_fallbacks() -> None:
    assert extract_from_history({"statusTimestamps": {"Delivered": JAN_1_2024_MS}}, ("delivered",)) == JAN_1_2024_MS
    assert (
        extract_from_history({"shippingStatusTimestamps": {"in_transit": JAN_1_2024_MS}}, ("in_transit",))
        == JAN_1_2024_MS
    )
    nested = {"shippingInfo": {"statusTimestamps": {"packed": JAN_1_2024_MS // 1000}}}
    assert extract_from_history(nested, ("packed",)) == JAN_1_2024_MS


def test_history_without_match_falls_back_to_map() -> None:
    data = {
        "statusHistory": [{"status": "pending", "at": 1}],
        "statusTimestamps": {"packed": JAN_1_2024_MS},
    }
    assert extract_from_history(data, ("packed",)) == JAN_1_2024_MS
    assert extract_from_history({"statusHistory": "bad"}, ("packed",)) is None


def test_renderers() -> None:
    assert ms_to_date(JAN_1_2024_MS) == "2024-01-01"
    assert ms_to_iso(JAN_1_2024_MS) == "2024-01-01T00:00:00.000+00:00"
    assert to_iso(JAN_1_2024_MS) == "2024-01-01T00:00:00.000+00:00"
    assert to_iso("next tuesday") == "next tuesday"
    assert to_iso(None) is None


@pytest.mark.parametrize("value", [1e17, -1e17, {"seconds": 10**12}, "99999-01-01T00:00:00"])
def test_out_of_range_instants_are_none(value) -> None:
    assert to_epoch_ms(value) is None
    assert to_iso(1e17) is None

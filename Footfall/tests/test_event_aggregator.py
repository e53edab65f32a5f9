import pandas as pd
import pytest

from Footfall import AggregationStrategy, EventAggregator, RawEvent
from Footfall.errors import ConfigurationError, EventParseError
from Footfall.ingestion import aggregate, events_to_frame


def _morning_events():
    return [
        RawEvent("2024-03-04 09:59", "tx1", "food"),
        RawEvent("2024-03-04 10:05", "tx1", "food"),
        RawEvent("2024-03-04 10:40", "tx2", "food"),
        RawEvent("2024-03-04 11:10", "tx3", "drink"),
    ]


def test_distinct_transactions_per_hour():
    out = EventAggregator(AggregationStrategy.DISTINCT_TRANSACTIONS).aggregate(_morning_events())

    assert out == [
        (pd.Timestamp("2024-03-04 09:00"), 1),
        (pd.Timestamp("2024-03-04 10:00"), 2),
        (pd.Timestamp("2024-03-04 11:00"), 1),
    ]


def test_item_count_only_counts_designated_category():
    out = aggregate(_morning_events(), strategy="item_count_per_category", category="food")

    # the 11:00 bucket only has a drink, so it is absent
    assert out == [
        (pd.Timestamp("2024-03-04 09:00"), 1),
        (pd.Timestamp("2024-03-04 10:00"), 2),
    ]


def test_strategies_differ_when_one_transaction_has_many_items():
    events = [
        RawEvent("2024-03-04 12:01", 7, "food"),
        RawEvent("2024-03-04 12:02", 7, "food"),
        RawEvent("2024-03-04 12:03", 7, "food"),
        RawEvent("2024-03-04 12:30", 8, "drink"),
    ]

    distinct = aggregate(events, strategy=AggregationStrategy.DISTINCT_TRANSACTIONS)
    items = aggregate(events, strategy=AggregationStrategy.ITEM_COUNT_PER_CATEGORY)

    assert distinct == [(pd.Timestamp("2024-03-04 12:00"), 2)]
    assert items == [(pd.Timestamp("2024-03-04 12:00"), 3)]


def test_output_is_sorted_for_unsorted_input():
    events = list(reversed(_morning_events()))
    out = aggregate(events)

    stamps = [ts for ts, _ in out]
    assert stamps == sorted(stamps)


def test_custom_bucket_width():
    out = aggregate(_morning_events(), bucket="30min")

    assert [ts.strftime("%H:%M") for ts, _ in out] == ["09:30", "10:00", "10:30", "11:00"]
    assert all(n == 1 for _, n in out)


def test_empty_event_log_gives_no_buckets():
    assert aggregate([]) == []


def test_missing_category_gives_no_buckets():
    assert aggregate(_morning_events(), strategy="item_count_per_category", category="cake") == []


def test_unknown_strategy_is_rejected():
    with pytest.raises(ConfigurationError):
        EventAggregator(strategy="visitors_by_magic")


def test_non_positive_bucket_is_rejected():
    with pytest.raises(ConfigurationError):
        EventAggregator(bucket="0h")


def test_unparseable_timestamp_names_first_bad_record():
    events = _morning_events() + [RawEvent("not a time", "tx9", "food")]

    with pytest.raises(EventParseError) as info:
        aggregate(events)

    assert info.value.context["first_bad_index"] == 4
    assert info.value.stage == "aggregate"


def test_events_to_frame_parses_timestamps():
    df = events_to_frame(_morning_events())

    assert list(df.columns) == ["timestamp", "transaction_id", "item_category"]
    assert pd.api.types.is_datetime64_any_dtype(df["timestamp"])


def test_strategies_agree_with_one_event_per_transaction_and_bucket():
    events = [
        RawEvent(pd.Timestamp("2024-03-04 10:00") + pd.Timedelta(hours=h, minutes=17), f"tx{h}", "food")
        for h in range(12)
    ]

    assert aggregate(events, strategy="distinct_transactions") == aggregate(
        events, strategy="item_count_per_category"
    )

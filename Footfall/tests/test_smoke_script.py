import pandas as pd
import pytest

from Footfall import RawEvent
from Footfall.errors import ConfigurationError
from Footfall.ingestion import aggregate
from Footfall.smoke_test import load_csv_events, resolve_category


def _write_log(tmp_path):
    df = pd.DataFrame({
        "Date": ["2016-10-30", "2016-10-30", "2016-10-30", "2016-10-30"],
        "Time": ["09:58:11", "10:05:34", "10:05:34", "10:07:57"],
        "Transaction": [1, 2, 2, 3],
        "Item": ["Bread", "Coffee", "Bread", "Coffee"],
    })
    path = tmp_path / "log.csv"
    df.to_csv(path, index=False)
    return path


def test_csv_log_defaults_to_a_category_that_occurs(tmp_path):
    events = load_csv_events(str(_write_log(tmp_path)))

    category = resolve_category(events, None)
    counts = aggregate(events, strategy="item_count_per_category", category=category)

    assert category in {"Bread", "Coffee"}
    assert sum(n for _, n in counts) == 2


def test_explicit_category_is_kept():
    log = [RawEvent("2016-10-30 10:00", 1, "Coffee"), RawEvent("2016-10-30 10:01", 1, "Tea")]

    assert resolve_category(log, "Tea") == "Tea"


def test_category_missing_from_the_log_is_rejected(tmp_path):
    events = load_csv_events(str(_write_log(tmp_path)))

    with pytest.raises(ConfigurationError) as info:
        resolve_category(events, "food")

    assert "Coffee" in info.value.context["most_common"]

# Footfall/smoke_test.py
import argparse
import logging
from collections import Counter
from typing import List, Optional

import numpy as np
import pandas as pd

from Footfall.errors import ConfigurationError
from Footfall.ingestion.event_aggregator import RawEvent
from Footfall.pipeline.orchestrator import PipelineConfig, compare_strategies, report_table


def synthetic_events(weeks: int = 6, seed: int = 0, hour_window=(10, 22)) -> List[RawEvent]:
    """A cafe log with a midday and an evening peak, busier weekends and Poisson noise."""
    rng = np.random.default_rng(seed)
    lo, hi = hour_window
    hours = np.arange(lo, hi + 1)
    daily = 2 + 4 * np.exp(-((hours - 13) ** 2) / 4.0) + 3 * np.exp(-((hours - 19) ** 2) / 3.0)

    events: List[RawEvent] = []
    start = pd.Timestamp("2024-01-01")
    for day in range(7 * weeks):
        weekend = 1.5 if (start + pd.Timedelta(days=day)).dayofweek >= 5 else 1.0
        for hour, rate in zip(hours, daily):
            for k in range(int(rng.poisson(rate * weekend))):
                ts = start + pd.Timedelta(days=day, hours=int(hour), minutes=int(rng.integers(0, 60)))
                tx = f"{day}-{hour}-{k}"
                for _ in range(1 + int(rng.poisson(0.6))):
                    events.append(RawEvent(ts, tx, "food" if rng.random() < 0.7 else "drink"))
    return events


def load_csv_events(csv_path: str) -> List[RawEvent]:
    """
    Load a transaction log with ``Date``, ``Time``, ``Transaction`` and
    ``Item`` columns; the item name is used as its category.
    """
    df = pd.read_csv(csv_path)
    stamps = df["Date"].astype(str) + " " + df["Time"].astype(str)
    return [
        RawEvent(ts, tx, str(item))
        for ts, tx, item in zip(stamps, df["Transaction"], df["Item"])
    ]


def resolve_category(events: List[RawEvent], category: Optional[str]) -> str:
    """
    The category counted by ``ITEM_COUNT_PER_CATEGORY``: the one asked for,
    or the most frequent item category in the log when none is given.
    """
    counts = Counter(e.item_category for e in events)
    if category is None:
        if not counts:
            raise ConfigurationError("Cannot pick a category from an empty event log.", stage="aggregate")
        return counts.most_common(1)[0][0]
    if category not in counts:
        raise ConfigurationError(
            f"Category {category!r} does not occur in the event log.",
            stage="aggregate",
            context={"most_common": [c for c, _ in counts.most_common(5)]},
        )
    return category


def run(
    csv_path: Optional[str],
    category: Optional[str] = None,
    hour_window=(10, 22),
    weeks: int = 6,
    n_jobs: int = 1,
):
    events = load_csv_events(csv_path) if csv_path else synthetic_events(weeks=weeks, hour_window=hour_window)
    print(f"[OK] Loaded {len(events)} events")

    category = resolve_category(events, category)
    print(f"[OK] Item counts use category {category!r}")

    cfg = PipelineConfig(category=category, hour_window=tuple(hour_window), n_jobs=n_jobs)
    results = compare_strategies(events, cfg)

    for strategy, result in results.items():
        print(f"\n=== {strategy} ===")
        print(f"series: n={len(result.series)} periods={result.periods}")
        print(report_table(result.reports).to_string())
        print(f"selected: {result.best_tag}")
        if result.diagnostics is not None:
            d = result.diagnostics
            print(
                f"residuals: ljung_box_p={d.autocorrelation_pvalue:.4f} "
                f"shapiro_p={d.normality_pvalue:.4f} passed={d.passed}"
            )
        for w in result.log.all_warnings():
            print(f"[WARN] {w}")


if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--csv", default=None, help="Transaction log (Date, Time, Transaction, Item). Synthetic if omitted.")
    ap.add_argument("--category", default=None, help="Item category to count. Most frequent item if omitted.")
    ap.add_argument("--open", type=int, default=10)
    ap.add_argument("--close", type=int, default=22)
    ap.add_argument("--weeks", type=int, default=6)
    ap.add_argument("--jobs", type=int, default=1)
    ap.add_argument("--verbose", action="store_true")

    args = ap.parse_args()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    run(args.csv, args.category, (args.open, args.close), args.weeks, n_jobs=args.jobs)

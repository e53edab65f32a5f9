from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Sequence, Tuple, Union

import pandas as pd

from Footfall.errors import ConfigurationError, EventParseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawEvent:
    """
    One line of a transaction log.

    Parameters
    ----------
    timestamp : Any
        Anything ``pandas.Timestamp`` can parse (string, datetime, Timestamp).
    transaction_id : str or int
        Receipt identifier; several events may share one id.
    item_category : str
        Category of the item sold (e.g. ``"food"``, ``"drink"``).
    """
    timestamp: Any
    transaction_id: Union[str, int]
    item_category: str


class AggregationStrategy(str, Enum):
    """How raw events are turned into a per-bucket visitor estimate."""
    DISTINCT_TRANSACTIONS = "distinct_transactions"
    ITEM_COUNT_PER_CATEGORY = "item_count_per_category"


Observation = Tuple[pd.Timestamp, int]


def events_to_frame(events: Sequence[RawEvent]) -> pd.DataFrame:
    """
    Convert raw events to a frame with columns ``timestamp``,
    ``transaction_id`` and ``item_category``.

    Raises
    ------
    EventParseError
        If any timestamp cannot be parsed; names the first bad record.
    """
    df = pd.DataFrame(
        {
            "timestamp": [e.timestamp for e in events],
            "transaction_id": [e.transaction_id for e in events],
            "item_category": [e.item_category for e in events],
        }
    )
    if df.empty:
        return df.astype({"timestamp": "datetime64[ns]"})

    parsed = pd.to_datetime(df["timestamp"], errors="coerce")
    bad = parsed.isna()
    if bad.any():
        first = int(bad.to_numpy().nonzero()[0][0])
        raise EventParseError(
            f"{int(bad.sum())} event(s) have unparseable timestamps.",
            context={"first_bad_index": first, "value": str(df["timestamp"].iloc[first])},
        )

    df["timestamp"] = parsed
    return df


class EventAggregator:
    """
    Turn an irregular event log into hourly (or any bucket) visitor counts.

    The two strategies share one output shape: a chronologically sorted
    list of ``(bucket_start, count)`` pairs. Buckets without qualifying
    events are simply absent; filling gaps belongs to the regularizer.

    Parameters
    ----------
    strategy : AggregationStrategy or str
        ``DISTINCT_TRANSACTIONS`` counts unique transaction ids per bucket.
        ``ITEM_COUNT_PER_CATEGORY`` counts items of ``category`` per bucket
        (one visitor per item of that category).
    bucket : str or pandas.Timedelta, default "1h"
        Bucket width; timestamps are floored to the bucket boundary.
    category : str, default "food"
        Designated category for ``ITEM_COUNT_PER_CATEGORY``.
    """

    def __init__(
        self,
        strategy: Union[AggregationStrategy, str] = AggregationStrategy.DISTINCT_TRANSACTIONS,
        bucket: Union[str, pd.Timedelta] = "1h",
        category: str = "food",
    ) -> None:
        try:
            self.strategy = AggregationStrategy(strategy)
        except ValueError:
            raise ConfigurationError(
                f"Unknown aggregation strategy: {strategy!r}",
                stage="aggregate",
                context={"allowed": [s.value for s in AggregationStrategy]},
            )

        self.bucket = pd.Timedelta(bucket)
        if self.bucket <= pd.Timedelta(0):
            raise ConfigurationError(
                "Bucket width must be positive.", stage="aggregate", context={"bucket": str(bucket)}
            )
        self.category = category

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def aggregate(self, events: Sequence[RawEvent]) -> List[Observation]:
        """Aggregate ``events`` into sorted ``(bucket_start, count)`` pairs."""
        df = events_to_frame(events)
        if df.empty:
            logger.debug("aggregate: no events supplied")
            return []

        df["bucket"] = df["timestamp"].dt.floor(self.bucket)

        if self.strategy is AggregationStrategy.DISTINCT_TRANSACTIONS:
            counts = self._distinct_transactions(df)
        else:
            counts = self._item_count_per_category(df)

        out = [(pd.Timestamp(ts), int(n)) for ts, n in counts.sort_index().items()]
        logger.debug(
            "aggregate: %d events -> %d buckets (strategy=%s)", len(df), len(out), self.strategy.value
        )
        return out

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------
    def _distinct_transactions(self, df: pd.DataFrame) -> pd.Series:
        return df.groupby("bucket")["transaction_id"].nunique()

    def _item_count_per_category(self, df: pd.DataFrame) -> pd.Series:
        """
        Running ordinal of items within each (bucket, category); the bucket
        count is the maximum ordinal reached by the designated category.
        """
        df = df.sort_values("timestamp", kind="mergesort")
        df["ordinal"] = df.groupby(["bucket", "item_category"]).cumcount() + 1

        per_cat = df.groupby(["bucket", "item_category"])["ordinal"].max()
        if self.category not in per_cat.index.get_level_values("item_category"):
            return pd.Series(dtype="int64")
        return per_cat.xs(self.category, level="item_category")


def aggregate(
    events: Sequence[RawEvent],
    strategy: Union[AggregationStrategy, str] = AggregationStrategy.DISTINCT_TRANSACTIONS,
    bucket: Union[str, pd.Timedelta] = "1h",
    category: str = "food",
) -> List[Observation]:
    """Functional shorthand for ``EventAggregator(...).aggregate(events)``."""
    return EventAggregator(strategy=strategy, bucket=bucket, category=category).aggregate(events)

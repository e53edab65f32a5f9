from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Literal, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from Footfall.errors import ConfigurationError, EmptyRangeError

logger = logging.getLogger(__name__)

DAY = pd.Timedelta(days=1)

RangeT = Union[None, Literal["full-span"], Tuple[object, object]]
DuplicatesPolicy = Literal["sum", "max", "first", "last"]


def _validate_interval(interval: Union[str, pd.Timedelta]) -> pd.Timedelta:
    step = pd.Timedelta(interval)
    if step <= pd.Timedelta(0):
        raise ConfigurationError(
            "Interval must be positive.", stage="regularize", context={"interval": str(interval)}
        )
    if DAY % step != pd.Timedelta(0):
        raise ConfigurationError(
            "Interval must divide one day evenly so the business-hours grid repeats daily.",
            stage="regularize",
            context={"interval": str(step)},
        )
    return step


def _validate_hour_window(hour_window: Sequence[int]) -> Tuple[int, int]:
    if len(hour_window) != 2:
        raise ConfigurationError(
            "hour_window must be a (h_min, h_max) pair.",
            stage="regularize",
            context={"hour_window": tuple(hour_window)},
        )
    h_min, h_max = int(hour_window[0]), int(hour_window[1])
    if not (0 <= h_min <= h_max <= 23):
        raise ConfigurationError(
            "hour_window must satisfy 0 <= h_min <= h_max <= 23.",
            stage="regularize",
            context={"hour_window": (h_min, h_max)},
        )
    return h_min, h_max


def _in_window(index: pd.DatetimeIndex, hour_window: Tuple[int, int]) -> np.ndarray:
    # Integer hour-of-day comparison, inclusive on both ends.
    hours = index.hour
    return np.asarray((hours >= hour_window[0]) & (hours <= hour_window[1]))


@dataclass(frozen=True, eq=False)
class RegularSeries:
    """
    A gap-free series on a fixed business-hours grid.

    Parameters
    ----------
    y : pandas.Series
        Float values indexed by a strictly increasing ``DatetimeIndex``.
        Consecutive timestamps are exactly ``interval`` apart, except where
        the grid skips hours outside ``hour_window`` (those buckets are not
        part of the series at all).
    interval : pandas.Timedelta
        Grid step.
    hour_window : tuple of int
        Inclusive ``(h_min, h_max)`` hour-of-day range kept on the grid.
    fill_value : float
        Value used for buckets without any observation.
    notes : list of str
        Human-readable provenance from regularization.
    """
    y: pd.Series
    interval: pd.Timedelta
    hour_window: Tuple[int, int] = (0, 23)
    fill_value: float = 0.0
    notes: List[str] = field(default_factory=list, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "interval", _validate_interval(self.interval))
        object.__setattr__(self, "hour_window", _validate_hour_window(self.hour_window))

        y = pd.Series(self.y, dtype="float64", copy=True)
        if not isinstance(y.index, pd.DatetimeIndex):
            raise ConfigurationError("RegularSeries requires a DatetimeIndex.", stage="regularize")
        if y.isna().any():
            raise ConfigurationError(
                "RegularSeries cannot contain unset values.",
                stage="regularize",
                context={"n_missing": int(y.isna().sum())},
            )
        if len(y) > 1:
            expected = pd.date_range(start=y.index[0], end=y.index[-1], freq=self.interval)
            expected = expected[_in_window(expected, self.hour_window)]
            if not y.index.equals(expected):
                raise ConfigurationError(
                    "Index is not a complete business-hours grid at the declared interval.",
                    stage="regularize",
                    context={"interval": str(self.interval), "hour_window": self.hour_window},
                )
        y.index = pd.DatetimeIndex(y.index, freq=None)
        object.__setattr__(self, "y", y)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self.y)

    @property
    def index(self) -> pd.DatetimeIndex:
        return self.y.index

    @property
    def values(self) -> np.ndarray:
        """A copy of the values; the series itself stays untouched."""
        return self.y.to_numpy(dtype=float, copy=True)

    def observations(self) -> List[Tuple[pd.Timestamp, float]]:
        return [(pd.Timestamp(t), float(v)) for t, v in self.y.items()]

    @property
    def steps_per_day(self) -> int:
        """
        Number of grid buckets inside ``hour_window`` in one day.

        The grid is anchored at the first timestamp, so the slots are
        ``anchor + k * interval`` for every ``k`` within a day.
        """
        if len(self.y) == 0:
            anchor = pd.Timedelta(0)
        else:
            first = self.y.index[0]
            anchor = (first - first.normalize()) % self.interval
        slots = pd.date_range(
            start=pd.Timestamp("2000-01-01") + anchor, periods=int(DAY / self.interval), freq=self.interval
        )
        return int(_in_window(slots, self.hour_window).sum())

    def seasonal_periods(self) -> Tuple[int, int]:
        """
        ``(intraday, intraweek)`` periods in grid steps, derived from the
        business-hours window rather than a hardcoded bucket count.
        """
        daily = self.steps_per_day
        return daily, 7 * daily

    # ------------------------------------------------------------------
    # Derivation (always returns new objects)
    # ------------------------------------------------------------------
    def slice(self, start: Optional[int] = None, stop: Optional[int] = None) -> "RegularSeries":
        """Positional slice; a contiguous slice of the grid is still a grid."""
        return RegularSeries(
            y=self.y.iloc[start:stop],
            interval=self.interval,
            hour_window=self.hour_window,
            fill_value=self.fill_value,
            notes=list(self.notes),
        )

    def with_values(self, values: Sequence[float]) -> "RegularSeries":
        """Same grid, new values."""
        return RegularSeries(
            y=pd.Series(np.asarray(values, dtype=float), index=self.y.index, name=self.y.name),
            interval=self.interval,
            hour_window=self.hour_window,
            fill_value=self.fill_value,
            notes=list(self.notes),
        )

    def future_index(self, horizon: int) -> pd.DatetimeIndex:
        """The next ``horizon`` timestamps on the business-hours grid."""
        if horizon <= 0:
            raise ConfigurationError("horizon must be a positive integer.", context={"horizon": horizon})
        if len(self.y) == 0:
            raise EmptyRangeError("Cannot extend an empty series.")

        per_day = max(1, self.steps_per_day)
        n_slots = int(DAY / self.interval)
        periods = (math.ceil(horizon / per_day) + 1) * n_slots
        candidates = pd.date_range(start=self.y.index[-1] + self.interval, periods=periods, freq=self.interval)
        return pd.DatetimeIndex(candidates[_in_window(candidates, self.hour_window)][:horizon], freq=None)


class SeriesRegularizer:
    """
    Pad aggregated observations to a complete fixed-interval grid, keep only
    business hours, and fill gaps.

    Responsibilities
    ----------------
    - Resolve duplicate timestamps among the observations, then sum
      observations finer than ``interval`` into their grid slot.
    - Build every timestamp at ``interval`` steps over the observed span or
      a caller-supplied range floored to the grid (observations outside
      that range are dropped).
    - Drop grid timestamps whose hour-of-day falls outside ``hour_window``.
      This changes the series length, so it happens before any periodicity
      is derived.
    - Replace unset values with ``fill_value``: a missing transaction record
      means zero visitors, not missing data.

    Parameters
    ----------
    interval : str or pandas.Timedelta, default "1h"
        Grid step. Must divide one day evenly.
    hour_window : tuple of int, default (0, 23)
        Inclusive opening hours ``(h_min, h_max)``.
    fill_value : float, default 0.0
        Value for padded buckets.
    duplicates : {'sum', 'max', 'first', 'last'}, default 'sum'
        How repeated timestamps among the observations are combined.
    """

    def __init__(
        self,
        interval: Union[str, pd.Timedelta] = "1h",
        hour_window: Sequence[int] = (0, 23),
        fill_value: float = 0.0,
        duplicates: DuplicatesPolicy = "sum",
    ) -> None:
        self.interval = _validate_interval(interval)
        self.hour_window = _validate_hour_window(hour_window)
        self.fill_value = float(fill_value)
        if duplicates not in ("sum", "max", "first", "last"):
            raise ConfigurationError(
                f"Unsupported duplicates policy: {duplicates}", stage="regularize"
            )
        self.duplicates_policy: DuplicatesPolicy = duplicates
        self.notes: List[str] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def regularize(
        self,
        observations: Sequence[Tuple[object, float]],
        range: RangeT = None,
    ) -> RegularSeries:
        """
        Run pad -> window filter -> fill and return a ``RegularSeries``.

        Parameters
        ----------
        observations : sequence of (timestamp, value)
            Typically the output of ``EventAggregator.aggregate``.
        range : None, "full-span" or (start, end)
            Grid span. ``None``/``"full-span"`` uses the observed min/max.

        Raises
        ------
        EmptyRangeError
            If the span yields zero buckets, or the hour window removes all
            of them.
        """
        self.notes = []
        obs = self._to_series(observations)
        start, end = self._resolve_range(obs, range)

        padded = self._pad(obs, start, end)
        windowed = self._window_filter(padded)
        filled = self._fill(windowed)

        logger.debug(
            "regularize: %d observations -> %d buckets over [%s, %s]",
            len(obs), len(filled), start, end,
        )
        return RegularSeries(
            y=filled,
            interval=self.interval,
            hour_window=self.hour_window,
            fill_value=self.fill_value,
            notes=self.notes.copy(),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _to_series(self, observations: Sequence[Tuple[object, float]]) -> pd.Series:
        if len(observations) == 0:
            return pd.Series(dtype="float64", index=pd.DatetimeIndex([]))

        idx = pd.DatetimeIndex([pd.Timestamp(t) for t, _ in observations])
        s = pd.Series([float(v) for _, v in observations], index=idx, dtype="float64").sort_index()

        if s.index.duplicated().any():
            self.notes.append(
                f"Duplicate timestamps detected; resolving via policy='{self.duplicates_policy}'."
            )
            if self.duplicates_policy in ("sum", "max"):
                s = s.groupby(level=0).agg(self.duplicates_policy)
            else:
                s = s[~s.index.duplicated(keep=self.duplicates_policy)]
        return self._rebucket(s)

    def _rebucket(self, s: pd.Series) -> pd.Series:
        """
        Move observations onto the interval grid, summing everything that
        lands in the same slot. Counts finer than ``interval`` are merged,
        never dropped.
        """
        slots = s.index.floor(self.interval)
        n_moved = int((slots != s.index).sum())
        if n_moved == 0:
            return s
        self.notes.append(
            f"Re-bucketed {n_moved} observations off the {self.interval} grid onto their slot start (summed)."
        )
        return s.groupby(slots).sum()

    def _resolve_range(self, obs: pd.Series, range: RangeT) -> Tuple[pd.Timestamp, pd.Timestamp]:
        if range is None or range == "full-span":
            if obs.empty:
                raise EmptyRangeError(
                    "No observations to span; the full-span range is empty.",
                    context={"range": "full-span"},
                )
            return obs.index[0], obs.index[-1]

        try:
            start, end = pd.Timestamp(range[0]), pd.Timestamp(range[1])
        except (TypeError, ValueError, IndexError) as exc:
            raise ConfigurationError(
                f"range must be None, 'full-span' or a (start, end) pair: {exc}",
                stage="regularize",
                context={"range": repr(range)},
            )
        if start > end:
            raise EmptyRangeError(
                "Range start is after range end; zero buckets.",
                context={"start": str(start), "end": str(end)},
            )

        aligned = start.floor(self.interval), end.floor(self.interval)
        if aligned != (start, end):
            self.notes.append(
                f"Range [{start}, {end}] aligned to the {self.interval} grid as [{aligned[0]}, {aligned[1]}]."
            )
        return aligned

    def _pad(self, obs: pd.Series, start: pd.Timestamp, end: pd.Timestamp) -> pd.Series:
        full_index = pd.date_range(start=start, end=end, freq=self.interval)
        if len(full_index) == 0:
            raise EmptyRangeError(
                "Range yields zero buckets.", context={"start": str(start), "end": str(end)}
            )

        inside = obs[(obs.index >= start) & (obs.index <= end)]
        n_outside = len(obs) - len(inside)
        if n_outside:
            self.notes.append(f"Dropped {n_outside} observations outside [{start}, {end}].")

        padded = inside.reindex(full_index)
        n_missing = int(padded.isna().sum())
        self.notes.append(f"Padded {n_missing} empty buckets between {start} and {end}.")
        return padded

    def _window_filter(self, padded: pd.Series) -> pd.Series:
        mask = _in_window(padded.index, self.hour_window)
        kept = padded[mask]
        if kept.empty:
            raise EmptyRangeError(
                "No buckets fall inside the business-hours window.",
                context={
                    "hour_window": self.hour_window,
                    "start": str(padded.index[0]),
                    "end": str(padded.index[-1]),
                },
            )
        n_dropped = int((~mask).sum())
        if n_dropped:
            self.notes.append(
                f"Dropped {n_dropped} buckets outside hours {self.hour_window[0]}..{self.hour_window[1]}."
            )
        return kept

    def _fill(self, windowed: pd.Series) -> pd.Series:
        return windowed.fillna(self.fill_value)


def regularize(
    observations: Sequence[Tuple[object, float]],
    interval: Union[str, pd.Timedelta] = "1h",
    range: RangeT = None,
    hour_window: Sequence[int] = (0, 23),
    fill_value: float = 0.0,
) -> RegularSeries:
    """Functional shorthand for ``SeriesRegularizer(...).regularize(...)``."""
    regularizer = SeriesRegularizer(interval=interval, hour_window=hour_window, fill_value=fill_value)
    return regularizer.regularize(observations, range=range)

"""
Per-channel time series keyed by second.

A ChannelSeries refuses a second value for a second it already holds.  A
value within the channel's tolerance of the stored one is quietly absorbed;
anything further away is dropped with an error log, which mirrors how the
monitoring logs occasionally repeat a timestamp.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List

import pandas as pd

logger = logging.getLogger(__name__)


class ChannelSeries:
    def __init__(self, label: str, tolerance: float = 0.0):
        self.label = label
        self.tolerance = tolerance
        self._points: Dict[int, float] = {}

    def add(self, second: int, value: float) -> bool:
        """
        Store *value* at *second*.

        Returns True when the value was stored or absorbed by an equal-enough
        value already present, False when it was dropped.
        """
        if second not in self._points:
            self._points[second] = value
            return True

        existing = self._points[second]
        if abs(existing - value) <= self.tolerance:
            return True

        logger.error(
            f"Series \"{self.label}\" already contains {existing} at {second},"
            f" cannot add value {value}"
        )
        return False

    def seconds(self) -> List[int]:
        return list(self._points.keys())

    def values(self) -> List[float]:
        return list(self._points.values())

    def items(self):
        return self._points.items()

    def to_series(self) -> pd.Series:
        index = pd.to_datetime(self.seconds(), unit="s", utc=True)
        return pd.Series(self.values(), index=index, name=self.label, dtype="float64")

    def __len__(self):
        return len(self._points)

    def __repr__(self):
        return f"ChannelSeries({self.label!r}, {len(self)} points)"


class SeriesCollection:
    """Ordered mapping of channel label to ChannelSeries."""

    def __init__(self):
        self._series: Dict[str, ChannelSeries] = {}

    def add_series(self, label, tolerance=0.0) -> ChannelSeries:
        if label in self._series:
            raise KeyError(f"Duplicate series \"{label}\"")
        series = ChannelSeries(label, tolerance)
        self._series[label] = series
        return series

    def remove(self, label):
        del self._series[label]

    def labels(self) -> List[str]:
        return list(self._series.keys())

    def __getitem__(self, label) -> ChannelSeries:
        return self._series[label]

    def __contains__(self, label):
        return label in self._series

    def __iter__(self) -> Iterator[ChannelSeries]:
        return iter(self._series.values())

    def __len__(self):
        return len(self._series)

    def to_frame(self) -> pd.DataFrame:
        """Outer-join every channel on a UTC DatetimeIndex."""
        if not self._series:
            return pd.DataFrame(index=pd.DatetimeIndex([], tz="UTC"))
        frame = pd.concat([s.to_series() for s in self._series.values()], axis=1)
        return frame.sort_index()

    def is_interesting(self) -> bool:
        """
        True if any channel changes between consecutive points where the
        earlier value is something other than 0 or 1.

        Flag-like channels that only toggle between 0 and 1 never count.
        """
        for series in self._series.values():
            prev = None
            for value in series.values():
                if prev is not None and value != prev and prev not in (0, 1):
                    return True
                prev = value
        return False

from __future__ import annotations

from dataclasses import dataclass

import pandas as pd


@dataclass(frozen=True, order=True)
class ChartTime:
    """A sample timestamp, in milliseconds since the epoch (UTC)."""

    millis: int

    def second_key(self) -> int:
        """Whole seconds since the epoch; samples sharing it collide."""
        return self.millis // 1000

    def second(self) -> pd.Timestamp:
        return pd.Timestamp(self.second_key(), unit="s", tz="UTC")

    def __str__(self):
        return str(self.millis)

"""
Aggregates of same-kind samples and their derived views.

Each aggregate turns its samples into rows of ``{channel label: value}``
keyed by second, and the three views are built from those rows:

* raw    - the values as they are
* delta  - each value minus the previous accepted value of its channel
* scaled - each value mapped onto [0, 1] by its channel's min and max

All three return a SeriesCollection, so colliding seconds are handled by
ChannelSeries no matter which view asked for them.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np

from daqmoni.config import CONFIG
from daqmoni.data import (
    BaseData,
    DoubleData,
    LongListData,
    MapArrayData,
)
from daqmoni.exceptions import ArityError, StatPlotError
from daqmoni.series import SeriesCollection

logger = logging.getLogger(__name__)

CPU_STATS_NAME = "CPUStatistics"

Row = Tuple[int, Dict[str, float]]


def _labels_for_prefix(name, table):
    for prefix, labels in table.items():
        if name.startswith(prefix):
            return list(labels)
    return None


class StatParent:
    """Ordered, append-only sequence of samples of one kind."""

    kind = None

    def __init__(self):
        self._samples: List[BaseData] = []

    @classmethod
    def for_sample(cls, sample):
        return cls()

    # ---- Storage ----
    def accepts(self, sample: BaseData) -> bool:
        return sample.kind == self.kind

    def add(self, sample: BaseData):
        if not self.accepts(sample):
            raise TypeError(f"{type(self).__name__} cannot hold {type(sample).__name__}")
        self._samples.append(sample)

    def samples(self) -> List[BaseData]:
        return list(self._samples)

    def __iter__(self) -> Iterator[BaseData]:
        return iter(self._samples)

    def __len__(self):
        return len(self._samples)

    def render(self):
        return ", ".join(s.render_value() for s in self._samples)

    def __repr__(self):
        return f"{type(self).__name__}({len(self)} samples)"

    # ---- Channels ----
    def channel_labels(self, name, config) -> List[str]:
        return [name]

    def channel_values(self, sample, labels) -> Optional[List[float]]:
        """Values for *labels* in order, or None to leave the sample out."""
        return [float(sample.value)]

    def integral(self) -> bool:
        """Whether raw values are whole numbers, which picks the tolerance."""
        return True

    def tolerance(self, label, config, scaled=False):
        if scaled or not self.integral():
            return config["double_tolerance"]
        return config["long_tolerance"]

    def rows(self, name, labels) -> Iterator[Row]:
        for sample in self._samples:
            values = self.channel_values(sample, labels)
            if values is None:
                continue
            yield sample.time.second_key(), dict(zip(labels, values))

    def _collection(self, labels, config, scaled=False):
        coll = SeriesCollection()
        for label in labels:
            coll.add_series(label, self.tolerance(label, config, scaled))
        return coll

    # ---- Views ----
    def raw(self, name, config=None) -> SeriesCollection:
        config = config or CONFIG
        labels = self.channel_labels(name, config)
        return self._filled(labels, config, self.rows(name, labels))

    def _filled(self, labels, config, rows):
        coll = self._collection(labels, config)
        for second, values in rows:
            for label, value in values.items():
                coll[label].add(second, value)
        return coll

    def delta(self, name, config=None) -> SeriesCollection:
        config = config or CONFIG
        labels = self.channel_labels(name, config)
        coll = self._collection(labels, config)

        prev = None
        for second, values in self.rows(name, labels):
            if prev is None:
                prev = dict(values)
                continue

            for label, value in values.items():
                if label not in prev:
                    prev[label] = value
                    continue
                if coll[label].add(second, value - prev[label]):
                    prev[label] = value

        return coll

    def scaled(self, name, config=None) -> SeriesCollection:
        config = config or CONFIG
        labels = self.channel_labels(name, config)
        rows = list(self.rows(name, labels))
        coll = self._collection(labels, config, scaled=True)

        bounds = {}
        for label in labels:
            column = np.array([v[label] for _, v in rows if label in v], dtype=float)
            if column.size == 0:
                coll.remove(label)
                continue

            low, high = column.min(), column.max()
            if high == low:
                logger.error(f"Not scaling \"{name}\" channel \"{label}\";"
                             f" all values are {low}")
                coll.remove(label)
                continue
            bounds[label] = (low, high - low)

        for second, values in rows:
            for label, value in values.items():
                if label in bounds:
                    low, span = bounds[label]
                    coll[label].add(second, float((value - low) / span))

        return coll

    def transform(self, name, config=None) -> Optional[Dict[str, "StatParent"]]:
        """Alternate aggregates derived from this one, or None."""
        return None


# -----------------------------------------------------------------------------
# Scalar aggregates
# -----------------------------------------------------------------------------
class LongStat(StatParent):
    kind = "long"


class DoubleStat(StatParent):
    kind = "double"

    def integral(self):
        return False


class StringStat(StatParent):
    """Strings are kept for dumps; they have no numeric channels."""

    kind = "string"

    def channel_labels(self, name, config):
        return []

    def channel_values(self, sample, labels):
        return None


class MemoryStat(StatParent):
    kind = "memory"

    def channel_labels(self, name, config):
        return ["Used", "Free"]

    def channel_values(self, sample, labels):
        return [float(sample.used), float(sample.free)]


class TriggerStat(StatParent):
    kind = "trigger"

    def channel_labels(self, name, config):
        return [name, f"{name} Trigger"]

    def channel_values(self, sample, labels):
        return [float(sample.value), sample.fraction]

    def tolerance(self, label, config, scaled=False):
        if scaled or label.endswith(" Trigger"):
            return config["double_tolerance"]
        return config["long_tolerance"]


# -----------------------------------------------------------------------------
# Fixed-arity aggregates
# -----------------------------------------------------------------------------
class ListStat(StatParent):
    kind = "list"

    def __init__(self, num_entries):
        super().__init__()
        self.num_entries = num_entries

    @classmethod
    def for_sample(cls, sample):
        return cls(sample.num_entries)

    def add(self, sample):
        if self.accepts(sample) and sample.num_entries != self.num_entries:
            raise ArityError(f"Expected {self.num_entries} entries, not"
                             f" {sample.num_entries}",
                             expected=self.num_entries, found=sample.num_entries)
        super().add(sample)

    def integral(self):
        return bool(self._samples) and isinstance(self._samples[0], LongListData)

    def channel_labels(self, name, config):
        labels = _labels_for_prefix(name, config["list_field_names"])
        if labels is None:
            return [f"List {idx}" for idx in range(self.num_entries)]
        if len(labels) != self.num_entries:
            raise StatPlotError(f"Field name list for \"{name}\" should contain"
                                f" {self.num_entries} entries, not {len(labels)}")
        return labels

    def channel_values(self, sample, labels):
        return [sample.raw_value(idx) for idx in range(self.num_entries)]


class StrandStat(StatParent):
    kind = "strand"

    def __init__(self, num_strands):
        super().__init__()
        self.num_strands = num_strands

    @classmethod
    def for_sample(cls, sample):
        return cls(sample.num_strands)

    def add(self, sample):
        if self.accepts(sample) and sample.num_strands != self.num_strands:
            raise ArityError(f"Expected {self.num_strands} strands, not"
                             f" {sample.num_strands}",
                             expected=self.num_strands, found=sample.num_strands)
        super().add(sample)

    def channel_labels(self, name, config):
        return [f"Strand {idx}" for idx in range(self.num_strands)]

    def channel_values(self, sample, labels):
        return [float(d) for d in sample.depths]


# -----------------------------------------------------------------------------
# Named array blocks
# -----------------------------------------------------------------------------
class MapArrayStat(StatParent):
    kind = "map_array"

    def _length(self):
        if not self._samples:
            return 0
        return len(self._samples[0])

    def integral(self):
        return bool(self._samples) and self._samples[0].is_long

    def channel_labels(self, name, config):
        length = self._length()
        labels = _labels_for_prefix(name, config["map_array_field_names"])
        if labels is None:
            return [f"Field#{idx}" for idx in range(length)]
        return labels[:length]

    def channel_values(self, sample: MapArrayData, labels):
        expected = self._length()
        if len(sample) != expected:
            logger.error(f"Ignoring map array with {len(sample)} entries,"
                         f" expected {expected}")
            return None
        return [float(v) for v in sample.values[:len(labels)]]

    def transform(self, name, config=None):
        if not name.startswith(CPU_STATS_NAME):
            return None

        suffix = name[len(CPU_STATS_NAME):]
        if suffix.startswith("_"):
            suffix = suffix[1:]
        config = config or CONFIG
        fields = config["map_array_field_names"][CPU_STATS_NAME]
        return self._cpu_percentages(suffix, fields)

    def _cpu_percentages(self, suffix, fields):
        stats = {}
        for field in fields:
            stats[f"{field}_{suffix}" if suffix else field] = DoubleStat()
        targets = list(stats.values())

        for sample in self._samples:
            values = np.asarray(sample.values, dtype=float)
            if values.size < len(fields):
                logger.error(f"Ignoring CPU statistics sample with {values.size}"
                             f" entries, expected {len(fields)}")
                continue

            total = values.sum()
            if total == 0:
                logger.error(f"Ignoring CPU statistics sample at {sample.time}"
                             f" with zero total")
                continue

            percents = values * 100.0 / total
            for idx, target in enumerate(targets):
                target.add(DoubleData(sample.time, float(percents[idx])))

        return stats


# -----------------------------------------------------------------------------
# Cumulative timing
# -----------------------------------------------------------------------------
class TimingStat(StatParent):
    """
    Cumulative profile times, one channel per piece title.

    Titles are kept in first-seen order and never removed.  Every view is
    built from the running difference of each title's cumulative time; delta
    is that difference without the first sample.
    """

    kind = "timing"

    def __init__(self):
        super().__init__()
        self.titles: List[str] = []

    def add(self, sample):
        super().add(sample)
        for piece in sample.pieces:
            if piece.title not in self.titles:
                self.titles.append(piece.title)

    def channel_labels(self, name, config):
        return list(self.titles)

    def rows(self, name, labels):
        prev = dict.fromkeys(labels, 0.0)
        for sample in self._samples:
            values = {}
            for piece in sample.pieces:
                values[piece.title] = piece.time - prev[piece.title]
                prev[piece.title] = piece.time
            yield sample.time.second_key(), values

    def delta(self, name, config=None):
        config = config or CONFIG
        labels = self.channel_labels(name, config)
        rows = self.rows(name, labels)
        next(rows, None)
        return self._filled(labels, config, rows)


AGGREGATES = {
    cls.kind: cls
    for cls in (LongStat, DoubleStat, StringStat, MemoryStat, TriggerStat,
                ListStat, StrandStat, MapArrayStat, TimingStat)
}


def aggregate_for(sample: BaseData) -> StatParent:
    return AGGREGATES[sample.kind].for_sample(sample)

"""
Single-sample records and the line savers that produce them.

Every sample is an immutable dataclass carrying its ChartTime and a
``kind`` tag.  A saver takes the current time and one input line and returns
either ``None`` (the line is not its shape) or a ``{name: sample}`` mapping;
an empty mapping means the line was recognized but carries nothing to store.
Malformed numbers inside a recognized line raise StatParseError.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from humanfriendly import InvalidSize, parse_size

from daqmoni.chart_time import ChartTime
from daqmoni.exceptions import StatParseError

LONG_MIN = -(2 ** 63)
LONG_MAX = 2 ** 63 - 1

STRAND_NAME = "Strand Depths"

# ---- Line grammars ----
LONG_PAT = re.compile(r"^(\s+([^\s:]+)|\s*(.+)\s*):?\s+([\-\+]?\d+)L?\s*$")
DOUBLE_PAT = re.compile(r"^(\s+([^\s:]+):?|\s*(.+)\s*:)\s+([\-\+]?\d+\.?\d*)\s*$")
MEMORY_PAT = re.compile(
    r"^(\s+([^\s:]+):?|\s*(.+)\s*:)\s+(\d+)([KMG]?)\s+used,"
    r"\s+(\d+)([KMG]?)\s+of\s+(\d+)([KMG]?)\s+free\.$"
)
STRING_PAT = re.compile(r"^\s+([^\s:]+):?\s+(.*)\s*$")
LIST_PAT = re.compile(r"^\s+([^\s:]+):?\s+\[(.*)\]\s*$")
MAP_ARRAY_PAT = re.compile(r"^\s*(\S+):\s*\{(.*)\}\s*$")
MAP_ENTRY_PAT = re.compile(r"^\s*['\"](\S+)['\"]:?\s+\[([^\]]*)\]\s*,?")
COMMA_PAT = re.compile(r"\s*,\s*")
TRIGGER_PAT = re.compile(
    r"^Trigger\s+count:\s+(\S+)Trigger(\d?\d?)\s+(\d+)\s+(\d+\.\d+)\s*$"
)
TIMING_PAT = re.compile(r"^(\S+.*\s+Timing:|\s+\S+Timing):?\s+(.*)\s*$")
TIMING_PIECE_PAT = re.compile(r"\s*([^:]+):\s(\d+)/(\d+)=(\d+)#(\d+\.?\d*%)")

_LONG_TEXT = re.compile(r"[\-\+]?\d+")


def parse_long(text, what="number"):
    """Parse a signed 64-bit integer, raising StatParseError when it isn't one."""
    if not _LONG_TEXT.fullmatch(text):
        raise StatParseError(f"Bad {what} \"{text}\"")
    value = int(text)
    if value < LONG_MIN or value > LONG_MAX:
        raise StatParseError(f"Bad {what} \"{text}\" (out of range)")
    return value


def parse_double(text, what="number"):
    try:
        return float(text)
    except ValueError:
        raise StatParseError(f"Bad {what} \"{text}\"") from None


def _stat_name(match):
    name = match.group(2)
    if name is None:
        name = match.group(3)
    return name.strip().rstrip(":").rstrip()


def _check_time(time, name):
    if time is None:
        raise StatParseError(f"Found {name} stat before time was set")


# -----------------------------------------------------------------------------
# Sample variants
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class BaseData:
    time: ChartTime

    kind = "base"

    def is_empty(self) -> bool:
        raise NotImplementedError

    def render_value(self) -> str:
        raise NotImplementedError

    def new_aggregate(self):
        """Return an empty aggregate able to hold samples of this kind."""
        from daqmoni.stats import aggregate_for
        return aggregate_for(self)

    def __str__(self):
        return f"{self.time}: {self.render_value()}"


@dataclass(frozen=True)
class LongData(BaseData):
    value: int

    kind = "long"

    def is_empty(self):
        return self.value == 0

    def render_value(self):
        return str(self.value)


@dataclass(frozen=True)
class DoubleData(BaseData):
    value: float

    kind = "double"

    def is_empty(self):
        return self.value == 0.0

    def render_value(self):
        return str(self.value)


@dataclass(frozen=True)
class MemoryData(BaseData):
    used: int
    free: int

    kind = "memory"

    def is_empty(self):
        return self.used == 0 and self.free == 0

    def render_value(self):
        return f"used {self.used}, free {self.free}"


@dataclass(frozen=True)
class StringData(BaseData):
    value: str

    kind = "string"

    def is_empty(self):
        return len(self.value) == 0

    def render_value(self):
        return f"\"{self.value}\""


@dataclass(frozen=True)
class ListData(BaseData):
    values: Tuple

    kind = "list"

    @property
    def num_entries(self):
        return len(self.values)

    def raw_value(self, idx) -> float:
        return float(self.values[idx])

    def render_value(self):
        return " ".join(str(v) for v in self.values)


@dataclass(frozen=True)
class LongListData(ListData):
    def is_empty(self):
        return len(self.values) == 0 or self.values[0] == 0


@dataclass(frozen=True)
class DoubleListData(ListData):
    def is_empty(self):
        return len(self.values) == 1 and self.values[0] == 0.0


@dataclass(frozen=True)
class StringListData(ListData):
    def is_empty(self):
        return len(self.values) == 0 or (len(self.values) == 1 and not self.values[0])

    def raw_value(self, idx):
        return 0.0


@dataclass(frozen=True)
class MapArrayData(BaseData):
    values: Tuple

    kind = "map_array"

    is_long = False

    def __len__(self):
        return len(self.values)

    def total(self):
        return sum(self.values)

    def is_empty(self):
        return False

    def render_value(self):
        return "[" + ", ".join(str(v) for v in self.values) + "]"


@dataclass(frozen=True)
class LongArrayData(MapArrayData):
    is_long = True


@dataclass(frozen=True)
class DoubleArrayData(MapArrayData):
    pass


@dataclass(frozen=True)
class StrandData(BaseData):
    depths: Tuple[int, ...]

    kind = "strand"

    @property
    def num_strands(self):
        return len(self.depths)

    def is_empty(self):
        return len(self.depths) == 0 or (len(self.depths) == 1 and self.depths[0] == 0)

    def render_value(self):
        return " ".join(str(d) for d in self.depths)


@dataclass(frozen=True)
class TriggerData(BaseData):
    value: int
    fraction: float

    kind = "trigger"

    def is_empty(self):
        return self.value == 0 and self.fraction == 0.0

    def render_value(self):
        return f"{self.value} / {self.fraction}"


@dataclass(frozen=True)
class TimingPiece:
    title: str
    time: int
    calls: int

    def average_time(self):
        return 0.0 if self.time == 0 else self.time / self.calls

    def __str__(self):
        return f"{self.title}={self.time}/{self.calls}"


@dataclass(frozen=True)
class TimingData(BaseData):
    pieces: Tuple[TimingPiece, ...]

    kind = "timing"

    def is_empty(self):
        return False

    def render_value(self):
        return " ".join(str(p) for p in self.pieces)


# -----------------------------------------------------------------------------
# Savers
# -----------------------------------------------------------------------------
def save_long(time: Optional[ChartTime], line: str):
    match = LONG_PAT.match(line)
    if not match:
        return None

    value = parse_long(match.group(4))
    name = _stat_name(match)
    _check_time(time, name)
    return {name: LongData(time, value)}


def save_double(time: Optional[ChartTime], line: str):
    match = DOUBLE_PAT.match(line)
    if not match:
        return None

    value = parse_double(match.group(4))
    name = _stat_name(match)
    _check_time(time, name)
    return {name: DoubleData(time, value)}


def _memory_value(number, suffix):
    try:
        return parse_size(f"{number}{suffix}", binary=True)
    except InvalidSize:
        raise StatParseError(f"Bad memory value \"{number}{suffix}\"") from None


def save_memory(time: Optional[ChartTime], line: str):
    match = MEMORY_PAT.match(line)
    if not match:
        return None

    name = _stat_name(match)
    # used, total, free; the middle "of" figure is not kept
    used = _memory_value(match.group(4), match.group(5))
    _memory_value(match.group(6), match.group(7))
    free = _memory_value(match.group(8), match.group(9))

    _check_time(time, name)
    return {name: MemoryData(time, used, free)}


def save_string(time: Optional[ChartTime], line: str):
    match = STRING_PAT.match(line)
    if not match:
        return None

    name = match.group(1)
    _check_time(time, name)
    return {name: StringData(time, match.group(2).rstrip())}


def _clean_list_entry(text):
    if len(text) >= 2 and text.startswith("'") and text.endswith("'"):
        text = text[1:-1]
    if text.endswith("L"):
        text = text[:-1]
    return text


def save_list(time: Optional[ChartTime], line: str):
    match = LIST_PAT.match(line)
    if not match:
        return None

    name = match.group(1)
    _check_time(time, name)

    body = match.group(2)
    if body.strip() == "":
        return {name: LongListData(time, ())}

    entries = [_clean_list_entry(s) for s in body.split(", ")]
    try:
        data = LongListData(time, tuple(parse_long(e) for e in entries))
    except StatParseError:
        try:
            data = DoubleListData(time, tuple(parse_double(e) for e in entries))
        except StatParseError:
            data = StringListData(time, tuple(entries))

    return {name: data}


def _split_fields(text):
    fields = COMMA_PAT.split(text)
    while fields and fields[-1] == "":
        fields.pop()
    return fields


def _parse_array(time, name, text):
    """Long entries unless the first one isn't; once long, always long."""
    fields = _split_fields(text)
    values = []
    is_long = None
    for idx, fld in enumerate(fields):
        if is_long is None or is_long:
            try:
                values.append(parse_long(fld))
                is_long = True
                continue
            except StatParseError:
                if is_long:
                    raise StatParseError(
                        f"Cannot parse long value \"{fld}\" "
                        f"(\"{name}\" field#{idx}: {text})"
                    ) from None
                is_long = False

        try:
            values.append(float(fld))
        except ValueError:
            raise StatParseError(
                f"Unparseable value \"{fld}\" (\"{name}\" field#{idx}: {text})"
            ) from None

    if is_long:
        return LongArrayData(time, tuple(values))
    return DoubleArrayData(time, tuple(values))


def save_map_array(time: Optional[ChartTime], line: str):
    match = MAP_ARRAY_PAT.match(line)
    if not match:
        return None

    name = match.group(1)
    rest = match.group(2)

    found = {}
    while True:
        entry = MAP_ENTRY_PAT.match(rest)
        if not entry:
            break

        fld_name = entry.group(1)
        _check_time(time, name)
        found[f"{name}_{fld_name}"] = _parse_array(time, fld_name, entry.group(2))
        rest = rest[entry.end():]

    return found


def save_trigger(time: Optional[ChartTime], line: str):
    match = TRIGGER_PAT.match(line)
    if not match:
        return None

    name = match.group(1) + match.group(2)
    value = parse_long(match.group(3))
    fraction = parse_double(match.group(4))
    _check_time(time, name)
    return {name: TriggerData(time, value, fraction)}


def save_timing(time: Optional[ChartTime], line: str):
    match = TIMING_PAT.match(line)
    if not match:
        return None

    payload = match.group(2).strip()
    if payload == "NOT RUNNING":
        return {}

    name = match.group(1).strip().rstrip(":").rstrip()

    pieces = []
    for piece in TIMING_PIECE_PAT.finditer(payload):
        pieces.append(TimingPiece(piece.group(1).strip(),
                                  parse_long(piece.group(2), "timing value"),
                                  parse_long(piece.group(3), "call count")))
    if not pieces:
        # still a timing line; nothing to store
        return {}

    _check_time(time, name)
    return {name: TimingData(time, tuple(pieces))}


def save_strand(time: Optional[ChartTime], line: str):
    fields = line.split()
    if not fields:
        return None

    depths = tuple(parse_long(f, f"strand statistic #{i}")
                   for i, f in enumerate(fields))
    _check_time(time, STRAND_NAME)
    return {STRAND_NAME: StrandData(time, depths)}

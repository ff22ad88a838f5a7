"""
Line-oriented state machines for the three monitoring log dialects.

A parser is picked by ``detect`` from the first substantive line of a file and
then fed every following line through ``match``.  Data lines are offered to
the dialect's savers in a fixed order and the first match wins; structural
lines move the parser between states.  A line nothing recognizes raises
StatParseError so new record formats get noticed.

Dialects:
    pdaq    - pDAQ ``.moni`` files, ``Bean <name>`` headers and dated lines
    eblog   - event builder logs, ``<secs>: <host> <section>:`` headers
    bombard - bombard test output, ``<millis>: <name>MonitoringData:`` headers
"""

from __future__ import annotations

import enum
import logging
import re
from datetime import datetime, timezone

from daqmoni.chart_time import ChartTime
from daqmoni.config import CONFIG
from daqmoni.data import (
    save_double,
    save_list,
    save_long,
    save_map_array,
    save_memory,
    save_strand,
    save_string,
    save_timing,
    save_trigger,
)
from daqmoni.exceptions import StatParseError

logger = logging.getLogger(__name__)


class ParseState(enum.Enum):
    NEEDS_SECTION_HEADER = "needs-section-header"
    IN_SECTION = "in-section"
    STRAND_DEPTHS = "strand-depths"
    DONE = "done"


class BaseParser:
    dialect = None
    savers = ()

    def __init__(self, sink, source_host=None, config=None, omit_prefixes=()):
        """
        *sink* is called as ``sink(host, section, name, sample)`` for every
        sample that should be stored.  Sections whose name starts with one of
        *omit_prefixes* are still parsed but nothing from them is stored.
        """
        self.sink = sink
        self.config = config or CONFIG
        self.source_host = source_host
        self.omit_prefixes = tuple(omit_prefixes)

        self.state = ParseState.NEEDS_SECTION_HEADER
        self.time = None
        self.host = source_host or self.config["default_host"]
        self.section = None
        self.ignoring = False

    @property
    def done(self):
        return self.state is ParseState.DONE

    def set_time(self, millis):
        self.time = ChartTime(millis)

    def enter_section(self, host, section):
        self.host = host
        self.section = section
        self.ignoring = section.startswith(self.omit_prefixes)
        self.state = ParseState.IN_SECTION

    def match_start(self, line) -> bool:
        raise NotImplementedError

    def match(self, line):
        raise NotImplementedError

    def _unknown(self, line):
        raise StatParseError(f"Unknown line \"{line}\"")

    def _is_noise(self, line):
        if line.startswith(tuple(self.config["ignore_prefixes"].get(self.dialect, ()))):
            return True
        substrings = self.config.get("ignore_substrings", {}).get(self.dialect, ())
        return any(s in line for s in substrings)

    def _save(self, saver, line) -> bool:
        found = saver(self.time, line)
        if found is None:
            return False

        if not self.ignoring:
            for name, sample in found.items():
                self.sink(self.host, self.section, name, sample)
        return True

    def _save_any(self, line) -> bool:
        for saver in self.savers:
            if self._save(saver, line):
                return True
        return False

    def _header_line(self, line) -> bool:
        return self.match_start(line)

    def _strand_line(self, line):
        self.state = ParseState.IN_SECTION
        if self._header_line(line):
            return
        if not self._save(save_strand, line):
            raise StatParseError(f"Bad strand depths \"{line}\"")

    def _trigger_line(self, line):
        if not self._save(save_trigger, line):
            raise StatParseError(f"Bad trigger count line \"{line}\"")

    @staticmethod
    def _rewrite(line):
        if line.startswith("Number of "):
            return "Num " + line[len("Number of "):]
        return line


# -----------------------------------------------------------------------------
# pDAQ .moni files
# -----------------------------------------------------------------------------
class PDAQParser(BaseParser):
    dialect = "pdaq"
    savers = (save_long, save_list, save_map_array, save_memory, save_double,
              save_timing, save_string)

    BEAN_PAT = re.compile(r"^Bean\s+(\S+)\s*$")
    DATE_PAT = re.compile(
        r"^(\S+):\s+(\d{4}-\d{2}-\d{2}\s+\d{2}:\d{2}:\d{2})([.:,]\d+)?:\s*$"
    )

    @classmethod
    def sniff(cls, line):
        return cls.BEAN_PAT.match(line) is not None

    def match_start(self, line):
        match = self.BEAN_PAT.match(line)
        if not match:
            return False
        self.enter_section(self.host, match.group(1))
        return True

    def match(self, line):
        if self.state is ParseState.STRAND_DEPTHS:
            self._strand_line(line)
            return

        line = self._rewrite(line)

        if self._is_noise(line):
            return
        if line.startswith(("StrandDepths:", "Strand Depths:")):
            self.state = ParseState.STRAND_DEPTHS
            return
        if line.startswith("Triggercount:"):
            self._trigger_line("Trigger count:" + line[len("Triggercount:"):])
            return
        if line.startswith("Trigger count:"):
            self._trigger_line(line)
            return

        if self._save_any(line):
            return
        if self.match_start(line):
            return
        if self._match_date(line):
            return

        self._unknown(line)

    def _header_line(self, line):
        return self.match_start(line) or self._match_date(line)

    def _match_date(self, line):
        match = self.DATE_PAT.match(line)
        if not match:
            return False

        date_str = " ".join(match.group(2).split())
        try:
            stamp = datetime.strptime(date_str, "%Y-%m-%d %H:%M:%S")
        except ValueError:
            raise StatParseError(f"Ignoring bad date {date_str}") from None

        token = match.group(1)
        if token != self.section:
            self.host = token

        stamp = stamp.replace(tzinfo=timezone.utc)
        self.set_time(int(stamp.timestamp()) * 1000)
        return True


# -----------------------------------------------------------------------------
# Event builder logs
# -----------------------------------------------------------------------------
class EBLogParser(BaseParser):
    dialect = "eblog"
    savers = (save_long, save_memory, save_double, save_timing)

    PARSE_PAT = re.compile(r"^\s+(\d+):\s+(\S+)\s+(\S\S[^\s:]+):\s*$")
    HUB_PAT = re.compile(r"^\s+(\d+):\s+(\S+)__(\d+):\s*$")
    RAWTIME_PAT = re.compile(r"^\s+(\d+):\s*$")
    RAWNAME_PAT = re.compile(r"^(\S+)\s+(\S\S[^\s:]+):\s*$")

    LEGACY_HOST = "spts-evbuilder"
    LEGACY_SECTION = "ebstrands"

    @classmethod
    def _header(cls, line):
        return cls.PARSE_PAT.match(line) or cls.HUB_PAT.match(line)

    @classmethod
    def sniff(cls, line):
        return cls._header(line) is not None

    def match_start(self, line):
        match = self._header(line)
        if not match:
            return False

        # eblog times are in seconds
        self.set_time(int(match.group(1)) * 1000)
        self.enter_section(match.group(2), match.group(3))
        return True

    def match(self, line):
        if self.state is ParseState.STRAND_DEPTHS:
            self._strand_line(line)
            return

        line = self._rewrite(line)

        if self._is_noise(line):
            return
        if line.startswith("Strand Depths:"):
            self.state = ParseState.STRAND_DEPTHS
            return
        if line.startswith("Trigger count:"):
            self._trigger_line(line)
            return

        if self._save_any(line):
            return
        if self.match_start(line):
            return

        if line.startswith(f"{self.host} {self.section}"):
            return
        if line.startswith(f"{self.LEGACY_HOST} {self.LEGACY_SECTION}"):
            self.enter_section(self.LEGACY_HOST, self.LEGACY_SECTION)
            return
        if self.RAWTIME_PAT.match(line) or self.RAWNAME_PAT.match(line):
            return

        self._unknown(line)


# -----------------------------------------------------------------------------
# Bombard output
# -----------------------------------------------------------------------------
class BombardParser(BaseParser):
    dialect = "bombard"
    savers = (save_long, save_memory, save_double, save_timing, save_string)

    PARSE_PAT = re.compile(r"^\.*((\S+#\d+)\s+)?(\d+):\s+(\S*)MonitoringData:\s*$")

    @classmethod
    def sniff(cls, line):
        return cls.PARSE_PAT.match(line) is not None

    def match_start(self, line):
        match = self.PARSE_PAT.match(line)
        if not match:
            return False

        host = match.group(2) or self.source_host or self.config["default_host"]
        self.set_time(int(match.group(3)))
        self.enter_section(host, f"{match.group(4)}MonitoringData")
        return True

    def match(self, line):
        if self._save_any(line):
            return
        if self.match_start(line):
            return
        if line.startswith(tuple(self.config["done_prefixes"].get(self.dialect, ()))):
            self.state = ParseState.DONE
            return

        self._unknown(line)


DIALECTS = (PDAQParser, EBLogParser, BombardParser)


def detect(line, sink, source_host=None, config=None, omit_prefixes=()):
    """
    Return a parser for the first dialect whose header matches *line*, already
    positioned in the section that line opens, or None.
    """
    for parser_cls in DIALECTS:
        if parser_cls.sniff(line):
            parser = parser_cls(sink, source_host=source_host, config=config,
                                omit_prefixes=omit_prefixes)
            parser.match_start(line)
            logger.debug(f"Detected {parser.dialect} log from \"{line}\"")
            return parser
    return None

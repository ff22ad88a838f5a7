"""
StatData: drives a dialect parser over each input and stores what it finds.

The store maps SectionKey -> statistic name -> aggregate.  Aggregates only
grow; samples land in file order, which is taken to be timestamp order.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Tuple

from daqmoni.config import merged_config
from daqmoni.data import BaseData
from daqmoni.exceptions import StatParseError
from daqmoni.graph_source import GraphSource
from daqmoni.parsers import detect
from daqmoni.section_key import SectionKey
from daqmoni.stats import StatParent

logger = logging.getLogger(__name__)

# Aggregates holding fewer samples than this may still switch kind once
GRACE_SAMPLES = 2


class StatData:
    def __init__(self, config=None):
        self.config = merged_config(config)
        self._sections: Dict[SectionKey, Dict[str, StatParent]] = {}
        self._substituted = set()

        # Lines that raised StatParseError and samples dropped for their kind
        self.parse_errors = 0
        self.type_errors = 0

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------
    def add_data(self, source, omit_data_collector=False, omit_prefixes=()) -> Optional[str]:
        """
        Parse every line of *source* (a GraphSource, path, URL or stream).

        Returns the name of the detected dialect, or None when no line ever
        matched a section header.  Bad lines are logged and skipped; an
        ArityError aborts the source.  The stream is closed either way.
        """
        if not isinstance(source, GraphSource):
            source = GraphSource(source)

        prefixes = list(omit_prefixes)
        if omit_data_collector:
            prefixes.append(self.config["data_collector_prefix"])

        strip_char = self.config["strip_char"]

        parser = None
        stream = source.open()
        try:
            for line_num, line in enumerate(stream, start=1):
                line = line.rstrip("\r\n")
                if strip_char:
                    line = line.lstrip(strip_char)
                if not line.strip():
                    continue

                if parser is None:
                    parser = detect(line, self.add, source_host=source.host_name(),
                                    config=self.config, omit_prefixes=prefixes)
                    if parser is None:
                        logger.debug(f"{source}:{line_num}: no section header yet,"
                                     f" skipping \"{line}\"")
                    continue

                try:
                    parser.match(line)
                except StatParseError as exc:
                    self.parse_errors += 1
                    logger.error(f"{source}:{line_num}: {exc}")
                    continue

                if parser.done:
                    break
        finally:
            stream.close()

        if parser is None:
            logger.warning(f"No monitoring data found in {source}")
            return None
        return parser.dialect

    def add(self, host, section, name, sample: BaseData):
        key = SectionKey(host, section)
        stats = self._sections.setdefault(key, {})

        parent = stats.get(name)
        if parent is None:
            parent = sample.new_aggregate()
            stats[name] = parent
            parent.add(sample)
            return

        if parent.accepts(sample):
            parent.add(sample)
            return

        if len(parent) < GRACE_SAMPLES and (key, name) not in self._substituted:
            discarded = [s for s in parent if not s.is_empty()]
            if discarded:
                logger.warning(f"{key} {name}: replacing {parent!r} with"
                               f" {sample.kind} data, discarding"
                               f" {', '.join(s.render_value() for s in discarded)}")
            else:
                logger.warning(f"{key} {name}: replacing {parent!r} with"
                               f" {sample.kind} data")

            replacement = sample.new_aggregate()
            replacement.add(sample)
            stats[name] = replacement
            self._substituted.add((key, name))
            return

        self.type_errors += 1
        logger.error(f"{key} {name}: expected {parent.kind} data, not"
                     f" {sample.kind} ({sample.render_value()})")

    def transform(self) -> int:
        """Add the derived aggregates each aggregate offers; return how many."""
        added = 0
        for key, name, parent in list(self):
            derived = parent.transform(name, self.config)
            if not derived:
                continue

            stats = self._sections[key]
            for new_name, stat in derived.items():
                if new_name in stats:
                    logger.error(f"{key}: not replacing existing \"{new_name}\""
                                 f" with transformed data")
                    continue
                stats[new_name] = stat
                added += 1
        return added

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------
    def sections(self) -> List[SectionKey]:
        return sorted(self._sections)

    def names(self, key: SectionKey) -> List[str]:
        return sorted(self._sections.get(key, {}))

    def get_statistics(self, key: SectionKey, name: str) -> Optional[StatParent]:
        return self._sections.get(key, {}).get(name)

    def __iter__(self) -> Iterator[Tuple[SectionKey, str, StatParent]]:
        for key in self.sections():
            for name in self.names(key):
                yield key, name, self._sections[key][name]

    def __len__(self):
        return sum(len(stats) for stats in self._sections.values())

    def __repr__(self):
        return f"StatData[{','.join(str(k) for k in self.sections())}]"

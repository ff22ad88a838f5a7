"""
daq-moni: load monitoring logs and dump what was parsed.

Example:
    daq-moni -o --delta eventBuilder-0.moni.gz http://host/logs/stringHub-21.moni
"""

import argparse
import logging
import sys

import numpy as np
from humanfriendly import format_size
from tabulate import tabulate
from tqdm import tqdm

from daqmoni import components
from daqmoni.data import MemoryData
from daqmoni.exceptions import DAQMoniToolError
from daqmoni.graph_source import GraphSource, is_url
from daqmoni.stat_data import StatData

logger = logging.getLogger(__name__)

MAX_DETAIL = 60


def render_sample(sample):
    if isinstance(sample, MemoryData):
        return (f"used {format_size(sample.used, binary=True)},"
                f" free {format_size(sample.free, binary=True)}")
    return sample.render_value()


def shorten(text, width=MAX_DETAIL):
    if len(text) <= width:
        return text
    return text[:width - 3] + "..."


def summarize(coll):
    """One ``label: low..high (count)`` entry per channel of a view."""
    parts = []
    for series in coll:
        values = np.asarray(series.values(), dtype=float)
        if values.size == 0:
            parts.append(f"{series.label}: -")
        else:
            parts.append(f"{series.label}: {values.min():g}..{values.max():g}"
                         f" ({values.size})")
    return "; ".join(parts)


def build_view(parent, name, view, config):
    if view == "delta":
        return parent.delta(name, config)
    if view == "scaled":
        return parent.scaled(name, config)
    return parent.raw(name, config)


def load_sources(stat_data, sources, omit_data_collector=False):
    """Load each source into *stat_data*; return how many yielded any data."""
    loaded = 0
    for src in tqdm(sources, desc="Loading monitoring data", unit="file"):
        source = GraphSource(src)
        if not is_url(src) and not source.path.exists():
            logger.error(f"Bad file '{src}'")
            continue

        try:
            dialect = stat_data.add_data(source, omit_data_collector=omit_data_collector)
        except (OSError, DAQMoniToolError) as exc:
            logger.error(f"Couldn't load \"{src}\": {exc}")
            continue

        if dialect is not None:
            logger.info(f"{src}: {dialect} data")
            loaded += 1
    return loaded


def dump_rows(stat_data, view=None, interesting_only=False, keys=None):
    rows = []
    if keys is None:
        keys = stat_data.sections()

    for key in keys:
        for name in stat_data.names(key):
            row = _dump_row(stat_data, key, name, view, interesting_only)
            if row is not None:
                rows.append(row)
    return rows


def _dump_row(stat_data, key, name, view, interesting_only):
    parent = stat_data.get_statistics(key, name)
    detail = None
    if view or interesting_only:
        try:
            coll = build_view(parent, name, view or "raw", stat_data.config)
        except DAQMoniToolError as exc:
            logger.error(f"{key} {name}: {exc}")
            return None
        if interesting_only and not coll.is_interesting():
            return None
        if view:
            detail = summarize(coll)

    if detail is None:
        detail = ", ".join(render_sample(s) for s in parent)
    return [str(key), name, parent.kind, len(parent), shorten(detail)]


def component_rows(stat_data, keys=None):
    rows = []
    for comp in components.extract(stat_data, keys):
        single = comp.is_single_instance()
        for inst in comp:
            for bean in inst:
                rows.append([comp.name, "" if single else inst.number,
                             bean.name, len(bean)])
    return rows


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Parse DAQ monitoring logs and dump their statistics.")
    parser.add_argument("sources", nargs="+", metavar="FILE|URL",
                        help="Monitoring log files (optionally .gz) or URLs.")
    parser.add_argument("-o", "--omit-data-collector", action="store_true",
                        help="Drop DataCollectorMonitor beans.")
    sections = parser.add_mutually_exclusive_group()
    sections.add_argument("-i", "--include-section", action="append", default=[],
                          metavar="SECTION", help="Only show this section (repeatable).")
    sections.add_argument("-x", "--exclude-section", action="append", default=[],
                          metavar="SECTION", help="Hide this section (repeatable).")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log debugging details.")
    view = parser.add_mutually_exclusive_group()
    view.add_argument("--delta", dest="view", action="store_const", const="delta",
                      help="Summarize the delta view of each statistic.")
    view.add_argument("--scaled", dest="view", action="store_const", const="scaled",
                      help="Summarize the min/max scaled view of each statistic.")
    view.add_argument("--raw", dest="view", action="store_const", const="raw",
                      help="Summarize the raw view of each statistic.")
    parser.add_argument("--transform", action="store_true",
                        help="Add derived statistics such as CPU percentages.")
    parser.add_argument("--interesting", action="store_true",
                        help="Only list statistics whose values actually change.")
    parser.add_argument("--components", action="store_true",
                        help="List components, instances and beans instead of statistics.")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s - %(levelname)s - %(message)s')

    stat_data = StatData()
    if load_sources(stat_data, args.sources, args.omit_data_collector) == 0:
        logger.error("No usable monitoring data given")
        return 1

    if args.transform:
        added = stat_data.transform()
        logger.info(f"Added {added} transformed statistics")

    keys = components.select_sections(stat_data, args.include_section,
                                      args.exclude_section)

    if args.components:
        print(tabulate(component_rows(stat_data, keys),
                       headers=["Component", "Instance", "Bean", "Statistics"],
                       tablefmt="heavy_outline"))
        return 0

    rows = dump_rows(stat_data, args.view, args.interesting, keys)
    print(tabulate(rows, headers=["Section", "Name", "Type", "Samples", "Data"],
                   tablefmt="heavy_outline"))
    return 0


if __name__ == "__main__":
    sys.exit(main())

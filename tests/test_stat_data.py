import gzip
import io
import logging

import pytest

from daqmoni.data import DoubleData, LongData
from daqmoni.exceptions import ArityError
from daqmoni.section_key import SectionKey
from daqmoni.stat_data import StatData
from daqmoni.stats import DoubleStat, LongStat
from tests.conftest import FOO_MONI, at

FOO_KEY = SectionKey("foo-0", "FooMonitor")


class TestEndToEnd:
    def test_pdaq_counts(self, load_text):
        data, dialect = load_text(FOO_MONI)
        assert dialect == "pdaq"
        assert data.sections() == [FOO_KEY]
        assert data.names(FOO_KEY) == ["count"]

        stat = data.get_statistics(FOO_KEY, "count")
        assert isinstance(stat, LongStat)
        assert [s.value for s in stat] == [5, 7]

        delta = stat.delta("count")
        assert list(delta["count"].values()) == [2.0]

    def test_memory_line(self, load_text):
        data, _ = load_text("Bean Mem\n"
                            "foo-0: 2020-01-01 00:00:00:\n"
                            "Mem: 1024K used, 2048K of 4096K free.\n")
        mem = data.get_statistics(SectionKey("foo-0", "Mem"), "Mem").samples()[0]
        assert mem.used == 1048576
        assert mem.free == 4194304

    def test_list_arity_aborts_file(self, stat_data):
        stream = io.StringIO("Bean B\n"
                             "h-0: 2020-01-01 00:00:00:\n"
                             "  depth: [1, 2, 3]\n"
                             "h-0: 2020-01-01 00:00:01:\n"
                             "  depth: [1, 2]\n"
                             "  after: 9\n")
        with pytest.raises(ArityError):
            stat_data.add_data(stream)

        assert stream.closed
        key = SectionKey("h-0", "B")
        assert stat_data.names(key) == ["depth"]
        assert len(stat_data.get_statistics(key, "depth")) == 1

    @pytest.mark.parametrize("second_value, complains", [(5, False), (9, True)])
    def test_same_second_collision(self, load_text, caplog, second_value, complains):
        data, _ = load_text("Bean B\n"
                            "h-0: 2020-01-01 00:00:00.100:\n"
                            "  count: 5\n"
                            "h-0: 2020-01-01 00:00:00.900:\n"
                            f"  count: {second_value}\n")
        stat = data.get_statistics(SectionKey("h-0", "B"), "count")
        assert len(stat) == 2

        caplog.clear()
        with caplog.at_level(logging.ERROR, logger="daqmoni.series"):
            coll = stat.raw("count")
        assert len(coll["count"]) == 1
        assert ("already contains" in caplog.text) == complains


class TestLineHandling:
    def test_bean_after_strand_header(self, load_text):
        data, _ = load_text("Bean A\n"
                            "h-0: 2020-01-01 00:00:00:\n"
                            "StrandDepths:\n"
                            "Bean B\n"
                            "h-0: 2020-01-01 00:00:01:\n"
                            "  count: 5\n")
        assert data.parse_errors == 0
        assert data.sections() == [SectionKey("h-0", "B")]
        assert len(data.get_statistics(SectionKey("h-0", "B"), "count")) == 1

    def test_timing_without_pieces_keeps_kind(self, load_text):
        data, _ = load_text("Bean B\n"
                            "h-0: 2020-01-01 00:00:00:\n"
                            "  sendTiming: nothing yet\n"
                            "h-0: 2020-01-01 00:00:01:\n"
                            "  sendTiming: foo: 100/10=10#100%\n")
        stat = data.get_statistics(SectionKey("h-0", "B"), "sendTiming")
        assert stat.kind == "timing"
        assert len(stat) == 1

    def test_stream_errors_name_the_stream(self, load_text, caplog):
        with caplog.at_level(logging.ERROR, logger="daqmoni.stat_data"):
            load_text("Bean B\n"
                      "  count: 1\n")
        assert "<stream>:2: " in caplog.text
        assert "object at 0x" not in caplog.text

    def test_bad_lines_are_counted_and_skipped(self, load_text, caplog):
        with caplog.at_level(logging.ERROR, logger="daqmoni.stat_data"):
            data, _ = load_text("Bean B\n"
                                "  count: 1\n"
                                "h-0: 2020-01-01 00:00:00:\n"
                                "  count: 99999999999999999999\n"
                                "!!! what is this\n"
                                "  count: 2\n")
        assert data.parse_errors == 3
        assert "before time was set" in caplog.text
        assert "Unknown line" in caplog.text
        stat = data.get_statistics(SectionKey("h-0", "B"), "count")
        assert [s.value for s in stat] == [2]

    def test_leading_dots_and_blank_lines(self, load_text):
        data, _ = load_text("...Bean B\n"
                            "\n"
                            "..h-0: 2020-01-01 00:00:00:\n"
                            "   \n"
                            ".  count: 4\n")
        assert data.names(SectionKey("h-0", "B")) == ["count"]

    def test_lines_before_header_skipped(self, load_text, caplog):
        with caplog.at_level(logging.DEBUG, logger="daqmoni.stat_data"):
            data, dialect = load_text("garbage\n" + FOO_MONI)
        assert dialect == "pdaq"
        assert "garbage" in caplog.text
        assert data.parse_errors == 0

    def test_nothing_recognized(self, load_text):
        data, dialect = load_text("nothing to see\nhere\n")
        assert dialect is None
        assert len(data) == 0

    def test_bombard_stops_at_done(self, load_text):
        data, dialect = load_text("1000: fooMonitoringData:\n"
                                  "  count: 5\n"
                                  "Processed all events\n"
                                  "2000: fooMonitoringData:\n"
                                  "  count: 6\n")
        assert dialect == "bombard"
        stat = data.get_statistics(SectionKey("localhost", "fooMonitoringData"), "count")
        assert [s.value for s in stat] == [5]

    def test_omit_data_collector(self, load_text):
        data, _ = load_text("Bean DataCollectorMonitor-00A\n"
                            "h-0: 2020-01-01 00:00:00:\n"
                            "  count: 5\n"
                            "Bean FooMonitor\n"
                            "  count: 6\n",
                            omit_data_collector=True)
        assert data.sections() == [SectionKey("h-0", "FooMonitor")]


class TestTypeGrace:
    def test_substitution_within_grace(self, caplog):
        data = StatData()
        data.add("h-0", "B", "val", LongData(at(0), 5))
        with caplog.at_level(logging.WARNING, logger="daqmoni.stat_data"):
            data.add("h-0", "B", "val", DoubleData(at(1), 1.5))
        assert "discarding 5" in caplog.text

        data.add("h-0", "B", "val", DoubleData(at(2), 2.5))
        stat = data.get_statistics(SectionKey("h-0", "B"), "val")
        assert isinstance(stat, DoubleStat)
        assert [s.value for s in stat] == [1.5, 2.5]

        with caplog.at_level(logging.ERROR, logger="daqmoni.stat_data"):
            data.add("h-0", "B", "val", LongData(at(3), 3))
        assert data.type_errors == 1
        assert len(stat) == 2

    def test_substitution_happens_once(self):
        data = StatData()
        data.add("h-0", "B", "val", LongData(at(0), 5))
        data.add("h-0", "B", "val", DoubleData(at(1), 1.5))
        data.add("h-0", "B", "val", LongData(at(2), 7))

        stat = data.get_statistics(SectionKey("h-0", "B"), "val")
        assert isinstance(stat, DoubleStat)
        assert data.type_errors == 1

    def test_from_log_text(self, load_text):
        data, _ = load_text("Bean B\n"
                            "h-0: 2020-01-01 00:00:00:\n"
                            "  val: 5\n"
                            "h-0: 2020-01-01 00:00:01:\n"
                            "  val: 1.5\n")
        stat = data.get_statistics(SectionKey("h-0", "B"), "val")
        assert stat.kind == "double"


class TestSources:
    def test_gzip_path_names_host(self, tmp_path):
        path = tmp_path / "foo-3.moni.gz"
        with gzip.open(path, "wt") as out:
            out.write("Bean FooMonitor\n"
                      "FooMonitor: 2020-01-01 00:00:00:\n"
                      "  count: 5\n")

        data = StatData()
        assert data.add_data(path) == "pdaq"
        assert data.sections() == [SectionKey("foo-3", "FooMonitor")]

    def test_binary_stream(self):
        data = StatData()
        stream = io.BytesIO(FOO_MONI.encode())
        data.add_data(stream)
        assert stream.closed
        assert data.names(FOO_KEY) == ["count"]

    def test_files_accumulate(self, tmp_path):
        first = tmp_path / "a.moni"
        first.write_text(FOO_MONI)
        second = tmp_path / "b.moni"
        second.write_text(FOO_MONI.replace("00:00:00", "00:00:05")
                          .replace("00:00:01", "00:00:06"))

        data = StatData()
        data.add_data(first)
        data.add_data(str(second))
        assert len(data.get_statistics(FOO_KEY, "count")) == 4


class TestLookupAndTransform:
    def test_lookup(self, load_text):
        data, _ = load_text(FOO_MONI)
        assert data.get_statistics(FOO_KEY, "missing") is None
        assert data.get_statistics(SectionKey("x", "y"), "count") is None
        assert data.names(SectionKey("x", "y")) == []
        assert [(k, n) for k, n, _ in data] == [(FOO_KEY, "count")]

    def test_cpu_transform(self, load_text):
        data, _ = load_text("Bean CPUMonitor\n"
                            "h-0: 2020-01-01 00:00:00:\n"
                            "  CPUStatistics: {'cpu0': [10, 20, 30, 40, 0, 0, 0, 0]}\n")
        assert data.transform() == 8

        key = SectionKey("h-0", "CPUMonitor")
        assert "CPUStatistics_cpu0" in data.names(key)
        user = data.get_statistics(key, "User_cpu0")
        assert [s.value for s in user] == [10.0]

    def test_config_override(self):
        data = StatData(config={"long_tolerance": 10})
        data.add_data(io.StringIO("Bean B\n"
                                  "h-0: 2020-01-01 00:00:00.100:\n"
                                  "  count: 5\n"
                                  "h-0: 2020-01-01 00:00:00.900:\n"
                                  "  count: 9\n"))
        stat = data.get_statistics(SectionKey("h-0", "B"), "count")
        assert stat.raw("count", data.config)["count"].tolerance == 10

    def test_unknown_config_key(self):
        with pytest.raises(KeyError):
            StatData(config={"no_such_key": 1})

import io

import pytest

from daqmoni.chart_time import ChartTime
from daqmoni.stat_data import StatData

FOO_MONI = """\
Bean FooMonitor
foo-0: 2020-01-01 00:00:00.000:
  count: 5
Bean FooMonitor
foo-0: 2020-01-01 00:00:01.000:
  count: 7
"""

# 2020-01-01 00:00:00 UTC
EPOCH_2020 = 1577836800


def at(seconds, millis=0):
    """ChartTime for *seconds* after the epoch plus *millis*."""
    return ChartTime(seconds * 1000 + millis)


@pytest.fixture
def stat_data():
    return StatData()


@pytest.fixture
def load_text(stat_data):
    """Feed a block of log text through a fresh StatData."""
    def _load(text, **kwargs):
        dialect = stat_data.add_data(io.StringIO(text), **kwargs)
        return stat_data, dialect
    return _load

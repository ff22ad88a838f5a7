"""Parse DAQ monitoring logs into per-section time series."""

from daqmoni.chart_time import ChartTime
from daqmoni.exceptions import (
    ArityError,
    DAQMoniToolError,
    StatParseError,
    StatPlotError,
)
from daqmoni.graph_source import GraphSource
from daqmoni.section_key import SectionKey
from daqmoni.stat_data import StatData

__version__ = "0.1.0"

__all__ = [
    "ArityError",
    "ChartTime",
    "DAQMoniToolError",
    "GraphSource",
    "SectionKey",
    "StatData",
    "StatParseError",
    "StatPlotError",
]

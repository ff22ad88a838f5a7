"""
Shared settings for the monitoring-log parser.

Everything tunable lives in the module-level CONFIG dictionary.  Callers
that need different values pass a partial override to ``StatData`` (or use
the matching ``daq-moni`` flags); ``merged_config`` folds the override over
the defaults without touching the shared dictionary.
"""

import copy

# -----------------------------------------------------------------------------
# Global configuration dictionary
# -----------------------------------------------------------------------------
CONFIG = {
    # Leading marker stripped (repeatedly) from every input line
    "strip_char": ".",

    # Host used when neither the log nor the source name provides one
    "default_host": "localhost",

    # Bean prefix dropped by the "omit data collector" option
    "data_collector_prefix": "DataCollectorMonitor",

    # Two samples landing on the same second are merged when they differ by
    # no more than this; otherwise the later one is dropped
    "long_tolerance": 2,
    "double_tolerance": 0.2,

    # Channel labels for list stats, chosen by name prefix
    "list_field_names": {
        "LoadAverage": ["1 Minute", "5 Minute", "15 Minute"],
        "MemoryStatistics": ["Used", "Total"],
        "EventData": ["Run Number", "Events", "Ticks"],
    },

    # Channel labels for map-array stats, chosen by name prefix
    "map_array_field_names": {
        "ProfileTimes": ["Count", "Min Value", "Max Value", "Average", "RMS"],
        "CPUStatistics": ["User", "Nice", "System", "Idle", "IOWait", "IRQ",
                          "SoftIRQ", "Other"],
    },

    # Structural noise for each dialect; matching lines are accepted and
    # nothing is stored
    "ignore_prefixes": {
        "pdaq": ["Healthy flag: ", "Failed to fetch "],
        "eblog": [
            "Healthy flag: ", "Back End State: ", "Missing field: ",
            "Statistics for ", "Dump for ", "Fetch of ",
            "nodeport localhost", "Failed to fetch ",
        ],
        "bombard": [],
    },

    # Substrings that mark a PDAQ line as noise wherever they appear
    "ignore_substrings": {
        "pdaq": ["BackEndState: "],
    },

    # Lines that end a bombard run
    "done_prefixes": {
        "bombard": ["BufMgr ", "Processed "],
    },
}


def merged_config(overrides=None):
    """Return a private copy of CONFIG with *overrides* applied on top."""
    config = copy.deepcopy(CONFIG)
    if overrides:
        for key, value in overrides.items():
            if key not in config:
                raise KeyError(f"Unknown configuration key {key!r}")
            config[key] = value
    return config

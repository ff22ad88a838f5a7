"""Exception hierarchy for the monitoring-log tools."""


class DAQMoniToolError(Exception):
    """Root of every error raised by daqmoni."""


class StatParseError(DAQMoniToolError):
    """A single input line could not be turned into a sample.

    Raised for malformed numeric fields, unknown lines and statistics seen
    before a timestamp.  ``StatData`` logs it and moves on to the next line.
    """


class StatPlotError(DAQMoniToolError):
    """A derived view could not be built for an aggregate."""


class ArityError(DAQMoniToolError):
    """A list or strand sample disagrees with the established arity.

    This means the dialect guess was wrong, so it aborts the whole file
    instead of the single line.
    """

    def __init__(self, message, expected=None, found=None):
        super().__init__(message)
        self.expected = expected
        self.found = found

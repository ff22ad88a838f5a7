import logging
from functools import total_ordering

logger = logging.getLogger(__name__)


@total_ordering
class SectionKey:
    """
    Identity of one (host, section) unit of monitoring data.

    The host is expected to look like ``component-N``; the component name and
    instance number are split off the last ``-``.  A host without a ``-`` is
    its own component with instance 0, and a suffix that is not a
    non-negative integer also yields instance 0 (with a warning) so that
    grouping stays stable for odd hostnames.
    """

    __slots__ = ("host", "section", "_component", "_instance")

    def __init__(self, host, section):
        if not host:
            raise ValueError("SectionKey host cannot be empty")
        if not section:
            raise ValueError("SectionKey section cannot be empty")

        self.host = host
        self.section = section
        self._component, self._instance = _split_host(host)

    def component(self):
        return self._component

    def instance(self):
        return self._instance

    def _cmp_key(self):
        return (self.host, self.section)

    def __eq__(self, other):
        if not isinstance(other, SectionKey):
            return NotImplemented
        return self._cmp_key() == other._cmp_key()

    def __lt__(self, other):
        if not isinstance(other, SectionKey):
            return NotImplemented
        return self._cmp_key() < other._cmp_key()

    def __hash__(self):
        return hash(self._cmp_key())

    def __repr__(self):
        return f"SectionKey({self.host!r}, {self.section!r})"

    def __str__(self):
        return f"{self.host}:{self.section}"


def _split_host(host):
    idx = host.rfind("-")
    if idx < 0:
        return host, 0

    component = host[:idx]
    suffix = host[idx + 1:]
    if suffix.isascii() and suffix.isdigit():
        return component, int(suffix)

    logger.warning(f"Bad instance number in host {host!r}; using 0")
    return component, 0

"""Where monitoring text comes from: a file, a gzipped file, a URL or a stream."""

from __future__ import annotations

import gzip
import io
import os
import posixpath
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import urlopen

URL_SCHEMES = ("http", "https", "ftp", "file")


def is_url(text) -> bool:
    return isinstance(text, str) and urlparse(text).scheme in URL_SCHEMES


class GraphSource:
    """
    One input for StatData.

    Accepts a path (``str`` or ``Path``), a URL string, or an already-open
    stream.  ``open()`` always hands back a text stream; the caller owns it
    and must close it.
    """

    def __init__(self, source, name=None):
        self.path = None
        self.url = None
        self.stream = None

        if isinstance(source, os.PathLike):
            self.path = Path(source)
        elif is_url(source):
            self.url = source
        elif isinstance(source, str):
            self.path = Path(source)
        elif hasattr(source, "read"):
            self.stream = source
        else:
            raise TypeError(f"Cannot read monitoring data from {source!r}")

        self._name = name

    @property
    def name(self) -> str:
        if self._name is not None:
            return self._name
        if self.path is not None:
            return self.path.name
        if self.url is not None:
            return urlparse(self.url).path
        return getattr(self.stream, "name", None) or ""

    def host_name(self):
        """Basename without ``.gz`` and ``.moni``, or None when there isn't one."""
        base = posixpath.basename(str(self.name).replace(os.sep, "/"))
        for suffix in (".gz", ".moni"):
            if base.endswith(suffix):
                base = base[:-len(suffix)]
        return base or None

    def _compressed(self):
        return str(self.name).endswith(".gz")

    def open(self):
        if self.path is not None:
            opener = gzip.open if self.path.suffix == ".gz" else open
            return opener(self.path, "rt", errors="replace")

        if self.url is not None:
            raw = urlopen(self.url)
            if self._compressed():
                raw = self._inflate(raw)
            return io.TextIOWrapper(raw, errors="replace")

        if isinstance(self.stream, io.TextIOBase):
            return self.stream
        if self._compressed():
            return io.TextIOWrapper(self._inflate(self.stream), errors="replace")
        return io.TextIOWrapper(self.stream, errors="replace")

    @staticmethod
    def _inflate(raw):
        # GzipFile never closes a fileobj it was handed
        with raw:
            data = raw.read()
        return gzip.GzipFile(fileobj=io.BytesIO(data))

    def __str__(self):
        return self.name or "<stream>"

import gzip
import io

import pytest

from daqmoni.graph_source import GraphSource, is_url


class TestNames:
    def test_path(self, tmp_path):
        source = GraphSource(tmp_path / "eventBuilder-0.moni")
        assert source.name == "eventBuilder-0.moni"
        assert source.host_name() == "eventBuilder-0"

    def test_gzip_path(self):
        assert GraphSource("logs/stringHub-21.moni.gz").host_name() == "stringHub-21"

    def test_url(self):
        source = GraphSource("http://example.com/logs/foo-1.moni?x=1")
        assert source.url is not None
        assert source.name == "/logs/foo-1.moni"
        assert source.host_name() == "foo-1"

    def test_stream_without_name(self):
        assert GraphSource(io.StringIO("")).host_name() is None

    def test_unnamed_stream_label(self):
        assert str(GraphSource(io.StringIO(""))) == "<stream>"
        assert str(GraphSource(io.StringIO(""), name="bar-2.moni")) == "bar-2.moni"

    def test_explicit_name(self):
        assert GraphSource(io.StringIO(""), name="bar-2.moni").host_name() == "bar-2"

    def test_rejects_other_objects(self):
        with pytest.raises(TypeError):
            GraphSource(42)

    def test_is_url(self):
        assert is_url("https://host/x")
        assert is_url("file:///tmp/x")
        assert not is_url("/tmp/x")
        assert not is_url("relative/x.moni")


class TestOpen:
    def test_plain_file(self, tmp_path):
        path = tmp_path / "a.moni"
        path.write_text("Bean X\n")
        with GraphSource(path).open() as stream:
            assert stream.read() == "Bean X\n"

    def test_gzip_file(self, tmp_path):
        path = tmp_path / "a.moni.gz"
        with gzip.open(path, "wt") as out:
            out.write("Bean X\n")
        with GraphSource(path).open() as stream:
            assert stream.readline() == "Bean X\n"

    def test_file_url(self, tmp_path):
        path = tmp_path / "a.moni"
        path.write_text("Bean X\n")
        with GraphSource(path.as_uri()).open() as stream:
            assert stream.read() == "Bean X\n"

    def test_gzip_stream(self):
        raw = io.BytesIO(gzip.compress(b"Bean X\n"))
        with GraphSource(raw, name="a.moni.gz").open() as stream:
            assert stream.read() == "Bean X\n"
        assert raw.closed

    def test_text_stream_passes_through(self):
        text = io.StringIO("Bean X\n")
        assert GraphSource(text).open() is text

import io

import pytest

from csvdocument import FilterChain, FilterEntry, InvalidArgument, UnsupportedFilter
from csvdocument.filters import FilteredStream, Transcoder, register_filter, unregister_filter


class Prefix:
    def __init__(self, prefix=b"x:"):
        self.prefix = prefix
        self.done = False

    def transform(self, data, final):
        if self.done or (not data and not final):
            return data
        self.done = True
        return self.prefix + data


class Upper:
    def transform(self, data, final):
        return data.upper()


@pytest.fixture
def test_filters():
    register_filter("test.upper", Upper)
    register_filter("test.prefix", Prefix)
    yield
    unregister_filter("test.upper")
    unregister_filter("test.prefix")


def test_append_rejects_unknown_filter_immediately():
    chain = FilterChain()
    with pytest.raises(UnsupportedFilter):
        chain.append("foo")
    assert len(chain) == 0

def test_resolve_fails_before_reading_on_unknown_filter():
    raw = io.BytesIO(b"a,b\n")
    chain = FilterChain([FilterEntry(name="string.toupper"), FilterEntry(name="foo")])
    with pytest.raises(UnsupportedFilter):
        chain.resolve(raw, "read")
    assert raw.tell() == 0
    assert not raw.closed

def test_read_order_last_registered_is_innermost(test_filters):
    chain = FilterChain()
    chain.append("test.upper")
    chain.append("test.prefix")
    # raw -> prefix -> upper -> caller
    assert chain.resolve(io.BytesIO(b"abc"), "read").read() == b"X:ABC"

def test_read_order_follows_prepend(test_filters):
    chain = FilterChain()
    chain.append("test.upper")
    chain.prepend("test.prefix")
    # raw -> upper -> prefix -> caller
    assert chain.resolve(io.BytesIO(b"abc"), "read").read() == b"x:ABC"

def test_write_order_first_registered_sees_bytes_first(test_filters):
    raw = io.BytesIO()
    chain = FilterChain()
    chain.append("test.upper")
    chain.append("test.prefix")
    stream = chain.resolve(raw, "write", close_inner=False)
    stream.write(b"abc")
    stream.close()
    # caller -> upper -> prefix -> raw
    assert raw.getvalue() == b"x:ABC"
    assert not raw.closed

def test_filters_only_apply_to_their_mode():
    chain = FilterChain()
    chain.append("string.toupper", applies_to="write")
    raw = io.BytesIO(b"abc")
    assert chain.resolve(raw, "read") is raw
    assert [entry.name for entry in chain.applicable("write")] == ["string.toupper"]

def test_params_are_passed_to_the_factory(test_filters):
    chain = FilterChain()
    chain.append("test.prefix", {"prefix": b">>"})
    assert chain.resolve(io.BytesIO(b"abc"), "read").read() == b">>abc"

def test_invalid_applies_to_is_rejected():
    with pytest.raises(InvalidArgument):
        FilterChain().append("string.toupper", applies_to="sideways")

def test_remove_has_and_clear():
    chain = FilterChain()
    chain.append("string.toupper")
    chain.append("string.rot13")
    chain.append("string.toupper")
    assert chain.has("string.toupper")
    assert chain.remove("string.toupper") is True
    assert not chain.has("string.toupper")
    assert chain.remove("string.toupper") is False
    assert [entry.name for entry in chain] == ["string.rot13"]
    chain.clear()
    assert len(chain) == 0

def test_copy_is_independent():
    chain = FilterChain()
    chain.append("convert.transcode", {"from_encoding": "latin-1"})
    copied = chain.copy()
    copied.entries[0].params["from_encoding"] = "cp1252"
    copied.append("string.tolower")
    assert chain.entries[0].params == {"from_encoding": "latin-1"}
    assert len(chain) == 1

def test_builtin_byte_filters():
    chain = FilterChain()
    chain.append("string.rot13")
    assert chain.resolve(io.BytesIO(b"Hello"), "read").read() == b"Uryyb"
    chain = FilterChain()
    chain.append("string.tolower")
    assert chain.resolve(io.BytesIO(b"Hello"), "read").read() == b"hello"

def test_transcoder_handles_split_multibyte_sequences():
    encoded = "Zoë,Montréal\n".encode("utf-8")
    transcoder = Transcoder("utf-8", "latin-1")
    out = b"".join(transcoder.transform(encoded[i:i + 1], False) for i in range(len(encoded)))
    out += transcoder.transform(b"", True)
    assert out == "Zoë,Montréal\n".encode("latin-1")

def test_transcoder_auto_detection():
    text = "nom,ville,remarque\nZoë,Montréal,très élevé\nJosé,Göteborg,déjà vu\n" * 4
    transcoder = Transcoder("auto", "utf-8")
    assert transcoder.transform(text.encode("utf-8"), False) == b""
    assert transcoder.transform(b"", True).decode("utf-8") == text

def test_filtered_stream_closes_inner_only_when_owned():
    owned = io.BytesIO(b"abc")
    FilteredStream(owned, Upper(), "read").close()
    assert owned.closed

    borrowed = io.BytesIO(b"abc")
    FilteredStream(borrowed, Upper(), "read", close_inner=False).close()
    assert not borrowed.closed

def test_filtered_stream_is_one_directional():
    stream = FilteredStream(io.BytesIO(), Upper(), "write")
    assert stream.writable()
    assert not stream.readable()

def test_bad_filter_params_fail_at_append():
    chain = FilterChain()
    with pytest.raises(InvalidArgument):
        chain.append("convert.transcode", {"from_encoding": "bogus"})
    with pytest.raises(InvalidArgument):
        chain.append("string.toupper", {"unexpected": True})
    assert len(chain) == 0

import io

import pytest

from csvdocument import UTF8, UTF16_LE, InvalidArgument, NullHandling, Reader, Writer


@pytest.fixture
def reader():
    return Reader.from_string("name,age\nann,30\nbob\ncid,41,extra\n")


def test_fetch_all(reader):
    assert reader.fetch_all() == [["name", "age"], ["ann", "30"], ["bob"], ["cid", "41", "extra"]]
    assert reader.fetch_all(lambda record, index: (index, record[0])) == [
        (0, "name"), (1, "ann"), (2, "bob"), (3, "cid"),
    ]

def test_fetch_one(reader):
    assert reader.fetch_one() == ["name", "age"]
    assert reader.fetch_one(2) == ["bob"]
    assert reader.fetch_one(10) == []
    with pytest.raises(InvalidArgument):
        reader.fetch_one(-1)

def test_fetch_column_skips_short_records(reader):
    assert reader.fetch_column(1) == ["age", "30", "41"]
    with pytest.raises(InvalidArgument):
        reader.fetch_column(-1)

def test_fetch_assoc_with_header_offset(reader):
    assert reader.fetch_assoc() == [
        {"name": "ann", "age": "30"},
        {"name": "bob", "age": None},
        {"name": "cid", "age": "41"},
    ]

def test_fetch_assoc_with_explicit_keys(reader):
    rows = reader.fetch_assoc(["a", "b"], lambda row, index: row["a"])
    assert rows == ["name", "ann", "bob", "cid"]

def test_fetch_assoc_rejects_duplicate_keys(reader):
    with pytest.raises(InvalidArgument):
        reader.fetch_assoc(["a", "a"])
    with pytest.raises(InvalidArgument):
        reader.fetch_assoc(10)

def test_each_stops_when_the_callback_returns_false(reader):
    seen = []

    def visit(record, index):
        seen.append(record[0])
        return index < 1

    assert reader.each(visit) == 2
    assert seen == ["name", "ann"]

def test_insert_one_and_all():
    buffer = io.BytesIO()
    writer = Writer(buffer)
    writer.insert_one(["a", "b c", 'say "hi"'])
    writer.insert_all([[1, 2.5, True], 'x,"y z"'])
    assert buffer.getvalue() == b'a,"b c","say ""hi"""\n1,2.5,True\nx,"y z"\n'

def test_writer_uses_dialect_and_newline():
    buffer = io.BytesIO()
    writer = Writer(buffer).set_delimiter(";").set_enclosure("'").set_newline("\r\n")
    writer.insert_one(["x;y", "z"])
    assert buffer.getvalue() == b"'x;y';z\r\n"

def test_output_bom_is_injected_once_into_an_empty_stream():
    buffer = io.BytesIO()
    writer = Writer(buffer).set_output_bom(UTF8)
    writer.insert_one(["a", "b"])
    writer.insert_one(["c", "d"])
    assert buffer.getvalue() == b"\xef\xbb\xbfa,b\nc,d\n"

def test_output_bom_is_not_injected_into_existing_content():
    buffer = io.BytesIO(b"x,y\n")
    writer = Writer(buffer).set_output_bom(UTF8)
    writer.insert_one(["a", "b"])
    assert buffer.getvalue() == b"x,y\na,b\n"

def test_utf16_output_round_trip():
    buffer = io.BytesIO()
    writer = Writer(buffer).set_output_bom(UTF16_LE)
    writer.insert_all([["é", "b"], ["c", "d"]])
    assert buffer.getvalue().startswith(b"\xff\xfe\xe9\x00")
    reader = writer.new_reader()
    assert reader.get_input_bom() == UTF16_LE
    assert reader.fetch_all() == [["é", "b"], ["c", "d"]]

def test_text_handle_output():
    buffer = io.StringIO()
    Writer(buffer).set_output_bom(UTF8).insert_one(["a"])
    assert buffer.getvalue() == "\ufeffa\n"

def test_null_handling():
    buffer = io.BytesIO()
    writer = Writer(buffer)
    with pytest.raises(InvalidArgument):
        writer.insert_one(["a", None])
    assert buffer.getvalue() == b""
    writer.set_null_handling_mode(NullHandling.SKIP_CELL).insert_one(["a", None, "b"])
    writer.set_null_handling_mode("as_empty").insert_one(["a", None, "b"])
    assert buffer.getvalue() == b"a,b\na,,b\n"
    with pytest.raises(InvalidArgument):
        writer.set_null_handling_mode("sometimes")

def test_invalid_rows_are_rejected():
    writer = Writer(io.BytesIO())
    with pytest.raises(InvalidArgument):
        writer.insert_one(["a", object()])
    with pytest.raises(InvalidArgument):
        writer.insert_one(42)
    with pytest.raises(InvalidArgument):
        writer.insert_all("a,b")

def test_writes_go_to_the_end_after_reading():
    buffer = io.BytesIO()
    writer = Writer(buffer)
    writer.insert_one(["a"])
    assert list(writer.get_output_iterator()) == [["a"]]
    writer.insert_one(["b"])
    assert buffer.getvalue() == b"a\nb\n"

def test_round_trip_through_a_derived_reader(tmp_path):
    path = tmp_path / "out.csv"
    rows = [["name", "city"], ["Paul", "Montréal"], ["Zoë", "a;b"], ["multi", "line\nvalue"]]

    with Writer(path, "w") as writer:
        writer.set_delimiter(";")
        writer.append_stream_filter(
            "convert.transcode", {"from_encoding": "utf-8", "to_encoding": "latin-1"}, applies_to="write"
        )
        writer.append_stream_filter(
            "convert.transcode", {"from_encoding": "latin-1", "to_encoding": "utf-8"}, applies_to="read"
        )
        writer.insert_all(rows)

    assert "Montréal".encode("latin-1") in path.read_bytes()
    reader = writer.new_reader("r")
    assert reader.fetch_all() == rows

def test_writer_close_releases_owned_handle(tmp_path):
    path = tmp_path / "out.csv"
    writer = Writer(path, "w")
    writer.insert_one(["a"])
    writer.close()
    writer.close()
    assert path.read_bytes() == b"a\n"

def test_writer_close_keeps_borrowed_handle_open():
    buffer = io.BytesIO()
    with Writer(buffer) as writer:
        writer.append_stream_filter("string.toupper", applies_to="write")
        writer.insert_one(["a"])
    assert not buffer.closed
    assert buffer.getvalue() == b"A\n"

def test_default_writer_creates_a_missing_file(tmp_path):
    path = tmp_path / "new.csv"
    with Writer(path) as writer:
        writer.insert_one(["a", "b"])
        writer.insert_one(["c", "d"])
    assert path.read_bytes() == b"a,b\nc,d\n"

def test_append_mode_writer_reads_back_its_output(tmp_path):
    path = tmp_path / "log.csv"
    path.write_bytes(b"a,b\n")
    with Writer(path, "a") as writer:
        writer.insert_one(["c", "d"])
        assert list(writer.get_output_iterator()) == [["a", "b"], ["c", "d"]]
    assert path.read_bytes() == b"a,b\nc,d\n"

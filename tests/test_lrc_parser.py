import pytest

from dwc_player.lrc_parser import LRCParser, LyricsDocument, TimedLine


def test_parse_sorts_lines_and_reads_metadata():
    doc = LRCParser.parse("[00:01.50]Hello world\n[00:00.20]First line\n[bad]ignored\n[ar:Someone]")

    assert [(line.time_seconds, line.text, line.words) for line in doc.lines] == [
        (pytest.approx(0.20), "First line", ["First", "line"]),
        (pytest.approx(1.50), "Hello world", ["Hello", "world"]),
    ]
    assert doc.metadata == {"ar": "Someone"}
    assert doc.is_synced


@pytest.mark.parametrize("content", [None, "", "   \n\n"])
def test_parse_empty_input(content):
    doc = LRCParser.parse(content)
    assert doc.lines == []
    assert doc.metadata == {}
    assert not doc.is_synced


def test_parse_ignores_malformed_lines():
    doc = LRCParser.parse("no tags at all\n[1:xx]broken\n[00:03.00]ok\n[00:04.00]\n")
    assert [line.text for line in doc.lines] == ["ok"]


def test_parse_keeps_input_order_for_equal_times():
    doc = LRCParser.parse("[00:02.00]b\n[00:01.00]a\n[00:02.00]c")
    assert [line.text for line in doc.lines] == ["a", "b", "c"]


def test_only_first_timestamp_is_honoured():
    doc = LRCParser.parse("[00:01.00][00:05.00]Chorus")
    assert len(doc.lines) == 1
    assert doc.lines[0].time_seconds == pytest.approx(1.0)
    assert doc.lines[0].text == "[00:05.00]Chorus"


def test_fraction_digits():
    doc = LRCParser.parse("[01:02.05]a\n[00:00.250]b\n[00:03.07]c")
    times = [line.time_seconds for line in doc.lines]
    assert times == [pytest.approx(0.25), pytest.approx(3.07), pytest.approx(62.05)]


def test_words_collapse_whitespace():
    doc = LRCParser.parse("[00:01.00]  one   two\tthree ")
    assert doc.lines[0].text == "one   two\tthree"
    assert doc.lines[0].words == ["one", "two", "three"]


def test_plain_text_strips_timestamps():
    doc = LRCParser.parse("[00:01.00]Hello\n[00:02.00]World")
    assert doc.plain_text == "Hello\nWorld"


@pytest.mark.parametrize(
    "content",
    [
        "[ti:Song]\n[00:12.00]A",
        "[ti:Song]\n[ar:Band]\n[00:12.00]Primera línea\n[00:17.20]Segunda línea\n[01:05.99]Fin",
        "[00:02.00]b\n[00:01.00]a\n[00:02.00]c",
        "[00:00.125]a\n[00:01.505]b\n[00:03.50]c",
        "sin etiquetas",
    ],
)
def test_round_trip_is_stable(content):
    first = LRCParser.parse(content)
    again = LRCParser.parse(LRCParser.to_lrc(first))

    assert again == first


def test_format_timestamp():
    assert LRCParser.format_timestamp(0) == "00:00.00"
    assert LRCParser.format_timestamp(65.5) == "01:05.50"
    assert LRCParser.format_timestamp(0.125) == "00:00.125"
    assert LRCParser.format_timestamp(61.505) == "01:01.505"


def test_timed_line_timestamp_ms():
    assert TimedLine(time_seconds=1.234, text="x").timestamp_ms == 1234


def test_line_index_at():
    doc = LyricsDocument(
        lines=[TimedLine(0.0, "a"), TimedLine(2.0, "b"), TimedLine(5.5, "c")]
    )
    assert doc.line_index_at(-1.0) == -1
    assert doc.line_index_at(0.0) == 0
    assert doc.line_index_at(2.1) == 1
    assert doc.line_index_at(100) == 2
    assert LyricsDocument().line_index_at(3.0) == -1

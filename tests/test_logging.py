import io
import json

import pytest

from webify.utils import term
from webify.utils.logging import (
	JSONSink,
	LogLevel,
	LogSink,
	LogSpan,
	TermSink,
	entry,
	exception,
	makeSink,
	parseLevel,
	warning,
)


@pytest.mark.parametrize(
	"text,level",
	[
		("debug", LogLevel.Debug),
		("DEBUG", LogLevel.Debug),
		("Info", LogLevel.Info),
		("warn", LogLevel.Warning),
		("warning", LogLevel.Warning),
		("error", LogLevel.Error),
	],
)
def test_parse_level(text, level, logs):
	assert parseLevel(text) is level
	assert not logs.entries


@pytest.mark.parametrize("text", ["", "verbose", "fatal", "  ", None])
def test_parse_level_defaults_to_info(text, logs):
	assert parseLevel(text) is LogLevel.Info
	assert logs.messages == ["Invalid log level specified, defaulting to info"]
	assert logs.entries[0].level is LogLevel.Warning


def test_levels_are_ordered():
	assert LogLevel.Debug < LogLevel.Info < LogLevel.Warning < LogLevel.Error


def test_make_sink_selects_backend():
	assert isinstance(makeSink("localhost"), TermSink)
	assert isinstance(makeSink(None), JSONSink)
	assert isinstance(makeSink("production"), JSONSink)
	assert isinstance(makeSink("LOCALHOST"), JSONSink)
	assert makeSink(None, level=LogLevel.Error).level is LogLevel.Error


def test_sink_threshold():
	sink = JSONSink(io.StringIO(), level=LogLevel.Warning)
	assert not sink.accepts(LogLevel.Info)
	assert sink.accepts(LogLevel.Warning)
	assert sink.accepts(LogLevel.Error)


def test_json_sink_writes_one_object_per_line():
	stream = io.StringIO()
	sink = JSONSink(stream)
	token = LogSpan.set("abc123")
	try:
		sink.write(entry("Hello", level=LogLevel.Warning, context={"Port": 3000}))
	finally:
		LogSpan.reset(token)
	sink.write(entry("World"))
	lines = stream.getvalue().splitlines()
	assert len(lines) == 2
	first = json.loads(lines[0])
	assert first["msg"] == "Hello"
	assert first["level"] == "WARN"
	assert first["Port"] == 3000
	assert first["traceId"] == "abc123"
	assert "time" in first
	assert "traceId" not in json.loads(lines[1])


def test_json_records_carry_their_source():
	stream = io.StringIO()
	sink = JSONSink(stream)
	sink.write(entry("Here"))
	(record,) = [json.loads(_) for _ in stream.getvalue().splitlines()]
	assert record["source"]["function"] == "test_json_records_carry_their_source"
	assert record["source"]["file"].endswith("test_logging.py")
	assert record["source"]["line"] > 0


def test_source_is_outside_of_logging(logs):
	warning("Somewhere")
	(record,) = logs.entries
	assert record.source is not None
	assert record.source.function == "test_source_is_outside_of_logging"


def test_term_sink_is_plain_without_terminal(monkeypatch):
	monkeypatch.setattr(term, "FORCE_COLOR", False)
	stream = io.StringIO()
	sink = TermSink(stream)
	sink.write(
		entry(
			"GET / => HTTP 200",
			context={"Status": 200, "Headers": {"Accept": "*/*"}, "Method": "GET"},
		)
	)
	text = stream.getvalue()
	assert "\033[" not in text
	assert "[webify] GET / => HTTP 200" in text
	# Keys are sorted and groups are flattened
	assert text.index("Headers.Accept=*/*") < text.index("Method=GET")
	assert text.index("Method=GET") < text.index("Status=200")


def test_term_sink_color_can_be_forced():
	stream = io.StringIO()
	TermSink(stream, color=True).write(entry("Hello"))
	assert "\033[" in stream.getvalue()


def test_term_sink_previews_long_lists():
	stream = io.StringIO()
	TermSink(stream, color=False).write(entry("List", context={"Items": list(range(25))}))
	text = stream.getvalue()
	assert "19" in text
	assert ",20," not in text
	assert "…+5" in text


def test_term_sink_truncates_stacks(logs):
	def recurse(n):
		if n == 0:
			raise RuntimeError("Bottom")
		recurse(n - 1)

	try:
		recurse(10)
	except RuntimeError as e:
		exception(e)
	stream = io.StringIO()
	TermSink(stream, color=False).write(logs.entries[-1])
	lines = stream.getvalue().splitlines()
	assert lines[0].endswith("[RuntimeError] Bottom")
	frames = [_ for _ in lines if "→" in _]
	assert len(frames) == 5
	assert any("more" in _ for _ in lines)


class BrokenStream(io.StringIO):
	def write(self, text):
		raise OSError("Broken pipe")


def test_sink_failures_are_silent():
	sink: LogSink = JSONSink(BrokenStream())
	sink.write(entry("Lost"))


# EOF

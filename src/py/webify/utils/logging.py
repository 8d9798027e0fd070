import sys
import time
import threading
from abc import ABC, abstractmethod
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import IntEnum
from types import TracebackType
from typing import Any, ClassVar, NamedTuple, TextIO, TypeAlias
from uuid import uuid4

from .json import json
from .term import Term, hasColor

__doc__ = """
Structured logging. Log functions take a message and ad-hoc CamelCase
context (`info("Listening", Host=host, Port=port)`), build an immutable
`LogEntry` and hand it to the process-wide `LogSink`.

Two sinks are available: `TermSink` renders human-readable (optionally
coloured) lines, `JSONSink` renders one JSON object per line and tags
every entry with the correlation identifier of the current request.
"""

LogOrigin: ContextVar[str] = ContextVar("LogOrigin", default="webify")
# Correlation identifier of the request being processed, if any
LogSpan: ContextVar[str | None] = ContextVar("LogSpan", default=None)

LOCALHOST: str = "localhost"
MAX_STACK: int = 5
MAX_PREVIEW: int = 20


class LogLevel(IntEnum):
	Debug = 0
	Info = 10
	Warning = 30
	Error = 40


LOG_LEVELS: dict[str, LogLevel] = {
	"debug": LogLevel.Debug,
	"info": LogLevel.Info,
	"warn": LogLevel.Warning,
	"warning": LogLevel.Warning,
	"error": LogLevel.Error,
}

LOG_LEVEL_LABEL: dict[LogLevel, str] = {
	LogLevel.Debug: "DEBUG",
	LogLevel.Info: "INFO",
	LogLevel.Warning: "WARN",
	LogLevel.Error: "ERROR",
}

LOG_LEVEL_COLOR: dict[LogLevel, int] = {
	LogLevel.Debug: 31,
	LogLevel.Info: 75,
	LogLevel.Warning: 202,
	LogLevel.Error: 160,
}

TStack: TypeAlias = list[str]


class LogSource(NamedTuple):
	"""Where a log entry was created."""

	function: str
	file: str
	line: int


class LogEntry(NamedTuple):
	origin: str
	time: float
	level: LogLevel = LogLevel.Info
	message: str | None = None
	context: dict[str, Any] | None = None
	icon: str | None = None
	stack: TStack | None = None
	span: str | None = None
	source: LogSource | None = None


def callstack(tb: TracebackType | None) -> TStack:
	"""Returns the frames of the given traceback, outermost first."""
	res: TStack = []
	while tb:
		code = tb.tb_frame.f_code
		res.append(f"{code.co_name} at {code.co_filename}:{tb.tb_lineno}")
		tb = tb.tb_next
	return res


def callsite() -> LogSource | None:
	"""Returns the first frame that is not part of this module."""
	frame = sys._getframe(1)
	while frame and frame.f_code.co_filename == __file__:
		frame = frame.f_back  # type: ignore[assignment]
	if not frame:
		return None
	return LogSource(frame.f_code.co_name, frame.f_code.co_filename, frame.f_lineno)


def newSpan() -> str:
	return uuid4().hex


# -----------------------------------------------------------------------------
#
# SINKS
#
# -----------------------------------------------------------------------------


class LogSink(ABC):
	"""Accepts entries and writes them out. Writing never raises: a sink
	that can't write drops the entry. Entries are written whole, under a
	lock, so that concurrent writers don't interleave."""

	def __init__(
		self, stream: TextIO | None = None, *, level: LogLevel = LogLevel.Info
	) -> None:
		self.stream: TextIO = sys.stdout if stream is None else stream
		self.level: LogLevel = level
		self.lock = threading.Lock()

	def accepts(self, level: LogLevel) -> bool:
		return level >= self.level

	def write(self, entry: LogEntry) -> None:
		try:
			text = self.format(entry)
		except (TypeError, ValueError):
			return None
		with self.lock:
			try:
				self.stream.write(text)
				self.stream.flush()
			except (OSError, ValueError):  # nosec: B110
				# Closed stream or broken pipe, nothing left to report to
				pass

	@abstractmethod
	def format(self, entry: LogEntry) -> str: ...


def formatValue(value: Any, limit: int = MAX_PREVIEW) -> str:
	if value is None or value == () or value == [] or value == {}:
		return "◌"
	elif isinstance(value, bool):
		return "✓" if value else "✗"
	elif isinstance(value, (list, tuple, set)):
		items = list(value)
		preview = [formatValue(_, limit) for _ in items[:limit]]
		if len(items) > limit:
			preview.append(f"…+{len(items) - limit}")
		return f"[{','.join(preview)}]"
	elif isinstance(value, dict):
		return "{" + " ".join(f"{k}={formatValue(v, limit)}" for k, v in value.items()) + "}"
	elif isinstance(value, str):
		return repr(value) if " " in value or not value else value
	elif isinstance(value, float):
		return f"{value:0.2f}"
	else:
		return str(value)


def flattenContext(
	context: dict[str, Any], prefix: str = ""
) -> list[tuple[str, Any]]:
	"""Flattens nested groups as `Group.key` pairs, sorted by key."""
	res: list[tuple[str, Any]] = []
	for k in sorted(context):
		v = context[k]
		if isinstance(v, dict) and v:
			res += flattenContext(v, f"{prefix}{k}.")
		else:
			res.append((f"{prefix}{k}", v))
	return res


class TermSink(LogSink):
	"""Human-readable output for interactive development."""

	MAX_STACK: ClassVar[int] = MAX_STACK
	MAX_PREVIEW: ClassVar[int] = MAX_PREVIEW

	def __init__(
		self,
		stream: TextIO | None = None,
		*,
		level: LogLevel = LogLevel.Info,
		color: bool | None = None,
	) -> None:
		super().__init__(stream, level=level)
		self.term: Term = Term(hasColor(self.stream) if color is None else color)

	def format(self, entry: LogEntry) -> str:
		term = self.term
		clr: str = term.Color(LOG_LEVEL_COLOR[entry.level])
		at: str = datetime.fromtimestamp(entry.time).strftime("%H:%M:%S")
		icon: str = f" {entry.icon}" if entry.icon else ""
		context: str = " ".join(
			f"{term.BOLD}{k}{term.RESET}={formatValue(v, self.MAX_PREVIEW)}"
			for k, v in flattenContext(entry.context or {})
		)
		lines: list[str] = [
			f"{clr}{at} {LOG_LEVEL_LABEL[entry.level]:5s}{term.RESET} {term.BOLD}[{entry.origin}]{term.RESET}{icon} {entry.message or ''}{' ' if context else ''}{context}"
		]
		if entry.stack:
			# Only the innermost frames are shown
			frames = entry.stack[-self.MAX_STACK :]
			if (skipped := len(entry.stack) - len(frames)) > 0:
				lines.append(f"{term.Color(38)}  … {skipped} more{term.RESET}")
			lines += [f"{term.Color(38)}  → {_}{term.RESET}" for _ in frames]
		return "\n".join(lines) + "\n"


class JSONSink(LogSink):
	"""Machine-readable output, one JSON object per line."""

	def format(self, entry: LogEntry) -> str:
		record: dict[str, Any] = {
			"time": datetime.fromtimestamp(entry.time, tz=timezone.utc).isoformat(),
			"level": LOG_LEVEL_LABEL[entry.level],
			"msg": entry.message,
			"origin": entry.origin,
		}
		if entry.context:
			record.update(entry.context)
		if entry.stack:
			record["stack"] = entry.stack
		if entry.span:
			record["traceId"] = entry.span
		if entry.source:
			record["source"] = entry.source._asdict()
		return json(record) + "\n"


def makeSink(
	environment: str | None,
	*,
	level: LogLevel = LogLevel.Info,
	stream: TextIO | None = None,
) -> LogSink:
	"""Picks the human-readable sink when running on localhost, and the
	structured one everywhere else."""
	if environment == LOCALHOST:
		return TermSink(stream, level=level)
	else:
		return JSONSink(stream, level=level)


SINK: LogSink = TermSink(sys.stderr)


def sink() -> LogSink:
	return SINK


def setSink(value: LogSink) -> LogSink:
	global SINK
	SINK = value
	return value


# -----------------------------------------------------------------------------
#
# API
#
# -----------------------------------------------------------------------------


def entry(
	message: str | None,
	*,
	level: LogLevel = LogLevel.Info,
	origin: str | None = None,
	at: float | None = None,
	context: dict[str, Any] | None = None,
	icon: str | None = None,
	stack: TStack | None = None,
) -> LogEntry:
	return LogEntry(
		origin=origin or LogOrigin.get(),
		time=time.time() if at is None else at,
		level=level,
		message=message,
		context=context,
		icon=icon,
		stack=stack,
		span=LogSpan.get(),
		source=callsite(),
	)


def send(value: LogEntry, to: LogSink | None = None) -> LogEntry:
	(to or SINK).write(value)
	return value


def logged(level: LogLevel) -> bool:
	"""Tells if entries at the given level are currently written. This
	guards against building entries that would be dropped."""
	return SINK.accepts(level)


def log(
	level: LogLevel, message: str, *, icon: str | None = None, **context: Any
) -> LogEntry | None:
	return (
		send(entry(message, level=level, context=context, icon=icon))
		if logged(level)
		else None
	)


def debug(message: str, *, icon: str | None = None, **context: Any) -> LogEntry | None:
	return log(LogLevel.Debug, message, icon=icon, **context)


def info(message: str, *, icon: str | None = None, **context: Any) -> LogEntry | None:
	return log(LogLevel.Info, message, icon=icon, **context)


def warning(
	message: str, *, icon: str | None = None, **context: Any
) -> LogEntry | None:
	return log(LogLevel.Warning, message, icon=icon, **context)


def error(
	message: str,
	code: int | str | None = None,
	*,
	icon: str | None = None,
	**context: Any,
) -> LogEntry | None:
	if code is not None:
		context["Code"] = code
	return log(LogLevel.Error, message, icon=icon, **context)


def exception(
	exception: BaseException, message: str | None = None, **context: Any
) -> BaseException:
	"""Logs the exception along with its traceback, and returns it so that
	this can be used like `raise exception(e)`."""
	text = f"[{exception.__class__.__name__}] {exception}"
	send(
		entry(
			f"{message}: {text}" if message else text,
			level=LogLevel.Error,
			context=context,
			stack=callstack(exception.__traceback__),
		)
	)
	return exception


def parseLevel(text: str | None) -> LogLevel:
	"""Converts a level name (`debug`, `info`, `warn`, `error`, in any
	case) to a `LogLevel`, falling back to `Info` with a warning."""
	level = LOG_LEVELS.get(text.strip().lower()) if text else None
	if level is None:
		warning("Invalid log level specified, defaulting to info", Level=text)
		return LogLevel.Info
	return level


# EOF

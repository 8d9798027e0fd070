import time
from typing import Any, NamedTuple

from ..http.model import HTTPBodyError, HTTPRequest, HTTPResponse
from ..model import Middleware, TForward
from ..utils.io import asText
from ..utils.logging import (
	LogLevel,
	LogSink,
	LogSpan,
	entry,
	newSpan,
	send,
	sink,
)
from .headers import HeaderAttribute, classifyHeaders

# Logged bodies are capped to this many characters
BODY_LIMIT: int = 1024
# An inbound correlation identifier is reused instead of creating a new one
TRACE_HEADER: str = "TraceId"


class LogRecord(NamedTuple):
	"""What is logged about a completed request."""

	method: str
	path: str
	status: int
	duration: float
	level: LogLevel = LogLevel.Info
	headers: list[HeaderAttribute] | None = None
	body: str | None = None
	details: dict[str, Any] | None = None

	@property
	def message(self) -> str:
		return f"{self.method} {self.path} => HTTP {self.status}"

	@property
	def context(self) -> dict[str, Any]:
		res: dict[str, Any] = {
			"Method": self.method,
			"Path": self.path,
			"Status": self.status,
			"Duration": round(self.duration, 3),
		}
		if self.details:
			res.update(self.details)
		if self.headers is not None:
			res["Headers"] = {_.name: _.value for _ in self.headers}
		if self.body is not None:
			res["Body"] = self.body
		return res


def severity(method: str, status: int) -> LogLevel:
	"""The level of a request log record: preflights are only useful when
	debugging, errors stand out, and rate limiting is expected."""
	if method == "OPTIONS":
		return LogLevel.Debug
	elif status >= 500:
		return LogLevel.Error
	elif status == 429:
		return LogLevel.Info
	elif status >= 400:
		return LogLevel.Warning
	else:
		return LogLevel.Info


class RequestLogger(Middleware):
	"""Logs each completed request whose severity reaches `level`. In
	`debug` mode, the record is verbose and includes the request headers.
	With `body`, the request body is logged too."""

	def __init__(
		self,
		level: LogLevel = LogLevel.Info,
		*,
		debug: bool = False,
		body: bool = False,
		sink: LogSink | None = None,
	) -> None:
		self.level: LogLevel = level
		self.debug: bool = debug
		self.body: bool = body
		self.sink: LogSink | None = sink

	def emit(self, message: str, level: LogLevel, context: dict[str, Any]) -> None:
		send(entry(message, level=level, context=context), to=self.sink or sink())

	async def __call__(self, request: HTTPRequest, forward: TForward) -> HTTPResponse:
		token = LogSpan.set(request.header(TRACE_HEADER) or newSpan())
		try:
			if self.level <= LogLevel.Debug:
				self.emit(
					"Request started",
					LogLevel.Debug,
					{"Method": request.method, "Path": request.path},
				)
			started: float = time.monotonic()
			response = await forward(request)
			duration: float = (time.monotonic() - started) * 1000
			level = severity(request.method, response.status)
			if level >= self.level:
				record = await self.record(request, response, duration, level)
				self.emit(record.message, record.level, record.context)
			return response
		finally:
			LogSpan.reset(token)

	async def record(
		self,
		request: HTTPRequest,
		response: HTTPResponse,
		duration: float,
		level: LogLevel,
	) -> LogRecord:
		body: str | None = None
		if self.body:
			try:
				body = asText(await request.load(), BODY_LIMIT)
			except (HTTPBodyError, ConnectionError):
				body = None
		details: dict[str, Any] | None = None
		if self.debug:
			details = {
				k: v
				for k, v in (
					("Query", request.query or None),
					("Protocol", request.protocol),
					("Referer", request.header("Referer")),
					("UserAgent", request.header("User-Agent")),
					("Size", response.contentLength),
				)
				if v is not None
			}
		return LogRecord(
			method=request.method,
			path=request.path,
			status=response.status,
			duration=duration,
			level=level,
			headers=classifyHeaders(request.headers, self.debug) if self.debug else None,
			body=body,
			details=details,
		)


# EOF

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, NamedTuple, TypeAlias

from ..utils.files import contentType as guessContentType
from ..utils.io import DEFAULT_ENCODING
from .status import HTTP_STATUS

# -----------------------------------------------------------------------------
#
# HEADERS
#
# -----------------------------------------------------------------------------

HEADER_NAMES: dict[str, str] = {}


def headername(name: str) -> str:
	"""Normalizes the header name as `Kebab-Case`, so that headers can be
	looked up regardless of how the client wrote them."""
	key = name.lower()
	res = HEADER_NAMES.get(key)
	if res is None:
		res = HEADER_NAMES[key] = "-".join(_.capitalize() for _ in key.split("-"))
	return res


# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class HTTPRequestError(Exception):
	"""To be raised by handlers to generate an error response."""

	def __init__(self, message: str, status: int = 500):
		super().__init__(message)
		self.message: str = message
		self.status: int = status


class HTTPBodyError(Exception):
	"""The request body could not be fully received: the client went away
	or sent a malformed body."""


# -----------------------------------------------------------------------------
#
# REQUEST BODY
#
# -----------------------------------------------------------------------------


class HTTPBodyReader(ABC):
	"""Receives more of the connection's bytes, which are decoded into the
	bodies of the requests waiting for them."""

	@abstractmethod
	async def pump(self) -> bool:
		"""Returns `False` once the connection has no more data."""


class HTTPRequestBody:
	"""The decoded body of a request. Its bytes are pushed as they arrive,
	and `load()` waits until the whole body was received."""

	__slots__ = ["data", "complete", "error", "reader"]

	def __init__(self, data: bytes = b"", complete: bool = True) -> None:
		self.data: bytearray = bytearray(data)
		self.complete: bool = complete
		self.error: str | None = None
		self.reader: HTTPBodyReader | None = None

	def push(self, data: bytes) -> None:
		self.data += data

	def end(self) -> None:
		self.complete = True

	def abort(self, reason: str) -> None:
		self.error = reason
		self.complete = True

	async def load(self) -> bytes:
		while not self.complete:
			if not self.reader:
				raise HTTPBodyError("Request body is incomplete and has no reader")
			elif not await self.reader.pump():
				self.abort("Connection closed before the body was received")
		if self.error:
			raise HTTPBodyError(self.error)
		return bytes(self.data)


# -----------------------------------------------------------------------------
#
# RESPONSE BODY
#
# -----------------------------------------------------------------------------


class HTTPBodyBlob(NamedTuple):
	payload: bytes


class HTTPBodyFile(NamedTuple):
	"""A body sent straight from a file."""

	path: Path


THTTPBody: TypeAlias = HTTPBodyBlob | HTTPBodyFile

# Statuses that never carry a body, and so no length either
NO_BODY_STATUS: frozenset[int] = frozenset((204, 304))

TEXT_PLAIN: str = "text/plain; charset=utf-8"
TEXT_HTML: str = "text/html; charset=utf-8"


# -----------------------------------------------------------------------------
#
# REQUEST
#
# -----------------------------------------------------------------------------


class HTTPRequest:
	"""An HTTP request, which is also what handlers use to create their
	responses (`request.respondText(…)`, `request.notFound()`, …)."""

	__slots__ = ["method", "path", "query", "protocol", "headers", "body"]

	def __init__(
		self,
		method: str,
		path: str,
		query: str = "",
		headers: dict[str, str] | None = None,
		body: HTTPRequestBody | None = None,
		protocol: str = "HTTP/1.1",
	):
		self.method: str = method
		self.path: str = path
		self.query: str = query
		self.protocol: str = protocol
		self.headers: dict[str, str] = headers if headers is not None else {}
		self.body: HTTPRequestBody = HTTPRequestBody() if body is None else body

	def header(self, name: str) -> str | None:
		return self.headers.get(headername(name))

	def removeHeader(self, name: str) -> "HTTPRequest":
		self.headers.pop(headername(name), None)
		return self

	@property
	def contentType(self) -> str | None:
		return self.header("Content-Type")

	@property
	def url(self) -> str:
		return f"{self.path}?{self.query}" if self.query else self.path

	@property
	def keepAlive(self) -> bool:
		"""HTTP/1.1 connections are persistent unless told otherwise."""
		if (self.header("Connection") or "").lower() == "close":
			return False
		return self.protocol != "HTTP/1.0"

	@property
	def isLoaded(self) -> bool:
		"""Tells if the whole body was received."""
		return self.body.complete and not self.body.error

	async def load(self) -> bytes:
		"""Waits for the whole body, which raises `HTTPBodyError` when
		the body can't be received."""
		return await self.body.load()

	# =========================================================================
	# RESPONSES
	# =========================================================================

	def respond(
		self,
		content: str | bytes | Path | None = None,
		contentType: str | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
	) -> "HTTPResponse":
		res = HTTPResponse(status, protocol=self.protocol)
		if headers:
			res.setHeaders(dict(headers))
		match content:
			case None:
				if status not in NO_BODY_STATUS and not res.header("Content-Length"):
					# Keeps the connection usable for the next request
					res.setHeader("Content-Length", 0)
			case str() | bytes():
				payload = (
					content.encode(DEFAULT_ENCODING) if isinstance(content, str) else content
				)
				res.body = HTTPBodyBlob(payload)
				res.setHeader("Content-Length", len(payload))
			case Path():
				res.body = HTTPBodyFile(content.absolute())
				res.setHeader("Content-Length", os.path.getsize(content))
			case _:
				raise ValueError(f"Unsupported content {type(content)}: {content!r}")
		if contentType:
			res.setHeader("Content-Type", contentType)
		return res

	def respondText(
		self, content: str | bytes, contentType: str = TEXT_PLAIN, status: int = 200
	) -> "HTTPResponse":
		return self.respond(content, contentType, status)

	def respondHTML(self, html: str, status: int = 200) -> "HTTPResponse":
		return self.respond(html, TEXT_HTML, status)

	def respondFile(
		self,
		path: Path,
		headers: dict[str, str] | None = None,
		*,
		body: bool = True,
	) -> "HTTPResponse":
		"""Responds with the file. Without `body` (for `HEAD`), only the
		headers describing the file are sent."""
		if body:
			return self.respond(path, guessContentType(path), headers=headers)
		return self.respond(
			None,
			guessContentType(path),
			headers={"Content-Length": str(path.stat().st_size)} | (headers or {}),
		)

	def redirect(self, url: str, permanent: bool = False) -> "HTTPResponse":
		return self.respond(status=301 if permanent else 302, headers={"Location": url})

	def error(
		self, status: int, content: str | None = None, headers: dict[str, str] | None = None
	) -> "HTTPResponse":
		reason = HTTP_STATUS.get(status, "Error")
		return self.respond(reason if content is None else content, TEXT_PLAIN, status, headers)

	def notFound(self) -> "HTTPResponse":
		return self.error(404)

	def notAuthorized(self) -> "HTTPResponse":
		return self.error(403)

	def notAllowed(self, methods: list[str]) -> "HTTPResponse":
		return self.error(405, headers={"Allow": ", ".join(methods)})

	def notModified(self, headers: dict[str, str] | None = None) -> "HTTPResponse":
		return self.respond(status=304, headers=headers)

	def fail(self) -> "HTTPResponse":
		return self.error(500)

	def __str__(self) -> str:
		return f"Request({self.method} {self.url})"


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class HTTPResponse:
	__slots__ = ["status", "headers", "body", "protocol"]

	def __init__(
		self,
		status: int = 200,
		headers: dict[str, str] | None = None,
		body: THTTPBody | None = None,
		protocol: str = "HTTP/1.1",
	):
		self.status: int = status
		self.headers: dict[str, str] = headers if headers is not None else {}
		self.body: THTTPBody | None = body
		self.protocol: str = protocol

	@property
	def contentLength(self) -> int | None:
		value = self.header("Content-Length")
		return int(value) if value is not None else None

	def header(self, name: str) -> str | None:
		return self.headers.get(headername(name))

	def setHeader(self, name: str, value: Any) -> "HTTPResponse":
		if value is None:
			self.headers.pop(headername(name), None)
		else:
			self.headers[headername(name)] = str(value)
		return self

	def setHeaders(self, headers: dict[str, Any]) -> "HTTPResponse":
		for name, value in headers.items():
			self.setHeader(name, value)
		return self

	def head(self) -> bytes:
		"""The status line and headers, as sent on the wire."""
		reason = HTTP_STATUS.get(self.status, "Unknown status")
		text = "".join(
			[f"{self.protocol} {self.status} {reason}\r\n"]
			+ [f"{k}: {v}\r\n" for k, v in self.headers.items()]
			+ ["\r\n"]
		)
		# Header values are latin-1 on the wire
		return text.encode("latin-1", errors="replace")

	def __str__(self) -> str:
		return f"Response({self.status} {self.headers})"


# EOF

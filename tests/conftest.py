"""
Shared fixtures: an in-memory log sink and builders for requests that
don't come from a socket.
"""

import asyncio
from pathlib import Path
from typing import Any

import pytest

from webify.http.model import HTTPRequest, HTTPRequestBody, headername
from webify.utils.logging import LogEntry, LogLevel, LogSink, setSink, sink


class ListSink(LogSink):
	"""Keeps the entries it accepts, in order."""

	def __init__(self, level: LogLevel = LogLevel.Debug) -> None:
		super().__init__(level=level)
		self.entries: list[LogEntry] = []

	def write(self, entry: LogEntry) -> None:
		self.entries.append(entry)

	def format(self, entry: LogEntry) -> str:
		return entry.message or ""

	@property
	def messages(self) -> list[str]:
		return [_.message or "" for _ in self.entries]


def makeRequest(
	method: str = "GET",
	path: str = "/",
	headers: dict[str, str] | None = None,
	body: bytes = b"",
	query: str = "",
) -> HTTPRequest:
	return HTTPRequest(
		method=method,
		path=path,
		query=query,
		headers={headername(k): v for k, v in (headers or {}).items()},
		body=HTTPRequestBody(body),
	)


def process(app: Any, request: HTTPRequest) -> Any:
	return asyncio.run(app.process(request))


@pytest.fixture
def logs():
	"""Installs an in-memory sink as the process sink for the test."""
	previous = sink()
	res = setSink(ListSink())
	yield res
	setSink(previous)


@pytest.fixture
def site(tmp_path: Path) -> Path:
	"""A small directory tree to serve."""
	(tmp_path / "hello.txt").write_text("Hello, world!\n")
	(tmp_path / "style.css").write_text("body { margin: 0; }\n")
	docs = tmp_path / "docs"
	docs.mkdir()
	(docs / "index.html").write_text("<h1>Docs</h1>")
	(tmp_path / "empty").mkdir()
	(tmp_path / "data").mkdir()
	(tmp_path / "data" / "a b.json").write_text('{"a": 1}')
	return tmp_path


# EOF

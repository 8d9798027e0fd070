from typing import ClassVar, Iterator, NamedTuple, TypeAlias

from .model import HTTPBodyReader, HTTPRequest, HTTPRequestBody, headername

# A request head that does not fit in this many bytes is rejected
MAX_HEAD: int = 64 * 1024
# Chunk size lines are short, anything longer is not a chunked body
MAX_CHUNK_LINE: int = 1024


class HTTPParseError(NamedTuple):
	"""Produced instead of a request when the client sent something that
	isn't HTTP. The connection can't be used past that point."""

	reason: str


HTTPAtom: TypeAlias = HTTPRequest | HTTPParseError


# -----------------------------------------------------------------------------
#
# BODY DECODERS
#
# -----------------------------------------------------------------------------


class LengthDecoder:
	"""Reads a body of a known `Content-Length`."""

	__slots__ = ["left"]

	def __init__(self, length: int) -> None:
		self.left: int = length

	@property
	def done(self) -> bool:
		return self.left == 0

	def feed(self, data: bytearray) -> tuple[bytes, int]:
		n = min(len(data), self.left)
		self.left -= n
		return bytes(data[:n]), n


class ChunkedDecoder:
	"""Reads a `Transfer-Encoding: chunked` body, returning the chunk
	payloads. Chunk extensions and trailers are skipped."""

	SIZE: ClassVar[int] = 0
	DATA: ClassVar[int] = 1
	DATA_END: ClassVar[int] = 2
	TRAILER: ClassVar[int] = 3
	DONE: ClassVar[int] = 4

	__slots__ = ["state", "left"]

	def __init__(self) -> None:
		self.state: int = self.SIZE
		self.left: int = 0

	@property
	def done(self) -> bool:
		return self.state == self.DONE

	def feed(self, data: bytearray) -> tuple[bytes, int]:
		"""Returns the decoded payload and how many bytes of `data` were
		consumed, raising `ValueError` on a malformed body."""
		out = bytearray()
		offset: int = 0
		while offset < len(data) and self.state != self.DONE:
			if self.state == self.DATA:
				n = min(len(data) - offset, self.left)
				out += data[offset : offset + n]
				offset += n
				self.left -= n
				if not self.left:
					self.state = self.DATA_END
			elif self.state == self.DATA_END:
				if len(data) - offset < 2:
					break
				if data[offset : offset + 2] != b"\r\n":
					raise ValueError("Chunk is longer than its size")
				offset += 2
				self.state = self.SIZE
			else:
				end = data.find(b"\r\n", offset)
				if end == -1:
					if len(data) - offset > MAX_CHUNK_LINE:
						raise ValueError("Chunk line is too long")
					break
				line = bytes(data[offset:end])
				offset = end + 2
				if self.state == self.TRAILER:
					if not line:
						self.state = self.DONE
				else:
					size = int(line.split(b";", 1)[0].strip(), 16)
					if size < 0:
						raise ValueError(f"Invalid chunk size: {size}")
					self.left = size
					self.state = self.DATA if size else self.TRAILER
		return bytes(out), offset


TDecoder: TypeAlias = LengthDecoder | ChunkedDecoder


# -----------------------------------------------------------------------------
#
# PARSER
#
# -----------------------------------------------------------------------------


class HTTPParser:
	"""An incremental parser for the requests sent on a connection. Each
	request is produced as soon as its head is parsed, its body is then
	pushed into `request.body` as the bytes come in. Requests are given
	the `reader` to wait for the rest of their body."""

	def __init__(self, reader: HTTPBodyReader | None = None) -> None:
		self.buffer: bytearray = bytearray()
		self.reader: HTTPBodyReader | None = reader
		# Bytes of a TLS record still to be discarded
		self.skipping: int = 0
		self.body: HTTPRequestBody | None = None
		self.decoder: TDecoder | None = None
		self.failed: bool = False

	def feed(self, data: bytes) -> Iterator[HTTPAtom]:
		if self.failed:
			return
		self.buffer += data
		while self.buffer:
			if self.skipping:
				n = min(self.skipping, len(self.buffer))
				del self.buffer[:n]
				self.skipping -= n
			elif self.decoder and self.body:
				try:
					progress = self.feedBody(self.decoder, self.body)
				except ValueError as e:
					yield self.fail(f"Malformed chunked body: {e}")
					break
				if not progress:
					break
			elif self.buffer[0] == 0x16:
				# A TLS handshake (someone tried `https://`), which we skip
				if len(self.buffer) < 5:
					break
				self.skipping = 5 + (self.buffer[3] << 8) + self.buffer[4]
			elif self.buffer.startswith(b"\r\n"):
				# Stray empty lines between requests are ignored
				del self.buffer[:2]
			else:
				end = self.buffer.find(b"\r\n\r\n")
				if end == -1:
					if len(self.buffer) > MAX_HEAD:
						yield self.fail("Request head is too large")
					break
				head = bytes(self.buffer[:end]).decode("latin-1")
				del self.buffer[: end + 4]
				atom = self.parseHead(head)
				if isinstance(atom, HTTPParseError):
					atom = self.fail(atom.reason)
				yield atom
				if self.failed:
					break

	def feedBody(self, decoder: TDecoder, body: HTTPRequestBody) -> bool:
		"""Decodes the buffered body bytes, telling if more can be parsed
		without waiting for data."""
		data, read = decoder.feed(self.buffer)
		del self.buffer[:read]
		if data:
			body.push(data)
		if decoder.done:
			body.end()
			self.body = None
			self.decoder = None
			return True
		return bool(read)

	def fail(self, reason: str) -> HTTPParseError:
		self.failed = True
		self.buffer.clear()
		if self.body:
			# The request waiting for its body won't get it
			self.body.abort(reason)
			self.body = None
		return HTTPParseError(reason)

	def parseHead(self, head: str) -> HTTPAtom:
		lines = head.split("\r\n")
		parts = lines[0].split(" ")
		if len(parts) == 2:
			# HTTP/1.0 clients may omit the protocol
			parts.append("HTTP/1.0")
		if len(parts) != 3 or not parts[2].startswith("HTTP/"):
			return HTTPParseError(f"Invalid request line: {lines[0]!r}")
		method, target, protocol = parts
		if not (target.startswith("/") or target == "*"):
			return HTTPParseError(f"Unsupported request target: {target!r}")
		path, _, query = target.partition("?")
		headers: dict[str, str] = {}
		for line in lines[1:]:
			name, sep, value = line.partition(":")
			if not sep:
				continue
			key = headername(name.strip())
			value = value.strip()
			# Repeated headers are combined as a comma-separated list
			headers[key] = f"{headers[key]},{value}" if key in headers else value
		decoder: TDecoder | None = None
		if "chunked" in headers.get("Transfer-Encoding", "").lower():
			decoder = ChunkedDecoder()
		elif (length := headers.get("Content-Length")) is not None:
			try:
				size = int(length)
			except ValueError:
				size = -1
			if size < 0:
				return HTTPParseError(f"Invalid Content-Length: {length!r}")
			decoder = LengthDecoder(size) if size else None
		body = HTTPRequestBody(complete=decoder is None)
		body.reader = self.reader
		if decoder:
			self.body, self.decoder = body, decoder
		return HTTPRequest(
			method=method.upper(),
			path=path,
			query=query,
			headers=headers,
			body=body,
			protocol=protocol,
		)


# EOF

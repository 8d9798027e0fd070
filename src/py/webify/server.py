import asyncio
import errno
import socket
import threading
from collections import deque
from dataclasses import dataclass
from signal import SIGINT, SIGTERM
from typing import Any, Callable, NamedTuple

from .config import HOST, PORT
from .http.model import (
	HTTPBodyBlob,
	HTTPBodyFile,
	HTTPBodyReader,
	HTTPRequest,
	HTTPResponse,
)
from .http.parser import HTTPAtom, HTTPParseError, HTTPParser
from .model import Application
from .utils.logging import debug, exception, info, warning


class ServerOptions(NamedTuple):
	host: str = HOST
	port: int = PORT
	backlog: int = 1_024
	# How often the stop condition is checked while waiting for connections
	polling: float = 1.0
	readsize: int = 4_096
	# Connections idle between requests are closed after this many seconds
	keepalive: float = 60.0
	condition: Callable[[], bool] | None = None
	stopSignals: bool = True


@dataclass(slots=True)
class ServerState:
	isRunning: bool = True

	def stop(self) -> None:
		info("Server stopping…")
		self.isRunning = False

	def onException(
		self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
	) -> None:
		if e := context.get("exception"):
			exception(e)


BAD_REQUEST: bytes = (
	b"HTTP/1.1 400 Bad Request\r\n"
	b"Content-Type: text/plain; charset=utf-8\r\n"
	b"Content-Length: 11\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b"Bad Request"
)
SERVER_ERROR: bytes = (
	b"HTTP/1.1 500 Internal Server Error\r\n"
	b"Content-Type: text/plain; charset=utf-8\r\n"
	b"Content-Length: 21\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b"Internal Server Error"
)


# -----------------------------------------------------------------------------
#
# CONNECTION
#
# -----------------------------------------------------------------------------


class Connection(HTTPBodyReader):
	"""A client connection, answering its requests in order. Requests
	that arrive while one is being processed wait in `pending`."""

	def __init__(
		self,
		client: socket.socket,
		loop: asyncio.AbstractEventLoop,
		options: ServerOptions,
	) -> None:
		self.client: socket.socket = client
		self.loop: asyncio.AbstractEventLoop = loop
		self.options: ServerOptions = options
		self.buffer: bytearray = bytearray(options.readsize)
		self.parser: HTTPParser = HTTPParser(self)
		self.pending: deque[HTTPAtom] = deque()

	async def receive(self, timeout: float | None = None) -> bool:
		"""Reads the next bytes from the client and parses them, returning
		`False` once the client closed its side."""
		reading = self.loop.sock_recv_into(self.client, self.buffer)
		n = await (asyncio.wait_for(reading, timeout) if timeout else reading)
		if not n:
			return False
		self.pending.extend(self.parser.feed(bytes(self.buffer[:n])))
		return True

	async def pump(self) -> bool:
		# Bodies may take as long as the client needs
		return await self.receive()

	async def send(self, response: HTTPResponse) -> None:
		await self.loop.sock_sendall(self.client, response.head())
		match response.body:
			case HTTPBodyBlob(payload=payload) if payload:
				await self.loop.sock_sendall(self.client, payload)
			case HTTPBodyFile(path=path):
				with open(path, "rb") as f:
					await self.loop.sock_sendfile(self.client, f)

	async def respond(self, app: Application, request: HTTPRequest) -> bool:
		"""Sends the application's response to the request, telling if the
		connection can take another request."""
		try:
			response = await app.process(request)
		except Exception as e:
			exception(e, "Request failed", Method=request.method, Path=request.path)
			await self.loop.sock_sendall(self.client, SERVER_ERROR)
			return False
		await self.send(response)
		# An unread body would otherwise be parsed as the next request
		return request.keepAlive and request.isLoaded

	async def run(self, app: Application) -> None:
		count: int = 0
		try:
			while True:
				if not self.pending:
					try:
						if not await self.receive(self.options.keepalive):
							break
					except TimeoutError:
						debug("Connection idle, closing", Requests=count)
						break
					continue
				atom = self.pending.popleft()
				if isinstance(atom, HTTPParseError):
					warning("Malformed request", Reason=atom.reason)
					await self.loop.sock_sendall(self.client, BAD_REQUEST)
					break
				count += 1
				if not await self.respond(app, atom):
					break
		except (BrokenPipeError, ConnectionResetError) as e:
			debug("Client disconnected", Error=str(e))
		except Exception as e:
			exception(e, "Connection failed")
		finally:
			self.client.close()


# -----------------------------------------------------------------------------
#
# SERVER
#
# -----------------------------------------------------------------------------


class AIOSocketServer:
	"""AsyncIO backend using sockets directly, one task per connection."""

	@staticmethod
	def Bind(options: ServerOptions) -> socket.socket:
		"""Creates the listening socket, raising an `OSError` when the
		address can't be bound."""
		server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		try:
			server.bind((options.host, options.port))
			server.listen(options.backlog)
		except OSError:
			server.close()
			raise
		server.setblocking(False)
		return server

	@staticmethod
	async def Serve(
		app: Application,
		options: ServerOptions = ServerOptions(),
		server: socket.socket | None = None,
	) -> None:
		"""Accepts connections until stopped by a signal or by the options'
		`condition`. The listening socket is bound from the options unless
		given."""
		server = AIOSocketServer.Bind(options) if server is None else server
		loop = asyncio.get_running_loop()
		state = ServerState()
		tasks: set[asyncio.Task[None]] = set()
		# Signal handlers can only be set from the main thread
		signals: bool = (
			options.stopSignals and threading.current_thread() is threading.main_thread()
		)
		if signals:
			for sig in (SIGINT, SIGTERM):
				loop.add_signal_handler(sig, state.stop)
		loop.set_exception_handler(state.onException)
		host, port = server.getsockname()[:2]
		info("Server listening", icon="🚀", Host=host, Port=port)
		try:
			while state.isRunning and (not options.condition or options.condition()):
				try:
					client, _ = await asyncio.wait_for(
						loop.sock_accept(server), timeout=options.polling
					)
				except TimeoutError:
					continue
				except OSError as e:
					# Running out of file descriptors is transient, we back off
					if e.errno != errno.EMFILE:
						exception(e)
					await asyncio.sleep(0.1)
					continue
				client.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
				task = loop.create_task(Connection(client, loop, options).run(app))
				tasks.add(task)
				task.add_done_callback(tasks.discard)
		finally:
			if signals:
				for sig in (SIGINT, SIGTERM):
					loop.remove_signal_handler(sig)
			server.close()
			for task in tasks:
				task.cancel()
			await asyncio.gather(*tasks, return_exceptions=True)


def run(
	app: Application,
	host: str = HOST,
	port: int = PORT,
	*,
	server: socket.socket | None = None,
) -> None:
	"""Runs the server until it is interrupted. Binding errors are raised
	as `OSError`."""
	options = ServerOptions(host=host, port=port)
	server = AIOSocketServer.Bind(options) if server is None else server
	try:
		asyncio.run(AIOSocketServer.Serve(app, options, server))
	except KeyboardInterrupt:
		info("Server interrupted")


# EOF

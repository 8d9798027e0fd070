from ..decorators import on
from ..http.model import HTTPBodyError, HTTPRequest, HTTPResponse
from ..model import Service
from ..utils.logging import warning


class EchoService(Service):
	"""Responds to any request with the request's own body."""

	@on(ANY="/{path:any}")
	async def echo(self, request: HTTPRequest, path: str) -> HTTPResponse:
		try:
			body = await request.load()
		except (HTTPBodyError, ConnectionError) as e:
			warning(
				"Could not read request body",
				Method=request.method,
				Path=request.path,
				Error=str(e),
			)
			return request.error(400, "Could not read request body")
		return request.respond(
			body, contentType=request.contentType or "application/octet-stream"
		)


# EOF

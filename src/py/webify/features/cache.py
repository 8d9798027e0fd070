from ..http.model import HTTPRequest, HTTPResponse
from ..model import Middleware, TForward

# One year, the longest lifetime caches are expected to honour
CACHE_MAX_AGE: int = 31_536_000

NO_CACHE_HEADERS: dict[str, str | int | None] = {
	"Expires": "Thu, 01 Jan 1970 00:00:00 UTC",
	"Cache-Control": "no-cache, no-store, no-transform, must-revalidate, private, max-age=0",
	"Pragma": "no-cache",
	"X-Accel-Expires": "0",
}

# Conditional request headers, which would let a client revalidate
ETAG_HEADERS: tuple[str, ...] = (
	"ETag",
	"If-Modified-Since",
	"If-Match",
	"If-None-Match",
	"If-Range",
	"If-Unmodified-Since",
)


class CacheControl(Middleware):
	"""Lets clients cache every response for a year."""

	def __init__(self, maxAge: int = CACHE_MAX_AGE) -> None:
		self.maxAge: int = maxAge

	async def __call__(self, request: HTTPRequest, forward: TForward) -> HTTPResponse:
		response = await forward(request)
		return response.setHeader("Cache-Control", f"max-age={self.maxAge}")


class NoCache(Middleware):
	"""Prevents clients and proxies from caching any response, and makes
	every request unconditional."""

	async def __call__(self, request: HTTPRequest, forward: TForward) -> HTTPResponse:
		for name in ETAG_HEADERS:
			request.removeHeader(name)
		response = await forward(request)
		return response.setHeaders(NO_CACHE_HEADERS)


def cachePolicy(cache: bool) -> Middleware:
	"""Returns exactly one of the two cache policies."""
	return CacheControl() if cache else NoCache()


# EOF

from typing import NamedTuple
from ..http.model import HTTPRequest, HTTPResponse
from ..model import Middleware, TForward

# SEE: https://developer.mozilla.org/en-US/docs/Web/HTTP/CORS


class CORSPolicy(NamedTuple):
	"""A cross-origin policy, permissive by default."""

	origins: tuple[str, ...] = ("*",)
	methods: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "OPTIONS")
	headers: tuple[str, ...] = ("Accept", "Authorization", "Content-Type", "X-CSRF-Token")
	exposed: tuple[str, ...] = ("Link",)
	credentials: bool = True
	# Maximum value not ignored by any of the major browsers
	maxAge: int = 300

	def origin(self, origin: str | None) -> str | None:
		"""Returns the allowed origin header value for the given request origin."""
		if "*" in self.origins:
			return "*"
		elif origin and origin in self.origins:
			return origin
		else:
			return None

	def allowsMethod(self, method: str | None) -> bool:
		return not method or method.upper() in self.methods

	def allowsHeaders(self, headers: str | None) -> bool:
		allowed = {_.lower() for _ in self.headers}
		return all(
			_.strip().lower() in allowed for _ in (headers or "").split(",") if _.strip()
		)


def setCORSHeaders(
	response: HTTPResponse,
	policy: CORSPolicy,
	*,
	origin: str | None = None,
	preflight: bool = False,
	method: str | None = None,
	headers: str | None = None,
) -> HTTPResponse:
	"""Sets the CORS headers of the given response following the policy. A
	preflight response describes what the actual request may do, other
	responses what the client may read."""
	allowed_origin = policy.origin(origin)
	response.setHeader("Vary", "Origin")
	if allowed_origin is None:
		return response
	response.setHeader("Access-Control-Allow-Origin", allowed_origin)
	if policy.credentials:
		response.setHeader("Access-Control-Allow-Credentials", "true")
	if preflight:
		response.setHeader(
			"Vary",
			"Origin, Access-Control-Request-Method, Access-Control-Request-Headers",
		)
		if policy.allowsMethod(method):
			response.setHeader("Access-Control-Allow-Methods", ", ".join(policy.methods))
		if policy.allowsHeaders(headers):
			response.setHeader("Access-Control-Allow-Headers", ", ".join(policy.headers))
		response.setHeader("Access-Control-Max-Age", policy.maxAge)
	elif policy.exposed:
		response.setHeader("Access-Control-Expose-Headers", ", ".join(policy.exposed))
	return response


class CORS(Middleware):
	"""Answers `OPTIONS` requests (preflights) directly, and annotates every
	other response with the CORS headers."""

	def __init__(self, policy: CORSPolicy | None = None) -> None:
		self.policy: CORSPolicy = policy or CORSPolicy()

	async def __call__(self, request: HTTPRequest, forward: TForward) -> HTTPResponse:
		origin = request.header("Origin")
		if request.method == "OPTIONS":
			return setCORSHeaders(
				request.respond(status=200),
				self.policy,
				origin=origin,
				preflight=True,
				method=request.header("Access-Control-Request-Method"),
				headers=request.header("Access-Control-Request-Headers"),
			)
		else:
			return setCORSHeaders(await forward(request), self.policy, origin=origin)


# EOF

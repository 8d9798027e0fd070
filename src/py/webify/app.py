from .config import Echo, ServerConfig, Serving
from .features.cache import cachePolicy
from .features.cors import CORS
from .features.requestlog import RequestLogger
from .model import Application, Middleware, Service
from .services.echo import EchoService
from .services.files import FileService
from .utils.logging import LogSink

# --
# The composition root: everything the server runs is derived from a
# `ServerConfig`, which is never read from the environment past this point.


def middlewares(config: ServerConfig, sink: LogSink | None = None) -> list[Middleware]:
	"""Returns the middlewares, outermost first: the request logger (unless
	silent), the cache policy and then CORS."""
	res: list[Middleware] = []
	if not config.silent:
		res.append(
			RequestLogger(
				config.logLevel, debug=config.debug, body=config.echo, sink=sink
			)
		)
	res.append(cachePolicy(config.cache))
	res.append(CORS())
	return res


def services(config: ServerConfig) -> list[Service]:
	match config.mode:
		case Echo():
			return [EchoService()]
		case Serving(root=root, mount=mount):
			return [FileService(root, mount)]
		case _:
			raise ValueError(f"Unsupported mode: {config.mode}")


def application(config: ServerConfig, sink: LogSink | None = None) -> Application:
	"""Creates the application for the given configuration. This raises
	a `ConfigurationError` when the configuration can't be served."""
	return Application(services(config), middlewares(config, sink))


# EOF

import argparse
import sys
from typing import Sequence

from .app import application
from .config import ENV, HOST, PORT, ConfigurationError, ServerConfig, resolveRoot
from .server import run
from .utils.logging import makeSink, parseLevel, setSink

LOG_LEVEL_HELP: str = """Set the logging level:
  debug: log both request starts & responses (incl. OPTIONS)
  info: log responses (excl. OPTIONS)
  warn: log 4xx and 5xx responses only (except for 429)
  error: log 5xx responses only"""

BANNER_RULE: str = "=" * 80


def parser() -> argparse.ArgumentParser:
	res = argparse.ArgumentParser(
		prog="webify",
		description="Serves a local directory over HTTP, or echoes requests back",
		formatter_class=argparse.RawTextHelpFormatter,
	)
	res.add_argument("--port", type=int, default=PORT, help="http server port")
	res.add_argument("--host", default=HOST, help="http server hostname")
	res.add_argument("--dir", default=".", help="directory to serve")
	res.add_argument(
		"--mount", default="/", help="URL path under which the directory is served"
	)
	res.add_argument(
		"--cache", action="store_true", help="enable Cache-Control for content"
	)
	res.add_argument(
		"--debug",
		action="store_true",
		help="Debug mode, printing all network request details",
	)
	res.add_argument(
		"--echo",
		action="store_true",
		help="Echo back request body, useful for debugging",
	)
	res.add_argument("--silent", action="store_true", help="Do not output any logs")
	res.add_argument(
		"--no-banner",
		dest="banner",
		action="store_false",
		help="Do not output banner",
	)
	res.add_argument("--log-level", default="info", help=LOG_LEVEL_HELP)
	return res


def banner(config: ServerConfig) -> str:
	return "\n".join(
		(
			BANNER_RULE,
			f"Serving:  {config.root}",
			f"URL:      http://{config.address}",
			f"Cache:    {'on' if config.cache else 'off'}",
			BANNER_RULE,
			"",
		)
	)


def main(args: Sequence[str] | None = None) -> int:
	"""Runs the command line, returning the exit code once the server
	stops (or fails to start)."""
	options = parser().parse_args(args)
	try:
		root = resolveRoot(options.dir)
	except ConfigurationError as e:
		print(f"Error: {e}")
		return 1
	# The sink is installed first, so that an invalid level is reported
	sink = setSink(makeSink(ENV))
	level = parseLevel(options.log_level)
	sink.level = level
	config = ServerConfig(
		root=root,
		host=options.host,
		port=options.port,
		cache=options.cache,
		debug=options.debug,
		echo=options.echo,
		silent=options.silent,
		logLevel=level,
		banner=options.banner,
		mount=options.mount,
	)
	try:
		app = application(config)
	except ConfigurationError as e:
		print(f"Error: {e}")
		return 1
	if config.banner:
		print(banner(config), flush=True)
	try:
		run(app, config.host, config.port)
	except OSError as e:
		print(f"Error: {e}")
		return 1
	return 0


if __name__ == "__main__":
	sys.exit(main())

# EOF

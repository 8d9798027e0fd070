from os import getenv
from pathlib import Path
from typing import NamedTuple, TypeAlias

from .utils.logging import LogLevel

PORT: int = int(getenv("PORT", 3000))

# If we're starting in a development environment, we want it to be accessible from everywhere
HOST: str = getenv("HOST", "0.0.0.0")  # nosec: B104

# When set to `localhost`, logs are human-readable instead of JSON
ENV: str | None = getenv("ENV")


class ConfigurationError(ValueError):
	"""Raised at setup time when the configuration can't be served."""


class Echo(NamedTuple):
	"""Every request gets its body echoed back."""


class Serving(NamedTuple):
	"""Files from `root` are served under the `mount` path."""

	root: Path
	mount: str = "/"


TMode: TypeAlias = Echo | Serving


class ServerConfig(NamedTuple):
	"""The resolved settings, created once at startup."""

	root: Path
	host: str = HOST
	port: int = PORT
	cache: bool = False
	debug: bool = False
	echo: bool = False
	silent: bool = False
	logLevel: LogLevel = LogLevel.Info
	banner: bool = True
	mount: str = "/"

	@property
	def address(self) -> str:
		return f"{self.host}:{self.port}"

	@property
	def mode(self) -> TMode:
		return Echo() if self.echo else Serving(self.root, self.mount)


def resolveRoot(path: str | Path | None, cwd: Path | None = None) -> Path:
	"""Resolves the directory to serve against the current directory,
	ensuring that it exists."""
	base: Path = Path.cwd() if cwd is None else cwd
	if not path or str(path) == ".":
		return base
	p = Path(path)
	root: Path = p if p.is_absolute() else base / p
	if not root.exists():
		raise ConfigurationError(f"Directory does not exist: {root}")
	elif not root.is_dir():
		raise ConfigurationError(f"Path is not a directory: {root}")
	return root


# EOF

import socket
from pathlib import Path

import pytest

from webify.__main__ import banner, main, parser
from webify.config import ConfigurationError, ServerConfig, resolveRoot
from webify.utils.logging import LogLevel


@pytest.fixture
def busyPort():
	"""A port on which something is already listening."""
	server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
	server.bind(("127.0.0.1", 0))
	server.listen(1)
	yield server.getsockname()[1]
	server.close()


# -----------------------------------------------------------------------------
#
# CONFIG
#
# -----------------------------------------------------------------------------


def test_resolve_root(tmp_path: Path):
	(tmp_path / "public").mkdir()
	assert resolveRoot("", tmp_path) == tmp_path
	assert resolveRoot(".", tmp_path) == tmp_path
	assert resolveRoot(None, tmp_path) == tmp_path
	assert resolveRoot("public", tmp_path) == tmp_path / "public"
	assert resolveRoot(str(tmp_path / "public")) == tmp_path / "public"


def test_resolve_missing_root(tmp_path: Path):
	with pytest.raises(ConfigurationError):
		resolveRoot("missing", tmp_path)
	(tmp_path / "file.txt").write_text("")
	with pytest.raises(ConfigurationError):
		resolveRoot("file.txt", tmp_path)


def test_config(tmp_path: Path):
	config = ServerConfig(root=tmp_path, host="127.0.0.1", port=8080)
	assert config.address == "127.0.0.1:8080"
	assert not config.cache
	assert config.logLevel is LogLevel.Info
	assert config.banner
	with pytest.raises(AttributeError):
		config.port = 3000  # type: ignore[misc]


def test_flags():
	options = parser().parse_args([])
	assert options.dir == "."
	assert options.mount == "/"
	assert options.banner
	assert options.log_level == "info"
	options = parser().parse_args(
		["--port", "8080", "--cache", "--debug", "--echo", "--silent", "--no-banner"]
	)
	assert options.port == 8080
	assert options.cache and options.debug and options.echo and options.silent
	assert not options.banner


def test_banner(tmp_path: Path):
	lines = banner(ServerConfig(root=tmp_path, host="0.0.0.0", port=3000)).splitlines()
	assert lines[0] == "=" * 80
	assert lines[1] == f"Serving:  {tmp_path}"
	assert lines[2] == "URL:      http://0.0.0.0:3000"
	assert lines[3] == "Cache:    off"
	assert lines[4] == "=" * 80


# -----------------------------------------------------------------------------
#
# EXIT CODES
#
# -----------------------------------------------------------------------------


def test_missing_directory(tmp_path: Path, capsys, logs):
	assert main(["--dir", str(tmp_path / "missing")]) == 1
	assert capsys.readouterr().out.startswith("Error: ")


def test_invalid_mount(tmp_path: Path, capsys, logs):
	assert main(["--dir", str(tmp_path), "--mount", "/files/*"]) == 1
	assert capsys.readouterr().out.startswith("Error: ")


def test_bind_failure(tmp_path: Path, capsys, logs, busyPort):
	code = main(
		[
			"--dir",
			str(tmp_path),
			"--host",
			"127.0.0.1",
			"--port",
			str(busyPort),
			"--no-banner",
			"--log-level",
			"loud",
		]
	)
	assert code == 1
	out = capsys.readouterr().out
	assert "Invalid log level specified, defaulting to info" in out
	assert out.splitlines()[-1].startswith("Error: ")


# EOF

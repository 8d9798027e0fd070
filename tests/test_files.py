import os
import time
from email.utils import formatdate
from pathlib import Path

import pytest

from conftest import makeRequest, process
from webify.app import application
from webify.config import ConfigurationError, ServerConfig
from webify.http.model import HTTPBodyFile
from webify.model import Application
from webify.services.files import FileService


def serve(root: Path, mount: str = "/") -> Application:
	return Application([FileService(root, mount)])


def text(response) -> str:
	return response.body.payload.decode("utf8")


# -----------------------------------------------------------------------------
#
# MOUNT
#
# -----------------------------------------------------------------------------


@pytest.mark.parametrize("mount", ["/{path}", "/files/*", "/a}", "*"])
def test_mount_rejects_patterns(site, mount):
	with pytest.raises(ConfigurationError):
		FileService(site, mount)


def test_mount_is_validated_at_setup(site):
	with pytest.raises(ConfigurationError):
		application(ServerConfig(root=site, mount="/files/{name}"))


def test_mount_redirect(site):
	app = serve(site, "/assets")
	res = process(app, makeRequest("GET", "/assets"))
	assert res.status == 301
	assert res.header("Location") == "/assets/"
	res = process(app, makeRequest("GET", "/assets/hello.txt"))
	assert res.status == 200
	assert process(app, makeRequest("GET", "/hello.txt")).status == 404


def test_root_mount_has_no_redirect(site):
	assert [_.functor.__name__ for _ in FileService(site).handlers] == ["read"]
	assert len(FileService(site, "/assets").handlers) == 2
	assert len(FileService(site, "/assets/").handlers) == 1


def test_slashed_mount(site):
	app = serve(site, "/assets/")
	assert process(app, makeRequest("GET", "/assets")).status == 404
	assert process(app, makeRequest("GET", "/assets/hello.txt")).status == 200


# -----------------------------------------------------------------------------
#
# FILES
#
# -----------------------------------------------------------------------------


def test_get_file(site):
	res = process(serve(site), makeRequest("GET", "/hello.txt"))
	assert res.status == 200
	assert isinstance(res.body, HTTPBodyFile)
	assert res.body.path == site / "hello.txt"
	assert res.header("Content-Type") == "text/plain; charset=utf-8"
	assert res.header("Content-Length") == "14"
	assert res.header("Last-Modified").endswith("GMT")


def test_content_types(site):
	res = process(serve(site), makeRequest("GET", "/style.css"))
	assert res.header("Content-Type") == "text/css; charset=utf-8"


def test_head_file(site):
	res = process(serve(site), makeRequest("HEAD", "/hello.txt"))
	assert res.status == 200
	assert res.body is None
	assert res.header("Content-Length") == "14"
	assert res.header("Content-Type") == "text/plain; charset=utf-8"


def test_percent_decoding(site):
	res = process(serve(site), makeRequest("GET", "/data/a%20b.json"))
	assert res.status == 200
	assert res.body.path == site / "data" / "a b.json"


def test_not_found(site):
	assert process(serve(site), makeRequest("GET", "/missing.txt")).status == 404
	assert process(serve(site), makeRequest("GET", "/docs/missing/")).status == 404


def test_method_not_allowed(site):
	res = process(serve(site), makeRequest("POST", "/hello.txt"))
	assert res.status == 405
	assert res.header("Allow") == "GET, HEAD"


@pytest.mark.parametrize(
	"path", ["/../../../etc/passwd", "/%2e%2e/%2e%2e/etc/passwd", "/..%2f..%2fetc/passwd"]
)
def test_paths_never_escape_root(site, path):
	service = FileService(site)
	local = service.resolvePath(path.lstrip("/"))
	assert local.parts[: len(site.parts)] == site.parts
	assert process(serve(site), makeRequest("GET", path)).status == 404


def test_dotdot_resolves_within_root(site):
	res = process(serve(site), makeRequest("GET", "/%2e%2e/hello.txt"))
	assert res.status == 200
	assert res.body.path == site / "hello.txt"


@pytest.mark.skipif(
	not hasattr(os, "geteuid") or os.geteuid() == 0,
	reason="Permissions are not enforced for root",
)
def test_unreadable_file(site):
	secret = site / "secret.txt"
	secret.write_text("secret")
	secret.chmod(0)
	try:
		assert process(serve(site), makeRequest("GET", "/secret.txt")).status == 403
	finally:
		secret.chmod(0o644)


# -----------------------------------------------------------------------------
#
# REDIRECTS
#
# -----------------------------------------------------------------------------


def test_directory_redirects_to_slash(site):
	res = process(serve(site), makeRequest("GET", "/docs"))
	assert res.status == 301
	assert res.header("Location") == "/docs/"


def test_index_redirects_to_directory(site):
	res = process(serve(site), makeRequest("GET", "/docs/index.html"))
	assert res.status == 301
	assert res.header("Location") == "/docs/"


@pytest.mark.parametrize(
	"mount,path,location",
	[
		("/", "/docs", "/docs/?lang=en"),
		("/", "/docs/index.html", "/docs/?lang=en"),
		("/", "/hello.txt/", "/hello.txt?lang=en"),
		("/assets", "/assets", "/assets/?lang=en"),
	],
)
def test_redirects_keep_the_query(site, mount, path, location):
	res = process(serve(site, mount), makeRequest("GET", path, query="lang=en"))
	assert res.status == 301
	assert res.header("Location") == location


def test_file_with_slash_redirects(site):
	res = process(serve(site), makeRequest("GET", "/hello.txt/"))
	assert res.status == 301
	assert res.header("Location") == "/hello.txt"


# -----------------------------------------------------------------------------
#
# DIRECTORIES
#
# -----------------------------------------------------------------------------


def test_directory_index(site):
	res = process(serve(site), makeRequest("GET", "/docs/"))
	assert res.status == 200
	assert res.body.path == site / "docs" / "index.html"
	assert res.header("Content-Type") == "text/html; charset=utf-8"


def test_root_listing(site):
	res = process(serve(site), makeRequest("GET", "/"))
	assert res.status == 200
	assert res.header("Content-Type") == "text/html; charset=utf-8"
	page = text(res)
	assert page.startswith("<!DOCTYPE html>")
	assert 'href="docs/"' in page
	assert 'href="hello.txt"' in page
	assert 'href="../"' not in page


def test_nested_listing(site):
	page = text(process(serve(site), makeRequest("GET", "/data/")))
	assert 'href="a%20b.json"' in page
	assert ">a b.json<" in page
	assert 'href="../"' in page


def test_empty_listing(site):
	res = process(serve(site), makeRequest("GET", "/empty/"))
	assert res.status == 200
	assert "Listing for" in text(res)


def test_head_listing(site):
	res = process(serve(site), makeRequest("HEAD", "/"))
	assert res.status == 200
	assert res.body is None
	assert int(res.header("Content-Length")) > 0


# -----------------------------------------------------------------------------
#
# CONDITIONAL REQUESTS
#
# -----------------------------------------------------------------------------


def test_not_modified(site):
	since = formatdate(time.time() + 3600, usegmt=True)
	res = process(
		serve(site), makeRequest("GET", "/hello.txt", {"If-Modified-Since": since})
	)
	assert res.status == 304
	assert res.body is None
	assert res.header("Last-Modified")


def test_modified(site):
	since = formatdate(time.time() - 86400 * 365, usegmt=True)
	res = process(
		serve(site), makeRequest("GET", "/hello.txt", {"If-Modified-Since": since})
	)
	assert res.status == 200


def test_invalid_modified_since_is_ignored(site):
	res = process(
		serve(site), makeRequest("GET", "/hello.txt", {"If-Modified-Since": "yesterday"})
	)
	assert res.status == 200


# EOF

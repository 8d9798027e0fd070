from email.utils import formatdate, parsedate_to_datetime
from pathlib import Path
from typing import Iterable
from urllib.parse import quote, unquote
import os
import posixpath

from ..config import ConfigurationError
from ..decorators import on
from ..model import Service
from ..routing import Handler
from ..http.model import HTTPRequest, HTTPResponse
from ..utils.files import FileEntry
from ..utils.htmpl import Node, H, Raw, html
from ..utils.logging import debug


FILE_CSS: str = """
:root {
    font-family: sans-serif;
    font-size: 14px;
    line-height: 1.35em;
    padding: 20px;
    background: #F0F0F0;
}
h1 {
margin-top: 1.75em;
margin-bottom: 1.75em;
line-height:1.25em;
}

ul {
    padding: 0px 20px;
    margin: 1.25em 0em;
}

li {
    padding: 0px 10px;
    margin: 0.5em 0em;
}
"""

INDEX_FILE: str = "index.html"

# Characters that would turn the mount path into a route pattern
MOUNT_RESERVED: str = "{}*"


class FileService(Service):
	"""Serves the files of a local directory, read-only, under the given
	mount path. Directories are served through their `index.html` when
	they have one, and listed otherwise."""

	def __init__(self, root: str | Path, mount: str = "/"):
		if any(_ in mount for _ in MOUNT_RESERVED):
			raise ConfigurationError(
				f"File server does not permit any URL parameters in its mount path: {mount}"
			)
		mount = mount if mount.startswith("/") else f"/{mount}"
		super().__init__(prefix=mount.rstrip("/"))
		self.root: Path = (root if isinstance(root, Path) else Path(root)).absolute()
		self.mount: str = mount

	@property
	def redirectsMount(self) -> bool:
		"""A mount like `/assets` redirects `/assets` to `/assets/`."""
		return self.mount != "/" and not self.mount.endswith("/")

	def iterHandlers(self) -> Iterable[Handler]:
		for handler in super().iterHandlers():
			if handler.functor == self.redirectMount and not self.redirectsMount:
				continue
			yield handler

	def resolvePath(self, path: str) -> Path:
		"""Maps the (URL-encoded) path relative to the mount to a local
		path, which is always within the root."""
		name = posixpath.normpath("/" + unquote(path))
		return self.root.joinpath(*(_ for _ in name.split("/") if _))

	def lastModified(self, request: HTTPRequest, local: Path) -> tuple[str, bool]:
		"""Returns the `Last-Modified` value for the local path, and tells
		if the request's `If-Modified-Since` makes it unmodified."""
		mtime = int(local.stat().st_mtime)
		value = formatdate(mtime, usegmt=True)
		since = request.header("If-Modified-Since")
		if not since or mtime <= 0:
			return value, False
		try:
			return value, mtime <= int(parsedate_to_datetime(since).timestamp())
		except (TypeError, ValueError):
			# An unparseable date is ignored
			return value, False

	def renderDir(
		self, request: HTTPRequest, local: Path, body: bool = True
	) -> HTTPResponse:
		title = unquote(request.path)
		dirs: list[Node] = []
		files: list[Node] = []
		for entry in sorted(
			(FileEntry.FromPath(_) for _ in local.iterdir()), key=lambda _: _.name
		):
			# Directory URLs always end with a slash, relative links are safe
			if entry.isDirectory:
				dirs.append(H.li(H.a(f"{entry.name}/", href=f"{quote(entry.name)}/")))
			else:
				files.append(H.li(H.a(entry.name, href=quote(entry.name))))
		if local != self.root:
			dirs.insert(0, H.li(H.a("..", href="../")))
		page = html(
			H.html(
				H.head(
					H.meta(charset="utf-8"),
					H.meta(
						name="viewport",
						content="width=device-width, initial-scale=1.0",
					),
					H.title(title),
					H.style(Raw(FILE_CSS)),
				),
				H.body(
					H.h1("Listing for ", H.code(title)),
					H.ul(*dirs, style='list-style-type: "\\1F4C1";') if dirs else "",
					H.ul(*files, style='list-style-type: "\\1F4C4";') if files else "",
				),
			)
		)
		res = request.respondHTML(page)
		if not body:
			res.body = None
		return res

	def relocate(self, request: HTTPRequest, path: str) -> HTTPResponse:
		"""Permanently redirects to the path, keeping the query."""
		return request.redirect(
			f"{path}?{request.query}" if request.query else path, permanent=True
		)

	@on(GET="")
	def redirectMount(self, request: HTTPRequest) -> HTTPResponse:
		return self.relocate(request, f"{self.mount}/")

	@on(GET_HEAD="/{path:any}")
	def read(self, request: HTTPRequest, path: str = "") -> HTTPResponse:
		url: str = request.path
		if url.endswith(f"/{INDEX_FILE}"):
			# The index is only ever served through its directory
			return self.relocate(request, url[: -len(INDEX_FILE)])
		local = self.resolvePath(path)
		try:
			is_dir = local.is_dir()
			exists = is_dir or local.exists()
		except (OSError, ValueError):
			exists = False
		if not exists:
			debug("File not found", Path=url, Local=local)
			return request.notFound()
		elif not os.access(local, os.R_OK):
			return request.notAuthorized()
		elif is_dir and not url.endswith("/"):
			return self.relocate(request, f"{url}/")
		elif not is_dir and url.endswith("/"):
			return self.relocate(request, url.rstrip("/") or "/")
		body: bool = request.method != "HEAD"
		if is_dir:
			index = local / INDEX_FILE
			if not index.is_file():
				return self.renderDir(request, local, body)
			local = index
		modified, unchanged = self.lastModified(request, local)
		if unchanged:
			return request.notModified({"Last-Modified": modified})
		return request.respondFile(local, {"Last-Modified": modified}, body=body)


# EOF

import mimetypes
from pathlib import Path
from typing import NamedTuple

mimetypes.init()

MIME_TYPES: dict[str, str] = dict(
	bz2="application/x-bzip",
	gz="application/x-gzip",
	js="text/javascript",
	mjs="text/javascript",
	wasm="application/wasm",
)

TEXT_CHARSET: str = "utf-8"


def isText(path: Path | str, size: int = 512) -> bool:
	"""Check if a file is likely a text file by examining its content."""
	try:
		with open(path, "rb") as f:
			s = f.read(size)
	except OSError:
		return False
	if b"\x00" in s:
		return False
	try:
		s.decode("utf-8")
		return True
	except UnicodeDecodeError:
		# A multi-byte sequence may be cut at the sample boundary
		return len(s) == size and _decodesTruncated(s)


def _decodesTruncated(data: bytes) -> bool:
	for cut in range(1, 4):
		try:
			data[:-cut].decode("utf-8")
			return True
		except UnicodeDecodeError:
			continue
	return False


def contentType(path: Path | str) -> str:
	"""Guesses the content type from the given path's extension, sniffing
	the content when the extension is unknown. Textual types get an
	explicit charset."""
	p = Path(path)
	res: str | None = MIME_TYPES.get(p.suffix[1:].lower()) or mimetypes.guess_type(
		p.name
	)[0]
	if res is None:
		res = "text/plain" if isText(p) else "application/octet-stream"
	if res.startswith("text/") and "charset" not in res:
		res = f"{res}; charset={TEXT_CHARSET}"
	return res


class FileEntry(NamedTuple):
	"""A directory entry, as shown in listings."""

	name: str
	isDirectory: bool
	size: int | None = None
	updatedAt: float | None = None

	@staticmethod
	def FromPath(path: Path) -> "FileEntry":
		try:
			stats = path.stat()
		except OSError:
			# Dangling symlinks are still listed
			return FileEntry(name=path.name, isDirectory=False)
		is_dir = path.is_dir()
		return FileEntry(
			name=path.name,
			isDirectory=is_dir,
			size=None if is_dir else stats.st_size,
			updatedAt=stats.st_mtime,
		)


# EOF

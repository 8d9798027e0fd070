DEFAULT_ENCODING: str = "utf8"


def asText(value: bytes, limit: int | None = None) -> str:
	"""Decodes the given bytes leniently, optionally capping the result
	to `limit` characters."""
	text = value.decode(DEFAULT_ENCODING, errors="replace")
	return text if limit is None or len(text) <= limit else f"{text[:limit]}…"


# EOF

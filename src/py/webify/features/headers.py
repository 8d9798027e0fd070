from typing import Iterable, Mapping, NamedTuple

# Already part of the request log line, so never repeated in the headers group
IGNORED_HEADERS: frozenset[str] = frozenset(("referer", "user-agent"))
# Logged with their value hidden
REDACTED_HEADERS: frozenset[str] = frozenset(("authorization",))
REDACTED: str = "[REDACTED]"


class HeaderAttribute(NamedTuple):
	name: str
	value: str


def headerValue(value: str | Iterable[str]) -> str:
	return value if isinstance(value, str) else ",".join(value)


def classifyHeaders(
	headers: Mapping[str, str | Iterable[str]], debug: bool
) -> list[HeaderAttribute]:
	"""Returns the headers that are logged in debug mode, in iteration
	order, without the ignored ones and with sensitive values redacted.
	Nothing is logged outside of debug mode."""
	if not debug:
		return []
	res: list[HeaderAttribute] = []
	for name, value in headers.items():
		key = name.lower()
		if key in IGNORED_HEADERS:
			continue
		res.append(
			HeaderAttribute(
				name, REDACTED if key in REDACTED_HEADERS else headerValue(value)
			)
		)
	return res


# EOF

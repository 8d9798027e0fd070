from typing import TextIO
import os

# SEE: https://no-color.org/
NO_COLOR: bool = "NO_COLOR" in os.environ
FORCE_COLOR: bool = "FORCE_COLOR" in os.environ


def isTerminal(stream: TextIO) -> bool:
	try:
		return stream.isatty()
	except (AttributeError, ValueError):
		# Closed or file-like streams
		return False


def hasColor(stream: TextIO) -> bool:
	"""Colour is used when writing to a terminal, unless disabled by
	`NO_COLOR`, or when forced by `FORCE_COLOR`."""
	return FORCE_COLOR or (not NO_COLOR and isTerminal(stream))


class Term:
	"""Escape sequences, which are all empty when colour is disabled."""

	__slots__ = ["color"]

	def __init__(self, color: bool = True):
		self.color: bool = color

	@property
	def BOLD(self) -> str:
		return "\033[1m" if self.color else ""

	@property
	def RESET(self) -> str:
		return "\033[0m" if self.color else ""

	def Color(self, color: int, bold: bool = False) -> str:
		return f"\033[{'1' if bold else '0'};38;5;{color}m" if self.color else ""


# EOF

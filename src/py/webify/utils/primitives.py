from typing import Any
from datetime import date, datetime
from pathlib import Path
from enum import Enum


def asPrimitive(value: Any) -> Any:
	"""Converts the given value to a primitive value, that can be converted
	to JSON"""
	if value is None or type(value) in (bool, float, int, str):
		return value
	elif isinstance(value, tuple) and hasattr(value, "_fields"):
		# Named tuples become objects
		return {k: asPrimitive(getattr(value, k)) for k in value._fields}
	elif isinstance(value, (list, tuple, set)):
		return [asPrimitive(v) for v in value]
	elif isinstance(value, dict):
		return {str(asPrimitive(k)): asPrimitive(v) for k, v in value.items()}
	elif isinstance(value, Enum):
		return asPrimitive(value.value)
	elif isinstance(value, bytes):
		return value.decode("utf8", errors="replace")
	elif isinstance(value, Path):
		return str(value)
	elif isinstance(value, (datetime, date)):
		return value.isoformat()
	else:
		return str(value)


# EOF

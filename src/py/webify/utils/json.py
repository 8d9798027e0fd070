from typing import Any
import json as basejson
from .primitives import asPrimitive


def json(value: Any) -> str:
	"""Serializes the value as a single-line JSON string."""
	return basejson.dumps(
		asPrimitive(value), ensure_ascii=False, separators=(",", ":")
	)


# EOF

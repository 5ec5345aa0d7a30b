"""Raw JSON body reading for routes that validate payloads in the domain layer."""

from __future__ import annotations

import json
from typing import Any, Mapping, Optional

from fastapi import Request

from nearby.domain.discovery.exceptions import ValidationError


async def read_json_object(request: Request) -> Optional[Mapping[str, Any]]:
	"""Return the body as a JSON object, None when empty.

	Anything that is not a JSON object is a 400 `invalid_json`, never FastAPI's 422.
	"""
	raw = await request.body()
	if not raw.strip():
		return None
	try:
		body = json.loads(raw)
	except ValueError as exc:
		raise ValidationError("invalid_json") from exc
	if not isinstance(body, dict):
		raise ValidationError("invalid_json")
	return body

"""JSON logging with request context and redaction of positioning data.

Coordinates, network identifiers and device identifiers are personal location
data. They are redacted by field name, and any MAC-shaped string is masked
wherever it appears in a structured field.
"""

from __future__ import annotations

import json
import logging
import random
import re
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from nearby.settings import settings

_LOGGER_NAME = "nearby"

_CONTEXT: ContextVar[Mapping[str, str]] = ContextVar("nearby_log_context", default={})

# Field names whose values are dropped outright. Short names match whole
# underscore-separated words only, so "latency_ms" survives while "lat" does not.
_REDACTED_KEYS = (
	"token",
	"secret",
	"authorization",
	"password",
	"payload",
	"body",
	"latitude",
	"longitude",
	"coord",
	"network",
	"bssid",
	"device",
	"rssi",
)
_REDACTED_WORDS = frozenset({"lat", "lon", "lng"})

_MAC_PATTERN = re.compile(r"\b(?:[0-9A-Fa-f]{2}[:-]){5}[0-9A-Fa-f]{2}\b")
_MAC_MASK = "[device]"

_MAX_STRING_LENGTH = 256
_MAX_COLLECTION_ITEMS = 10

# LogRecord attributes that are not user supplied extras.
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def bind_context(
	*,
	request_id: Optional[str] = None,
	route: Optional[str] = None,
	user_id: Optional[str] = None,
	client_ip: Optional[str] = None,
) -> Token:
	"""Attach request fields to every log line emitted in the current context."""
	fields = dict(_CONTEXT.get())
	for key, value in (("request_id", request_id), ("route", route), ("user_id", user_id), ("ip", client_ip)):
		if value:
			fields[key] = value
	return _CONTEXT.set(fields)


def reset_context(token: Token) -> None:
	_CONTEXT.reset(token)


def _mask(text: str) -> str:
	text = _MAC_PATTERN.sub(_MAC_MASK, text)
	if len(text) > _MAX_STRING_LENGTH:
		return f"{text[:_MAX_STRING_LENGTH]}…"
	return text


def _sanitize_value(value: Any) -> Any:
	if isinstance(value, str):
		return _mask(value)
	if isinstance(value, Mapping):
		result: Dict[str, Any] = {}
		for idx, (key, nested) in enumerate(value.items()):
			if idx >= _MAX_COLLECTION_ITEMS:
				result["…"] = f"+{len(value) - _MAX_COLLECTION_ITEMS} keys"
				break
			result[str(key)] = sanitize_field(str(key), nested)
		return result
	if isinstance(value, (list, tuple, set, frozenset)):
		items = [_sanitize_value(item) for item in list(value)[:_MAX_COLLECTION_ITEMS]]
		if len(value) > _MAX_COLLECTION_ITEMS:
			items.append("…")
		return items
	return value


def sanitize_field(key: str, value: Any) -> Any:
	lowered = key.lower()
	if any(keyword in lowered for keyword in _REDACTED_KEYS) or _REDACTED_WORDS.intersection(lowered.split("_")):
		return "[redacted]"
	return _sanitize_value(value)


class JSONLogFormatter(logging.Formatter):
	"""One JSON object per line: fixed service fields, request context, sanitized extras."""

	def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (match logging api)
		payload: Dict[str, object] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"msg": _mask(record.getMessage()),
			"logger": record.name,
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		payload.update(_CONTEXT.get())
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		for key, value in record.__dict__.items():
			if key in _STANDARD_ATTRS or key in payload:
				continue
			payload[key] = sanitize_field(key, value)
		return json.dumps(payload, separators=(",", ":"), default=str)


class InfoSamplingFilter(logging.Filter):
	"""Sample info-level lines; everything else passes."""

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.levelno != logging.INFO:
			return True
		rate = max(0.0, min(1.0, settings.obs_log_sampling_rate_info))
		return rate >= 1.0 or random.random() < rate


def configure_logging() -> logging.Logger:
	root = logging.getLogger()
	root.handlers.clear()
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	handler.addFilter(InfoSamplingFilter())
	root.addHandler(handler)
	root.setLevel(settings.obs_log_level)
	return logging.getLogger(_LOGGER_NAME)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or _LOGGER_NAME)

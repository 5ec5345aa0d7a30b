"""Request middleware: request ids, access logs and HTTP metrics."""

from __future__ import annotations

import re
import time
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from nearby.obs import logging as obs_logging
from nearby.obs import metrics
from nearby.settings import settings

REQUEST_ID_HEADER = "X-Request-Id"

_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _request_id(request: Request) -> str:
	supplied = request.headers.get(REQUEST_ID_HEADER)
	if supplied and _REQUEST_ID_PATTERN.match(supplied):
		return supplied
	return uuid4().hex


def _client_ip(request: Request) -> Optional[str]:
	forwarded = request.headers.get("X-Forwarded-For")
	if forwarded:
		return forwarded.split(",")[0].strip() or None
	return request.client.host if request.client else None


def _route_template(request: Request) -> str:
	# Templated path keeps metric label cardinality bounded.
	route = request.scope.get("route")
	return getattr(route, "path", None) or request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
	def __init__(self, app) -> None:
		super().__init__(app)
		self._logger = obs_logging.get_logger("nearby.http")

	async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
		request_id = _request_id(request)
		request.state.request_id = request_id
		if not settings.obs_enabled:
			response = await call_next(request)
			response.headers.setdefault(REQUEST_ID_HEADER, request_id)
			return response

		token = obs_logging.bind_context(
			request_id=request_id,
			route=request.url.path,
			user_id=request.headers.get("X-User-Id"),
			client_ip=_client_ip(request),
		)
		start = time.perf_counter()
		status_code = 500
		try:
			response = await call_next(request)
			status_code = response.status_code
		except Exception:
			self._logger.exception("http_request_error", extra={"method": request.method})
			raise
		finally:
			elapsed = time.perf_counter() - start
			route = _route_template(request)
			metrics.observe_request(route, request.method, status_code, elapsed)
			self._logger.info(
				"http_request",
				extra={
					"method": request.method,
					"status": status_code,
					"channel": request.path_params.get("channel"),
					"latency_ms": round(elapsed * 1000, 3),
				},
			)
			obs_logging.reset_context(token)

		response.headers.setdefault(REQUEST_ID_HEADER, request_id)
		return response


def install(app: FastAPI) -> None:
	app.add_middleware(ObservabilityMiddleware)

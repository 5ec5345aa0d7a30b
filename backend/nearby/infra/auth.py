"""Authentication seam for FastAPI endpoints.

Identity is owned by the account service; this module only turns a bearer JWT
(or, in development, an X-User-Id header) into the requester id.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import InvalidTokenError

from nearby.domain.discovery.exceptions import AuthError
from nearby.infra import jwt as jwt_helper
from nearby.settings import settings


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	roles: Tuple[str, ...] = ()

	def has_role(self, role: str) -> bool:
		return role in self.roles


_bearer_scheme = HTTPBearer(auto_error=False)


def _parse_roles(claim: object) -> Tuple[str, ...]:
	if isinstance(claim, (list, tuple)):
		return tuple(str(r).strip() for r in claim if str(r).strip())
	if isinstance(claim, str):
		return tuple(part.strip() for part in claim.split(",") if part.strip())
	return ()


def verify_access_jwt(token: str) -> AuthenticatedUser:
	try:
		payload = jwt_helper.decode_access(token)
	except InvalidTokenError as exc:
		# Every decode failure looks the same to the caller
		raise AuthError("invalid_token") from exc
	sub = str(payload.get("sub") or "").strip()
	roles = _parse_roles(payload.get("roles") or payload.get("role"))
	return AuthenticatedUser(id=sub, roles=roles)


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	x_user_roles: Optional[str] = Header(default=None, alias="X-User-Roles"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthenticatedUser:
	"""Resolve the requester.

	A bearer JWT is always accepted; header identity is only honoured in development.
	"""
	if credentials and credentials.scheme.lower() == "bearer":
		return verify_access_jwt(credentials.credentials)

	if settings.is_dev() and x_user_id and x_user_id.strip():
		return AuthenticatedUser(id=x_user_id.strip(), roles=_parse_roles(x_user_roles))

	raise AuthError("invalid_token")

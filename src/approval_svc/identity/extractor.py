"""Actor extraction from HTTP requests."""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from typing import Callable

from starlette.requests import Request

from .actor import Actor, ActorRole


logger = logging.getLogger(__name__)


@dataclass
class ActorExtractor:
    """
    Extracts the acting user from HTTP requests.

    Supports:
    - JWT bearer tokens (claims are trusted; verification is upstream)
    - Plain identity headers set by an authenticating proxy

    Falls back to an anonymous consumer.
    """
    jwt_header: str = "Authorization"
    user_id_header: str = "X-User-ID"
    user_name_header: str = "X-User-Name"
    role_header: str = "X-User-Role"

    # JWT claim mappings
    jwt_user_claim: str = "sub"
    jwt_name_claim: str = "name"
    jwt_role_claim: str = "role"

    custom_extractor: Callable[[Request], Actor | None] | None = None

    def extract(self, request: Request) -> Actor:
        """Try custom extractor, then JWT, then headers, then anonymous."""
        if self.custom_extractor:
            actor = self.custom_extractor(request)
            if actor:
                return actor

        actor = self._extract_jwt(request)
        if actor:
            return actor

        actor = self._extract_headers(request)
        if actor:
            return actor

        return Actor.anonymous()

    def _extract_jwt(self, request: Request) -> Actor | None:
        """Extract identity from a JWT bearer token payload."""
        auth_header = request.headers.get(self.jwt_header, "")
        if not auth_header.startswith("Bearer "):
            return None

        parts = auth_header[7:].split(".")
        if len(parts) != 3:
            return None

        payload_b64 = parts[1]
        padding = 4 - len(payload_b64) % 4
        if padding != 4:
            payload_b64 += "=" * padding

        try:
            payload = json.loads(base64.urlsafe_b64decode(payload_b64))
        except (ValueError, UnicodeDecodeError) as e:
            logger.debug(f"Failed to decode JWT payload: {e}")
            return None

        user_id = payload.get(self.jwt_user_claim)
        if not user_id:
            return None

        return Actor(
            id=str(user_id),
            display_name=payload.get(self.jwt_name_claim) or payload.get("email") or "",
            role=_parse_role(payload.get(self.jwt_role_claim)),
        )

    def _extract_headers(self, request: Request) -> Actor | None:
        user_id = request.headers.get(self.user_id_header)
        if not user_id:
            return None
        return Actor(
            id=user_id,
            display_name=request.headers.get(self.user_name_header, ""),
            role=_parse_role(request.headers.get(self.role_header)),
        )


def _parse_role(value: str | None) -> ActorRole:
    if not value:
        return ActorRole.STEWARD
    try:
        return ActorRole(value.lower())
    except ValueError:
        logger.debug(f"Unknown role {value!r}, treating as consumer")
        return ActorRole.CONSUMER


_default_extractor = ActorExtractor()


def extract_actor(request: Request) -> Actor:
    """Extract the actor using the default extractor."""
    return _default_extractor.extract(request)

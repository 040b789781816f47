"""
Origin admission for the ping endpoint.
"""

from typing import Iterable, List, Optional

import structlog
from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response

logger = structlog.get_logger()


def normalize_suffix(rule: str) -> str:
    """Turn ``*.ngrok.io`` or ``ngrok.io`` into ``.ngrok.io``."""
    suffix = rule.strip().lstrip("*")
    if not suffix.startswith("."):
        suffix = "." + suffix
    return suffix


class OriginPolicy:
    """Exact origins plus wildcard host suffixes, fixed at startup."""

    def __init__(self, allowed_origins: Iterable[str] = (), allowed_suffixes: Iterable[str] = ()):
        self.allowed_origins = tuple(dict.fromkeys(o.rstrip("/") for o in allowed_origins))
        self.allowed_suffixes = tuple(dict.fromkeys(normalize_suffix(s) for s in allowed_suffixes))

    def admits(self, origin: Optional[str]) -> bool:
        # Beacons and non-browser clients send no Origin at all.
        if origin is None:
            return True
        if origin in self.allowed_origins:
            return True
        return any(origin.endswith(suffix) for suffix in self.allowed_suffixes)

    def describe(self) -> List[str]:
        return list(self.allowed_origins) + [f"*{suffix}" for suffix in self.allowed_suffixes]


class OriginAdmissionMiddleware(CORSMiddleware):
    """
    CORS middleware driven by an OriginPolicy.

    Admitted origins get the usual CORS headers from Starlette. Requests from
    any other origin are answered with an empty 403 before the application
    sees them, so their body is never read.
    """

    def __init__(self, app, policy: OriginPolicy):
        super().__init__(
            app,
            allow_origins=list(policy.allowed_origins),
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )
        self.policy = policy

    def is_allowed_origin(self, origin: str) -> bool:
        return self.policy.admits(origin)

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http":
            origin = Headers(scope=scope).get("origin")
            if not self.policy.admits(origin):
                logger.warning(
                    "origin_blocked",
                    origin=origin,
                    method=scope.get("method"),
                    path=scope.get("path")
                )
                response = Response(status_code=403)
                await response(scope, receive, send)
                return

        await super().__call__(scope, receive, send)

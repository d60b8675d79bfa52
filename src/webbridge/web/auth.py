"""API Key authentication for the bridge web surface.

Supports Header (X-API-Key) and query param (?api_key=xxx).
When api_key is empty or unconfigured, authentication is skipped.
"""

from __future__ import annotations

import logging
import secrets
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, WebSocket, status

logger = logging.getLogger(__name__)

_warned_no_key = False


def configured_api_key(config: Dict[str, Any]) -> str:
    """Return the configured api_key, or empty string if not set."""
    return str(((config.get("bridge") or {}).get("web") or {}).get("api_key", "") or "")


def _warn_once() -> None:
    global _warned_no_key
    if not _warned_no_key:
        logger.warning("Web API key is not configured, all requests are allowed. "
                       "Set bridge.web.api_key in config.yaml to enable authentication.")
        _warned_no_key = True


def _extract_api_key(request: Request) -> Optional[str]:
    """Extract API key from header or query parameter."""
    key = request.headers.get("x-api-key")
    if key:
        return key
    key = request.query_params.get("api_key")
    if key:
        return key
    return None


async def verify_api_key(request: Request) -> None:
    """FastAPI dependency: verify API key for HTTP routes."""
    configured_key = configured_api_key(request.app.state.config)
    if not configured_key:
        _warn_once()
        return

    provided_key = _extract_api_key(request)
    if not provided_key or not secrets.compare_digest(provided_key, configured_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )


async def verify_ws_api_key(websocket: WebSocket) -> bool:
    """Verify API key for WebSocket connections.

    Returns False if authentication failed (caller should close the connection).
    """
    configured_key = configured_api_key(websocket.app.state.config)
    if not configured_key:
        _warn_once()
        return True

    provided_key = websocket.headers.get("x-api-key") or websocket.query_params.get("api_key")
    if not provided_key or not secrets.compare_digest(provided_key, configured_key):
        return False
    return True

"""
WebBridge web surface

- /ws/bridge: one BridgeHost per WebSocket connection
- /api/protocol, /api/routes: introspection for the UI and for diagnostics
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from ..channel import WebSocketTransport
from ..core.messages import PROTOCOL_VERSION, MessageType
from ..host import BridgeHost, describe_routes
from ..infra.config import get_config
from ..infra.generator import OpenAICompatibleGenerator, TokenGenerator
from ..infra.settings import SettingsStore
from .auth import verify_api_key, verify_ws_api_key

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[Dict[str, Any]] = None,
    *,
    config_path: Optional[str] = None,
    generator: Optional[TokenGenerator] = None,
    settings: Optional[SettingsStore] = None,
) -> FastAPI:
    """Build the FastAPI app. Settings and generator are shared by all connections."""
    config = config if config is not None else get_config(config_path)
    app = FastAPI(title="WebBridge")

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.settings = settings or SettingsStore(config, config_path=config_path)
    app.state.generator = generator or OpenAICompatibleGenerator.from_config(config)
    app.state.active_hosts = 0

    @app.get("/api/protocol", dependencies=[Depends(verify_api_key)])
    async def api_protocol() -> Dict[str, Any]:
        """Closed message enumeration shared with the UI"""
        return {
            "version": PROTOCOL_VERSION,
            "message_types": [t.value for t in MessageType],
        }

    @app.get("/api/routes", dependencies=[Depends(verify_api_key)])
    async def api_routes() -> Dict[str, Any]:
        """Host route table by handler group"""
        return {"groups": describe_routes(app.state.settings), "active_connections": app.state.active_hosts}

    @app.websocket("/ws/bridge")
    async def websocket_bridge(websocket: WebSocket):
        """Bridge channel: envelopes in both directions"""
        if not await verify_ws_api_key(websocket):
            await websocket.close(code=4001, reason="Unauthorized")
            return

        await websocket.accept()
        host = BridgeHost.from_config(
            WebSocketTransport(websocket),
            app.state.config,
            generator=app.state.generator,
            settings=app.state.settings,
        )
        app.state.active_hosts += 1
        try:
            await host.serve()
        except Exception:
            logger.exception("Bridge connection failed")
        finally:
            app.state.active_hosts -= 1
            await host.transport.close()

    return app

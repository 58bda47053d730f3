"""
Docker authorization plugin server.

Implements the Docker plugin protocol on top of a unix socket. The server
is a thin transport: it decodes plugin payloads, hands them to the
Gatekeeper and encodes the decision.

Endpoints:
    POST /Plugin.Activate         Handshake, declares the authz capability
    POST /AuthZPlugin.AuthZReq    Client -> daemon requests
    POST /AuthZPlugin.AuthZRes    Daemon -> client responses

A decision that carries an error is returned with HTTP 500 so that Docker
reports a failure to the client.
"""

import json
import logging
from typing import Any

import uvicorn
from fastapi import FastAPI, Request as HTTPRequest
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from authzgate import __version__
from authzgate.config import GatekeeperSettings
from authzgate.gatekeeper import Gatekeeper
from authzgate.log import uvicorn_log_level
from authzgate.schema import Decision, Request

logger = logging.getLogger(__name__)

AUTHZ_API_IMPLEMENTS = "authz"
AUTHZ_API_REQUEST = "AuthZPlugin.AuthZReq"
AUTHZ_API_RESPONSE = "AuthZPlugin.AuthZRes"


async def _read_plugin_request(http_request: HTTPRequest) -> Request:
    """Decode a plugin payload into a Request. Raises ValueError if malformed."""
    body = await http_request.body()
    payload: Any = json.loads(body or b"{}")
    if not isinstance(payload, dict):
        msg = "Plugin payload must be a JSON object"
        raise ValueError(msg)
    return Request.from_plugin_payload(payload)


def _plugin_response(decision: Decision) -> JSONResponse:
    status_code = 500 if decision.error else 200
    return JSONResponse(decision.to_plugin_payload(), status_code=status_code)


def create_app(gatekeeper: Gatekeeper) -> FastAPI:
    """
    Build the plugin application around a gatekeeper.

    Args:
        gatekeeper: Authorizes and audits every call

    Returns:
        FastAPI application implementing the authz plugin protocol
    """
    app = FastAPI(
        title="authzgate",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.post("/Plugin.Activate")
    def activate() -> dict[str, list[str]]:
        return {"Implements": [AUTHZ_API_IMPLEMENTS]}

    @app.post(f"/{AUTHZ_API_REQUEST}")
    async def authz_request(http_request: HTTPRequest) -> JSONResponse:
        try:
            request = await _read_plugin_request(http_request)
        except ValueError as e:
            logger.error("Malformed authorization request: %s", e)
            return _plugin_response(Decision.failure(str(e)))

        decision = await run_in_threadpool(gatekeeper.handle_request, request)
        return _plugin_response(decision)

    @app.post(f"/{AUTHZ_API_RESPONSE}")
    async def authz_response(http_request: HTTPRequest) -> JSONResponse:
        try:
            request = await _read_plugin_request(http_request)
        except ValueError as e:
            logger.error("Malformed authorization response: %s", e)
            return _plugin_response(Decision.failure(str(e)))

        decision = await run_in_threadpool(gatekeeper.handle_response, request)
        return _plugin_response(decision)

    return app


def serve(settings: GatekeeperSettings) -> None:
    """
    Load the policy set and serve the plugin on its unix socket.

    Blocks until the server is stopped.

    Raises:
        ConfigError: If the policy file is missing or malformed
    """
    gatekeeper = Gatekeeper.from_settings(settings)

    socket_path = settings.socket_path
    if not socket_path.parent.exists():
        logger.info("Creating plugins folder %s", socket_path.parent)
        socket_path.parent.mkdir(mode=0o750, parents=True)
    socket_path.unlink(missing_ok=True)

    logger.info("Serving authorization plugin on %s", socket_path)
    try:
        uvicorn.run(
            create_app(gatekeeper),
            uds=str(socket_path),
            log_level=uvicorn_log_level(settings.debug),
            log_config=None,
        )
    finally:
        gatekeeper.close()

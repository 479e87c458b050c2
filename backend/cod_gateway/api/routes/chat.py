import json
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from cod_gateway.api.deps import SettingsDep, UpstreamDep
from cod_gateway.core.errors import (
    BadRequestError,
    ConfigurationError,
    GatewayError,
    InternalServerError,
    MethodNotAllowedError,
)
from cod_gateway.providers.base import ChatRequest, build_payload
from cod_gateway.providers.fireworks import FireworksClient
from cod_gateway.schemas import ErrorResponse
from cod_gateway.services.orchestrator import EnhancedCoDOrchestrator
from cod_gateway.services.relay import relay_stream
from cod_gateway.services.router import RequestMode, resolve_mode

router = APIRouter(tags=["chat"])
logger = structlog.get_logger()

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


async def _parse_request(request: Request) -> ChatRequest:
    try:
        body: Dict[str, Any] = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise BadRequestError("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise BadRequestError("Request body must be a JSON object")
    try:
        payload = ChatRequest.model_validate(body)
    except ValidationError as e:
        raise BadRequestError(f"Invalid request fields: {e.errors(include_url=False)}")
    if payload.missing_required_fields():
        logger.error(
            "Missing required fields in request",
            model=bool(payload.model),
            messages=payload.messages is not None,
        )
        raise BadRequestError("Missing required fields: model and messages")
    return payload


async def _direct(payload: ChatRequest, client: FireworksClient) -> Response:
    upstream_payload = build_payload(payload)
    if payload.stream:
        # Upstream status is confirmed 2xx before any stream header goes out
        handle = await client.open_stream(upstream_payload)
        return StreamingResponse(
            relay_stream(handle),
            media_type="text/event-stream",
            headers=STREAM_HEADERS,
        )
    data = await client.complete(upstream_payload)
    return JSONResponse(content=data)


async def _staged(payload: ChatRequest, client: FireworksClient, model: str | None) -> Response:
    result = await EnhancedCoDOrchestrator(client, payload, model=model).run()
    return JSONResponse(content=result.model_dump())


ERROR_RESPONSES = {status: {"model": ErrorResponse} for status in (400, 405, 500)}


@router.api_route(
    "/chat",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    responses=ERROR_RESPONSES,
)
async def chat(request: Request, settings: SettingsDep, client: UpstreamDep):
    if request.method == "OPTIONS":
        return Response(status_code=200)
    if request.method != "POST":
        raise MethodNotAllowedError("Only POST requests are supported")

    try:
        if not settings.FIREWORKS_API_KEY:
            logger.error("FIREWORKS_API_KEY environment variable not set")
            raise ConfigurationError("API key not configured. Please check server environment variables.")

        payload = await _parse_request(request)
        mode = resolve_mode(payload)
        logger.info(
            "Processing request",
            model=payload.model,
            message_count=len(payload.messages or []),
            stream=bool(payload.stream),
            tools_enabled=payload.tools_enabled,
            mode=mode.value,
        )

        if mode is RequestMode.STAGED:
            return await _staged(payload, client, settings.COD_MODEL)
        return await _direct(payload, client)
    except GatewayError:
        raise
    except Exception as e:
        logger.exception("Server error", error=str(e))
        raise InternalServerError(str(e)) from e

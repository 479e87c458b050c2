from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException

from cod_gateway.api.main import api_router
from cod_gateway.core.config import settings
from cod_gateway.core.errors import GatewayError, MethodNotAllowedError
from cod_gateway.core.logging import configure_logging
from cod_gateway.middleware.cors import CORSHeadersMiddleware
from cod_gateway.middleware.request_id import RequestIdMiddleware
from cod_gateway.observability import MetricsMiddleware, metrics_router
from cod_gateway.providers.fireworks import close_http_client
from cod_gateway.schemas import ErrorResponse

configure_logging(settings.LOG_LEVEL, json=settings.LOG_JSON)

def custom_generate_unique_id(route: APIRoute) -> str:
    return f"{route.tags[0]}-{route.name}"

if settings.SENTRY_DSN and settings.ENVIRONMENT != "local":
    sentry_sdk.init(dsn=str(settings.SENTRY_DSN), enable_tracing=True)

@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    await close_http_client()

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    generate_unique_id_function=custom_generate_unique_id,
    lifespan=lifespan,
)

# Last added runs first: CORS must wrap every response, errors included
app.add_middleware(RequestIdMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(CORSHeadersMiddleware)

def _error_response(exc: GatewayError) -> JSONResponse:
    body = ErrorResponse.model_validate(exc.to_body())
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))

@app.exception_handler(GatewayError)
async def gateway_error_handler(_request: Request, exc: GatewayError) -> JSONResponse:
    return _error_response(exc)

@app.exception_handler(StarletteHTTPException)
async def routing_error_handler(request: Request, exc: StarletteHTTPException):
    # Methods the router never sees still answer in the gateway's error shape
    if exc.status_code == 405:
        return _error_response(MethodNotAllowedError(f"{request.method} is not supported; use POST"))
    return await http_exception_handler(request, exc)

app.include_router(api_router, prefix=settings.API_PREFIX)
app.include_router(metrics_router)

"""
FastAPI application factory.

Endpoints are synchronous; FastAPI runs them in its threadpool, so a slow
provider call blocks only its own request.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

import structlog
from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

import ai_router
from ai_router.core.errors import QuotaExceeded, RouterError
from ai_router.core.models import DEFAULT_TASK_TYPE, Caller, RoutingRequest, parse_provider_id
from ai_router.core.router import Router
from ai_router.core.usage_stats import get_usage_stats

from .auth import AuthenticationError, CallerResolver, get_current_caller
from .responses import error_body, quota_exceeded_body, success_body, usage_body

logger = structlog.get_logger()

api = APIRouter()


class RouteRequestBody(BaseModel):
    """Inbound routing request"""

    model_config = ConfigDict(populate_by_name=True)

    # Optional so a missing prompt is reported by the router, not the schema
    prompt: Optional[str] = None
    task_type: str = Field(DEFAULT_TASK_TYPE, alias="taskType")
    preferred_provider: Optional[str] = Field(None, alias="preferredProvider")


class HealthResponse(BaseModel):
    """Health check response"""

    status: str
    version: str
    providers: List[str]


def get_router(request: Request) -> Router:
    return request.app.state.router


@api.post("/api/v1/route")
def route_request(
    body: RouteRequestBody,
    caller: Caller = Depends(get_current_caller),
    router: Router = Depends(get_router),
) -> JSONResponse:
    result = router.route(RoutingRequest(
        caller_id=caller.caller_id,
        subscription_tier=caller.subscription_tier,
        prompt=body.prompt or "",
        task_type=body.task_type or DEFAULT_TASK_TYPE,
        preferred_provider=parse_provider_id(body.preferred_provider),
    ))
    return JSONResponse(status_code=status.HTTP_200_OK, content=success_body(result))


@api.get("/api/v1/usage")
def usage(
    period: Optional[str] = None,
    caller: Caller = Depends(get_current_caller),
    router: Router = Depends(get_router),
) -> JSONResponse:
    stats = get_usage_stats(
        caller.caller_id,
        caller.subscription_tier,
        router.quota_guard.store,
        router.ledger,
        period_key=period,
        policy=router.quota_guard.policy,
    )
    return JSONResponse(status_code=status.HTTP_200_OK, content=usage_body(stats))


@api.get("/api/health", response_model=HealthResponse)
def health(router: Router = Depends(get_router)) -> HealthResponse:
    """Basic health check"""
    return HealthResponse(
        status="healthy",
        version=ai_router.__version__,
        providers=sorted(p.value for p in router.adapters),
    )


def _quota_exceeded_handler(request: Request, exc: QuotaExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=quota_exceeded_body(exc),
    )


def _authentication_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content=error_body(str(exc)),
    )


def _router_error_handler(request: Request, exc: RouterError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(str(exc), code=RouterError.code),
    )


def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Invalid request body"),
    )


def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_request_error", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error"),
    )


def create_app(router: Router, resolver: CallerResolver) -> FastAPI:
    """Factory function to create the FastAPI application.

    Args:
        router: Router that serves every request
        resolver: Maps bearer tokens to callers

    Returns:
        Configured FastAPI app; the router's dispatcher is shut down with it
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("starting_application", providers=sorted(p.value for p in router.adapters))
        yield
        logger.info("shutting_down_application")
        router.close()

    app = FastAPI(
        title="AI Request Router",
        version=ai_router.__version__,
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )
    app.state.router = router
    app.state.resolver = resolver

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    app.add_exception_handler(QuotaExceeded, _quota_exceeded_handler)
    app.add_exception_handler(AuthenticationError, _authentication_handler)
    app.add_exception_handler(RouterError, _router_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)

    app.include_router(api)

    return app

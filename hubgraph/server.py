from fastapi import FastAPI, Request
from starlette.middleware.base import RequestResponseEndpoint
from starlette.responses import Response
from pydantic import BaseModel
from typing import List, Callable, Awaitable, Optional
import time
from loguru import logger

from hubgraph.models import format_rfc822z
from hubgraph.publisher import get_publisher

# Type alias for middleware functions
MiddlewareFunc = Callable[[Request, RequestResponseEndpoint], Awaitable[Response]]

SNAPSHOT_PATH = "/hubdata.json"


def create_access_log_middleware() -> MiddlewareFunc:
    """Factory function for access log middleware"""

    async def access_log_middleware(request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Log all HTTP requests with timing information"""
        start_time = time.time()

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        logger.info(f"{request.method} {request.url.path} - {response.status_code} - {duration_ms:.2f}ms")

        return response

    return access_log_middleware


def setup_middlewares(app: FastAPI, middlewares: List[MiddlewareFunc]) -> None:
    """
    Setup middlewares in explicit order.
    Middlewares are executed in reverse order of registration for requests,
    and in forward order for responses.
    """
    for middleware in middlewares:
        app.middleware("http")(middleware)


app = FastAPI(title="HubGraph", description="Live graph of the latest public GitHub events", version="1.0.0")

middleware_chain: List[MiddlewareFunc] = [
    create_access_log_middleware(),
]

setup_middlewares(app, middleware_chain)


class RootResponse(BaseModel):
    message: str
    data: str


class HealthResponse(BaseModel):
    generation: int
    has_data: bool
    last_update: Optional[str] = None


@app.get("/")
async def root() -> RootResponse:
    return RootResponse(message="HubGraph API", data=SNAPSHOT_PATH)


@app.get(SNAPSHOT_PATH)
async def get_graph() -> Response:
    """
    Current graph snapshot for the frontend graph.
    Always answers with the latest snapshot available, even if stale.
    """
    snapshot = get_publisher().current()
    return Response(content=snapshot.to_json(), media_type="application/json")


@app.get("/health", response_model=HealthResponse)
async def get_health() -> HealthResponse:
    """Publisher status"""
    publisher = get_publisher()
    snapshot = publisher.current()
    return HealthResponse(
        generation=publisher.generation,
        has_data=snapshot.last_update is not None,
        last_update=format_rfc822z(snapshot.last_update) or None,
    )

"""
HTTP boundary of the import service.

aiohttp application exposing ``POST /import``: decodes the bearer token,
parses and validates the body, runs the coordinator and shapes the response.
"""

import logging
from typing import Any, Callable, Optional

import orjson
from aiohttp import web

from vault_import.backends.base import ContextLoader
from vault_import.backends.memory import InMemoryBackend
from vault_import.engine.coordinator import ImportCoordinator, ImportSettings
from vault_import.models.schemas import ImportBatch, normalize_keys
from vault_import.utils.exceptions import AuthError, ValidationError

logger = logging.getLogger(__name__)

CoordinatorFactory = Callable[[], ImportCoordinator]

CONTEXT_LOADER_KEY = web.AppKey("context_loader", ContextLoader)
COORDINATOR_FACTORY_KEY = web.AppKey("coordinator_factory", CoordinatorFactory)


def _dumps(data: Any) -> str:
    return orjson.dumps(data).decode("utf-8")


def validation_error(message: str) -> web.Response:
    """400 response in the error shape vault clients expect."""
    return web.json_response(
        {
            "Message": message,
            "ValidationErrors": {"": [message]},
            "Object": "error",
        },
        status=400,
        dumps=_dumps,
    )


async def post_import(request: web.Request) -> web.Response:
    """
    Import folders and ciphers for the authenticated user.

    Returns:
        201 with the summary when every record was created, 200 with the
        summary and unresolved counts on partial completion, 400 when the
        request is rejected before any write
    """
    logger.info("Bulk import handler triggered")

    loader = request.app[CONTEXT_LOADER_KEY]
    try:
        context = await loader.load_context(request.headers.get("Authorization", ""))
    except AuthError as e:
        return validation_error(f"User not found: {e.message}")

    raw = await request.read()
    if not raw:
        return validation_error("Request body is missing")

    try:
        body = normalize_keys(orjson.loads(raw))
    except orjson.JSONDecodeError:
        return validation_error("Request body is not valid JSON")

    try:
        batch = ImportBatch.from_body(body)
        report = await request.app[COORDINATOR_FACTORY_KEY]().run(batch, context)
    except ValidationError as e:
        logger.warning(f"Import rejected: {e}")
        return validation_error(e.message)
    except AuthError as e:
        return validation_error(f"User not found: {e.message}")

    return web.Response(status=201 if report.complete else 200, text=report.summary)


async def get_health(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"}, dumps=_dumps)


def create_app(
    context_loader: ContextLoader, coordinator_factory: CoordinatorFactory
) -> web.Application:
    """
    Build the aiohttp application.

    Args:
        context_loader: Resolves the Authorization header to an owner
        coordinator_factory: Returns a fresh coordinator per request
    """
    app = web.Application()
    app[CONTEXT_LOADER_KEY] = context_loader
    app[COORDINATOR_FACTORY_KEY] = coordinator_factory
    app.router.add_post("/import", post_import)
    app.router.add_get("/health", get_health)
    return app


def create_memory_app(
    backend: Optional[InMemoryBackend] = None, settings: Optional[ImportSettings] = None
) -> web.Application:
    """Application wired to an in-memory backend."""
    backend = backend or InMemoryBackend()

    def factory() -> ImportCoordinator:
        return ImportCoordinator(
            backend.folders,
            backend.ciphers,
            backend,
            control=backend,
            settings=settings,
        )

    return create_app(backend, factory)

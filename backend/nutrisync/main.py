"""NutriSync control service - Entry point.

Runs a small localhost HTTP service that the app shell drives: auth lifecycle
events (sign-in, sign-out, account deletion), local mutations, manual retry
and sync status. Pushes triggered by mutations run after the response is sent.
"""

import logging
import os
import secrets
from pathlib import Path

import uvicorn
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.background import BackgroundTask
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .core.documents import payload_error
from .core.models import RecordType, SignedInUser
from .shell.collections import RecipeCollection, TemplateCollection
from .shell.firestore_client import get_firestore_client
from .shell.local_store import LocalStoreConfig, create_local_store
from .shell.session import SessionManager
from .shell.sync_engine import SyncEngine


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_session_manager() -> SessionManager:
    """Wire the engine and its collaborators from environment configuration."""
    config = LocalStoreConfig.from_env()
    recipes_path = templates_path = None
    if config.data_dir:
        recipes_path = Path(config.data_dir) / "recipes.json"
        templates_path = Path(config.data_dir) / "templates.json"
    engine = SyncEngine(
        remote=get_firestore_client(),
        local=create_local_store(config),
        recipes=RecipeCollection(recipes_path),
        templates=TemplateCollection(templates_path),
    )
    if not engine.enabled:
        logger.info("Cloud sync not configured, running in offline-only mode")
    return SessionManager(engine)


def _manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def _status(manager: SessionManager) -> dict:
    return manager.reporter.snapshot(manager.user_id).model_dump(mode="json")


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


# ==================== Route Handlers ====================


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse({"status": "healthy", "service": "nutrisync"})


async def sync_status(request: Request) -> JSONResponse:
    """Current sync status and last sync time."""
    return JSONResponse(_status(_manager(request)))


async def sign_in(request: Request) -> JSONResponse:
    """Auth provider reported a signed-in user: reconcile and start syncing."""
    manager = _manager(request)
    try:
        user = SignedInUser(**await _json_body(request))
    except (ValidationError, TypeError):
        return JSONResponse({"error": "A user uid is required"}, status_code=400)

    try:
        outcome = await manager.sign_in(user)
    except Exception as e:
        logger.error("Sign-in sync failed: %s", str(e))
        return JSONResponse(
            {"error": "Sign-in sync failed.", **_status(manager)}, status_code=502
        )
    return JSONResponse({"outcome": outcome.value, **_status(manager)})


async def sign_out(request: Request) -> JSONResponse:
    """Auth provider reported sign-out: stop pushing mutations."""
    manager = _manager(request)
    manager.sign_out()
    return JSONResponse(_status(manager))


async def retry_sync(request: Request) -> JSONResponse:
    """Manual retry: re-upload the full local snapshot."""
    manager = _manager(request)
    if manager.session is None:
        return JSONResponse({"error": "Not signed in"}, status_code=409)
    if manager.session.retrying:
        return JSONResponse({"error": "Retry already in progress"}, status_code=409)
    if not await manager.retry():
        return JSONResponse({"error": "Sync failed.", **_status(manager)}, status_code=502)
    return JSONResponse(_status(manager))


async def record_changed(request: Request) -> JSONResponse:
    """Local mutation: save it now, push it to the cloud in the background."""
    manager = _manager(request)
    record_type = RecordType.parse(request.path_params["record_type"])
    if record_type is None:
        return JSONResponse({"error": "Unknown record type"}, status_code=400)

    body = await _json_body(request)
    if "payload" not in body:
        return JSONResponse({"error": "payload is required"}, status_code=400)
    payload = body["payload"]
    error = payload_error(record_type, payload)
    if error is not None:
        return JSONResponse({"error": error}, status_code=400)

    to_push = await manager.save_local(record_type, payload)
    return JSONResponse(
        {"saved": record_type.value, "queued": manager.bridge.is_installed},
        background=BackgroundTask(manager.bridge.notify, record_type, to_push),
    )


async def delete_account(request: Request) -> JSONResponse:
    """Erase the signed-in user's cloud data, then sign out."""
    manager = _manager(request)
    if manager.session is None:
        return JSONResponse({"error": "Not signed in"}, status_code=409)
    await manager.delete_account()
    return JSONResponse({"deleted": True, **_status(manager)})


# ==================== Auth Middleware ====================


class ControlTokenMiddleware(BaseHTTPMiddleware):
    """Require a bearer token on /sync routes when NUTRISYNC_CONTROL_TOKEN is set."""

    def __init__(self, app, token: str | None = None) -> None:
        super().__init__(app)
        self.token = token

    async def dispatch(self, request: Request, call_next):
        if not self.token or not request.url.path.startswith("/sync"):
            return await call_next(request)

        auth_header = request.headers.get("Authorization", "")
        supplied = auth_header[len("Bearer "):] if auth_header.startswith("Bearer ") else ""
        if not secrets.compare_digest(supplied, self.token):
            logger.warning("Rejected control request to %s", request.url.path)
            return JSONResponse({"error": "Unauthorized"}, status_code=401)
        return await call_next(request)


# ==================== Create ASGI App ====================


def create_app(
    session_manager: SessionManager | None = None, control_token: str | None = None
) -> Starlette:
    """Create the Starlette application.

    Args:
        session_manager: Pre-wired manager (built from the environment if None)
        control_token: Bearer token for /sync routes (defaults to
            NUTRISYNC_CONTROL_TOKEN; unset means no auth)
    """
    routes = [
        Route("/health", health_check, methods=["GET"]),
        Route("/sync/status", sync_status, methods=["GET"]),
        Route("/sync/sign-in", sign_in, methods=["POST"]),
        Route("/sync/sign-out", sign_out, methods=["POST"]),
        Route("/sync/retry", retry_sync, methods=["POST"]),
        Route("/sync/records/{record_type}", record_changed, methods=["POST"]),
        Route("/sync/account", delete_account, methods=["DELETE"]),
    ]

    if control_token is None:
        control_token = os.environ.get("NUTRISYNC_CONTROL_TOKEN") or None

    app = Starlette(
        routes=routes,
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=["http://localhost:3000", "http://localhost:5173"],
                allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
                allow_headers=["*"],
            ),
            Middleware(ControlTokenMiddleware, token=control_token),
        ],
    )
    app.state.session_manager = session_manager or build_session_manager()
    return app


def main() -> None:
    """Run the server."""
    port = int(os.environ.get("PORT", 8765))
    host = os.environ.get("HOST", "127.0.0.1")

    logger.info("Starting NutriSync control service on %s:%d", host, port)

    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    main()

# src/tasksync/connectors/http_connector.py

"""
JSON request surface over the task API (FastAPI app served by uvicorn).

Routes (all /tasks routes require `Authorization: Bearer <token>`):
  GET    /tasks                 list (optional ?status=all|active|completed&q=text)
  POST   /tasks                 create {title, description?}       -> 201
  PUT    /tasks/{id}            partial update (PATCH accepted too)
  DELETE /tasks/{id}            delete                              -> 204
  POST   /tasks/complete-all    mark every open task completed
  DELETE /tasks/completed       delete completed tasks
  GET    /tasks/stats           totals + completion percent
  GET    /health

Every error response is `{"error": ...}` (plus `"field"` for invalid input);
request validation failures are reported as 400, not FastAPI's default 422.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Annotated, Any

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..auth.identity import Identity
from ..core.errors import TaskSyncError
from ..core.state import AppState
from ..tasks import task_api
from ..tasks.task_models import DESCRIPTION_MAX_LEN, TITLE_MAX_LEN, TaskFilter, TaskUpdate

logger = logging.getLogger(__name__)


class TaskCreate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=TITLE_MAX_LEN)
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LEN)


class TaskPatch(BaseModel):
    """Whitelisted partial update; `owner`/`user_id`/`id` are rejected as extra fields."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: str | None = Field(default=None, min_length=1, max_length=TITLE_MAX_LEN)
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LEN)
    completed: StrictBool | None = None

    @field_validator("title", "completed")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("must not be null")
        return value

    def to_update(self) -> TaskUpdate:
        # Sending an empty or null description clears it.
        if "description" in self.model_fields_set and not self.description:
            return TaskUpdate(title=self.title, completed=self.completed, clear_description=True)
        return TaskUpdate(title=self.title, description=self.description, completed=self.completed)


# ---- dependencies ----


def get_state(request: Request) -> AppState:
    return request.app.state.tasksync


StateDep = Annotated[AppState, Depends(get_state)]


def current_identity(
    state: StateDep,
    authorization: Annotated[str | None, Header()] = None,
) -> Identity:
    return state.gateway.verify_header(authorization)


IdentityDep = Annotated[Identity, Depends(current_identity)]


# ---- routes ----

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("")
def list_tasks(
    state: StateDep,
    identity: IdentityDep,
    status_filter: Annotated[TaskFilter, Query(alias="status")] = TaskFilter.ALL,
    q: Annotated[str, Query(max_length=TITLE_MAX_LEN)] = "",
) -> list[dict[str, Any]]:
    tasks = task_api.list_tasks(state, identity, status=status_filter, search=q)
    return [t.to_dict() for t in tasks]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_task(payload: TaskCreate, state: StateDep, identity: IdentityDep) -> dict[str, Any]:
    task = task_api.create_task(
        state, identity, title=payload.title, description=payload.description
    )
    return task.to_dict()


@router.get("/stats")
def get_stats(state: StateDep, identity: IdentityDep) -> dict[str, Any]:
    return task_api.get_stats(state, identity).to_dict()


@router.post("/complete-all")
def complete_all(state: StateDep, identity: IdentityDep) -> dict[str, int]:
    return {"updated": task_api.complete_all(state, identity)}


@router.delete("/completed")
def clear_completed(state: StateDep, identity: IdentityDep) -> dict[str, int]:
    return {"deleted": task_api.clear_completed(state, identity)}


@router.api_route("/{task_id}", methods=["PUT", "PATCH"])
def update_task(
    task_id: str, payload: TaskPatch, state: StateDep, identity: IdentityDep
) -> dict[str, Any]:
    task = task_api.update_task(state, identity, task_id, payload.to_update())
    return task.to_dict()


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(task_id: str, state: StateDep, identity: IdentityDep) -> Response:
    task_api.delete_task(state, identity, task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---- error mapping ----


def _error_field(loc: tuple[Any, ...] | list[Any]) -> str:
    for part in reversed(list(loc)):
        if isinstance(part, str) and part not in ("body", "query", "header", "path"):
            return part
    return "body"


async def _on_task_error(request: Request, exc: TaskSyncError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info(
            "%s %s rejected (%d): %s", request.method, request.url.path, exc.http_status, exc.message
        )
    return JSONResponse(exc.to_dict(), status_code=exc.http_status)


async def _on_invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = _error_field(first.get("loc", ()))
    reason = str(first.get("msg", "invalid request"))
    logger.info("%s %s rejected (400): %s %s", request.method, request.url.path, field, reason)
    return JSONResponse({"error": f"{field}: {reason}", "field": field}, status_code=400)


async def _on_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        {"error": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers
    )


async def _on_crash(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("%s %s crashed", request.method, request.url.path, exc_info=exc)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


def _cors_origins(raw: Any) -> list[str]:
    origins = [o.strip() for o in str(raw or "*").split(",") if o.strip()]
    return origins or ["*"]


def create_app(state: AppState) -> FastAPI:
    app = FastAPI(title="tasksync", version=__version__)
    app.state.tasksync = state

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(getattr(state.settings, "cors_origin", "*")),
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    app.add_exception_handler(TaskSyncError, _on_task_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _on_invalid_request)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _on_http_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _on_crash)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(router)
    return app


# ---- background server ----


@dataclass
class HttpBackgroundRunner:
    server: uvicorn.Server
    thread: threading.Thread

    @property
    def url(self) -> str:
        host, port = self.server.servers[0].sockets[0].getsockname()[:2]
        return f"http://{host}:{port}"

    def stop(self) -> None:
        self.server.should_exit = True

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_http_in_background(
    state: AppState,
    *,
    host: str | None = None,
    port: int | None = None,
    startup_timeout: float = 10.0,
) -> HttpBackgroundRunner:
    """
    Serve the app from a background thread (so the console REPL can run in the
    main thread). port=0 picks a free port. Raises OSError if the server does
    not come up.
    """
    settings = state.settings
    host = host if host is not None else str(getattr(settings, "http_host", "127.0.0.1"))
    port = port if port is not None else int(getattr(settings, "http_port", 4000))

    config = uvicorn.Config(
        create_app(state),
        host=host,
        port=port,
        lifespan="off",
        log_config=None,  # keep the handlers installed by logging_setup
    )
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, name="http-connector", daemon=True)
    thread.start()

    deadline = time.monotonic() + startup_timeout
    while not server.started:
        if not thread.is_alive():
            raise OSError(f"HTTP connector failed to start on {host}:{port}")
        if time.monotonic() > deadline:
            server.should_exit = True
            raise TimeoutError(f"HTTP connector did not start within {startup_timeout}s")
        time.sleep(0.01)

    runner = HttpBackgroundRunner(server=server, thread=thread)
    logger.info("Server listening on %s", runner.url)
    return runner

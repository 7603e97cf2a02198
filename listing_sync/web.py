"""HTTP trigger so an external scheduler can run tasks with a shared secret."""

from __future__ import annotations

import hmac
import logging
from typing import Any, Callable

from flask import Flask, Response, request

from listing_sync.common.config_loader import ImporterSettings
from listing_sync.common.constants import TASK_AUTH_KEY_QUERY_VAR, TASK_FUNCTION_QUERY_VAR
from listing_sync.common.logging import log_event
from listing_sync.tasks import HTTP_BAD_REQUEST, HTTP_SERVER_ERROR, TaskContext, resolve_task, run_task

logger = logging.getLogger(__name__)

HTTP_UNAUTHORIZED = 401


def _text(lines: list[str], status: int) -> Response:
    body = "\n".join(lines)
    return Response(body + "\n" if body else "", status=status, mimetype="text/plain")


def create_web_server(settings: ImporterSettings, context_factory: Callable[[], TaskContext]) -> Flask:
    """Create the trigger app. ``context_factory`` opens fresh store and HTTP resources per request."""

    app = Flask(__name__)

    @app.route("/health", methods=["GET"])
    def health_check() -> Any:
        return {"status": "healthy", "service": "listing-sync"}

    @app.route("/tasks/run", methods=["GET"])
    def run_task_endpoint() -> Any:
        task_param = request.args.get(TASK_FUNCTION_QUERY_VAR, "").strip()
        supplied_key = request.args.get(TASK_AUTH_KEY_QUERY_VAR, "").strip()
        stored_key = settings.task.auth_key

        if not stored_key:
            message = "Task auth key is not set in the configuration. Cannot run task."
            log_event(logger, message, level=logging.ERROR, event="TASK_AUTH_UNSET", status="error")
            return _text([message], HTTP_SERVER_ERROR)

        if not hmac.compare_digest(supplied_key.encode("utf-8"), stored_key.encode("utf-8")):
            message = "Task auth key in the URL query string does not match the configured value. Cannot run task."
            log_event(logger, message, level=logging.ERROR, event="TASK_AUTH_FAIL", status="error")
            return _text([message], HTTP_UNAUTHORIZED)

        task = resolve_task(task_param)
        if task is None:
            message = f"Unknown task '{task_param}'."
            log_event(logger, message, level=logging.WARNING, event="TASK_UNKNOWN", status="error")
            return _text([message], HTTP_BAD_REQUEST)

        ctx = context_factory()
        try:
            outcome = run_task(task, ctx)
        finally:
            ctx.close()
        return _text(outcome.notices, outcome.status_code)

    return app

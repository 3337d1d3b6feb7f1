#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import logging
import os
import sys
import threading
import uuid
from typing import Any, Optional

from flask import Flask, Response, jsonify

from quiz_cache import QuizRuntime, QuizService
from settings import LOG_LEVEL, STATIC_MAX_AGE_SECONDS, QuizSettings
from wiki_client import WikiClient

log = logging.getLogger("quiz")

# ------------------------------------------------------------
# 0) LOGGING / CRASH NET
# ------------------------------------------------------------

LOG_FORMAT = "%(asctime)s  %(levelname)s  %(name)s  %(message)s"

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(stream=sys.stdout, level=level.upper(), format=LOG_FORMAT)
    # urllib3 retries/connection chatter is noise at INFO
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def install_crash_logging() -> None:
    """
    Last-resort logging for exceptions nothing else caught. Logs only.
    """

    def _excepthook(exc_type, exc, tb):
        log.critical("uncaught exception", exc_info=(exc_type, exc, tb))

    def _thread_excepthook(args):
        log.critical(
            "uncaught exception in thread %s",
            getattr(args.thread, "name", "?"),
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
        )

    sys.excepthook = _excepthook
    threading.excepthook = _thread_excepthook


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


# ------------------------------------------------------------
# 1) FLASK APP
# ------------------------------------------------------------

def create_app(runtime: Optional[Any] = None, settings: Optional[QuizSettings] = None) -> Flask:
    """
    `runtime` is anything with serve_blocking(timeout) and call(fn); a
    QuizRuntime over a live WikiClient is started when none is given, along
    with logging and the crash net (WSGI servers: `gunicorn "main:create_app()"`).
    """
    settings = settings or QuizSettings.from_env()
    if runtime is None:
        configure_logging()
        install_crash_logging()
        service = QuizService(WikiClient(), settings=settings)
        runtime = QuizRuntime(service).start(warm=True)

    app = Flask(__name__)
    app.config["SEND_FILE_MAX_AGE_DEFAULT"] = STATIC_MAX_AGE_SECONDS
    app.extensions["quiz_runtime"] = runtime

    @app.after_request
    def _headers(resp: Response) -> Response:
        for k, v in SECURITY_HEADERS.items():
            resp.headers.setdefault(k, v)
        if "Cache-Control" not in resp.headers:
            resp.headers["Cache-Control"] = f"public, max-age={STATIC_MAX_AGE_SECONDS}, immutable"
        return resp

    def _no_cache(resp: Response) -> Response:
        resp.headers.update(NO_CACHE_HEADERS)
        return resp

    @app.get("/api/quiz")
    def api_quiz():
        request_id = _new_id()
        try:
            entry = runtime.serve_blocking(timeout=settings.serve_wait_timeout_s)
        except Exception:
            error_id = _new_id()
            log.exception("quiz request %s failed (errorId=%s)", request_id, error_id)
            return _no_cache(jsonify({"error": "internal error", "errorId": error_id})), 500

        if entry is None:
            log.warning("quiz request %s: no quiz available", request_id)
            return _no_cache(jsonify({"error": "no quiz available, try again shortly", "requestId": request_id})), 503

        payload = entry.to_payload()
        payload["requestId"] = request_id
        return _no_cache(jsonify(payload))

    @app.get("/healthz")
    def healthz():
        try:
            stats = runtime.call(runtime.service.stats)
        except Exception:
            log.exception("health check failed")
            return _no_cache(jsonify({"ok": False})), 500
        return _no_cache(jsonify({"ok": True, "cache": stats}))

    return app


if __name__ == "__main__":
    port = int(os.getenv("PORT", "8080"))
    create_app().run(host="0.0.0.0", port=port, debug=False, threaded=True)

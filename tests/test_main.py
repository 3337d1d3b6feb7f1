import logging
import sys
import threading

import pytest

import main

from main import create_app, install_crash_logging
from quiz_cache import QuizEntry, QuizRuntime, QuizService
from settings import QuizSettings
from wiki_client import WikiError

from conftest import FakeClient, jpg

ENTRY = QuizEntry(name="모차르트", image=jpg("Mozart"), hint="○○는 작곡가이다.", description="모차르트는 작곡가이다.")


class StubService:
    def stats(self):
        return {"size": 1, "capacity": 20, "refilling": False, "retryScheduled": False}


class StubRuntime:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.service = StubService()
        self.timeouts = []

    def serve_blocking(self, timeout=None):
        self.timeouts.append(timeout)
        if self.error:
            raise self.error
        return self.result

    def call(self, fn, *args, timeout=5.0):
        return fn(*args)


def client_for(runtime, **kw):
    app = create_app(runtime=runtime, settings=QuizSettings(**kw))
    app.testing = True
    return app.test_client()


def test_quiz_ok():
    rt = StubRuntime(result=ENTRY)
    resp = client_for(rt, serve_wait_timeout_s=12.0).get("/api/quiz")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["name"] == "모차르트"
    assert body["image"] == body["imageUrl"] == jpg("Mozart")
    assert body["hint"] == ENTRY.hint
    assert body["description"] == ENTRY.description
    assert body["requestId"]
    assert rt.timeouts == [12.0]


def test_quiz_no_cache_headers():
    resp = client_for(StubRuntime(result=ENTRY)).get("/api/quiz")
    assert "no-store" in resp.headers["Cache-Control"]
    assert resp.headers["Pragma"] == "no-cache"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


def test_quiz_empty_is_503():
    resp = client_for(StubRuntime(result=None)).get("/api/quiz")
    assert resp.status_code == 503
    body = resp.get_json()
    assert body["error"]
    assert body["requestId"]
    assert "errorId" not in body


def test_quiz_internal_error_is_500():
    resp = client_for(StubRuntime(error=RuntimeError("boom"))).get("/api/quiz")
    assert resp.status_code == 500
    body = resp.get_json()
    assert body["errorId"]
    assert "boom" not in body["error"]


def test_healthz():
    resp = client_for(StubRuntime()).get("/healthz")
    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True, "cache": StubService().stats()}


def test_other_routes_get_long_lived_cache_headers():
    resp = client_for(StubRuntime()).get("/does-not-exist")
    assert resp.status_code == 404
    assert "max-age=" in resp.headers["Cache-Control"]
    assert resp.headers["X-Frame-Options"] == "DENY"


@pytest.fixture
def failing_runtime():
    boom = WikiError("upstream down")
    client = FakeClient(
        extracts={t: boom for t in QuizSettings().curated_names},
        categories={"*": boom},
    )
    settings = QuizSettings(retry_delay_s=3600.0, stability_pause_s=0.0)
    runtime = QuizRuntime(QuizService(client, settings=settings)).start(warm=False)
    yield runtime, settings
    runtime.stop()


def test_failing_upstream_end_to_end(failing_runtime):
    runtime, settings = failing_runtime
    app = create_app(runtime=runtime, settings=settings)

    resp = app.test_client().get("/api/quiz")

    assert resp.status_code == 503
    assert resp.get_json()["requestId"]
    stats = runtime.call(runtime.service.stats)
    assert stats["size"] == 0
    assert stats["retryScheduled"] is True
    assert stats["refilling"] is False


def test_crash_logging_logs_uncaught_exceptions(monkeypatch, caplog):
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setattr(threading, "excepthook", threading.excepthook)
    install_crash_logging()

    try:
        raise RuntimeError("main thread boom")
    except RuntimeError as e:
        with caplog.at_level(logging.CRITICAL, logger="quiz"):
            sys.excepthook(type(e), e, e.__traceback__)

    worker = threading.Thread(target=lambda: 1 / 0, name="refill-worker")
    with caplog.at_level(logging.CRITICAL, logger="quiz"):
        worker.start()
        worker.join()

    critical = [r for r in caplog.records if r.levelno == logging.CRITICAL]
    assert len(critical) == 2
    assert critical[0].exc_info[1].args == ("main thread boom",)
    assert "refill-worker" in critical[1].getMessage()
    assert critical[1].exc_info[0] is ZeroDivisionError


def test_live_app_installs_logging_and_crash_net(monkeypatch):
    calls = []
    monkeypatch.setattr(main, "configure_logging", lambda: calls.append("logging"))
    monkeypatch.setattr(main, "install_crash_logging", lambda: calls.append("crash"))
    monkeypatch.setattr(main, "WikiClient", lambda: FakeClient())

    class StartedRuntime(StubRuntime):
        def __init__(self, service):
            super().__init__(result=ENTRY)
            self.real_service = service

        def start(self, warm=True):
            calls.append(("start", warm))
            return self

    monkeypatch.setattr(main, "QuizRuntime", StartedRuntime)

    app = create_app(settings=QuizSettings())

    assert calls == ["logging", "crash", ("start", True)]
    assert app.extensions["quiz_runtime"].real_service.client.__class__ is FakeClient


def test_injected_runtime_leaves_logging_alone(monkeypatch):
    calls = []
    monkeypatch.setattr(main, "configure_logging", lambda: calls.append("logging"))
    monkeypatch.setattr(main, "install_crash_logging", lambda: calls.append("crash"))
    client_for(StubRuntime())
    assert calls == []

import sys
import types

from cfc_tracker.scripts import run_api


def test_development_options_reload():
    options = run_api.server_options(False, "127.0.0.1", 8080)

    assert options == {
        "host": "127.0.0.1",
        "port": 8080,
        "log_level": "info",
        "access_log": True,
        "reload": True,
    }


def test_production_options_use_workers():
    options = run_api.server_options(True, "0.0.0.0", 8000, "WARNING")

    assert options["reload"] is False
    assert options["workers"] == run_api.PRODUCTION_WORKERS
    assert options["log_level"] == "warning"


def test_main_hands_options_to_uvicorn(monkeypatch):
    calls = []
    fake_uvicorn = types.SimpleNamespace(run=lambda app, **kwargs: calls.append((app, kwargs)))
    monkeypatch.setitem(sys.modules, "uvicorn", fake_uvicorn)
    monkeypatch.setenv("LOG_LEVEL", "debug")

    run_api.main(["--production", "--port", "9000"])

    assert calls == [(run_api.APP_PATH, run_api.server_options(True, "0.0.0.0", 9000, "DEBUG"))]

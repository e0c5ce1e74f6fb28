"""
Script to run the CFC tracker REST API with uvicorn

Usage:
    python -m cfc_tracker.scripts.run_api                  # auto-reload
    python -m cfc_tracker.scripts.run_api --production     # several workers
    python -m cfc_tracker.scripts.run_api --host 127.0.0.1 --port 8080
"""
import argparse
import logging

from ..core.config import Settings
from ..core.logging_config import configure_logging

logger = logging.getLogger(__name__)

APP_PATH = "cfc_tracker.api.main:app"
PRODUCTION_WORKERS = 4


def server_options(production: bool, host: str, port: int, log_level: str = "INFO") -> dict:
    """Keyword arguments for uvicorn.run"""
    options = {
        "host": host,
        "port": port,
        "log_level": log_level.lower(),
        "access_log": True,
    }
    if production:
        options.update(reload=False, workers=PRODUCTION_WORKERS)
    else:
        options.update(reload=True)
    return options


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Run the CFC tracker API server")
    parser.add_argument(
        "--production",
        action="store_true",
        help=f"No auto-reload, {PRODUCTION_WORKERS} workers",
    )
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    options = server_options(args.production, args.host, args.port, settings.log_level)
    logger.info(
        f"Serving {APP_PATH} on http://{args.host}:{args.port} (docs at /docs)",
        extra={"production": args.production},
    )

    import uvicorn

    uvicorn.run(APP_PATH, **options)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""Serve the options quote store API with uvicorn.

    python scripts/run_api.py --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

import uvicorn

# Ensure imports work when invoked as a script
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from api.dependencies import API_KEY_ENV  # noqa: E402
from core.storage.postgres import PostgresConfig  # noqa: E402

logger = logging.getLogger(__name__)


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Serve the options quote store API.")
    p.add_argument("--host", default=os.environ.get("OPTIONS_API_HOST", "127.0.0.1"))
    p.add_argument("--port", type=int, default=int(os.environ.get("OPTIONS_API_PORT", "8000")))
    p.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    return p.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    args = _parse_args(argv)

    # Fail before binding the port rather than on the first request.
    try:
        PostgresConfig.from_env()
    except RuntimeError as exc:
        logger.error("Refusing to start: %s", exc)
        return 1

    if not os.environ.get(API_KEY_ENV):
        logger.warning("%s is not set; authenticated endpoints will reject every request", API_KEY_ENV)

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload, log_level="info")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

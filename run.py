"""Entry point for running the dailyfx Flask app."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv


def _prepare_environment() -> None:
    """Load variables from a `.env` next to this file, if present."""

    env_file = Path(__file__).resolve().parent / ".env"
    if env_file.exists():
        load_dotenv(env_file)


def main() -> None:
    _prepare_environment()

    # Config classes read the environment at import time.
    from dailyfx import create_app

    app = create_app(config_name=os.getenv("APP_ENV"))

    host = os.getenv("FLASK_RUN_HOST", "0.0.0.0")
    port = int(os.getenv("FLASK_RUN_PORT", "5000"))
    # The reloader would start a second scheduler.
    app.run(host=host, port=port, debug=app.config.get("DEBUG", False), use_reloader=False)


if __name__ == "__main__":
    main()

"""
wsgi.py — Process entry point.

    gunicorn "backend.wsgi:app"          # production
    python -m backend.wsgi               # local development server

FLASK_ENV selects the configuration ("development" when unset).
"""

from __future__ import annotations

import logging
import os

from backend.musicbox import create_app

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = create_app(os.getenv("FLASK_ENV", "development"))


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=app.config["PORT"], debug=app.config.get("DEBUG", False))

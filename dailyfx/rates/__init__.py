"""Rates blueprint: reads, backfill and manual sync."""

from __future__ import annotations

from flask_smorest import Blueprint

blp = Blueprint("Rates", __name__, description="Daily exchange rate endpoints")

from . import routes  # noqa: E402,F401

"""Ordering FastAPI application.

Single-domain web server that runs the checkout workflow synchronously per
HTTP request. Each request is wrapped in the ordering domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay and the log format.
from ordering.domain import ordering
from ordering.utils.logging import configure_logging

configure_logging()
ordering.init()

from ordering.api import create_app  # noqa: E402
from ordering.services import build_services  # noqa: E402

app = create_app(build_services())

"""
Order Sync API - Main Application.

Admin-facing HTTP surface over the order services: read and update orders,
soft delete and purge the archive, run profile migrations and delete
accounts. Every route lives under `/api/v1`.

Environment variables:
- CORS_ALLOW_ORIGINS: comma-separated origins for the admin UI (default "*")
"""

import logging
import os
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.routers import accounts, archive, migrations, orders
from repositories.client import configured_environments

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

API_PREFIX = "/api/v1"


def _allowed_origins() -> List[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()] or ["*"]


app = FastAPI(
    title="Order Sync API",
    description="Order synchronization, archiving and migration across the legacy and canonical stores",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["*"],
)

for router_module, tag in (
    (orders, "Orders"),
    (archive, "Archive"),
    (migrations, "Migrations"),
    (accounts, "Accounts"),
):
    app.include_router(router_module.router, prefix=API_PREFIX, tags=[tag])


@app.get("/health", tags=["Health"])
def health_check():
    """Liveness plus the store environments that have credentials configured."""
    return {
        "status": "healthy",
        "version": __version__,
        "environments": configured_environments(),
    }

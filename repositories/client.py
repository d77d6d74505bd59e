"""
Supabase client initialization and store configuration.

One configured client per environment. Two environments exist ("regular" and
"virtual"); each is a separate Supabase project with its own credentials, and
becomes its own `RecordStore` instance built once at process start.

Environment variables:
- SUPABASE_URL / SUPABASE_KEY: the "regular" project
- VIRTUAL_SUPABASE_URL / VIRTUAL_SUPABASE_KEY: the "virtual" project
- STORE_TIMEOUT_SECONDS: timeout applied to every store call (default 10)
- SOURCE_ENV: tag written on archived orders (defaults to the environment name)

Use a server-side key only on the backend.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

from dotenv import load_dotenv

# The dependency is `supabase` (supabase-py).
from supabase import Client, ClientOptions, create_client  # type: ignore[import-not-found]

from domain.errors import StoreUnavailableError

# Load environment variables from the project's .env file
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

ENVIRONMENTS: Dict[str, str] = {
    "regular": "",
    "virtual": "VIRTUAL_",
}

DEFAULT_TIMEOUT_SECONDS: float = 10.0


@dataclass(frozen=True, slots=True)
class StoreSettings:
    environment: str
    url: str
    key: str
    timeout_seconds: float
    source_env: str


def _read_timeout() -> float:
    raw = os.getenv("STORE_TIMEOUT_SECONDS")
    if not raw:
        return DEFAULT_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError:
        raise StoreUnavailableError(
            f"Invalid STORE_TIMEOUT_SECONDS: {raw!r}. Set it to a number of seconds."
        ) from None
    if value <= 0:
        raise StoreUnavailableError("STORE_TIMEOUT_SECONDS must be greater than zero.")
    return value


def load_store_settings(environment: str = "regular") -> StoreSettings:
    """
    Read credentials for `environment` from the process environment.

    Raises:
        StoreUnavailableError: unknown environment or missing credentials.
    """

    if environment not in ENVIRONMENTS:
        raise StoreUnavailableError(
            f"Unknown store environment: {environment!r}. Expected one of {sorted(ENVIRONMENTS)}."
        )

    prefix = ENVIRONMENTS[environment]
    url_var = f"{prefix}SUPABASE_URL"
    key_var = f"{prefix}SUPABASE_KEY"

    url = os.getenv(url_var)
    key = os.getenv(key_var)

    if not url:
        raise StoreUnavailableError(
            f"Missing environment variable: {url_var}. "
            f"Set {url_var} to your Supabase project URL."
        )

    if not key:
        raise StoreUnavailableError(
            f"Missing environment variable: {key_var}. "
            f"Set {key_var} to your Supabase API key."
        )

    return StoreSettings(
        environment=environment,
        url=url,
        key=key,
        timeout_seconds=_read_timeout(),
        source_env=os.getenv("SOURCE_ENV") or environment,
    )


def configured_environments() -> List[str]:
    """Environments whose URL variable is set (credentials are checked on load)."""

    return [env for env, prefix in ENVIRONMENTS.items() if os.getenv(f"{prefix}SUPABASE_URL")]


def create_supabase_client(settings: StoreSettings) -> Client:
    """Official Supabase client for one environment, with the store timeout applied."""

    options = ClientOptions(postgrest_client_timeout=settings.timeout_seconds)
    return create_client(settings.url, settings.key, options=options)


__all__ = [
    "ENVIRONMENTS",
    "StoreSettings",
    "load_store_settings",
    "configured_environments",
    "create_supabase_client",
]

"""
Supabase-backed RecordStore.

Every logical table is a Postgres table with two columns:

    id  text primary key
    doc jsonb not null

Field filters on nested document values use PostgREST JSON operators:
``client.email`` becomes ``doc->client->>email``.

`patch` is read-merge-write; no transaction spans the read and the write,
which is the same last-write-wins behavior the rest of the system accepts.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client  # type: ignore[import-not-found]

from domain.errors import RecordStoreError, StoreUnavailableError
from repositories.client import StoreSettings, create_supabase_client
from repositories.record_store import StoredDocument

_KEY_COLUMN = "id"
_DOC_COLUMN = "doc"


def json_path(field: str) -> str:
    """
    Translate a dotted document path to a PostgREST text-valued column.

    Example:
        json_path("clientEmail")            # "doc->>clientEmail"
        json_path("client.userAuth.email")  # "doc->client->userAuth->>email"
    """

    parts = field.split(".")
    if len(parts) == 1:
        return f"{_DOC_COLUMN}->>{parts[0]}"
    return f"{_DOC_COLUMN}->" + "->".join(parts[:-1]) + f"->>{parts[-1]}"


def _filter_value(value: Any) -> str:
    # ->> yields text, so compare against the text form.
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class SupabaseRecordStore:
    def __init__(self, client: Client, environment: str) -> None:
        self._client = client
        self.environment = environment

    @classmethod
    def from_settings(cls, settings: StoreSettings) -> "SupabaseRecordStore":
        return cls(create_supabase_client(settings), settings.environment)

    def _execute(self, builder: Any, action: str, table: str, key: Optional[str] = None) -> Any:
        try:
            response = builder.execute()
        except APIError as e:
            raise RecordStoreError(f"Failed to {action} {table}: {e}", table=table, key=key) from e
        except httpx.TimeoutException as e:
            raise RecordStoreError(f"Timed out trying to {action} {table}", table=table, key=key) from e
        except httpx.ConnectError as e:
            raise StoreUnavailableError(
                f"Cannot reach Supabase ({self.environment}) to {action} {table}: {e}"
            ) from e

        error = getattr(response, "error", None)
        if error:
            raise RecordStoreError(f"Failed to {action} {table}: {error}", table=table, key=key)
        return response

    def get(self, table: str, key: str) -> Optional[Dict[str, Any]]:
        response = self._execute(
            self._client.table(table).select(_DOC_COLUMN).eq(_KEY_COLUMN, key).limit(1),
            "read",
            table,
            key,
        )
        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        return dict(rows[0][_DOC_COLUMN] or {})

    def put(self, table: str, key: str, doc: Mapping[str, Any]) -> None:
        self._execute(
            self._client.table(table).upsert({_KEY_COLUMN: key, _DOC_COLUMN: dict(doc)}),
            "write",
            table,
            key,
        )

    def patch(self, table: str, key: str, fields: Mapping[str, Any]) -> None:
        existing = self.get(table, key)
        if existing is None:
            raise RecordStoreError(f"Cannot patch missing document {table}/{key}", table=table, key=key)
        existing.update(fields)
        self._execute(
            self._client.table(table).update({_DOC_COLUMN: existing}).eq(_KEY_COLUMN, key),
            "patch",
            table,
            key,
        )

    def delete(self, table: str, key: str) -> bool:
        response = self._execute(
            self._client.table(table).delete().eq(_KEY_COLUMN, key),
            "delete",
            table,
            key,
        )
        rows = getattr(response, "data", None) or []
        return len(rows) > 0

    def query(self, table: str, field_equals: Mapping[str, Any]) -> List[StoredDocument]:
        builder = self._client.table(table).select(f"{_KEY_COLUMN}, {_DOC_COLUMN}")
        for name, value in field_equals.items():
            builder = builder.eq(json_path(name), _filter_value(value))
        response = self._execute(builder, "query", table)
        rows = getattr(response, "data", None) or []
        return [StoredDocument(key=str(row[_KEY_COLUMN]), doc=dict(row[_DOC_COLUMN] or {})) for row in rows]

    def scan(self, table: str) -> List[StoredDocument]:
        return self.query(table, {})


__all__ = ["SupabaseRecordStore", "json_path"]

"""
FastAPI dependencies.

Stores are built once per environment and cached for the life of the
process. Requests pick one with the `env` query parameter ("regular" by
default). Tests replace `get_store` / `get_all_stores` through
`app.dependency_overrides`.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Optional

from fastapi import Depends, HTTPException, Query

from domain.errors import StoreUnavailableError
from repositories.client import ENVIRONMENTS, configured_environments, load_store_settings
from repositories.record_store import RecordStore
from repositories.supabase_store import SupabaseRecordStore
from services.batch_delete_service import BatchDeleter
from services.document_service import DocumentGenerator, DocumentService
from services.dual_write_service import DualWriteCoordinator
from services.lifecycle_service import LifecycleManager

_stores: Dict[str, RecordStore] = {}
_source_envs: Dict[str, str] = {}
_lock = threading.Lock()
_document_generator: Optional[DocumentGenerator] = None


def _build_store(environment: str) -> RecordStore:
    with _lock:
        if environment not in _stores:
            settings = load_store_settings(environment)
            _stores[environment] = SupabaseRecordStore.from_settings(settings)
            _source_envs[environment] = settings.source_env
        return _stores[environment]


def get_store(env: str = Query("regular", description="Store environment: regular or virtual")) -> RecordStore:
    if env not in ENVIRONMENTS:
        raise HTTPException(status_code=400, detail=f"Unknown environment: {env}")
    try:
        return _build_store(env)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e


def get_all_stores() -> List[RecordStore]:
    environments = configured_environments()
    if not environments:
        raise HTTPException(status_code=503, detail="No store environment is configured")
    try:
        return [_build_store(env) for env in environments]
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e


def get_coordinator(store: RecordStore = Depends(get_store)) -> DualWriteCoordinator:
    return DualWriteCoordinator(store)


def get_lifecycle(store: RecordStore = Depends(get_store)) -> LifecycleManager:
    return LifecycleManager(store, source_env=_source_envs.get(store.environment, ""))


def get_batch_deleter(stores: List[RecordStore] = Depends(get_all_stores)) -> BatchDeleter:
    return BatchDeleter(stores)


def set_document_generator(generator: Optional[DocumentGenerator]) -> None:
    global _document_generator
    _document_generator = generator


def get_document_service(coordinator: DualWriteCoordinator = Depends(get_coordinator)) -> DocumentService:
    if _document_generator is None:
        raise HTTPException(status_code=503, detail="No document generator is configured")
    return DocumentService(_document_generator, coordinator)


__all__ = [
    "get_store",
    "get_all_stores",
    "get_coordinator",
    "get_lifecycle",
    "get_batch_deleter",
    "get_document_service",
    "set_document_generator",
]

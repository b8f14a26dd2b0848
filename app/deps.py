"""Dependency injection for FastAPI routes.

Each external client is built once from the settings and shared across
requests. Tests replace these providers through ``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Annotated, Any, List, Optional

from fastapi import Depends, HTTPException, Request

from app.config import Settings, get_settings
from app.services.airtable import AirtableClient
from app.services.analyzer import DirectoryAnalyzer
from app.services.mailer import EmailService
from app.services.notifications import StatusNotifier
from app.services.scheduler import SyncScheduler
from app.services.store import SupabaseStore
from app.services.sync import DEFAULT_MAPPINGS

AppSettings = Annotated[Settings, Depends(get_settings)]


# Every cached client that owns an httpx connection pool, closed on shutdown.
_open_clients: List[Any] = []


@lru_cache
def _store(url: str, key: str) -> SupabaseStore:
    store = SupabaseStore(url, key)
    _open_clients.append(store)
    return store


@lru_cache
def _airtable(api_key: str, base_id: str) -> AirtableClient:
    airtable = AirtableClient(api_key, base_id)
    _open_clients.append(airtable)
    return airtable


@lru_cache
def _email_service(api_key: Optional[str], sender: str, base_url: str) -> EmailService:
    service = EmailService(api_key, sender, base_url)
    _open_clients.append(service)
    return service


@lru_cache
def _analyzer(api_key: Optional[str], model: str, temperature: float) -> DirectoryAnalyzer:
    analyzer = DirectoryAnalyzer(api_key, model=model, temperature=temperature)
    _open_clients.append(analyzer)
    return analyzer


async def aclose_clients() -> None:
    """Close the HTTP clients built by the providers and forget them."""
    for cache in (_store, _airtable, _email_service, _analyzer):
        cache.cache_clear()
    while _open_clients:
        await _open_clients.pop().aclose()


def get_optional_store(settings: AppSettings) -> Optional[SupabaseStore]:
    if not settings.supabase_url or not settings.supabase_service_key:
        return None
    return _store(settings.supabase_url, settings.supabase_service_key)


def get_store(store: Annotated[Optional[SupabaseStore], Depends(get_optional_store)]) -> SupabaseStore:
    if store is None:
        raise HTTPException(status_code=500, detail="Primary store is not configured.")
    return store


def get_airtable(settings: AppSettings) -> AirtableClient:
    if not settings.airtable_api_key or not settings.airtable_base_id:
        raise HTTPException(status_code=500, detail="Airtable is not configured.")
    return _airtable(settings.airtable_api_key, settings.airtable_base_id)


def get_email_service(settings: AppSettings) -> EmailService:
    return _email_service(settings.resend_api_key, settings.email_from, settings.app_base_url)


def get_analyzer(settings: AppSettings) -> DirectoryAnalyzer:
    return _analyzer(settings.openai_api_key, settings.openai_model, settings.openai_temperature)


def get_notifier(
    store: Annotated[SupabaseStore, Depends(get_store)],
    email_service: Annotated[EmailService, Depends(get_email_service)],
) -> StatusNotifier:
    return StatusNotifier(store, email_service)


def build_scheduler(settings: Settings) -> Optional[SyncScheduler]:
    """Return a sync scheduler, or None when the store or Airtable is not configured."""
    if not (settings.supabase_url and settings.supabase_service_key):
        return None
    if not (settings.airtable_api_key and settings.airtable_base_id):
        return None
    return SyncScheduler(
        DEFAULT_MAPPINGS,
        source=_store(settings.supabase_url, settings.supabase_service_key),
        destination=_airtable(settings.airtable_api_key, settings.airtable_base_id),
        interval_seconds=settings.sync_interval_seconds,
        batch_size=settings.sync_batch_size,
    )


def get_scheduler(request: Request, settings: AppSettings) -> SyncScheduler:
    """Return the application's scheduler so manual runs share its cursors."""
    scheduler = getattr(request.app.state, "sync_scheduler", None)
    if scheduler is None:
        scheduler = build_scheduler(settings)
        if scheduler is None:
            raise HTTPException(status_code=500, detail="Sync is not configured.")
        request.app.state.sync_scheduler = scheduler
    return scheduler

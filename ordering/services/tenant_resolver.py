from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Iterable, Mapping
from urllib.parse import urlsplit

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ordering.core.config import PLATFORM_DOMAIN, RESERVED_SUBDOMAINS, TENANT_CACHE_TTL_SECONDS
from ordering.core.database import SessionLocal
from ordering.core.errors import TenantDirectoryUnavailable
from ordering.models.tenant import Tenant


logger = logging.getLogger(__name__)
CACHE_PREFIX = "[TENANT_CACHE]"

LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1", "0.0.0.0"})


@dataclass(frozen=True)
class TenantRecord:
    """Detached, read-only view of a tenant row as served from the cache."""

    id: int
    name: str
    slug: str
    custom_domain: str | None
    is_active: bool = True
    contact_email: str | None = None
    contact_phone: str | None = None
    brand_color: str | None = None

    @classmethod
    def from_model(cls, tenant: Tenant) -> "TenantRecord":
        return cls(
            id=int(tenant.id),
            name=tenant.name,
            slug=tenant.slug,
            custom_domain=tenant.custom_domain,
            is_active=bool(tenant.is_active),
            contact_email=tenant.contact_email,
            contact_phone=tenant.contact_phone,
            brand_color=tenant.brand_color,
        )

    def cache_keys(self) -> tuple[str, ...]:
        if self.custom_domain:
            return (self.slug, self.custom_domain)
        return (self.slug,)


@dataclass(frozen=True)
class TenantCacheSnapshot:
    entries: Mapping[str, TenantRecord]
    refreshed_at: float | None = None

    @classmethod
    def empty(cls) -> "TenantCacheSnapshot":
        return cls(entries=MappingProxyType({}), refreshed_at=None)

    @classmethod
    def build(cls, records: Iterable[TenantRecord], refreshed_at: float | None) -> "TenantCacheSnapshot":
        entries: dict[str, TenantRecord] = {}
        for record in records:
            for key in record.cache_keys():
                entries[key] = record
        return cls(entries=MappingProxyType(entries), refreshed_at=refreshed_at)

    def with_record(self, record: TenantRecord) -> "TenantCacheSnapshot":
        entries = dict(self.entries)
        for key in record.cache_keys():
            entries[key] = record
        return TenantCacheSnapshot(entries=MappingProxyType(entries), refreshed_at=self.refreshed_at)

    def age(self, now: float) -> float | None:
        if self.refreshed_at is None:
            return None
        return now - self.refreshed_at

    def needs_refresh(self, now: float, ttl_seconds: float) -> bool:
        age = self.age(now)
        return not self.entries or age is None or age >= ttl_seconds


class TenantResolver:
    """Resolve host -> tenant through a TTL cache of active tenants.

    The cache is an immutable snapshot published by replacing ``self._snapshot``
    in a single assignment. Readers grab the reference once and never observe a
    half-built map. Every publish carries the generation read before its query;
    ``invalidate()`` bumps the generation, so rows read before an invalidation
    are dropped instead of overwriting the empty snapshot.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        *,
        ttl_seconds: float = TENANT_CACHE_TTL_SECONDS,
        platform_domain: str = PLATFORM_DOMAIN,
        reserved_subdomains: Iterable[str] = RESERVED_SUBDOMAINS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session_factory = session_factory
        self.ttl_seconds = float(ttl_seconds)
        self.platform_domain = self.normalize_base_domain(platform_domain)
        self.reserved_subdomains = frozenset(name.lower() for name in reserved_subdomains)
        self._clock = clock
        self._snapshot = TenantCacheSnapshot.empty()
        self._generation = 0
        self._publish_lock = threading.Lock()

    # -- host parsing -----------------------------------------------------

    @staticmethod
    def normalize_host(host: str | None) -> str:
        normalized = (host or "").split(",")[0].strip().lower()
        if not normalized:
            return ""

        if "://" in normalized:
            return (urlsplit(normalized).hostname or "").lower()

        normalized = normalized.split("/")[0].strip()
        if normalized.startswith("["):
            # [::1]:8000
            return normalized[1:].split("]")[0]
        if normalized.count(":") == 1:
            normalized = normalized.split(":")[0].strip()
        return normalized.rstrip(".")

    @classmethod
    def normalize_base_domain(cls, base_domain: str | None) -> str:
        normalized = cls.normalize_host(base_domain or "")
        if normalized.startswith("*."):
            normalized = normalized[2:]
        return normalized.lstrip(".")

    def extract_identifier(self, host: str | None) -> str | None:
        """Return the slug or custom-domain candidate for ``host``, or None when
        the host carries no tenant (loopback, reserved subdomain, bare platform)."""
        normalized_host = self.normalize_host(host)
        if not normalized_host or normalized_host in LOOPBACK_HOSTS:
            return None

        for parent in ("localhost", self.platform_domain):
            if not parent:
                continue
            if normalized_host == parent:
                return None
            suffix = f".{parent}"
            if normalized_host.endswith(suffix):
                subdomain = normalized_host[: -len(suffix)]
                if not subdomain or subdomain in self.reserved_subdomains:
                    return None
                return subdomain

        return normalized_host

    # -- cache ------------------------------------------------------------

    @property
    def snapshot(self) -> TenantCacheSnapshot:
        return self._snapshot

    def _publish(self, snapshot: TenantCacheSnapshot, generation: int) -> bool:
        with self._publish_lock:
            if generation != self._generation:
                return False
            self._snapshot = snapshot
            return True

    def refresh(self) -> int:
        """Reload every active tenant. Store errors keep the previous snapshot."""
        generation = self._generation
        db = self.session_factory()
        try:
            tenants = db.query(Tenant).filter(Tenant.is_active.is_(True)).all()
            records = [TenantRecord.from_model(tenant) for tenant in tenants]
        except SQLAlchemyError:
            logger.warning(
                "%s refresh failed; serving stale cache size=%s",
                CACHE_PREFIX,
                len(self._snapshot.entries),
                exc_info=True,
            )
            return len(self._snapshot.entries)
        finally:
            db.close()

        snapshot = TenantCacheSnapshot.build(records, refreshed_at=self._clock())
        if not self._publish(snapshot, generation):
            logger.info("%s refresh discarded; invalidated while loading", CACHE_PREFIX)
            return len(records)
        logger.info("%s refreshed tenants=%s keys=%s", CACHE_PREFIX, len(records), len(snapshot.entries))
        return len(records)

    def warm(self) -> None:
        try:
            self.refresh()
        except Exception:
            logger.exception("%s warm-up failed; cache stays cold until first request", CACHE_PREFIX)

    def invalidate(self) -> None:
        with self._publish_lock:
            self._generation += 1
            self._snapshot = TenantCacheSnapshot.empty()
        logger.info("%s invalidated", CACHE_PREFIX)

    def _lookup_in_store(self, identifier: str) -> TenantRecord | None:
        db = self.session_factory()
        try:
            tenant = (
                db.query(Tenant)
                .filter(
                    or_(Tenant.slug == identifier, Tenant.custom_domain == identifier),
                    Tenant.is_active.is_(True),
                )
                .first()
            )
            return TenantRecord.from_model(tenant) if tenant else None
        except SQLAlchemyError as exc:
            logger.error("%s point lookup failed identifier=%s", CACHE_PREFIX, identifier, exc_info=True)
            raise TenantDirectoryUnavailable() from exc
        finally:
            db.close()

    def get(self, identifier: str) -> TenantRecord | None:
        if self._snapshot.needs_refresh(self._clock(), self.ttl_seconds):
            self.refresh()

        record = self._snapshot.entries.get(identifier)
        if record is not None:
            return record

        logger.info("%s miss identifier=%s; checking store", CACHE_PREFIX, identifier)
        generation = self._generation
        record = self._lookup_in_store(identifier)
        if record is None:
            return None

        with self._publish_lock:
            if generation == self._generation:
                self._snapshot = self._snapshot.with_record(record)
        return record

    def resolve(self, host: str | None) -> TenantRecord | None:
        identifier = self.extract_identifier(host)
        if not identifier:
            return None
        return self.get(identifier)

    def health(self) -> dict:
        snapshot = self._snapshot
        now = self._clock()
        age = snapshot.age(now)
        return {
            "cache_size": len(snapshot.entries),
            "cache_age_seconds": round(age, 3) if age is not None else None,
            "cache_max_age_seconds": self.ttl_seconds,
            "cache_needs_refresh": snapshot.needs_refresh(now, self.ttl_seconds),
            "cached_keys": sorted(snapshot.entries.keys()),
        }


tenant_resolver = TenantResolver()

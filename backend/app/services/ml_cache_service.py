"""
Read-through TTL cache over the MercadoLibre orders/claims APIs.

    fetch(kind, org, accounts)  ──► fresh rows?  ──yes──► serve from cache (no upstream call)
                                        │no / force
                                        ▼
                          per account, sequentially:
                            [force] drop that account's rows
                            resolve account ─► fetch upstream ─► upsert cache (+ ml_claims)
                            failure: logged, recorded in errors, next account

Isolation: every read, delete and write is scoped to (organization_id, integration_account_id).
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.model.integration import IntegrationAccount, PROVIDER_MERCADOLIVRE
from app.integrations.mercadolivre import (
    MLClaimsAPI, MLHttpClient, MLOrdersAPI, MLTokenManager,
    as_json, format_date_bound, normalize_claim, normalize_order,
)
from app.integrations.mercadolivre.normalizers import parse_datetime
from app.repository import integration_repo, ml_cache_repo, ml_claims_repo
from app.repository.ml_cache_repo import KIND_ORDERS, KIND_CLAIMS
from app.utils.clock import now_utc

logger = logging.getLogger(__name__)

SOURCE_CACHE = "cache"
SOURCE_API = "ml_api"

# fetcher(db, account, kind, date_from, date_to) -> raw records of that account
Fetcher = Callable[[Session, IntegrationAccount, str, Any, Any], List[Dict[str, Any]]]


class AccountNotAccessible(Exception):
    """Account missing, inactive, of another provider, or owned by another organization."""


@dataclass
class CacheResult:
    records: List[Dict[str, Any]]
    source: str
    cached_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    errors: List[Dict[str, str]] = field(default_factory=list)
    fetched: int = 0     # upstream records received (0 on a cache hit)
    cached: int = 0      # cache rows written

    @property
    def total(self) -> int:
        return len(self.records)


'''
Default upstream fetcher: token manager -> HTTP client -> orders/claims API
'''
def fetch_from_marketplace(db: Session, account: IntegrationAccount, kind: str, date_from: Any, date_to: Any) -> List[Dict[str, Any]]:
    tokens = MLTokenManager(db, account)
    http = MLHttpClient(token_provider=tokens)
    try:
        if kind == KIND_ORDERS:
            return MLOrdersAPI(http).search_orders(tokens.seller_id, date_from, date_to)
        return MLClaimsAPI(http).search_claims(tokens.seller_id, date_from, date_to)
    finally:
        http.close()


class MLCacheService:

    def __init__(
        self,
        fetcher: Fetcher = fetch_from_marketplace,
        clock: Callable[[], datetime] = now_utc,
        ttl_minutes: Optional[int] = None,
    ) -> None:
        self.fetcher = fetcher
        self.clock = clock
        self.ttl = timedelta(minutes=ttl_minutes or settings.CACHE_TTL_MINUTES)


    # ---------- Public ----------
    def fetch(
        self,
        db: Session,
        kind: str,
        organization_id: str,
        account_ids: Sequence[str],
        date_from: Any = None,
        date_to: Any = None,
        force_refresh: bool = False,
    ) -> CacheResult:
        ml_cache_repo.table_for(kind)   # ValueError on unknown kind
        if not account_ids:
            raise ValueError("account_ids must not be empty")

        if not force_refresh:
            hit = self._from_cache(db, kind, organization_id, account_ids, date_from, date_to)
            if hit is not None:
                logger.info("%s cache hit org=%s accounts=%s -> %s records", kind, organization_id, len(account_ids), hit.total)
                return hit

        return self._from_api(db, kind, organization_id, account_ids, date_from, date_to, force_refresh)


    def purge_expired(
        self,
        db: Session,
        kind: str,
        organization_id: Optional[str] = None,
        older_than: Optional[datetime] = None,
    ) -> int:
        cutoff = older_than or self.clock()
        n = ml_cache_repo.purge_expired(db, kind, cutoff, organization_id)
        db.commit()
        logger.info("%s cache purge cutoff=%s org=%s -> %s rows", kind, cutoff, organization_id or "*", n)
        return n


    # ---------- Internals ----------
    def _from_cache(self, db, kind, organization_id, account_ids, date_from, date_to) -> Optional[CacheResult]:
        t = ml_cache_repo.table_for(kind)
        rows = ml_cache_repo.load_fresh(db, kind, organization_id, account_ids, self.clock())
        if not rows:
            return None
        records = [getattr(r, t.data_col) for r in rows]
        records = sort_newest_first(filter_by_created(records, date_from, date_to))
        return CacheResult(
            records=records,
            source=SOURCE_CACHE,
            cached_at=rows[0].cached_at,
            expires_at=rows[0].ttl_expires_at,
        )


    def _from_api(self, db, kind, organization_id, account_ids, date_from, date_to, force_refresh) -> CacheResult:
        now = self.clock()
        expires_at = now + self.ttl
        result = CacheResult(records=[], source=SOURCE_API, cached_at=now, expires_at=expires_at)

        for account_id in account_ids:
            try:
                if force_refresh:
                    n = ml_cache_repo.delete_for_account(db, kind, organization_id, account_id)
                    logger.info("%s cache invalidated org=%s account=%s rows=%s", kind, organization_id, account_id, n)

                account = self._resolve_account(db, organization_id, account_id)
                raw = self.fetcher(db, account, kind, date_from, date_to)
                result.fetched += len(raw)
                result.cached += self._store(db, kind, organization_id, account_id, raw, now, expires_at)
                db.commit()
                result.records.extend(raw)
            except Exception as e:
                db.rollback()
                logger.exception("%s fetch failed org=%s account=%s", kind, organization_id, account_id)
                result.errors.append({"account_id": account_id, "error": str(e) or e.__class__.__name__})

        result.records = sort_newest_first(result.records)
        logger.info(
            "%s fetched from ML org=%s accounts=%s records=%s errors=%s",
            kind, organization_id, len(account_ids), len(result.records), len(result.errors),
        )
        return result


    def _resolve_account(self, db: Session, organization_id: str, account_id: str) -> IntegrationAccount:
        account = integration_repo.get_account(db, account_id)
        if (
            account is None
            or not account.is_active
            or account.provider != PROVIDER_MERCADOLIVRE
            or account.organization_id != organization_id
        ):
            raise AccountNotAccessible(f"account {account_id} not found or not accessible")
        return account


    def _store(self, db, kind, organization_id, account_id, raw, now, expires_at) -> int:
        normalize = normalize_order if kind == KIND_ORDERS else normalize_claim
        entries = []
        claims = []
        for rec in raw:
            if not rec.get("id"):
                logger.warning("%s record without id skipped (account=%s)", kind, account_id)
                continue
            projection = normalize(rec)
            entries.append((str(rec["id"]), rec, as_json(projection)))
            if kind == KIND_CLAIMS:
                claims.append((projection, rec))

        n = ml_cache_repo.upsert_entries(db, kind, organization_id, account_id, entries, now, expires_at)
        if claims:
            ml_claims_repo.upsert_claims(db, organization_id, account_id, claims, now)
        return n


# ---------- Helpers ----------
def filter_by_created(records: List[Dict[str, Any]], date_from: Any = None, date_to: Any = None) -> List[Dict[str, Any]]:
    """Keep records whose date_created lies in [date_from, date_to]; date-only bounds cover whole days."""
    lo = parse_datetime(format_date_bound(date_from, end_of_day=False))
    hi = parse_datetime(format_date_bound(date_to, end_of_day=True))
    if lo is None and hi is None:
        return list(records)

    out = []
    for rec in records:
        created = parse_datetime(rec.get("date_created"))
        if created is None:
            continue
        if lo is not None and created < lo:
            continue
        if hi is not None and created > hi:
            continue
        out.append(rec)
    return out


def sort_newest_first(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Newest date_created first; records without a date go last."""
    return sorted(records, key=lambda r: parse_datetime(r.get("date_created")) or datetime.min, reverse=True)

# storefront/utils/product_catalog.py
import asyncio
import logging
from typing import List, Optional, Sequence

import httpx
from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from storefront.models.product import Product
from storefront.schemas.product import CatalogProduct
from storefront.utils.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)

MAX_PRODUCT_ID = 2**63 - 1


# Integer primary keys; ids that are not ASCII digits or overflow BIGINT cannot match a row
def _row_id(value) -> Optional[int]:
    text = str(value)
    if not (text.isascii() and text.isdigit()):
        return None
    row_id = int(text)
    return row_id if row_id <= MAX_PRODUCT_ID else None


class ProductCatalog:
    """Read access to the product system of record.

    `fetch_active_products` resolves a batch of ids in one round trip and
    returns only active products. It raises UpstreamUnavailableError when the
    store cannot be queried.
    """

    async def fetch_active_products(self, ids: Sequence[str]) -> List[CatalogProduct]:
        raise NotImplementedError


class UnconfiguredProductCatalog(ProductCatalog):
    # Stands in when no credentials are set; never falls back to mock data
    def __init__(self, reason: str):
        self.reason = reason

    async def fetch_active_products(self, ids):
        raise UpstreamUnavailableError(detail=self.reason)


class SqlProductCatalog(ProductCatalog):
    def __init__(self, session_factory, timeout: float = 5.0):
        self.session_factory = session_factory
        self.timeout = timeout

    def _query(self, ids: Sequence[str]) -> List[CatalogProduct]:
        int_ids = [row_id for row_id in map(_row_id, ids) if row_id is not None]
        if not int_ids:
            return []
        db = self.session_factory()
        try:
            rows = (
                db.query(Product)
                .filter(Product.id.in_(int_ids), Product.active.is_(True))
                .all()
            )
            return [CatalogProduct.model_validate(row) for row in rows]
        finally:
            db.close()

    async def fetch_active_products(self, ids):
        try:
            return await asyncio.wait_for(run_in_threadpool(self._query, ids), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamUnavailableError(detail="Product database timed out") from e
        except SQLAlchemyError as e:
            logger.exception("Product database query failed")
            raise UpstreamUnavailableError(detail=str(e)) from e


class SupabaseProductCatalog(ProductCatalog):
    """Products table served by Supabase's PostgREST endpoint."""

    def __init__(self, url: str, key: str, timeout: float = 5.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url.rstrip("/")
        self.key = key
        self.timeout = timeout
        self.transport = transport

    async def fetch_active_products(self, ids):
        # Quoted so client-supplied ids cannot add PostgREST filter syntax
        id_list = ",".join('"{}"'.format(str(i).replace("\\", "\\\\").replace('"', '\\"')) for i in ids)
        params = {
            "select": "id,name,price,promotional_price",
            "id": f"in.({id_list})",
            "active": "eq.true",
        }
        headers = {
            "apikey": self.key,
            "Authorization": f"Bearer {self.key}",
            "Accept": "application/json",
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.get(f"{self.url}/rest/v1/products", params=params, headers=headers)
                response.raise_for_status()
                rows = response.json()
            except (httpx.RequestError, httpx.HTTPStatusError, ValueError) as e:
                logger.error(f"Supabase products query error: {e}")
                raise UpstreamUnavailableError(detail=str(e)) from e

        if not isinstance(rows, list):
            raise UpstreamUnavailableError(detail=f"Unexpected Supabase response: {rows!r}")
        return [CatalogProduct.model_validate(row) for row in rows]


def build_product_catalog(settings, session_factory=None) -> ProductCatalog:
    store = settings.PRODUCT_STORE.strip().lower()

    if store == "supabase":
        if not (settings.SUPABASE_URL and settings.SUPABASE_KEY):
            logger.error("PRODUCT_STORE=supabase but SUPABASE_URL/SUPABASE_KEY are not set")
            return UnconfiguredProductCatalog("Supabase credentials are not configured")
        return SupabaseProductCatalog(
            settings.SUPABASE_URL, settings.SUPABASE_KEY, timeout=settings.PRODUCT_STORE_TIMEOUT_SECONDS
        )

    if store == "database":
        if session_factory is None:
            logger.error("PRODUCT_STORE=database but DATABASE_URL is not set")
            return UnconfiguredProductCatalog("DATABASE_URL is not configured")
        return SqlProductCatalog(session_factory, timeout=settings.PRODUCT_STORE_TIMEOUT_SECONDS)

    raise ValueError(f"Unknown PRODUCT_STORE: {settings.PRODUCT_STORE}")


def get_product_catalog(request: Request) -> ProductCatalog:
    return request.app.state.product_catalog

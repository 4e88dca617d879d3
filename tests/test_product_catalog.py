from decimal import Decimal

import httpx
import pytest

from storefront.config import Settings
from storefront.utils.errors import UpstreamUnavailableError
from storefront.utils.product_catalog import (
    SqlProductCatalog,
    SupabaseProductCatalog,
    UnconfiguredProductCatalog,
    build_product_catalog,
)


@pytest.mark.anyio
async def test_sql_catalog_returns_only_active_rows(catalog):
    products = await catalog.fetch_active_products(["1", "4", "abc"])
    assert [p.id for p in products] == [1]
    assert products[0].promotional_price == Decimal("29.90")


@pytest.mark.anyio
async def test_sql_catalog_skips_ids_outside_bigint(catalog):
    products = await catalog.fetch_active_products([str(10**30), str(2**63), "1"])
    assert [p.id for p in products] == [1]
    assert await catalog.fetch_active_products([str(10**30)]) == []


@pytest.mark.anyio
async def test_supabase_query_is_one_filtered_request():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=[
            {"id": 1, "name": "Kit 3 Calcinhas", "price": 49.9, "promotional_price": 29.9},
        ])

    catalog = SupabaseProductCatalog(
        "https://proj.supabase.co/", "service-key", transport=httpx.MockTransport(handler)
    )
    products = await catalog.fetch_active_products(["1", 'x"),id.neq.(0'])

    assert [(p.id, p.active_price) for p in products] == [(1, Decimal("29.9"))]
    [request] = seen
    assert request.url.path == "/rest/v1/products"
    assert request.url.params["id"] == 'in.("1","x\\"),id.neq.(0")'
    assert request.url.params["active"] == "eq.true"
    assert request.headers["apikey"] == "service-key"
    assert request.headers["authorization"] == "Bearer service-key"


@pytest.mark.anyio
@pytest.mark.parametrize("response", [
    httpx.Response(503, text="upstream down"),
    httpx.Response(200, json={"message": "not a list"}),
    httpx.Response(200, text="<html>"),
])
async def test_supabase_failures_are_upstream_errors(response):
    catalog = SupabaseProductCatalog(
        "https://proj.supabase.co", "service-key", transport=httpx.MockTransport(lambda request: response)
    )
    with pytest.raises(UpstreamUnavailableError):
        await catalog.fetch_active_products(["1"])


def test_database_store_needs_a_session_factory(session_factory):
    settings = Settings(_env_file=None, PRODUCT_STORE="database")

    assert isinstance(build_product_catalog(settings, session_factory), SqlProductCatalog)
    assert isinstance(build_product_catalog(settings, None), UnconfiguredProductCatalog)


def test_supabase_store_needs_credentials():
    configured = Settings(_env_file=None, PRODUCT_STORE="supabase", SUPABASE_URL="https://p.supabase.co",
                          SUPABASE_KEY="k")
    missing = Settings(_env_file=None, PRODUCT_STORE="supabase", SUPABASE_URL=None, SUPABASE_KEY=None)

    assert isinstance(build_product_catalog(configured), SupabaseProductCatalog)
    assert isinstance(build_product_catalog(missing), UnconfiguredProductCatalog)


def test_unknown_store_is_a_configuration_error():
    with pytest.raises(ValueError):
        build_product_catalog(Settings(_env_file=None, PRODUCT_STORE="spreadsheet"))


@pytest.mark.anyio
async def test_unconfigured_catalog_always_fails():
    with pytest.raises(UpstreamUnavailableError) as exc_info:
        await UnconfiguredProductCatalog("DATABASE_URL is not configured").fetch_active_products(["1"])
    assert exc_info.value.detail == "DATABASE_URL is not configured"

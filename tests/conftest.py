import os

# Settings are read once at import; pin them before the app is imported.
os.environ["ENVIRONMENT"] = "production"
os.environ["PAYMENT_PROVIDER"] = "mock"
os.environ["PRODUCT_STORE"] = "database"
os.environ["EDGE_RATE_LIMIT_MAX_REQUESTS"] = "100000"
for name in ("DATABASE_URL", "RATE_LIMIT_BACKEND", "UPSTASH_REDIS_REST_URL", "UPSTASH_REDIS_REST_TOKEN",
             "KV_REST_API_URL", "KV_REST_API_TOKEN", "AUTH_JWT_KEY"):
    os.environ.pop(name, None)

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.database import Base
from storefront.main import app
from storefront.models.product import Product
from storefront.utils.payment_providers import MockPaymentProvider, get_payment_provider
from storefront.utils.product_catalog import SqlProductCatalog, get_product_catalog
from storefront.utils.rate_limit import BUCKETS, MemoryRateLimitStore, RateLimiter, get_rate_limiters

BROWSER_UA = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0 Safari/537.36"

# 10 seconds into a 60 second window
FIXED_NOW_MS = 60_000 * 28_333_334 + 10_000


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db = Session()
    db.add_all([
        Product(id=1, name="Kit 3 Calcinhas Algodão Soft", slug="kit-calcinhas",
                price=Decimal("49.90"), promotional_price=Decimal("29.90"), active=True),
        Product(id=2, name="Sutiã Renda Comfort", slug="sutia-renda",
                price=Decimal("59.90"), promotional_price=Decimal("0"), active=True),
        Product(id=3, name="Cueca Boxer Feminina Modal", slug="cueca-boxer",
                price=Decimal("29.90"), promotional_price=None, active=True),
        Product(id=4, name="Coleção Antiga", slug="colecao-antiga",
                price=Decimal("10.00"), promotional_price=None, active=False),
    ])
    db.commit()
    db.close()

    yield Session
    engine.dispose()


@pytest.fixture
def catalog(session_factory):
    return SqlProductCatalog(session_factory)


@pytest.fixture
def limiters():
    store = MemoryRateLimitStore()
    return {
        bucket: RateLimiter(bucket, max_requests, window, store=store, clock=lambda: FIXED_NOW_MS)
        for bucket, (max_requests, window) in BUCKETS.items()
    }


@pytest.fixture
def provider():
    return MockPaymentProvider("http://localhost:3000")


@pytest.fixture
def client(catalog, limiters, provider):
    app.dependency_overrides[get_product_catalog] = lambda: catalog
    app.dependency_overrides[get_rate_limiters] = lambda: limiters
    app.dependency_overrides[get_payment_provider] = lambda: provider
    with TestClient(app, headers={"user-agent": BROWSER_UA}) as c:
        yield c
    app.dependency_overrides.clear()

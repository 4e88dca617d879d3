# storefront/main.py
import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from storefront.config import settings
from storefront.database import SessionLocal, init_db

# Routers
from storefront.routes.coupons import router as coupons_router
from storefront.routes.payment import router as payment_router
from storefront.routes.shipping import router as shipping_router

from storefront.utils.edge_filter import EdgeAdmissionMiddleware
from storefront.utils.errors import register_error_handlers
from storefront.utils.payment_providers import build_payment_provider
from storefront.utils.product_catalog import build_product_catalog
from storefront.utils.rate_limit import build_rate_limit_store, build_rate_limiters

logging.basicConfig(level=settings.LOG_LEVEL)

# Create tables when a database is configured
init_db()

app = FastAPI(title="Ly Vest Storefront API", version="1.0.0")

# Collaborators are resolved from app.state through dependencies so tests can override them
app.state.rate_limiters = build_rate_limiters(settings, store=build_rate_limit_store(settings))
app.state.product_catalog = build_product_catalog(settings, session_factory=SessionLocal)
app.state.payment_provider = build_payment_provider(settings)

register_error_handlers(app)

# CORS Configuration
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
if settings.FRONTEND_URL not in origins:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Added last so it runs first, before CORS and routing
app.add_middleware(
    EdgeAdmissionMiddleware,
    max_requests=settings.EDGE_RATE_LIMIT_MAX_REQUESTS,
    window_seconds=settings.EDGE_RATE_LIMIT_WINDOW_SECONDS,
    auth_key=settings.AUTH_JWT_KEY,
    auth_algorithm=settings.AUTH_JWT_ALGORITHM,
)

# Register routers
app.include_router(coupons_router)
app.include_router(payment_router)
app.include_router(shipping_router)

@app.get("/")
def read_root():
    return {"message": "Ly Vest Storefront API is running"}

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from jose import jwt

from storefront.utils.edge_filter import (
    SECURITY_HEADERS,
    EdgeAdmissionMiddleware,
    is_cross_origin,
    is_static_asset,
    is_suspicious_request,
)
from storefront.utils.rate_limit import MemoryRateLimitStore, RateLimiter

BROWSER_UA = "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_5) AppleWebKit/605.1.15 Safari/605.1.15"
SECRET = "edge-test-secret"
FIXED_NOW_MS = 60_000 * 28_333_334 + 10_000


def make_app(max_requests=3, auth_key=SECRET):
    app = FastAPI()

    @app.get("/")
    def home():
        return {"page": "home"}

    @app.get("/logo.png")
    def logo():
        return {"asset": True}

    @app.get("/api/ping")
    def ping():
        return {"ok": True}

    @app.post("/api/ping")
    def post_ping():
        return {"ok": True}

    @app.get("/dashboard")
    def dashboard(request: Request):
        return {"user": request.state.session_claims["sub"]}

    @app.get("/api/checkout/summary")
    def summary(request: Request):
        return {"user": request.state.session_claims["sub"]}

    limiter = RateLimiter("edge", max_requests, 60, store=MemoryRateLimitStore(), clock=lambda: FIXED_NOW_MS)
    app.add_middleware(
        EdgeAdmissionMiddleware,
        max_requests=max_requests,
        window_seconds=60,
        auth_key=auth_key,
        auth_algorithm="HS256",
        limiter=limiter,
    )
    return app


@pytest.fixture
def edge():
    with TestClient(make_app(), headers={"user-agent": BROWSER_UA}) as client:
        yield client


@pytest.mark.parametrize("path, expected", [
    ("/_next/static/chunks/main.js", True),
    ("/images/banner.webp", True),
    ("/favicon.ico", True),
    ("/styles/site.css", True),
    ("/.env", False),
    ("/index.php", False),
    ("/api/coupons/validate", False),
    ("/produto/kit-calcinhas", False),
])
def test_static_asset_detection(path, expected):
    assert is_static_asset(path) is expected


@pytest.mark.parametrize("path, user_agent", [
    ("/.env", BROWSER_UA),
    ("/.git/config", BROWSER_UA),
    ("/wp-admin/setup.php", BROWSER_UA),
    ("/WP-LOGIN", BROWSER_UA),
    ("/index.php", BROWSER_UA),
    ("/etc/passwd", BROWSER_UA),
    ("/", None),
    ("/", "curl/8"),
    ("/", "sqlmap/1.7.2#stable (https://sqlmap.org)"),
    ("/", "Mozilla/5.0 zgrab/0.x"),
])
def test_suspicious_requests(path, user_agent):
    assert is_suspicious_request(path, user_agent)


def test_ordinary_request_is_not_suspicious():
    assert not is_suspicious_request("/produtos/sutia-renda", BROWSER_UA)


def test_cross_origin_comparison():
    assert is_cross_origin("https://evil.example", "lyvest.com.br")
    assert not is_cross_origin("https://lyvest.com.br", "lyvest.com.br")
    assert not is_cross_origin(None, "lyvest.com.br")


def test_pass_through_adds_security_headers(edge):
    response = edge.get("/")

    assert response.status_code == 200
    for name, value in SECURITY_HEADERS.items():
        assert response.headers[name] == value


def test_probe_path_is_forbidden(edge):
    response = edge.get("/.env")
    assert response.status_code == 403
    assert response.json() == {"message": "Forbidden"}


@pytest.mark.parametrize("user_agent", ["", "curl/8", "Nikto/2.5.0 scanner"])
def test_bad_user_agents_are_forbidden(edge, user_agent):
    assert edge.get("/", headers={"user-agent": user_agent}).status_code == 403


def test_static_assets_skip_checks(edge):
    response = edge.get("/logo.png", headers={"user-agent": "curl/8"})
    assert response.status_code == 200
    assert "X-Frame-Options" not in response.headers


def test_api_requests_are_rate_limited_per_ip(edge):
    for _ in range(3):
        assert edge.get("/api/ping", headers={"x-forwarded-for": "203.0.113.9"}).status_code == 200

    response = edge.get("/api/ping", headers={"x-forwarded-for": "203.0.113.9"})
    assert response.status_code == 429
    assert response.headers["Retry-After"] == "60"

    # Other clients keep their own window
    assert edge.get("/api/ping", headers={"x-forwarded-for": "198.51.100.4"}).status_code == 200


def test_pages_are_not_counted(edge):
    for _ in range(5):
        assert edge.get("/").status_code == 200


def test_cross_origin_mutation_is_forbidden(edge):
    response = edge.post("/api/ping", headers={"origin": "https://evil.example"})
    assert response.status_code == 403


def test_same_origin_mutation_is_allowed(edge):
    response = edge.post("/api/ping", headers={"origin": "http://testserver"})
    assert response.status_code == 200


def test_mutation_without_origin_is_allowed(edge):
    assert edge.post("/api/ping").status_code == 200


def test_protected_page_redirects_to_sign_in(edge):
    response = edge.get("/dashboard", follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"] == "/sign-in?redirect_url=/dashboard"


def test_protected_api_is_401(edge):
    response = edge.get("/api/checkout/summary")
    assert response.status_code == 401
    assert response.json() == {"message": "Unauthorized"}


def test_valid_session_reaches_protected_routes(edge):
    token = jwt.encode({"sub": "user_2abc"}, SECRET, algorithm="HS256")

    assert edge.get("/api/checkout/summary", headers={"authorization": f"Bearer {token}"}).json() == {
        "user": "user_2abc"
    }
    assert edge.get("/dashboard", headers={"cookie": f"__session={token}"}).json() == {"user": "user_2abc"}


@pytest.mark.parametrize("claims, key", [
    ({"sub": "user_2abc"}, "some-other-secret"),
    ({"name": "no subject"}, SECRET),
])
def test_invalid_session_is_rejected(edge, claims, key):
    token = jwt.encode(claims, key, algorithm="HS256")
    response = edge.get("/api/checkout/summary", headers={"authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_protected_routes_fail_closed_without_key():
    token = jwt.encode({"sub": "user_2abc"}, SECRET, algorithm="HS256")
    with TestClient(make_app(auth_key=None), headers={"user-agent": BROWSER_UA}) as client:
        response = client.get("/api/checkout/summary", headers={"authorization": f"Bearer {token}"})
    assert response.status_code == 401

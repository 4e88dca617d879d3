# storefront/utils/payment_providers.py
import logging
import uuid
from decimal import Decimal
from typing import Optional
from urllib.parse import urljoin

import httpx
from fastapi import Request

from storefront.schemas.payment import PaymentSessionRequest, ProviderSession
from storefront.utils.errors import StorefrontError
from storefront.utils.money import round_money

logger = logging.getLogger(__name__)


class PaymentProviderError(StorefrontError):
    status_code = 500
    message = "Internal Server Error"
    expose_detail_in_development = True


def _cents(amount: Decimal) -> str:
    return str(int(round_money(amount) * 100))


class PaymentProvider:
    """Creates a hosted checkout session for an already verified cart."""

    name = "base"

    async def create_session(self, request: PaymentSessionRequest) -> ProviderSession:
        raise NotImplementedError


class MockPaymentProvider(PaymentProvider):
    # Local development: no network, the checkout page simulates success
    name = "mock"

    def __init__(self, frontend_url: str):
        self.frontend_url = frontend_url

    async def create_session(self, request):
        session_id = f"mock_sess_{uuid.uuid4().hex}"
        logger.info("Mock payment session %s for %s %s", session_id, request.total, request.currency)
        return ProviderSession(
            session_id=session_id,
            checkout_url=urljoin(self.frontend_url, f"/checkout?session_id={session_id}&status=success"),
            status="pending",
            provider=self.name,
        )


class MercadoPagoProvider(PaymentProvider):
    """Checkout Pro preferences (https://api.mercadopago.com/checkout/preferences)."""

    name = "mercadopago"

    def __init__(self, api_url: str, access_token: str, frontend_url: str, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = api_url
        self.access_token = access_token
        self.frontend_url = frontend_url
        self.timeout = timeout
        self.transport = transport

    def _preference(self, request: PaymentSessionRequest) -> dict:
        external_reference = uuid.uuid4().hex
        return {
            "items": [
                {
                    "id": str(item.id),
                    "title": item.name,
                    "quantity": item.quantity,
                    "unit_price": float(item.price),
                    "currency_id": request.currency,
                }
                for item in request.items
            ],
            "metadata": request.metadata,
            "external_reference": external_reference,
            "back_urls": {
                "success": urljoin(self.frontend_url, "/checkout?status=success"),
                "failure": urljoin(self.frontend_url, "/checkout?status=failure"),
                "pending": urljoin(self.frontend_url, "/checkout?status=pending"),
            },
            "auto_return": "approved",
        }

    async def create_session(self, request):
        url = urljoin(self.api_url, "/checkout/preferences")
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.access_token}",
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(url, json=self._preference(request), headers=headers)
                response.raise_for_status()
                body = response.json()
                session_id = body["id"]
            except (httpx.RequestError, httpx.HTTPStatusError, ValueError, KeyError) as e:
                resp_text = e.response.text if isinstance(e, httpx.HTTPStatusError) else str(e)
                logger.error(f"Mercado Pago create preference error: {resp_text}")
                raise PaymentProviderError(detail=str(e)) from e

        return ProviderSession(
            session_id=str(session_id),
            checkout_url=body.get("init_point"),
            status="pending",
            provider=self.name,
        )


class PayUProvider(PaymentProvider):
    """PayU REST API: OAuth client-credentials token, then order creation."""

    name = "payu"

    def __init__(self, api_url: str, pos_id: str, client_id: str, client_secret: str,
                 frontend_url: str, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = api_url
        self.pos_id = pos_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.continue_url = urljoin(frontend_url, "/checkout?status=success")
        self.timeout = timeout
        self.transport = transport

    async def get_auth_token(self, client: httpx.AsyncClient) -> str:
        # Retrieve OAuth access token using client credentials
        auth_url = urljoin(self.api_url, "/pl/standard/user/oauth/authorize")
        payload = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        response = await client.post(auth_url, data=payload)
        response.raise_for_status()
        return response.json()["access_token"]

    def _order(self, request: PaymentSessionRequest) -> dict:
        metadata = request.metadata
        return {
            "continueUrl": self.continue_url,
            "customerIp": "127.0.0.1",
            "merchantPosId": self.pos_id,
            "extOrderId": uuid.uuid4().hex,
            "description": f"{metadata.get('source', 'storefront')} order",
            "additionalDescription": ";".join(f"{k}={v}" for k, v in sorted(metadata.items())),
            "currencyCode": request.currency,
            "totalAmount": _cents(request.total),
            "products": [
                {"name": item.name, "unitPrice": _cents(item.price), "quantity": str(item.quantity)}
                for item in request.items
            ],
        }

    async def create_session(self, request):
        order_url = urljoin(self.api_url, "/api/v2_1/orders")
        order = self._order(request)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                token = await self.get_auth_token(client)
                headers = {
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {token}",
                }
                # Disable auto-redirects: PayU answers 302 with the payment page in Location
                response = await client.post(order_url, json=order, headers=headers,
                                             follow_redirects=False)
                if 300 <= response.status_code < 400:
                    body = {"redirectUri": response.headers.get("location")}
                else:
                    response.raise_for_status()
                    body = response.json()
            except (httpx.RequestError, httpx.HTTPStatusError, ValueError, KeyError) as e:
                resp_text = e.response.text if isinstance(e, httpx.HTTPStatusError) else str(e)
                logger.error(f"PayU create order error: {resp_text}")
                raise PaymentProviderError(detail=str(e)) from e

        return ProviderSession(
            session_id=body.get("orderId") or order["extOrderId"],
            checkout_url=body.get("redirectUri"),
            status="pending",
            provider=self.name,
        )


def build_payment_provider(settings) -> PaymentProvider:
    provider = settings.PAYMENT_PROVIDER.strip().lower()

    if provider == "mock":
        return MockPaymentProvider(settings.FRONTEND_URL)

    if provider == "mercadopago":
        if not settings.MERCADOPAGO_ACCESS_TOKEN:
            raise ValueError("PAYMENT_PROVIDER=mercadopago requires MERCADOPAGO_ACCESS_TOKEN")
        return MercadoPagoProvider(
            settings.MERCADOPAGO_API_URL,
            settings.MERCADOPAGO_ACCESS_TOKEN,
            settings.FRONTEND_URL,
            timeout=settings.PAYMENT_TIMEOUT_SECONDS,
        )

    if provider == "payu":
        if not (settings.PAYU_POS_ID and settings.PAYU_CLIENT_ID and settings.PAYU_CLIENT_SECRET):
            raise ValueError("PAYMENT_PROVIDER=payu requires PAYU_POS_ID, PAYU_CLIENT_ID and PAYU_CLIENT_SECRET")
        return PayUProvider(
            settings.PAYU_API_URL,
            settings.PAYU_POS_ID,
            settings.PAYU_CLIENT_ID,
            settings.PAYU_CLIENT_SECRET,
            settings.FRONTEND_URL,
            timeout=settings.PAYMENT_TIMEOUT_SECONDS,
        )

    raise ValueError(f"Unknown PAYMENT_PROVIDER: {settings.PAYMENT_PROVIDER}")


def get_payment_provider(request: Request) -> PaymentProvider:
    return request.app.state.payment_provider

# storefront/utils/checkout.py
import logging
from typing import Mapping, Optional, Sequence

from storefront.schemas.payment import (
    DEFAULT_CURRENCY,
    PaymentSessionRequest,
    ProviderSession,
    VerifiedLineItem,
)
from storefront.utils.payment_providers import PaymentProvider

logger = logging.getLogger(__name__)

# Marker checked during provider-side reconciliation: sessions without it
# did not come through price verification.
SESSION_SOURCE = "lyvest-storefront"
VERIFIED_METADATA = {"source": SESSION_SOURCE, "verified": "true"}


def build_session_request(
    items: Sequence[VerifiedLineItem],
    currency: Optional[str] = None,
    extra_metadata: Optional[Mapping[str, str]] = None,
) -> PaymentSessionRequest:
    metadata = {str(k): str(v) for k, v in (extra_metadata or {}).items()}
    # Applied last so callers cannot overwrite the marker
    metadata.update(VERIFIED_METADATA)
    return PaymentSessionRequest(
        items=list(items),
        currency=(currency or DEFAULT_CURRENCY).upper(),
        metadata=metadata,
    )


async def create_payment_session(
    provider: PaymentProvider,
    items: Sequence[VerifiedLineItem],
    currency: Optional[str] = None,
    extra_metadata: Optional[Mapping[str, str]] = None,
) -> ProviderSession:
    session_request = build_session_request(items, currency, extra_metadata)
    logger.info(
        "Creating %s payment session: %d item(s), %s %s",
        provider.name, len(session_request.items), session_request.total, session_request.currency,
    )
    return await provider.create_session(session_request)

from dataclasses import dataclass
from datetime import datetime

from .ledger import ScanResult


@dataclass(frozen=True)
class ScanOutcome:
    customer_id: str
    is_new_customer: bool
    store_id: str
    result: ScanResult


def scan_token(services, token: str, client_token: str | None,
               now: datetime | None = None) -> ScanOutcome:
    """Verify a scanned QR token and count a stamp for the presenting customer.

    Authentication happens before identity resolution so a forged or
    malformed token never creates a customer. Raises MalformedToken,
    InvalidSignature, ExpiredToken or RateLimited.
    """
    store_id, _issued_at = services.tokens.decode_and_verify(token, now)
    customer_id, is_new = services.identity.resolve(client_token)
    result = services.ledger.record_scan(customer_id, store_id, now)
    return ScanOutcome(customer_id=customer_id, is_new_customer=is_new,
                       store_id=store_id, result=result)

from flask import current_app

from .identity import IdentityResolver
from .ledger import LoyaltyLedger
from .redeem import RedemptionGate
from .tokens import ScanTokenService, Signer

_EXT_KEY = 'stampcard'


class LoyaltyServices:
    """Components wired from one immutable ``LoyaltySettings``."""

    def __init__(self, settings, session):
        self.settings = settings
        self.tokens = ScanTokenService(Signer(settings.app_secret), settings.token_max_age)
        self.identity = IdentityResolver()
        self.ledger = LoyaltyLedger(
            session,
            store_id=settings.store_id,
            threshold=settings.stamp_threshold,
            cooldown=settings.scan_cooldown,
        )
        self.gate = RedemptionGate(settings.redeem_pin)

    def init_app(self, app):
        app.extensions[_EXT_KEY] = self


def get_services() -> LoyaltyServices:
    return current_app.extensions[_EXT_KEY]

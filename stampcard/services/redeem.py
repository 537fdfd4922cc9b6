import hmac

from loguru import logger

from ..errors import Forbidden, MissingIdentity, RedeemDisabled


class RedemptionGate:
    """Single shared staff PIN guarding free-item redemption."""

    def __init__(self, pin: str | None):
        self._pin = pin or None

    @property
    def configured(self) -> bool:
        return self._pin is not None

    def authorize(self, presented_pin) -> bool:
        if not self.configured or not isinstance(presented_pin, str) or not presented_pin:
            return False
        return hmac.compare_digest(self._pin.encode(), presented_pin.encode('utf-8'))


def redeem_free_item(services, customer_id: str | None, staff_pin):
    gate = services.gate
    if not gate.configured:
        raise RedeemDisabled('redeem pin not set')
    if not gate.authorize(staff_pin):
        logger.warning('bad staff pin for customer={}', customer_id)
        raise Forbidden('bad pin')
    if not customer_id:
        raise MissingIdentity('no customer cookie')
    return services.ledger.redeem(customer_id, services.settings.store_id)

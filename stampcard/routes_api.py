from flask import Blueprint, request, jsonify
from .errors import Forbidden, LoyaltyError
from .services import get_services
from .services.identity import identity_cookie
from .services.rate_limit import ensure_not_blocked, record_failure
from .services.redeem import redeem_free_item

bp = Blueprint('api', __name__)

@bp.errorhandler(LoyaltyError)
def loyalty_error(e: LoyaltyError):
    return jsonify({'error': e.error}), e.status

@bp.get('/me')
def me():
    svc = get_services()
    customer_id, is_new = svc.identity.resolve(request.cookies.get(svc.settings.cookie_name))
    customer = svc.ledger.get_or_create(customer_id)
    resp = jsonify({'customer': customer.to_dict(), 'threshold': svc.settings.stamp_threshold})
    if is_new:
        name, value, opts = identity_cookie(svc.settings, customer_id)
        resp.set_cookie(name, value, **opts)
    return resp

@bp.post('/redeem')
def redeem():
    svc = get_services()
    ip = request.remote_addr or '0.0.0.0'
    ensure_not_blocked('redeem', ip, svc.settings.attempt_limit, svc.settings.attempt_window)
    data = request.get_json(silent=True) or {}
    customer_id, is_new = svc.identity.resolve(request.cookies.get(svc.settings.cookie_name))
    try:
        redeem_free_item(svc, None if is_new else customer_id, data.get('pin'))
    except Forbidden:
        record_failure('redeem', ip, svc.settings.attempt_window)
        raise
    customer = svc.ledger.get_or_create(customer_id)
    return jsonify({'ok': True, 'customer': customer.to_dict()})

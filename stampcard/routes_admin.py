from flask import Blueprint, jsonify, request, send_file
from loguru import logger
from sqlalchemy import func, select
import hmac
import io
from .errors import Forbidden, LoyaltyError
from .models import db, Customer, Redemption, Scan
from .services import get_services
from .services.qr import make_qr_bytes, make_qr_data_url
from .services.rate_limit import check_rate_ip

bp = Blueprint('admin', __name__)

@bp.errorhandler(LoyaltyError)
def loyalty_error(e: LoyaltyError):
    return jsonify({'error': e.error}), e.status

@bp.before_request
def require_admin_key():
    settings = get_services().settings
    check_rate_ip('admin', request.remote_addr or '0.0.0.0',
                  settings.attempt_limit, settings.attempt_window)
    # Simple API-key auth
    api_key = request.headers.get('X-Admin-Key') or request.args.get('key') or ''
    expected = settings.admin_key or ''
    if not expected or not api_key or not hmac.compare_digest(api_key.encode(), expected.encode()):
        logger.warning('rejected admin request to {} from {}', request.path, request.remote_addr)
        raise Forbidden('bad admin key')

@bp.get('/qr')
def issue_qr():
    svc = get_services()
    store_id = svc.settings.store_id
    token = svc.tokens.issue(store_id)
    # Path-param transport so a phone camera opens the browser straight on the scan page
    url = f"{svc.settings.public_base_url.rstrip('/')}/scan/{token}"
    logger.info('issued scan QR for store={}', store_id)

    accept = request.headers.get('Accept', '')
    if 'image/png' in accept:
        return send_file(
            io.BytesIO(make_qr_bytes(url)), mimetype='image/png', as_attachment=False,
            download_name=f"qr_{store_id}.png", etag=False,
        )
    return jsonify({
        'store_id': store_id,
        'token': token,
        'url': url,
        'qr_data_url': make_qr_data_url(url),
    })

@bp.get('/customers/<customer_id>')
def customer_status(customer_id: str):
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        return jsonify({'error': 'not_found'}), 404
    scans = db.session.scalar(select(func.count()).select_from(Scan).where(Scan.customer_id == customer_id))
    redemptions = db.session.scalar(
        select(func.count()).select_from(Redemption).where(Redemption.customer_id == customer_id))
    return jsonify({'customer': customer.to_dict(), 'scans': scans, 'redemptions': redemptions})

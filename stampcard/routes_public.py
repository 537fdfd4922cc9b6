from flask import Blueprint, make_response, render_template, request
from .errors import ExpiredToken, InvalidSignature, MalformedToken, RateLimited
from .services import get_services
from .services.identity import identity_cookie
from .services.scan import scan_token

bp = Blueprint('public', __name__)

@bp.get('/')
def home():
    return render_template('index.html')

@bp.get('/scan/<token>')
def scan_page(token: str):
    svc = get_services()
    try:
        outcome = scan_token(svc, token, request.cookies.get(svc.settings.cookie_name))
    except MalformedToken:
        return render_template('message.html', title='Scan failed', heading='Bad payload',
                               body='This QR code could not be read.'), 400
    except (InvalidSignature, ExpiredToken):
        return render_template('message.html', title='Scan failed', heading='Invalid QR',
                               body='This QR code is not valid for this store.'), 401
    except RateLimited as e:
        resp = make_response(render_template('message.html', title='Already scanned',
                                             heading='Already scanned',
                                             body='Please wait a few minutes before scanning again.'), 429)
        resp.headers['Retry-After'] = str(e.retry_after)
        return resp

    resp = make_response(render_template('scan.html', result=outcome.result))
    resp.headers['Cache-Control'] = 'no-store'
    if outcome.is_new_customer:
        name, value, opts = identity_cookie(svc.settings, outcome.customer_id)
        resp.set_cookie(name, value, **opts)
    return resp

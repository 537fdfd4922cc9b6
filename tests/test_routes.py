import base64

from stampcard.models import Customer, Scan, db
from stampcard.services.tokens import encode_token

from .conftest import ADMIN_KEY, REDEEM_PIN, STORE_ID


def _scan_path(services, store_id=STORE_ID):
    return '/scan/' + services.tokens.issue(store_id)


def _cookie(client):
    cookie = client.get_cookie('cid')
    return cookie.value if cookie else None


def test_health(client):
    assert client.get('/health').get_json() == {'ok': True}


def test_admin_qr_requires_key(client):
    assert client.get('/admin/qr').status_code == 403
    r = client.get('/admin/qr', headers={'X-Admin-Key': 'nope'})
    assert r.status_code == 403
    assert r.get_json() == {'error': 'forbidden'}


def test_admin_qr_json(client, services):
    r = client.get('/admin/qr', headers={'X-Admin-Key': ADMIN_KEY})
    assert r.status_code == 200
    data = r.get_json()
    assert sorted(data) == ['qr_data_url', 'store_id', 'token', 'url']
    assert data['store_id'] == STORE_ID
    assert data['url'] == f"http://testserver/scan/{data['token']}"
    assert data['qr_data_url'].startswith('data:image/png;base64,')
    assert services.tokens.decode_and_verify(data['token'])[0] == STORE_ID


def test_admin_qr_png_with_query_key(client):
    r = client.get(f'/admin/qr?key={ADMIN_KEY}', headers={'Accept': 'image/png'})
    assert r.status_code == 200
    assert r.mimetype == 'image/png'
    assert r.data.startswith(b'\x89PNG')


def test_admin_attempts_are_throttled(client):
    for _ in range(5):
        assert client.get('/admin/qr', headers={'X-Admin-Key': 'guess'}).status_code == 403
    r = client.get('/admin/qr', headers={'X-Admin-Key': ADMIN_KEY})
    assert r.status_code == 429
    assert r.get_json() == {'error': 'too_many_attempts'}


def test_first_scan_sets_identity_cookie_and_stamps(client, services):
    r = client.get(_scan_path(services))
    assert r.status_code == 200
    assert b'1 of 5 coffees collected' in r.data
    cid = _cookie(client)
    assert cid
    assert db.session.get(Customer, cid).stamp_count == 1
    scan = db.session.query(Scan).one()
    assert (scan.customer_id, scan.store_id) == (cid, STORE_ID)


def test_repeat_scan_is_rate_limited(client, services):
    client.get(_scan_path(services))
    r = client.get(_scan_path(services))
    assert r.status_code == 429
    assert b'Already scanned' in r.data
    assert int(r.headers['Retry-After']) > 0
    assert db.session.get(Customer, _cookie(client)).stamp_count == 1


def test_returning_customer_keeps_identity(client, services):
    db.session.add(Customer(id='known-customer', stamp_count=4, free_available=0))
    db.session.commit()
    client.set_cookie('cid', 'known-customer')
    r = client.get(_scan_path(services))
    assert r.status_code == 200
    assert b'You just earned a free drink!' in r.data
    assert 'Set-Cookie' not in r.headers
    customer = db.session.get(Customer, 'known-customer')
    assert (customer.stamp_count, customer.free_available) == (0, 1)


def test_malformed_token_is_rejected_without_state(client):
    r = client.get('/scan/not$base64')
    assert r.status_code == 400
    assert b'Bad payload' in r.data
    r = client.get('/scan/' + base64.urlsafe_b64encode(b'only|two').decode().rstrip('='))
    assert r.status_code == 400
    assert _cookie(client) is None
    assert db.session.query(Customer).count() == 0


def test_forged_token_is_rejected_without_state(client):
    r = client.get('/scan/' + encode_token(STORE_ID, 1700000000000, 'f' * 64))
    assert r.status_code == 401
    assert b'Invalid QR' in r.data
    assert _cookie(client) is None
    assert db.session.query(Customer).count() == 0


def test_me_issues_cookie_once(client):
    r = client.get('/api/me')
    data = r.get_json()
    assert data['threshold'] == 5
    assert data['customer']['stamp_count'] == 0
    cid = _cookie(client)
    assert data['customer']['id'] == cid

    r = client.get('/api/me')
    assert 'Set-Cookie' not in r.headers
    assert r.get_json()['customer']['id'] == cid


def test_redeem_requires_pin(client):
    client.set_cookie('cid', 'c1')
    r = client.post('/api/redeem', json={'pin': '0000'})
    assert r.status_code == 403
    assert r.get_json() == {'error': 'forbidden'}


def test_redeem_requires_customer_cookie(client):
    r = client.post('/api/redeem', json={'pin': REDEEM_PIN})
    assert r.status_code == 400
    assert r.get_json() == {'error': 'no_customer_cookie'}


def test_redeem_without_free_drinks(client):
    client.set_cookie('cid', 'c1')
    r = client.post('/api/redeem', json={'pin': REDEEM_PIN})
    assert r.status_code == 400
    assert r.get_json() == {'error': 'no_free_drinks'}


def test_redeem_consumes_one_free_drink(client):
    db.session.add(Customer(id='c1', stamp_count=2, free_available=2))
    db.session.commit()
    client.set_cookie('cid', 'c1')
    r = client.post('/api/redeem', json={'pin': REDEEM_PIN})
    assert r.status_code == 200
    customer = r.get_json()['customer']
    assert (customer['free_available'], customer['stamp_count']) == (1, 2)

    r = client.get(f'/admin/customers/c1?key={ADMIN_KEY}')
    assert r.get_json()['redemptions'] == 1


def test_redeem_pin_guessing_is_throttled(client):
    client.set_cookie('cid', 'c1')
    for _ in range(5):
        client.post('/api/redeem', json={'pin': 'guess'})
    r = client.post('/api/redeem', json={'pin': REDEEM_PIN})
    assert r.status_code == 429


def test_admin_customer_status(client, services):
    client.get(_scan_path(services))
    cid = _cookie(client)
    r = client.get(f'/admin/customers/{cid}', headers={'X-Admin-Key': ADMIN_KEY})
    data = r.get_json()
    assert data['customer']['stamp_count'] == 1
    assert (data['scans'], data['redemptions']) == (1, 0)
    assert client.get('/admin/customers/missing', headers={'X-Admin-Key': ADMIN_KEY}).status_code == 404


def test_successful_redemptions_are_not_throttled(client):
    db.session.add(Customer(id='c1', stamp_count=0, free_available=7))
    db.session.commit()
    client.set_cookie('cid', 'c1')
    for left in range(6, -1, -1):
        r = client.post('/api/redeem', json={'pin': REDEEM_PIN})
        assert r.status_code == 200
        assert r.get_json()['customer']['free_available'] == left

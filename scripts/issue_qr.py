import os
import sys
import base64
import requests

BASE_URL = os.environ.get('BASE_URL', 'http://localhost:5000')
ADMIN_KEY = os.environ.get('ADMIN_KEY')

if not ADMIN_KEY:
    print('Missing ADMIN_KEY in env')
    sys.exit(1)

headers = {'X-Admin-Key': ADMIN_KEY}
out = os.environ.get('OUT', 'qr.png')

# If WANT_PNG=1, request image directly
if os.environ.get('WANT_PNG', '0') == '1':
    r = requests.get(f"{BASE_URL}/admin/qr", headers={**headers, 'Accept': 'image/png'}, timeout=30)
    if r.status_code != 200:
        print('Error:', r.status_code, r.text)
        sys.exit(1)
    with open(out, 'wb') as f:
        f.write(r.content)
    print('PNG saved to', out)
    sys.exit(0)

# Default: JSON mode
r = requests.get(f"{BASE_URL}/admin/qr", headers=headers, timeout=30)
if r.status_code != 200:
    print('Error:', r.status_code, r.text)
    sys.exit(1)
res = r.json()
print('store_id:', res['store_id'])
print('scan url:', res['url'])
data_url = res.get('qr_data_url') or ''
if data_url.startswith('data:image/png;base64,'):
    with open(out, 'wb') as f:
        f.write(base64.b64decode(data_url.split(',', 1)[1]))
    print('PNG saved to', out)

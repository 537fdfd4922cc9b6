#!/usr/bin/env python3
import sys, time
from stampcard.errors import MalformedToken
from stampcard.services.tokens import Signer, decode_token

# Usage: python scripts/check_codes.py <TOKEN> <APP_SECRET>
# Decodes a scan token and validates its signature, reporting its age

def err(msg):
    print(f"ERROR: {msg}")
    sys.exit(1)

if len(sys.argv) < 3:
    err("Usage: check_codes.py <TOKEN> <APP_SECRET>")

token = sys.argv[1].strip()
if '/scan/' in token:
    token = token.rsplit('/scan/', 1)[1]

try:
    store_id, issued_at, sig = decode_token(token)
except MalformedToken as e:
    err(f"malformed: {e}")

if not Signer(sys.argv[2].strip()).verify(store_id, issued_at, sig):
    err("bad signature")

age = int(time.time()) - issued_at // 1000
print({
    'store_id': store_id,
    'issued_at_ms': issued_at,
    'age_s': age,
})

import base64, binascii, hashlib, hmac, re, time
from datetime import datetime, timedelta, timezone

from loguru import logger

from ..errors import ExpiredToken, InvalidSignature, MalformedToken

DELIMITER = '|'
FUTURE_SKEW = timedelta(seconds=60)

_URLSAFE_B64 = re.compile(r'[A-Za-z0-9_-]+')


# Opaque QR token: base64url("store_id|issued_at_ms|hex_sig"), unpadded
def encode_token(store_id: str, issued_at: int, signature: str) -> str:
    fields = [str(store_id), str(issued_at), str(signature)]
    for f in fields:
        if not f or DELIMITER in f:
            raise ValueError(f'token field {f!r} is empty or contains {DELIMITER!r}')
    raw = DELIMITER.join(fields).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b'=').decode('ascii')

def decode_token(token: str) -> tuple[str, int, str]:
    token = (token or '').strip()
    if not _URLSAFE_B64.fullmatch(token):
        raise MalformedToken('token is not url-safe base64')
    try:
        raw = base64.urlsafe_b64decode(token + '=' * (-len(token) % 4))
        text = raw.decode('utf-8')
    except (binascii.Error, UnicodeDecodeError) as e:
        raise MalformedToken(f'undecodable token: {e}') from e

    parts = text.split(DELIMITER)
    if len(parts) != 3 or not all(parts):
        raise MalformedToken('token must carry exactly three non-empty fields')
    store_id, ts, sig = parts
    if not (ts.isascii() and ts.isdigit()):
        raise MalformedToken('issued_at is not an integer')
    return store_id, int(ts), sig


def epoch_millis(now: datetime | None = None) -> int:
    if now is None:
        return int(time.time() * 1000)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return int(now.timestamp() * 1000)


class Signer:
    """HMAC-SHA256 over ``store_id|issued_at`` with the process-wide app secret."""

    def __init__(self, secret: str):
        if not secret:
            raise ValueError('an app secret is required to sign scan tokens')
        self._secret = secret.encode()

    def sign(self, store_id: str, issued_at: int) -> str:
        msg = f'{store_id}{DELIMITER}{issued_at}'.encode()
        return hmac.new(self._secret, msg, hashlib.sha256).hexdigest()

    def verify(self, store_id: str, issued_at: int, signature: str) -> bool:
        expected = self.sign(store_id, issued_at).encode()
        return hmac.compare_digest(expected, signature.encode('utf-8'))


class ScanTokenService:
    def __init__(self, signer: Signer, max_age: timedelta | None = None):
        self.signer = signer
        self.max_age = max_age

    def issue(self, store_id: str, now: datetime | None = None) -> str:
        ts = epoch_millis(now)
        return encode_token(store_id, ts, self.signer.sign(store_id, ts))

    def decode_and_verify(self, token: str, now: datetime | None = None) -> tuple[str, int]:
        """Return ``(store_id, issued_at)`` for an authentic token.

        Raises MalformedToken for bad encoding or shape, InvalidSignature when
        the HMAC does not match and ExpiredToken when a replay window is
        configured and the token falls outside it.
        """
        store_id, ts, sig = decode_token(token)
        if not self.signer.verify(store_id, ts, sig):
            logger.warning('scan token signature mismatch store_id={} issued_at={}', store_id, ts)
            raise InvalidSignature('bad signature')

        if self.max_age is not None:
            age_ms = epoch_millis(now) - ts
            if age_ms > self.max_age / timedelta(milliseconds=1):
                raise ExpiredToken('stale')
            if -age_ms > FUTURE_SKEW / timedelta(milliseconds=1):
                raise ExpiredToken('issued in the future')
        return store_id, ts

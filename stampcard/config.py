import os
from dataclasses import dataclass
from datetime import timedelta


def _flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() not in ('0', 'false', 'no')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///local.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    APP_SECRET = os.environ.get('APP_SECRET', 'dev')
    ADMIN_KEY = os.environ.get('ADMIN_KEY')
    REDEEM_PIN = os.environ.get('REDEEM_PIN')
    STORE_ID = os.environ.get('STORE_ID', 'store-1')
    PUBLIC_BASE_URL = os.environ.get('PUBLIC_BASE_URL', 'http://localhost:5000')
    STAMP_THRESHOLD = int(os.environ.get('STAMP_THRESHOLD', '5'))
    SCAN_COOLDOWN_SECONDS = int(os.environ.get('SCAN_COOLDOWN_SECONDS', '600'))
    # 0 disables expiry: printed store QR codes stay valid
    TOKEN_MAX_AGE_SECONDS = int(os.environ.get('TOKEN_MAX_AGE_SECONDS', '0'))
    COOKIE_NAME = os.environ.get('COOKIE_NAME', 'cid')
    COOKIE_MAX_AGE = int(os.environ.get('COOKIE_MAX_AGE', '31536000'))
    COOKIE_SECURE = _flag('COOKIE_SECURE', '1')
    REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
    USE_REDIS = _flag('USE_REDIS', '1')
    ATTEMPT_LIMIT = int(os.environ.get('ATTEMPT_LIMIT', '10'))
    ATTEMPT_WINDOW_SECONDS = int(os.environ.get('ATTEMPT_WINDOW_SECONDS', '60'))

    def __init__(self):
        # Optional fallbacks to support Secret Files on Render (/etc/secrets)
        if (not self.APP_SECRET) or self.APP_SECRET == 'dev':
            self.APP_SECRET = _read_secret('app_secret') or self.APP_SECRET
        if not self.ADMIN_KEY:
            self.ADMIN_KEY = _read_secret('admin_key')
        if not self.REDEEM_PIN:
            self.REDEEM_PIN = _read_secret('redeem_pin')
        if (not self.SECRET_KEY) or self.SECRET_KEY == 'dev':
            self.SECRET_KEY = _read_secret('secret_key') or self.SECRET_KEY


def _read_secret(name: str):
    try:
        with open(f'/etc/secrets/{name}', 'r') as f:
            return f.read().strip()
    except OSError:
        return None


@dataclass(frozen=True)
class LoyaltySettings:
    """Immutable snapshot of the loyalty configuration handed to each component."""

    app_secret: str
    store_id: str
    admin_key: str | None = None
    redeem_pin: str | None = None
    public_base_url: str = 'http://localhost:5000'
    stamp_threshold: int = 5
    scan_cooldown: timedelta = timedelta(minutes=10)
    token_max_age: timedelta | None = None
    cookie_name: str = 'cid'
    cookie_max_age: int = 31536000
    cookie_secure: bool = True
    attempt_limit: int = 10
    attempt_window: int = 60

    @classmethod
    def from_mapping(cls, cfg) -> 'LoyaltySettings':
        max_age = int(cfg.get('TOKEN_MAX_AGE_SECONDS') or 0)
        return cls(
            app_secret=cfg['APP_SECRET'],
            store_id=cfg['STORE_ID'],
            admin_key=cfg.get('ADMIN_KEY') or None,
            redeem_pin=cfg.get('REDEEM_PIN') or None,
            public_base_url=cfg.get('PUBLIC_BASE_URL', 'http://localhost:5000'),
            stamp_threshold=int(cfg.get('STAMP_THRESHOLD', 5)),
            scan_cooldown=timedelta(seconds=int(cfg.get('SCAN_COOLDOWN_SECONDS', 600))),
            token_max_age=timedelta(seconds=max_age) if max_age > 0 else None,
            cookie_name=cfg.get('COOKIE_NAME', 'cid'),
            cookie_max_age=int(cfg.get('COOKIE_MAX_AGE', 31536000)),
            cookie_secure=bool(cfg.get('COOKIE_SECURE', True)),
            attempt_limit=int(cfg.get('ATTEMPT_LIMIT', 10)),
            attempt_window=int(cfg.get('ATTEMPT_WINDOW_SECONDS', 60)),
        )

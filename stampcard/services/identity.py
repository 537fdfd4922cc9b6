import uuid

MAX_TOKEN_LENGTH = 64


class IdentityResolver:
    """Maps the opaque client token (the ``cid`` cookie) to a customer id.

    Never touches storage: the ledger's ``get_or_create`` materialises the
    record, and the HTTP layer persists new ids via ``identity_cookie``.
    """

    def resolve(self, client_token: str | None) -> tuple[str, bool]:
        token = (client_token or '').strip()
        if token and len(token) <= MAX_TOKEN_LENGTH and token.isprintable():
            return token, False
        return str(uuid.uuid4()), True


def identity_cookie(settings, customer_id: str) -> tuple[str, str, dict]:
    return (settings.cookie_name, customer_id, {
        'httponly': True,
        'samesite': 'Lax',
        'secure': settings.cookie_secure,
        'max_age': settings.cookie_max_age,
        'path': '/',
    })

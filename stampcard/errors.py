"""Failure taxonomy shared by the loyalty services and the HTTP layer."""


class LoyaltyError(Exception):
    error = 'error'
    status = 400

    def __init__(self, message: str | None = None):
        super().__init__(message or self.error)


class MalformedToken(LoyaltyError):
    error = 'malformed_token'
    status = 400


class InvalidSignature(LoyaltyError):
    error = 'invalid_signature'
    status = 401


class ExpiredToken(LoyaltyError):
    error = 'expired_token'
    status = 401


class RateLimited(LoyaltyError):
    error = 'rate_limited'
    status = 429

    def __init__(self, retry_after: int, message: str | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class Forbidden(LoyaltyError):
    error = 'forbidden'
    status = 403


class NoFreeDrinks(LoyaltyError):
    error = 'no_free_drinks'
    status = 400


class MissingIdentity(LoyaltyError):
    error = 'no_customer_cookie'
    status = 400


class TooManyAttempts(LoyaltyError):
    error = 'too_many_attempts'
    status = 429


class RedeemDisabled(LoyaltyError):
    error = 'redeem_disabled'
    status = 503

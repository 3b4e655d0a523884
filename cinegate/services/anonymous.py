"""Signed anonymous identities for visitors without an account.

The UUID inside the token is what rentals and watch progress are keyed on;
the token itself is only a bearer credential for that id.
"""
import time, uuid
from dataclasses import dataclass

from flask import current_app

from . import signing
from ..errors import InvalidTokenFormat, TokenError

DAY = 24 * 60 * 60


@dataclass(frozen=True)
class VerifyResult:
    ok: bool
    payload: dict | None = None
    error: TokenError | None = None

    def __bool__(self) -> bool:
        return self.ok


class AnonymousIdManager:
    def __init__(self, secret, lifetime_seconds: int = 90 * DAY, clock=time.time):
        if not secret:
            raise ValueError('anonymous id secret must not be empty')
        self._secret = secret
        self._lifetime = lifetime_seconds
        self._clock = clock

    def issue(self) -> str:
        created_at = int(self._clock())
        payload = {
            'id': str(uuid.uuid4()),
            'createdAt': created_at,
            'expiresAt': created_at + self._lifetime,
        }
        return signing.sign(self._secret, payload)

    def verify(self, token: str) -> dict:
        return signing.verify(self._secret, token, now=int(self._clock()))

    def validate(self, token: str) -> VerifyResult:
        """Check a token without raising; failures come back as a value."""
        try:
            return VerifyResult(ok=True, payload=self.verify(token))
        except TokenError as e:
            return VerifyResult(ok=False, error=e)

    def is_valid(self, token: str) -> bool:
        return self.validate(token).ok

    def extract_id(self, token: str) -> str:
        anonymous_id = self.verify(token).get('id')
        if not isinstance(anonymous_id, str):
            raise InvalidTokenFormat('Anonymous token carries no id')
        return anonymous_id


def anonymous_ids() -> AnonymousIdManager:
    manager = current_app.extensions.get('anonymous_ids')
    if manager is None:
        cfg = current_app.config
        manager = AnonymousIdManager(
            cfg['ANONYMOUS_ID_SECRET'],
            lifetime_seconds=cfg['ANONYMOUS_ID_LIFETIME_DAYS'] * DAY,
        )
        current_app.extensions['anonymous_ids'] = manager
    return manager

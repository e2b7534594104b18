"""
Signed, expiring session tokens.

A token is ``base64(payload_json) + "." + base64(hmac_sha256(secret, payload_b64))``.
Nothing is stored server side: the token carries the user, the
must-change-password flag and its own expiry. Rotating the secret logs
everybody out.
"""

import base64
import binascii
import hashlib
import hmac
import json
import time
import uuid
from typing import Callable

from .models import SessionCheck, SessionPayload

DEFAULT_TTL_SECONDS = 86400
SEPARATOR = "."


def now_ms() -> int:
    return int(time.time() * 1000)


def new_nonce() -> str:
    return uuid.uuid4().hex


def constant_time_equal(a: bytes, b: bytes) -> bool:
    """Compare two byte strings without short-circuiting on the first difference."""
    if len(a) != len(b):
        return False
    diff = 0
    for x, y in zip(a, b):
        diff |= x ^ y
    return diff == 0


def _b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _b64decode_strict(text: str) -> bytes:
    raw = base64.b64decode(text, validate=True)
    # reject alternate encodings of the same bytes (non-zero pad bits)
    if _b64encode(raw) != text:
        raise ValueError("non-canonical base64")
    return raw


def _invalid() -> SessionCheck:
    return SessionCheck(valid=False)


class SessionCodec:
    def __init__(
        self,
        secret: str,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], int] = now_ms,
        nonce_factory: Callable[[], str] = new_nonce,
    ):
        self._key = secret.encode("utf-8")
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.nonce_factory = nonce_factory

    def _sign(self, payload_b64: str) -> bytes:
        return hmac.new(self._key, payload_b64.encode("ascii"), hashlib.sha256).digest()

    def mint(self, user: str, must_change: bool) -> str:
        return self.mint_with_expiry(user, must_change, self.clock() + self.ttl_seconds * 1000)

    def mint_with_expiry(self, user: str, must_change: bool, expires_at_ms: int) -> str:
        payload = SessionPayload(
            user=user,
            must_change=bool(must_change),
            expires_at_ms=expires_at_ms,
            nonce=self.nonce_factory(),
        )
        payload_b64 = _b64encode(payload.model_dump_json(by_alias=True).encode("utf-8"))
        return f"{payload_b64}{SEPARATOR}{_b64encode(self._sign(payload_b64))}"

    def verify(self, token: str) -> SessionCheck:
        """Check signature and expiry. Every failure looks the same to the caller."""
        if not isinstance(token, str) or not token:
            return _invalid()
        payload_b64, sep, sig_b64 = token.partition(SEPARATOR)
        if not sep or not payload_b64 or not sig_b64 or SEPARATOR in sig_b64:
            return _invalid()

        try:
            got = _b64decode_strict(sig_b64)
            raw = _b64decode_strict(payload_b64)
        except (binascii.Error, ValueError):
            return _invalid()

        if not constant_time_equal(self._sign(payload_b64), got):
            return _invalid()

        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            return _invalid()
        if not isinstance(data, dict):
            return _invalid()

        exp = data.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, int):
            return _invalid()
        if self.clock() >= exp:
            return _invalid()

        user = data.get("u")
        if not isinstance(user, str) or not user:
            return _invalid()
        return SessionCheck(valid=True, user=user, must_change=bool(data.get("mc")))

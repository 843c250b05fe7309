# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""CsrfToken: secret extraction, authenticity derivation and verification.

The secret lives in the CSRF cookie.  Pages embed the *authenticity token*,
``base64url(HMAC-SHA256(salt, secret))``, never the secret itself.  A
submitted authenticity token is checked by recomputing the MAC and using the
MAC primitive's constant-time ``verify``.
"""

from __future__ import annotations

import base64
import binascii
import logging
import secrets
import string
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac

from csrfly.kernel.exceptions import CsrfSaltError, CsrfTokenError, CsrfVerifyError
from csrfly.security.csrf.config import CsrfConfig
from csrfly.security.csrf.cookies import Cookie, CookieJar

logger = logging.getLogger(__name__)

SECRET_ALPHABET = string.ascii_letters + string.digits

DIGEST_SIZE = hashes.SHA256.digest_size


def generate_secret(length: int) -> str:
    """Random alphanumeric secret of *length* characters."""
    return "".join(secrets.choice(SECRET_ALPHABET) for _ in range(length))


def is_well_formed_secret(value: str, length: int) -> bool:
    return len(value) == length and all(ch in SECRET_ALPHABET for ch in value)


def cookie_header_values(headers: Any) -> list[str]:
    """Collect every ``Cookie`` header value from *headers*.

    Accepts Starlette ``Headers`` (or anything with ``getlist``), a mapping
    whose values are strings or lists of strings, or an iterable of
    ``(name, value)`` pairs with ``str`` or ``bytes`` items.
    """
    if headers is None:
        return []
    if hasattr(headers, "getlist"):
        return list(headers.getlist("cookie"))

    pairs: Iterable[tuple[Any, Any]]
    if isinstance(headers, Mapping):
        pairs = headers.items()
    else:
        pairs = headers

    values: list[str] = []
    for name, value in pairs:
        if isinstance(name, bytes):
            name = name.decode("latin-1")
        if str(name).lower() != "cookie":
            continue
        items = value if isinstance(value, (list, tuple)) else [value]
        for item in items:
            values.append(item.decode("latin-1") if isinstance(item, bytes) else str(item))
    return values


def _decode_submitted(submitted: str) -> bytes:
    # Either alphabet, padded, with no stray bits; anything else is malformed.
    urlsafe = "-" in submitted or "_" in submitted
    raw = submitted.encode("ascii")
    digest = base64.b64decode(raw, altchars=b"-_" if urlsafe else None, validate=True)
    canonical = base64.urlsafe_b64encode(digest) if urlsafe else base64.b64encode(digest)
    if canonical != raw:
        raise ValueError("authenticity token is not canonical base64")
    return digest


class CsrfToken:
    """Per-request CSRF state.

    Built once per request by :meth:`from_headers`.  ``is_new`` is ``True``
    when no valid secret was found and a fresh one was generated; that secret
    must then be sent back with :meth:`set_cookie_headers`.
    """

    __slots__ = ("_secret", "_config", "_is_new", "_injected")

    def __init__(self, secret: str, config: CsrfConfig, is_new: bool = False) -> None:
        self._secret = secret
        self._config = config
        self._is_new = is_new
        self._injected = False

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    @classmethod
    def from_cookies(cls, jar: CookieJar, config: CsrfConfig) -> CsrfToken:
        """Reuse the secret stored in *jar*, or generate a new one."""
        name = config.effective_cookie_name
        cookie = jar.get(name, config.key)
        if cookie is not None and is_well_formed_secret(cookie.value, config.secret_length):
            return cls(cookie.value, config, is_new=False)

        reason = "invalid" if name in jar else "missing"
        logger.debug("Issuing new CSRF secret (cookie %s: %s)", name, reason)
        return cls(generate_secret(config.secret_length), config, is_new=True)

    @classmethod
    def from_headers(cls, headers: Any, config: CsrfConfig) -> CsrfToken:
        """Extract the token from raw request headers."""
        return cls.from_cookies(CookieJar.parse(cookie_header_values(headers)), config)

    @property
    def secret(self) -> str:
        return self._secret

    @property
    def config(self) -> CsrfConfig:
        return self._config

    @property
    def is_new(self) -> bool:
        return self._is_new

    @property
    def injected(self) -> bool:
        """Whether the cookie was already attached to a response."""
        return self._injected

    def mark_injected(self) -> None:
        self._injected = True

    # ------------------------------------------------------------------
    # Authenticity tokens
    # ------------------------------------------------------------------

    def _mac(self) -> hmac.HMAC:
        try:
            mac = hmac.HMAC(bytes(self._config.salt), hashes.SHA256())
        except (TypeError, ValueError) as exc:
            raise CsrfSaltError("Could not initialise the MAC with the configured salt") from exc
        mac.update(self._secret.encode("utf-8"))
        return mac

    def authenticity_token(self) -> str:
        """Value to embed in forms; deterministic for a given secret and salt."""
        return base64.urlsafe_b64encode(self._mac().finalize()).decode("ascii")

    def verify(self, submitted: str) -> None:
        """Check a submitted authenticity token against the cookie secret.

        Raises:
            CsrfTokenError: *submitted* is empty or not canonical base64.
            CsrfVerifyError: *submitted* does not match.
        """
        if not isinstance(submitted, str) or not submitted:
            raise CsrfTokenError("Authenticity token is missing")
        try:
            digest = _decode_submitted(submitted)
        except (binascii.Error, ValueError) as exc:
            raise CsrfTokenError("Authenticity token could not be decoded") from exc

        mac = self._mac()
        if len(digest) != DIGEST_SIZE:
            raise CsrfVerifyError("Authenticity token verification failed")
        try:
            mac.verify(digest)
        except InvalidSignature as exc:
            raise CsrfVerifyError("Authenticity token verification failed") from exc

    def is_valid(self, submitted: str) -> bool:
        """Like :meth:`verify` but returns a bool for token mismatches."""
        try:
            self.verify(submitted)
        except (CsrfTokenError, CsrfVerifyError):
            return False
        return True

    # ------------------------------------------------------------------
    # Response emission
    # ------------------------------------------------------------------

    def to_cookie(self, now: datetime | None = None) -> Cookie:
        """The CSRF cookie carrying the plaintext secret."""
        config = self._config
        expires: datetime | None = None
        if config.lifespan:
            expires = (now or datetime.now(timezone.utc)) + config.lifespan
        return Cookie(
            name=config.effective_cookie_name,
            value=self._secret,
            path=config.cookie_path,
            domain=config.cookie_domain,
            expires=expires,
            max_age=int(config.lifespan.total_seconds()) if config.lifespan else None,
            secure=config.secure,
            http_only=config.http_only,
            same_site=config.same_site,
        )

    def set_cookie_headers(self, now: datetime | None = None) -> list[str]:
        """``Set-Cookie`` values issuing this token's cookie."""
        jar = CookieJar()
        jar.set(self.to_cookie(now), self._config.key)
        return jar.serialize_delta()

    def __repr__(self) -> str:
        return f"CsrfToken(is_new={self._is_new}, private={self._config.is_private})"

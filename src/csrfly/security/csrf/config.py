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
"""CsrfConfig: immutable cookie and token policy.

A single :class:`CsrfConfig` is built at startup and shared by every request.
All ``with_*`` helpers return a new, re-validated instance::

    config = (
        CsrfConfig.default()
        .with_cookie_name("csrf")
        .with_lifespan(timedelta(hours=1))
        .with_same_site(SameSite.STRICT)
    )
"""

from __future__ import annotations

import dataclasses
import re
import secrets
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum

from csrfly.kernel.exceptions import CsrfConfigError, CsrfSaltError
from csrfly.security.csrf.keys import Key

HOST_PREFIX = "__Host-"
"""Cookie-name prefix that pins a cookie to the exact host over HTTPS."""

DEFAULT_COOKIE_NAME = "Csrf_Token"
DEFAULT_LIFESPAN = timedelta(hours=6)
DEFAULT_SECRET_LENGTH = 16
DEFAULT_SALT_LENGTH = 32

# RFC 6265 token characters.
_COOKIE_NAME_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


class SameSite(Enum):
    """Cookie ``SameSite`` attribute."""

    STRICT = "Strict"
    LAX = "Lax"
    NONE = "None"

    @classmethod
    def parse(cls, value: str | SameSite) -> SameSite:
        """Accept an enum member or its case-insensitive name."""
        if isinstance(value, SameSite):
            return value
        for member in cls:
            if member.value.lower() == str(value).strip().lower():
                return member
        raise CsrfConfigError(f"Unknown SameSite value: {value!r}")


def _random_salt() -> bytes:
    return secrets.token_bytes(DEFAULT_SALT_LENGTH)


@dataclass(frozen=True)
class CsrfConfig:
    """Policy for the CSRF cookie and authenticity tokens.

    Attributes:
        cookie_name: Cookie name, before any ``__Host-`` prefix.
        cookie_path: Cookie ``Path``; ``"/"`` covers the whole site.
        cookie_domain: Cookie ``Domain``; ``None`` keeps it host-only.
        lifespan: Cookie lifetime.  ``timedelta(0)`` issues a session cookie
            without ``Expires``/``Max-Age``.  Otherwise it must be at least
            one second, the resolution of ``Max-Age``.
        secret_length: Number of characters in the secret token.
        same_site: Cross-site sending restriction.
        secure: Only send the cookie over HTTPS.
        http_only: Hide the cookie from JavaScript.
        prefix_with_host: Prefix the cookie name with ``__Host-``.  Requires
            ``secure``, path ``"/"`` and no domain.
        key: Encrypts the cookie value (private jar) when set.
        salt: HMAC key used to derive authenticity tokens.  A ``str`` is
            UTF-8 encoded.
    """

    cookie_name: str = DEFAULT_COOKIE_NAME
    cookie_path: str = "/"
    cookie_domain: str | None = None
    lifespan: timedelta = DEFAULT_LIFESPAN
    secret_length: int = DEFAULT_SECRET_LENGTH
    same_site: SameSite = SameSite.LAX
    secure: bool = False
    http_only: bool = True
    prefix_with_host: bool = False
    key: Key | None = field(default=None, repr=False)
    salt: bytes = field(default_factory=_random_salt, repr=False)

    def __post_init__(self) -> None:
        if isinstance(self.salt, str):
            object.__setattr__(self, "salt", self.salt.encode("utf-8"))
        if isinstance(self.same_site, str):
            object.__setattr__(self, "same_site", SameSite.parse(self.same_site))
        self._validate()

    def _validate(self) -> None:
        if not isinstance(self.salt, (bytes, bytearray)) or not self.salt:
            raise CsrfSaltError("CSRF salt must be non-empty bytes")
        if not isinstance(self.secret_length, int) or self.secret_length <= 0:
            raise CsrfConfigError(
                "secret_length must be a positive integer",
                context={"secret_length": self.secret_length},
            )
        if not _COOKIE_NAME_RE.match(self.cookie_name or ""):
            raise CsrfConfigError(
                "cookie_name must be a non-empty cookie token",
                context={"cookie_name": self.cookie_name},
            )
        if self.lifespan < timedelta(0):
            raise CsrfConfigError("lifespan must not be negative")
        if timedelta(0) < self.lifespan < timedelta(seconds=1):
            raise CsrfConfigError(
                "lifespan must be zero or at least one second",
                context={"lifespan": str(self.lifespan)},
            )
        if self.key is not None and not isinstance(self.key, Key):
            raise CsrfConfigError("key must be a csrfly Key instance")
        if self.prefix_with_host:
            if not self.secure:
                raise CsrfConfigError("__Host- cookies require secure=True")
            if self.cookie_path != "/":
                raise CsrfConfigError("__Host- cookies require cookie_path='/'")
            if self.cookie_domain is not None:
                raise CsrfConfigError("__Host- cookies must not set a domain")

    @classmethod
    def default(cls, private: bool = True) -> CsrfConfig:
        """Secure defaults; *private* adds a freshly generated cookie key.

        The generated key and salt live only as long as this instance, so
        cookies and rendered tokens do not survive a restart.  Supply both
        explicitly when that matters.
        """
        return cls(key=Key.generate() if private else None)

    @property
    def effective_cookie_name(self) -> str:
        """Cookie name as sent on the wire."""
        if self.prefix_with_host:
            return HOST_PREFIX + self.cookie_name
        return self.cookie_name

    @property
    def is_private(self) -> bool:
        return self.key is not None

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    def _replace(self, **changes: object) -> CsrfConfig:
        return dataclasses.replace(self, **changes)  # type: ignore[arg-type]

    def with_cookie_name(self, name: str) -> CsrfConfig:
        return self._replace(cookie_name=name)

    def with_cookie_path(self, path: str) -> CsrfConfig:
        return self._replace(cookie_path=path)

    def with_cookie_domain(self, domain: str | None) -> CsrfConfig:
        return self._replace(cookie_domain=domain)

    def with_lifespan(self, lifespan: timedelta) -> CsrfConfig:
        return self._replace(lifespan=lifespan)

    def with_secret_length(self, length: int) -> CsrfConfig:
        return self._replace(secret_length=length)

    def with_same_site(self, same_site: SameSite | str) -> CsrfConfig:
        return self._replace(same_site=SameSite.parse(same_site))

    def with_secure(self, secure: bool) -> CsrfConfig:
        return self._replace(secure=secure)

    def with_http_only(self, http_only: bool) -> CsrfConfig:
        return self._replace(http_only=http_only)

    def with_prefix_with_host(self, enabled: bool) -> CsrfConfig:
        """Toggle ``__Host-`` prefixing.

        Enabling also forces ``secure=True``, path ``"/"`` and no domain,
        the only combination browsers accept for host-prefixed cookies.
        """
        if enabled:
            return self._replace(prefix_with_host=True, secure=True, cookie_path="/", cookie_domain=None)
        return self._replace(prefix_with_host=False)

    def with_key(self, key: Key | None) -> CsrfConfig:
        return self._replace(key=key)

    def with_salt(self, salt: bytes | str) -> CsrfConfig:
        return self._replace(salt=salt)

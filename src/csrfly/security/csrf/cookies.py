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
"""Cookie store: request cookie parsing, private jar, Set-Cookie delta.

A :class:`CookieJar` keeps two snapshots:

* **original**: cookies parsed from the request's ``Cookie`` headers;
* **working**: cookies set (or removed) while handling the request.

Only the difference between the two is serialized back as ``Set-Cookie``
headers.  When a :class:`~csrfly.security.csrf.keys.Key` is supplied the
value is sealed with AES-256-GCM, the cookie name bound as associated data.
Anything that fails to parse, decode or authenticate is dropped silently:
callers see "no cookie" and issue a fresh one.
"""

from __future__ import annotations

import base64
import binascii
import http.cookies
import logging
import re
import secrets
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from email.utils import format_datetime
from urllib.parse import quote, unquote

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from csrfly.security.csrf.config import SameSite
from csrfly.security.csrf.keys import Key

logger = logging.getLogger(__name__)

NONCE_SIZE = 12
TAG_SIZE = 16

_COOKIE_NAME_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Cookie
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Cookie:
    """A single cookie plus the attributes emitted with ``Set-Cookie``."""

    name: str
    value: str
    path: str | None = None
    domain: str | None = None
    expires: datetime | None = None
    max_age: int | None = None
    secure: bool = False
    http_only: bool = False
    same_site: SameSite | None = None

    @classmethod
    def parse(cls, segment: str) -> Cookie | None:
        """Parse one ``name=value`` pair from a ``Cookie`` header.

        Returns ``None`` for anything that is not a well-formed pair.
        """
        name, sep, value = segment.strip().partition("=")
        name = name.strip()
        if not sep or not _COOKIE_NAME_RE.match(name):
            return None
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1]
        try:
            value = unquote(value, errors="strict")
        except UnicodeDecodeError:
            return None
        return cls(name=name, value=value)

    def with_value(self, value: str) -> Cookie:
        return replace(self, value=value)

    def encoded(self) -> str:
        """Render as a ``Set-Cookie`` header value (value percent-encoded)."""
        jar: http.cookies.BaseCookie[str] = http.cookies.SimpleCookie()
        jar[self.name] = quote(self.value, safe="")
        morsel = jar[self.name]
        if self.expires is not None:
            morsel["expires"] = format_datetime(self.expires.astimezone(timezone.utc), usegmt=True)
        if self.max_age is not None:
            morsel["max-age"] = str(self.max_age)
        if self.path is not None:
            morsel["path"] = self.path
        if self.domain is not None:
            morsel["domain"] = self.domain
        if self.secure:
            morsel["secure"] = True
        if self.http_only:
            morsel["httponly"] = True
        if self.same_site is not None:
            morsel["samesite"] = self.same_site.value
        return jar.output(header="").strip()


# ---------------------------------------------------------------------------
# Private (encrypted) values
# ---------------------------------------------------------------------------


def seal(name: str, value: str, key: Key) -> str:
    """Encrypt *value* for cookie *name*; the result is URL-safe base64."""
    nonce = secrets.token_bytes(NONCE_SIZE)
    ciphertext = AESGCM(key.material).encrypt(nonce, value.encode("utf-8"), name.encode("utf-8"))
    return base64.urlsafe_b64encode(nonce + ciphertext).rstrip(b"=").decode("ascii")


def unseal(name: str, sealed: str, key: Key) -> str | None:
    """Decrypt a value produced by :func:`seal`, or ``None`` if it does not verify."""
    try:
        raw = base64.urlsafe_b64decode(sealed.encode("ascii") + b"=" * (-len(sealed) % 4))
    except (binascii.Error, UnicodeEncodeError, ValueError):
        return None
    if len(raw) < NONCE_SIZE + TAG_SIZE:
        return None
    nonce, ciphertext = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
    try:
        plaintext = AESGCM(key.material).decrypt(nonce, ciphertext, name.encode("utf-8"))
        return plaintext.decode("utf-8")
    except (InvalidTag, UnicodeDecodeError):
        return None


# ---------------------------------------------------------------------------
# Jar
# ---------------------------------------------------------------------------


class CookieJar:
    """Per-request cookie set with original and working snapshots."""

    def __init__(self) -> None:
        self._original: dict[str, Cookie] = {}
        self._working: dict[str, Cookie] = {}

    @classmethod
    def parse(cls, header_values: Iterable[str | bytes]) -> CookieJar:
        """Build a jar from raw ``Cookie`` header values.

        Each value is split on ``;``; malformed segments are skipped.  When a
        name repeats, the first occurrence wins.
        """
        jar = cls()
        for header_value in header_values:
            if isinstance(header_value, bytes):
                header_value = header_value.decode("latin-1")
            for segment in header_value.split(";"):
                cookie = Cookie.parse(segment)
                if cookie is None:
                    if segment.strip():
                        logger.debug("Dropping malformed cookie segment")
                    continue
                jar.add_original(cookie)
        return jar

    def add_original(self, cookie: Cookie) -> None:
        self._original.setdefault(cookie.name, cookie)

    def _current(self, name: str) -> Cookie | None:
        if name in self._working:
            cookie = self._working[name]
            # pending removal
            return None if cookie.max_age == 0 and not cookie.value else cookie
        return self._original.get(name)

    def get(self, name: str, key: Key | None = None) -> Cookie | None:
        """Look up *name*, decrypting through the private jar when *key* is set.

        A value that fails to decrypt is reported as absent.
        """
        cookie = self._current(name)
        if cookie is None:
            return None
        if key is None:
            return cookie
        plaintext = unseal(name, cookie.value, key)
        if plaintext is None:
            logger.debug("Private cookie %s failed to decrypt", name)
            return None
        return cookie.with_value(plaintext)

    def set(self, cookie: Cookie, key: Key | None = None) -> None:
        """Place *cookie* in the working snapshot, encrypting when *key* is set."""
        if key is not None:
            cookie = cookie.with_value(seal(cookie.name, cookie.value, key))
        self._working[cookie.name] = cookie

    def remove(self, name: str, path: str | None = "/", domain: str | None = None) -> None:
        """Remove *name*; if the client sent it, an expiring cookie is emitted."""
        self._working.pop(name, None)
        if name in self._original:
            self._working[name] = Cookie(
                name=name,
                value="",
                path=path,
                domain=domain,
                expires=_EPOCH,
                max_age=0,
            )

    def delta(self) -> list[Cookie]:
        """Working cookies that are new or whose value changed."""
        changed: list[Cookie] = []
        for name, cookie in self._working.items():
            original = self._original.get(name)
            if original is None or original.value != cookie.value:
                changed.append(cookie)
        return changed

    def serialize_delta(self) -> list[str]:
        """``Set-Cookie`` header values for :meth:`delta`."""
        return [cookie.encoded() for cookie in self.delta()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._current(name) is not None

    def __iter__(self) -> Iterator[Cookie]:
        names = dict.fromkeys([*self._original, *self._working])
        for name in names:
            cookie = self._current(name)
            if cookie is not None:
                yield cookie

    def __len__(self) -> int:
        return sum(1 for _ in self)

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
"""Symmetric key material for private (encrypted) CSRF cookies."""

from __future__ import annotations

import base64
import binascii
import secrets

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from csrfly.kernel.exceptions import CsrfConfigError

KEY_LENGTH = 32
"""AES-256-GCM key size in bytes."""

_DERIVE_INFO = b"csrfly private cookie key"


class Key:
    """AES-256-GCM key used by the private cookie jar.

    Generate a key once and store it (e.g. base64 in a secrets file) when
    cookies must stay readable across process restarts.

    Args:
        material: Exactly :data:`KEY_LENGTH` bytes.
    """

    __slots__ = ("_material",)

    def __init__(self, material: bytes) -> None:
        if not isinstance(material, (bytes, bytearray)) or len(material) != KEY_LENGTH:
            raise CsrfConfigError(
                f"Cookie key must be exactly {KEY_LENGTH} bytes",
                context={"length": len(material) if isinstance(material, (bytes, bytearray)) else None},
            )
        self._material = bytes(material)

    @classmethod
    def generate(cls) -> Key:
        """Create a key from the OS CSPRNG."""
        return cls(secrets.token_bytes(KEY_LENGTH))

    @classmethod
    def from_base64(cls, encoded: str) -> Key:
        """Decode a key produced by :meth:`to_base64`."""
        try:
            raw = base64.urlsafe_b64decode(encoded.encode("ascii") + b"=" * (-len(encoded) % 4))
        except (binascii.Error, UnicodeEncodeError, ValueError) as exc:
            raise CsrfConfigError("Cookie key is not valid base64") from exc
        return cls(raw)

    @classmethod
    def derive_from(cls, master: bytes) -> Key:
        """Derive a key from a longer-lived master secret using HKDF-SHA256.

        The master secret must carry at least :data:`KEY_LENGTH` bytes.
        """
        if len(master) < KEY_LENGTH:
            raise CsrfConfigError(f"Master secret must be at least {KEY_LENGTH} bytes")
        hkdf = HKDF(algorithm=hashes.SHA256(), length=KEY_LENGTH, salt=None, info=_DERIVE_INFO)
        return cls(hkdf.derive(master))

    @property
    def material(self) -> bytes:
        return self._material

    def to_base64(self) -> str:
        return base64.urlsafe_b64encode(self._material).decode("ascii")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Key):
            return NotImplemented
        return secrets.compare_digest(self._material, other._material)

    def __hash__(self) -> int:
        return hash(self._material)

    def __repr__(self) -> str:
        return "Key(<hidden>)"

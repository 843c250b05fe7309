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
"""CSRF configuration properties."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from csrfly.core.config import config_properties
from csrfly.security.csrf.config import (
    DEFAULT_COOKIE_NAME,
    DEFAULT_LIFESPAN,
    DEFAULT_SECRET_LENGTH,
    CsrfConfig,
    SameSite,
)
from csrfly.security.csrf.keys import Key
from csrfly.security.csrf.service import DoubleSubmitCsrf

logger = logging.getLogger(__name__)


@config_properties(prefix="csrfly.csrf")
@dataclass
class CsrfProperties:
    """Settings for CSRF protection (csrfly.csrf.*).

    ``key`` is a base64-encoded 32-byte key.  Leave it unset with
    ``private: true`` to generate one at startup; cookies issued with a
    generated key become unreadable after a restart.  ``salt`` behaves the
    same way for authenticity tokens.
    """

    cookie_name: str = DEFAULT_COOKIE_NAME
    cookie_path: str = "/"
    cookie_domain: str | None = None
    lifespan_seconds: int = int(DEFAULT_LIFESPAN.total_seconds())
    secret_length: int = DEFAULT_SECRET_LENGTH
    same_site: str = "lax"
    secure: bool = False
    http_only: bool = True
    prefix_with_host: bool = False
    private: bool = True
    key: str | None = None
    salt: str | None = None
    refresh: bool = False

    def to_csrf_config(self) -> CsrfConfig:
        """Build the immutable :class:`CsrfConfig` these settings describe."""
        key: Key | None = None
        if self.key:
            key = Key.from_base64(self.key)
        elif self.private:
            logger.warning("No csrfly.csrf.key configured; generated a key valid until restart")
            key = Key.generate()

        config = CsrfConfig(
            cookie_name=self.cookie_name,
            cookie_path=self.cookie_path,
            cookie_domain=self.cookie_domain or None,
            lifespan=timedelta(seconds=self.lifespan_seconds),
            secret_length=self.secret_length,
            same_site=SameSite.parse(self.same_site),
            secure=self.secure,
            http_only=self.http_only,
            prefix_with_host=self.prefix_with_host,
            key=key,
        )
        if self.salt:
            return config.with_salt(self.salt)
        logger.warning("No csrfly.csrf.salt configured; generated a salt valid until restart")
        return config

    def to_service(self) -> DoubleSubmitCsrf:
        """Build the extraction/injection service, honouring ``refresh``."""
        return DoubleSubmitCsrf(self.to_csrf_config(), refresh=self.refresh)

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
"""DoubleSubmitCsrf: the default :class:`CsrfTokenPort` implementation."""

from __future__ import annotations

import logging
from typing import Any

from csrfly.kernel.exceptions import CsrfExtractionRejection
from csrfly.security.csrf.config import CsrfConfig
from csrfly.security.csrf.token import CsrfToken

logger = logging.getLogger(__name__)

MISSING_CONFIG_MESSAGE = "Can't extract CSRF config. Is it configured?"

CSRF_HEADER_NAME: str = "X-CSRF-Token"
"""Request header carrying the authenticity token for non-form clients."""

SAFE_METHODS: frozenset[str] = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})
"""HTTP methods that do not require CSRF validation."""


class DoubleSubmitCsrf:
    """Extracts tokens from request headers and writes their cookies back.

    Args:
        config: Policy used when :meth:`extract` is not given one.
        refresh: Re-issue the cookie on every response, not only when a new
            secret was generated.
    """

    def __init__(self, config: CsrfConfig | None = None, refresh: bool = False) -> None:
        self._config = config
        self._refresh = refresh

    @property
    def config(self) -> CsrfConfig | None:
        return self._config

    @property
    def refresh(self) -> bool:
        return self._refresh

    def extract(self, headers: Any, config: CsrfConfig | None = None) -> CsrfToken:
        """Build the request's :class:`CsrfToken`.

        Raises:
            CsrfExtractionRejection: No config was supplied or bound (500).
        """
        config = config or self._config
        if config is None:
            logger.error(MISSING_CONFIG_MESSAGE)
            raise CsrfExtractionRejection(MISSING_CONFIG_MESSAGE, status_code=500)
        return CsrfToken.from_headers(headers, config)

    def inject(self, token: CsrfToken, response: Any) -> list[str]:
        """Append the token's ``Set-Cookie`` header to *response* at most once.

        Nothing is written for a secret that came from a valid cookie unless
        ``refresh`` is on.  Returns the header values appended.
        """
        if token.injected or not (token.is_new or self._refresh):
            return []

        values = token.set_cookie_headers()
        for value in values:
            response.headers.append("set-cookie", value)
        token.mark_injected()
        return values

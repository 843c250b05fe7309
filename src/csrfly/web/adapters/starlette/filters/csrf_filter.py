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
"""CsrfFilter: double-submit cookie CSRF protection for Starlette.

For every request the filter extracts a :class:`CsrfToken` and exposes it as
``request.state.csrf_token`` so handlers can render
``token.authenticity_token()`` into forms.

* **Safe methods** (GET, HEAD, OPTIONS, TRACE) pass straight through.
* **Unsafe methods** must carry the authenticity token in the
  ``X-CSRF-Token`` header when ``require_header`` is on.  A missing header
  or a token that does not verify results in an HTTP 403 response.  With
  ``require_header=False`` handlers call
  ``request.state.csrf_token.verify(form_value)`` themselves.

The CSRF cookie is written back on the way out (including on 403 responses)
whenever the secret was freshly generated, or on every response when the
service was built with ``refresh``.
"""

from __future__ import annotations

from collections.abc import Callable, Coroutine, Sequence
from fnmatch import fnmatch
from typing import TYPE_CHECKING, Any

import structlog
from starlette.responses import JSONResponse

from csrfly.kernel.exceptions import CsrfExtractionRejection, CsrfTokenError, CsrfVerifyError
from csrfly.security.csrf.config import CsrfConfig
from csrfly.security.csrf.ports import CsrfTokenPort
from csrfly.security.csrf.service import CSRF_HEADER_NAME, SAFE_METHODS, DoubleSubmitCsrf
from csrfly.security.csrf.token import CsrfToken

if TYPE_CHECKING:
    from csrfly.config.properties.csrf import CsrfProperties

logger = structlog.get_logger("csrfly.web")

# Concrete type: Callable[[Request], Coroutine[Any, Any, Response]]
CallNext = Callable[..., Coroutine[Any, Any, Any]]


class CsrfFilter:
    """Double-submit cookie CSRF filter.

    Args:
        config: Policy for the CSRF cookie; ignored when *csrf* is given.
        csrf: Extraction/injection implementation.  Defaults to
            :class:`DoubleSubmitCsrf` over *config*.
        require_header: Verify unsafe requests from the ``X-CSRF-Token``
            header before the handler runs.
        header_name: Header carrying the authenticity token.
        url_patterns: Glob patterns of paths the filter guards; empty means
            every path.
        exclude_patterns: Glob patterns skipped even when *url_patterns*
            matches.
    """

    def __init__(
        self,
        config: CsrfConfig | None = None,
        *,
        csrf: CsrfTokenPort | None = None,
        require_header: bool = True,
        header_name: str = CSRF_HEADER_NAME,
        url_patterns: Sequence[str] = (),
        exclude_patterns: Sequence[str] = (),
    ) -> None:
        self._csrf: CsrfTokenPort = csrf if csrf is not None else DoubleSubmitCsrf(config)
        self._require_header = require_header
        self._header_name = header_name
        self.url_patterns = list(url_patterns)
        self.exclude_patterns = list(exclude_patterns)

    @classmethod
    def from_properties(cls, properties: CsrfProperties, **options: Any) -> CsrfFilter:
        """Filter over the service described by bound ``csrfly.csrf.*`` settings."""
        return cls(csrf=properties.to_service(), **options)

    def applies_to(self, path: str) -> bool:
        if self.url_patterns and not any(fnmatch(path, p) for p in self.url_patterns):
            return False
        return not any(fnmatch(path, p) for p in self.exclude_patterns)

    async def do_filter(self, request: Any, call_next: CallNext) -> Any:
        try:
            token = self._csrf.extract(request.headers)
        except CsrfExtractionRejection as exc:
            return JSONResponse({"error": str(exc)}, status_code=exc.status_code)

        request.state.csrf_config = token.config
        request.state.csrf_token = token

        if self._require_header and request.method not in SAFE_METHODS:
            rejection = self._check_header(request, token)
            if rejection is not None:
                self._csrf.inject(token, rejection)
                return rejection

        response = await call_next(request)
        self._csrf.inject(token, response)
        return response

    def _check_header(self, request: Any, token: CsrfToken) -> JSONResponse | None:
        submitted: str | None = request.headers.get(self._header_name)
        if not submitted:
            logger.info("csrf_token_missing", method=request.method, path=request.url.path)
            return JSONResponse({"error": "CSRF token missing"}, status_code=403)

        try:
            token.verify(submitted)
        except CsrfTokenError:
            logger.info("csrf_token_malformed", method=request.method, path=request.url.path)
            return JSONResponse({"error": "CSRF token invalid"}, status_code=403)
        except CsrfVerifyError:
            logger.warning(
                "csrf_verification_failed",
                method=request.method,
                path=request.url.path,
                new_secret=token.is_new,
            )
            return JSONResponse({"error": "CSRF token invalid"}, status_code=403)
        return None

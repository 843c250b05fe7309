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
"""CsrfMiddleware: pure ASGI middleware running a :class:`CsrfFilter`."""

from __future__ import annotations

from typing import Any

from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from csrfly.web.adapters.starlette.filters.csrf_filter import CsrfFilter


class CsrfMiddleware:
    """Guards the downstream ASGI app with *csrf_filter*.

    Paths the filter does not apply to are passed through untouched.  For
    guarded paths the downstream response is buffered into a Starlette
    ``Response`` so the filter can append ``Set-Cookie`` after the handler
    ran.

    Args:
        app: Downstream ASGI application.
        csrf_filter: Filter to run.  When omitted one is built from
            *filter_options* (the :class:`CsrfFilter` keyword arguments).
    """

    def __init__(
        self,
        app: ASGIApp,
        csrf_filter: CsrfFilter | None = None,
        **filter_options: Any,
    ) -> None:
        if csrf_filter is not None and filter_options:
            raise TypeError("pass either csrf_filter or CsrfFilter options, not both")
        self.app = app
        self._filter = csrf_filter if csrf_filter is not None else CsrfFilter(**filter_options)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive, send)
        if not self._filter.applies_to(request.url.path):
            await self.app(scope, receive, send)
            return

        async def _call_app(req: Any) -> Response:
            status_code = 200
            raw_headers: list[tuple[bytes, bytes]] = []
            body_parts: list[bytes] = []

            async def _intercept(message: Message) -> None:
                nonlocal status_code, raw_headers
                if message["type"] == "http.response.start":
                    status_code = message["status"]
                    raw_headers = list(message.get("headers", []))
                elif message["type"] == "http.response.body":
                    body = message.get("body", b"")
                    if body:
                        body_parts.append(body)

            await self.app(scope, receive, _intercept)

            response = Response(content=b"".join(body_parts), status_code=status_code)
            response.raw_headers[:] = raw_headers
            return response

        response: Response = await self._filter.do_filter(request, _call_app)
        await response(scope, receive, send)

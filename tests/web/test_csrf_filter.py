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
"""Tests for CsrfFilter: double-submit cookie protection for Starlette."""

from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route
from starlette.testclient import TestClient

from csrfly.config.properties import CsrfProperties
from csrfly.core.config import Config
from csrfly.kernel.exceptions import CsrfVerifyError
from csrfly.security.csrf.config import CsrfConfig
from csrfly.security.csrf.keys import Key
from csrfly.security.csrf.service import CSRF_HEADER_NAME, DoubleSubmitCsrf
from csrfly.security.csrf.token import CsrfToken
from csrfly.web.adapters.starlette.filters import CsrfFilter
from csrfly.web.adapters.starlette.middleware import CsrfMiddleware


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _form(request: Request) -> JSONResponse:
    token: CsrfToken = request.state.csrf_token
    return JSONResponse({"authenticity_token": token.authenticity_token()})


async def _submit(request: Request) -> PlainTextResponse:
    return PlainTextResponse("created", status_code=201)


async def _form_submit(request: Request) -> PlainTextResponse:
    form = await request.form()
    try:
        request.state.csrf_token.verify(str(form.get("authenticity_token", "")))
    except CsrfVerifyError:
        return PlainTextResponse("Token is invalid", status_code=403)
    return PlainTextResponse("Token is valid")


def _make_app(csrf_filter: CsrfFilter) -> Starlette:
    return Starlette(
        routes=[
            Route("/form", _form, methods=["GET"]),
            Route("/submit", _submit, methods=["POST"]),
            Route("/form-submit", _form_submit, methods=["POST"]),
            Route("/health", _submit, methods=["GET", "POST"]),
        ],
        middleware=[Middleware(CsrfMiddleware, csrf_filter=csrf_filter)],
    )


def _config(**overrides: object) -> CsrfConfig:
    return CsrfConfig(salt=b"abc", **overrides)  # type: ignore[arg-type]


def _make_request(
    method: str = "GET",
    path: str = "/submit",
    headers: dict[str, str] | None = None,
) -> SimpleNamespace:
    """Lightweight request double compatible with the filter."""
    return SimpleNamespace(
        method=method,
        url=SimpleNamespace(path=path),
        headers=headers or {},
        state=SimpleNamespace(),
    )


# ---------------------------------------------------------------------------
# End-to-end through the middleware
# ---------------------------------------------------------------------------


class TestCsrfFilterSafeMethods:
    def test_get_issues_cookie_and_exposes_token(self) -> None:
        client = TestClient(_make_app(CsrfFilter(_config())))
        resp = client.get("/form")

        assert resp.status_code == 200
        assert resp.json()["authenticity_token"]
        set_cookie = resp.headers.get("set-cookie", "")
        assert set_cookie.startswith("Csrf_Token=")
        assert "HttpOnly" in set_cookie
        assert "SameSite=Lax" in set_cookie

    def test_get_with_valid_cookie_does_not_reissue(self) -> None:
        client = TestClient(_make_app(CsrfFilter(_config())))
        first = client.get("/form")
        second = client.get("/form")

        assert "set-cookie" in first.headers
        assert "set-cookie" not in second.headers
        assert first.json() == second.json()

    def test_excluded_path_is_untouched(self) -> None:
        client = TestClient(_make_app(CsrfFilter(_config(), exclude_patterns=["/health"])))
        resp = client.post("/health")
        assert resp.status_code == 201
        assert "set-cookie" not in resp.headers


class TestCsrfFilterPaths:
    @pytest.mark.parametrize(
        ("url_patterns", "exclude_patterns", "path", "expected"),
        [
            ((), (), "/anything", True),
            (("/api/*",), (), "/api/orders", True),
            (("/api/*",), (), "/health", False),
            ((), ("/health",), "/health", False),
            (("/api/*",), ("/api/public/*",), "/api/public/feed", False),
        ],
    )
    def test_applies_to(self, url_patterns, exclude_patterns, path, expected) -> None:
        csrf_filter = CsrfFilter(
            _config(), url_patterns=url_patterns, exclude_patterns=exclude_patterns
        )
        assert csrf_filter.applies_to(path) is expected

    def test_unguarded_path_skips_check(self) -> None:
        client = TestClient(_make_app(CsrfFilter(_config(), url_patterns=["/form"])))
        resp = client.post("/submit")
        assert resp.status_code == 201
        assert "set-cookie" not in resp.headers


class TestCsrfFilterUnsafeMethods:
    def test_post_without_header_is_forbidden(self) -> None:
        client = TestClient(_make_app(CsrfFilter(_config())))
        resp = client.post("/submit")

        assert resp.status_code == 403
        assert resp.json() == {"error": "CSRF token missing"}
        assert resp.headers.get("set-cookie", "").startswith("Csrf_Token=")

    def test_post_with_valid_header_passes(self) -> None:
        client = TestClient(_make_app(CsrfFilter(_config())))
        authenticity = client.get("/form").json()["authenticity_token"]

        resp = client.post("/submit", headers={CSRF_HEADER_NAME: authenticity})

        assert resp.status_code == 201
        assert resp.text == "created"
        assert "set-cookie" not in resp.headers

    def test_post_with_foreign_token_is_forbidden(self) -> None:
        victim = TestClient(_make_app(CsrfFilter(_config())))
        attacker = TestClient(_make_app(CsrfFilter(_config())))
        victim.get("/form")
        forged = attacker.get("/form").json()["authenticity_token"]

        resp = victim.post("/submit", headers={CSRF_HEADER_NAME: forged})

        assert resp.status_code == 403
        assert resp.json() == {"error": "CSRF token invalid"}

    def test_post_with_malformed_header_is_forbidden(self) -> None:
        client = TestClient(_make_app(CsrfFilter(_config())))
        client.get("/form")
        resp = client.post("/submit", headers={CSRF_HEADER_NAME: "not base64!"})
        assert resp.status_code == 403
        assert resp.json() == {"error": "CSRF token invalid"}

    def test_private_cookie_round_trip(self) -> None:
        client = TestClient(_make_app(CsrfFilter(_config(key=Key.generate()))))
        authenticity = client.get("/form").json()["authenticity_token"]
        resp = client.post("/submit", headers={CSRF_HEADER_NAME: authenticity})
        assert resp.status_code == 201

    def test_rotated_key_forces_new_secret(self) -> None:
        issuer = TestClient(_make_app(CsrfFilter(_config(key=Key.generate()))))
        issuer.get("/form")
        cookie = issuer.cookies.get("Csrf_Token")
        assert cookie

        reader = TestClient(_make_app(CsrfFilter(_config(key=Key.generate()))))
        resp = reader.get("/form", headers={"Cookie": f"Csrf_Token={cookie}"})
        assert resp.status_code == 200
        assert resp.headers.get("set-cookie", "").startswith("Csrf_Token=")


class TestCsrfFilterFormVerification:
    def test_handler_verifies_form_field(self) -> None:
        client = TestClient(_make_app(CsrfFilter(_config(), require_header=False)))
        authenticity = client.get("/form").json()["authenticity_token"]

        ok = client.post("/form-submit", data={"authenticity_token": authenticity})
        forged = client.post(
            "/form-submit",
            data={"authenticity_token": CsrfToken("X" * 16, _config()).authenticity_token()},
        )

        assert ok.status_code == 200
        assert ok.text == "Token is valid"
        assert forged.status_code == 403

    def test_unsafe_method_without_header_reaches_handler(self) -> None:
        client = TestClient(_make_app(CsrfFilter(_config(), require_header=False)))
        assert client.post("/submit").status_code == 201


class TestCsrfFilterConfiguration:
    def test_missing_config_returns_500(self) -> None:
        client = TestClient(_make_app(CsrfFilter()))
        resp = client.get("/form")
        assert resp.status_code == 500
        assert "CSRF config" in resp.json()["error"]

    def test_session_cookie_lifespan(self) -> None:
        client = TestClient(_make_app(CsrfFilter(_config(lifespan=timedelta(0)))))
        set_cookie = client.get("/form").headers["set-cookie"]
        assert "expires" not in set_cookie.lower()
        assert "max-age" not in set_cookie.lower()

    def test_from_properties_without_refresh_issues_once(self) -> None:
        props = CsrfProperties(private=False, salt="abc")
        client = TestClient(_make_app(CsrfFilter.from_properties(props)))
        assert "set-cookie" in client.get("/form").headers
        assert "set-cookie" not in client.get("/form").headers

    def test_from_properties_with_refresh_reissues_cookie(self) -> None:
        settings = Config({"csrfly": {"csrf": {"salt": "abc", "refresh": "true"}}})
        csrf_filter = CsrfFilter.from_properties(settings.bind(CsrfProperties))
        client = TestClient(_make_app(csrf_filter))

        first = client.get("/form")
        second = client.get("/form")

        assert first.headers.get("set-cookie", "").startswith("Csrf_Token=")
        assert second.headers.get("set-cookie", "").startswith("Csrf_Token=")
        assert first.json() == second.json()

    def test_from_properties_passes_filter_options(self) -> None:
        props = CsrfProperties(private=False, salt="abc")
        client = TestClient(_make_app(CsrfFilter.from_properties(props, require_header=False)))
        assert client.post("/submit").status_code == 201


# ---------------------------------------------------------------------------
# Direct do_filter calls
# ---------------------------------------------------------------------------


class TestCsrfFilterDirect:
    @pytest.mark.asyncio
    async def test_state_is_populated(self) -> None:
        config = _config()
        csrf_filter = CsrfFilter(config)
        request = _make_request(method="GET")
        call_next = AsyncMock(return_value=Response("ok"))

        result = await csrf_filter.do_filter(request, call_next)

        call_next.assert_awaited_once_with(request)
        assert request.state.csrf_config is config
        assert isinstance(request.state.csrf_token, CsrfToken)
        assert result.headers.getlist("set-cookie")

    @pytest.mark.asyncio
    async def test_rejection_skips_handler(self) -> None:
        csrf_filter = CsrfFilter(_config())
        request = _make_request(method="DELETE", headers={CSRF_HEADER_NAME: "AAAA"})
        call_next = AsyncMock()

        result = await csrf_filter.do_filter(request, call_next)

        assert result.status_code == 403
        call_next.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_custom_port_and_header(self) -> None:
        config = _config()
        token = CsrfToken("Q" * 16, config)
        port = DoubleSubmitCsrf(config)
        csrf_filter = CsrfFilter(csrf=port, header_name="X-Form-Token")
        request = _make_request(
            method="PUT",
            headers={"cookie": f"Csrf_Token={token.secret}", "X-Form-Token": token.authenticity_token()},
        )
        call_next = AsyncMock(return_value=Response("ok"))

        result = await csrf_filter.do_filter(request, call_next)

        call_next.assert_awaited_once()
        assert result.headers.getlist("set-cookie") == []

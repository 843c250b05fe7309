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
"""Tests for the cookie store: parsing, private jar and Set-Cookie delta."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from csrfly.security.csrf.config import SameSite
from csrfly.security.csrf.cookies import Cookie, CookieJar, seal, unseal
from csrfly.security.csrf.keys import Key

NOW = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class TestCookieParse:
    def test_simple_pair(self) -> None:
        cookie = Cookie.parse(" session=abc123 ")
        assert cookie is not None
        assert cookie.name == "session"
        assert cookie.value == "abc123"

    def test_quoted_and_percent_encoded_value(self) -> None:
        cookie = Cookie.parse('name="a%20b"')
        assert cookie is not None
        assert cookie.value == "a b"

    def test_empty_value_allowed(self) -> None:
        cookie = Cookie.parse("flag=")
        assert cookie is not None
        assert cookie.value == ""

    def test_malformed_segments(self) -> None:
        assert Cookie.parse("novalue") is None
        assert Cookie.parse("=orphan") is None
        assert Cookie.parse("bad name=x") is None
        assert Cookie.parse("") is None

    def test_invalid_utf8_escape(self) -> None:
        assert Cookie.parse("x=%ff%fe") is None


class TestCookieEncoded:
    def test_all_attributes(self) -> None:
        cookie = Cookie(
            name="Csrf_Token",
            value="abc",
            path="/",
            domain="example.com",
            expires=NOW,
            max_age=3600,
            secure=True,
            http_only=True,
            same_site=SameSite.STRICT,
        )
        header = cookie.encoded()
        assert header.startswith("Csrf_Token=abc")
        assert "expires=Fri, 02 Jan 2026 03:04:05 GMT" in header
        assert "Max-Age=3600" in header
        assert "Path=/" in header
        assert "Domain=example.com" in header
        assert "Secure" in header
        assert "HttpOnly" in header
        assert "SameSite=Strict" in header

    def test_minimal_cookie_has_no_expiry(self) -> None:
        header = Cookie(name="a", value="b").encoded()
        assert header == "a=b"

    def test_value_is_percent_encoded(self) -> None:
        header = Cookie(name="a", value="x y;z").encoded()
        assert header == "a=x%20y%3Bz"
        parsed = Cookie.parse(header)
        assert parsed is not None
        assert parsed.value == "x y;z"


class TestCookieJarParse:
    def test_parses_multiple_headers_and_segments(self) -> None:
        jar = CookieJar.parse(["a=1; b=2", b"c=3"])
        assert jar.get("a").value == "1"
        assert jar.get("b").value == "2"
        assert jar.get("c").value == "3"
        assert len(jar) == 3

    def test_drops_malformed_segments(self) -> None:
        jar = CookieJar.parse(["garbage; ;; a=1; =x; b c=2"])
        assert [cookie.name for cookie in jar] == ["a"]

    def test_first_duplicate_wins(self) -> None:
        jar = CookieJar.parse(["a=first; a=second"])
        assert jar.get("a").value == "first"

    def test_empty_input(self) -> None:
        jar = CookieJar.parse([])
        assert len(jar) == 0
        assert jar.get("anything") is None

    def test_parsed_cookies_are_not_in_delta(self) -> None:
        assert CookieJar.parse(["a=1"]).delta() == []


class TestCookieJarWorkingSet:
    def test_new_cookie_in_delta(self) -> None:
        jar = CookieJar()
        jar.set(Cookie(name="a", value="1", path="/"))
        assert jar.serialize_delta() == ["a=1; Path=/"]

    def test_unchanged_value_not_in_delta(self) -> None:
        jar = CookieJar.parse(["a=1"])
        jar.set(Cookie(name="a", value="1"))
        assert jar.delta() == []

    def test_changed_value_in_delta(self) -> None:
        jar = CookieJar.parse(["a=1"])
        jar.set(Cookie(name="a", value="2"))
        assert [c.value for c in jar.delta()] == ["2"]
        assert jar.get("a").value == "2"

    def test_remove_existing_cookie_emits_expiry(self) -> None:
        jar = CookieJar.parse(["a=1"])
        jar.remove("a")
        assert jar.get("a") is None
        assert "a" not in jar
        (header,) = jar.serialize_delta()
        assert header.startswith("a=;") or header.startswith('a="";')
        assert "Max-Age=0" in header
        assert "1970" in header

    def test_remove_unsent_cookie_is_silent(self) -> None:
        jar = CookieJar()
        jar.set(Cookie(name="a", value="1"))
        jar.remove("a")
        assert jar.delta() == []


class TestPrivateJar:
    def test_set_encrypts_and_get_decrypts(self) -> None:
        key = Key.generate()
        jar = CookieJar()
        jar.set(Cookie(name="secret", value="plain-value"), key)

        (stored,) = jar.delta()
        assert stored.value != "plain-value"
        assert jar.get("secret", key).value == "plain-value"

    def test_wrong_key_is_absent(self) -> None:
        sealed = seal("secret", "plain-value", Key.generate())
        jar = CookieJar.parse([f"secret={sealed}"])
        assert jar.get("secret", Key.generate()) is None

    def test_plaintext_cookie_is_absent_in_private_lookup(self) -> None:
        jar = CookieJar.parse(["secret=plain-value"])
        assert jar.get("secret", Key.generate()) is None

    def test_value_bound_to_cookie_name(self) -> None:
        key = Key.generate()
        sealed = seal("one", "v", key)
        assert unseal("one", sealed, key) == "v"
        assert unseal("two", sealed, key) is None

    def test_tampered_value_is_absent(self) -> None:
        key = Key.generate()
        sealed = seal("n", "value", key)
        tampered = sealed[:-2] + ("A" if sealed[-2] != "A" else "B") + sealed[-1]
        assert unseal("n", tampered, key) is None

    def test_garbage_is_absent(self) -> None:
        key = Key.generate()
        assert unseal("n", "!!!", key) is None
        assert unseal("n", "", key) is None
        assert unseal("n", "é", key) is None

    def test_sealed_value_is_cookie_safe(self) -> None:
        sealed = seal("n", "value", Key.generate())
        header = Cookie(name="n", value=sealed).encoded()
        assert header == f"n={sealed}"


class TestSetCookieExpiry:
    def test_expiry_attributes(self) -> None:
        jar = CookieJar()
        jar.set(Cookie(name="a", value="1", expires=NOW + timedelta(hours=1), max_age=3600))
        (header,) = jar.serialize_delta()
        assert "expires=Fri, 02 Jan 2026 04:04:05 GMT" in header
        assert "Max-Age=3600" in header

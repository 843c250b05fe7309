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
"""csrfly exception hierarchy.

All errors raised by the package derive from :class:`CsrflyException`, which
carries a machine-readable ``code`` and a ``context`` dict.  The CSRF kinds
surfaced to callers are:

* :class:`CsrfSaltError`: the salt could not initialise the MAC.
* :class:`CsrfTokenError`: the submitted authenticity token is malformed.
* :class:`CsrfVerifyError`: the submitted token is well-formed but does not
  match the secret stored in the cookie.

Cookie parse and decrypt failures are intentionally absent: they are absorbed
by the cookie store and force a fresh secret.
"""

from __future__ import annotations


# =============================================================================
# Base Exception
# =============================================================================


class CsrflyException(Exception):
    """Base exception for all csrfly errors.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code (e.g. "CSRF_VERIFY").
        context: Arbitrary key-value pairs for error context and debugging.
    """

    default_code: str | None = None

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code if code is not None else self.default_code
        self.context: dict = context if context is not None else {}


# =============================================================================
# Business Exceptions
# =============================================================================


class BusinessException(CsrflyException):
    """Rule violations in caller-supplied values."""


class ValidationException(BusinessException):
    """Input validation failures."""


class CsrfConfigError(ValidationException):
    """A CSRF configuration value violates a cookie or key invariant."""

    default_code = "CSRF_CONFIG"


# =============================================================================
# Security Exceptions
# =============================================================================


class SecurityException(CsrflyException):
    """Request-forgery and token errors."""


class CsrfException(SecurityException):
    """Base class for authenticity-token failures."""


class CsrfSaltError(CsrfException):
    """The configured salt cannot be used as MAC key material."""

    default_code = "CSRF_SALT"


class CsrfTokenError(CsrfException):
    """The submitted authenticity token is missing or not decodable."""

    default_code = "CSRF_TOKEN"


class CsrfVerifyError(CsrfException):
    """The submitted authenticity token does not match the cookie secret."""

    default_code = "CSRF_VERIFY"


# =============================================================================
# Extraction
# =============================================================================


class CsrfExtractionRejection(CsrflyException):
    """A CsrfToken could not be extracted for the current request.

    Carries an HTTP-like ``status_code`` for the surrounding pipeline.
    """

    default_code = "CSRF_EXTRACTION"

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message, code=code, context=context)
        self.status_code = status_code

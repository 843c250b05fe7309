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
"""csrfly: double-submit-cookie CSRF protection.

A secret lives in a (optionally encrypted) cookie; pages embed an HMAC-derived
authenticity token; state-changing requests prove knowledge of the secret by
submitting that token back.
"""

from csrfly.kernel.exceptions import (
    CsrfConfigError,
    CsrfException,
    CsrfExtractionRejection,
    CsrflyException,
    CsrfSaltError,
    CsrfTokenError,
    CsrfVerifyError,
)
from csrfly.security.csrf import (
    Cookie,
    CookieJar,
    CsrfConfig,
    CsrfToken,
    CsrfTokenPort,
    DoubleSubmitCsrf,
    Key,
    SameSite,
)

__version__ = "0.1.0"

__all__ = [
    "Cookie",
    "CookieJar",
    "CsrfConfig",
    "CsrfConfigError",
    "CsrfException",
    "CsrfExtractionRejection",
    "CsrfSaltError",
    "CsrfToken",
    "CsrfTokenError",
    "CsrfTokenPort",
    "CsrfVerifyError",
    "CsrflyException",
    "DoubleSubmitCsrf",
    "Key",
    "SameSite",
    "__version__",
]

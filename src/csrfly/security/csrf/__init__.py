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
"""Double-submit-cookie CSRF protection.

Typical use::

    config = CsrfConfig.default().with_salt(settings.csrf_salt)
    csrf = DoubleSubmitCsrf(config)

    token = csrf.extract(request.headers)
    html = render(form, authenticity_token=token.authenticity_token())
    csrf.inject(token, response)

    # on submission
    token.verify(form["authenticity_token"])
"""

from csrfly.security.csrf.config import CsrfConfig, SameSite
from csrfly.security.csrf.cookies import Cookie, CookieJar
from csrfly.security.csrf.keys import Key
from csrfly.security.csrf.ports import CsrfTokenPort
from csrfly.security.csrf.service import DoubleSubmitCsrf
from csrfly.security.csrf.token import CsrfToken

__all__ = [
    "Cookie",
    "CookieJar",
    "CsrfConfig",
    "CsrfToken",
    "CsrfTokenPort",
    "DoubleSubmitCsrf",
    "Key",
    "SameSite",
]

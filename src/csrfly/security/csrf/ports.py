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
"""CsrfTokenPort: how a request pipeline obtains and emits CSRF tokens."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from csrfly.security.csrf.config import CsrfConfig
from csrfly.security.csrf.token import CsrfToken


@runtime_checkable
class CsrfTokenPort(Protocol):
    """Framework-agnostic extraction/injection interface.

    The surrounding pipeline calls :meth:`extract` once per request and
    :meth:`inject` once on the response that used the token.
    """

    def extract(self, headers: Any, config: CsrfConfig | None = None) -> CsrfToken: ...

    def inject(self, token: CsrfToken, response: Any) -> list[str]: ...

from __future__ import annotations

from typing import Protocol

from authgate.application.dto.auth import ProviderTokens
from authgate.domain.entities.user import ExternalIdentity


class GoogleOauthPort(Protocol):
    def build_authorization_url(self, *, state: str) -> str:
        ...

    def exchange_code(self, *, code: str) -> ProviderTokens:
        ...

    def fetch_profile(self, *, access_token: str) -> ExternalIdentity:
        ...

    def verify_id_token(self, *, id_token: str) -> ExternalIdentity:
        ...

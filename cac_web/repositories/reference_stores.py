from __future__ import annotations

from typing import Optional

from cac_web.domain.models import ProviderCredential


class CredentialStore:
    """Read-only view of a user's provider keys (owned by key management)."""

    def get_active_credentials(self, user_id: str) -> list[ProviderCredential]:
        raise NotImplementedError


class PromptStore:
    """Admin-editable prompt templates keyed by string."""

    def get_active_prompt(self, prompt_key: str) -> Optional[str]:
        raise NotImplementedError

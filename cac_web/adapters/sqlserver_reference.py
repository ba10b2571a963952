from __future__ import annotations

from typing import List, Optional

from cac_web.adapters.sqlserver_connection import SqlServerConnection, row_get
from cac_web.domain.models import ProviderCredential
from cac_web.repositories.reference_stores import CredentialStore, PromptStore


class SqlServerCredentialStore(CredentialStore):
    def __init__(self, db: SqlServerConnection, table_name: str = "dbo.ApiKeys"):
        self.db = db
        self.table_name = table_name

    def get_active_credentials(self, user_id: str) -> List[ProviderCredential]:
        q = f"""
        SELECT
            provider,
            encrypted_key,
            status,
            is_active
        FROM {self.table_name}
        WHERE user_id = ?
          AND is_active = 1
          AND status = 'active'
        ORDER BY provider
        """

        with self.db.connect() as conn:
            cur = conn.cursor()
            rows = cur.execute(q, user_id).fetchall()

        out: List[ProviderCredential] = []
        for r in rows:
            provider = str(row_get(r, "provider", "") or "").strip().lower()
            secret = str(row_get(r, "encrypted_key", "") or "")
            if not provider or not secret:
                continue
            out.append(
                ProviderCredential(
                    provider=provider,
                    secret=secret,
                    is_active=bool(row_get(r, "is_active", True)),
                    status=str(row_get(r, "status", "active") or "active"),
                )
            )
        return out


class SqlServerPromptStore(PromptStore):
    def __init__(self, db: SqlServerConnection, table_name: str = "dbo.Prompts"):
        self.db = db
        self.table_name = table_name

    def get_active_prompt(self, prompt_key: str) -> Optional[str]:
        q = f"""
        SELECT TOP 1 content
        FROM {self.table_name}
        WHERE prompt_key = ?
          AND is_active = 1
        ORDER BY updated_at DESC
        """

        with self.db.connect() as conn:
            cur = conn.cursor()
            r = cur.execute(q, prompt_key).fetchone()

        if not r:
            return None
        content = str(row_get(r, "content", "") or "")
        return content or None

from __future__ import annotations

import json
from configparser import ConfigParser
from typing import Any

import pyodbc


def row_get(r, name: str, default: Any = None) -> Any:
    return getattr(r, name, default)


def dumps_or_none(value: Any) -> str | None:
    return None if value is None else json.dumps(value)


def loads_or_none(raw: Any) -> Any:
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return {"raw": str(raw)}


class SqlServerConnection:
    """
    Reads [sqlserver] from the application INI and hands out pyodbc connections.
    Shared by every SQL Server adapter.
    """

    def __init__(self, ini_path: str):
        self.ini_path = ini_path

        cfg = ConfigParser()
        ok = cfg.read(self.ini_path, encoding="utf-8-sig")
        if not ok:
            raise FileNotFoundError(f"INI not found or unreadable: {self.ini_path}")

        if "sqlserver" not in cfg:
            raise KeyError("Missing [sqlserver] section in INI")

        s = cfg["sqlserver"]
        self._driver = (s.get("driver", "ODBC Driver 18 for SQL Server") or "").strip()
        self._server = (s.get("server", "localhost") or "").strip()
        self._database = (s.get("database", "") or "").strip()
        self._username = (s.get("username", "") or "").strip()
        self._password = (s.get("password", "") or "").strip()

        trust_raw = (s.get("trust_cert", "yes") or "").strip().lower()
        self._trust_cert = trust_raw in ("yes", "true", "1")

        if not self._database:
            raise ValueError("sqlserver.database is empty in INI")

    def connection_string(self) -> str:
        parts = [
            f"DRIVER={{{self._driver}}}",
            f"SERVER={self._server}",
            f"DATABASE={self._database}",
        ]

        if self._username:
            parts.append(f"UID={self._username}")
            parts.append(f"PWD={self._password}")
        else:
            parts.append("Trusted_Connection=yes")

        if self._trust_cert:
            parts.append("TrustServerCertificate=yes")

        return ";".join(parts) + ";"

    def connect(self):
        return pyodbc.connect(self.connection_string())

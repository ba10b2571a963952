########## ini_config.py

import os
from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from cac_web.domain.models import ProviderSpec

INI_DEFAULT_NAME = "competitor_analysis.ini"

# name -> (priority, nominal cost per call, model)
DEFAULT_PROVIDERS = {
    "openai": (1, 0.03, "gpt-4o"),
    "anthropic": (2, 0.025, "claude-3-5-sonnet-20241022"),
    "gemini": (3, 0.02, "gemini-1.5-pro"),
    "perplexity": (4, 0.01, "llama-3.1-sonar-large-128k-online"),
}


@dataclass(frozen=True)
class AppSettings:
    flask_host: str
    flask_port: int
    flask_debug: bool

    jwt_secret: str
    jwt_audience: Optional[str]

    job_workers: int
    competitor_workers: int
    provider_timeout_seconds: int
    connect_timeout_seconds: int
    stale_job_minutes: int
    watchdog_interval_seconds: int

    providers: tuple[ProviderSpec, ...]

    analysis_prompt_key: str
    insights_prompt_key: str

    remaining_credits: int
    subscription_level: str

    log_level: str


class IniConfig:
    """
    Adapter around ConfigParser.
    Keeps INI handling out of the service and web code.
    """

    def __init__(self, ini_path: Path):
        self._ini_path = ini_path
        self._cfg = ConfigParser()
        read_ok = self._cfg.read(str(ini_path), encoding="utf-8-sig")
        if not read_ok:
            raise FileNotFoundError(f"INI file not found or unreadable: {ini_path}")

    @property
    def ini_path(self) -> Path:
        return self._ini_path

    @staticmethod
    def from_env_or_default() -> "IniConfig":
        ini_raw = (os.getenv("APP_INI") or "").strip()
        # If APP_INI is not set, default to repo-root-relative ini location
        ini_path = Path(ini_raw) if ini_raw else (Path(__file__).resolve().parents[2] / INI_DEFAULT_NAME)
        return IniConfig(ini_path)

    def _str(self, section: str, key: str, fallback: str = "") -> str:
        return (self._cfg.get(section, key, fallback=fallback) or "").strip()

    def _load_providers(self) -> tuple[ProviderSpec, ...]:
        """
        [providers] order lists the enabled providers; each one may be tuned in
        its own [provider.<name>] section. Order in the list only matters as a
        tie-break; priority decides.
        """
        order_raw = self._str("providers", "order", fallback=",".join(DEFAULT_PROVIDERS))
        names = [n.strip().lower() for n in order_raw.split(",") if n.strip()]

        specs: list[ProviderSpec] = []
        for idx, name in enumerate(names):
            default_priority, default_cost, default_model = DEFAULT_PROVIDERS.get(name, (idx + 1, 0.0, ""))
            sec = f"provider.{name}"
            specs.append(
                ProviderSpec(
                    name=name,
                    priority=self._cfg.getint(sec, "priority", fallback=default_priority),
                    cost=self._cfg.getfloat(sec, "cost", fallback=default_cost),
                    model=self._str(sec, "model", fallback=default_model) or default_model,
                )
            )

        return tuple(sorted(specs, key=lambda s: s.priority))

    def load_settings(self) -> AppSettings:
        # Auth
        jwt_secret = self._str("auth", "jwt_secret")
        jwt_audience = self._str("auth", "jwt_audience") or None

        # Execution
        job_workers = self._cfg.getint("execution", "job_workers", fallback=4)
        competitor_workers = self._cfg.getint("execution", "competitor_workers", fallback=1)
        provider_timeout_seconds = self._cfg.getint("execution", "provider_timeout_seconds", fallback=60)
        connect_timeout_seconds = self._cfg.getint("execution", "connect_timeout_seconds", fallback=10)
        stale_job_minutes = self._cfg.getint("execution", "stale_job_minutes", fallback=30)
        watchdog_interval_seconds = self._cfg.getint("execution", "watchdog_interval_seconds", fallback=60)

        # Prompts
        analysis_prompt_key = self._str("prompts", "analysis_key") or "competitor_analysis_main"
        insights_prompt_key = self._str("prompts", "insights_key") or "competitor_analysis_insights"

        # Permissions (static capability object)
        remaining_credits = self._cfg.getint("permissions", "remaining_credits", fallback=100)
        subscription_level = self._str("permissions", "subscription_level") or "pro"

        log_level = (self._str("logging", "level") or "INFO").upper()

        # Flask
        flask_host = self._str("flask", "host") or "127.0.0.1"
        flask_port = self._cfg.getint("flask", "port", fallback=5000)
        flask_debug = self._cfg.getboolean("flask", "debug", fallback=False)

        # Validate
        if not jwt_secret:
            raise ValueError("auth.jwt_secret is empty in INI")
        if job_workers < 1:
            raise ValueError("execution.job_workers must be >= 1")
        if competitor_workers < 1:
            raise ValueError("execution.competitor_workers must be >= 1")

        return AppSettings(
            flask_host=flask_host,
            flask_port=flask_port,
            flask_debug=flask_debug,
            jwt_secret=jwt_secret,
            jwt_audience=jwt_audience,
            job_workers=job_workers,
            competitor_workers=competitor_workers,
            provider_timeout_seconds=provider_timeout_seconds,
            connect_timeout_seconds=connect_timeout_seconds,
            stale_job_minutes=stale_job_minutes,
            watchdog_interval_seconds=watchdog_interval_seconds,
            providers=self._load_providers(),
            analysis_prompt_key=analysis_prompt_key,
            insights_prompt_key=insights_prompt_key,
            remaining_credits=remaining_credits,
            subscription_level=subscription_level,
            log_level=log_level,
        )

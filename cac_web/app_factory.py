from __future__ import annotations

import atexit
import logging
from datetime import timedelta

from flask import Flask

from cac_web.adapters.llm_providers import OpenAIProvider, ProviderRegistry
from cac_web.adapters.sqlserver_analyses import SqlServerAnalysisRepository
from cac_web.adapters.sqlserver_connection import SqlServerConnection
from cac_web.adapters.sqlserver_reference import SqlServerCredentialStore, SqlServerPromptStore
from cac_web.auth.tokens import TokenVerifier
from cac_web.config.ini_config import AppSettings, IniConfig
from cac_web.services.ai_gateway import AIGateway
from cac_web.services.analysis_service import AnalysisService
from cac_web.services.consolidation import InsightGenerator
from cac_web.services.job_runner import JobRunner, JobWatchdog
from cac_web.services.prompt_resolver import PromptResolver
from cac_web.web.routes import create_blueprint

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s",
    )


def permissions_for(settings: AppSettings) -> dict:
    return {
        "canAnalyze": True,
        "canExport": True,
        "remainingCredits": settings.remaining_credits,
        "subscriptionLevel": settings.subscription_level,
    }


def create_app() -> Flask:
    ini = IniConfig.from_env_or_default()
    settings = ini.load_settings()
    configure_logging(settings.log_level)

    db = SqlServerConnection(ini_path=str(ini.ini_path))
    analysis_repo = SqlServerAnalysisRepository(db)
    credential_store = SqlServerCredentialStore(db)
    prompt_store = SqlServerPromptStore(db)

    prompts = PromptResolver(
        prompt_store=prompt_store,
        analysis_key=settings.analysis_prompt_key,
        insights_key=settings.insights_prompt_key,
    )

    registry = ProviderRegistry.from_specs(
        settings.providers,
        timeout_seconds=settings.provider_timeout_seconds,
        connect_timeout_seconds=settings.connect_timeout_seconds,
    )

    gateway = AIGateway(providers=settings.providers, registry=registry, prompts=prompts)
    # Insights always go through OpenAI, even when it is not in the fallback chain
    if "openai" in registry:
        openai = registry.get("openai")
    else:
        openai = OpenAIProvider(
            timeout_seconds=settings.provider_timeout_seconds,
            connect_timeout_seconds=settings.connect_timeout_seconds,
        )
    insights = InsightGenerator(openai=openai, prompts=prompts)

    runner = JobRunner(max_workers=settings.job_workers)

    analysis_service = AnalysisService(
        repo=analysis_repo,
        credentials=credential_store,
        gateway=gateway,
        insights=insights,
        runner=runner,
        competitor_workers=settings.competitor_workers,
    )

    # Jobs left running by a previous process can never finish
    watchdog = JobWatchdog(
        repo=analysis_repo,
        stale_after=timedelta(minutes=settings.stale_job_minutes),
        interval_seconds=settings.watchdog_interval_seconds,
    )
    try:
        watchdog.sweep()
    except Exception:
        logger.exception("Initial stale-job sweep failed")
    watchdog.start()

    atexit.register(watchdog.stop)
    atexit.register(runner.shutdown, False)

    token_verifier = TokenVerifier(secret=settings.jwt_secret, audience=settings.jwt_audience)

    app = Flask(__name__)
    app.register_blueprint(create_blueprint(analysis_service, token_verifier, permissions_for(settings)))

    app.config["HOST"] = settings.flask_host
    app.config["PORT"] = settings.flask_port
    app.config["DEBUG"] = settings.flask_debug

    app.extensions["analysis_service"] = analysis_service
    app.extensions["job_watchdog"] = watchdog

    return app

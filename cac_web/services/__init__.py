from .ai_gateway import AIGateway
from .analysis_service import AnalysisService
from .consolidation import InsightGenerator, consolidate
from .job_runner import JobRunner, JobWatchdog
from .prompt_resolver import PromptResolver

__all__ = [
    "AIGateway",
    "AnalysisService",
    "InsightGenerator",
    "JobRunner",
    "JobWatchdog",
    "PromptResolver",
    "consolidate",
]

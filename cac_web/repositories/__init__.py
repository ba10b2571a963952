from .analysis_repository import AnalysisRepository
from .reference_stores import CredentialStore, PromptStore

__all__ = [
    "AnalysisRepository",
    "CredentialStore",
    "PromptStore",
]

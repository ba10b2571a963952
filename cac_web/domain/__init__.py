from .models import (
    AnalysisJob,
    AnalysisOptions,
    AuthUser,
    ConsolidatedResult,
    Parsed,
    ProviderAttempt,
    ProviderCredential,
    ProviderSpec,
    Raw,
    parse_provider_output,
)

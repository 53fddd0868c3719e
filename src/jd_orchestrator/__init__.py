from .classifier import InputClassification, InputClassifier, InputMode
from .config import OrchestratorConfig
from .contracts import ChatMessage, GenerationRequest, GenerationResult, ProviderConfig
from .drafts import Draft, DraftLifecycle, DraftStatus, InMemoryDraftStore, InputType
from .errors import (
    AllProvidersExhaustedError,
    ConfigurationInvalidError,
    CooldownActiveError,
    OrchestrationError,
    ValidationFailedError,
)
from .extraction import DocumentExtractor, StructuredDocument
from .followups import FollowUpAdvisor
from .invoker import ResilientInvoker
from .orchestrator import GenerationOrchestrator, GenerationOutcome, OutcomeStatus
from .rate_limit import RateLimitTracker
from .registry import ProviderRegistry

__all__ = [
    "AllProvidersExhaustedError",
    "ChatMessage",
    "ConfigurationInvalidError",
    "CooldownActiveError",
    "DocumentExtractor",
    "Draft",
    "DraftLifecycle",
    "DraftStatus",
    "FollowUpAdvisor",
    "GenerationOrchestrator",
    "GenerationOutcome",
    "GenerationRequest",
    "GenerationResult",
    "InMemoryDraftStore",
    "InputClassification",
    "InputClassifier",
    "InputMode",
    "InputType",
    "OrchestrationError",
    "OrchestratorConfig",
    "OutcomeStatus",
    "ProviderConfig",
    "ProviderRegistry",
    "RateLimitTracker",
    "ResilientInvoker",
    "StructuredDocument",
    "ValidationFailedError",
]

"""Generation and release automation for client library repositories."""

__version__ = "0.1.0"
from .automation import AutomationDecision, Permission, generation_decision, permits, release_decision
from .batch import BatchResult, prepare_releases, regenerate_libraries
from .errors import (
    AllItemsFailedError,
    AmbiguousLibraryError,
    CommandFailedError,
    ConfigurationError,
    InvariantViolation,
    LibrarianError,
    PublishError,
)
from .generate import GenerateResult, RawGeneration, RefinedGeneration, plan_generation, run_generate
from .outcomes import OutcomeAggregator, PullRequestContent, render_description
from .pullrequest import PullRequestPlan, PullRequestPublisher, plan_pull_request
from .resolver import resolve_library_id, validate_state
from .settings import LibrarianSettings
from .state import AutomationLevel, LibraryState, PipelineConfig, PipelineState

__all__ = [
    "__version__",
    "AllItemsFailedError",
    "AmbiguousLibraryError",
    "AutomationDecision",
    "AutomationLevel",
    "BatchResult",
    "CommandFailedError",
    "ConfigurationError",
    "GenerateResult",
    "InvariantViolation",
    "LibrarianError",
    "LibrarianSettings",
    "LibraryState",
    "OutcomeAggregator",
    "Permission",
    "PipelineConfig",
    "PipelineState",
    "PublishError",
    "PullRequestContent",
    "PullRequestPlan",
    "PullRequestPublisher",
    "RawGeneration",
    "RefinedGeneration",
    "generation_decision",
    "permits",
    "plan_generation",
    "plan_pull_request",
    "prepare_releases",
    "regenerate_libraries",
    "release_decision",
    "render_description",
    "resolve_library_id",
    "run_generate",
    "validate_state",
]

"""Builder domain: scope routing, scope runners, violation reduction, build orchestrator."""

from depscope.builder.orchestrator import BuildError, BuildOrchestrator, BuildResult
from depscope.builder.reducer import ViolationReducer, build_message
from depscope.builder.router import ScopeRouter, TreeVisitor
from depscope.builder.runner import (
    ArtifactError,
    ArtifactNamer,
    BuildCancelled,
    ErrorBudget,
    ScopeRunner,
)

__all__ = [
    "ArtifactError",
    "ArtifactNamer",
    "BuildCancelled",
    "BuildError",
    "BuildOrchestrator",
    "BuildResult",
    "ErrorBudget",
    "ScopeRouter",
    "ScopeRunner",
    "TreeVisitor",
    "ViolationReducer",
    "build_message",
]

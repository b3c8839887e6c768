"""Case triage: deterministic routing with a bounded agent fallback."""

from .orchestrator import AgentOrchestrator
from .pipeline import Pipeline, build_pipeline
from .router import DeterministicRouter

__all__ = ["AgentOrchestrator", "DeterministicRouter", "Pipeline", "build_pipeline"]

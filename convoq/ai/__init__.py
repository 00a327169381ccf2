"""AI feature orchestration - caches, remote calls, coordinators"""

from __future__ import annotations


def __getattr__(name: str):
    """
    Lazy imports so lightweight modules (cache, state, errors) load without
    pulling in httpx and tenacity.
    """
    if name == "Orchestrator":
        from convoq.ai.orchestrator import Orchestrator

        return Orchestrator

    if name == "OrchestratorSettings":
        from convoq.ai.settings import OrchestratorSettings

        return OrchestratorSettings

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)

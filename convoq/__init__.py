"""convoq - AI feature orchestration for a chat client"""

from __future__ import annotations

__version__ = "0.1.0"


# Lazy imports so `import convoq` stays cheap
def __getattr__(name: str):
    if name in ("Orchestrator", "OrchestratorSettings"):
        from convoq import ai

        return getattr(ai, name)

    if name == "LocalStore":
        from convoq.storage.local import LocalStore

        return LocalStore

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)

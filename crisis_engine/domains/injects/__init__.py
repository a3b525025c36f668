"""
Inject module

- triggers: compile and match trigger conditions, tie-break selection
- themes: theme usage aggregate and decision-history summary
- queue: trainer-facing inject queue
- models: ledger, event log, generation status
"""

from .schemas import (
    TriggerSource,
    SessionEventType,
    GenerationState,
    InjectQueueStatus,
    InjectContent,
    PublishedInjectView,
    SessionEventRecord,
    ClaimResult,
    GenerationStatusView,
    InjectQueueItem,
)
from .models import PublishedInject, SessionEvent, InjectGenerationStatus


__all__ = [
    "TriggerSource",
    "SessionEventType",
    "GenerationState",
    "InjectQueueStatus",
    "InjectContent",
    "PublishedInjectView",
    "SessionEventRecord",
    "ClaimResult",
    "GenerationStatusView",
    "InjectQueueItem",
    "PublishedInject",
    "SessionEvent",
    "InjectGenerationStatus",
]

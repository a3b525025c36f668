"""
Session module

Core pieces:
- SessionLifecycleService: status transitions, pause accounting
- ScenarioClock: elapsed scenario time excluding pauses
- state_rules: current_state derivation from decisions and injects
"""

from .schemas import SessionStatus, SessionSnapshot, SessionResponse
from .models import SimSession
from .clock import ScenarioClock, SystemClock
from .service import SessionLifecycleService
from .router import router as sessions_router


__all__ = [
    "SessionStatus",
    "SessionSnapshot",
    "SessionResponse",
    "SimSession",
    "ScenarioClock",
    "SystemClock",
    "SessionLifecycleService",
    "sessions_router",
]

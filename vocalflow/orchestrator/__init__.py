from .state import SessionState, InterviewSession
from .orchestrator import SessionOrchestrator


__all__ = [
    'SessionState',
    'InterviewSession',
    'SessionOrchestrator',
]

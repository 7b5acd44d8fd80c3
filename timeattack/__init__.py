"""
Time Attack - track work against estimates, one session at a time
"""

__version__ = "0.1.0"

from .services.database import DatabaseManager
from .services.engine import SessionEngine
from .services.intents import IntentDispatcher, Transition
from .services.metrics import MetricsCollector
from .models.session import Session, SessionTask

__all__ = [
    'DatabaseManager',
    'SessionEngine',
    'IntentDispatcher',
    'Transition',
    'MetricsCollector',
    'Session',
    'SessionTask',
]

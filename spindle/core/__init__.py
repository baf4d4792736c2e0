"""
Core module.

Exports:
- EngineConfig: Engine configuration
- EventBus, Event, DialogueEvent: Event system
- Exception hierarchy rooted at DialogueError
"""

from spindle.core.config import EngineConfig
from spindle.core.events import EventBus, Event, DialogueEvent
from spindle.core.errors import (
    DialogueError,
    LoadError,
    ParseError,
    DuplicateNodeError,
    EvaluationError,
    UnknownVariableError,
    UnknownFunctionError,
    ArityError,
    FunctionCallError,
    ChoiceError,
    UnknownNodeError,
    DialogueRuntimeError,
)

__all__ = [
    # Config
    "EngineConfig",
    # Events
    "EventBus",
    "Event",
    "DialogueEvent",
    # Errors
    "DialogueError",
    "LoadError",
    "ParseError",
    "DuplicateNodeError",
    "EvaluationError",
    "UnknownVariableError",
    "UnknownFunctionError",
    "ArityError",
    "FunctionCallError",
    "ChoiceError",
    "UnknownNodeError",
    "DialogueRuntimeError",
]

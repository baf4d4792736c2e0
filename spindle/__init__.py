"""
Spindle

An embeddable interpreter for branching dialogue scripts.

Quick Start:
    from spindle import DialogueEngine, Choose

    engine = DialogueEngine()
    engine.load(open("intro.dlg").read())
    engine.activate("Start")

    for event in engine:
        if isinstance(event, Choose):
            engine.choose(0)
"""

__version__ = "0.1.0"

from spindle.core import (
    EngineConfig,
    EventBus,
    Event,
    DialogueEvent,
    DialogueError,
    LoadError,
    ParseError,
    EvaluationError,
    ChoiceError,
    UnknownNodeError,
    DialogueRuntimeError,
)
from spindle.dialog import (
    DialogueEngine,
    DialogueRunner,
    ConversationSnapshot,
    Value,
    Say,
    Choose,
    Command,
    EndConversation,
)

__all__ = [
    # Engine
    "DialogueEngine",
    "DialogueRunner",
    "EngineConfig",
    "ConversationSnapshot",
    "Value",
    # Output
    "Say",
    "Choose",
    "Command",
    "EndConversation",
    # Events
    "EventBus",
    "Event",
    "DialogueEvent",
    # Errors
    "DialogueError",
    "LoadError",
    "ParseError",
    "EvaluationError",
    "ChoiceError",
    "UnknownNodeError",
    "DialogueRuntimeError",
]

"""
Dialog module - the scripting language and conversation engine.

Provides:
- Script lexing and parsing into nodes
- Dynamically typed values and expression evaluation
- The pull-based conversation engine
- A runner that republishes engine output on an EventBus
"""

from spindle.dialog.engine import (
    DialogueEngine,
    DialogueOutput,
    Say,
    Choose,
    Command,
    EndConversation,
)
from spindle.dialog.conversation import ConversationSnapshot
from spindle.dialog.nodes import Node, Nodes
from spindle.dialog.parser import ScriptParser, parse_nodes, parse_expression
from spindle.dialog.runner import DialogueRunner
from spindle.dialog.values import Value, ValueKind

__all__ = [
    "DialogueEngine",
    "DialogueOutput",
    "Say",
    "Choose",
    "Command",
    "EndConversation",
    "ConversationSnapshot",
    "Node",
    "Nodes",
    "ScriptParser",
    "parse_nodes",
    "parse_expression",
    "DialogueRunner",
    "Value",
    "ValueKind",
]

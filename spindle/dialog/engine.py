"""
Dialogue engine - runs one conversation at a time over loaded nodes.

The engine is pull based. Each call to next_event() runs silent steps
(assignments, jumps, branch selection) until something the host must see
comes up, and returns it:

    Say(text)              a line of dialogue; the engine has moved past it
    Choose(text, choices)  a decision point; repeated until choose() is called
    Command(action)        an opaque host instruction; the engine has moved past it
    EndConversation()      the conversation is over; later pulls return None

Usage:
    engine = DialogueEngine()
    engine.load(source)
    engine.activate("Start")
    for event in engine:
        if isinstance(event, Choose):
            engine.choose(0)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional, Union

from spindle.core.config import EngineConfig
from spindle.core.errors import (
    ChoiceError,
    DialogueRuntimeError,
    DuplicateNodeError,
    UnknownNodeError,
)
from spindle.dialog.conversation import (
    Conversation,
    ConversationSnapshot,
    DialogueIndex,
    ElseIfIndex,
    ElseIndex,
    IfIndex,
    ScopeFrame,
    resolve_step,
)
from spindle.dialog.evaluator import Function, FunctionCallback, evaluate, visited
from spindle.dialog.nodes import (
    AssignStep,
    CommandStep,
    ConditionalStep,
    DialogueStep,
    Expr,
    ExternalChoice,
    JumpStep,
    Node,
    Nodes,
    Step,
    StopStep,
)
from spindle.dialog.parser import parse_nodes
from spindle.dialog.values import Value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Say:
    text: str


@dataclass(frozen=True)
class Choose:
    text: str
    choices: tuple[str, ...]


@dataclass(frozen=True)
class Command:
    action: str


@dataclass(frozen=True)
class EndConversation:
    pass


DialogueOutput = Union[Say, Choose, Command, EndConversation]


def _variable_name(name: str) -> str:
    return name[1:] if name.startswith('$') else name


class DialogueEngine:
    """
    Stores nodes, variables and functions, and runs the active conversation.

    All state is owned by the engine; hosts go through its methods. Host
    functions run synchronously on the thread that pulls events.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

        self._nodes: dict[str, Node] = {}
        self._view = Nodes(self._nodes)
        self._variables: dict[str, Value] = {}
        self._functions: dict[str, Function] = {}

        self._conversation: Optional[Conversation] = None
        self._ended = False

        self.register_function("visited", 1, visited)

    # Scripts

    def load(self, source: str) -> list[str]:
        """
        Parse script text and merge its nodes into the registry.

        Nothing is merged if parsing fails or, with duplicate_titles="error",
        if any title is already taken.

        Returns:
            Titles of the loaded nodes, in source order

        Raises:
            ParseError: The script is malformed
            DuplicateNodeError: A title is taken and duplicates are refused
        """
        nodes = parse_nodes(source)

        if self.config.duplicate_titles == "error":
            seen: set[str] = set()
            for node in nodes:
                if node.title in self._nodes or node.title in seen:
                    raise DuplicateNodeError(f"node '{node.title}' is already loaded")
                seen.add(node.title)

        for node in nodes:
            if node.title in self._nodes:
                logger.warning(f"Replacing node '{node.title}' with a newer definition")
            self._nodes[node.title] = node

        logger.info(f"Loaded {len(nodes)} node(s); {len(self._nodes)} in registry")
        return [node.title for node in nodes]

    def has_node(self, title: str) -> bool:
        return title in self._nodes

    def node_titles(self) -> list[str]:
        return list(self._nodes)

    def node_metadata(self, title: str) -> dict[str, str]:
        """Header lines of a node other than its title."""
        try:
            return dict(self._nodes[title].extra)
        except KeyError:
            raise UnknownNodeError(f"node '{title}' is not loaded") from None

    def visited(self, title: str) -> bool:
        node = self._nodes.get(title)
        return node is not None and node.visited

    # Variables and functions

    def register_function(self, name: str, arity: int, callback: FunctionCallback) -> None:
        """
        Install or replace a function callable from expressions.

        Args:
            name: Name used in scripts
            arity: Exact number of arguments
            callback: Called as callback(args, nodes); returns a Value or a
                plain str, bool, int or float
        """
        if arity < 0:
            raise ValueError("arity must not be negative")
        thread_id = threading.get_ident() if self.config.enforce_thread_affinity else None
        self._functions[name] = Function(name, arity, callback, thread_id)

    def set_variable(self, name: str, value: Any) -> None:
        """Set a variable; `value` is a Value or a plain str, bool, int or float."""
        self._variables[_variable_name(name)] = Value.of(value)

    def get_variable(self, name: str) -> Optional[Value]:
        return self._variables.get(_variable_name(name))

    def variables(self) -> dict[str, Value]:
        return dict(self._variables)

    def evaluate(self, expr: Expr) -> Value:
        """Evaluate a parsed expression against the engine's state."""
        return evaluate(expr, self._variables, self._functions, self._view)

    # Conversation

    @property
    def current_node(self) -> Optional[str]:
        return self._conversation.node if self._conversation else None

    @property
    def is_active(self) -> bool:
        """True while a conversation is running and has not ended."""
        return self._conversation is not None and not self._ended

    def activate(self, title: str) -> None:
        """
        Start a new conversation at the first step of `title`.

        Replaces any conversation in progress.

        Raises:
            UnknownNodeError: With validate_activation, if `title` is not loaded
        """
        if self.config.validate_activation and title not in self._nodes:
            raise UnknownNodeError(f"node '{title}' is not loaded")

        logger.info(f"Activating node '{title}'")
        self._start(title)
        self._ended = False

    def choose(self, index: int) -> None:
        """
        Pick option `index` of the pending Choose.

        Raises:
            ChoiceError: No conversation, no current step, the current step
                offers no choices, or `index` is out of range
        """
        if self._conversation is None or self._ended:
            raise ChoiceError("no conversation is active")

        step = self._current_step()
        if step is None:
            raise ChoiceError("the conversation has no current step")
        if not isinstance(step, DialogueStep) or not step.has_choices:
            raise ChoiceError("the current step offers no choices")
        if not 0 <= index < len(step.choices):
            raise ChoiceError(f"choice {index} is out of range (0-{len(step.choices) - 1})")

        choice = step.choices[index]
        logger.debug(f"Chose {index}: '{choice.text}'")
        if isinstance(choice, ExternalChoice):
            self._start(choice.target)
        else:
            self._conversation.push(DialogueIndex(index, 0))

    def next_event(self) -> Optional[DialogueOutput]:
        """
        Run until the next host-visible event and return it.

        Returns None before any activation and after EndConversation.

        Raises:
            EvaluationError: An assignment or condition failed; the step is
                not consumed, so the host may fix state and pull again
            DialogueRuntimeError: More than max_silent_steps silent steps
        """
        if self._conversation is None or self._ended:
            return None

        for _ in range(self.config.max_silent_steps):
            step = self._current_step()

            if step is None or isinstance(step, StopStep):
                self._ended = True
                logger.debug(f"Conversation in '{self._conversation.node}' ended")
                return EndConversation()

            if isinstance(step, DialogueStep):
                if step.has_choices:
                    return Choose(step.text, tuple(choice.text for choice in step.choices))
                self._conversation.advance()
                return Say(step.text)

            if isinstance(step, CommandStep):
                self._conversation.advance()
                return Command(step.text)

            if isinstance(step, AssignStep):
                self._variables[step.name] = self.evaluate(step.expr)
                self._conversation.advance()
            elif isinstance(step, JumpStep):
                self._start(step.target)
            elif isinstance(step, ConditionalStep):
                self._conversation.push(self._select_branch(step))

        raise DialogueRuntimeError(
            f"more than {self.config.max_silent_steps} steps without output "
            f"in node '{self._conversation.node}'"
        )

    def __iter__(self):
        return self

    def __next__(self) -> DialogueOutput:
        event = self.next_event()
        if event is None:
            raise StopIteration
        return event

    def _start(self, title: str) -> None:
        node = self._nodes.get(title)
        if node is None:
            logger.warning(f"Conversation moved to unknown node '{title}'")
        else:
            node.visited = True
        self._conversation = Conversation(title)

    def _current_step(self) -> Optional[Step]:
        return resolve_step(self._view, self._conversation)

    def _select_branch(self, step: ConditionalStep):
        if self.evaluate(step.condition).as_bool():
            logger.debug("Entering if branch")
            return IfIndex(0)
        for i, (condition, _) in enumerate(step.else_ifs):
            if self.evaluate(condition).as_bool():
                logger.debug(f"Entering elseif branch {i}")
                return ElseIfIndex(i, 0)
        logger.debug("Entering else branch")
        return ElseIndex(0)

    # Snapshots

    def snapshot(self) -> ConversationSnapshot:
        """Capture the conversation position, visited nodes and variables."""
        conversation = self._conversation
        return ConversationSnapshot(
            node=conversation.node if conversation else None,
            base_index=conversation.base_index if conversation else 0,
            scopes=[ScopeFrame.from_index(i) for i in conversation.scopes] if conversation else [],
            ended=self._ended,
            visited=[title for title, node in self._nodes.items() if node.visited],
            variables={name: value.to_python() for name, value in self._variables.items()},
        )

    def restore(self, snapshot: ConversationSnapshot) -> None:
        """
        Resume from a snapshot taken with the same scripts loaded.

        Raises:
            DialogueRuntimeError: The saved position no longer resolves
        """
        conversation = snapshot.to_conversation()
        if conversation is not None:
            resolve_step(self._view, conversation)

        visited_titles = set(snapshot.visited)
        for title, node in self._nodes.items():
            node.visited = title in visited_titles
        self._variables = {name: Value.of(data) for name, data in snapshot.variables.items()}
        self._conversation = conversation
        self._ended = snapshot.ended
        logger.info(f"Restored conversation at node '{snapshot.node}'")

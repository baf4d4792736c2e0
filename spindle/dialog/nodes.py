"""
Script data model - nodes, steps, choices and expressions.

Everything here except Node.visited is immutable once parsed.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, Union


# Expressions

class UnaryOp(Enum):
    NOT = auto()
    NEGATE = auto()


class BinaryOp(Enum):
    AND = auto()
    OR = auto()
    PLUS = auto()
    MINUS = auto()
    MULTIPLY = auto()
    DIVIDE = auto()
    EQUALS = auto()
    NOT_EQUALS = auto()
    GREATER_THAN = auto()
    LESS_THAN = auto()
    GREATER_EQUAL = auto()
    LESS_EQUAL = auto()


@dataclass(frozen=True)
class NumberTerm:
    value: float


@dataclass(frozen=True)
class BooleanTerm:
    value: bool


@dataclass(frozen=True)
class StringTerm:
    value: str


@dataclass(frozen=True)
class VariableTerm:
    """A `$name` reference. The name is stored without the sigil."""
    name: str


@dataclass(frozen=True)
class FunctionTerm:
    name: str
    args: tuple[Expr, ...] = ()


Term = Union[NumberTerm, BooleanTerm, StringTerm, VariableTerm, FunctionTerm]


@dataclass(frozen=True)
class UnaryExpr:
    op: UnaryOp
    operand: Expr


@dataclass(frozen=True)
class BinaryExpr:
    op: BinaryOp
    left: Expr
    right: Expr


@dataclass(frozen=True)
class TermExpr:
    term: Term


@dataclass(frozen=True)
class ParenExpr:
    inner: Expr


Expr = Union[UnaryExpr, BinaryExpr, TermExpr, ParenExpr]


# Choices

@dataclass(frozen=True)
class ExternalChoice:
    """A choice that leaves the current node for `target`."""
    text: str
    target: str


@dataclass(frozen=True)
class InlineChoice:
    """
    A choice whose body continues inside the current node.

    Attributes:
        text: Text shown to the player
        steps: Steps run after the choice is made
        condition: Optional guard parsed from `<<...>>` after the text
    """
    text: str
    steps: tuple[Step, ...] = ()
    condition: Optional[Expr] = None


Choice = Union[ExternalChoice, InlineChoice]


# Steps

@dataclass(frozen=True)
class DialogueStep:
    """A line of dialogue; with choices it is a decision point."""
    text: str
    choices: tuple[Choice, ...] = ()

    @property
    def has_choices(self) -> bool:
        return len(self.choices) > 0


@dataclass(frozen=True)
class CommandStep:
    """An opaque `<<...>>` instruction passed through to the host."""
    text: str


@dataclass(frozen=True)
class AssignStep:
    name: str
    expr: Expr


@dataclass(frozen=True)
class ConditionalStep:
    """
    An if / elseif / else block.

    Attributes:
        condition: The `if` expression
        if_steps: Steps run when `condition` is truthy
        else_ifs: (condition, steps) pairs tried in order
        else_steps: Steps run when nothing matched (may be empty)
    """
    condition: Expr
    if_steps: tuple[Step, ...] = ()
    else_ifs: tuple[tuple[Expr, tuple[Step, ...]], ...] = ()
    else_steps: tuple[Step, ...] = ()


@dataclass(frozen=True)
class JumpStep:
    target: str


@dataclass(frozen=True)
class StopStep:
    """`<<stop>>` ends the conversation."""


Step = Union[DialogueStep, CommandStep, AssignStep, ConditionalStep, JumpStep, StopStep]


# Nodes

@dataclass
class Node:
    """
    A titled block of script.

    Attributes:
        title: Unique name used by jumps, choices and activate()
        extra: Header lines other than `title`
        steps: Top-level steps in source order
        visited: Set once the node has been the active conversation target
    """
    title: str
    extra: dict[str, str] = field(default_factory=dict)
    steps: list[Step] = field(default_factory=list)
    visited: bool = False


class Nodes(Mapping[str, Node]):
    """
    Read-only view of the node registry, keyed by title.

    Handed to host functions so they can inspect nodes without being able
    to add or remove any.
    """

    def __init__(self, registry: dict[str, Node]):
        self._registry = registry

    def __getitem__(self, title: str) -> Node:
        return self._registry[title]

    def __iter__(self) -> Iterator[str]:
        return iter(self._registry)

    def __len__(self) -> int:
        return len(self._registry)

    def __repr__(self) -> str:
        return f"Nodes({list(self._registry)})"

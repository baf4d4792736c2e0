"""
Conversation position tracking.

A conversation position is the active node, an index into its top-level
steps, and a stack of StepIndex entries. Each entry records one level of
nesting that was entered (an inline choice body or a conditional branch)
and the position inside that nested sequence. Walking the stack from the
node's top-level steps yields the current step without recursion.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from spindle.core.errors import DialogueRuntimeError
from spindle.dialog.nodes import ConditionalStep, DialogueStep, InlineChoice, Nodes, Step


@dataclass(frozen=True)
class DialogueIndex:
    """Inside the body of inline choice `choice`."""
    choice: int
    position: int = 0


@dataclass(frozen=True)
class IfIndex:
    position: int = 0


@dataclass(frozen=True)
class ElseIfIndex:
    """Inside elseif branch number `branch`."""
    branch: int
    position: int = 0


@dataclass(frozen=True)
class ElseIndex:
    position: int = 0


StepIndex = Union[DialogueIndex, IfIndex, ElseIfIndex, ElseIndex]


@dataclass
class Conversation:
    """The live position inside one active node."""
    node: str
    base_index: int = 0
    scopes: list[StepIndex] = field(default_factory=list)

    def push(self, index: StepIndex) -> None:
        self.scopes.append(index)

    def advance(self) -> None:
        """
        Move to the next step of the innermost sequence.

        Finished scopes are not popped: running off the end of a nested
        sequence leaves no current step, which ends the conversation.
        """
        if self.scopes:
            top = self.scopes[-1]
            self.scopes[-1] = replace(top, position=top.position + 1)
        else:
            self.base_index += 1


def _enter(parent: Step, index: StepIndex) -> tuple[Step, ...]:
    """Return the nested sequence that `index` descends into from `parent`."""
    if isinstance(index, DialogueIndex) and isinstance(parent, DialogueStep):
        if index.choice < len(parent.choices):
            choice = parent.choices[index.choice]
            if isinstance(choice, InlineChoice):
                return choice.steps
    elif isinstance(parent, ConditionalStep):
        if isinstance(index, IfIndex):
            return parent.if_steps
        if isinstance(index, ElseIfIndex) and index.branch < len(parent.else_ifs):
            return parent.else_ifs[index.branch][1]
        if isinstance(index, ElseIndex):
            return parent.else_steps

    raise DialogueRuntimeError(f"position {index!r} does not match step {type(parent).__name__}")


def resolve_step(nodes: Nodes, conversation: Conversation) -> Optional[Step]:
    """
    Find the step at the conversation's position.

    Returns None when the node does not exist or the innermost sequence is
    exhausted.
    """
    node = nodes.get(conversation.node)
    if node is None:
        return None

    steps: tuple[Step, ...] | list[Step] = node.steps
    position = conversation.base_index

    for index in conversation.scopes:
        if position >= len(steps):
            raise DialogueRuntimeError(f"position {position} is outside its step sequence")
        steps = _enter(steps[position], index)
        position = index.position

    if position < len(steps):
        return steps[position]
    return None


# Snapshots

class ScopeFrame(BaseModel):
    """Serializable form of one StepIndex."""

    model_config = ConfigDict(extra='forbid')

    kind: Literal["dialogue", "if", "elseif", "else"]
    position: int = Field(ge=0)
    branch: int = Field(default=0, ge=0)

    @classmethod
    def from_index(cls, index: StepIndex) -> ScopeFrame:
        if isinstance(index, DialogueIndex):
            return cls(kind="dialogue", branch=index.choice, position=index.position)
        if isinstance(index, ElseIfIndex):
            return cls(kind="elseif", branch=index.branch, position=index.position)
        if isinstance(index, IfIndex):
            return cls(kind="if", position=index.position)
        return cls(kind="else", position=index.position)

    def to_index(self) -> StepIndex:
        if self.kind == "dialogue":
            return DialogueIndex(self.branch, self.position)
        if self.kind == "elseif":
            return ElseIfIndex(self.branch, self.position)
        if self.kind == "if":
            return IfIndex(self.position)
        return ElseIndex(self.position)


class ConversationSnapshot(BaseModel):
    """
    Everything needed to resume a conversation later.

    Produced by DialogueEngine.snapshot(); use model_dump()/model_dump_json()
    to store it and model_validate()/model_validate_json() to read it back.
    Infinite and NaN numbers are written as the JSON constants Infinity and
    NaN so they survive the round trip.
    """

    model_config = ConfigDict(extra='forbid', ser_json_inf_nan='constants')

    node: Optional[str] = None
    base_index: int = Field(default=0, ge=0)
    scopes: list[ScopeFrame] = Field(default_factory=list)
    ended: bool = False
    visited: list[str] = Field(default_factory=list)
    variables: dict[str, Union[bool, float, str]] = Field(default_factory=dict)

    def to_conversation(self) -> Optional[Conversation]:
        if self.node is None:
            return None
        return Conversation(
            node=self.node,
            base_index=self.base_index,
            scopes=[frame.to_index() for frame in self.scopes],
        )

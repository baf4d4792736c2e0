"""
Dialogue runner - publishes engine output on an EventBus.

Handles:
- Starting conversations
- Pulling events and republishing them as DialogueEvent messages
- Routing commands to registered handlers
- Forwarding player choices back to the engine
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from spindle.core.events import DialogueEvent, EventBus
from spindle.dialog.engine import (
    Choose,
    Command,
    DialogueEngine,
    DialogueOutput,
    EndConversation,
    Say,
)

logger = logging.getLogger(__name__)

# handler(args) where args are the whitespace-separated words after the command name
CommandHandler = Callable[[list[str]], None]


class DialogueRunner:
    """
    Drives a DialogueEngine for hosts that prefer events over polling.

    Usage:
        runner = DialogueRunner(engine, event_bus)
        runner.add_command_handler("play_sound", lambda args: audio.play(args[0]))
        event_bus.subscribe(DialogueEvent.LINE, show_line)
        runner.start("Start")
        runner.advance()
    """

    def __init__(self, engine: DialogueEngine, events: EventBus):
        self.engine = engine
        self.events = events
        self._command_handlers: dict[str, CommandHandler] = {}
        self._pending_choices: Optional[Choose] = None

    def add_command_handler(self, name: str, handler: CommandHandler) -> None:
        """Call `handler` for commands whose first word is `name`."""
        self._command_handlers[name] = handler

    def remove_command_handler(self, name: str) -> None:
        self._command_handlers.pop(name, None)

    @property
    def awaiting_choice(self) -> bool:
        return self._pending_choices is not None

    def start(self, title: str) -> Optional[DialogueOutput]:
        """Activate `title`, announce it and publish its first event."""
        self.engine.activate(title)
        self._pending_choices = None
        self.events.publish(DialogueEvent.CONVERSATION_STARTED, node=title)
        return self.advance()

    def advance(self) -> Optional[DialogueOutput]:
        """
        Pull one event from the engine and publish it.

        While a choice is pending this republishes the same choices.
        Returns the engine event, or None if no conversation is running.
        """
        event = self.engine.next_event()
        if event is None:
            return None

        if isinstance(event, Say):
            self.events.publish(DialogueEvent.LINE, text=event.text, node=self.engine.current_node)
        elif isinstance(event, Choose):
            self._pending_choices = event
            self.events.publish(
                DialogueEvent.CHOICES,
                text=event.text,
                choices=list(event.choices),
                node=self.engine.current_node,
            )
        elif isinstance(event, Command):
            self._run_command(event.action)
            self.events.publish(DialogueEvent.COMMAND, action=event.action)
        elif isinstance(event, EndConversation):
            self._pending_choices = None
            self.events.publish(DialogueEvent.CONVERSATION_ENDED, node=self.engine.current_node)

        return event

    def select(self, index: int) -> Optional[DialogueOutput]:
        """Make a choice, announce it and publish the event that follows."""
        choices = self._pending_choices
        self.engine.choose(index)
        self._pending_choices = None
        if choices is not None:
            self.events.publish(
                DialogueEvent.CHOICE_SELECTED,
                index=index,
                text=choices.choices[index],
            )
        return self.advance()

    def _run_command(self, action: str) -> None:
        words = action.split()
        if not words:
            return
        handler = self._command_handlers.get(words[0])
        if handler is None:
            logger.debug(f"No handler for command '{words[0]}'")
            return
        handler(words[1:])

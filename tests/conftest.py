import os
import sys

import pytest

# Ensure spindle can be imported without installing
sys.path.append(os.getcwd())


@pytest.fixture
def event_bus():
    """Fresh EventBus for each test."""
    from spindle.core.events import EventBus
    return EventBus()


@pytest.fixture
def engine():
    """Fresh DialogueEngine with default config."""
    from spindle.dialog.engine import DialogueEngine
    return DialogueEngine()


@pytest.fixture
def load_engine():
    """Factory: build an engine, load a script and activate a node."""
    from spindle.dialog.engine import DialogueEngine

    def _load(source, start="Start", config=None):
        engine = DialogueEngine(config)
        engine.load(source)
        if start is not None:
            engine.activate(start)
        return engine

    return _load

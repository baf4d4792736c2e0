import pytest
from pydantic import ValidationError

from spindle.core.config import EngineConfig


def test_defaults():
    config = EngineConfig()
    assert config.duplicate_titles == "replace"
    assert config.validate_activation is True
    assert config.max_silent_steps == 10_000
    assert config.enforce_thread_affinity is True


def test_rejects_unknown_duplicate_policy():
    with pytest.raises(ValidationError):
        EngineConfig(duplicate_titles="merge")


def test_rejects_non_positive_step_limit():
    with pytest.raises(ValidationError):
        EngineConfig(max_silent_steps=0)


def test_rejects_unknown_fields():
    with pytest.raises(ValidationError):
        EngineConfig(typewriter_speed=30)


def test_validates_on_assignment():
    config = EngineConfig()
    with pytest.raises(ValidationError):
        config.max_silent_steps = -1

"""
Engine configuration.

Usage:
    config = EngineConfig(duplicate_titles="error", max_silent_steps=500)
    engine = DialogueEngine(config)
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class EngineConfig(BaseModel):
    """
    Options that change how a DialogueEngine loads and runs scripts.

    Attributes:
        duplicate_titles: "replace" keeps the most recently loaded node,
            "error" rejects the whole load
        validate_activation: Refuse to activate titles that are not loaded
        max_silent_steps: Upper bound on assignments, jumps and branch
            selections performed by a single pull
        enforce_thread_affinity: Host functions may only run on the thread
            that registered them
    """

    model_config = ConfigDict(
        validate_assignment=True,
        extra='forbid',
    )

    duplicate_titles: Literal["replace", "error"] = "replace"
    validate_activation: bool = True
    max_silent_steps: int = Field(default=10_000, ge=1)
    enforce_thread_affinity: bool = True

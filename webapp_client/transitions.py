"""Boolean check-in status cycle shared by the reducer, runner and controller.

    none --done--> done --skip--> skip --undo--> none

`undo` is accepted from any state and always lands on `none`.
"""
from __future__ import annotations
from typing import Optional

STATUSES = ("none", "done", "skip")
INTENTS = ("done", "skip", "undo")

# What a tap on a boolean habit asks for, given its current status.
NEXT_INTENT = {
    "none": "done",
    "done": "skip",
    "skip": "undo",
}

# Status a view ends up in once an intent is applied.
INTENT_RESULT = {
    "done": "done",
    "skip": "skip",
    "undo": "none",
}


def validate_intent(intent: str) -> str:
    if intent not in INTENT_RESULT:
        raise ValueError(f"Unknown intent '{intent}'")
    return intent


def next_boolean_intent(status: Optional[str]) -> str:
    return NEXT_INTENT.get(status or "none", "done")


def status_after(intent: str) -> str:
    return INTENT_RESULT[validate_intent(intent)]


def preview_next_status(status: Optional[str]) -> str:
    """Status the habit would show after one more tap."""
    return status_after(next_boolean_intent(status))

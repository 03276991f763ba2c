"""Dialog phase state machine."""

from enum import Enum
from typing import Set


class DialogPhase(str, Enum):
    """Phases of the slot-filling flow for one dialog."""

    # Initial
    NO_CATEGORY = "no_category"

    # Clarification session in progress
    AWAITING_SLOT_DATA = "awaiting_slot_data"

    # Terminal: category set
    RESOLVED = "resolved"


# Valid phase transitions
VALID_TRANSITIONS: dict[DialogPhase, Set[DialogPhase]] = {
    DialogPhase.NO_CATEGORY: {
        DialogPhase.NO_CATEGORY,          # Stalled without a question
        DialogPhase.AWAITING_SLOT_DATA,
        DialogPhase.RESOLVED,
    },
    DialogPhase.AWAITING_SLOT_DATA: {
        DialogPhase.AWAITING_SLOT_DATA,
        DialogPhase.NO_CATEGORY,          # Session abandoned
        DialogPhase.RESOLVED,
    },
    DialogPhase.RESOLVED: set(),  # Terminal state
}


def can_transition(from_phase: DialogPhase, to_phase: DialogPhase) -> bool:
    """Check if a phase transition is valid."""
    return to_phase in VALID_TRANSITIONS.get(from_phase, set())


def get_valid_transitions(phase: DialogPhase) -> Set[DialogPhase]:
    """Get all valid transitions from a phase."""
    return VALID_TRANSITIONS.get(phase, set())


def is_terminal_state(phase: DialogPhase) -> bool:
    """Check if phase is terminal (no further transitions)."""
    return phase == DialogPhase.RESOLVED

"""Stable identifiers for lingoflow entities."""

from ulid import ULID


def generate_id(prefix: str) -> str:
    """Generate a sortable entity id using ULID, e.g. `card_01H...`."""
    return f"{prefix}_{ULID()}"

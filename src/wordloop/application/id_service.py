"""Service for generating stable session ids."""

from ulid import ULID


def generate_session_id() -> str:
    """Generate a sortable session id using ULID."""
    return f"session_{ULID()}"

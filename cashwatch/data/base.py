"""Id helpers shared by the ORM models."""
import secrets


def generate_id(prefix: str) -> str:
    """Prefixed random id, e.g. ``cgalert_3f9a0c1b2d4e``."""
    return f"{prefix}_{secrets.token_hex(6)}"

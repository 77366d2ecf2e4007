"""Business ID generation (withdrawal_id, token transaction id).

IDs are prefixed with the entity kind so they are recognisable in logs and
provider dashboards: wd_3f1c..., tt_9a0b...
"""

import uuid


def generate_id(prefix: str) -> str:
    """Return '<prefix>_<32 hex chars>'."""
    if not prefix or not prefix.isalnum():
        raise ValueError(f"prefix must be a non-empty alphanumeric string, got {prefix!r}")
    return f"{prefix}_{uuid.uuid4().hex}"

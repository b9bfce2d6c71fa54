"""ID generators (CUID2 primary keys, short suffixes for dynamic movement ids)."""

import re

from cuid2 import cuid_wrapper

cuid_generator = cuid_wrapper()

_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


def generate_cuid() -> str:
    """Generate a collision-resistant unique identifier (CUID2).

    Returns:
        A new CUID string.
    """
    result = cuid_generator()
    if not isinstance(result, str):
        raise TypeError(
            f"Expected str from cuid_generator, got {type(result).__name__}"
        )
    return result


def slugify(value: str, max_length: int = 40) -> str:
    """Lowercase, collapse non-alphanumerics to underscores, trim to max_length."""
    slug = _NON_SLUG_RE.sub("_", value.strip().lower()).strip("_")
    return slug[:max_length].rstrip("_")


def generate_dynamic_movement_id(name: str) -> str:
    """Return an id for an instance-scoped movement, e.g. dyn_kitchen_walls_k3j9x2."""
    slug = slugify(name) or "movement"
    return f"dyn_{slug}_{generate_cuid()[-6:]}"

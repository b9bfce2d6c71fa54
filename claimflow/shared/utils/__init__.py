"""Shared utilities: datetime and id generators."""

from claimflow.shared.utils.datetime import utc_now
from claimflow.shared.utils.generators import (
    generate_cuid,
    generate_dynamic_movement_id,
    slugify,
)

__all__ = [
    "generate_cuid",
    "generate_dynamic_movement_id",
    "slugify",
    "utc_now",
]

"""Select which fuse bytes to flip."""

from dataclasses import dataclass
from typing import Sequence

from .scanner import Hit

# Any negative limit means "no limit"
UNLIMITED = -1


@dataclass(frozen=True)
class PatchPlan:
    """Fuse bytes chosen for rewriting, in scan order.

    A fuse byte read by several checks is selected once, so applied_count is
    the number of bytes a write changes.
    """

    selected_offsets: tuple[int, ...]
    eligible_count: int  # Hits currently reading '1'
    limit: int = UNLIMITED

    @property
    def applied_count(self) -> int:
        return len(self.selected_offsets)

    @property
    def is_empty(self) -> bool:
        return not self.selected_offsets


def plan_patch(hits: Sequence[Hit], limit: int = UNLIMITED) -> PatchPlan:
    """Pick the enabled fuses to disable.

    Only hits whose target still holds '1' are eligible. Their target
    offsets are taken in scan order, skipping one already chosen for an
    earlier hit, until `limit` have been chosen; a negative limit takes all
    of them and zero takes none.
    """
    eligible = [hit for hit in hits if hit.is_enabled]
    targets = list(dict.fromkeys(hit.target_offset for hit in eligible))
    selected = targets[:limit] if limit >= 0 else targets
    return PatchPlan(
        selected_offsets=tuple(selected),
        eligible_count=len(eligible),
        limit=limit,
    )

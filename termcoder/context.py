from __future__ import annotations

from collections.abc import Mapping

from .inventory import FileInventory
from .model import ContextBundle, FileRecord
from .ordering import sort_by_priority
from .tokens import approx_token_count

DEFAULT_CONTEXT_BUDGET = 1_000_000


def content_size(text: str) -> int:
    return len(text.encode("utf-8"))


def build_context(
    inventory: FileInventory | Mapping[str, FileRecord],
    budget: int = DEFAULT_CONTEXT_BUDGET,
) -> ContextBundle:
    """Pack inventory contents in priority order until ``budget`` bytes.

    Inclusion is all-or-nothing per file and stops at the first file that
    does not fit, so the included files are always a prefix of
    ``ordered_paths``.
    """
    records = inventory.records() if isinstance(inventory, FileInventory) else inventory
    ordered = sort_by_priority(records.keys())

    included: dict[str, str] = {}
    total = 0
    for rel in ordered:
        content = records[rel].content
        size = content_size(content)
        if total + size > budget:
            break
        included[rel] = content
        total += size

    return ContextBundle(
        ordered_paths=tuple(ordered),
        included_contents=included,
        total_bytes_included=total,
        files_included=len(included),
        files_total=len(ordered),
        budget=budget,
    )


def bundle_token_estimate(bundle: ContextBundle) -> int:
    return sum(approx_token_count(c) for c in bundle.included_contents.values())

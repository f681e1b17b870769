"""
Ingredient merging across detection results.

Combines the lists returned for several photos into one deduplicated,
confidence-ranked list. Pure and deterministic.
"""

from collections.abc import Iterable, Sequence

from chefai.models.ingredient import Ingredient

# Fields copied from other records in a group when the kept record lacks them
BACKFILL_FIELDS = ("quantity", "unit", "category")


def merge_ingredients(lists: Iterable[Sequence[Ingredient]]) -> list[Ingredient]:
    """
    Merge ingredient lists from multiple detection calls.

    1. Flatten, keeping order within and across lists.
    2. Group by trimmed, lower-cased name.
    3. Keep the highest-confidence record per group (ties keep the earlier
       one) and backfill its missing quantity/unit/category from the first
       other record in the group that has them.
    4. Sort by confidence descending (missing = 0), ties by first-seen order.

    Args:
        lists: Ingredient lists, one per successful detection call

    Returns:
        Merged ingredient list with unique names
    """
    groups: dict[str, list[Ingredient]] = {}
    for ingredients in lists:
        for ingredient in ingredients:
            key = ingredient.key
            if not key:
                continue
            groups.setdefault(key, []).append(ingredient)

    # dict preserves insertion order, so enumerate() gives first-seen order
    merged = [
        (position, _merge_group(group)) for position, group in enumerate(groups.values())
    ]
    merged.sort(key=lambda item: (-item[1].rank_confidence, item[0]))
    return [ingredient for _, ingredient in merged]


def _merge_group(group: list[Ingredient]) -> Ingredient:
    """Pick the representative record of a group and fill its gaps."""
    kept = group[0]
    for candidate in group[1:]:
        if candidate.rank_confidence > kept.rank_confidence:
            kept = candidate

    updates = {}
    for field in BACKFILL_FIELDS:
        if getattr(kept, field) is not None:
            continue
        for other in group:
            value = getattr(other, field)
            if value is not None:
                updates[field] = value
                break

    return kept.model_copy(update=updates) if updates else kept

"""Case-insensitive substring search across record fields."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from .resolvers import FieldResolver, Getter
from .values import format_value_text

logger = logging.getLogger(__name__)


def filter_by_text(
    records: Iterable[Any],
    text: str | None,
    resolver: FieldResolver,
    field_names: Sequence[str] | None = None,
) -> list[Any]:
    """
    Keep records where any searched field contains `text` (case-insensitive).

    Args:
        records: Records to search
        text: Search text; blank text returns every record
        resolver: Reads field values from records
        field_names: Fields to search; defaults to every field the resolver
            reports. Names the resolver does not know are skipped.

    Returns:
        Matching records in their original order
    """
    if text is None or not text.strip():
        return list(records)

    needle = text.lower()
    getters: list[Getter] = []
    for name in field_names or resolver.field_names():
        canonical = resolver.canonical_name(name)
        if canonical is None:
            logger.debug(f"Text search skips unknown field '{name}'")
            continue
        getters.append(resolver.getter(canonical))

    def matches(record: Any) -> bool:
        if record is None:
            return False
        for get in getters:
            value = get(record)
            if value is None:
                continue
            haystack = value if isinstance(value, str) else format_value_text(value)
            if needle in haystack.lower():
                return True
        return False

    return [record for record in records if matches(record)]

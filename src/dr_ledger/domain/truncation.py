"""Length bounds applied to billing record text before insert.

A too-long description must never fail a money movement, so text is cut
instead of rejected.
"""

import json
from typing import Any

_ELLIPSIS = "..."

# billing_records column widths
DESCRIPTION_MAX_LENGTH = 512
CONSUMER_MAX_LENGTH = 64
BUSINESS_ID_MAX_LENGTH = 128


def truncate_text(value: str | None, max_length: int) -> str | None:
    if value is None or len(value) <= max_length:
        return value
    if max_length <= len(_ELLIPSIS):
        return value[:max_length]
    return value[: max_length - len(_ELLIPSIS)] + _ELLIPSIS


def bound_extra_data(
    extra: dict[str, Any] | None, max_length: int
) -> dict[str, Any] | None:
    """Replace an oversized payload by a truncated JSON preview.

    The replacement itself always encodes within `max_length`.
    """
    if extra is None:
        return None
    encoded = json.dumps(extra, default=str, ensure_ascii=False)
    if len(encoded) <= max_length:
        return extra
    # {"truncated": true, "preview": "..."} plus escaping overhead
    budget = max(max_length // 2 - 40, 0)
    return {"truncated": True, "preview": encoded[:budget]}

"""
Selectors for filtered policy deletion.
"""

from policy_adapter.exceptions import InvalidRangeError
from policy_adapter.services.codec import VALUE_FIELDS, MAX_RULE_VALUES


def build_filter(ptype: str, field_index: int, *field_values: str) -> dict[str, str]:
    """
    Build a partial row selector for ``remove_filtered_policy``.

    ``field_values`` are matched against the positional fields starting at
    ``field_index`` (0 is v1). Fields outside that window are left out of the
    selector and match anything. The ptype is always matched exactly.

    Example:
        build_filter("p", 1, "data1") -> {"ptype": "p", "v2": "data1"}
    """
    end = field_index + len(field_values)
    if field_index < 0 or end > MAX_RULE_VALUES:
        raise InvalidRangeError(
            f"Field range [{field_index}, {end}) is outside the "
            f"{MAX_RULE_VALUES} positional fields"
        )

    selector = {"ptype": ptype}
    for slot, column in enumerate(VALUE_FIELDS):
        if field_index <= slot < end:
            selector[column] = field_values[slot - field_index]

    return selector

"""
Conversion between Casbin policy rules and persisted policy rows.

A rule is a policy type (e.g. "p", "g", "g2") plus up to four positional
values. A row stores the policy type and the values in the fixed fields
v1..v4, with "" for unused fields.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from policy_adapter.exceptions import InvalidRuleError

logger = logging.getLogger(__name__)


VALUE_FIELDS = ("v1", "v2", "v3", "v4")
MAX_RULE_VALUES = len(VALUE_FIELDS)


@dataclass(frozen=True)
class PolicyRecord:
    """A persisted policy row. ``id`` is assigned by the store."""

    ptype: str
    v1: str = ""
    v2: str = ""
    v3: str = ""
    v4: str = ""
    id: Optional[str] = None

    @property
    def values(self) -> tuple[str, str, str, str]:
        return (self.v1, self.v2, self.v3, self.v4)

    def to_selector(self) -> dict[str, str]:
        """All five fields as an exact-match selector."""
        selector = {"ptype": self.ptype}
        selector.update(zip(VALUE_FIELDS, self.values))
        return selector


def encode_rule(ptype: str, rule: Sequence[str]) -> PolicyRecord:
    """Encode a rule into a row, assigning values to v1..v4 in order."""
    if len(rule) > MAX_RULE_VALUES:
        raise InvalidRuleError(
            f"Rule for '{ptype}' has {len(rule)} values, at most {MAX_RULE_VALUES} are supported"
        )
    return PolicyRecord(ptype, *rule)


def decode_record(record: PolicyRecord) -> Optional[tuple[str, str, list[str]]]:
    """Decode a row into ``(section, ptype, values)``.

    Returns None for rows with an empty policy type. Empty value fields are
    skipped wherever they occur, so ``v1="", v2="x"`` decodes as ``["x"]``.
    """
    if not record.ptype:
        return None

    key = record.ptype
    sec = key[:1]

    tokens = [value for value in record.values if value != ""]

    return sec, key, tokens


def load_record(record: PolicyRecord, model) -> bool:
    """Append the rule stored in ``record`` to a Casbin model.

    Returns False when the row is empty or its section/ptype is not defined
    by the model.
    """
    decoded = decode_record(record)
    if decoded is None:
        logger.debug(f"Skipping policy row with empty ptype (id={record.id})")
        return False

    sec, key, tokens = decoded
    sections = model.model
    if sec not in sections or key not in sections[sec]:
        logger.debug(f"Skipping policy row for undefined ptype '{key}' (id={record.id})")
        return False

    sections[sec][key].policy.append(tokens)
    return True

"""canonical finding categories"""

import re


REENTRANCY = "reentrancy"
ARITHMETIC = "arithmetic"
ACCESS_CONTROL = "access-control"
UNCHECKED_CALLS = "unchecked-calls"
TIMESTAMP_DEPENDENCE = "timestamp-dependence"
TX_ORIGIN = "tx-origin"
DELEGATECALL = "delegatecall"
SELFDESTRUCT = "selfdestruct"
OTHER = "other"

KNOWN_CATEGORIES = (
    REENTRANCY,
    ARITHMETIC,
    ACCESS_CONTROL,
    UNCHECKED_CALLS,
    TIMESTAMP_DEPENDENCE,
    TX_ORIGIN,
    DELEGATECALL,
    SELFDESTRUCT,
    OTHER,
)

# keys are lowercased with separators removed
CATEGORY_ALIASES = {
    "reentrancy": REENTRANCY,
    "reentrant": REENTRANCY,
    "arithmetic": ARITHMETIC,
    "integeroverflow": ARITHMETIC,
    "integerunderflow": ARITHMETIC,
    "overflow": ARITHMETIC,
    "underflow": ARITHMETIC,
    "accesscontrol": ACCESS_CONTROL,
    "authorization": ACCESS_CONTROL,
    "uncheckedcalls": UNCHECKED_CALLS,
    "uncheckedcall": UNCHECKED_CALLS,
    "uncheckedexternalcall": UNCHECKED_CALLS,
    "uncheckedreturnvalue": UNCHECKED_CALLS,
    "timestampdependence": TIMESTAMP_DEPENDENCE,
    "timestamp": TIMESTAMP_DEPENDENCE,
    "timemanipulation": TIMESTAMP_DEPENDENCE,
    "txorigin": TX_ORIGIN,
    "delegatecall": DELEGATECALL,
    "selfdestruct": SELFDESTRUCT,
    "suicide": SELFDESTRUCT,
    "other": OTHER,
}

_SEPARATORS = re.compile(r"[\s_\-]+")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def canonical_category(value: str) -> str:
    """map a free-form category onto the known taxonomy, else lowercase kebab-case"""
    if not isinstance(value, str) or not value.strip():
        return OTHER
    text = value.strip()
    compact = _SEPARATORS.sub("", text).lower()
    if compact in CATEGORY_ALIASES:
        return CATEGORY_ALIASES[compact]
    kebab = _CAMEL_BOUNDARY.sub("-", text)
    kebab = _SEPARATORS.sub("-", kebab).lower().strip("-")
    return kebab or OTHER

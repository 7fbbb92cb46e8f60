import re
from typing import Optional
from inventory_ledger.core.exceptions import ValidationError
from inventory_ledger.models.shared.enums import PartCategory

REAR_PREFIX = "4960"
_QUANTITY_RE = re.compile(r"^-?\d+$")


def normalize_part_number(value: Optional[str]) -> str:
    """Trim and upper-case a part number; empty values are rejected."""
    if value is None or not str(value).strip():
        raise ValidationError("Part number is required")
    return str(value).strip().upper()


def strip_revision_suffix(part_number: str) -> str:
    """Drop a single trailing revision letter, e.g. 49600-P8000A -> 49600-P8000."""
    if part_number and part_number[-1].isalpha():
        return part_number[:-1]
    return part_number


def derive_part_category(part_number: str) -> PartCategory:
    base = strip_revision_suffix(normalize_part_number(part_number))
    if base.startswith(REAR_PREFIX):
        return PartCategory.REAR
    return PartCategory.INNER


def ensure_quantity(value, field: str = "quantity", allow_zero: bool = True) -> int:
    """Validate an integer quantity that may not be negative."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if value < 0 or (value == 0 and not allow_zero):
        qualifier = "zero or greater" if allow_zero else "greater than zero"
        raise ValidationError(f"{field} must be {qualifier}, got {value}")
    return value


def parse_quantity(text: Optional[str]) -> Optional[int]:
    """Parse a pasted quantity such as '3,500'. Returns None when unparseable."""
    if text is None:
        return None
    cleaned = str(text).strip().replace(",", "").replace(" ", "")
    if not _QUANTITY_RE.match(cleaned):
        return None
    return int(cleaned)

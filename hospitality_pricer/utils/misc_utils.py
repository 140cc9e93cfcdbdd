# hospitality_pricer/utils/misc_utils.py
import re
import hashlib
from decimal import Decimal
from typing import Optional, Union


def generate_canonical_id(*args: object) -> str:
    """Generates a consistent, URL-safe ID from one or more values."""
    combined = "_".join(str(arg).lower() for arg in args if arg is not None and arg != "")
    # Remove non-alphanumeric characters (except underscore)
    safe_string = re.sub(r"[^\w]+", "", combined.replace(" ", "_"))
    if len(safe_string) > 100:
        return hashlib.sha1(safe_string.encode()).hexdigest()[:16]  # Short hash
    return safe_string


def decimal_to_number(value: Optional[Decimal]) -> Optional[Union[int, float]]:
    """Whole amounts become ints, anything else a float; keeps JSON/CSV numeric."""
    if value is None:
        return None
    if value == value.to_integral_value():
        return int(value)
    return float(value)

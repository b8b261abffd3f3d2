"""
Validation utilities for request payload values
"""
import math

from errors import ServiceError

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off", "")


def parse_flag(value, field, error_cls=ServiceError):
    """
    Parse a boolean form/JSON value

    Args:
        value: bool, 0/1, or one of "true"/"false"/"yes"/"no"/"on"/"off"
        field (str): Field name used in the error message
        error_cls: ServiceError subclass raised for anything else

    Returns:
        bool: ``None`` counts as False
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    raise error_cls("{} must be true or false".format(field))


def parse_amount(value, error_cls=ServiceError, message="Invalid amount"):
    """
    Parse a currency amount; a comma decimal separator is accepted

    Returns:
        float: finite amount, or None when the value is missing or blank
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise error_cls(message)
    text = str(value).strip().replace(",", ".")
    if not text:
        return None
    try:
        amount = float(text)
    except ValueError:
        raise error_cls(message)
    if not math.isfinite(amount):
        raise error_cls(message)
    return amount

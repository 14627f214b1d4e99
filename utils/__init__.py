"""Shared utilities for the backend."""
from utils.case import dict_keys_to_camel, to_camel_key, to_json_safe
from utils.dates import add_months, as_utc, isoformat, month_start, utcnow
from utils.money import money_to_json, round_money, safe_percentage, to_decimal

__all__ = [
    "to_camel_key",
    "dict_keys_to_camel",
    "to_json_safe",
    "add_months",
    "as_utc",
    "isoformat",
    "month_start",
    "utcnow",
    "money_to_json",
    "round_money",
    "safe_percentage",
    "to_decimal",
]

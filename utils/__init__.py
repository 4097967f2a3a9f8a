"""Shared utilities for the backend."""
from utils.abn import clean_abn, format_abn, is_valid_abn
from utils.case import camel_payload, dict_keys_to_camel, dict_keys_to_snake, to_camel_key, to_snake_key
from utils.parsing import months_between, parse_amount, parse_date
from utils.paths import assign_path, read_path

__all__ = [
    "to_camel_key",
    "to_snake_key",
    "dict_keys_to_camel",
    "dict_keys_to_snake",
    "camel_payload",
    "assign_path",
    "read_path",
    "parse_amount",
    "parse_date",
    "months_between",
    "clean_abn",
    "format_abn",
    "is_valid_abn",
]

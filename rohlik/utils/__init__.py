"""Shared utilities for the extraction engine and services."""

from .normalizers import (
    clean_text,
    parse_price,
    try_parse_price,
    parse_quantity,
    compute_discount,
    parse_time_range,
    parse_date,
    parse_order_status,
    parse_address_text,
    mask_email,
    mask_identifier,
)

__all__ = [
    'clean_text',
    'parse_price',
    'try_parse_price',
    'parse_quantity',
    'compute_discount',
    'parse_time_range',
    'parse_date',
    'parse_order_status',
    'parse_address_text',
    'mask_email',
    'mask_identifier',
]

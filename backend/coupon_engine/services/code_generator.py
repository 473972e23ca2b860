from __future__ import annotations

import re


_WHITESPACE = re.compile(r"\s")


def normalize_code_part(value: str | None) -> str:
    return _WHITESPACE.sub("", str(value or "").upper())


def generate_code(handle: str | None, base_code: str | None, is_primary: bool) -> str:
    """Personalized coupon code for an affiliate.

    A primary coupon is just the affiliate's handle. Any other coupon is the
    handle followed by the template's base code, with no delimiter. The result
    is an opaque token and is never split back into its parts.
    """
    clean_handle = normalize_code_part(handle)
    if is_primary:
        return clean_handle
    if not base_code:
        return clean_handle
    return clean_handle + normalize_code_part(base_code)

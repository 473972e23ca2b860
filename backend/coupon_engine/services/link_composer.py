from __future__ import annotations

from typing import TYPE_CHECKING

from coupon_engine.services.code_generator import generate_code

if TYPE_CHECKING:
    from coupon_engine.models.coupon import AffiliateCoupon


def compose_link(landing_page_base_url: str | None, resolved_code: str) -> str:
    base = (landing_page_base_url or "").strip()
    if not base:
        return resolved_code
    if base.endswith("/"):
        base = base[:-1]
    return f"{base}/{resolved_code}"


def resolve_code(
    activation: AffiliateCoupon | None,
    handle: str | None,
    base_code: str | None,
    is_primary: bool,
) -> str:
    # Persisted codes win over previews so shared links survive handle changes.
    if activation is not None and activation.custom_code:
        return activation.custom_code
    return generate_code(handle, base_code, is_primary)

from __future__ import annotations

from urllib.parse import quote

from .estimator import Estimate, EstimateInputs, format_amount

SHARE_BASE_URL = "https://wa.me/"


def render_quote_text(
    estimate: Estimate,
    inputs: EstimateInputs,
    currency_symbol: str = "₹",
    business_name: str = "Hypro Cabs",
    markdown: bool = True,
) -> str:
    lines = "\n".join(f" - {item.label}: {item.amount}" for item in estimate.line_items)
    text = (
        f"*{business_name} - Estimate*\n"
        f"Trip Type: {estimate.trip_type.value.upper()}\n"
        f"Route: {inputs.route_note or 'Local'}\n"
        f"Distance: {format_amount(estimate.km)} km\n"
        "\n"
        "*Breakdown:*\n"
        f"{lines}\n"
        "\n"
        f"*Total: {currency_symbol}{format_amount(estimate.total, grouping=True)}*"
    )
    if not markdown:
        text = text.replace("*", "")
    return text


def whatsapp_share_url(text: str) -> str:
    return f"{SHARE_BASE_URL}?text={quote(text, safe='')}"

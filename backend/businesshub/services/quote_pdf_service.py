# Overview: Printable quote rendering; builds a PDF from a stored quote and its computed totals.

"""
Quote PDF

One A4 page (more if the item list runs long) with the business, the quote
title and status, a line table and the hardware/software/VAT summary. The
figures come from compute_quote_totals, the same numbers the JSON API shows.
"""

from __future__ import annotations

import io
import logging
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from ..models import Quote
from ..models.inventory import format_gbp
from .quote_service import get_quote
from .quote_totals import compute_quote_totals
from .tenant_service import resolve_org_id
from businesshub.time_utils import utcnow


logger = logging.getLogger(__name__)

LINE_HEADER = ["Product", "Type", "Qty", "Unit price", "Line total"]


def _line_rows(quote: Quote) -> list[list[str]]:
    rows = [LINE_HEADER]
    for item in quote.items:
        product = item.product
        name = product.name if product else f"Product #{item.product_id}"
        if product is not None and product.sku:
            name = f"{name} ({product.sku})"
        rows.append([
            name,
            item.line_category.capitalize(),
            str(item.quantity),
            format_gbp(item.price_cents),
            format_gbp(item.line_total_cents),
        ])
    return rows


def _summary_rows(quote: Quote) -> list[list[str]]:
    totals = compute_quote_totals(quote.items).to_dict()
    return [
        ["Hardware", totals["hardware_total"]],
        ["Software", totals["software_total"]],
        ["Subtotal", totals["subtotal"]],
        ["VAT (20%)", totals["vat"]],
        ["Total", totals["total"]],
    ]


def render_quote_pdf(quote: Quote) -> bytes:
    """Lay out the quote and return the PDF bytes."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        topMargin=18 * mm,
        bottomMargin=18 * mm,
        title=f"Quote {quote.id}",
    )
    styles = getSampleStyleSheet()

    content = []
    business_name = quote.business.name if quote.business else ""
    content.append(Paragraph(escape(quote.title), styles["Title"]))
    content.append(Paragraph(f"Quote #{quote.id} for <b>{escape(business_name)}</b>", styles["Normal"]))
    content.append(Paragraph(f"Status: {escape(quote.status)}", styles["Normal"]))
    content.append(Paragraph(f"Printed: {utcnow().strftime('%d %B %Y')}", styles["Normal"]))
    if quote.description:
        content.append(Spacer(1, 4 * mm))
        content.append(Paragraph(escape(quote.description), styles["Normal"]))
    content.append(Spacer(1, 8 * mm))

    lines = Table(_line_rows(quote), colWidths=[70 * mm, 25 * mm, 15 * mm, 30 * mm, 30 * mm], repeatRows=1)
    lines.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
        ("LINEBELOW", (0, 0), (-1, 0), 0.5, colors.black),
        ("ALIGN", (2, 0), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]))
    content.append(lines)
    content.append(Spacer(1, 6 * mm))

    summary = Table(_summary_rows(quote), colWidths=[40 * mm, 30 * mm], hAlign="RIGHT")
    summary.setStyle(TableStyle([
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("LINEABOVE", (0, -1), (-1, -1), 0.75, colors.black),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
    ]))
    content.append(summary)

    doc.build(content)
    return buffer.getvalue()


def quote_pdf(quote_id: int, org_id: int | None = None) -> bytes:
    """
    Raises:
        TenantAccessError: quote is not in the organization
    """
    org_id = resolve_org_id(org_id)
    quote = get_quote(quote_id, org_id)
    data = render_quote_pdf(quote)
    logger.info("Rendered quote %s PDF (%s bytes) for org %s", quote.id, len(data), org_id)
    return data

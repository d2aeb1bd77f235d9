from io import BytesIO
from typing import Optional

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from fieldops.services.line_items import to_decimal


def _money(value) -> str:
    return f"${to_decimal(value):,.2f}"


def _text(value, limit: int = 60) -> str:
    text = (value or "").strip() if isinstance(value, str) else str(value or "")
    return text if len(text) <= limit else text[: limit - 3] + "..."


def render_invoice_pdf(invoice, company=None, job=None, customer=None) -> bytes:
    """Render an invoice as an A4 PDF and return its bytes."""
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4

    y = height - 50

    def write_line(text: str = "", gap: int = 16, bold: bool = False, font_size: int = 10, x: int = 40):
        nonlocal y
        if y < 60:
            c.showPage()
            y = height - 50
        c.setFont("Helvetica-Bold" if bold else "Helvetica", font_size)
        c.drawString(x, y, text)
        y -= gap

    company_name = getattr(company, "name", None) or ""
    write_line(company_name or "Invoice", gap=22, bold=True, font_size=16)
    for label, attr in (("ABN", "abn"), ("", "address"), ("", "phone"), ("", "email")):
        value = getattr(company, attr, None) if company is not None else None
        if value:
            write_line(f"{label} {value}".strip(), gap=13, font_size=9)

    y -= 10
    write_line(f"TAX INVOICE {invoice.invoice_number or ''}".strip(), gap=20, bold=True, font_size=13)
    write_line(f"Status: {invoice.status}    Type: {invoice.type}", gap=14)
    if invoice.sent_at:
        write_line(f"Issued: {invoice.sent_at.strftime('%d/%m/%Y')}", gap=14)
    if invoice.due_date:
        write_line(f"Due: {invoice.due_date.strftime('%d/%m/%Y')}", gap=14)

    if customer is not None:
        customer_name = getattr(customer, "company_name", None) or ""
        write_line(f"Bill to: {_text(customer_name)}", gap=14)
        address = getattr(customer, "postal_address", None) or getattr(customer, "physical_address", None)
        if address:
            write_line(_text(address, 80), gap=14)
    if job is not None:
        write_line(f"Job: {_text(getattr(job, 'title', ''))}", gap=14)
        if getattr(job, "address", None):
            write_line(f"Site: {_text(job.address, 80)}", gap=14)

    y -= 10
    c.line(40, y + 8, width - 40, y + 8)
    c.setFont("Helvetica-Bold", 10)
    c.drawString(40, y - 4, "Item")
    c.drawRightString(330, y - 4, "Qty")
    c.drawRightString(410, y - 4, "Price")
    c.drawRightString(470, y - 4, "Tax %")
    c.drawRightString(width - 40, y - 4, "Total")
    y -= 22

    for row in invoice.line_items:
        if y < 80:
            c.showPage()
            y = height - 50
        c.setFont("Helvetica", 10)
        c.drawString(40, y, _text(row.name, 45))
        c.drawRightString(330, y, f"{to_decimal(row.quantity):g}")
        c.drawRightString(410, y, _money(row.price))
        c.drawRightString(470, y, f"{to_decimal(row.tax):g}")
        c.drawRightString(width - 40, y, _money(row.total))
        y -= 14
        if row.description:
            c.setFont("Helvetica", 8)
            c.drawString(50, y, _text(row.description, 90))
            y -= 12

    y -= 6
    c.line(40, y + 8, width - 40, y + 8)
    y -= 8
    for label, value, bold in (
        ("Subtotal", invoice.subtotal, False),
        ("GST", invoice.tax_amount, False),
        ("Total", invoice.total_with_tax, True),
        ("Paid", invoice.amount_paid, False),
        ("Amount due", invoice.amount_unpaid, True),
    ):
        c.setFont("Helvetica-Bold" if bold else "Helvetica", 10)
        c.drawRightString(470, y, label)
        c.drawRightString(width - 40, y, _money(value))
        y -= 15

    notes: Optional[str] = invoice.notes
    if notes:
        y -= 10
        write_line("Notes", bold=True)
        for line in notes.splitlines()[:10]:
            write_line(_text(line, 100), gap=13, font_size=9)

    c.showPage()
    c.save()
    return buffer.getvalue()

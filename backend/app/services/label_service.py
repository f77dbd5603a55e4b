"""
QR Label PDF Generation
Printable label for a registered batch: drug details plus the QR code a
consumer scans to reach the verification page.
"""
from io import BytesIO
from datetime import datetime
from xml.sax.saxutils import escape

from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A6
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch, mm
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

from app.models.drug import Drug
from app.services.drug_registry import qr_payload

QR_SIZE = 50 * mm


def qr_drawing(payload: str, size: float = QR_SIZE) -> Drawing:
    """Scale reportlab's QR widget into a square Drawing (a platypus flowable)."""
    widget = QrCodeWidget(payload)
    x1, y1, x2, y2 = widget.getBounds()
    width, height = x2 - x1, y2 - y1
    drawing = Drawing(size, size, transform=[size / width, 0, 0, size / height, 0, 0])
    drawing.add(widget)
    return drawing


def generate_label_pdf(drug: Drug) -> BytesIO:
    """
    Render the label for one drug.

    Returns:
        BytesIO buffer positioned at the start of the PDF data
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=A6,
        topMargin=0.3 * inch, bottomMargin=0.3 * inch,
        leftMargin=0.3 * inch, rightMargin=0.3 * inch,
        title=f"{drug.name} {drug.batch_number}",
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'LabelTitle',
        parent=styles['Heading2'],
        fontSize=13,
        textColor=colors.HexColor('#1a56db'),
        alignment=TA_CENTER,
        spaceAfter=4
    )
    normal_style = ParagraphStyle(
        'LabelNormal',
        parent=styles['Normal'],
        fontSize=8,
        textColor=colors.HexColor('#374151')
    )
    code_style = ParagraphStyle(
        'LabelCode',
        parent=normal_style,
        fontName='Courier',
        alignment=TA_CENTER
    )

    elements = [Paragraph(escape(drug.name), title_style)]

    info_table = Table(
        [
            [Paragraph("<b>Batch</b>", normal_style), Paragraph(escape(drug.batch_number), normal_style)],
            [Paragraph("<b>Expiry</b>", normal_style), Paragraph(drug.expiry_date.strftime('%d %b %Y'), normal_style)],
        ],
        colWidths=[0.8 * inch, 2.3 * inch],
    )
    info_table.setStyle(TableStyle([
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('BACKGROUND', (0, 0), (0, -1), colors.HexColor('#f3f4f6')),
        ('TOPPADDING', (0, 0), (-1, -1), 3),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 3),
    ]))
    elements.append(info_table)
    elements.append(Spacer(1, 0.15 * inch))

    qr_table = Table([[qr_drawing(qr_payload(drug.verification_code))]], colWidths=[3.1 * inch])
    qr_table.setStyle(TableStyle([('ALIGN', (0, 0), (-1, -1), 'CENTER')]))
    elements.append(qr_table)
    elements.append(Spacer(1, 0.05 * inch))
    elements.append(Paragraph(drug.verification_code, code_style))

    footer_style = ParagraphStyle('Footer', parent=styles['Normal'], fontSize=6,
                                  textColor=colors.grey, alignment=TA_CENTER)
    elements.append(Spacer(1, 0.1 * inch))
    elements.append(Paragraph("Scan to verify authenticity", footer_style))
    elements.append(Paragraph(f"Label generated on {datetime.now().strftime('%d %b %Y')}", footer_style))

    doc.build(elements)
    buffer.seek(0)
    return buffer

"""Serialise laid-out documents to PDF bytes with reportlab."""

import logging
from io import BytesIO

from reportlab.pdfgen import canvas

from proposalcrm.core.errors import RenderError
from proposalcrm.core.formatting import FormatConfig
from proposalcrm.schemas.document import ProposalDocumentContext
from proposalcrm.schemas.financials import ProposalFinancials
from proposalcrm.services.document_layout import (
    Document,
    LineElement,
    PageGeometry,
    RectElement,
    TextElement,
    layout_proposal,
)

logger = logging.getLogger(__name__)

# Distance from the top of a text line to its baseline, as a share of the font size.
BASELINE_RATIO = 0.85


def _draw_text(pdf: canvas.Canvas, element: TextElement, page_height: float) -> None:
    pdf.setFont(element.font, element.size)
    pdf.setFillColorRGB(*element.color)
    baseline = page_height - element.y - element.size * BASELINE_RATIO
    if element.align == "right":
        pdf.drawRightString(element.x + element.width, baseline, element.text)
    elif element.align == "center":
        pdf.drawCentredString(element.x + element.width / 2, baseline, element.text)
    else:
        pdf.drawString(element.x, baseline, element.text)


def _draw_line(pdf: canvas.Canvas, element: LineElement, page_height: float) -> None:
    pdf.setLineWidth(element.width)
    pdf.setStrokeColorRGB(*element.color)
    pdf.line(element.x1, page_height - element.y1, element.x2, page_height - element.y2)


def _draw_rect(pdf: canvas.Canvas, element: RectElement, page_height: float) -> None:
    if element.fill is not None:
        pdf.setFillColorRGB(*element.fill)
    pdf.setLineWidth(0.5)
    pdf.rect(
        element.x,
        page_height - element.y - element.height,
        element.width,
        element.height,
        stroke=1 if element.stroke else 0,
        fill=1 if element.fill is not None else 0,
    )


def render_pdf(document: Document) -> bytes:
    """Write every page of `document`; any failure surfaces as RenderError."""
    geometry = document.geometry
    buffer = BytesIO()
    try:
        pdf = canvas.Canvas(buffer, pagesize=(geometry.width, geometry.height))
        pdf.setTitle(document.title)
        pdf.setAuthor(document.author)
        pdf.setCreator("ProposalCRM")
        for page in document.pages:
            for element in page.elements:
                if isinstance(element, TextElement):
                    _draw_text(pdf, element, geometry.height)
                elif isinstance(element, LineElement):
                    _draw_line(pdf, element, geometry.height)
                elif isinstance(element, RectElement):
                    _draw_rect(pdf, element, geometry.height)
                else:
                    raise TypeError(f"Unknown document element {type(element).__name__}")
            pdf.showPage()
        pdf.save()
    except Exception as exc:
        logger.error("PDF serialisation failed for %r", document.title, exc_info=True)
        raise RenderError(f"Could not serialise document: {exc}") from exc
    return buffer.getvalue()


def generate_proposal_pdf(
    context: ProposalDocumentContext,
    financials: ProposalFinancials,
    config: FormatConfig,
    geometry: PageGeometry = PageGeometry(),
) -> bytes:
    document = layout_proposal(context, financials, config, geometry)
    data = render_pdf(document)
    logger.info("Rendered proposal %s: %s page(s), %s bytes", context.reference, len(document.pages), len(data))
    return data

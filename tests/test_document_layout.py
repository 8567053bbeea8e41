from datetime import date
from decimal import Decimal

import pytest

from proposalcrm.core.errors import RenderError
from proposalcrm.core.formatting import FormatConfig
from proposalcrm.schemas.document import CustomerInfo, ProposalDocumentContext
from proposalcrm.schemas.lines import EngineeringLine, ItemLine, ProposalChildren
from proposalcrm.schemas.payment_terms import PaymentTerms
from proposalcrm.services.document_layout import (
    MIN_ROW_HEIGHT,
    Cell,
    Document,
    DocumentLayout,
    Page,
    PageGeometry,
    TextElement,
    layout_proposal,
)
from proposalcrm.services.financials import compute_financials
from proposalcrm.services.pdf_renderer import generate_proposal_pdf, render_pdf

CONFIG = FormatConfig()


def make_children(item_count=3, engineering=()):
    items = [
        ItemLine(
            id=i,
            product_code=f"P{i:03d}",
            product_name=f"Part {i:03d}",
            category="Parts" if i % 2 else "Tools",
            quantity=Decimal("1"),
            unit_price=Decimal("100"),
            list_price=Decimal("100"),
            partner_price=Decimal("60"),
        )
        for i in range(1, item_count + 1)
    ]
    return ProposalChildren(items=items, engineering=list(engineering))


def make_document(item_count=3, engineering=(), **context_fields):
    children = make_children(item_count, engineering)
    context = ProposalDocumentContext(
        reference="Q-2026-001",
        generated_on=date(2026, 10, 19),
        children=children,
        **context_fields,
    )
    financials = compute_financials(children, CONFIG.vat_rate_percent)
    return context, financials, layout_proposal(context, financials, CONFIG)


def texts(document):
    return [el.text for page in document.pages for el in page.elements if isinstance(el, TextElement)]


def test_advance_starts_new_page_when_block_does_not_fit():
    layout = DocumentLayout(PageGeometry(height=842, margin=40))
    layout.state.cursor_y = 800

    y = layout.advance(50)

    assert y == 40
    assert layout.state.current_page == 2
    assert [page.number for page in layout.pages] == [1, 2]


def test_advance_keeps_page_when_block_fits():
    layout = DocumentLayout(PageGeometry(height=842, margin=40))
    layout.state.cursor_y = 700

    assert layout.advance(50) == 700
    assert layout.state.current_page == 1


def test_footer_added_when_page_closes():
    layout = DocumentLayout(PageGeometry(height=842, margin=40), footer_text=lambda n: f"Page {n}")
    layout.state.cursor_y = 800
    layout.advance(50)
    document = layout.finish()

    footers = [[el.text for el in page.elements if isinstance(el, TextElement)] for page in document.pages]
    assert footers == [["Page 1"], ["Page 2"]]


def test_row_height_follows_wrapped_text():
    layout = DocumentLayout()
    assert layout.row([Cell("short", 100)]) == MIN_ROW_HEIGHT
    assert layout.row([Cell("a long description " * 20, 100), Cell("x", 50)]) > MIN_ROW_HEIGHT


def test_row_redraws_header_after_break():
    layout = DocumentLayout(PageGeometry(height=842, margin=40))
    layout.state.cursor_y = 790
    calls = []

    layout.row([Cell("value", 100)], on_break=lambda: calls.append(layout.state.current_page))

    assert calls == [2]
    assert layout.state.current_page == 2


def test_many_items_span_pages_with_footer_on_each():
    _, _, document = make_document(item_count=80)

    assert len(document.pages) > 1
    for page in document.pages:
        page_texts = [el.text for el in page.elements if isinstance(el, TextElement)]
        assert any(t.startswith("Reference: Q-2026-001") and f"Page {page.number}" in t for t in page_texts)


def test_table_header_repeats_on_every_product_page():
    _, _, document = make_document(item_count=80)
    pages_with_header = [page.number for page in document.pages
                         if any(isinstance(el, TextElement) and el.text == "Unit cost" for el in page.elements)]
    assert len(pages_with_header) > 1


def test_text_stays_inside_page():
    _, _, document = make_document(item_count=40)
    geometry = document.geometry
    for page in document.pages:
        for element in page.elements:
            if isinstance(element, TextElement):
                assert geometry.margin <= element.y <= geometry.bottom + 10


def test_missing_customer_placeholder():
    _, _, document = make_document()
    assert "No customer assigned to this proposal." in texts(document)

    _, _, document = make_document(customer=CustomerInfo(name="Acme Ltd", email="buyer@acme.test"))
    assert "Acme Ltd" in texts(document)
    assert "No customer assigned to this proposal." not in texts(document)


def test_optional_sections():
    _, _, document = make_document()
    assert "Engineering Services" not in texts(document)
    assert "Notes" not in texts(document)

    _, _, document = make_document(
        engineering=[EngineeringLine(id=1, description="Commissioning", days=Decimal("2"), rate=Decimal("900"))],
        notes="Deliver to gate 3",
    )
    assert "Engineering Services" in texts(document)
    assert "Deliver to gate 3" in texts(document)


def test_deposit_row_from_payment_terms():
    terms = PaymentTerms(terms="Net 30", deposit_required=True, deposit_percentage=Decimal("50"))
    _, _, document = make_document(payment_terms=terms)

    assert "Deposit" in texts(document)
    assert "Net 30" in texts(document)


def test_layout_is_deterministic():
    assert make_document(item_count=25)[2] == make_document(item_count=25)[2]


def test_generate_pdf_bytes():
    context, financials, _ = make_document(item_count=30)
    data = generate_proposal_pdf(context, financials, CONFIG)
    assert data.startswith(b"%PDF")


def test_render_failure_raises_render_error():
    document = Document(geometry=PageGeometry(), pages=[Page(number=1, elements=[object()])])
    with pytest.raises(RenderError):
        render_pdf(document)


def test_row_taller_than_a_page_is_split_across_pages():
    layout = DocumentLayout(PageGeometry(height=842, margin=40))
    headers = []
    text = "segment " * 1200

    height = layout.row([Cell(text, 100), Cell("1", 50)], on_break=lambda: headers.append(layout.state.current_page))

    assert layout.state.current_page > 2
    assert headers == list(range(2, layout.state.current_page + 1))
    drawn = [el for page in layout.pages for el in page.elements if isinstance(el, TextElement)]
    assert all(40 <= el.y <= 802 for el in drawn)
    assert sum(el.text.split().count("segment") for el in drawn) == 1200
    assert height > 802 - 40


def test_very_long_product_name_keeps_every_line_on_the_page():
    name = "Hydraulic pump " * 600
    children = ProposalChildren(items=[
        ItemLine(id=1, product_code="P001", product_name=name, category="Parts", quantity=Decimal("1"),
                 unit_price=Decimal("100"), list_price=Decimal("100"), partner_price=Decimal("60")),
    ])
    context = ProposalDocumentContext(reference="Q-2026-002", generated_on=date(2026, 10, 19), children=children)
    document = layout_proposal(context, compute_financials(children, CONFIG.vat_rate_percent), CONFIG)
    geometry = document.geometry

    assert len(document.pages) > 1
    for page in document.pages:
        for element in page.elements:
            if isinstance(element, TextElement):
                assert geometry.margin <= element.y <= geometry.bottom + 10
    assert sum(text.split().count("Hydraulic") for text in texts(document)) == 600
    pages_with_header = [page for page in document.pages
                         if any(isinstance(el, TextElement) and el.text == "Unit cost" for el in page.elements)]
    for page in pages_with_header:
        assert any(isinstance(el, TextElement) and "Hydraulic" in el.text for el in page.elements)

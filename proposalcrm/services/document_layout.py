"""Paginated layout of a proposal document.

Layout is a pure pass that turns a proposal context and its computed
financials into pages of positioned text, line and rectangle elements.
Coordinates are in points measured from the top-left corner of the page.
Before every block the layout calls `advance` with the block height; when
the block does not fit above the bottom margin the current page is closed
with its footer and a new page starts at the top margin.

Serialisation to PDF lives in `pdf_renderer`.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple, Union

from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth

from proposalcrm.core.formatting import FormatConfig, format_currency, format_date, format_percent, format_quantity
from proposalcrm.schemas.document import ProposalDocumentContext
from proposalcrm.schemas.financials import ProposalFinancials
from proposalcrm.services.financials import (
    calculate_deposit_amount,
    classify_expense,
    compute_engineering_amount,
    sort_engineering,
    sort_expenses,
    sort_taxes,
    vat_on,
)

logger = logging.getLogger(__name__)

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
LINE_SPACING = 1.2
CELL_PADDING = 3.0
MIN_ROW_HEIGHT = 18.0
SECTION_GAP = 20.0

BLACK = (0.0, 0.0, 0.0)
DARK_GREY = (0.25, 0.25, 0.25)
GREY = (0.5, 0.5, 0.5)
HEADER_FILL = (0.92, 0.92, 0.92)
BOX_FILL = (0.96, 0.96, 0.96)
PROFIT_GREEN = (0.1, 0.55, 0.2)
LOSS_RED = (0.8, 0.1, 0.1)

DELIVERY_TEXT = "2-3 weeks after order confirmation"
WARRANTY_TEXT = "12 months standard manufacturer warranty"
DEFAULT_PAYMENT_TERMS = "As agreed"
LEGAL_DISCLAIMER = (
    "Legal notice: This proposal is confidential and provided for information purposes only. "
    "It is not binding unless accepted in writing by the recipient. Prices may change with "
    "supply conditions, exchange rates and other factors. All taxes are subject to local tax "
    "regulations. Products are supplied under standard warranty conditions. Please contact us "
    "with any questions about this proposal."
)


@dataclass(frozen=True)
class PageGeometry:
    width: float = 595.28
    height: float = 841.89
    margin: float = 40.0

    @property
    def content_width(self) -> float:
        return self.width - 2 * self.margin

    @property
    def bottom(self) -> float:
        return self.height - self.margin


@dataclass
class PageState:
    current_page: int = 1
    cursor_y: float = 40.0


@dataclass
class TextElement:
    x: float
    y: float
    width: float
    text: str
    font: str = FONT
    size: float = 9.0
    align: str = "left"
    color: Tuple[float, float, float] = BLACK


@dataclass
class LineElement:
    x1: float
    y1: float
    x2: float
    y2: float
    width: float = 0.5
    color: Tuple[float, float, float] = DARK_GREY


@dataclass
class RectElement:
    x: float
    y: float
    width: float
    height: float
    fill: Optional[Tuple[float, float, float]] = None
    stroke: bool = True


Element = Union[TextElement, LineElement, RectElement]


@dataclass
class Page:
    number: int
    elements: List[Element] = field(default_factory=list)


@dataclass
class Document:
    geometry: PageGeometry
    pages: List[Page]
    title: str = ""
    author: str = ""


@dataclass(frozen=True)
class Column:
    title: str
    ratio: float
    align: str = "left"


@dataclass
class Cell:
    text: str
    width: float
    align: str = "left"
    color: Tuple[float, float, float] = DARK_GREY


def line_height(size: float) -> float:
    return size * LINE_SPACING


def wrap_text(text: str, width: float, font: str = FONT, size: float = 9.0) -> List[str]:
    """Split text into lines that fit `width`; never returns an empty list."""
    if not text:
        return [""]
    lines = simpleSplit(text, font, size, max(width, 1.0))
    return lines or [""]


def fit_text(text: str, width: float, font: str = FONT, size: float = 9.0) -> str:
    """Truncate a single line with an ellipsis so it fits `width`."""
    if stringWidth(text, font, size) <= width:
        return text
    while text and stringWidth(text + "...", font, size) > width:
        text = text[:-1]
    return text + "..."


class DocumentLayout:
    """Cursor-driven page builder."""

    def __init__(self, geometry: PageGeometry = PageGeometry(), footer_text=None):
        self.geometry = geometry
        self.state = PageState(current_page=1, cursor_y=geometry.margin)
        self.pages: List[Page] = [Page(number=1)]
        self._footer_text = footer_text

    @property
    def page(self) -> Page:
        return self.pages[-1]

    @property
    def left(self) -> float:
        return self.geometry.margin

    @property
    def width(self) -> float:
        return self.geometry.content_width

    def advance(self, required_height: float) -> float:
        """Return the cursor for a block of `required_height`, breaking the page if it does not fit."""
        if self.state.cursor_y + required_height > self.geometry.bottom:
            self._close_page()
            self.state = PageState(current_page=self.state.current_page + 1, cursor_y=self.geometry.margin)
            self.pages.append(Page(number=self.state.current_page))
        return self.state.cursor_y

    def move(self, height: float) -> None:
        self.state.cursor_y += height

    def add(self, element: Element) -> None:
        self.page.elements.append(element)

    def _close_page(self) -> None:
        if self._footer_text is None:
            return
        text = self._footer_text(self.state.current_page)
        size = 7.5
        self.add(
            TextElement(
                x=self.left,
                y=self.geometry.bottom + 10,
                width=self.width,
                text=fit_text(text, self.width, FONT, size),
                size=size,
                align="center",
                color=GREY,
            )
        )

    def finish(self, title: str = "", author: str = "") -> Document:
        self._close_page()
        return Document(geometry=self.geometry, pages=self.pages, title=title, author=author)

    # -- primitives ---------------------------------------------------------------

    def text_block(
        self,
        text: str,
        *,
        font: str = FONT,
        size: float = 9.0,
        color=BLACK,
        indent: float = 0.0,
        gap_after: float = 2.0,
    ) -> None:
        """Wrapped paragraph; each line may move to the next page on its own."""
        width = self.width - indent
        for line in wrap_text(text, width, font, size):
            y = self.advance(line_height(size))
            self.add(TextElement(x=self.left + indent, y=y, width=width, text=line, font=font, size=size, color=color))
            self.move(line_height(size))
        self.move(gap_after)

    def section_title(self, title: str, keep_with: float = MIN_ROW_HEIGHT * 2) -> None:
        size = 13.0
        y = self.advance(line_height(size) + 6 + keep_with)
        self.add(TextElement(x=self.left, y=y, width=self.width, text=title, font=FONT_BOLD, size=size))
        self.move(line_height(size) + 6)

    def row(
        self,
        cells: Sequence[Cell],
        *,
        font: str = FONT,
        size: float = 8.0,
        fill=None,
        min_height: float = MIN_ROW_HEIGHT,
        on_break=None,
    ) -> float:
        """Draw one bordered table row sized by its tallest wrapped cell; return its height.

        A row taller than a whole page starts where the cursor is and is split
        line by line across pages, calling `on_break` on each new page. The
        returned height is the sum of the drawn parts.
        """
        wrapped = [wrap_text(cell.text, cell.width - 2 * CELL_PADDING, font, size) for cell in cells]
        step = line_height(size)
        page_room = self.geometry.bottom - self.geometry.margin
        drawn = 0.0
        while True:
            height = max(max(len(lines) for lines in wrapped) * step + 2 * CELL_PADDING, min_height)
            page_before = self.state.current_page
            block = height if height <= page_room else max(step + 2 * CELL_PADDING, min_height)
            y = self.advance(block)
            if on_break is not None and self.state.current_page != page_before:
                on_break()
                y = self.advance(min(height, self.geometry.bottom - self.state.cursor_y))

            room = self.geometry.bottom - y
            if height <= room:
                self._draw_row(cells, wrapped, y, height, font, size, fill)
                self.move(height)
                return drawn + height

            fit = max(int((room - 2 * CELL_PADDING) // step), 1)
            part = fit * step + 2 * CELL_PADDING
            self._draw_row(cells, [lines[:fit] for lines in wrapped], y, part, font, size, fill)
            self.move(part)
            drawn += part
            wrapped = [lines[fit:] or [""] for lines in wrapped]

    def _draw_row(self, cells, wrapped, y: float, height: float, font: str, size: float, fill) -> None:
        x = self.left
        total_width = sum(cell.width for cell in cells)
        if fill is not None:
            self.add(RectElement(x=x, y=y, width=total_width, height=height, fill=fill, stroke=False))
        for cell, lines in zip(cells, wrapped):
            text_top = y + (height - len(lines) * line_height(size)) / 2
            for index, line in enumerate(lines):
                self.add(
                    TextElement(
                        x=x + CELL_PADDING,
                        y=text_top + index * line_height(size),
                        width=cell.width - 2 * CELL_PADDING,
                        text=line,
                        font=font,
                        size=size,
                        align=cell.align,
                        color=cell.color,
                    )
                )
            x += cell.width
        self._borders(y, height, [cell.width for cell in cells])

    def _borders(self, y: float, height: float, widths: Sequence[float]) -> None:
        left = self.left
        right = left + sum(widths)
        self.add(LineElement(left, y, right, y))
        self.add(LineElement(left, y + height, right, y + height))
        x = left
        self.add(LineElement(x, y, x, y + height))
        for width in widths:
            x += width
            self.add(LineElement(x, y, x, y + height))

    def table(
        self,
        title: Optional[str],
        columns: Sequence[Column],
        rows: Sequence[Sequence[Union[str, Tuple[str, Tuple[float, float, float]]]]],
        totals: Sequence[Tuple[str, str, bool]] = (),
        totals_span: int = 1,
    ) -> None:
        """Titled table with a repeated header row and label/value total rows.

        A data cell is either text or a (text, color) pair. Each total row is
        (label, value, bold); the value spans the last `totals_span` columns.
        """
        widths = [self.width * column.ratio for column in columns]
        if title:
            self.section_title(title)

        def header():
            cells = [Cell(c.title, w, c.align, BLACK) for c, w in zip(columns, widths)]
            self.row(cells, font=FONT_BOLD, fill=HEADER_FILL)

        header()
        for values in rows:
            cells = []
            for value, column, width in zip(values, columns, widths):
                text, color = value if isinstance(value, tuple) else (value, DARK_GREY)
                cells.append(Cell(text, width, column.align, color))
            self.row(cells, on_break=header)

        label_width = sum(widths[: len(widths) - totals_span])
        value_width = sum(widths[len(widths) - totals_span :])
        for label, value, bold in totals:
            self.row(
                [Cell(label, label_width, "left", BLACK), Cell(value, value_width, "right", BLACK)],
                font=FONT_BOLD if bold else FONT,
                size=9.0 if bold else 8.5,
            )
        self.move(SECTION_GAP)

    def key_values(self, rows: Sequence[Tuple[str, str, bool]], label_ratio: float = 0.65, fill=None) -> None:
        label_width = self.width * label_ratio
        value_width = self.width - label_width
        for label, value, bold in rows:
            self.row(
                [Cell(label, label_width, "left", BLACK), Cell(value, value_width, "right", BLACK)],
                font=FONT_BOLD if bold else FONT,
                size=9.0,
                fill=fill,
            )


# -- sections -------------------------------------------------------------------


def _vat_label(config: FormatConfig) -> str:
    return f"VAT ({format_percent(config.vat_rate_percent, config)})"


def _subtotal_rows(label: str, subtotal: Decimal, config: FormatConfig) -> List[Tuple[str, str, bool]]:
    vat = vat_on(subtotal, config.vat_rate_percent)
    return [
        (f"{label} subtotal", format_currency(subtotal, config), True),
        (_vat_label(config), format_currency(vat, config), False),
        (f"{label} total incl. VAT", format_currency(subtotal + vat, config), True),
    ]


def draw_header(layout: DocumentLayout, context: ProposalDocumentContext, config: FormatConfig) -> None:
    y = layout.advance(60)
    layout.add(TextElement(x=layout.left, y=y, width=layout.width, text=context.company.name, font=FONT_BOLD, size=18))
    layout.add(TextElement(x=layout.left, y=y, width=layout.width, text="PROPOSAL", font=FONT_BOLD, size=18, align="right", color=GREY))
    layout.move(line_height(18) + 4)
    for line in (context.company.address, context.company.contact):
        if line:
            layout.text_block(line, size=8.5, color=DARK_GREY, gap_after=0)
    layout.move(6)
    y = layout.advance(1)
    layout.add(LineElement(layout.left, y, layout.left + layout.width, y, width=1.0))
    layout.move(10)

    layout.key_values(
        [
            ("Proposal reference", context.reference, True),
            ("Date", format_date(context.creation_date or context.generated_on, config), False),
            ("Status", context.status, False),
        ]
    )
    layout.move(12)

    layout.section_title("Customer", keep_with=line_height(9) * 3)
    customer = context.customer
    if customer is None:
        layout.text_block("No customer assigned to this proposal.", color=GREY)
    else:
        layout.text_block(customer.name, font=FONT_BOLD, size=10)
        for line in (customer.contact_name, customer.address, customer.email, customer.phone):
            if line:
                layout.text_block(line, color=DARK_GREY, gap_after=0)
        if customer.tax_id:
            layout.text_block(f"Tax ID: {customer.tax_id}", color=DARK_GREY, gap_after=0)
    layout.move(SECTION_GAP)


def draw_terms(
    layout: DocumentLayout,
    context: ProposalDocumentContext,
    financials: ProposalFinancials,
    config: FormatConfig,
) -> None:
    valid_until = context.generated_on + timedelta(days=context.offer_validity_days)
    terms = context.payment_terms
    rows = [
        ("Offer valid until", f"{format_date(valid_until, config)} ({context.offer_validity_days} days)", False),
        ("Payment terms", (terms.terms if terms and terms.terms else DEFAULT_PAYMENT_TERMS), False),
    ]
    if terms is not None:
        if terms.deposit_required:
            deposit = calculate_deposit_amount(terms, financials.total_amount)
            rows.append(("Deposit", format_currency(deposit, config), False))
        if terms.payment_methods:
            rows.append(("Payment methods", ", ".join(terms.payment_methods), False))
        if terms.late_penalty:
            rows.append(("Late payment", terms.late_penalty, False))
        if terms.invoice_schedule:
            rows.append(("Invoicing", terms.invoice_schedule, False))
    rows.extend(
        [
            ("Delivery", DELIVERY_TEXT, False),
            ("Currency", config.currency_code, False),
            ("Warranty", WARRANTY_TEXT, False),
        ]
    )
    layout.section_title("Terms and Conditions")
    layout.key_values(rows, label_ratio=0.3)
    if terms is not None and terms.custom_terms:
        layout.move(6)
        layout.text_block(terms.custom_terms, size=8.5, color=DARK_GREY)
    layout.move(SECTION_GAP)


PRODUCT_COLUMNS = (
    Column("#", 0.05, "center"),
    Column("Code", 0.10),
    Column("Product", 0.20),
    Column("Category", 0.08),
    Column("Qty", 0.05, "center"),
    Column("Unit cost", 0.09, "right"),
    Column("List price", 0.09, "right"),
    Column("Mult.", 0.06, "center"),
    Column("Disc.", 0.05, "center"),
    Column("Total", 0.09, "right"),
    Column("Margin", 0.07, "right"),
    Column("Incl. VAT", 0.07, "right"),
)


def draw_products(layout: DocumentLayout, financials: ProposalFinancials, config: FormatConfig) -> None:
    rows = []
    for index, line in enumerate(financials.lines, start=1):
        unit_cost = line.cost / line.quantity if line.quantity else Decimal("0")
        margin_color = PROFIT_GREEN if line.profit >= 0 else LOSS_RED
        rows.append(
            [
                str(index),
                line.product_code,
                line.product_name,
                line.category,
                format_quantity(line.quantity, config),
                format_currency(unit_cost, config),
                format_currency(line.list_price, config),
                format_quantity(line.multiplier, config),
                format_percent(line.discount, config),
                format_currency(line.amount, config),
                (format_percent(line.margin_pct, config), margin_color),
                format_currency(line.amount_with_vat, config),
            ]
        )
    layout.section_title("Products")
    layout.text_block(f"{len(rows)} product line(s)", size=8, color=DARK_GREY, gap_after=6)
    layout.table(None, PRODUCT_COLUMNS, rows, _subtotal_rows("Products", financials.subtotal_products, config), totals_span=4)


def draw_engineering(layout: DocumentLayout, context: ProposalDocumentContext, financials: ProposalFinancials, config: FormatConfig) -> None:
    columns = (Column("Description", 0.55), Column("Days", 0.12, "center"), Column("Day rate", 0.16, "right"), Column("Amount", 0.17, "right"))
    rows = [
        [
            line.description,
            format_quantity(line.days, config),
            format_currency(line.rate, config),
            format_currency(compute_engineering_amount(line), config),
        ]
        for line in sort_engineering(context.children.engineering)
    ]
    layout.table("Engineering Services", columns, rows, _subtotal_rows("Engineering", financials.subtotal_engineering, config))


def draw_expenses(layout: DocumentLayout, context: ProposalDocumentContext, financials: ProposalFinancials, config: FormatConfig) -> None:
    columns = (Column("Description", 0.6), Column("Type", 0.2, "center"), Column("Amount", 0.2, "right"))
    rows = [
        [expense.description, classify_expense(expense.description).capitalize(), format_currency(expense.amount, config)]
        for expense in sort_expenses(context.children.expenses)
    ]
    layout.table("Expenses", columns, rows, _subtotal_rows("Expenses", financials.subtotal_expenses, config))


def draw_taxes(layout: DocumentLayout, context: ProposalDocumentContext, financials: ProposalFinancials, config: FormatConfig) -> None:
    columns = (Column("Tax", 0.45), Column("Rate", 0.15, "center"), Column("Base", 0.2, "right"), Column("Amount", 0.2, "right"))
    rows = [
        [
            tax.name,
            format_percent(tax.rate, config),
            format_currency(financials.custom_tax_base, config),
            format_currency(tax.amount, config),
        ]
        for tax in sort_taxes(context.children.taxes)
    ]
    layout.table("Custom Taxes", columns, rows, _subtotal_rows("Taxes", financials.subtotal_taxes, config))


def draw_financial_summary(layout: DocumentLayout, financials: ProposalFinancials, config: FormatConfig) -> None:
    def money(value):
        return format_currency(value, config)

    def pct(value):
        return format_percent(value, config)

    layout.section_title("Financial Summary")
    layout.text_block("1. Revenue", font=FONT_BOLD, size=10, gap_after=4)
    layout.key_values(
        [
            ("Products", money(financials.subtotal_products), False),
            ("Engineering services", money(financials.subtotal_engineering), False),
            ("Expenses", money(financials.subtotal_expenses), False),
            ("Custom taxes", money(financials.subtotal_taxes), False),
            ("Total", money(financials.total_amount), True),
            (_vat_label(config), money(financials.vat_amount), False),
            ("Total incl. VAT", money(financials.total_with_vat), True),
        ],
        fill=BOX_FILL,
    )
    layout.move(10)

    layout.text_block("2. Costs", font=FONT_BOLD, size=10, gap_after=4)
    cost_rows = [("Product costs", money(financials.product_cost), False)]
    for label, value in (
        ("Shipping and logistics", financials.expenses.shipping),
        ("Insurance and guarantees", financials.expenses.insurance),
        ("Other operating expenses", financials.expenses.other),
    ):
        if value > 0:
            cost_rows.append((label, money(value), False))
    cost_rows.append(("Total cost", money(financials.total_cost), True))
    layout.key_values(cost_rows, fill=BOX_FILL)
    layout.move(10)

    layout.text_block("3. Profit Analysis", font=FONT_BOLD, size=10, gap_after=4)
    layout.key_values(
        [
            ("Product profit", money(financials.product_profit), False),
            ("Engineering profit", money(financials.engineering_profit), False),
            ("Gross profit", money(financials.gross_profit), True),
            ("Profit margin", pct(financials.margin_pct), True),
            ("Return on investment", pct(financials.roi_pct), False),
            ("Target margin", pct(financials.target_margin_pct), False),
            ("Difference to target", pct(financials.margin_gap_pct), False),
        ],
        fill=BOX_FILL,
    )
    layout.move(SECTION_GAP)


def draw_category_analysis(layout: DocumentLayout, financials: ProposalFinancials, config: FormatConfig) -> None:
    if not financials.categories:
        return
    columns = (
        Column("Category", 0.28),
        Column("Items", 0.1, "center"),
        Column("Revenue", 0.16, "right"),
        Column("Cost", 0.16, "right"),
        Column("Profit", 0.16, "right"),
        Column("Margin", 0.14, "right"),
    )
    rows = [
        [
            row.category,
            str(row.count),
            format_currency(row.revenue, config),
            format_currency(row.cost, config),
            format_currency(row.profit, config),
            (format_percent(row.margin_pct, config), PROFIT_GREEN if row.profit >= 0 else LOSS_RED),
        ]
        for row in financials.categories
    ]
    layout.table("Category Analysis", columns, rows)


def draw_notes(layout: DocumentLayout, notes: Optional[str]) -> None:
    if not notes or not notes.strip():
        return
    layout.section_title("Notes", keep_with=line_height(9))
    for paragraph in notes.strip().splitlines():
        layout.text_block(paragraph, color=DARK_GREY, gap_after=0)
    layout.move(SECTION_GAP)


def draw_disclaimer(layout: DocumentLayout) -> None:
    size = 7.5
    lines = wrap_text(LEGAL_DISCLAIMER, layout.width - 10, FONT, size)
    height = len(lines) * line_height(size) + 10
    y = layout.advance(height)
    layout.add(RectElement(x=layout.left, y=y, width=layout.width, height=height, fill=BOX_FILL))
    for index, line in enumerate(lines):
        layout.add(
            TextElement(
                x=layout.left + 5,
                y=y + 5 + index * line_height(size),
                width=layout.width - 10,
                text=line,
                size=size,
                color=DARK_GREY,
            )
        )
    layout.move(height + SECTION_GAP)


def footer_text(context: ProposalDocumentContext, config: FormatConfig, page_number: int) -> str:
    return (
        f"Reference: {context.reference} | Date: {format_date(context.generated_on, config)} | "
        f"Page {page_number} | {context.company.name} © {context.generated_on.year}"
    )


def layout_proposal(
    context: ProposalDocumentContext,
    financials: ProposalFinancials,
    config: FormatConfig,
    geometry: PageGeometry = PageGeometry(),
) -> Document:
    """Lay out every section in order; pure and deterministic for equal input."""
    layout = DocumentLayout(geometry, footer_text=lambda page: footer_text(context, config, page))
    draw_header(layout, context, config)
    draw_terms(layout, context, financials, config)
    draw_products(layout, financials, config)
    if context.children.engineering:
        draw_engineering(layout, context, financials, config)
    if context.children.expenses:
        draw_expenses(layout, context, financials, config)
    if context.children.taxes:
        draw_taxes(layout, context, financials, config)
    draw_financial_summary(layout, financials, config)
    draw_category_analysis(layout, financials, config)
    draw_notes(layout, context.notes)
    draw_disclaimer(layout)
    document = layout.finish(title=f"Proposal {context.reference}", author=context.company.name)
    logger.debug("Laid out proposal %s on %s page(s)", context.reference, len(document.pages))
    return document

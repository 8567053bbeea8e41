from decimal import Decimal

import pytest

from proposalcrm.core.errors import ValidationError
from proposalcrm.schemas.lines import EngineeringLine, ExpenseLine, ItemLine, ProposalChildren, TaxLine
from proposalcrm.schemas.payment_terms import PaymentTerms
from proposalcrm.services.financials import (
    break_even_discount,
    calculate_deposit_amount,
    classify_expense,
    compute_category_breakdown,
    compute_financials,
    compute_line_amount,
    item_margin,
    item_profit,
    percent_of,
    price_from_list,
    recalculate_custom_taxes,
)

VAT = Decimal("18")


def make_item(name="Widget", quantity="1", unit_price="100", partner_price="60", category="", **kwargs):
    return ItemLine(
        product_code=kwargs.pop("code", name.upper()[:6]),
        product_name=name,
        category=category,
        quantity=Decimal(quantity),
        unit_price=Decimal(unit_price),
        partner_price=None if partner_price is None else Decimal(partner_price),
        **kwargs,
    )


def test_empty_proposal_is_all_zero():
    result = compute_financials(ProposalChildren(), VAT)
    assert result.subtotal_products == 0
    assert result.subtotal_engineering == 0
    assert result.subtotal_expenses == 0
    assert result.subtotal_taxes == 0
    assert result.total_amount == 0
    assert result.vat_amount == 0
    assert result.margin_pct == 0
    assert result.roi_pct == 0
    assert result.margin_gap_pct == 0
    assert result.lines == []
    assert result.categories == []


def test_single_item_profit_and_margin():
    item = make_item(quantity="2", unit_price="100", partner_price="60")
    assert compute_line_amount(item) == Decimal("200.00")
    assert item_profit(item) == Decimal("80.00")
    assert item_margin(item) == Decimal("40")

    result = compute_financials(ProposalChildren(items=[item]), VAT)
    line = result.lines[0]
    assert line.amount == Decimal("200.00")
    assert line.cost == Decimal("120.00")
    assert line.profit == Decimal("80.00")
    assert line.margin_pct == Decimal("40")
    assert line.amount_with_vat == Decimal("236.00")


def test_stored_amount_is_ignored():
    item = make_item(quantity="3", unit_price="10", amount=Decimal("999"))
    result = compute_financials(ProposalChildren(items=[item]), VAT)
    assert result.subtotal_products == Decimal("30.00")


def test_totals_with_vat():
    children = ProposalChildren(
        items=[make_item(quantity="1", unit_price="1000", partner_price="400")],
        engineering=[EngineeringLine(description="Commissioning", days=Decimal("5"), rate=Decimal("100"))],
        expenses=[ExpenseLine(description="Site visit", amount=Decimal("200"))],
    )
    result = compute_financials(children, VAT)
    assert result.subtotal_products == Decimal("1000")
    assert result.subtotal_engineering == Decimal("500")
    assert result.subtotal_expenses == Decimal("200")
    assert result.subtotal_taxes == 0
    assert result.total_amount == Decimal("1700")
    assert result.vat_amount == Decimal("306.00")
    assert result.total_with_vat == Decimal("2006.00")


def test_profit_ratios():
    children = ProposalChildren(
        items=[make_item(quantity="1", unit_price="1000", partner_price="400")],
        engineering=[EngineeringLine(description="Setup", days=Decimal("1"), rate=Decimal("500"))],
        expenses=[ExpenseLine(description="Freight", amount=Decimal("100"))],
    )
    result = compute_financials(children, VAT, target_margin_pct=Decimal("50"))
    assert result.product_cost == Decimal("400.00")
    assert result.total_cost == Decimal("500.00")
    assert result.product_profit == Decimal("600.00")
    assert result.engineering_profit == Decimal("500.00")
    assert result.gross_profit == Decimal("1100.00")
    assert result.margin_pct == Decimal("68.75")
    assert result.roi_pct == Decimal("220")
    assert result.margin_gap_pct == Decimal("18.75")
    assert result.expenses.shipping == Decimal("100.00")


def test_subtotal_is_exact_sum_of_item_amounts():
    items = [make_item(name=f"Part {i}", quantity="3", unit_price="0.10", partner_price="0.05") for i in range(10)]
    result = compute_financials(ProposalChildren(items=items), VAT)
    assert result.subtotal_products == sum((line.amount for line in result.lines), Decimal("0"))
    assert result.subtotal_products == Decimal("3.00")


def test_custom_tax_base_only_counts_flagged_items():
    items = [
        make_item(name="A", quantity="2", unit_price="100", partner_price="50", apply_custom_tax=True),
        make_item(name="B", quantity="1", unit_price="100", partner_price="30"),
    ]
    result = compute_financials(ProposalChildren(items=items), VAT)
    assert result.custom_tax_base == Decimal("100.00")


def test_recalculate_custom_taxes_returns_new_lines():
    items = [make_item(name="A", quantity="2", unit_price="100", partner_price="50", apply_custom_tax=True)]
    taxes = [TaxLine(id=1, name="Stamp duty", rate=Decimal("10")), TaxLine(id=2, name="Levy", rate=Decimal("2.5"))]

    updated = recalculate_custom_taxes(items, taxes)

    assert [t.amount for t in updated] == [Decimal("10.00"), Decimal("2.50")]
    assert [t.id for t in updated] == [1, 2]
    assert all(t.amount == 0 for t in taxes)


def test_category_breakdown_orders_by_revenue_then_name():
    items = [
        make_item(name="b1", category="Beta", unit_price="100", partner_price="50"),
        make_item(name="a1", category="Alpha", unit_price="100", partner_price="80"),
        make_item(name="c1", category="Gamma", unit_price="300", partner_price="100"),
        make_item(name="c2", category="Gamma", unit_price="50", partner_price="10"),
        make_item(name="x", category="  ", unit_price="10", partner_price="5"),
    ]
    first = compute_category_breakdown(items)
    second = compute_category_breakdown(list(reversed(items)))

    assert [row.category for row in first] == ["Gamma", "Alpha", "Beta", "Other"]
    assert [row.category for row in second] == [row.category for row in first]
    gamma = first[0]
    assert gamma.count == 2
    assert gamma.revenue == Decimal("350.00")
    assert gamma.cost == Decimal("110.00")
    assert gamma.profit == Decimal("240.00")


@pytest.mark.parametrize(
    "item",
    [
        make_item(quantity="0"),
        make_item(quantity="-1"),
        make_item(partner_price=None),
        make_item(unit_price="-5"),
        make_item(discount=Decimal("120")),
    ],
)
def test_malformed_item_raises_validation_error(item):
    with pytest.raises(ValidationError):
        compute_financials(ProposalChildren(items=[item]), VAT)


def test_missing_product_reference_raises():
    item = ItemLine(product_name="Orphan", quantity=Decimal("1"), unit_price=Decimal("1"), partner_price=Decimal("1"))
    with pytest.raises(ValidationError):
        compute_financials(ProposalChildren(items=[item]), VAT)


def test_negative_lines_raise():
    with pytest.raises(ValidationError):
        compute_financials(ProposalChildren(expenses=[ExpenseLine(description="x", amount=Decimal("-1"))]), VAT)
    with pytest.raises(ValidationError):
        compute_financials(ProposalChildren(engineering=[EngineeringLine(days=Decimal("-1"), rate=Decimal("1"))]), VAT)
    with pytest.raises(ValidationError):
        recalculate_custom_taxes([], [TaxLine(name="bad", rate=Decimal("-3"))])


def test_price_helpers():
    assert price_from_list(Decimal("100"), Decimal("1.2"), Decimal("10")) == Decimal("108.00")
    assert break_even_discount(Decimal("100"), Decimal("60")) == Decimal("40")
    assert break_even_discount(Decimal("0"), Decimal("60")) == 0
    assert percent_of(Decimal("1"), Decimal("0")) == 0
    assert percent_of(Decimal("1"), Decimal("3")) == Decimal("33.3333")


def test_classify_expense():
    assert classify_expense("Express Shipping") == "shipping"
    assert classify_expense("Travel to site") == "shipping"
    assert classify_expense("Transit insurance") == "insurance"
    assert classify_expense("Hotel") == "other"
    assert classify_expense(None) == "other"


def test_deposit_amount_prefers_percentage():
    assert calculate_deposit_amount(PaymentTerms(deposit_percentage=Decimal("30")), Decimal("1000")) == Decimal("300.00")
    assert calculate_deposit_amount(PaymentTerms(deposit_amount=Decimal("250")), Decimal("1000")) == Decimal("250.00")

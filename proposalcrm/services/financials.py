"""Pure proposal financial engine.

Everything here is a function of its arguments: no database access and no
shared state, so it is safe to call from request handlers, the PDF renderer
and tests alike. Money is `Decimal` throughout and rounded with
ROUND_HALF_UP to cents per line; sums are sequential over the sorted lines.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Sequence

from proposalcrm.core.errors import ValidationError
from proposalcrm.schemas.financials import (
    CategoryBreakdown,
    ExpenseBreakdown,
    LineFinancials,
    ProposalFinancials,
)
from proposalcrm.schemas.lines import EngineeringLine, ExpenseLine, ItemLine, ProposalChildren, TaxLine
from proposalcrm.schemas.payment_terms import PaymentTerms

ZERO = Decimal("0")
CENT = Decimal("0.01")
PERCENT_PLACES = Decimal("0.0001")
HUNDRED = Decimal("100")

DEFAULT_TARGET_MARGIN = Decimal("50")
OTHER_CATEGORY = "Other"

SHIPPING_KEYWORDS = ("shipping", "freight", "cargo", "transport", "travel")
INSURANCE_KEYWORDS = ("insurance", "guarantee")


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _sum(values: Iterable[Decimal]) -> Decimal:
    total = ZERO
    for value in values:
        total += value
    return total


def percent_of(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Return numerator / denominator * 100, or 0 when the denominator is 0."""
    if denominator == 0:
        return ZERO.quantize(PERCENT_PLACES)
    return (numerator / denominator * HUNDRED).quantize(PERCENT_PLACES, rounding=ROUND_HALF_UP)


def price_from_list(list_price: Decimal, multiplier: Decimal = Decimal("1"), discount: Decimal = ZERO) -> Decimal:
    """Customer unit price from a catalog list price, a multiplier and a percent discount."""
    if list_price < 0 or multiplier < 0:
        raise ValidationError("List price and multiplier must be non-negative")
    if discount < 0 or discount > HUNDRED:
        raise ValidationError(f"Discount must be between 0 and 100, got {discount}")
    return _money(list_price * multiplier * (1 - discount / HUNDRED))


def break_even_discount(list_price: Decimal, partner_price: Decimal) -> Decimal:
    """Discount (percent) at which the unit price falls to the partner price."""
    if list_price == 0:
        return ZERO.quantize(PERCENT_PLACES)
    return percent_of(list_price - partner_price, list_price)


def classify_expense(description: Optional[str]) -> str:
    text = (description or "").lower()
    if any(keyword in text for keyword in SHIPPING_KEYWORDS):
        return "shipping"
    if any(keyword in text for keyword in INSURANCE_KEYWORDS):
        return "insurance"
    return "other"


# -- validation ---------------------------------------------------------------


def validate_item(item: ItemLine) -> None:
    label = item.product_name or item.product_code or f"item {item.id}"
    if item.product_id is None and not item.product_code:
        raise ValidationError(f"Line {label!r} has no product reference")
    if item.partner_price is None:
        raise ValidationError(f"Line {label!r} has no partner price")
    if item.quantity <= 0:
        raise ValidationError(f"Line {label!r} has non-positive quantity {item.quantity}")
    if item.unit_price < 0:
        raise ValidationError(f"Line {label!r} has negative unit price {item.unit_price}")
    if item.discount < 0 or item.discount > HUNDRED:
        raise ValidationError(f"Line {label!r} has discount {item.discount} outside 0..100")
    if item.multiplier < 0:
        raise ValidationError(f"Line {label!r} has negative multiplier {item.multiplier}")


def validate_engineering(line: EngineeringLine) -> None:
    if line.days < 0 or line.rate < 0:
        raise ValidationError(f"Engineering line {line.description!r} has negative days or rate")


def validate_expense(line: ExpenseLine) -> None:
    if line.amount < 0:
        raise ValidationError(f"Expense {line.description!r} has negative amount {line.amount}")


def validate_tax(line: TaxLine) -> None:
    if line.rate < 0:
        raise ValidationError(f"Tax {line.name!r} has negative rate {line.rate}")


def validate_children(children: ProposalChildren) -> None:
    for item in children.items:
        validate_item(item)
    for line in children.engineering:
        validate_engineering(line)
    for expense in children.expenses:
        validate_expense(expense)
    for tax in children.taxes:
        validate_tax(tax)


# -- ordering -----------------------------------------------------------------


def _id_key(line_id: Optional[int]) -> int:
    return line_id if line_id is not None else -1


def sort_items(items: Iterable[ItemLine]) -> List[ItemLine]:
    return sorted(items, key=lambda i: (i.product_name.lower(), _id_key(i.id)))


def sort_engineering(lines: Iterable[EngineeringLine]) -> List[EngineeringLine]:
    return sorted(lines, key=lambda e: (e.description.lower(), _id_key(e.id)))


def sort_expenses(lines: Iterable[ExpenseLine]) -> List[ExpenseLine]:
    return sorted(lines, key=lambda e: (e.description.lower(), _id_key(e.id)))


def sort_taxes(lines: Iterable[TaxLine]) -> List[TaxLine]:
    return sorted(lines, key=lambda t: (t.name.lower(), _id_key(t.id)))


# -- per-line figures -----------------------------------------------------------


def compute_line_amount(item: ItemLine) -> Decimal:
    """Extended price for an item. Any stored `amount` is ignored."""
    return _money(item.unit_price * item.quantity)


def compute_engineering_amount(line: EngineeringLine) -> Decimal:
    return _money(line.days * line.rate)


def item_cost(item: ItemLine) -> Decimal:
    return _money((item.partner_price or ZERO) * item.quantity)


def item_profit(item: ItemLine) -> Decimal:
    return compute_line_amount(item) - item_cost(item)


def item_margin(item: ItemLine) -> Decimal:
    return percent_of(item_profit(item), compute_line_amount(item))


def compute_line_financials(item: ItemLine, vat_rate_percent: Decimal) -> LineFinancials:
    amount = compute_line_amount(item)
    cost = item_cost(item)
    profit = amount - cost
    return LineFinancials(
        id=item.id,
        product_code=item.product_code or "",
        product_name=item.product_name,
        category=item.category or OTHER_CATEGORY,
        quantity=item.quantity,
        list_price=item.list_price,
        multiplier=item.multiplier,
        discount=item.discount,
        unit_price=item.unit_price,
        amount=amount,
        cost=cost,
        profit=profit,
        margin_pct=percent_of(profit, amount),
        amount_with_vat=_money(amount * (1 + vat_rate_percent / HUNDRED)),
    )


# -- aggregates -----------------------------------------------------------------


def custom_tax_base(items: Sequence[ItemLine]) -> Decimal:
    return _sum(item_cost(item) for item in sort_items(items) if item.apply_custom_tax)


def recalculate_custom_taxes(items: Sequence[ItemLine], taxes: Sequence[TaxLine]) -> List[TaxLine]:
    """Return copies of `taxes` with amount = custom tax base * rate / 100.

    The input lines are left untouched so the caller can persist the whole set
    at once or not at all.
    """
    for item in items:
        validate_item(item)
    for tax in taxes:
        validate_tax(tax)
    base = custom_tax_base(items)
    return [tax.model_copy(update={"amount": _money(base * tax.rate / HUNDRED)}) for tax in taxes]


def compute_category_breakdown(items: Sequence[ItemLine]) -> List[CategoryBreakdown]:
    """Revenue, cost and margin per product category.

    Sorted by revenue descending and then by category name, so equal input
    always yields the same order.
    """
    buckets: Dict[str, Dict[str, Decimal]] = {}
    counts: Dict[str, int] = {}
    for item in sort_items(items):
        category = (item.category or "").strip() or OTHER_CATEGORY
        bucket = buckets.setdefault(category, {"revenue": ZERO, "cost": ZERO})
        bucket["revenue"] += compute_line_amount(item)
        bucket["cost"] += item_cost(item)
        counts[category] = counts.get(category, 0) + 1

    rows = []
    for category, bucket in buckets.items():
        profit = bucket["revenue"] - bucket["cost"]
        rows.append(
            CategoryBreakdown(
                category=category,
                count=counts[category],
                revenue=bucket["revenue"],
                cost=bucket["cost"],
                profit=profit,
                margin_pct=percent_of(profit, bucket["revenue"]),
            )
        )
    rows.sort(key=lambda row: (-row.revenue, row.category))
    return rows


def compute_expense_breakdown(expenses: Sequence[ExpenseLine]) -> ExpenseBreakdown:
    totals = {"shipping": ZERO, "insurance": ZERO, "other": ZERO}
    for expense in sort_expenses(expenses):
        totals[classify_expense(expense.description)] += _money(expense.amount)
    return ExpenseBreakdown(**totals)


def compute_financials(
    children: ProposalChildren,
    vat_rate_percent: Decimal,
    target_margin_pct: Decimal = DEFAULT_TARGET_MARGIN,
) -> ProposalFinancials:
    """Derive every proposal figure from its lines.

    Raises ValidationError before producing any total when a line is malformed.
    """
    validate_children(children)
    vat_rate_percent = Decimal(vat_rate_percent)
    target_margin_pct = Decimal(target_margin_pct)

    items = sort_items(children.items)
    engineering = sort_engineering(children.engineering)
    expenses = sort_expenses(children.expenses)
    taxes = sort_taxes(children.taxes)

    lines = [compute_line_financials(item, vat_rate_percent) for item in items]
    subtotal_products = _sum(line.amount for line in lines)
    subtotal_engineering = _sum(compute_engineering_amount(line) for line in engineering)
    subtotal_expenses = _sum(_money(expense.amount) for expense in expenses)
    subtotal_taxes = _sum(_money(tax.amount) for tax in taxes)
    total_amount = subtotal_products + subtotal_engineering + subtotal_expenses + subtotal_taxes

    vat_amount = vat_on(total_amount, vat_rate_percent)

    product_cost = _sum(line.cost for line in lines)
    total_cost = product_cost + subtotal_expenses
    product_profit = subtotal_products - product_cost
    # Engineering carries no cost basis; it is booked as pure margin.
    engineering_profit = subtotal_engineering
    gross_profit = total_amount - total_cost
    margin_pct = percent_of(gross_profit, total_amount)

    return ProposalFinancials(
        subtotal_products=subtotal_products,
        subtotal_engineering=subtotal_engineering,
        subtotal_expenses=subtotal_expenses,
        subtotal_taxes=subtotal_taxes,
        total_amount=total_amount,
        custom_tax_base=custom_tax_base(items),
        vat_rate_percent=vat_rate_percent,
        vat_amount=vat_amount,
        total_with_vat=total_amount + vat_amount,
        product_cost=product_cost,
        expenses=compute_expense_breakdown(expenses),
        total_cost=total_cost,
        product_profit=product_profit,
        engineering_profit=engineering_profit,
        gross_profit=gross_profit,
        margin_pct=margin_pct,
        roi_pct=percent_of(gross_profit, total_cost),
        target_margin_pct=target_margin_pct,
        margin_gap_pct=margin_pct - target_margin_pct if total_amount else ZERO,
        lines=lines,
        categories=compute_category_breakdown(items),
    )


def vat_on(amount: Decimal, vat_rate_percent: Decimal) -> Decimal:
    return _money(amount * Decimal(vat_rate_percent) / HUNDRED)


def calculate_deposit_amount(terms: PaymentTerms, total_amount: Decimal) -> Decimal:
    """Deposit due: a percentage of the total when one is set, else the fixed amount."""
    if terms.deposit_percentage > 0:
        return _money(Decimal(total_amount) * terms.deposit_percentage / HUNDRED)
    return _money(terms.deposit_amount)

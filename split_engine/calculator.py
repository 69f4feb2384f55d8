"""Split calculator: turns a rule and a paid amount into per-recipient shares.

All arithmetic is done in integer minor units with ``Decimal`` for the
percentage products, rounding half up. The output always adds up to the
input total: whatever the lines do not claim, including rounding error,
stays with the merchant as commission.
"""

from decimal import ROUND_HALF_UP, Decimal

from split_engine.exceptions import ValidationError
from split_engine.models import AllocationDraft, AllocationKind, Rule, SplitComputation

HUNDRED = Decimal("100")
WHOLE_UNIT = Decimal("1")
PERCENT_PLACES = Decimal("0.0001")


def percentage_of(total_value: int, percentage: Decimal) -> int:
    """Return ``percentage`` % of ``total_value`` rounded half up to a minor unit."""
    share = Decimal(total_value) * percentage / HUNDRED
    return int(share.quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP))


def effective_percentage(amount: int, total_value: int) -> Decimal:
    if total_value == 0:
        return Decimal("0")
    return (Decimal(amount) * HUNDRED / Decimal(total_value)).quantize(
        PERCENT_PLACES, rounding=ROUND_HALF_UP
    )


def compute(rule: Rule, total_value: int) -> SplitComputation:
    """Compute the commission and one draft per rule line.

    Percentage lines are computed first. Fixed lines follow in rule order,
    each capped at the value still unclaimed; a capped line is flagged
    ``underfunded``. Drafts come back in the rule's line order.

    Parameters
    ----------
    rule : Rule
        A validated rule (or rule snapshot).
    total_value : int
        Paid amount in minor units.

    Returns
    -------
    SplitComputation
        Commission and drafts; ``commission_amount + allocated_total``
        equals ``total_value``.
    """
    if isinstance(total_value, bool) or not isinstance(total_value, int):
        raise ValidationError(f"Total value must be an integer of minor units, got {total_value!r}")
    if total_value < 0:
        raise ValidationError(f"Total value must not be negative, got {total_value}")

    nominal_commission = percentage_of(total_value, rule.commission_percentage)
    amounts = [0] * len(rule.lines)
    underfunded = [False] * len(rule.lines)
    running_total = nominal_commission

    for i, line in enumerate(rule.lines):
        if line.kind == AllocationKind.PERCENTAGE:
            amounts[i] = percentage_of(total_value, line.value)
            running_total += amounts[i]

    for i, line in enumerate(rule.lines):
        if line.kind == AllocationKind.FIXED:
            requested = int(line.value)
            remaining = max(0, total_value - running_total)
            amounts[i] = min(requested, remaining)
            underfunded[i] = amounts[i] < requested
            running_total += amounts[i]

    commission_amount = nominal_commission + (total_value - running_total)

    # Rounding overshoot larger than the commission comes out of the
    # percentage shares, last line first, so no amount goes negative.
    if commission_amount < 0:
        deficit = -commission_amount
        commission_amount = 0
        for i in reversed(range(len(rule.lines))):
            if deficit == 0:
                break
            if rule.lines[i].kind != AllocationKind.PERCENTAGE:
                continue
            taken = min(amounts[i], deficit)
            amounts[i] -= taken
            deficit -= taken

    drafts = []
    for i, line in enumerate(rule.lines):
        if line.kind == AllocationKind.PERCENTAGE:
            applied = line.value
        else:
            applied = effective_percentage(amounts[i], total_value)
        drafts.append(
            AllocationDraft(
                recipient_id=line.recipient_id,
                amount=amounts[i],
                percentage_applied=applied,
                underfunded=underfunded[i],
                description=line.description,
            )
        )

    return SplitComputation(
        total_value=total_value,
        commission_amount=commission_amount,
        nominal_commission=nominal_commission,
        drafts=tuple(drafts),
    )

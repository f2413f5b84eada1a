"""Goal progress rings."""

from decimal import Decimal
from typing import Any

from bucketwise.engine.money import round_money, to_decimal
from bucketwise.models.results import GoalProgress

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def goal_progress(current: Any, target: Any) -> GoalProgress:
    """
    Percent complete and amount remaining for a goal.

    percent is clamped to [0, 100]; a target of zero or less shows 0%.
    """
    current = round_money(current)
    target = round_money(target)

    if target <= 0:
        percent = ZERO
    else:
        percent = min(max(to_decimal(current) / target * HUNDRED, ZERO), HUNDRED)

    return GoalProgress(
        current=current,
        target=target,
        percent=round_money(percent),
        remaining=max(target - current, ZERO),
    )

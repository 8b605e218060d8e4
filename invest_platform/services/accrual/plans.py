"""
Plan rules: the daily return and validity window of each investment plan.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Union

from invest_platform.core.exceptions import UnknownPlanError


@dataclass(frozen=True)
class PlanRule:
    """Daily payout and validity window for one plan."""
    plan_id: str
    name: str
    daily_return: int
    validity_days: int

    def __post_init__(self):
        if self.daily_return < 0:
            raise ValueError(f"Plan {self.plan_id}: daily_return must be non-negative")
        if self.validity_days <= 0:
            raise ValueError(f"Plan {self.plan_id}: validity_days must be positive")


class PlanRules(Mapping[str, PlanRule]):
    """Immutable plan table keyed by plan identifier."""

    def __init__(self, rules: Mapping[str, PlanRule]):
        self._rules = MappingProxyType(dict(rules))

    @classmethod
    def from_mapping(cls, table: Mapping[str, Mapping[str, Union[str, int]]]) -> "PlanRules":
        """
        Build a plan table from plain data.

        Example:
            PlanRules.from_mapping({"1": {"daily_return": 120, "validity_days": 30}})
        """
        return cls({
            str(plan_id): PlanRule(
                plan_id=str(plan_id),
                name=str(values.get("name", f"Plan {plan_id}")),
                daily_return=int(values["daily_return"]),
                validity_days=int(values["validity_days"]),
            )
            for plan_id, values in table.items()
        })

    def __getitem__(self, plan_id: str) -> PlanRule:
        return self._rules[plan_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def resolve(self, plan_id: Optional[Union[str, int]]) -> PlanRule:
        """Look up a plan, raising UnknownPlanError when it isn't in the table."""
        rule = self._rules.get(str(plan_id)) if plan_id is not None else None
        if rule is None:
            raise UnknownPlanError(None if plan_id is None else str(plan_id))
        return rule

    def to_dict(self) -> Dict[str, Dict[str, Union[str, int]]]:
        return {
            plan_id: {
                "name": rule.name,
                "daily_return": rule.daily_return,
                "validity_days": rule.validity_days,
            }
            for plan_id, rule in self._rules.items()
        }


DEFAULT_PLAN_RULES = PlanRules({
    "0": PlanRule("0", "Free", daily_return=20, validity_days=365),
    "1": PlanRule("1", "Starter", daily_return=120, validity_days=30),
    "2": PlanRule("2", "Advanced", daily_return=260, validity_days=60),
    "3": PlanRule("3", "Pro", daily_return=560, validity_days=90),
})

"""Explicit configuration handed to the seeder and the reconciler."""

from __future__ import annotations

from dataclasses import dataclass, field

from release_sync.periods.generators import Granularity, normalize_anchor_month


@dataclass(frozen=True)
class ReleaseSyncConfig:
    """Release group ids per granularity plus seeding policy.

    A granularity without a group id is skipped everywhere.
    """

    group_ids: dict[Granularity, str] = field(default_factory=dict)
    quarter_anchor_month: int = 1
    horizon_years: int = 1  # weekly, monthly and quarterly
    yearly_horizon_years: int = 5

    def __post_init__(self) -> None:
        object.__setattr__(self, "quarter_anchor_month", normalize_anchor_month(self.quarter_anchor_month))

    def group_id(self, granularity: Granularity) -> str | None:
        return self.group_ids.get(granularity) or None

    def horizon_for(self, granularity: Granularity) -> int:
        if granularity == Granularity.YEARLY:
            return self.yearly_horizon_years
        return self.horizon_years

    def missing_groups(self) -> list[Granularity]:
        return [granularity for granularity in Granularity if not self.group_id(granularity)]

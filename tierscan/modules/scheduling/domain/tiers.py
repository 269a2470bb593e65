from decimal import Decimal
from enum import Enum
from typing import Mapping, cast

# Legacy numeric tier labels still sent by older dashboard clients.
_TIER_ALIASES = {"1": "hot", "2": "active", "3": "dormant"}


class Tier(str, Enum):
    HOT = "hot"  # top-N by priority score
    ACTIVE = "active"
    DORMANT = "dormant"

    @classmethod
    def _missing_(cls, value: object) -> "Tier | None":
        """
        Allow construction from member name ("HOT"), case-insensitive values
        ("Hot") and the numeric labels "1"/"2"/"3".
        """
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str):
            name = value.strip().upper()
            if name in cls.__members__:
                return cls.__members__[name]

            low = _TIER_ALIASES.get(value.strip(), value.strip().lower())
            for member in cls:
                if member.value == low:
                    return member

        return cast("Tier | None", super()._missing_(value))


class Mode(str, Enum):
    """Enrichment intensity. Constants are for estimation only."""

    FULL = "full"
    STANDARD = "standard"
    FAST = "fast"
    TURBO = "turbo"

    @classmethod
    def _missing_(cls, value: object) -> "Mode | None":
        if isinstance(value, str):
            name = value.strip().upper()
            if name in cls.__members__:
                return cls.__members__[name]
        return cast("Mode | None", super()._missing_(value))

    @property
    def unit_cost(self) -> Decimal:
        """Estimated USD cost of enriching one entity in this mode."""
        return MODE_UNIT_COST[self]

    @property
    def minutes_per_entity(self) -> Decimal:
        return MODE_MINUTES_PER_ENTITY[self]


MODE_UNIT_COST: dict[Mode, Decimal] = {
    Mode.FULL: Decimal("1.23"),
    Mode.STANDARD: Decimal("0.26"),
    Mode.FAST: Decimal("0.15"),
    Mode.TURBO: Decimal("0.15"),
}

MODE_MINUTES_PER_ENTITY: dict[Mode, Decimal] = {
    Mode.FULL: Decimal("5"),
    Mode.STANDARD: Decimal("1.5"),
    Mode.FAST: Decimal("0.75"),
    Mode.TURBO: Decimal("0.5"),
}

TIER_DEFAULT_MODE: dict[Tier, Mode] = {
    Tier.HOT: Mode.STANDARD,
    Tier.ACTIVE: Mode.STANDARD,
    Tier.DORMANT: Mode.FAST,
}


def default_mode_for(tier: Tier, monthly_refresh: bool = False) -> Mode:
    """
    Resolve the mode a tier runs in when the caller gives no override.

    The HOT tier gets a FULL pass on its monthly refresh and STANDARD otherwise.
    """
    if tier is Tier.HOT and monthly_refresh:
        return Mode.FULL
    return TIER_DEFAULT_MODE[tier]


def estimate_cost(entity_count: int, mode: Mode) -> Decimal:
    """Estimated USD cost of a batch: ``entity_count`` x unit cost."""
    return entity_count * mode.unit_cost


def estimate_duration_minutes(entity_count: int, mode: Mode) -> Decimal:
    return entity_count * mode.minutes_per_entity


# Runs per month under the weekly trigger rules: HOT goes FULL in the first
# week and STANDARD in the other three, ACTIVE every other week, DORMANT in
# the first and third weeks.
MONTHLY_RUNS: dict[tuple[Tier, Mode], int] = {
    (Tier.HOT, Mode.STANDARD): 3,
    (Tier.HOT, Mode.FULL): 1,
    (Tier.ACTIVE, Mode.STANDARD): 2,
    (Tier.DORMANT, Mode.FAST): 2,
}


def estimate_monthly_budget(tier_counts: Mapping[str, int]) -> dict[str, Decimal]:
    """
    Projected monthly spend for the scheduled scans, keyed ``<tier>_<mode>``
    plus ``total``. ``tier_counts`` maps tier values to population sizes,
    as in the last ranking snapshot.
    """
    budget: dict[str, Decimal] = {}
    for (tier, mode), runs in MONTHLY_RUNS.items():
        budget[f"{tier.value}_{mode.value}"] = (
            estimate_cost(tier_counts.get(tier.value, 0), mode) * runs
        )
    budget["total"] = sum(budget.values(), Decimal("0"))
    return budget

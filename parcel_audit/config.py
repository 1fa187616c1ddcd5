"""Central configuration for the parcel audit package."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

# Divisors used to turn cubic inches into dimensional pounds.
DIM_DIVISORS = MappingProxyType({"UPS": 139, "FEDEX": 139, "USPS": 166})


@dataclass(slots=True, frozen=True)
class Settings:
    tolerance: Decimal = Decimal("0.01")
    dim_divisors: Mapping[str, int] = field(default_factory=lambda: DIM_DIVISORS)
    default_dim_divisor: int = 166
    pound_rounding: Decimal = Decimal("1")
    dim_variance_threshold: Decimal = Decimal("1")
    fuel_ratio_limit: Decimal = Decimal("0.35")
    claim_window_days: int = 15
    preamble_lines: int = 9
    sniff_window: int = 25
    sniff_min_hits: int = 2
    default_carrier: str = "UPS"

    def dim_divisor_for(self, carrier: str) -> int:
        name = (carrier or "").upper()
        for key, divisor in self.dim_divisors.items():
            if key in name:
                return divisor
        return self.default_dim_divisor


SETTINGS = Settings()


def settings_from_inputs(
    ups_dim: float,
    fedex_dim: float,
    usps_dim: float,
    claim_window_days: float,
    pound_rounding: float,
    base: Settings = SETTINGS,
) -> Settings:
    """Build settings from user-edited values; carriers other than UPS/FedEx use the USPS divisor."""
    return replace(
        base,
        dim_divisors=MappingProxyType({"UPS": int(ups_dim), "FEDEX": int(fedex_dim), "USPS": int(usps_dim)}),
        default_dim_divisor=int(usps_dim),
        claim_window_days=int(claim_window_days),
        pound_rounding=Decimal(str(pound_rounding)),
    )

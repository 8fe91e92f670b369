"""Commission rate card: product points, CVD tiers and CAE position bonuses.

The rate card is plain configuration. Engines receive it as an argument so
an alternate grid can be swapped in without touching the calculation code.
"""
import enum
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from pydantic import BaseModel, field_validator

from app.core.config import settings


class ProductType(str, enum.Enum):
    FREEBOX_POP = "Freebox Pop"
    FREEBOX_ESSENTIEL = "Freebox Essentiel"
    FREEBOX_ULTRA = "Freebox Ultra"
    FORFAIT_5G = "Forfait 5G"


class TierBand(BaseModel):
    tier: int
    min_points: int
    max_points: Optional[int] = None  # None = open-ended top tier
    label: str

    class Config:
        frozen = True


class PositionBonus(BaseModel):
    position: str
    first_generation: Decimal
    second_generation: Optional[Decimal] = None
    description: str

    class Config:
        frozen = True


class RateCard(BaseModel):
    product_points: Mapping[str, int]
    commission_table: Mapping[str, Mapping[int, Decimal]]
    tiers: Tuple[TierBand, ...]
    positions: Mapping[str, PositionBonus]
    cae_qualifying_points: int = 25

    class Config:
        frozen = True

    @field_validator("product_points", "positions")
    @classmethod
    def _read_only(cls, value):
        return MappingProxyType(dict(value))

    @field_validator("commission_table")
    @classmethod
    def _read_only_table(cls, value):
        return MappingProxyType({product: MappingProxyType(dict(amounts)) for product, amounts in value.items()})

    def points_for(self, product_type: str) -> int:
        return self.product_points.get(normalize_product(product_type), 0)

    def unit_commission(self, product_type: str, tier: int) -> Optional[Decimal]:
        """Euro amount for one unit at the given tier, None when not configured."""
        return self.commission_table.get(normalize_product(product_type), {}).get(tier)

    def band(self, tier: int) -> Optional[TierBand]:
        for band in self.tiers:
            if band.tier == tier:
                return band
        return None


def normalize_product(label: Optional[str]) -> str:
    """Map CRM product labels onto the catalogue ("5G" -> "Forfait 5G")."""
    if not label:
        return ""
    label = label.strip()
    for product in ProductType:
        if label.lower() == product.value.lower():
            return product.value
    if "5G" in label.upper():
        return ProductType.FORFAIT_5G.value
    return label


DEFAULT_RATE_CARD = RateCard(
    product_points={
        ProductType.FREEBOX_POP.value: 4,
        ProductType.FREEBOX_ESSENTIEL.value: 5,
        ProductType.FREEBOX_ULTRA.value: 6,
        ProductType.FORFAIT_5G.value: 1,
    },
    commission_table={
        ProductType.FREEBOX_POP.value: {1: Decimal("50"), 2: Decimal("60"), 3: Decimal("70"), 4: Decimal("80")},
        ProductType.FREEBOX_ESSENTIEL.value: {1: Decimal("50"), 2: Decimal("70"), 3: Decimal("90"), 4: Decimal("110")},
        ProductType.FREEBOX_ULTRA.value: {1: Decimal("50"), 2: Decimal("80"), 3: Decimal("100"), 4: Decimal("120")},
        ProductType.FORFAIT_5G.value: {1: Decimal("10"), 2: Decimal("10"), 3: Decimal("10"), 4: Decimal("10")},
    },
    tiers=(
        TierBand(tier=1, min_points=0, max_points=25, label="De 0 à 25"),
        TierBand(tier=2, min_points=26, max_points=50, label="De 26 à 50"),
        TierBand(tier=3, min_points=51, max_points=100, label="De 51 à 100"),
        TierBand(tier=4, min_points=101, max_points=None, label="De 101 à +"),
    ),
    positions={
        "ETT": PositionBonus(position="ETT", first_generation=Decimal("40"), description="CA EQUIPE ETT"),
        "ETL": PositionBonus(position="ETL", first_generation=Decimal("140"), description="CA EQUIPE ETL"),
        "Manager": PositionBonus(
            position="Manager", first_generation=Decimal("290"), second_generation=Decimal("60"),
            description="CA EQUIPE (M)",
        ),
        "RC": PositionBonus(
            position="RC", first_generation=Decimal("390"), second_generation=Decimal("40"),
            description="CA EQUIPE RC",
        ),
        "RD": PositionBonus(
            position="RD", first_generation=Decimal("390"), second_generation=Decimal("40"),
            description="CA EQUIPE RD",
        ),
        "RVP": PositionBonus(
            position="RVP", first_generation=Decimal("390"), second_generation=Decimal("40"),
            description="CA EQUIPE RVP",
        ),
        "SVP": PositionBonus(
            position="SVP", first_generation=Decimal("410"), second_generation=Decimal("40"),
            description="CA EQUIPE SVP",
        ),
    },
    cae_qualifying_points=settings.CAE_QUALIFYING_POINTS,
)

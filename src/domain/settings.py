from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, field_validator

from .ledger import TransferPolicy


class LotMethod(StrEnum):
    FIFO = "FIFO"
    LIFO = "LIFO"
    HIFO = "HIFO"
    AVG_COST = "AVG_COST"


class RewardsCostBasisMode(StrEnum):
    ZERO = "ZERO"
    FMV = "FMV"


class TaxProfile(StrEnum):
    GENERIC = "GENERIC"
    FINLAND = "FINLAND"


# Profiles whose tax rules prescribe a lot method regardless of user preference.
MANDATED_LOT_METHODS: dict[TaxProfile, LotMethod] = {
    TaxProfile.FINLAND: LotMethod.FIFO,
}


class Settings(BaseModel):
    """Accounting settings snapshot, immutable for the duration of a call."""

    model_config = ConfigDict(frozen=True)

    base_currency: str = "EUR"
    lot_method_default: LotMethod = LotMethod.FIFO
    rewards_cost_basis_mode: RewardsCostBasisMode = RewardsCostBasisMode.ZERO
    tax_profile: TaxProfile = TaxProfile.GENERIC
    transfer_policy: TransferPolicy = TransferPolicy.TAXABLE

    @field_validator("base_currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        value = value.strip().upper()
        if len(value) < 3:
            raise ValueError("base_currency must have at least 3 characters")
        return value


def resolve_lot_method(settings: Settings, override: LotMethod | None = None) -> LotMethod:
    """Explicit override, then a profile mandate, then the settings default."""
    if override is not None:
        return override
    mandated = MANDATED_LOT_METHODS.get(settings.tax_profile)
    if mandated is not None:
        return mandated
    return settings.lot_method_default

from __future__ import annotations

from functools import cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from domain.ledger import TransferPolicy
from domain.settings import LotMethod, RewardsCostBasisMode, Settings, TaxProfile

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ARTIFACTS_DIR = PROJECT_ROOT / "artifacts"
DB_FILE = ARTIFACTS_DIR / "lot_ledger.db"


class AppSettings(BaseSettings):
    db_file: Path = DB_FILE
    base_currency: str = "EUR"
    lot_method_default: LotMethod = LotMethod.FIFO
    rewards_cost_basis_mode: RewardsCostBasisMode = RewardsCostBasisMode.ZERO
    tax_profile: TaxProfile = TaxProfile.GENERIC
    transfer_policy: TransferPolicy = TransferPolicy.TAXABLE

    model_config = SettingsConfigDict(env_prefix="LEDGER_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    def ledger_settings(self) -> Settings:
        return Settings(
            base_currency=self.base_currency,
            lot_method_default=self.lot_method_default,
            rewards_cost_basis_mode=self.rewards_cost_basis_mode,
            tax_profile=self.tax_profile,
            transfer_policy=self.transfer_policy,
        )


@cache
def config() -> AppSettings:
    return AppSettings()

"""Pool, TokenRef - one trading venue for one outcome side."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class TokenRef(BaseModel):
    """Token leg of a pool (e.g. YES_PNK with role YES_COMPANY)."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    symbol: str | None = None
    role: str | None = None


class Pool(BaseModel):
    """Canonical pool - backend-agnostic, plain address id."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    kind: str | None = None  # CONDITIONAL, PREDICTION, ...
    outcome_side: str | None = None  # YES / NO
    price: str = "0"
    is_inverted: bool = False
    volume_token0: str = Field("0", description="Human-scaled decimal string")
    volume_token1: str = Field("0", description="Human-scaled decimal string")
    token0: TokenRef = Field(default_factory=TokenRef)
    token1: TokenRef = Field(default_factory=TokenRef)
    proposal_id: str | None = None
    company_symbol: str | None = None
    currency_symbol: str | None = None

    def _volume_for(self, role: str) -> str | None:
        if self.token0.role and role in self.token0.role:
            return self.volume_token0
        if self.token1.role and role in self.token1.role:
            return self.volume_token1
        return None

    @property
    def volume_base(self) -> str:
        """Volume in the company (base) token."""
        v = self._volume_for("COMPANY")
        return v if v is not None else self.volume_token0

    @property
    def volume_quote(self) -> str:
        """Volume in the currency (quote) token."""
        v = self._volume_for("CURRENCY")
        return v if v is not None else self.volume_token1

    @property
    def price_float(self) -> float:
        try:
            return float(self.price)
        except (TypeError, ValueError):
            return 0.0

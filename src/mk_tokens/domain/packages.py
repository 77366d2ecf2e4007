"""Token packages and per-feature metering costs.

Package prices are in cents of DEFAULT_CURRENCY. The payment itself is
taken by the external checkout; this module only decides how many tokens a
confirmed payment is worth.
"""

from dataclasses import dataclass

from src.mk_common.errors import UnknownFeatureError, UnknownTokenPackageError


@dataclass(frozen=True)
class TokenPackage:
    id: str
    name: str
    tokens: int
    price_cents: int
    bonus_tokens: int = 0
    best_value: bool = False

    @property
    def total_tokens(self) -> int:
        return self.tokens + self.bonus_tokens

    @property
    def price_per_token_cents(self) -> float:
        return self.price_cents / self.total_tokens


TOKEN_PACKAGES: dict[str, TokenPackage] = {
    p.id: p
    for p in (
        TokenPackage("starter", "Starter", tokens=200, price_cents=1999),
        TokenPackage("growth", "Growth", tokens=650, price_cents=4499, bonus_tokens=50, best_value=True),
        TokenPackage("pro", "Pro", tokens=1400, price_cents=4999, bonus_tokens=200),
    )
}

# Tokens charged per call of each AI feature.
TOKEN_COSTS: dict[str, int] = {
    "SCRIPT_GENERATION": 5,
    "PATTERN_ANALYSIS": 10,
    "TITLE_ENGINE": 3,
    "THUMBNAIL_PSYCHOLOGY": 5,
    "VIRAL_PATTERN_LIBRARY": 15,
    "CREATOR_INTELLIGENCE": 8,
    "CONTENT_ANALYSIS": 5,
    "TREND_ANALYSIS": 10,
    "EXPECTED_VALUE": 8,
    "CTR_PROBABILITY": 6,
    "RETENTION_PROBABILITY": 6,
    "PATTERN_BLENDING": 10,
    "TITLE_THUMBNAIL": 5,
    "VIRAL_PATTERNS": 15,
    "AI_ANALYSIS": 8,
}


def get_package(package_id: str) -> TokenPackage:
    try:
        return TOKEN_PACKAGES[package_id]
    except KeyError:
        raise UnknownTokenPackageError(package_id) from None


def feature_cost(feature: str) -> int:
    try:
        return TOKEN_COSTS[feature]
    except KeyError:
        raise UnknownFeatureError(feature) from None

"""
Provider Results - Typed Outcomes at the Adapter Boundary

Every adapter converts untyped JSON into exactly one of:

    ProviderSuccess(record)      normalized record for the symbol
    ProviderFailure(kind, ...)   classified failure (see ProviderFailureKind)

The rest of the engine only branches on these two types. Failures are values,
never exceptions, so they cannot escape the orchestrator boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Union

from .canonical import NormalizedRecord
from .config import ProviderFailureKind, ProviderName


RATE_LIMIT_MESSAGE = (
    "Alpha Vantage request limit reached, please try again in about 1 minute."
)

NO_KEY_HINT = (
    " Configure ALPHA_VANTAGE_API_KEY (free key: "
    "https://www.alphavantage.co/support/#api-key) and restart."
)

# HTTP-style status codes for the route layer
_STATUS_CODES: Dict[ProviderFailureKind, int] = {
    ProviderFailureKind.SYMBOL_NOT_FOUND: 404,
    ProviderFailureKind.CACHE_MISS: 404,
    ProviderFailureKind.RATE_LIMITED: 429,
    ProviderFailureKind.INVALID_SYMBOL: 400,
}


@dataclass(frozen=True)
class ProviderSuccess:
    """Successful adapter invocation."""

    record: NormalizedRecord
    provider: ProviderName

    ok = True


@dataclass(frozen=True)
class ProviderFailure:
    """Classified adapter or orchestration failure."""

    kind: ProviderFailureKind
    message: str = ""
    provider: ProviderName = ProviderName.ALPHA_VANTAGE

    ok = False

    @property
    def is_soft(self) -> bool:
        """Soft failures trigger fallback instead of reaching the user."""
        return self.kind is ProviderFailureKind.NO_CREDENTIAL

    @property
    def status_code(self) -> int:
        return _STATUS_CODES.get(self.kind, 502)

    def to_dict(self) -> Dict[str, str]:
        return {
            "error": self.message,
            "kind": self.kind.value,
            "provider": self.provider.value,
        }


ProviderResult = Union[ProviderSuccess, ProviderFailure]


def truncate_detail(text: str, limit: int = 120) -> str:
    """Bound provider-supplied detail to limit characters plus an ellipsis."""
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "…"

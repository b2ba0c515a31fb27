"""
Reliability weights per feedback channel.
Formal and paid-support channels carry more weight than anonymous ones.
"""

from types import MappingProxyType
from typing import Mapping, Optional

from src.config.settings import Settings
from src.models.schemas import SourceType


DEFAULT_SOURCE_WEIGHTS: Mapping[str, float] = MappingProxyType({
    SourceType.TICKET.value: 1.0,   # Support tickets, paying customers
    SourceType.GITHUB.value: 0.8,   # Structured, technical, actionable
    SourceType.EMAIL.value: 0.7,
    SourceType.TWITTER.value: 0.6,  # Public but terse
    SourceType.DISCORD.value: 0.5,
    SourceType.FORUM.value: 0.4,    # Anonymous, unverified
})

DEFAULT_UNKNOWN_WEIGHT = 0.5


class SourceWeightTable:
    """Immutable lookup from source type to reliability weight."""

    def __init__(
        self,
        weights: Optional[Mapping[str, float]] = None,
        default_weight: float = DEFAULT_UNKNOWN_WEIGHT
    ):
        """
        Args:
            weights: Channel to weight mapping (uses DEFAULT_SOURCE_WEIGHTS if None)
            default_weight: Weight returned for channels not in the table
        """
        weights = DEFAULT_SOURCE_WEIGHTS if weights is None else weights
        for source, weight in list(weights.items()) + [("<default>", default_weight)]:
            if not 0.0 <= weight <= 1.0:
                raise ValueError(f"Weight for source '{source}' must be within [0, 1], got {weight}")

        self._weights = MappingProxyType(dict(weights))
        self.default_weight = default_weight

    @classmethod
    def from_settings(cls, config: Settings) -> "SourceWeightTable":
        return cls(default_weight=config.default_source_weight)

    @property
    def weights(self) -> Mapping[str, float]:
        return self._weights

    def weight_of(self, source_type: str) -> float:
        """Return the channel weight, or the neutral default for unknown channels."""
        return self._weights.get(source_type, self.default_weight)

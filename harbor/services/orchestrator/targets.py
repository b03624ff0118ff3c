"""Target registry: target configs, fallback chains and safety checks."""
from typing import Dict, List, Mapping, Optional

from harbor.services.model_service import DEFAULT_TARGETS, SafetyLevel, TargetConfig
from .config import (
    ACTION_TARGETS,
    DEFAULT_FALLBACK_CHAIN,
    DEFAULT_TARGET,
    FALLBACK_CHAINS,
    RoutingAction,
)

BASE_SAFETY_CHECKS = ["input-validation", "output-moderation"]

SAFETY_LEVEL_CHECKS: Dict[SafetyLevel, List[str]] = {
    SafetyLevel.HIGHEST: ["crisis-detection", "harm-prevention", "pii-detection"],
    SafetyLevel.HIGH: ["crisis-detection", "harm-prevention"],
}


class TargetRegistry:
    """Static catalogue of processing targets."""

    def __init__(
        self,
        targets: Optional[Mapping[str, TargetConfig]] = None,
        fallback_chains: Optional[Mapping[str, List[str]]] = None,
    ):
        """Initialize registry.

        Args:
            targets: Target catalogue (DEFAULT_TARGETS if None)
            fallback_chains: Chains per primary; every id must be a known
                target. If None, the default chains are narrowed to the
                catalogue.
        """
        self.targets: Dict[str, TargetConfig] = dict(
            DEFAULT_TARGETS if targets is None else targets
        )
        if fallback_chains is None:
            fallback_chains = {
                primary: [t for t in chain if t in self.targets]
                for primary, chain in FALLBACK_CHAINS.items()
                if primary in self.targets
            }
        self.fallback_chains: Dict[str, List[str]] = {
            k: list(v) for k, v in fallback_chains.items()
        }
        for primary, chain in self.fallback_chains.items():
            unknown = [t for t in [primary, *chain] if t not in self.targets]
            if unknown:
                raise ValueError(f"Fallback chain for {primary} names unknown targets: {unknown}")

    def get(self, target_id: str) -> TargetConfig:
        try:
            return self.targets[target_id]
        except KeyError:
            raise KeyError(f"Unknown target: {target_id}") from None

    def target_for_action(self, action: str) -> str:
        return ACTION_TARGETS.get(action, ACTION_TARGETS[RoutingAction.DEFAULT])

    def fallback_chain(self, primary: str) -> List[str]:
        """Ordered fallbacks for a primary target, never including itself."""
        chain = self.fallback_chains.get(primary, DEFAULT_FALLBACK_CHAIN)
        return [t for t in chain if t != primary]

    def safety_checks(self, target_id: str) -> List[str]:
        level = self.get(target_id).safety_level
        return BASE_SAFETY_CHECKS + SAFETY_LEVEL_CHECKS.get(level, [])

    @property
    def default_target(self) -> str:
        return DEFAULT_TARGET

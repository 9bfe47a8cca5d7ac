# accessgate/core/policy.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


# ------------------------------------------------------------
# Nutzungs-Policy eines Codes (Tagged Variant)
# ------------------------------------------------------------
@dataclass(frozen=True)
class OneTime:
    kind: str = "one_time"


@dataclass(frozen=True)
class Reusable:
    kind: str = "reusable"


@dataclass(frozen=True)
class Capped:
    max_uses: int
    kind: str = "capped"

    def __post_init__(self) -> None:
        if self.max_uses < 1:
            raise ValueError("max_uses must be >= 1")


Policy = Union[OneTime, Reusable, Capped]


@dataclass(frozen=True)
class StoreCapabilities:
    """Welche optionalen Spalten der Store kennt (einmal beim Start ermittelt)."""

    supports_policy_flags: bool = True  # prefix, auto_expire_on_use
    supports_usage_cap: bool = True     # max_uses, current_uses

    @property
    def legacy(self) -> bool:
        return not (self.supports_policy_flags and self.supports_usage_cap)


FULL_CAPABILITIES = StoreCapabilities()
LEGACY_CAPABILITIES = StoreCapabilities(supports_policy_flags=False, supports_usage_cap=False)


def policy_from_options(auto_expire_on_use: bool = True, max_uses: Optional[int] = None) -> Policy:
    """Ein gesetztes Nutzungslimit hat Vorrang vor auto_expire_on_use."""
    if max_uses is not None:
        return Capped(max_uses)
    if auto_expire_on_use is False:
        return Reusable()
    return OneTime()


def effective_policy(policy: Policy, caps: StoreCapabilities) -> Policy:
    """
    Reduziert eine Policy auf das, was der Store speichern kann.
    Ohne Spalten gilt die strengste Variante (einmalig).
    """
    if isinstance(policy, Capped) and not caps.supports_usage_cap:
        return OneTime()
    if isinstance(policy, Reusable) and not caps.supports_policy_flags:
        return OneTime()
    return policy


def describe_policy(policy: Policy) -> str:
    if isinstance(policy, Capped):
        return f"max uses: {policy.max_uses}"
    if isinstance(policy, Reusable):
        return "reusable"
    return "one-time"

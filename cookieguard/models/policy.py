"""Read-only consent policy supplied by the host."""

from __future__ import annotations

import pydantic

from cookieguard.utils import serialization

DEFAULT_ORDER: tuple[str, ...] = ("accept", "essential", "reject", "customize", "save")

# Types that honour a "prefer essential" policy.
ESSENTIAL_TYPES: tuple[str, ...] = ("essential", "reject")


def _default_enabled() -> dict[str, bool]:
    return {"accept": True, "essential": True, "reject": True, "customize": False, "save": False}


class ButtonPreferences(pydantic.BaseModel):
    """Control types in the order they should be tried, and which are allowed."""

    model_config = pydantic.ConfigDict(
        alias_generator=serialization.snake_to_camel,
        populate_by_name=True,
        frozen=True,
    )

    order: list[str] = pydantic.Field(default_factory=lambda: list(DEFAULT_ORDER))
    enabled: dict[str, bool] = pydantic.Field(default_factory=_default_enabled)


class ConsentPolicy(pydantic.BaseModel):
    """Whether to interact at all, and with which controls."""

    model_config = pydantic.ConfigDict(
        alias_generator=serialization.snake_to_camel,
        populate_by_name=True,
        frozen=True,
    )

    enabled: bool = True
    auto_accept: bool = True
    prefer_essential: bool = False
    button_preferences: ButtonPreferences = pydantic.Field(default_factory=ButtonPreferences)

    def allows_interaction(self) -> bool:
        return self.enabled and self.auto_accept

    def control_order(self) -> list[str]:
        """Enabled control types in the order they should be tried.

        With ``prefer_essential`` set, essential and reject move ahead of
        every other type; relative order is otherwise preserved.
        """
        prefs = self.button_preferences
        order = [t for t in prefs.order if prefs.enabled.get(t, False)]
        if self.prefer_essential:
            preferred = [t for t in order if t in ESSENTIAL_TYPES]
            order = preferred + [t for t in order if t not in ESSENTIAL_TYPES]
        return order

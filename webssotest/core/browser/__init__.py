"""Scripted web client and interaction replay."""

from webssotest.core.browser.client import Page, WebClient
from webssotest.core.browser.engine import InteractionEngine, InteractionRun
from webssotest.core.browser.interactions import (
    ElementInteraction,
    FormInteraction,
    Interaction,
    InteractionType,
    LinkInteraction,
    interaction_from_dict,
)

__all__ = [
    "ElementInteraction",
    "FormInteraction",
    "Interaction",
    "InteractionEngine",
    "InteractionRun",
    "InteractionType",
    "LinkInteraction",
    "Page",
    "WebClient",
    "interaction_from_dict",
]

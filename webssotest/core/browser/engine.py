"""Interaction engine.

Replays a scripted login sequence: fetch the start URL, then apply each
interaction in order to the page the previous step produced. The sequence
halts early, without error, once the current page is no longer interactive,
which is the normal outcome once the target has handed its protocol message
to the capture endpoint.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import assert_never

from webssotest.core.browser.client import Page, WebClient
from webssotest.core.browser.interactions import (
    ElementInteraction,
    FormInteraction,
    Interaction,
    LinkInteraction,
)
from webssotest.core.errors import InteractionError, TransportError
from webssotest.core.logging import TRACE

logger = logging.getLogger(__name__)


@dataclass
class InteractionRun:
    """Outcome of replaying an interaction sequence.

    Attributes:
        final_page: Last page successfully reached, None if the start URL
            could not be fetched.
        completed: Number of interactions applied.
        halted: Whether the sequence stopped at a terminal page before all
            interactions were applied.
        error: The failure that aborted the sequence, if any.
    """

    final_page: Page | None
    completed: int = 0
    halted: bool = False
    error: InteractionError | TransportError | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        """Re-raise the failure that aborted the sequence."""
        if self.error is not None:
            raise self.error


def _log_page(label: str, page: Page) -> None:
    if logger.isEnabledFor(TRACE):
        logger.log(TRACE, f"{label}: {page.url} ({page.status_code}, {page.content_type})\n{page.text}")


class InteractionEngine:
    """Applies interactions through a WebClient.

    Args:
        client: Client performing the navigation.
        stop_when: Extra terminal-page test; an HTML page for which it
            returns True is treated like a non-interactive page.
    """

    def __init__(
        self,
        client: WebClient,
        stop_when: Callable[[Page], bool] | None = None,
    ) -> None:
        self.client = client
        self.stop_when = stop_when

    def is_terminal(self, page: Page) -> bool:
        """Whether no interaction may be applied to the page."""
        if not page.is_html:
            return True
        return self.stop_when is not None and self.stop_when(page)

    def apply(self, page: Page, interaction: Interaction) -> Page:
        """Apply a single interaction to a page."""
        if isinstance(interaction, FormInteraction):
            return self.client.submit_form(page, interaction.selector, interaction.values, interaction.submit)
        if isinstance(interaction, LinkInteraction):
            return self.client.click_link(page, interaction.selector, interaction.text)
        if isinstance(interaction, ElementInteraction):
            return self.client.click(page, interaction.selector)
        assert_never(interaction)

    def run(self, start_url: str, interactions: Sequence[Interaction] = ()) -> InteractionRun:
        """Fetch the start URL and replay the interactions.

        Failures never propagate: they abort the sequence and are reported
        on the returned run together with the last page reached.
        """
        logger.info(f"Loading start page {start_url}")
        try:
            page = self.client.fetch(start_url)
        except TransportError as e:
            logger.error(f"Could not load the start page: {e}")
            return InteractionRun(final_page=None, error=e)
        _log_page("Start page", page)

        run = InteractionRun(final_page=page)
        for position, interaction in enumerate(interactions, start=1):
            if self.is_terminal(page):
                logger.info(
                    f"Page {page.url} is not interactive, skipping the remaining "
                    f"{len(interactions) - position + 1} interaction(s)"
                )
                run.halted = True
                break

            logger.info(f"Interaction {position}/{len(interactions)}: {interaction.describe()}")
            try:
                page = self.apply(page, interaction)
            except (InteractionError, TransportError) as e:
                logger.error(f"Interaction {position} failed: {e}")
                run.error = e
                break

            _log_page(f"Page after interaction {position}", page)
            run.final_page = page
            run.completed = position

        return run

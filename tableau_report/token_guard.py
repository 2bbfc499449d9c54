"""One-time consumption of access credentials.

A trusted ticket can only be redeemed once by the server, so the first widget
built for a given credential gets the ticket-embedded locator and every later
build falls back to the bare locator (the server session established by the
first load carries the authentication from then on).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Optional

from .locator import base_locator, trusted_ticket_locator

__all__ = ["TokenGuard"]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class TokenGuard:
    """Track whether the current credential has already been spent.

    Parameters
    ----------
    credential : str or None, optional
        Credential active at construction time.
    tokenizer : callable, optional
        ``tokenizer(locator, credential) -> str``. Defaults to
        :func:`~tableau_report.locator.trusted_ticket_locator`.
    """

    def __init__(
        self,
        credential: Optional[str] = None,
        *,
        tokenizer: Callable[[str, str], str] = trusted_ticket_locator,
    ) -> None:
        self._credential = credential
        self._consumed = False
        self._tokenizer = tokenizer

    @property
    def credential(self) -> Optional[str]:
        """Return the credential value currently tracked."""
        return self._credential

    @property
    def consumed(self) -> bool:
        """Return True once a locator was tokenized with the current credential."""
        return self._consumed

    def on_credential_changed(self, credential: Optional[str]) -> bool:
        """Track *credential*; reset consumption if the value differs.

        Returns
        -------
        bool
            True when the tracked value changed (and consumption was reset).
        """
        if credential == self._credential:
            return False
        self._credential = credential
        self._consumed = False
        logger.debug("credential replaced; next locator build may tokenize")
        return True

    def build_locator(self, raw_locator: str, credential: Optional[str]) -> str:
        """Return the locator for the next widget construction.

        Produces the credential-embedded locator at most once per credential
        value; otherwise the base locator (query stripped).
        """
        self.on_credential_changed(credential)
        if credential and not self._consumed:
            tokenized = self._tokenizer(raw_locator, credential)
            self._consumed = True
            logger.debug("credential consumed for %s", base_locator(raw_locator))
            return tokenized
        return base_locator(raw_locator)

"""Locator helpers: query stripping and trusted-ticket embedding."""

from __future__ import annotations

from urllib.parse import quote, urlsplit

__all__ = ["base_locator", "trusted_ticket_locator"]


def _split(locator: str):
    if not isinstance(locator, str):
        raise TypeError(f"locator must be a string, got {type(locator).__name__}")
    parts = urlsplit(locator)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"Could not parse locator {locator!r}: expected scheme://host/path")
    return parts


def base_locator(locator: str) -> str:
    """Return ``scheme://host/path`` for *locator* (query and fragment dropped).

    >>> base_locator("https://tableau.example.com/views/Sales/Overview?:embed=yes")
    'https://tableau.example.com/views/Sales/Overview'
    """
    parts = _split(locator)
    return f"{parts.scheme}://{parts.netloc}{parts.path}"


def trusted_ticket_locator(locator: str, ticket: str) -> str:
    """Embed a trusted-authentication ticket into *locator*.

    The ticket is placed as ``/trusted/<ticket>`` immediately after the host,
    which is the form Tableau Server redeems for trusted authentication.

    >>> trusted_ticket_locator("https://tableau.example.com/views/Sales/Overview", "T1")
    'https://tableau.example.com/trusted/T1/views/Sales/Overview'
    """
    parts = _split(locator)
    return f"{parts.scheme}://{parts.netloc}/trusted/{quote(str(ticket), safe='')}{parts.path}"

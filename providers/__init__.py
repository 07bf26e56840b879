"""
External web-search and mail providers.
"""

from .search import SearchHit, SearchOptions, SearchProvider, TavilyClient
from .mail import GmailClient, MailFilter, MailMessage, MailProvider

__all__ = [
    "SearchHit",
    "SearchOptions",
    "SearchProvider",
    "TavilyClient",
    "GmailClient",
    "MailFilter",
    "MailMessage",
    "MailProvider",
]

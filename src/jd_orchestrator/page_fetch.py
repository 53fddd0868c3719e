from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .errors import PageFetchError

ORG_CONTEXT_MAX_WORDS = 500
JOB_POSTING_MAX_WORDS = 1000


@dataclass(frozen=True)
class PageContent:
    url: str
    title: str = ""
    description: str = ""
    body_text: str = ""


class PageFetcher(Protocol):
    """
    URL content collaborator. HTML retrieval and scraping live behind it.

    Implementations raise PageFetchError for any failure; callers do not
    classify fetch failures further.
    """

    async def fetch(self, url: str) -> PageContent: ...


class UnavailablePageFetcher:
    """Default when no fetcher is wired in: every fetch fails."""

    async def fetch(self, url: str) -> PageContent:
        raise PageFetchError(f"No page fetcher configured; could not fetch {url}.")


def _first_words(text: str, limit: int) -> str:
    return " ".join(text.split()[:limit])


def organization_context(page: PageContent, *, max_words: int = ORG_CONTEXT_MAX_WORDS) -> str:
    title = page.title.strip() or "Organization"
    return (
        f"Organization: {title}\n"
        f"Description: {page.description.strip()}\n"
        f"Content: {_first_words(page.body_text, max_words)}"
    )


def organization_fallback(url: str) -> str:
    return f"Organization website: {url}"


def job_posting_text(page: PageContent, *, max_words: int = JOB_POSTING_MAX_WORDS) -> str:
    title = page.title.strip() or "Job Posting"
    return f"Title: {title}\n\nContent: {_first_words(page.body_text, max_words)}"

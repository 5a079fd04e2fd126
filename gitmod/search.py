"""Search the remote host for repositories (GitHub search API)."""

import logging
from dataclasses import dataclass
from typing import List, Optional

import requests

from gitmod.errors import SearchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchHit:
    full_name: str
    description: str
    stars: int
    url: str


def build_query(term: str, language: Optional[str] = None) -> str:
    query = term.strip()
    if language:
        query += f" language:{language.strip()}"
    return query


def search_repositories(
    term: str,
    language: Optional[str] = None,
    api_host: str = "api.github.com",
    timeout: Optional[float] = None,
) -> List[SearchHit]:
    """
    Query https://<api_host>/search/repositories and project the fields we show.

    Args:
        term: Free-text search term
        language: Restrict to repositories in this language
        api_host: Search API host
        timeout: Request timeout in seconds

    Returns:
        Hits in the order the API ranked them

    Raises:
        SearchError: On transport errors, non-200 responses or unexpected payloads
    """
    if not term or not term.strip():
        raise SearchError("search term must not be empty")

    url = f"https://{api_host}/search/repositories"
    headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
    }
    params = {"q": build_query(term, language)}
    logger.debug(f"GET {url} q={params['q']}")
    try:
        req = requests.get(url, params=params, headers=headers, timeout=timeout)
    except requests.RequestException as e:
        raise SearchError(f"search request to {api_host} failed: {e}") from e

    if req.status_code != 200:
        raise SearchError(f"search on {api_host} returned HTTP {req.status_code}")

    try:
        items = req.json()["items"]
    except (ValueError, KeyError, TypeError) as e:
        raise SearchError(f"unexpected search response from {api_host}") from e

    return [
        SearchHit(
            full_name=item.get("full_name", ""),
            description=item.get("description") or "",
            stars=int(item.get("stargazers_count") or 0),
            url=item.get("html_url", ""),
        )
        for item in items
    ]

from __future__ import annotations

import logging

import requests
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)


USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


def normalize_url(url: str) -> str:
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    return url


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.extract()
    return " ".join(soup.get_text(" ").split())


def fetch_org_text(url: str, timeout_sec: int = 30, max_chars: int = 10000) -> str:
    """Website text used as organization context for generation.

    Never raises: a failed fetch yields a note asking for manual details.
    """
    url = normalize_url(url)
    try:
        response = requests.get(url, timeout=timeout_sec, headers={"User-Agent": USER_AGENT})
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("Failed to fetch organization URL %s: %s", url, exc)
        return f"Failed to extract content from {url}. Please provide more details manually."

    text = html_to_text(response.text)[:max_chars]
    return f"Website content from {url}:\n\n{text}"

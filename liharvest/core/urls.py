"""LinkedIn URL canonicalisation and commenter extraction."""

import re
from typing import Any, Iterable
from urllib.parse import urlsplit, urlunsplit

from pydantic import ValidationError

from liharvest.exceptions import InvalidInputError
from liharvest.models.comment import CommentRecord

LINKEDIN_URL_RE = re.compile(
    r"^https?://([a-z0-9-]+\.)?linkedin\.com/(in|posts|company|feed/update)/[a-zA-Z0-9\-_%.:]+",
    re.IGNORECASE,
)


def canonicalize_url(url: str) -> str:
    """
    Normalize a URL into the cache key form.

    Forces https, lowercases the host, folds every linkedin.com subdomain
    (``uk.``, ``m.``, bare) onto ``www.linkedin.com``, drops query string,
    fragment and trailing slash. Path case is preserved.

    Raises:
        InvalidInputError: Empty URL
    """
    raw = (url or "").strip()
    if not raw:
        raise InvalidInputError("URL is empty")
    if "://" not in raw:
        raw = f"https://{raw}"

    parts = urlsplit(raw)
    host = parts.netloc.lower()
    if host == "linkedin.com" or host.endswith(".linkedin.com"):
        host = "www.linkedin.com"
    path = parts.path.rstrip("/")

    return urlunsplit(("https", host, path, "", ""))


def is_linkedin_url(url: str) -> bool:
    """True for LinkedIn profile, company, post and feed-update URLs."""
    return bool(LINKEDIN_URL_RE.match((url or "").strip()))


def is_profile_url(url: str) -> bool:
    return is_linkedin_url(url) and "/in/" in urlsplit(url.strip()).path


def is_post_url(url: str) -> bool:
    path = urlsplit((url or "").strip()).path
    return is_linkedin_url(url) and (path.startswith("/posts/") or path.startswith("/feed/update/"))


def require_post_url(url: str) -> str:
    """Validate a post URL and return it stripped."""
    if not url or not url.strip():
        raise InvalidInputError("A LinkedIn post URL is required")
    if not is_post_url(url):
        raise InvalidInputError(f"Not a LinkedIn post URL: {url}")
    return url.strip()


def require_profile_urls(urls: str | Iterable[str]) -> list[str]:
    """
    Validate profile URLs; accepts one URL, a comma-separated string or a list.

    Returns:
        Canonical URLs, de-duplicated in input order
    """
    if isinstance(urls, str):
        urls = urls.split(",")
    cleaned = [u.strip() for u in urls if u and u.strip()]
    if not cleaned:
        raise InvalidInputError("At least one LinkedIn profile URL is required")

    invalid = [u for u in cleaned if not is_profile_url(u)]
    if invalid:
        raise InvalidInputError(f"Not LinkedIn profile URLs: {', '.join(invalid)}")
    return dedupe_urls(cleaned)


def dedupe_urls(urls: Iterable[str]) -> list[str]:
    """Canonicalise and drop repeats, keeping first-seen order."""
    seen: set[str] = set()
    result = []
    for url in urls:
        canonical = canonicalize_url(url)
        if canonical not in seen:
            seen.add(canonical)
            result.append(canonical)
    return result


def extract_commenter_urls(
    comments: Iterable[dict[str, Any]],
    limit: int | None = None,
) -> list[str]:
    """
    Distinct commenter profile URLs in discovery order.

    Args:
        comments: Raw rows from a comments dataset
        limit: Keep only the first ``limit`` distinct URLs (None keeps all)

    Returns:
        Canonical profile URLs
    """
    if limit is not None and limit <= 0:
        return []

    seen: set[str] = set()
    urls: list[str] = []

    for item in comments:
        try:
            record = CommentRecord.model_validate(item)
        except ValidationError:
            continue
        if record.actor is None or not record.actor.linkedin_url:
            continue

        canonical = canonicalize_url(record.actor.linkedin_url)
        if canonical in seen:
            continue
        seen.add(canonical)
        urls.append(canonical)

        if limit is not None and len(urls) >= limit:
            break

    return urls

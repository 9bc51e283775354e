"""
Domain extraction for history URLs.

History URLs come straight from the browser, so anything without a
scheme and host (chrome://newtab is fine, "about:blank" is not) is
treated as unparseable and skipped by domain-based analysis.
"""

from urllib.parse import urlparse


def normalize_domain(domain: str) -> str:
    """Lowercase a hostname and drop a leading www."""
    domain = domain.lower().strip().rstrip(".")
    if domain.startswith("www."):
        domain = domain[4:]
    return domain


def extract_domain(url: str | None) -> str | None:
    """
    Extract the normalized host from a URL.

    Returns None if the URL is empty, malformed, or has no host.

    Examples:
        >>> extract_domain("https://www.GitHub.com/user/repo")
        'github.com'

        >>> extract_domain("not a url") is None
        True
    """
    if not url or not url.strip():
        return None

    try:
        parsed = urlparse(url.strip())
        host = parsed.hostname
    except ValueError:
        # e.g. unbalanced IPv6 brackets
        return None

    if not parsed.scheme or not host:
        return None

    return normalize_domain(host) or None

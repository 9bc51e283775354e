"""
Keyword-based topic categorization.

Used when the LLM classifier is unavailable or returns garbage. Each item
is matched on its combined "url title" text against an ordered keyword
table; the first category with any hit wins. Items with no hit fall into
"Other", which counts toward the distribution but never becomes an
interest.
"""

from collections import Counter
from typing import Sequence

from .core.models import CategorizedItem, VisitEvent
from .domains import extract_domain

OTHER_CATEGORY = "Other"

# Confidence reported for keyword matches vs unmatched items
KEYWORD_MATCH_CONFIDENCE = 0.6
UNMATCHED_CONFIDENCE = 0.1

PRIMARY_INTEREST_COUNT = 2
SECONDARY_INTEREST_COUNT = 3

# =============================================================================
# CATEGORY KEYWORD TABLE (order matters)
# =============================================================================

CATEGORY_KEYWORDS: list[tuple[str, list[str]]] = [
    ("Technology", [
        "github", "stackoverflow", "programming", "developer", "javascript",
        "python", "software", "api", "docker", "kubernetes", "linux", "code",
        "tech", "cloud", "database",
    ]),
    ("News", [
        "news", "cnn", "bbc", "reuters", "nytimes", "washingtonpost",
        "guardian", "headline", "politics", "breaking", "apnews",
    ]),
    ("Social Media", [
        "facebook", "twitter", "instagram", "linkedin", "reddit", "tiktok",
        "pinterest", "tumblr", "threads", "mastodon", "bsky",
    ]),
    ("Entertainment", [
        "youtube", "netflix", "spotify", "twitch", "hulu", "disney", "movie",
        "music", "game", "gaming", "stream", "podcast", "anime",
    ]),
    ("Shopping", [
        "amazon", "ebay", "etsy", "walmart", "shop", "cart", "checkout",
        "deal", "discount", "product", "store",
    ]),
    ("Education", [
        "coursera", "udemy", "edx", "khanacademy", "wikipedia", "course",
        "tutorial", "learn", "lecture", "university", "academy", ".edu",
    ]),
    ("Finance", [
        "bank", "finance", "invest", "stock", "crypto", "bitcoin", "paypal",
        "budget", "loan", "tax", "trading",
    ]),
    ("Health", [
        "health", "fitness", "workout", "medical", "doctor", "nutrition",
        "diet", "yoga", "meditation", "webmd", "mayoclinic",
    ]),
]

CATEGORIES = [name for name, _ in CATEGORY_KEYWORDS]

# Words too common to be useful as item keywords
STOP_WORDS = frozenset([
    "the", "and", "for", "that", "this", "with", "are", "from", "have", "you",
    "was", "not", "were", "they", "but", "has", "can", "their", "what", "all",
    "one", "been", "our", "who", "will", "would", "should", "could", "page",
    "home", "title",
])

MAX_ITEM_KEYWORDS = 10


def categorize_text(url: str, title: str) -> str:
    """
    Assign a category from the keyword table.

    Examples:
        >>> categorize_text("https://github.com/psf/requests", "psf/requests")
        'Technology'

        >>> categorize_text("https://example.com/", "Example Domain")
        'Other'
    """
    text = f"{url} {title}".lower()
    for category, keywords in CATEGORY_KEYWORDS:
        for keyword in keywords:
            if keyword in text:
                return category
    return OTHER_CATEGORY


def extract_keywords(url: str, title: str) -> list[str]:
    """
    Pull descriptive keywords from a URL and title.

    The site name (host without TLD) comes first, followed by title words
    longer than three characters that are not stop words.
    """
    keywords: list[str] = []

    domain = extract_domain(url)
    if domain:
        site = ".".join(domain.split(".")[:-1])
        if site:
            keywords.append(site)

    for word in (title or "").lower().split():
        word = word.strip(".,:;!?()[]{}\"'|-")
        if len(word) > 3 and word not in STOP_WORDS and word not in keywords:
            keywords.append(word)

    return keywords[:MAX_ITEM_KEYWORDS]


def categorize_items(events: Sequence[VisitEvent]) -> list[CategorizedItem]:
    """Categorize each visit with the keyword table."""
    items = []
    for event in events:
        category = categorize_text(event.url, event.title)
        items.append(CategorizedItem(
            url=event.url,
            title=event.title,
            category=category,
            confidence=KEYWORD_MATCH_CONFIDENCE if category != OTHER_CATEGORY else UNMATCHED_CONFIDENCE,
            keywords=extract_keywords(event.url, event.title),
        ))
    return items


def category_distribution(items: Sequence[CategorizedItem]) -> dict[str, float]:
    """
    Percentage of items per category, highest first.

    Categories with equal share keep table order, with Other last.
    """
    if not items:
        return {}

    counts = Counter(item.category for item in items)
    order = CATEGORIES + [OTHER_CATEGORY]
    ranked = sorted(
        counts.items(),
        key=lambda pair: (-pair[1], order.index(pair[0]) if pair[0] in order else len(order)),
    )
    return {name: round(count / len(items) * 100, 2) for name, count in ranked}


def rank_interests(distribution: dict[str, float]) -> tuple[list[str], list[str]]:
    """Split a ranked distribution into primary and secondary interests."""
    ranked = [name for name in distribution if name != OTHER_CATEGORY]
    primary = ranked[:PRIMARY_INTEREST_COUNT]
    secondary = ranked[PRIMARY_INTEREST_COUNT:PRIMARY_INTEREST_COUNT + SECONDARY_INTEREST_COUNT]
    return primary, secondary

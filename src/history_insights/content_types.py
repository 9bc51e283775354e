"""
Content-type classification for browsing history.

Each visited URL is assigned one content type:
- Video: Streaming and video platforms
- Social Media: Social networks and forums
- Shopping: E-commerce, carts and product pages
- News & Articles: News outlets, blogs and long-form reading
- Email & Communication: Webmail, chat and meetings
- Reference & Learning: Encyclopedias, docs, courses and Q&A
- Other: Anything the rule table does not recognize

Types are tested in table order and rules in list order; the first match
wins. The table is plain data so new rules never touch the matcher.
"""

import math
import re
from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Iterable

from .core.models import ContentTypes, DomainCount, VisitEvent
from .domains import extract_domain

OTHER = "Other"


@dataclass(frozen=True)
class DomainRule:
    """Matches when the host contains a literal substring."""
    substring: str

    def matches(self, domain: str, url: str) -> bool:
        return self.substring in domain


@dataclass(frozen=True)
class PatternRule:
    """Matches when the lowercased URL matches a regular expression."""
    pattern: re.Pattern

    def matches(self, domain: str, url: str) -> bool:
        return self.pattern.search(url) is not None


def _pattern(expr: str) -> PatternRule:
    return PatternRule(re.compile(expr))


# =============================================================================
# CONTENT TYPE RULE TABLE
# =============================================================================

CONTENT_TYPE_RULES: list[tuple[str, list[DomainRule | PatternRule]]] = [
    ("Video", [
        DomainRule("youtube.com"),
        DomainRule("youtu.be"),
        DomainRule("netflix.com"),
        DomainRule("vimeo.com"),
        DomainRule("twitch.tv"),
        DomainRule("hulu.com"),
        DomainRule("disneyplus.com"),
        DomainRule("primevideo.com"),
        DomainRule("dailymotion.com"),
        _pattern(r"/watch[/?]"),
        _pattern(r"/videos?/"),
        _pattern(r"\.(?:mp4|webm)(?:$|\?)"),
    ]),
    ("Social Media", [
        DomainRule("facebook.com"),
        DomainRule("twitter.com"),
        DomainRule("instagram.com"),
        DomainRule("linkedin.com"),
        DomainRule("reddit.com"),
        DomainRule("tiktok.com"),
        DomainRule("pinterest.com"),
        DomainRule("tumblr.com"),
        DomainRule("threads.net"),
        DomainRule("bsky.app"),
        DomainRule("mastodon."),
        # x.com as a substring would also hit dropbox.com
        _pattern(r"^https?://(?:www\.|mobile\.)?x\.com(?:/|$)"),
    ]),
    ("Shopping", [
        DomainRule("amazon."),
        DomainRule("ebay."),
        DomainRule("etsy.com"),
        DomainRule("walmart.com"),
        DomainRule("target.com"),
        DomainRule("bestbuy.com"),
        DomainRule("aliexpress."),
        DomainRule("shopify.com"),
        _pattern(r"/cart(?:/|$|\?)"),
        _pattern(r"/checkout"),
        _pattern(r"/products?/"),
    ]),
    ("News & Articles", [
        DomainRule("cnn.com"),
        DomainRule("bbc."),
        DomainRule("nytimes.com"),
        DomainRule("reuters.com"),
        DomainRule("theguardian.com"),
        DomainRule("washingtonpost.com"),
        DomainRule("apnews.com"),
        DomainRule("news.ycombinator.com"),
        DomainRule("medium.com"),
        DomainRule("substack.com"),
        _pattern(r"/news/"),
        _pattern(r"/articles?/"),
        _pattern(r"/\d{4}/\d{2}/\d{2}/"),
    ]),
    ("Email & Communication", [
        DomainRule("mail.google.com"),
        DomainRule("outlook."),
        DomainRule("mail.yahoo.com"),
        DomainRule("proton.me"),
        DomainRule("slack.com"),
        DomainRule("discord.com"),
        DomainRule("web.whatsapp.com"),
        DomainRule("teams.microsoft.com"),
        DomainRule("zoom.us"),
        _pattern(r"/mail/"),
        _pattern(r"/inbox"),
    ]),
    ("Reference & Learning", [
        DomainRule("wikipedia.org"),
        DomainRule("stackoverflow.com"),
        DomainRule("stackexchange.com"),
        DomainRule("github.com"),
        DomainRule("developer.mozilla.org"),
        DomainRule("coursera.org"),
        DomainRule("udemy.com"),
        DomainRule("khanacademy.org"),
        DomainRule("edx.org"),
        DomainRule("arxiv.org"),
        DomainRule("docs."),
        _pattern(r"\.edu(?:/|$)"),
        _pattern(r"/docs?/"),
        _pattern(r"/tutorials?/"),
        _pattern(r"/learn/"),
    ]),
]

CONTENT_TYPES = [name for name, _ in CONTENT_TYPE_RULES]

# log2 of (defined types + Other)
MAX_ENTROPY = math.log2(len(CONTENT_TYPES) + 1)

CONTENT_TYPE_INSIGHTS = {
    "Video": "You spend a significant amount of time on video content, from tutorials to entertainment and live streams.",
    "Social Media": "A large portion of your browsing involves social networking, for personal connections, professional networking or content discovery.",
    "Shopping": "You spend considerable time on shopping sites, researching products or making regular purchases.",
    "News & Articles": "You dedicate significant time to reading articles and staying informed about current events.",
    "Email & Communication": "A notable portion of your time goes to communication platforms and digital correspondence.",
    "Reference & Learning": "Your browsing shows a strong focus on documentation, reference material and learning resources.",
    OTHER: "Your content consumption is diverse and doesn't fit neatly into common categories.",
}


def classify_content_type(url: str) -> str | None:
    """
    Classify a URL into a content type.

    Returns None for URLs without a parseable host, which callers skip.

    Examples:
        >>> classify_content_type("https://www.youtube.com/watch?v=abc")
        'Video'

        >>> classify_content_type("https://example.com/")
        'Other'
    """
    domain = extract_domain(url)
    if domain is None:
        return None

    url_lower = url.lower()
    for content_type, rules in CONTENT_TYPE_RULES:
        for rule in rules:
            if rule.matches(domain, url_lower):
                return content_type
    return OTHER


def diversity_score(counts: dict[str, int]) -> str:
    """
    Normalized Shannon entropy of a content-type distribution.

    0 means every visit has the same type; 100 means visits are spread
    evenly over all defined types plus Other.

    Returns:
        Score formatted with two decimals (e.g. "67.83")
    """
    total = sum(counts.values())
    if total == 0:
        return "0.00"

    entropy = 0.0
    for count in counts.values():
        if count > 0:
            p = count / total
            entropy -= p * math.log2(p)

    score = min(100.0, max(0.0, entropy / MAX_ENTROPY * 100))
    return f"{score:.2f}"


def describe_diversity(score: str) -> str:
    """Human-readable label for a diversity score."""
    value = float(score)
    if value >= 80:
        return "an extremely diverse range of content"
    elif value >= 60:
        return "a very balanced content diet"
    elif value >= 40:
        return "moderately diverse content"
    elif value >= 20:
        return "a somewhat focused content pattern"
    return "a highly specialized content focus"


def rounded_percentages(counts: dict[str, int]) -> dict[str, float]:
    """
    Percentages with two decimals that still add up to exactly 100.

    Largest-remainder rounding in hundredths of a percent; equal remainders
    go to the earlier key.
    """
    total = sum(counts.values())
    if total == 0:
        return {name: 0.0 for name in counts}

    units = {name: count * 10000 // total for name, count in counts.items()}
    remainders = {name: count * 10000 % total for name, count in counts.items()}
    missing = 10000 - sum(units.values())

    keys = list(counts)
    for name in sorted(keys, key=lambda n: (-remainders[n], keys.index(n)))[:missing]:
        units[name] += 1

    return {name: units[name] / 100 for name in keys}


def analyze_content_types(events: Iterable[VisitEvent], top_domains: int = 3) -> ContentTypes:
    """
    Build the content-type section of a report.

    Visits with unparseable URLs are left out of this section only.
    Percentages cover every defined type plus Other.
    """
    counts: dict[str, int] = {name: 0 for name in CONTENT_TYPES}
    counts[OTHER] = 0
    domains_by_type: dict[str, Counter] = defaultdict(Counter)

    for event in events:
        content_type = classify_content_type(event.url)
        if content_type is None:
            continue
        counts[content_type] += 1
        domains_by_type[content_type][extract_domain(event.url)] += 1

    total = sum(counts.values())
    distribution = rounded_percentages(counts)

    # max() keeps the first of equal counts, i.e. table order
    primary_type = max(counts, key=lambda name: counts[name]) if total else OTHER

    score = diversity_score(counts)

    return ContentTypes(
        distribution=distribution,
        primary_type=primary_type,
        diversity_score=score,
        top_domains_by_type={
            name: [
                DomainCount(domain=domain, count=count)
                for domain, count in domain_counts.most_common(top_domains)
            ]
            for name, domain_counts in domains_by_type.items()
        },
        diversity_label=describe_diversity(score),
        insight=CONTENT_TYPE_INSIGHTS[primary_type],
    )

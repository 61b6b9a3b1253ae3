"""
Identity & Similarity Resolver

Decides whether a candidate already exists, either as a published post or as
a pending queue item. The checks run against a DedupSnapshot that ingestion
builds once per cycle with batch queries, never per candidate.

Order of checks:
1. Exact key   - external id seen as a post's external_source_id or queue id
2. URL         - source URL seen as a post's canonical_url or queue url
3. Fuzzy title - only for candidates without a stable upstream id
"""

import logging
import unicodedata
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from typing import Iterable, List, Optional, Set, Tuple

from ..config.settings import FUZZY_TITLE_THRESHOLD
from ..models import Candidate

logger = logging.getLogger(__name__)


def normalize_title(text: str) -> str:
    """Lower-case, drop punctuation and symbols, collapse whitespace.

    Combining marks are kept so Telugu headlines compare correctly.
    """
    if not text:
        return ""
    text = "".join(" " if unicodedata.category(ch)[0] in "PS" else ch for ch in text.lower())
    return " ".join(text.split())


def title_similarity(a: str, b: str) -> float:
    """Similarity of two titles on a 0-1 scale."""
    norm_a = normalize_title(a)
    norm_b = normalize_title(b)
    if not norm_a or not norm_b:
        return 0.0
    return SequenceMatcher(None, norm_a, norm_b).ratio()


def best_title_match(title: str, titles: Iterable[str]) -> Tuple[Optional[str], float]:
    """Highest-scoring title from `titles`; ties keep the first one seen."""
    best_title = None
    best_score = 0.0
    for candidate_title in titles:
        score = title_similarity(title, candidate_title)
        if score > best_score:
            best_title, best_score = candidate_title, score
    return best_title, best_score


@dataclass
class DedupSnapshot:
    """Known ids, URLs and recent titles for one ingestion cycle."""

    known_ids: Set[str] = field(default_factory=set)
    known_urls: Set[str] = field(default_factory=set)
    recent_titles: List[str] = field(default_factory=list)

    def remember(self, candidate: Candidate) -> None:
        """Add an accepted candidate so later candidates in the batch see it."""
        self.known_ids.add(candidate.external_id)
        if candidate.source_url:
            self.known_urls.add(candidate.source_url)
        if not candidate.stable_id and candidate.headline:
            self.recent_titles.append(candidate.headline)


def is_duplicate(
    candidate: Candidate,
    snapshot: DedupSnapshot,
    threshold: float = FUZZY_TITLE_THRESHOLD
) -> bool:
    """
    Pure duplicate decision for one candidate.

    Args:
        candidate: Normalized adapter output
        snapshot: Current post and queue state for this cycle
        threshold: Fuzzy similarity a match must exceed

    Returns:
        True if the candidate should be skipped
    """
    if candidate.external_id in snapshot.known_ids:
        return True

    if candidate.source_url and candidate.source_url in snapshot.known_urls:
        return True

    if candidate.stable_id:
        return False

    headline = candidate.headline
    if not headline or not snapshot.recent_titles:
        return False

    matched, score = best_title_match(headline, snapshot.recent_titles)
    if score > threshold:
        logger.debug(f"[Dedup] Fuzzy match {score:.2f}: '{headline[:60]}' ~ '{matched[:60]}'")
        return True
    return False

"""Deterministic keyword relevance scoring, the fallback ranking of retrieval"""

import math
import re

from pydantic import BaseModel

from docsync.models.chunk import Chunk, ContentType

STOP_WORDS = frozenset(
    {
        "a", "an", "the", "and", "or", "but", "if", "then", "else", "of", "in", "on", "at",
        "to", "for", "from", "by", "with", "about", "into", "onto", "over", "under", "as",
        "is", "are", "was", "were", "be", "been", "being", "am", "do", "does", "did", "done",
        "has", "have", "had", "can", "could", "should", "would", "will", "shall", "may",
        "might", "must", "i", "me", "my", "we", "our", "you", "your", "he", "she", "it",
        "its", "they", "them", "their", "this", "that", "these", "those", "there", "here",
        "what", "which", "who", "whom", "whose", "when", "where", "why", "how", "not", "no",
        "yes", "so", "too", "very", "just", "also", "than", "any", "all", "some", "more",
        "most", "other", "such", "only", "own", "same", "each", "both", "few", "way", "ways",
        "use", "using", "used", "add", "adding", "make", "making", "implement", "implementing",
        "create", "creating", "get", "getting", "set", "want", "need", "needs", "help",
        "please", "tell", "show", "explain", "example", "examples", "etc",
    }
)  # fmt: skip

SYNONYMS: dict[str, list[str]] = {
    "authentication": ["auth", "login", "signin", "firebase", "oauth"],
    "auth": ["authentication", "login", "signin"],
    "login": ["authentication", "auth", "signin"],
    "navigation": ["navigator", "routing", "routes", "router"],
    "routing": ["navigation", "navigator", "routes", "router"],
    "state": ["setstate", "provider", "riverpod", "bloc", "statefulwidget"],
    "database": ["sqlite", "storage", "persistence", "firestore"],
    "storage": ["persistence", "sqlite", "preferences", "database"],
    "http": ["network", "networking", "fetch", "api", "request"],
    "network": ["http", "networking", "fetch", "request"],
    "animation": ["animations", "animated", "tween", "transition"],
    "button": ["elevatedbutton", "textbutton", "iconbutton", "buttons"],
    "list": ["listview", "lists", "scroll", "gridview"],
    "image": ["images", "assets", "picture", "photo"],
    "test": ["testing", "tests", "widget_test", "integration"],
    "testing": ["test", "tests", "unit", "integration"],
    "layout": ["row", "column", "container", "stack", "flex"],
    "form": ["forms", "textfield", "input", "validation"],
    "theme": ["themes", "theming", "styling", "colors"],
    "deploy": ["deployment", "release", "publish", "build"],
}

# A query consisting of exactly one of these is a broad, general question
GENERAL_TERMS = frozenset(
    {
        "flutter", "dart", "widget", "widgets", "app", "apps", "ui", "layout", "state",
        "navigation", "testing", "animation", "performance", "deployment",
    }
)  # fmt: skip

INTRO_MARKERS = ("get-started", "getting-started", "get_started", "getting_started")
OVERVIEW_MARKERS = ("overview", "introduction", "intro")
BOILERPLATE_MARKERS = ("_includes/", "/includes/", "_partials/", "/partials/")
RELEASE_MARKERS = ("release-notes", "release_notes", "/release/", "breaking-changes")

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


class ScoringWeights(BaseModel):
    """Every constant of the keyword scorer"""

    title_phrase: float = 2.0
    content_phrase: float = 0.5
    title_term: float = 1.0
    path_term: float = 0.5
    content_log_coefficient: float = 0.3
    content_cap: float = 0.8
    key_term_weight: float = 1.0
    synonym_weight: float = 0.7
    reference_title_bonus: float = 0.5
    intro_boost: float = 10.0
    overview_boost: float = 5.0
    boilerplate_penalty: float = -10.0
    release_penalty: float = -5.0
    min_token_length: int = 3


def tokenize(text: str, min_length: int = 3) -> list[str]:
    """Lowercase, split on non-alphanumerics, drop short tokens"""
    return [t for t in _NON_ALNUM.sub(" ", text.lower()).split() if len(t) >= min_length]


class KeywordScorer:
    """
    Rank chunks against a query without embeddings

    Per chunk, summed: exact phrase in title and in content; per expanded
    term (synonyms weighted lower) a title hit, a path hit and a
    log-dampened content count; a flat bonus for reference/API chunks whose
    title holds a key term. Single-word general queries additionally boost
    introductory pages and penalize include fragments and release notes.
    """

    def __init__(self, weights: ScoringWeights | None = None):
        self.weights = weights or ScoringWeights()

    def key_terms(self, query: str) -> list[str]:
        """Query tokens without stop words, in order, deduplicated"""
        terms: list[str] = []
        for token in tokenize(query, self.weights.min_token_length):
            if token not in STOP_WORDS and token not in terms:
                terms.append(token)
        return terms

    def expand(self, key_terms: list[str]) -> dict[str, float]:
        """Key terms at full weight plus their synonyms at the synonym weight"""
        expanded = {term: self.weights.key_term_weight for term in key_terms}
        for term in key_terms:
            for synonym in SYNONYMS.get(term, []):
                expanded.setdefault(synonym, self.weights.synonym_weight)
        return expanded

    @staticmethod
    def is_general_query(key_terms: list[str]) -> bool:
        return len(key_terms) == 1 and key_terms[0] in GENERAL_TERMS

    def score(self, query: str, chunk: Chunk) -> float:
        key_terms = self.key_terms(query)
        return self._score(
            query.strip().lower(),
            key_terms,
            self.expand(key_terms),
            self.is_general_query(key_terms),
            chunk,
        )

    def rank(self, query: str, chunks: list[Chunk], top_k: int) -> list[tuple[Chunk, float]]:
        """
        Score every chunk and return the top_k highest

        Ties keep the input order. Chunks scoring zero or below are not
        filtered out, so up to top_k chunks are always returned.
        """
        phrase = query.strip().lower()
        key_terms = self.key_terms(query)
        expanded = self.expand(key_terms)
        general = self.is_general_query(key_terms)

        scored = [(chunk, self._score(phrase, key_terms, expanded, general, chunk)) for chunk in chunks]
        # sorted() is stable
        scored = sorted(scored, key=lambda item: item[1], reverse=True)
        return scored[:top_k]

    def _score(
        self,
        phrase: str,
        key_terms: list[str],
        expanded: dict[str, float],
        general: bool,
        chunk: Chunk,
    ) -> float:
        w = self.weights
        title = f"{chunk.title} {chunk.section}".lower()
        content = chunk.content.lower()
        path = f"{chunk.source_id} {chunk.url}".lower()

        score = 0.0
        if phrase:
            if phrase in title:
                score += w.title_phrase
            if phrase in content:
                score += w.content_phrase

        for term, weight in expanded.items():
            if term in title:
                score += w.title_term * weight
            if term in path:
                score += w.path_term * weight
            occurrences = content.count(term)
            if occurrences:
                dampened = w.content_log_coefficient * math.log(occurrences + 1)
                score += min(dampened, w.content_cap) * weight

        if chunk.content_type in (ContentType.REFERENCE, ContentType.API) and any(
            term in title for term in key_terms
        ):
            score += w.reference_title_bonus

        if general:
            score += self._general_adjustment(path)

        return score

    def _general_adjustment(self, path: str) -> float:
        w = self.weights
        adjustment = 0.0
        if any(marker in path for marker in INTRO_MARKERS):
            adjustment += w.intro_boost
        if any(marker in path for marker in OVERVIEW_MARKERS):
            adjustment += w.overview_boost
        if any(marker in path for marker in BOILERPLATE_MARKERS):
            adjustment += w.boilerplate_penalty
        if any(marker in path for marker in RELEASE_MARKERS):
            adjustment += w.release_penalty
        return adjustment

"""Request classifier: keyword scoring, complexity detection and decomposition."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Tuple


class Intent(str, Enum):
    WRITE = "write"
    RESEARCH = "research"
    ANALYZE = "analyze"
    CREATE = "create"
    EDIT = "edit"
    EXPLAIN = "explain"
    SOLVE = "solve"
    GENERAL = "general"

    @property
    def display_name(self) -> str:
        return DISPLAY_NAMES[self]


DISPLAY_NAMES = {
    Intent.WRITE: "Writing",
    Intent.RESEARCH: "Research",
    Intent.ANALYZE: "Analysis",
    Intent.CREATE: "Creative",
    Intent.EDIT: "Editing",
    Intent.EXPLAIN: "Explaining",
    Intent.SOLVE: "Problem Solving",
    Intent.GENERAL: "General Help",
}

# Earlier entries weigh more. Score ties go to the intent declared first.
KEYWORDS: Dict[Intent, List[str]] = {
    Intent.WRITE: [
        "write", "draft", "compose", "author", "blog", "article",
        "email", "letter", "document", "report", "essay", "story",
        "script", "copy", "content", "post", "message", "text",
    ],
    Intent.RESEARCH: [
        "research", "find", "search", "look up", "discover", "learn about",
        "what is", "who is", "where is", "when did", "how many",
        "statistics", "facts", "information", "sources", "reference",
    ],
    Intent.ANALYZE: [
        "analyze", "review", "examine", "inspect", "assess", "evaluate",
        "code", "debug", "data", "compare", "contrast", "check",
        "audit", "test", "verify", "validate", "diagnose",
    ],
    Intent.CREATE: [
        "create", "brainstorm", "ideas", "design", "imagine", "invent",
        "generate", "come up with", "think of", "suggest", "propose",
        "innovate", "concept", "vision", "plan",
    ],
    Intent.EDIT: [
        "edit", "proofread", "improve", "fix", "rewrite", "polish",
        "refine", "revise", "correct", "enhance", "clean up",
        "format", "restructure", "reorganize",
    ],
    Intent.EXPLAIN: [
        "explain", "how does", "why does", "teach", "help me understand",
        "clarify", "describe", "what does", "meaning of", "define",
        "elaborate", "break down", "simplify", "tutorial",
    ],
    Intent.SOLVE: [
        "solve", "problem", "issue", "error", "broken", "not working",
        "fix", "troubleshoot", "resolve", "help with", "stuck",
        "can't", "won't", "failing", "crashed",
    ],
}

KEYWORD_WEIGHT = 0.2
MIN_CONFIDENCE = 0.2
SIGNIFICANT_SCORE = 0.3
COMPLEX_LENGTH = 200

_SENTENCE_SPLIT = re.compile(r"[.;\n]")
_CONNECTIVE_SPLIT = re.compile(
    r",?\s*\b(?:and then|and finally|after that|then|finally)\b\s*",
    re.IGNORECASE,
)


@dataclass
class Classification:
    intent: Intent
    confidence: float
    keywords: List[str] = field(default_factory=list)
    is_complex: bool = False
    scores: Dict[Intent, float] = field(default_factory=dict)


def score_keywords(text: str, keywords: List[str]) -> Tuple[float, List[str]]:
    """Score lowercased ``text`` against one keyword table."""
    found: List[str] = []
    score = 0.0
    total = len(keywords)
    for index, keyword in enumerate(keywords):
        if keyword in text:
            found.append(keyword)
            position_bonus = 1.0 - 0.5 * (index / total)
            score += KEYWORD_WEIGHT * position_bonus
    return min(score, 1.0), found


def classify(text: str, keywords: Dict[Intent, List[str]] | None = None) -> Classification:
    table = keywords or KEYWORDS
    lower = text.lower()
    scores: Dict[Intent, float] = {}
    matches: Dict[Intent, List[str]] = {}
    for intent, words in table.items():
        scores[intent], matches[intent] = score_keywords(lower, words)

    best = Intent.GENERAL
    best_score = 0.0
    for intent in Intent:
        score = scores.get(intent, 0.0)
        if score > best_score:
            best, best_score = intent, score

    significant = sum(1 for score in scores.values() if score > SIGNIFICANT_SCORE)
    is_complex = significant > 1 or len(text) > COMPLEX_LENGTH

    return Classification(
        intent=best if best_score > MIN_CONFIDENCE else Intent.GENERAL,
        confidence=best_score,
        keywords=matches.get(best, []) if best_score > 0 else [],
        is_complex=is_complex,
        scores=scores,
    )


def split_fragments(text: str) -> List[str]:
    """Split a request into trimmed, non-empty fragments.

    Sentence punctuation and newlines are tried first; sequencing words
    ("then", "finally", ...) only when punctuation leaves a single fragment.
    """
    parts = [part.strip() for part in _SENTENCE_SPLIT.split(text)]
    parts = [part for part in parts if part]
    if len(parts) != 1:
        return parts
    pieces = [piece.strip(" ,") for piece in _CONNECTIVE_SPLIT.split(parts[0])]
    return [piece for piece in pieces if piece]


def decompose(text: str, keywords: Dict[Intent, List[str]] | None = None) -> List[Tuple[str, Intent]]:
    analysis = classify(text, keywords)
    if not analysis.is_complex:
        return [(text, analysis.intent)]

    fragments = split_fragments(text)
    if len(fragments) <= 1:
        return [(text, analysis.intent)]
    return [(fragment, classify(fragment, keywords).intent) for fragment in fragments]

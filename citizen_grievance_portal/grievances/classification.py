"""Keyword heuristics that suggest defaults for a newly submitted complaint.

The output is advisory: submitters and staff may override every field.
All functions are pure so the same text always gives the same result.
"""
import re
from collections import Counter
from dataclasses import dataclass
from typing import Tuple

PUNCTUATION_RE = re.compile(r"[^\w\s]")
SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
TECHNICAL_TERMS_RE = re.compile(
    r"\b(technical|system|process|procedure|documentation|configuration|implementation|"
    r"integration|deployment|maintenance|infrastructure|database|server|network|protocol|"
    r"algorithm|framework|architecture|optimization|automation)\b",
    re.IGNORECASE,
)
LOCATION_RE = re.compile(r"\b(?:at|near|in|on)\s+([^.!?,\n]+)", re.IGNORECASE)
PHONE_RE = re.compile(r"\b(\d{10}|\d{3}-\d{3}-\d{4})\b")

POSITIVE_WORDS = frozenset({
    "good", "great", "excellent", "amazing", "wonderful", "perfect", "satisfied",
    "happy", "pleased", "thank", "thanks", "appreciate",
})
NEGATIVE_WORDS = frozenset({
    "bad", "terrible", "awful", "horrible", "disgusting", "angry", "frustrated",
    "disappointed", "upset", "complaint", "problem", "issue", "broken", "damaged",
    "burst", "leaking", "overflowing", "blocked",
})

URGENCY_WEIGHTS = {
    "urgent": 10, "emergency": 10, "critical": 9, "immediate": 9, "asap": 8,
    "now": 7, "today": 6, "soon": 5, "quickly": 6, "fast": 5,
    "broken": 7, "damaged": 6, "not working": 6, "failed": 7,
    "dangerous": 8, "unsafe": 8, "hazard": 8, "risk": 7,
}

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
    "by", "is", "are", "was", "were", "be", "been", "have", "has", "had", "do", "does",
    "did", "will", "would", "could", "should", "may", "might", "can", "this", "that",
    "these", "those", "i", "you", "he", "she", "it", "we", "they", "me", "him", "her",
    "us", "them", "not", "our", "my", "need",
})

# (category, suggested department, keywords). First match wins, so the
# order of this list decides between buckets when text mentions several.
DEPARTMENT_BUCKETS = (
    ("education", "Education", ("education", "school", "student", "teacher", "college", "classroom", "exam")),
    ("healthcare", "Healthcare", ("health", "medical", "hospital", "clinic", "doctor", "medicine", "ambulance")),
    ("transport", "Transportation", ("transport", "bus", "road", "traffic", "train", "taxi", "parking")),
    ("police", "Police", ("police", "crime", "security", "theft", "violence", "harassment")),
    ("utilities", "Municipal Services", ("water", "electricity", "sanitation", "sewer", "drainage", "streetlight")),
    ("revenue", "Revenue", ("revenue", "tax", "payment", "property", "bill", "certificate")),
    ("agriculture", "Agriculture", ("agriculture", "farm", "crop", "farmer", "irrigation", "fertilizer")),
    ("environment", "Environment", ("environment", "pollution", "waste", "tree", "noise", "garbage")),
)
FALLBACK_CATEGORY = "other"
FALLBACK_DEPARTMENT = "Other"

TAG_RULES = (
    ("education", ("education", "school", "student")),
    ("healthcare", ("health", "medical", "hospital")),
    ("transportation", ("transport", "bus", "road")),
    ("law-enforcement", ("police", "crime", "security")),
    ("utilities", ("water", "electricity", "sanitation")),
    ("corruption", ("corruption", "bribe", "fraud")),
    ("delay", ("delay", "slow", "waiting")),
    ("quality-issue", ("quality", "poor", "bad")),
    ("infrastructure", ("infrastructure", "building", "construction")),
)


@dataclass(frozen=True)
class Classification:
    sentiment: str
    urgency: int
    complexity: int
    suggested_department: str
    category: str
    priority: str
    keywords: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()


@dataclass(frozen=True)
class KeyInfo:
    location: str
    contact: str
    urgency_indicators: Tuple[str, ...]


def tokenize(text):
    return PUNCTUATION_RE.sub("", (text or "").lower()).split()


def _mentions(tokens, words):
    token_set = set(tokens)
    for word in words:
        if word in token_set or f"{word}s" in token_set or f"{word}es" in token_set:
            return True
    return False


def analyze_sentiment(tokens):
    positive = sum(1 for token in tokens if token in POSITIVE_WORDS)
    negative = sum(1 for token in tokens if token in NEGATIVE_WORDS)
    if positive > negative:
        return "positive"
    if negative > positive:
        return "negative"
    return "neutral"


def analyze_urgency(tokens):
    joined = f" {' '.join(tokens)} "
    urgency = 1
    for word, weight in URGENCY_WEIGHTS.items():
        if f" {word} " in joined:
            urgency = max(urgency, weight)
    return urgency


def analyze_complexity(text):
    text = text or ""
    sentences = [s for s in SENTENCE_SPLIT_RE.split(text) if s.strip()]
    if sentences:
        avg_sentence_length = sum(len(s.split()) for s in sentences) / len(sentences)
    else:
        avg_sentence_length = 0
    word_count = len(text.split())
    technical_terms = len(TECHNICAL_TERMS_RE.findall(text))

    complexity = 1
    if avg_sentence_length > 20:
        complexity += 2
    elif avg_sentence_length > 15:
        complexity += 1

    if word_count > 200:
        complexity += 2
    elif word_count > 100:
        complexity += 1

    if technical_terms > 5:
        complexity += 3
    elif technical_terms > 2:
        complexity += 2
    elif technical_terms > 0:
        complexity += 1

    return min(10, max(1, complexity))


def suggest_department(tokens):
    """Return ``(category, department name)`` for the first matching bucket."""
    for category, department, keywords in DEPARTMENT_BUCKETS:
        if _mentions(tokens, keywords):
            return category, department
    return FALLBACK_CATEGORY, FALLBACK_DEPARTMENT


def calculate_priority(urgency, complexity, sentiment):
    score = urgency + complexity
    if sentiment == "negative":
        score += 2
    elif sentiment == "positive":
        score -= 2

    if score >= 15:
        return "critical"
    if score >= 12:
        return "high"
    if score >= 8:
        return "medium"
    return "low"


def extract_keywords(tokens, limit=10):
    counts = Counter(
        token for token in tokens
        if len(token) > 2 and token not in STOP_WORDS and token.isalpha()
    )
    return tuple(word for word, _ in counts.most_common(limit))


def generate_tags(tokens):
    return tuple(tag for tag, words in TAG_RULES if _mentions(tokens, words))


def classify(title, description="") -> Classification:
    text = f"{title or ''}. {description or ''}" if description else (title or "")
    tokens = tokenize(text)
    sentiment = analyze_sentiment(tokens)
    urgency = analyze_urgency(tokens)
    complexity = analyze_complexity(text)
    category, department = suggest_department(tokens)
    return Classification(
        sentiment=sentiment,
        urgency=urgency,
        complexity=complexity,
        suggested_department=department,
        category=category,
        priority=calculate_priority(urgency, complexity, sentiment),
        keywords=extract_keywords(tokens),
        tags=generate_tags(tokens),
    )


def extract_key_info(description) -> KeyInfo:
    description = description or ""
    location_match = LOCATION_RE.search(description)
    phone_match = PHONE_RE.search(description)
    tokens = tokenize(description)
    joined = f" {' '.join(tokens)} "
    indicators = tuple(word for word, weight in URGENCY_WEIGHTS.items() if weight >= 9 and f" {word} " in joined)
    return KeyInfo(
        location=location_match.group(1).strip() if location_match else "",
        contact=phone_match.group(1) if phone_match else "",
        urgency_indicators=indicators,
    )


def category_suggestions(text, limit=5):
    """Categories whose keywords overlap the partial text, for type-ahead."""
    fragment = (text or "").strip().lower()
    if not fragment:
        return []
    suggestions = []
    for category, _, keywords in DEPARTMENT_BUCKETS:
        if any(fragment in keyword or keyword in fragment for keyword in keywords):
            suggestions.append(category)
    return suggestions[:limit]

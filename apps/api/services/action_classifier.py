"""
Keyword classifier for free-text owner actions and contact notes.

Maps text like "called her to check in" to an intervention type. Only
confident matches (two or more keyword hits) are classified; anything else
stays unclassified so it never pollutes the learning stats.
"""
import re
from dataclasses import dataclass
from typing import Optional

MIN_TEXT_LENGTH = 8
CLASSIFY_THRESHOLD = 0.8

KEYWORD_RULES = [
    ("community-integration", ["community", "event", "challenge", "meetup", "partner workout"]),
    ("personal-outreach", ["outreach", "call", "text", "email", "check-in", "check in"]),
    ("goal-setting", ["goal", "plan", "assessment", "consult", "milestone"]),
    ("coach-connection", ["coach", "pt", "session", "onramp", "on-ramp"]),
    ("pricing-review", ["pricing", "discount", "offer", "membership option", "upgrade"]),
    ("win-back", ["win back", "win-back", "former", "rejoin", "reactivation"]),
]


@dataclass(frozen=True)
class ActionClassification:
    classification_type: Optional[str]
    confidence: float
    status: str  # classified | unclassified | rejected


def _hits(text: str, keyword: str) -> bool:
    # Short keywords ("pt", "call") must match whole words.
    if len(keyword) <= 4:
        return re.search(rf"\b{re.escape(keyword)}\b", text) is not None
    return keyword in text


def classify_action(text: Optional[str]) -> ActionClassification:
    clean = (text or "").strip().lower()
    if len(clean) < MIN_TEXT_LENGTH or re.fullmatch(r"[a-z]{1,4}", clean):
        return ActionClassification(None, 0.0, "rejected")

    best_type, best_score = None, 0
    for intervention_type, keywords in KEYWORD_RULES:
        score = sum(1 for k in keywords if _hits(clean, k))
        if score > best_score:
            best_type, best_score = intervention_type, score

    if best_type is None:
        return ActionClassification(None, 0.2, "unclassified")

    confidence = round(min(0.95, 0.55 + best_score * 0.2), 2)
    if confidence < CLASSIFY_THRESHOLD:
        return ActionClassification(None, confidence, "unclassified")
    return ActionClassification(best_type, confidence, "classified")

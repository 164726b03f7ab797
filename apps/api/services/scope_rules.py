"""
Topical firewall for recommendation text.

Each pillar bans phrases that belong to another pillar, so a Retention
recommendation never drifts into pricing advice. Supporting sentences that
break the rules are dropped before they are attached to a recommendation.
"""
import re
from dataclasses import dataclass
from typing import Dict, List

SCOPE_BANNED_KEYWORDS: Dict[str, List[str]] = {
    "Retention": [
        "pricing", "upsell", "add-on", "corporate rate", "arm increase",
        "subscription upgrade", "lead flow", "inbound inquiries",
    ],
    "Acquisition": [
        "onboarding touchpoint", "coaching audit", "scaling consistency",
        "whiteboard brief", "nutrition coaching", "coaching playbook",
    ],
    "Community Depth": [
        "referral sprint", "corporate rate", "lead flow", "inbound inquiries",
        "coaching audit", "coaching playbook", "movement standards",
        "scaling guidelines", "emergency procedures", "communication templates",
    ],
    "Coaching Quality": [
        "referral", "bring-a-friend", "upsell", "pricing", "arm increase",
        "nutrition challenge", "social proof", "lead flow",
    ],
}

# Topics allowed only when the recommendation itself is about them.
CROSS_LEVER_BLOCKED_TOPICS = [
    "onboarding", "coaching development", "upsell", "upsells", "pricing",
    "coaching playbook", "emergency procedures", "communication templates",
    "movement standards",
]

DEFAULT_BANNED_KEYWORDS = [
    "coaching playbook", "emergency procedures", "communication templates",
    "movement standards", "scaling guidelines",
]

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


@dataclass(frozen=True)
class ScopeContext:
    category: str
    headline: str
    intervention_type: str


def allows_blocked_topic(ctx: ScopeContext, topic: str) -> bool:
    haystack = f"{ctx.headline} {ctx.intervention_type} {ctx.category}".lower()
    return topic in haystack


def sentence_violates_scope(sentence: str, ctx: ScopeContext) -> bool:
    lower = sentence.lower()
    banned = SCOPE_BANNED_KEYWORDS.get(ctx.category, DEFAULT_BANNED_KEYWORDS)
    if any(term in lower for term in banned):
        return True
    return any(
        topic in lower and not allows_blocked_topic(ctx, topic)
        for topic in CROSS_LEVER_BLOCKED_TOPICS
    )


def remove_blocked_topic_content(text: str, ctx: ScopeContext) -> str:
    sentences = [s for s in _SENTENCE_SPLIT.split(text) if s]
    return " ".join(s for s in sentences if not sentence_violates_scope(s, ctx)).strip()


def trim_to_word_limit(text: str, word_limit: int) -> str:
    words = text.split()
    if len(words) <= word_limit:
        return text.strip()
    return " ".join(words[:word_limit])

"""
Tests for the recommendation scope rules.
"""
from services.scope_rules import (
    ScopeContext,
    remove_blocked_topic_content,
    sentence_violates_scope,
    trim_to_word_limit,
)

RETENTION = ScopeContext(
    category="Retention",
    headline="Cut early churn with a structured first month",
    intervention_type="onboarding-acceleration",
)
ACQUISITION = ScopeContext(
    category="Acquisition",
    headline="Run a referral sprint",
    intervention_type="community-integration",
)


class TestSentenceViolations:
    def test_pillar_banned_keyword(self):
        assert sentence_violates_scope("Consider a pricing change next quarter.", RETENTION)

    def test_clean_sentence_passes(self):
        assert not sentence_violates_scope("Call every new member in week two.", RETENTION)

    def test_blocked_topic_allowed_when_recommendation_is_about_it(self):
        assert not sentence_violates_scope("Tighten onboarding for new joiners.", RETENTION)

    def test_blocked_topic_rejected_elsewhere(self):
        assert sentence_violates_scope("Tighten onboarding for new joiners.", ACQUISITION)

    def test_unknown_category_uses_default_list(self):
        ctx = ScopeContext(category="Other", headline="x", intervention_type="goal-setting")
        assert sentence_violates_scope("Write a coaching playbook.", ctx)
        assert not sentence_violates_scope("Set a 90-day goal.", ctx)


class TestContentFiltering:
    def test_drops_only_offending_sentences(self):
        text = "Call new members weekly. Raise pricing by 5%. Celebrate their first month!"
        assert remove_blocked_topic_content(text, RETENTION) == (
            "Call new members weekly. Celebrate their first month!"
        )

    def test_everything_filtered_gives_empty_string(self):
        assert remove_blocked_topic_content("Upsell the add-on package.", RETENTION) == ""

    def test_trim_to_word_limit(self):
        assert trim_to_word_limit("one two three four", 2) == "one two"
        assert trim_to_word_limit(" one two ", 5) == "one two"

"""
Tests for the member churn-risk and intervention engine.
"""
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest

from services.member_risk import (
    INTERVENTION_RULES,
    GymAggregate,
    MemberContext,
    build_gym_aggregate,
    classify_gym_archetype,
    engagement_class,
    predict_member,
    predict_members,
    select_intervention,
    summarize_predictions,
    urgency_decay,
)

AS_OF = date(2024, 6, 20)


def _member(tenure_days, rate=150, name="Member"):
    return SimpleNamespace(
        id=uuid4(),
        name=name,
        email=None,
        monthly_rate=rate,
        join_date=AS_OF - timedelta(days=tenure_days),
        cancel_date=None,
        status="active",
    )


def _contact(days_ago, note=None):
    return SimpleNamespace(
        contacted_at=datetime.combine(AS_OF - timedelta(days=days_ago), datetime.min.time(), tzinfo=timezone.utc),
        note=note,
    )


def _gym(**overrides):
    values = dict(
        churn_rate=4.5,
        arm=150.0,
        high_value_threshold=200.0,
        median_cancel_tenure=60,
        early_cancel_share=0.5,
        archetype="growth-accelerator",
    )
    values.update(overrides)
    return GymAggregate(**values)


class TestProbabilityClamp:
    def test_extreme_member_capped(self):
        gym = _gym(churn_rate=12.0, median_cancel_tenure=30, early_cancel_share=0.8, archetype="turnaround-lab")
        prediction = predict_member(_member(5, rate=20), [], gym, AS_OF)

        assert 0.55 < prediction.churn_probability <= 0.95
        assert prediction.engagement_class == "ghost"
        assert prediction.intervention_type == "onboarding-acceleration"
        assert prediction.intervention_urgency == "immediate"

    def test_safest_member_floored(self):
        gym = _gym(churn_rate=2.0, archetype="community-anchor", high_value_threshold=180.0)
        prediction = predict_member(_member(1000, rate=250), [_contact(3)], gym, AS_OF)

        assert prediction.churn_probability >= 0.01
        assert prediction.churn_probability == 0.01
        assert prediction.engagement_class == "core"
        assert prediction.is_high_value is True
        assert prediction.primary_risk_driver == "No significant risk signals"


class TestCausalFactors:
    def test_never_contacted_new_member_factors(self):
        prediction = predict_member(_member(20), [], _gym(), AS_OF)
        names = [f.factor for f in prediction.causal_factors]
        assert "First month: habit formation period" in names
        assert "Never contacted: no coach connection established" in names
        assert prediction.last_contact_days is None

    def test_factors_sorted_by_absolute_impact(self):
        prediction = predict_member(_member(400), [_contact(5)], _gym(), AS_OF)
        impacts = [abs(f.impact) for f in prediction.causal_factors]
        assert impacts == sorted(impacts, reverse=True)

    def test_recent_contact_lowers_risk(self):
        gym = _gym()
        cold = predict_member(_member(45), [], gym, AS_OF)
        warm = predict_member(_member(45), [_contact(2)], gym, AS_OF)
        assert warm.churn_probability < cold.churn_probability
        assert warm.last_contact_days == 2


class TestEngagementClass:
    @pytest.mark.parametrize("probability,tenure,expected", [
        (0.10, 200, "core"),
        (0.10, 30, "drifter"),
        (0.30, 200, "drifter"),
        (0.31, 200, "at-risk"),
        (0.55, 200, "at-risk"),
        (0.56, 200, "ghost"),
    ])
    def test_boundaries(self, probability, tenure, expected):
        assert engagement_class(probability, tenure) == expected


class TestInterventionTable:
    def _ctx(self, probability, tenure, contact=None, rate=150.0, high_value=False):
        return MemberContext(
            tenure_days=tenure,
            last_contact_days=contact,
            rate=rate,
            is_high_value=high_value,
            gym=_gym(),
            probability=probability,
        )

    def test_priority_order(self):
        assert select_intervention(self._ctx(0.7, 10)).type == "onboarding-acceleration"
        assert select_intervention(self._ctx(0.7, 200, high_value=True)).type == "personal-outreach"
        assert select_intervention(self._ctx(0.7, 200)).type == "win-back"
        assert select_intervention(self._ctx(0.4, 40)).type == "coach-connection"
        assert select_intervention(self._ctx(0.4, 40, contact=3)).type == "goal-setting"
        assert select_intervention(self._ctx(0.4, 300)).type == "community-integration"
        assert select_intervention(self._ctx(0.4, 150)).type == "personal-outreach"
        assert select_intervention(self._ctx(0.2, 400)).type == "milestone-celebration"
        assert select_intervention(self._ctx(0.2, 200, rate=100.0)).type == "pricing-review"
        assert select_intervention(self._ctx(0.2, 200)).type == "community-integration"
        assert select_intervention(self._ctx(0.05, 200)).urgency == "monitor"

    def test_last_rule_is_catch_all(self):
        assert INTERVENTION_RULES[-1].predicate(self._ctx(0.0, 0)) is True


class TestPrioritizedInterventions:
    def test_top_three_with_counterfactuals(self):
        prediction = predict_member(_member(25, rate=180), [], _gym(), AS_OF)
        top = prediction.prioritized_interventions

        assert len(top) == 3
        assert [c.score for c in top] == sorted((c.score for c in top), reverse=True)
        for candidate in top:
            cf = candidate.counterfactual
            assert cf is not None
            assert 0.01 <= cf.projected_churn_probability <= prediction.churn_probability
            assert cf.revenue_preserved >= 0

    def test_recently_tried_type_penalized(self):
        gym = _gym()
        member = _member(25, rate=180)
        fresh = predict_member(member, [], gym, AS_OF)
        tried = predict_member(member, [_contact(40), _contact(3, "Sent a text to check in")], gym, AS_OF)

        def outreach(prediction):
            return next((c for c in prediction.prioritized_interventions if c.type == "personal-outreach"), None)

        fresh_outreach = outreach(fresh)
        tried_outreach = outreach(tried)
        if fresh_outreach and tried_outreach:
            assert tried_outreach.confidence < fresh_outreach.confidence

    def test_feedback_weight_scales_delta(self):
        member = _member(25, rate=180)
        base = predict_member(member, [], _gym(), AS_OF)
        boosted = predict_member(member, [], _gym(feedback_weights={"onboarding-acceleration": 1.25}), AS_OF)

        def delta(prediction):
            return next(c.expected_churn_delta for c in prediction.prioritized_interventions
                        if c.type == "onboarding-acceleration")

        assert delta(boosted) >= delta(base)


class TestGymAggregate:
    def test_archetypes(self):
        assert classify_gym_archetype(8.0, 200) == "turnaround-lab"
        assert classify_gym_archetype(5.0, 180) == "premium-boutique"
        assert classify_gym_archetype(3.0, 120) == "community-anchor"
        assert classify_gym_archetype(5.0, 120) == "growth-accelerator"

    def test_build_from_roster(self):
        active = [_member(100, rate=r) for r in (100, 120, 140, 160, 300)]
        cancelled = [
            SimpleNamespace(join_date=date(2024, 1, 1), cancel_date=date(2024, 2, 15), monthly_rate=100),
            SimpleNamespace(join_date=date(2023, 1, 1), cancel_date=date(2024, 1, 1), monthly_rate=100),
        ]
        aggregate = build_gym_aggregate(active, cancelled)

        assert aggregate.high_value_threshold == 160
        assert aggregate.churn_rate == 5.0
        assert aggregate.arm == pytest.approx(164.0)
        assert aggregate.early_cancel_share == 0.5
        assert aggregate.median_cancel_tenure == 365

    def test_latest_metrics_win(self):
        latest = SimpleNamespace(churn_rate=9.0, arm=110)
        aggregate = build_gym_aggregate([_member(10)], [], latest)
        assert aggregate.churn_rate == 9.0
        assert aggregate.archetype == "turnaround-lab"


class TestBatch:
    def test_sorted_and_summarized(self):
        gym = _gym()
        members = [_member(500, name="Vet"), _member(10, name="Newbie"), _member(200, name="Mid")]
        contacts = {str(members[0].id): [_contact(5)]}
        predictions = predict_members(members, contacts, gym, AS_OF)

        probabilities = [p.churn_probability for p in predictions]
        assert probabilities == sorted(probabilities, reverse=True)
        assert predictions[0].name == "Newbie"

        summary = summarize_predictions(predictions)
        assert sum(summary.class_breakdown.values()) == 3
        assert summary.total_at_risk >= 1
        assert 0 < summary.avg_churn_probability < 1

    def test_empty_summary(self):
        summary = summarize_predictions([])
        assert summary.total_at_risk == 0
        assert summary.avg_churn_probability == 0.0
        assert summary.top_risk_driver == "No significant risk drivers"


class TestUrgencyDecay:
    def test_blend(self):
        assert urgency_decay(0, None) == 1.0
        assert urgency_decay(90, 0) == 0.0
        assert urgency_decay(45, 30) == pytest.approx(0.55 * 0.5 + 0.45 * 0.5)


class TestClampWithCustomConfig:
    def test_out_of_range_sums_are_clamped(self):
        from core.scoring_config import ScoringConfig

        hot = ScoringConfig(tenure_bands=[(14, 2.0)])
        cold = ScoringConfig(loyalty_impact=-3.0)
        assert predict_member(_member(5), [], _gym(), AS_OF, config=hot).churn_probability == 0.95
        assert predict_member(_member(900), [], _gym(), AS_OF, config=cold).churn_probability == 0.01

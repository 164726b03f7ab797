"""
Member Risk & Intervention Engine

For every active member, estimates the probability of cancelling and picks
what the gym should do about it.

ARCHITECTURE:
    predict_member(member, contacts, gym, as_of) is a pure function. It
    starts at a 0.03 floor and adds signed impacts from an ordered list of
    causal rules. Each rule yields a CausalFactor (name, impact, confidence,
    evidence); confidence is informational and never enters the arithmetic.

    The final probability is clamped to [0.01, 0.95] and mapped to an
    engagement class:
        core     <= 0.15 and tenure > 90 days
        drifter  <= 0.30
        at-risk  <= 0.55
        ghost    otherwise

    Intervention selection is a table of (predicate, template) rules checked
    in priority order. Prioritization then scores all eight intervention
    types:
        expected_revenue_delta x confidence x urgency_multiplier x value_weight
    and keeps the top three with a counterfactual projection each.

All constants come from SCORING_CONFIG.
"""
from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from core.scoring_config import INTERVENTION_TYPES, SCORING_CONFIG, ScoringConfig
from services.action_classifier import classify_action


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class GymAggregate:
    """Gym-level context shared by every member prediction."""

    churn_rate: float
    arm: float
    high_value_threshold: float
    median_cancel_tenure: float
    early_cancel_share: float
    archetype: str
    feedback_weights: Dict[str, float] = field(default_factory=dict)


@dataclass
class CausalFactor:
    factor: str
    impact: float
    confidence: float
    evidence: str


@dataclass
class InterventionTemplate:
    type: str
    detail: str
    micro_guidance: str
    urgency: str  # immediate | this-week | this-month | monitor


@dataclass
class InterventionRule:
    name: str
    predicate: Callable[["MemberContext"], bool]
    template: InterventionTemplate


@dataclass
class Counterfactual:
    projected_churn_probability: float
    projected_engagement_class: str
    projected_revenue_at_risk: float
    revenue_preserved: float


@dataclass
class InterventionCandidate:
    type: str
    expected_churn_delta: float
    expected_revenue_delta: float
    confidence: float
    urgency_multiplier: float
    value_weight: float
    score: float
    counterfactual: Optional[Counterfactual] = None


@dataclass
class MemberPrediction:
    member_id: str
    name: str
    email: Optional[str]
    monthly_rate: float
    tenure_days: int
    tenure_months: int
    last_contact_days: Optional[int]
    is_high_value: bool
    churn_probability: float
    engagement_class: str
    causal_factors: List[CausalFactor]
    primary_risk_driver: str
    expected_ltv_remaining: float
    revenue_at_risk: float
    intervention_type: str
    intervention_detail: str
    intervention_micro_guidance: str
    intervention_urgency: str
    prioritized_interventions: List[InterventionCandidate]

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PredictionSummary:
    total_at_risk: int
    total_revenue_at_risk: float
    total_ltv_at_risk: float
    avg_churn_probability: float
    class_breakdown: Dict[str, int]
    urgent_interventions: int
    top_risk_driver: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MemberContext:
    """Per-member inputs resolved once and shared by rules and tables."""

    tenure_days: int
    last_contact_days: Optional[int]
    rate: float
    is_high_value: bool
    gym: GymAggregate
    probability: float = 0.0


# ---------------------------------------------------------------------------
# Gym aggregate
# ---------------------------------------------------------------------------

def classify_gym_archetype(churn_rate: float, arm: float, config: ScoringConfig = SCORING_CONFIG) -> str:
    if churn_rate > config.archetype_turnaround_churn:
        return "turnaround-lab"
    if arm >= config.archetype_premium_arm:
        return "premium-boutique"
    if churn_rate <= config.archetype_community_churn:
        return "community-anchor"
    return "growth-accelerator"


def build_gym_aggregate(
    active_members: Sequence,
    cancelled_members: Sequence,
    latest_metrics=None,
    feedback_weights: Optional[Dict[str, float]] = None,
    config: ScoringConfig = SCORING_CONFIG,
) -> GymAggregate:
    rates = sorted((float(m.monthly_rate or 0) for m in active_members), reverse=True)
    threshold = rates[math.floor(len(rates) * config.high_value_quantile)] if rates else 0.0

    if latest_metrics is not None:
        churn_rate = float(latest_metrics.churn_rate)
        arm = float(latest_metrics.arm)
    else:
        churn_rate = config.default_gym_churn
        arm = sum(rates) / len(rates) if rates else 0.0

    tenures = sorted(
        max(0, (m.cancel_date - m.join_date).days)
        for m in cancelled_members if m.cancel_date is not None
    )
    median_tenure = tenures[len(tenures) // 2] if tenures else config.default_median_cancel_tenure
    early_share = (
        sum(1 for t in tenures if t <= 90) / len(tenures) if tenures else config.default_early_cancel_share
    )

    return GymAggregate(
        churn_rate=churn_rate,
        arm=arm,
        high_value_threshold=threshold,
        median_cancel_tenure=median_tenure,
        early_cancel_share=early_share,
        archetype=classify_gym_archetype(churn_rate, arm, config),
        feedback_weights=dict(feedback_weights or {}),
    )


# ---------------------------------------------------------------------------
# Causal rules
# ---------------------------------------------------------------------------

TENURE_BAND_LABELS = {
    14: "Critical onboarding window (first 2 weeks)",
    30: "First month: habit formation period",
    60: "Pre-habit window (30-60 days)",
    90: "Community integration phase (60-90 days)",
    180: "Settling-in period (3-6 months)",
    270: "Plateau window (6-9 months)",
    365: "First-year stretch (9-12 months)",
}


def _tenure_rule(ctx: MemberContext, config: ScoringConfig) -> Optional[CausalFactor]:
    for max_days, impact in config.tenure_bands:
        if ctx.tenure_days <= max_days:
            return CausalFactor(
                factor=TENURE_BAND_LABELS.get(max_days, f"Tenure up to {max_days} days"),
                impact=impact,
                confidence=0.8,
                evidence=f"Member for {ctx.tenure_days} days",
            )
    return None


def _contact_rule(ctx: MemberContext, config: ScoringConfig) -> Optional[CausalFactor]:
    days = ctx.last_contact_days
    tenure = ctx.tenure_days
    if days is None:
        if tenure <= config.never_contacted_early_days:
            return CausalFactor("Never contacted: no coach connection established",
                                config.never_contacted_early_impact, 0.75, "No outreach logged")
        if tenure <= config.never_contacted_mid_days:
            return CausalFactor("No recorded outreach", config.never_contacted_mid_impact, 0.6,
                                "No outreach logged")
        return None
    if days > config.contact_gap_critical_days and tenure <= config.contact_gap_critical_window:
        return CausalFactor("No contact in 30+ days during critical window",
                            config.contact_gap_critical_impact, 0.7, f"Last contact {days} days ago")
    if days > config.contact_gap_general_days:
        return CausalFactor("No contact in 60+ days", config.contact_gap_general_impact, 0.55,
                            f"Last contact {days} days ago")
    if days <= config.recent_contact_days:
        return CausalFactor("Recent personal contact", config.recent_contact_impact, 0.65,
                            f"Last contact {days} days ago")
    return None


def _gym_churn_rule(ctx: MemberContext, config: ScoringConfig) -> Optional[CausalFactor]:
    churn = ctx.gym.churn_rate
    if churn > config.gym_churn_high:
        return CausalFactor("High gym-wide churn environment", config.gym_churn_high_impact, 0.5,
                            f"Gym churn {churn:.1f}%")
    if churn > config.gym_churn_elevated:
        return CausalFactor("Elevated gym-wide churn", config.gym_churn_elevated_impact, 0.4,
                            f"Gym churn {churn:.1f}%")
    return None


def _rate_rule(ctx: MemberContext, config: ScoringConfig) -> Optional[CausalFactor]:
    if ctx.rate > 0 and ctx.rate < ctx.gym.arm * config.below_rate_ratio:
        return CausalFactor("Below-average rate: possible discount or trial member",
                            config.below_rate_impact, 0.45,
                            f"${ctx.rate:.0f}/mo vs gym average ${ctx.gym.arm:.0f}")
    return None


def _cancel_window_rule(ctx: MemberContext, config: ScoringConfig) -> Optional[CausalFactor]:
    gym = ctx.gym
    if (ctx.tenure_days <= gym.median_cancel_tenure * config.cancel_window_multiplier
            and gym.early_cancel_share > config.cancel_window_early_share):
        return CausalFactor("In the tenure range where most cancellations historically occur",
                            config.cancel_window_impact, 0.6,
                            f"Median cancel tenure {gym.median_cancel_tenure:.0f} days, "
                            f"{gym.early_cancel_share * 100:.0f}% of cancels before day 90")
    return None


def _high_value_rule(ctx: MemberContext, config: ScoringConfig) -> Optional[CausalFactor]:
    if ctx.is_high_value and ctx.tenure_days > config.high_value_min_tenure:
        return CausalFactor("Established high-value member", config.high_value_impact, 0.5,
                            f"Top-quintile rate ${ctx.rate:.0f}/mo")
    return None


def _loyalty_rule(ctx: MemberContext, config: ScoringConfig) -> Optional[CausalFactor]:
    if ctx.tenure_days > config.loyalty_min_tenure:
        return CausalFactor("Long-term loyalty", config.loyalty_impact, 0.7,
                            f"Member for {ctx.tenure_days} days")
    return None


def _archetype_rule(ctx: MemberContext, config: ScoringConfig) -> Optional[CausalFactor]:
    archetype = ctx.gym.archetype
    tenure = ctx.tenure_days
    contact = ctx.last_contact_days
    stale = contact is None or contact > config.stale_outreach_days

    if archetype == "turnaround-lab":
        if tenure <= 90:
            return CausalFactor("Turnaround gym: newer members feel instability first", 0.04, 0.4, archetype)
        return CausalFactor("Turnaround gym environment", 0.02, 0.35, archetype)
    if archetype == "premium-boutique":
        if stale:
            return CausalFactor("Premium gym: members expect personal attention", 0.03, 0.4, archetype)
        if ctx.is_high_value:
            return CausalFactor("Premium member receiving attention", -0.01, 0.35, archetype)
        return None
    if archetype == "community-anchor":
        if tenure > 180:
            return CausalFactor("Established member in a community-anchored gym", -0.02, 0.45, archetype)
        if contact is None and tenure <= 60:
            return CausalFactor("New member not yet woven into a tight community", 0.02, 0.4, archetype)
        return None
    # growth-accelerator
    if tenure <= 60:
        return CausalFactor("Fast-growing gym: new members can get lost", 0.03, 0.4, archetype)
    return CausalFactor("Settled member in a growing gym", -0.01, 0.35, archetype)


def urgency_decay(tenure_days: int, last_contact_days: Optional[int], config: ScoringConfig = SCORING_CONFIG) -> float:
    """0-1 blend of onboarding-window decay and contact staleness."""
    onboarding = max(0.0, 1 - tenure_days / config.onboarding_window_days)
    if last_contact_days is None:
        staleness = 1.0
    else:
        staleness = min(1.0, last_contact_days / config.contact_stale_days)
    w = config.urgency_onboarding_weight
    return round(w * onboarding + (1 - w) * staleness, 3)


def _urgency_decay_rule(ctx: MemberContext, config: ScoringConfig) -> Optional[CausalFactor]:
    signal = urgency_decay(ctx.tenure_days, ctx.last_contact_days, config)
    if signal < config.urgency_decay_threshold:
        return None
    return CausalFactor("Urgency: early tenure with stale outreach",
                        round(config.urgency_decay_max_impact * signal, 3), 0.5,
                        f"Urgency signal {signal:.2f}")


CAUSAL_RULES = (
    _tenure_rule,
    _contact_rule,
    _gym_churn_rule,
    _rate_rule,
    _cancel_window_rule,
    _high_value_rule,
    _loyalty_rule,
    _archetype_rule,
    _urgency_decay_rule,
)


def engagement_class(probability: float, tenure_days: int, config: ScoringConfig = SCORING_CONFIG) -> str:
    if probability <= config.core_max_probability and tenure_days > config.core_min_tenure:
        return "core"
    if probability <= config.drifter_max_probability:
        return "drifter"
    if probability <= config.at_risk_max_probability:
        return "at-risk"
    return "ghost"


def expected_months_remaining(probability: float, config: ScoringConfig = SCORING_CONFIG) -> float:
    monthly = min(probability, config.monthly_probability_cap)
    return min(1 / monthly, config.expected_months_cap)


def revenue_at_risk(rate: float, probability: float, config: ScoringConfig = SCORING_CONFIG) -> float:
    months = expected_months_remaining(probability, config)
    return round(rate * min(months * probability, config.revenue_at_risk_months_cap), 2)


# ---------------------------------------------------------------------------
# Intervention decision table
# ---------------------------------------------------------------------------

def _contact_gap(ctx: MemberContext) -> bool:
    return ctx.last_contact_days is None or ctx.last_contact_days > 14


INTERVENTION_RULES: List[InterventionRule] = [
    InterventionRule(
        "ghost-new-member",
        lambda c: c.probability > 0.55 and c.tenure_days <= 30,
        InterventionTemplate(
            "onboarding-acceleration",
            "High risk of leaving before the habit forms. Book a 15-minute 1-on-1 with a coach to set "
            "specific movement goals for the first month, then check in after day 1, 7 and 14. "
            "Early skill wins create belonging.",
            "Book a 15-min 1-on-1 goal session; check in after day 1, 7, and 14",
            "immediate",
        ),
    ),
    InterventionRule(
        "ghost-high-value",
        lambda c: c.probability > 0.55 and c.is_high_value,
        InterventionTemplate(
            "personal-outreach",
            "High-value member showing disengagement. A personal call from the owner or head coach, "
            "not a text. Ask open questions and listen to what has changed.",
            "Head coach calls today; listen first, ask what's changed",
            "immediate",
        ),
    ),
    InterventionRule(
        "ghost-default",
        lambda c: c.probability > 0.55,
        InterventionTemplate(
            "win-back",
            "Likely to cancel without direct action. Reconnect through shared experience: a personal "
            "invite to a partner workout or the next community event.",
            "Personally invite to the next partner workout or upcoming event",
            "this-week",
        ),
    ),
    InterventionRule(
        "at-risk-unconnected",
        lambda c: c.probability > 0.30 and c.tenure_days <= 60 and _contact_gap(c),
        InterventionTemplate(
            "coach-connection",
            "Not yet personally connected to a coach. Assign one, and have them spend five minutes "
            "after the next class listening to what this member needs.",
            "Assign a coach; 5-min post-class conversation within 7 days",
            "this-week",
        ),
    ),
    InterventionRule(
        "at-risk-early",
        lambda c: c.probability > 0.30 and c.tenure_days <= 90,
        InterventionTemplate(
            "goal-setting",
            "Set a 90-day skill milestone: first pull-up, first Rx workout or first competition. "
            "Concrete goals make progress visible and build investment.",
            "Set 1 specific skill milestone with a target date",
            "this-week",
        ),
    ),
    InterventionRule(
        "at-risk-veteran",
        lambda c: c.probability > 0.30 and c.tenure_days > 180,
        InterventionTemplate(
            "community-integration",
            "Long-tenured member showing drift. Give them a role: new-member mentor, team captain or "
            "event organizer.",
            "Give them a role: mentor, team captain, or event organizer",
            "this-month",
        ),
    ),
    InterventionRule(
        "at-risk-default",
        lambda c: c.probability > 0.30,
        InterventionTemplate(
            "personal-outreach",
            "Direct outreach from a coach who knows this member. Ask about goals and what is or is "
            "not working.",
            "Coach texts today: 'How's training going? Anything I can help with?'",
            "this-week",
        ),
    ),
    InterventionRule(
        "drifter-anniversary",
        lambda c: c.probability > 0.15 and c.tenure_days > 365,
        InterventionTemplate(
            "milestone-celebration",
            "Celebrate the membership anniversary in class or on social media. Honoring veterans "
            "shows newer members a future worth staying for.",
            "Plan a public shout-out at the next class; post on social",
            "this-month",
        ),
    ),
    InterventionRule(
        "drifter-underpriced",
        lambda c: c.probability > 0.15 and c.rate < c.gym.arm * 0.8,
        InterventionTemplate(
            "pricing-review",
            "On a below-average rate. Before the next billing cycle, offer a higher tier with added "
            "value (open gym, specialty programming) rather than a plain price increase.",
            "Prepare value-add upgrade offer before next billing cycle",
            "this-month",
        ),
    ),
    InterventionRule(
        "drifter-default",
        lambda c: c.probability > 0.15,
        InterventionTemplate(
            "community-integration",
            "Deepen community ties through partner workouts, team competitions or social events.",
            "Pair with another member for the next partner workout",
            "this-month",
        ),
    ),
    InterventionRule(
        "core-default",
        lambda c: True,
        InterventionTemplate(
            "goal-setting",
            "Well-embedded member. Keep them growing with quarterly goal reviews and skill tracking.",
            "Schedule a quarterly goal review; track their skill progression",
            "monitor",
        ),
    ),
]


def select_intervention(ctx: MemberContext) -> InterventionTemplate:
    for rule in INTERVENTION_RULES:
        if rule.predicate(ctx):
            return rule.template
    return INTERVENTION_RULES[-1].template


# Whether an intervention type suits the member at all.
INTERVENTION_FIT: Dict[str, Callable[[MemberContext], bool]] = {
    "onboarding-acceleration": lambda c: c.tenure_days <= 60,
    "personal-outreach": lambda c: True,
    "win-back": lambda c: c.probability > 0.55,
    "coach-connection": lambda c: c.tenure_days <= 120 or c.last_contact_days is None,
    "goal-setting": lambda c: c.tenure_days <= 365,
    "community-integration": lambda c: c.tenure_days > 60,
    "milestone-celebration": lambda c: c.tenure_days > 180,
    "pricing-review": lambda c: c.rate < c.gym.arm * 0.8,
}


def _recently_tried_types(contacts: Sequence, as_of: date, config: ScoringConfig) -> set:
    cutoff = as_of - timedelta(days=config.recent_intervention_days)
    tried = set()
    for contact in contacts:
        if _as_date(contact.contacted_at) < cutoff:
            continue
        result = classify_action(getattr(contact, "note", None))
        if result.classification_type:
            tried.add(result.classification_type)
    return tried


def prioritize_interventions(
    ctx: MemberContext,
    urgency: str,
    contacts: Sequence,
    as_of: date,
    config: ScoringConfig = SCORING_CONFIG,
) -> List[InterventionCandidate]:
    tried = _recently_tried_types(contacts, as_of, config)
    stale = ctx.last_contact_days is None or ctx.last_contact_days > config.stale_outreach_days
    archetype_mult = config.archetype_intervention_multipliers.get(ctx.gym.archetype, {})
    urgency_mult = config.urgency_multipliers.get(urgency, 1.0)
    value_weight = config.high_value_weight if ctx.is_high_value else 1.0
    current_risk = revenue_at_risk(ctx.rate, ctx.probability, config)
    headroom = max(0.0, ctx.probability - config.risk_probability_floor)

    candidates = []
    for itype in INTERVENTION_TYPES:
        delta = config.intervention_base_churn_delta[itype]
        if not INTERVENTION_FIT[itype](ctx):
            delta *= config.intervention_misfit_multiplier
        delta *= archetype_mult.get(itype, 1.0)
        delta *= ctx.gym.feedback_weights.get(itype, 1.0)
        delta = round(min(delta, headroom), 4)

        confidence = config.intervention_confidence[itype]
        if itype in tried:
            confidence *= config.recent_intervention_penalty
        elif stale:
            confidence *= config.stale_outreach_boost
        confidence = round(min(confidence, config.intervention_confidence_cap), 3)

        revenue_delta = round(delta * ctx.rate * 12, 2)
        score = round(revenue_delta * confidence * urgency_mult * value_weight, 4)
        candidates.append(InterventionCandidate(
            type=itype,
            expected_churn_delta=delta,
            expected_revenue_delta=revenue_delta,
            confidence=confidence,
            urgency_multiplier=urgency_mult,
            value_weight=value_weight,
            score=score,
        ))

    # Stable tie-break on the fixed type order.
    candidates.sort(key=lambda c: -c.score)
    top = candidates[:config.prioritized_intervention_count]
    for candidate in top:
        projected = max(config.risk_probability_floor, round(ctx.probability - candidate.expected_churn_delta, 3))
        projected_risk = revenue_at_risk(ctx.rate, projected, config)
        candidate.counterfactual = Counterfactual(
            projected_churn_probability=projected,
            projected_engagement_class=engagement_class(projected, ctx.tenure_days, config),
            projected_revenue_at_risk=projected_risk,
            revenue_preserved=round(current_risk - projected_risk, 2),
        )
    return top


# ---------------------------------------------------------------------------
# Prediction
# ---------------------------------------------------------------------------

def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def predict_member(
    member,
    contacts: Sequence,
    gym: GymAggregate,
    as_of: date,
    config: ScoringConfig = SCORING_CONFIG,
) -> MemberPrediction:
    """
    Pure prediction for one active member.

    member needs id, name, email, monthly_rate and join_date; contacts are
    objects with contacted_at and an optional note.
    """
    tenure_days = max(0, (as_of - member.join_date).days)
    rate = float(member.monthly_rate or 0)
    contact_dates = [_as_date(c.contacted_at) for c in contacts]
    last_contact_days = max(0, (as_of - max(contact_dates)).days) if contact_dates else None
    is_high_value = gym.high_value_threshold > 0 and rate >= gym.high_value_threshold

    ctx = MemberContext(
        tenure_days=tenure_days,
        last_contact_days=last_contact_days,
        rate=rate,
        is_high_value=is_high_value,
        gym=gym,
    )

    factors = [f for f in (rule(ctx, config) for rule in CAUSAL_RULES) if f is not None]
    raw = config.risk_base_probability + sum(f.impact for f in factors)
    probability = round(
        max(config.risk_probability_floor, min(config.risk_probability_ceiling, raw)), 3
    )
    ctx.probability = probability

    drivers = sorted((f for f in factors if f.impact > 0), key=lambda f: -f.impact)
    if drivers:
        primary = drivers[0].factor
    else:
        primary = "Early-stage member" if tenure_days <= 90 else "No significant risk signals"

    template = select_intervention(ctx)
    months = expected_months_remaining(probability, config)

    return MemberPrediction(
        member_id=str(member.id),
        name=member.name,
        email=member.email,
        monthly_rate=rate,
        tenure_days=tenure_days,
        tenure_months=int(tenure_days / 30.44),
        last_contact_days=last_contact_days,
        is_high_value=is_high_value,
        churn_probability=probability,
        engagement_class=engagement_class(probability, tenure_days, config),
        causal_factors=sorted(factors, key=lambda f: -abs(f.impact)),
        primary_risk_driver=primary,
        expected_ltv_remaining=round(rate * months, 2),
        revenue_at_risk=revenue_at_risk(rate, probability, config),
        intervention_type=template.type,
        intervention_detail=template.detail,
        intervention_micro_guidance=template.micro_guidance,
        intervention_urgency=template.urgency,
        prioritized_interventions=prioritize_interventions(ctx, template.urgency, contacts, as_of, config),
    )


def predict_members(
    members: Sequence,
    contacts_by_member: Dict[str, Sequence],
    gym: GymAggregate,
    as_of: date,
) -> List[MemberPrediction]:
    predictions = [
        predict_member(m, contacts_by_member.get(str(m.id), []), gym, as_of)
        for m in members
    ]
    predictions.sort(key=lambda p: -p.churn_probability)
    return predictions


def summarize_predictions(predictions: Sequence[MemberPrediction]) -> PredictionSummary:
    breakdown = {"core": 0, "drifter": 0, "at-risk": 0, "ghost": 0}
    at_risk = 0
    revenue = 0.0
    ltv = 0.0
    urgent = 0
    drivers: Counter = Counter()

    for p in predictions:
        breakdown[p.engagement_class] += 1
        if p.engagement_class in ("at-risk", "ghost"):
            at_risk += 1
            revenue += p.monthly_rate
            ltv += p.expected_ltv_remaining
        if p.intervention_urgency in ("immediate", "this-week"):
            urgent += 1
        if p.engagement_class != "core" and any(f.impact > 0 for f in p.causal_factors):
            drivers[p.primary_risk_driver] += 1

    avg = sum(p.churn_probability for p in predictions) / len(predictions) if predictions else 0.0
    top = drivers.most_common(1)
    return PredictionSummary(
        total_at_risk=at_risk,
        total_revenue_at_risk=round(revenue),
        total_ltv_at_risk=round(ltv),
        avg_churn_probability=round(avg, 3),
        class_breakdown=breakdown,
        urgent_interventions=urgent,
        top_risk_driver=top[0][0] if top else "No significant risk drivers",
    )

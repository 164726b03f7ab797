"""
Strategic Brief Generator

Turns member predictions, cohort survival, the revenue scenario and metric
history into a ranked list of gym-wide recommendations.

The library holds thirteen templates in four pillars (Retention,
Acquisition, Community Depth, Coaching Quality). Each template has a
trigger and one of three impact formulas:

    retention      members_affected x ARM x months_remaining x lift
    acquisition    expected_new_members x ARM x 6
    arm expansion  participating_members x arm_increase x 6

    score = revenue_impact x confidence x urgency x learned_weight

urgency comes from the 3-month churn trend per pillar, with the Open season
boosting community events. Priority labels are relative: they depend on where
a score falls against the 25th and 50th percentile of this cycle's scores.
"""
from __future__ import annotations

import statistics
from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence

from core.scoring_config import SCORING_CONFIG, ScoringConfig
from services.cohort_analysis import CohortIntelligence, cohort_alert
from services.member_risk import MemberPrediction, PredictionSummary
from services.retention_scores import churn_trend
from services.revenue_scenario import RevenueScenario
from services.scope_rules import ScopeContext, remove_blocked_topic_content

MAX_RECOMMENDATIONS = 3
MAX_MEMBER_ALERTS = 5
ARM_TARGET = 150.0
SEMINAR_ARM_INCREASE = 40.0


# ---------------------------------------------------------------------------
# Impact formulas
# ---------------------------------------------------------------------------

def retention_impact(members_affected: float, arm: float, months_remaining: float, lift: float) -> float:
    return members_affected * arm * months_remaining * lift


def acquisition_impact(expected_new_members: float, arm: float) -> float:
    return expected_new_members * arm * 6


def arm_expansion_impact(participating_members: float, arm_increase: float) -> float:
    return participating_members * arm_increase * 6


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------

@dataclass
class BriefContext:
    predictions: Sequence[MemberPrediction]
    summary: PredictionSummary
    cohort: CohortIntelligence
    scenario: RevenueScenario
    metrics_history: Sequence
    churn_rate: float
    arm: float
    active_count: int
    as_of: date
    trend: str
    open_season: bool
    avg_net_growth: float
    new_member_rate: float
    latest_mrr: float
    latest_rsi: int

    def count(self, predicate: Callable[[MemberPrediction], bool]) -> int:
        return sum(1 for p in self.predictions if predicate(p))

    @property
    def early_drift(self) -> int:
        return self.count(lambda p: p.tenure_days <= 90 and p.engagement_class != "core")

    @property
    def drifters(self) -> int:
        return self.count(lambda p: p.engagement_class == "drifter")

    @property
    def veterans(self) -> int:
        return self.count(lambda p: p.tenure_days > 180)

    @property
    def year_plus(self) -> int:
        return self.count(lambda p: p.tenure_days > 365)

    @property
    def newcomers(self) -> int:
        return self.count(lambda p: p.tenure_days <= 90)

    def window_loss(self, label: str):
        window = self.cohort.window(label)
        return (window.lost_count, window.lost_pct) if window else (0, 0.0)


def build_context(
    predictions: Sequence[MemberPrediction],
    summary: PredictionSummary,
    cohort: CohortIntelligence,
    scenario: RevenueScenario,
    metrics_history: Sequence,
    churn_rate: float,
    arm: float,
    active_count: int,
    as_of: date,
    config: ScoringConfig = SCORING_CONFIG,
) -> BriefContext:
    history = list(metrics_history)
    recent = history[-3:]
    latest = history[-1] if history else None
    avg_net = (
        sum(int(m.new_members) - int(m.cancels) for m in recent) / len(recent) if recent else 0.0
    )
    if latest is not None and int(latest.active_start_of_month) > 0:
        new_rate = int(latest.new_members) / int(latest.active_start_of_month)
    else:
        new_rate = 0.0

    return BriefContext(
        predictions=predictions,
        summary=summary,
        cohort=cohort,
        scenario=scenario,
        metrics_history=history,
        churn_rate=float(churn_rate),
        arm=float(arm),
        active_count=active_count,
        as_of=as_of,
        trend=churn_trend([float(m.churn_rate) for m in recent]),
        open_season=as_of.month in config.open_season_months,
        avg_net_growth=avg_net,
        new_member_rate=new_rate,
        latest_mrr=float(latest.mrr) if latest is not None else active_count * float(arm),
        latest_rsi=int(latest.rsi) if latest is not None else 0,
    )


# ---------------------------------------------------------------------------
# Template library
# ---------------------------------------------------------------------------

@dataclass
class BriefTemplate:
    id: str
    pillar: str
    intervention_type: str
    trigger: Callable[[BriefContext], bool]
    impact: Callable[[BriefContext], float]
    headline: Callable[[BriefContext], str]
    detail: str
    timeframe: str
    checklist: List[str]
    supporting: List[str] = field(default_factory=list)


def _at_least_one(value: float) -> int:
    return max(1, round(value))


TEMPLATES: List[BriefTemplate] = [
    # -- Retention ---------------------------------------------------------
    BriefTemplate(
        id="early-onboarding-rescue",
        pillar="Retention",
        intervention_type="onboarding-acceleration",
        trigger=lambda c: c.early_drift >= 1 and (
            c.summary.total_at_risk > 0 or c.window_loss("0-30 days")[1] > 15
        ),
        impact=lambda c: retention_impact(c.early_drift, c.arm, 6, 0.30),
        headline=lambda c: f"{c.early_drift} newer members are drifting inside the first 90 days",
        detail=(
            "The first month decides whether a member stays. Run a structured 4-week foundations path: "
            "movement basics and a coach introduction in week 1, a first benchmark workout in week 2, "
            "a partner workout in week 3 and a goal-setting session in week 4."
        ),
        timeframe="Implement within 2 weeks",
        checklist=[
            "Assign a dedicated coach to every new member within 24 hours of signup",
            "Schedule a 1-on-1 intro session in their first week",
            "Set 3 movement-based milestones for their first 30 days",
            "Pair them with a buddy member by their 3rd class",
            "Coach check-in after their 1st, 7th, and 14th day",
            "Track first benchmark workout completion in week 2",
        ],
        supporting=[
            "Members need to feel competent, connected and challenged.",
            "Do not lead with pricing offers to keep them.",
        ],
    ),
    BriefTemplate(
        id="belonging-gap-milestones",
        pillar="Retention",
        intervention_type="goal-setting",
        trigger=lambda c: c.window_loss("31-60 days")[0] > 0 and c.window_loss("31-60 days")[1] > 15,
        impact=lambda c: retention_impact(c.window_loss("31-60 days")[0], c.arm, 8, 0.25),
        headline=lambda c: f"{c.window_loss('31-60 days')[0]} members lost between days 31-60: the belonging gap",
        detail=(
            "Members survive the first weeks but leave before building community. Give every new member "
            "90-day skill milestones such as a first pull-up, a first Rx workout or a first competition."
        ),
        timeframe="Launch within 1 month",
        checklist=[
            "Define 3 skill milestones for each new member",
            "Assign a coach to track milestone progress per member",
            "Set a 30/60/90-day check-in schedule with each member",
            "Track first Rx workout completion",
            "Celebrate milestone achievements publicly in class",
            "Log milestone progress in member notes",
        ],
        supporting=["Visible progress creates emotional investment."],
    ),
    BriefTemplate(
        id="at-risk-outreach-sprint",
        pillar="Retention",
        intervention_type="personal-outreach",
        trigger=lambda c: c.summary.total_at_risk >= 1,
        impact=lambda c: retention_impact(c.summary.total_at_risk, c.arm, 6, 0.30),
        headline=lambda c: f"Personal outreach to {c.summary.total_at_risk} at-risk members this week",
        detail=(
            "Each at-risk member has a specific reason for drifting. A genuine conversation where you "
            "listen more than you talk is the highest-return retention tool."
        ),
        timeframe="This week",
        checklist=[
            "Pull the at-risk member list",
            "Assign each at-risk member to a specific coach",
            "Text or call each at-risk member within 48 hours",
            "Ask one open-ended question: 'What can we do better for you?'",
            "Log every contact so outreach coverage is tracked",
        ],
        supporting=[
            "Recently contacted members are measurably less likely to cancel.",
            "Skip the upsell conversation during outreach.",
        ],
    ),
    BriefTemplate(
        id="churn-system-overhaul",
        pillar="Retention",
        intervention_type="win-back",
        trigger=lambda c: c.churn_rate > 7,
        impact=lambda c: retention_impact(
            _at_least_one(c.active_count * (c.churn_rate - 5) / 100), c.arm, 12, 0.5
        ),
        headline=lambda c: f"Churn at {c.churn_rate:.1f}% needs a retention system, not one-off saves",
        detail=(
            "High churn usually comes from weak onboarding, inconsistent coaching or a culture where "
            "members work out but never connect. Start by hearing from the people who left."
        ),
        timeframe="Begin assessment this week",
        checklist=[
            "Call every member who cancelled in the last 60 days and ask what could have been different",
            "Check that every new member gets a personal coach introduction",
            "Identify members with no logged contacts and schedule outreach",
            "Hold a save conversation before processing any cancellation",
            "Run a weekly churn review with coaching staff",
        ],
    ),
    # -- Acquisition -------------------------------------------------------
    BriefTemplate(
        id="referral-program",
        pillar="Acquisition",
        intervention_type="community-integration",
        trigger=lambda c: c.avg_net_growth <= 0 and c.churn_rate <= 5,
        impact=lambda c: acquisition_impact(_at_least_one(c.active_count * 0.05), c.arm),
        headline=lambda c: "Retention is strong but growth is flat: launch a referral program",
        detail=(
            "New members are likely to stick at this churn level, which makes referrals the cheapest "
            "growth available. Reward members who bring someone who signs up."
        ),
        timeframe="Launch within 2 weeks",
        checklist=[
            "Create a referral reward such as a free month or gear credit",
            "Announce the program in class and by email",
            "Track referral source for every new signup",
            "Thank referring members publicly",
        ],
        supporting=["Social proof from current members converts better than ads."],
    ),
    BriefTemplate(
        id="bring-a-friend-week",
        pillar="Acquisition",
        intervention_type="community-integration",
        trigger=lambda c: c.new_member_rate < 0.05,
        impact=lambda c: acquisition_impact(_at_least_one(c.active_count * 0.03), c.arm),
        headline=lambda c: "New signups are below 5% of the roster: run a bring-a-friend week",
        detail=(
            "Every member invites one guest to a scaled class, followed by a personal invitation "
            "to a free intro session."
        ),
        timeframe="Schedule within 3 weeks",
        checklist=[
            "Pick a week and announce it two weeks ahead",
            "Scale every class in that week for first-timers",
            "Collect guest contact details at the door",
            "Follow up with every guest within 48 hours",
        ],
    ),
    BriefTemplate(
        id="open-season-guest-funnel",
        pillar="Acquisition",
        intervention_type="community-integration",
        trigger=lambda c: c.open_season,
        impact=lambda c: acquisition_impact(_at_least_one(c.active_count * 0.04), c.arm),
        headline=lambda c: "Turn Open season into a guest funnel",
        detail=(
            "Invite non-members to watch or try a scaled version of each Open workout, then offer "
            "a foundations spot to every guest who attends."
        ),
        timeframe="Set up before the next Open workout",
        checklist=[
            "Invite non-members to watch or try a scaled Open workout",
            "Post member Open stories and results on social media",
            "Offer attending guests a foundations spot",
            "Track which guests sign up after the Open",
        ],
    ),
    # -- Community Depth ---------------------------------------------------
    BriefTemplate(
        id="community-event-series",
        pillar="Community Depth",
        intervention_type="community-integration",
        trigger=lambda c: c.open_season or c.avg_net_growth <= 0 or c.drifters >= 3,
        impact=lambda c: retention_impact(max(c.drifters, 1), c.arm, 6, 0.20),
        headline=lambda c: (
            "Make the Open a gym-wide event: Friday Night Lights and intramural teams"
            if c.open_season else
            "Community events build the belonging no discount can replace"
        ),
        detail=(
            "Shared physical experience turns attendance into belonging. Partner workouts, team "
            "competitions and social events give members friendships that keep them."
        ),
        timeframe="Schedule monthly community events",
        checklist=[
            "Schedule one community event per month",
            "Organize a quarterly in-house competition with teams",
            "Invite drifting members personally",
            "Celebrate participation and effort, not just performance",
        ],
        supporting=["Members with three or more gym friendships retain at much higher rates."],
    ),
    BriefTemplate(
        id="veteran-mentor-roles",
        pillar="Community Depth",
        intervention_type="community-integration",
        trigger=lambda c: c.veterans >= 3 and c.newcomers >= 2,
        impact=lambda c: retention_impact(c.newcomers, c.arm, 6, 0.15),
        headline=lambda c: f"Pair {c.newcomers} newer members with veteran mentors",
        detail=(
            "Long-tenured members carry the culture. A defined mentor role gives them purpose and "
            "gives newcomers a friend on day one."
        ),
        timeframe="Set up pairings within 2 weeks",
        checklist=[
            "Identify 3-5 long-tenured members willing to mentor",
            "Pair each newcomer with a mentor",
            "Ask mentors to attend one class with their newcomer each week",
            "Check in with mentors monthly",
        ],
    ),
    BriefTemplate(
        id="milestone-celebrations",
        pillar="Community Depth",
        intervention_type="milestone-celebration",
        trigger=lambda c: c.year_plus >= 3,
        impact=lambda c: retention_impact(c.year_plus, c.arm, 12, 0.05),
        headline=lambda c: f"Celebrate the {c.year_plus} members past their first year",
        detail=(
            "Public anniversaries show newer members a future worth staying for and tell veterans "
            "they matter."
        ),
        timeframe="Start this month",
        checklist=[
            "Celebrate membership anniversaries publicly at 6 months, 1 year and 2 years",
            "Create a member spotlight routine",
            "Post anniversary shout-outs on social media",
        ],
    ),
    BriefTemplate(
        id="specialty-seminar-series",
        pillar="Community Depth",
        intervention_type="pricing-review",
        trigger=lambda c: c.arm < ARM_TARGET,
        impact=lambda c: arm_expansion_impact(_at_least_one(c.active_count * 0.15), SEMINAR_ARM_INCREASE),
        headline=lambda c: f"Specialty seminars can lift revenue per member from ${c.arm:.0f}",
        detail=(
            "Weightlifting clinics, gymnastics skill sessions and mobility workshops give members a "
            "new goal and add revenue without changing core membership rates."
        ),
        timeframe="Pilot within 1 month",
        checklist=[
            "Survey members on which seminar they would value most",
            "Run one paid seminar as a pilot",
            "Measure uptake and revenue per participant",
            "Schedule a quarterly seminar calendar",
        ],
    ),
    # -- Coaching Quality --------------------------------------------------
    BriefTemplate(
        id="coaching-development",
        pillar="Coaching Quality",
        intervention_type="coach-connection",
        trigger=lambda c: c.active_count >= 10,
        impact=lambda c: retention_impact(c.active_count, c.arm, 6, 0.02),
        headline=lambda c: "Invest in your coaching team: they deliver your culture",
        detail=(
            "Great coaches connect with athletes individually. Train awareness, build trust by "
            "listening, and coach the positive."
        ),
        timeframe="Start monthly coaching development meetings within 2 weeks",
        checklist=[
            "Hold a monthly coaching meeting focused on one coaching skill",
            "Shadow each coach once per month and give specific feedback",
            "Every coach spends 5 minutes after class with a newer member",
            "Replace 'don't' cues with action cues in every class",
        ],
        supporting=["Members stay for coaches who see them as individuals."],
    ),
    BriefTemplate(
        id="culture-standards",
        pillar="Coaching Quality",
        intervention_type="coach-connection",
        trigger=lambda c: c.churn_rate > 5 or c.active_count < 30,
        impact=lambda c: retention_impact(c.active_count, c.arm, 6, 0.015),
        headline=lambda c: "Define, teach and protect your gym's standards",
        detail=(
            "Culture is built through standards that every coach teaches the same way. Write down "
            "your etiquette and non-negotiables so every class feels like the same gym."
        ),
        timeframe="Complete a culture document within 1 month",
        checklist=[
            "Write down your non-negotiable movement standards",
            "Define gym etiquette: on-time policy, phone policy, equipment breakdown",
            "Create a dos and don'ts list for coaches",
            "Review and reinforce standards weekly in coaching meetings",
        ],
    ),
]


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

@dataclass
class BriefRecommendation:
    template_id: str
    pillar: str
    intervention_type: str
    priority: str
    headline: str
    detail: str
    revenue_impact: float
    revenue_impact_text: str
    confidence: float
    urgency: float
    learned_weight: float
    score: float
    timeframe: str
    execution_checklist: List[str]


@dataclass
class MemberAlert:
    member_id: str
    name: str
    probability: int
    driver: str
    intervention: str
    revenue: str
    tenure_days: int
    last_contact_days: Optional[int]
    outreach_logged: bool
    suggested_action: str
    engagement_class: str


@dataclass
class StrategicBrief:
    generated_at: str
    churn_trend: str
    executive_summary: str
    stability_verdict: str
    stability_level: str
    key_metrics: List[dict]
    recommendations: List[BriefRecommendation]
    focus_recommendation: Optional[BriefRecommendation]
    cohort_alert: Optional[str]
    revenue_outlook: str
    revenue_comparison: dict
    member_alerts: List[MemberAlert]
    roi_projection: dict

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

def urgency_factor(template: BriefTemplate, ctx: BriefContext, config: ScoringConfig = SCORING_CONFIG) -> float:
    urgency = config.trend_urgency.get(ctx.trend, {}).get(template.pillar, 1.0)
    if template.id == "community-event-series" and ctx.open_season:
        urgency *= config.open_season_community_urgency
    return round(urgency, 3)


def assign_priorities(recommendations: List[BriefRecommendation]) -> None:
    """Label in place by position against this cycle's 25th/50th percentile."""
    scores = [r.score for r in recommendations]
    if not scores:
        return
    if len(scores) >= 2:
        p25, p50, _ = statistics.quantiles(scores, n=4, method="inclusive")
    else:
        p25 = p50 = scores[0]

    for index, rec in enumerate(recommendations):
        if index == 0 and rec.score >= p50:
            rec.priority = "critical"
        elif rec.score >= p50:
            rec.priority = "high"
        elif rec.score >= p25:
            rec.priority = "medium"
        else:
            rec.priority = "low"


def rank_recommendations(
    ctx: BriefContext,
    feedback_weights: Optional[Dict[str, float]] = None,
    config: ScoringConfig = SCORING_CONFIG,
) -> List[BriefRecommendation]:
    feedback_weights = feedback_weights or {}
    ranked = []
    for template in TEMPLATES:
        if not template.trigger(ctx):
            continue
        impact = round(template.impact(ctx), 2)
        confidence = config.brief_template_confidence[template.id]
        urgency = urgency_factor(template, ctx, config)
        weight = feedback_weights.get(template.intervention_type, 1.0)
        headline = template.headline(ctx)

        scope = ScopeContext(category=template.pillar, headline=headline,
                             intervention_type=template.intervention_type)
        extra = remove_blocked_topic_content(" ".join(template.supporting), scope)
        detail = f"{template.detail} {extra}".strip()

        ranked.append(BriefRecommendation(
            template_id=template.id,
            pillar=template.pillar,
            intervention_type=template.intervention_type,
            priority="low",
            headline=headline,
            detail=detail,
            revenue_impact=impact,
            revenue_impact_text=f"~${round(impact):,} projected over the impact horizon",
            confidence=confidence,
            urgency=urgency,
            learned_weight=round(weight, 3),
            score=round(impact * confidence * urgency * weight, 2),
            timeframe=template.timeframe,
            execution_checklist=list(template.checklist),
        ))

    # Stable sort keeps library order among equal scores.
    ranked.sort(key=lambda r: -r.score)
    assign_priorities(ranked)
    return ranked


# ---------------------------------------------------------------------------
# Brief sections
# ---------------------------------------------------------------------------

def _status(value: float, good: Callable[[float], bool], warning: Callable[[float], bool]) -> str:
    if good(value):
        return "good"
    if warning(value):
        return "warning"
    return "critical"


def key_metrics(ctx: BriefContext) -> List[dict]:
    at_risk = ctx.summary.total_at_risk
    revenue_at_risk = ctx.summary.total_revenue_at_risk
    return [
        {"label": "Active Members", "value": str(ctx.active_count),
         "status": _status(ctx.active_count, lambda v: v > 50, lambda v: v > 20)},
        {"label": "Monthly Churn", "value": f"{ctx.churn_rate:.1f}%",
         "status": _status(ctx.churn_rate, lambda v: v <= 5, lambda v: v <= 7)},
        {"label": "Revenue/Member", "value": f"${ctx.arm:.0f}",
         "status": _status(ctx.arm, lambda v: v >= 150, lambda v: v >= 100)},
        {"label": "RSI", "value": f"{ctx.latest_rsi}/100",
         "status": _status(ctx.latest_rsi, lambda v: v >= 80, lambda v: v >= 60)},
        {"label": "At-Risk Members", "value": str(at_risk),
         "status": _status(at_risk, lambda v: v == 0, lambda v: v <= 3)},
        {"label": "Revenue at Risk", "value": f"${revenue_at_risk:,.0f}/mo",
         "status": _status(revenue_at_risk, lambda v: v == 0, lambda v: v < ctx.latest_mrr * 0.1)},
    ]


def stability_verdict(ctx: BriefContext) -> tuple:
    if ctx.latest_rsi >= 80 and ctx.churn_rate <= 5:
        return "strong", (
            "Your gym is in a strong position. Retention is working and revenue is predictable. "
            "Keep deepening it rather than coasting."
        )
    if ctx.latest_rsi >= 60 and ctx.churn_rate <= 7:
        return "moderate", (
            "Your gym is functional but not fortified. One bad month could expose the cracks; "
            "strengthen now while you have margin."
        )
    return "fragile", (
        "Your gym is in a tough spot. Retention is leaking and the membership base is not building "
        "loyalty. Start with the fundamentals and connect individually with your members."
    )


def executive_summary(ctx: BriefContext) -> str:
    summary = ctx.summary
    if summary.total_at_risk == 0:
        return (
            f"All {ctx.active_count} active members are in good shape. No immediate risk. "
            "Focus on community and referrals."
        )
    follow_up = (
        f"{summary.urgent_interventions} need action this week."
        if summary.urgent_interventions > 0 else
        "All can be addressed through structured outreach this month."
    )
    return (
        f"{summary.total_at_risk} of {ctx.active_count} members are showing signs they might leave, "
        f"putting ${summary.total_revenue_at_risk:,.0f}/month "
        f"(${summary.total_revenue_at_risk * 12:,.0f}/year) at risk. {follow_up} "
        f"The most common issue: {summary.top_risk_driver}."
    )


def revenue_outlook(ctx: BriefContext) -> str:
    scenario = ctx.scenario
    if ctx.latest_mrr <= 0:
        return "Not enough revenue history to project an outlook yet."
    delta = (scenario.expected_mrr - ctx.latest_mrr) / ctx.latest_mrr * 100
    if delta > 5:
        return (
            f"Revenue is on track to grow {delta:.1f}% over the next 6 months to "
            f"${scenario.expected_mrr:,}/mo, with upside to ${scenario.upside_mrr:,}/mo if retention holds."
        )
    if delta > -3:
        return (
            f"Revenue should hold near ${scenario.expected_mrr:,}/mo: stable but not growing. "
            f"The upside case (${scenario.upside_mrr:,}/mo) shows what is being left on the table."
        )
    return (
        f"Revenue is headed down, projected to drop {abs(delta):.1f}% to ${scenario.expected_mrr:,}/mo. "
        f"If things get worse it could hit ${scenario.worst_case_mrr:,}/mo."
    )


def revenue_comparison(ctx: BriefContext) -> dict:
    scenario = ctx.scenario
    current = ctx.latest_mrr

    def pct(value: float) -> float:
        return round((value - current) / current * 100, 1) if current > 0 else 0.0

    return {
        "current_mrr": round(current, 2),
        "expected_mrr": scenario.expected_mrr,
        "upside_mrr": scenario.upside_mrr,
        "downside_mrr": scenario.worst_case_mrr,
        "expected_delta_pct": pct(scenario.expected_mrr),
        "upside_delta_pct": pct(scenario.upside_mrr),
        "downside_delta_pct": pct(scenario.worst_case_mrr),
    }


def suggested_action(prediction: MemberPrediction) -> str:
    contact = prediction.last_contact_days
    tenure = prediction.tenure_days
    if contact is None and tenure <= 60:
        return "Text + personal goal check-in"
    if contact is None:
        return "Personal call from head coach"
    if contact > 30:
        return "Text check-in + invite to partner workout"
    if tenure <= 30:
        return "1-on-1 intro session with assigned coach"
    if tenure <= 90:
        return "Set a 90-day skill milestone together"
    return "Community re-engagement (invite to event or competition)"


def member_alerts(predictions: Sequence[MemberPrediction]) -> List[MemberAlert]:
    alerts = []
    for p in predictions:
        if p.churn_probability <= 0.25:
            continue
        alerts.append(MemberAlert(
            member_id=p.member_id,
            name=p.name,
            probability=round(p.churn_probability * 100),
            driver=p.primary_risk_driver,
            intervention=p.intervention_detail,
            revenue=f"${p.monthly_rate:g}/mo",
            tenure_days=p.tenure_days,
            last_contact_days=p.last_contact_days,
            outreach_logged=p.last_contact_days is not None,
            suggested_action=suggested_action(p),
            engagement_class=p.engagement_class,
        ))
        if len(alerts) == MAX_MEMBER_ALERTS:
            break
    return alerts


def roi_projection(ctx: BriefContext, config: ScoringConfig = SCORING_CONFIG) -> dict:
    retainable = ctx.count(
        lambda p: config.roi_min_probability < p.churn_probability < config.roi_max_probability
    )
    retained = round(retainable * config.roi_success_rate)
    preserved = retained * ctx.arm
    return {
        "action_taken": f"Personal outreach to {retainable} at-risk members",
        "members_retained": retained,
        "revenue_preserved": round(preserved),
        "annual_impact": round(preserved * 12),
    }


def generate_strategic_brief(
    predictions: Sequence[MemberPrediction],
    summary: PredictionSummary,
    cohort: CohortIntelligence,
    scenario: RevenueScenario,
    metrics_history: Sequence,
    churn_rate: float,
    arm: float,
    active_count: int,
    as_of: date,
    feedback_weights: Optional[Dict[str, float]] = None,
) -> StrategicBrief:
    ctx = build_context(
        predictions, summary, cohort, scenario, metrics_history,
        churn_rate, arm, active_count, as_of,
    )
    ranked = rank_recommendations(ctx, feedback_weights)
    level, verdict = stability_verdict(ctx)
    top = ranked[:MAX_RECOMMENDATIONS]

    return StrategicBrief(
        generated_at=as_of.isoformat(),
        churn_trend=ctx.trend,
        executive_summary=executive_summary(ctx),
        stability_verdict=verdict,
        stability_level=level,
        key_metrics=key_metrics(ctx),
        recommendations=top,
        focus_recommendation=top[0] if top else None,
        cohort_alert=cohort_alert(cohort),
        revenue_outlook=revenue_outlook(ctx),
        revenue_comparison=revenue_comparison(ctx),
        member_alerts=member_alerts(predictions),
        roi_projection=roi_projection(ctx),
    )

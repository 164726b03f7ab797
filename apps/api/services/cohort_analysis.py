"""
Cohort survival analysis.

Buckets every member (active and cancelled) by join month, measures where
cancelled members were lost in their tenure, and builds a survival curve
at fixed day marks. Pure functions over member-like objects.
"""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Dict, List, Optional, Sequence

from core.scoring_config import SCORING_CONFIG
from services.gym_metrics import is_active_as_of

SURVIVAL_DAY_MARKS = (0, 7, 14, 30, 60, 90, 120, 180, 270, 365, 545, 730)

# (label, min days, max days) inclusive; None means unbounded.
RETENTION_WINDOWS = (
    ("0-30 days", 0, 30),
    ("31-60 days", 31, 60),
    ("61-90 days", 61, 90),
    ("91-180 days", 91, 180),
    ("181-365 days", 181, 365),
    ("365+ days", 366, None),
)

WINDOW_INSIGHTS = {
    "0-30 days": (
        "Members who leave in the first month never formed the habit. They felt the intensity "
        "but did not find their people. Structured onboarding with personal introductions, "
        "scaled workouts and post-class check-ins prevents this."
    ),
    "31-60 days": (
        "Initial excitement fades between day 30 and 60. Members need a tangible goal that "
        "moves them from trying the workouts to belonging: a skill to chase, a PR, a first Rx workout."
    ),
    "61-90 days": (
        "Members leaving at 60-90 days got past the first hurdle but never crossed the belonging "
        "threshold. They need a role, not just attendance: partner workouts, team competitions, mentoring."
    ),
    "91-180 days": (
        "Members who leave between months 3 and 6 often hit a plateau. Check that every coach "
        "delivers the same standard and connects with athletes individually."
    ),
    "181-365 days": (
        "Losses in the 6-12 month range are significant. They often follow coaching changes or "
        "cultural drift. Review whether standards have slipped or the experience has changed."
    ),
    "365+ days": (
        "Long-tenured members who leave are culture carriers. Losing them points to systemic "
        "issues such as pricing pressure, coaching turnover or a change in what the gym stands for."
    ),
}

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

# Month indices (1-12) for seasonal notes.
STRONG_JOIN_MONTHS = (1, 2, 9, 10)
WEAK_JOIN_MONTHS = (6, 7, 12)

SEASONAL_NOTES = (
    ((1, 4), "The Open (Feb-March) is the biggest retention and growth window. Run Friday Night Lights, "
             "form intramural teams and invite non-members to watch or try a workout."),
    ((4, 6), "Spring suits specialty seminars: weightlifting clinics, gymnastics skill sessions or "
             "mobility workshops give drifting members a new goal."),
    ((6, 8), "Summer brings travel and schedule disruption. Holiday partner workouts and outdoor "
             "events create moments members do not want to miss."),
    ((9, 10), "Fall is the second-best acquisition window after January. A 6-week nutrition challenge "
              "or a foundations series gives returning members structure."),
    ((11, 12), "The holiday season carries cancellation risk. A year-end goal-setting event or themed "
               "workout series keeps members engaged until January."),
)

STANDING_NOTES = (
    "Events are the highest-leverage retention tool. Rotate mobility clinics, nutrition challenges, "
    "skill seminars, bring-a-friend days and internal competitions, at least one per month.",
    "Coaching consistency drives retention. Every class should feel like the same gym no matter "
    "who is coaching; invest in coach development, shadowing and regular feedback.",
)


@dataclass
class CohortBucket:
    cohort_label: str
    cohort_month: str
    total_joined: int
    still_active: int
    survival_rate: float
    avg_tenure_days: int
    avg_monthly_rate: float
    revenue_retained: int
    revenue_lost: int


@dataclass
class RetentionWindow:
    window: str
    lost_count: int
    lost_pct: float
    avg_rate: float
    revenue_lost: int
    insight: str


@dataclass
class SurvivalPoint:
    days: int
    survival_rate: float


@dataclass
class CohortIntelligence:
    cohorts: List[CohortBucket] = field(default_factory=list)
    retention_windows: List[RetentionWindow] = field(default_factory=list)
    survival_curve: List[SurvivalPoint] = field(default_factory=list)
    insights: List[str] = field(default_factory=list)
    coaching_insights: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)

    def window(self, label: str) -> Optional[RetentionWindow]:
        return next((w for w in self.retention_windows if w.window == label), None)


def _rate(member) -> float:
    return float(member.monthly_rate or 0)


def _cancel_tenure(member) -> int:
    return (member.cancel_date - member.join_date).days


def _is_cancelled(member, as_of: date) -> bool:
    return member.cancel_date is not None and member.cancel_date <= as_of


def build_cohorts(members: Sequence, as_of: date) -> List[CohortBucket]:
    groups: Dict[str, list] = OrderedDict()
    for m in sorted(members, key=lambda m: m.join_date):
        groups.setdefault(m.join_date.strftime("%Y-%m"), []).append(m)

    cohorts = []
    for key, group in groups.items():
        active = [m for m in group if is_active_as_of(m, as_of)]
        total_rate = sum(_rate(m) for m in group)
        active_rate = sum(_rate(m) for m in active)
        avg_days = (
            sum((as_of - m.join_date).days for m in active) / len(active) if active else 0
        )
        cohorts.append(CohortBucket(
            cohort_label=group[0].join_date.strftime("%b %Y"),
            cohort_month=key,
            total_joined=len(group),
            still_active=len(active),
            survival_rate=round(len(active) / len(group) * 100, 1),
            avg_tenure_days=round(avg_days),
            avg_monthly_rate=float(round(total_rate / len(group))),
            revenue_retained=round(active_rate),
            revenue_lost=round(total_rate - active_rate),
        ))
    return cohorts


def build_retention_windows(cancelled: Sequence) -> List[RetentionWindow]:
    windows = []
    for label, low, high in RETENTION_WINDOWS:
        hits = [
            m for m in cancelled
            if _cancel_tenure(m) >= low and (high is None or _cancel_tenure(m) <= high)
        ]
        lost = sum(_rate(m) for m in hits)
        windows.append(RetentionWindow(
            window=label,
            lost_count=len(hits),
            lost_pct=round(len(hits) / len(cancelled) * 100, 1) if cancelled else 0.0,
            avg_rate=float(round(lost / len(hits))) if hits else 0.0,
            revenue_lost=round(lost),
            insight=WINDOW_INSIGHTS[label],
        ))
    return windows


def build_survival_curve(members: Sequence, as_of: date) -> List[SurvivalPoint]:
    """Share of all-time members still active, or whose tenure passed each mark."""
    if not members:
        return []
    curve = []
    for mark in SURVIVAL_DAY_MARKS:
        survived = sum(
            1 for m in members
            if is_active_as_of(m, as_of)
            or (_is_cancelled(m, as_of) and _cancel_tenure(m) > mark)
        )
        curve.append(SurvivalPoint(days=mark, survival_rate=round(survived / len(members) * 100, 1)))
    return curve


def _survival_at(curve: List[SurvivalPoint], days: int) -> float:
    return next((p.survival_rate for p in curve if p.days == days), 100.0)


def compute_cohort_intelligence(members: Sequence, as_of: date) -> CohortIntelligence:
    cancelled = [m for m in members if _is_cancelled(m, as_of)]
    result = CohortIntelligence(
        cohorts=build_cohorts(members, as_of),
        retention_windows=build_retention_windows(cancelled),
        survival_curve=build_survival_curve(members, as_of),
    )

    if cancelled:
        before_90 = sum(1 for m in cancelled if _cancel_tenure(m) <= 90)
        pct = before_90 / len(cancelled) * 100
        result.insights.append(f"{pct:.0f}% of all cancellations happen within the first 90 days.")
        if pct > 50:
            result.insights.append(
                "More than half of member losses occur before the 90-day mark. "
                "Onboarding is the highest-leverage investment you can make."
            )
            result.coaching_insights.append(
                "The first 90 days decide whether someone becomes a member or a dropout. "
                "The workouts are hard enough to quit; the community has to be strong enough to stay for."
            )

    sized = [c for c in result.cohorts if c.total_joined >= SCORING_CONFIG.cohort_alert_min_joined]
    if sized:
        best = max(sized, key=lambda c: c.survival_rate)
        worst = min(sized, key=lambda c: c.survival_rate)
        if best.cohort_month != worst.cohort_month:
            result.insights.append(
                f"Best retention cohort: {best.cohort_label} ({best.survival_rate}% still active). "
                f"Worst: {worst.cohort_label} ({worst.survival_rate}% still active)."
            )
            best_month = int(best.cohort_month[5:])
            worst_month = int(worst.cohort_month[5:])
            if best_month in STRONG_JOIN_MONTHS:
                result.coaching_insights.append(
                    f"Members who join in {MONTH_NAMES[best_month - 1]} retain better. They are making "
                    "an intentional decision rather than an impulse purchase; pair that timing with "
                    "structured onboarding."
                )
            if worst_month in WEAK_JOIN_MONTHS:
                result.coaching_insights.append(
                    f"{MONTH_NAMES[worst_month - 1]} signups retain worse. Seasonal joiners often lack "
                    "long-term commitment; consider shorter initial commitments or trial periods."
                )

    curve = result.survival_curve
    if len(curve) >= 5:
        day30 = _survival_at(curve, 30)
        day90 = _survival_at(curve, 90)
        day365 = _survival_at(curve, 365)
        if day90 > 0 and day365 > 0:
            result.coaching_insights.append(
                f"Members who reach day 90 retain at {day365 / day90:.1f}x the rate through year one. "
                "Day 90 is the retention cliff: before it is onboarding, after it is community."
            )
        if day30 < 85:
            result.coaching_insights.append(
                f"You lose {100 - day30:.0f}% of members before they finish their first month. "
                "The gap between the trial experience and ongoing membership is too large."
            )

    for (first, last), note in SEASONAL_NOTES:
        if first <= as_of.month <= last:
            result.coaching_insights.append(note)
    result.coaching_insights.extend(STANDING_NOTES)
    return result


def cohort_alert(intelligence: CohortIntelligence) -> Optional[str]:
    """Flag the worst of the three most recent cohorts when survival is low."""
    config = SCORING_CONFIG
    recent = intelligence.cohorts[-3:]
    low = [
        c for c in recent
        if c.survival_rate < config.cohort_alert_survival_pct and c.total_joined >= config.cohort_alert_min_joined
    ]
    if not low:
        return None
    worst = min(low, key=lambda c: c.survival_rate)
    return (
        f"The {worst.cohort_label} cohort is underperforming: only {worst.survival_rate}% of "
        f"{worst.total_joined} members are still active, ${worst.revenue_lost:,}/month in lost revenue. "
        "Look at what was different about onboarding during that period."
    )

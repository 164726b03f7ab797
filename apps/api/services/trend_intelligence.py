"""
Trend intelligence for the gym trends page.

Reads stored monthly metrics (oldest first) and derives:

    stability score   four 0-25 components: RSI slope, 3-month churn,
                      net growth and revenue momentum
    insights          one status line per chart
    micro KPIs        month-over-month and year-over-year change
    projections       actual months followed by three projected months
    outlook           90-day revenue, member count and churn status
    target path       the current MRR trajectory against a +25% target

plus correlation insights, timeline events and strategic recommendations.

generate_forecast is the short "if nothing changes" projection: next
month's MRR, the churn trajectory and where the gym lands in three months.
"""
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from services.gym_metrics import add_months

HEALTHY_RSI = 80
CHURN_TARGET = 5.0
ARM_TARGET = 150.0
PROJECTED_MONTHS = 3
TARGET_PATH_MONTHS = 6
TARGET_MRR_GROWTH = 1.25
TARGET_MRR_MIN_LIFT = 500


@dataclass
class TrendInsight:
    chart_key: str
    status: str  # positive | warning | critical | neutral
    headline: str
    detail: str


@dataclass
class MicroKpi:
    chart_key: str
    current_value: str
    mom: Optional[str]
    mom_direction: str  # up | down | flat
    yoy: Optional[str]
    yoy_direction: str
    trend: str  # accelerating | decelerating | stable


@dataclass
class TrendProjection:
    month: str
    mrr: float
    members: int
    churn: float
    rsi: int
    arm: float
    net_growth: int
    joins: int
    cancels: int
    cumulative_net_growth: int
    projected: bool


@dataclass
class CorrelationInsight:
    title: str
    detail: str
    status: str  # positive | warning | neutral


@dataclass
class ScoreComponent:
    score: int
    label: str


@dataclass
class StabilityScore:
    score: int
    tier: str  # stable | plateau-risk | early-drift | instability-risk
    headline: str
    detail: str
    components: Dict[str, ScoreComponent]


@dataclass
class OutlookItem:
    status: str
    label: str


@dataclass
class NinetyDayOutlook:
    revenue: OutlookItem
    member_count: OutlookItem
    churn: OutlookItem
    intervention_required: str  # none | low | moderate | high


@dataclass
class TargetPathPoint:
    month: str
    current_trajectory: int
    target_trajectory: int


@dataclass
class TimelineEvent:
    month: str
    type: str  # churn-spike | growth-plateau | rsi-drop | mrr-inflection | milestone
    description: str
    severity: str  # info | warning | critical


@dataclass
class StrategicRecommendation:
    area: str
    status: str  # priority | maintain | monitor
    headline: str
    detail: str


@dataclass
class GrowthMonth:
    month: str
    cumulative: int
    joins: int
    cancels: int


@dataclass
class GrowthEngine:
    cumulative_data: List[GrowthMonth] = field(default_factory=list)
    total_net_growth: int = 0
    total_months: int = 0


@dataclass
class TrendIntelligence:
    stability_score: StabilityScore
    ninety_day_outlook: NinetyDayOutlook
    insights: List[TrendInsight] = field(default_factory=list)
    micro_kpis: List[MicroKpi] = field(default_factory=list)
    projections: List[TrendProjection] = field(default_factory=list)
    correlations: List[CorrelationInsight] = field(default_factory=list)
    target_path: List[TargetPathPoint] = field(default_factory=list)
    timeline_events: List[TimelineEvent] = field(default_factory=list)
    strategic_recommendations: List[StrategicRecommendation] = field(default_factory=list)
    growth_engine: GrowthEngine = field(default_factory=GrowthEngine)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class IfNothingChanges:
    mrr_in_3_months: int
    members_in_3_months: int
    revenue_at_risk: int


@dataclass
class Forecast:
    next_month_mrr: int
    mrr_change: int
    churn_trajectory: str
    projected_churn: float
    if_nothing_changes: IfNothingChanges
    outlook: str

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Small numeric helpers
# ---------------------------------------------------------------------------

def _num(row, key: str) -> float:
    return float(getattr(row, key) or 0)


def _int(row, key: str) -> int:
    return int(getattr(row, key) or 0)


def _month(row) -> str:
    value = row.month_start
    return value.isoformat() if isinstance(value, date) else str(value)


def _net(row) -> int:
    return _int(row, "new_members") - _int(row, "cancels")


def _money(value: float) -> str:
    return f"${value:,.0f}"


def linear_slope(values: Sequence[float]) -> float:
    """Least-squares slope over evenly spaced points."""
    n = len(values)
    if n < 2:
        return 0.0
    sum_x = sum(range(n))
    sum_y = sum(values)
    sum_xy = sum(i * v for i, v in enumerate(values))
    sum_x2 = sum(i * i for i in range(n))
    denom = n * sum_x2 - sum_x * sum_x
    if denom == 0:
        return 0.0
    return (n * sum_xy - sum_x * sum_y) / denom


def pct_change(current: float, previous: float) -> Tuple[str, str]:
    """(label, direction) with moves under half a percent reported flat."""
    if previous == 0 and current == 0:
        return "0%", "flat"
    if previous == 0:
        return ("+100%", "up") if current > 0 else ("-100%", "down")
    pct = (current - previous) / abs(previous) * 100
    if abs(pct) < 0.5:
        return "0%", "flat"
    return f"{'+' if pct > 0 else ''}{pct:.1f}%", "up" if pct > 0 else "down"


def determine_trend(values: Sequence[float]) -> str:
    """Compares the last two month-over-month steps."""
    if len(values) < 3:
        return "stable"
    a, b, c = values[-3:]
    d1, d2 = b - a, c - b
    if d2 > d1 + 0.5:
        return "accelerating"
    if d2 < d1 - 0.5:
        return "decelerating"
    return "stable"


def consecutive_at_or_above(values: Sequence[float], threshold: float) -> int:
    count = 0
    for value in reversed(values):
        if value < threshold:
            break
        count += 1
    return count


def _average_new_members(rows: Sequence) -> int:
    if len(rows) >= 3:
        return round(sum(_int(m, "new_members") for m in rows[-3:]) / 3)
    return _int(rows[-1], "new_members")


# ---------------------------------------------------------------------------
# Stability score
# ---------------------------------------------------------------------------

def _rsi_component(latest_rsi: int, slope: float) -> ScoreComponent:
    if latest_rsi >= HEALTHY_RSI and slope >= -1:
        return ScoreComponent(25, "RSI stable in healthy zone")
    if latest_rsi >= HEALTHY_RSI:
        return ScoreComponent(20, "RSI healthy but trending down")
    if slope > 2:
        return ScoreComponent(22, "RSI recovering quickly")
    if slope > 0:
        return ScoreComponent(18, "RSI improving slowly")
    if latest_rsi >= 60 and slope >= -2:
        return ScoreComponent(15, "RSI moderate, slight drift")
    if slope < -3:
        return ScoreComponent(5, "RSI declining rapidly")
    return ScoreComponent(10, "RSI below target")


def _churn_component(churn_3mo: float) -> ScoreComponent:
    for ceiling, score, label in (
        (2, 25, "Excellent retention"),
        (4, 22, "Strong retention"),
        (5, 18, "Within target"),
        (7, 12, "Above target"),
        (10, 6, "Elevated churn"),
    ):
        if churn_3mo <= ceiling:
            return ScoreComponent(score, label)
    return ScoreComponent(2, "Critical churn")


def _net_growth_component(avg_net: float) -> ScoreComponent:
    if avg_net > 3:
        return ScoreComponent(25, "Strong positive growth")
    if avg_net > 1:
        return ScoreComponent(22, "Moderate growth")
    if avg_net > 0:
        return ScoreComponent(18, "Slight growth")
    if avg_net >= -1:
        return ScoreComponent(14, "Flat, no momentum")
    if avg_net >= -3:
        return ScoreComponent(8, "Contracting")
    return ScoreComponent(3, "Rapid contraction")


def _revenue_component(mrr_pct: float) -> ScoreComponent:
    if mrr_pct > 3:
        return ScoreComponent(25, "Revenue accelerating")
    if mrr_pct > 1:
        return ScoreComponent(22, "Revenue growing")
    if mrr_pct > -1:
        return ScoreComponent(18, "Revenue stable")
    if mrr_pct > -3:
        return ScoreComponent(10, "Revenue softening")
    return ScoreComponent(4, "Revenue declining")


def stability_score(rows: Sequence) -> StabilityScore:
    latest = rows[-1]
    recent = rows[-3:]
    churn_3mo = sum(_num(m, "churn_rate") for m in recent) / len(recent)
    avg_net = sum(_net(m) for m in recent) / len(recent)
    latest_mrr = _num(latest, "mrr")

    rsi_slope = linear_slope([_int(m, "rsi") for m in recent]) if len(rows) >= 3 else 0.0
    mrr_slope = linear_slope([_num(m, "mrr") for m in recent]) if len(rows) >= 3 else 0.0
    mrr_pct = mrr_slope / latest_mrr * 100 if latest_mrr > 0 else 0.0

    components = {
        "rsi_slope": _rsi_component(_int(latest, "rsi"), rsi_slope),
        "churn_avg": _churn_component(churn_3mo),
        "net_growth": _net_growth_component(avg_net),
        "revenue_momentum": _revenue_component(mrr_pct),
    }
    total = sum(c.score for c in components.values())

    if total >= 75:
        tier, headline, detail = (
            "stable", "This business is stable",
            "Retention, revenue and growth are all in healthy ranges. "
            "Continue current systems and invest in what's working.",
        )
    elif total >= 55:
        tier, headline, detail = (
            "plateau-risk", "Plateau risk detected",
            "Core metrics are holding but not building momentum. Without intentional "
            "growth, this position tends to erode over 3-6 months.",
        )
    elif total >= 35:
        tier, headline, detail = (
            "early-drift", "Early drift: attention required",
            "Several indicators are softening. Targeted interventions in the weakest "
            "areas can reverse this within 60-90 days.",
        )
    else:
        tier, headline, detail = (
            "instability-risk", "Instability risk: action required",
            "Significant weakness across retention, growth or revenue. Focus first on "
            "the lowest-scoring component.",
        )
    return StabilityScore(
        score=total,
        tier=tier,
        headline=headline,
        detail=f"Stability Score: {total}/100. {detail}",
        components=components,
    )


# ---------------------------------------------------------------------------
# Insights and KPIs
# ---------------------------------------------------------------------------

def _rsi_insight(rows: Sequence) -> TrendInsight:
    latest_rsi = _int(rows[-1], "rsi")
    streak = consecutive_at_or_above([_int(m, "rsi") for m in rows], HEALTHY_RSI)
    if streak >= 3:
        return TrendInsight("rsi", "positive", f"Retention stable for {streak} consecutive months",
                            "Your retention ecosystem is healthy and consistent. Members are staying and building habits.")
    if latest_rsi >= HEALTHY_RSI:
        return TrendInsight("rsi", "positive", "Retention is healthy this month",
                            "RSI is in the stable zone. Continue current retention practices.")
    if latest_rsi >= 60:
        return TrendInsight("rsi", "warning", "Retention needs attention",
                            f"RSI at {latest_rsi} is below the stability threshold of {HEALTHY_RSI}. "
                            "Investigate early cancellation patterns.")
    return TrendInsight("rsi", "critical", "Retention is unstable",
                        f"RSI at {latest_rsi} signals significant membership volatility. "
                        "Onboarding and engagement need immediate work.")


def build_insights(rows: Sequence) -> List[TrendInsight]:
    latest = rows[-1]
    churn = _num(latest, "churn_rate")
    mrr = _num(latest, "mrr")
    arm = _num(latest, "arm")
    members = _int(latest, "active_members")
    insights = [_rsi_insight(rows)]

    if len(rows) < 2:
        insights.extend([
            TrendInsight("churn", "neutral", f"Current churn: {churn:.1f}%", "Not enough history for trend analysis yet."),
            TrendInsight("mrr", "neutral", f"Current MRR: {_money(mrr)}", "Build more months of data to see revenue trends."),
            TrendInsight("members", "neutral", f"{members} active members", "More data needed for member trend analysis."),
            TrendInsight("arm", "neutral", f"ARM: ${arm:.0f}", "Track over time to identify pricing trends."),
            TrendInsight("netGrowth", "neutral", f"Net: {_net(latest)}", "More months needed for growth trend."),
        ])
        return insights

    prev = rows[-2]
    prev_churn = _num(prev, "churn_rate")
    if churn - prev_churn > 2:
        insights.append(TrendInsight(
            "churn", "critical", f"Churn spike: {prev_churn:.1f}% to {churn:.1f}%",
            "A sharp increase in cancellations suggests a systemic issue. Check for seasonal "
            "patterns, pricing changes or service quality shifts.",
        ))
    elif churn <= CHURN_TARGET:
        months_on_target = sum(1 for m in rows if _num(m, "churn_rate") <= CHURN_TARGET)
        insights.append(TrendInsight(
            "churn", "positive", f"Churn within target at {churn:.1f}%",
            f"Churn has been at or below 5% for {months_on_target} months. Strong retention discipline."
            if months_on_target >= 3 else
            "Churn is under control this month. Keep up outreach to at-risk members.",
        ))
    elif churn > 7:
        insights.append(TrendInsight(
            "churn", "critical", f"Churn elevated at {churn:.1f}%",
            "Above 7% monthly churn erodes revenue faster than most gyms can acquire new members. "
            "This is the top priority.",
        ))
    else:
        insights.append(TrendInsight(
            "churn", "warning", f"Churn at {churn:.1f}%, above the 5% target",
            "Moderately elevated churn. Focus on members in their first 60 days, where most "
            "cancellations start.",
        ))

    prev_mrr = _num(prev, "mrr")
    mrr_growth = (mrr - prev_mrr) / prev_mrr * 100 if prev_mrr > 0 else 0.0
    if mrr_growth > 3:
        insights.append(TrendInsight(
            "mrr", "positive", f"MRR growing: +{mrr_growth:.1f}% month-over-month",
            f"Revenue increased from {_money(prev_mrr)} to {_money(mrr)}. Momentum is building.",
        ))
    elif mrr_growth < -3:
        insights.append(TrendInsight(
            "mrr", "critical", f"MRR declining: {mrr_growth:.1f}% month-over-month",
            f"Revenue dropped from {_money(prev_mrr)} to {_money(mrr)}. Address churn before investing in acquisition.",
        ))
    else:
        insights.append(TrendInsight(
            "mrr", "neutral", f"MRR holding steady at {_money(mrr)}",
            "Revenue is flat. Growth requires either more members or higher revenue per member.",
        ))

    member_delta = members - _int(prev, "active_members")
    if member_delta > 0:
        insights.append(TrendInsight(
            "members", "positive", f"Roster growing: +{member_delta} members this month",
            "New signups are outpacing cancellations. Make sure onboarding keeps up with growth.",
        ))
    elif member_delta < -2:
        insights.append(TrendInsight(
            "members", "warning", f"Roster contracting: {member_delta} members this month",
            "More members are leaving than joining. Without correction, this compounds monthly.",
        ))
    else:
        insights.append(TrendInsight(
            "members", "neutral", f"Roster stable at {members} active members",
            "No significant change in member count. Consider acquisition to build forward momentum.",
        ))

    arm_delta = arm - _num(prev, "arm")
    if arm_delta > 5:
        insights.append(TrendInsight(
            "arm", "positive", f"Revenue per member increasing: ${arm:.0f}",
            "Average revenue per member is trending up, likely from premium tier adoption or pricing changes.",
        ))
    elif arm_delta < -5:
        insights.append(TrendInsight(
            "arm", "warning", f"Revenue per member declining: ${arm:.0f}",
            "ARM is dropping, likely from lower-tier signups or promotional pricing. Monitor the pricing mix.",
        ))
    else:
        insights.append(TrendInsight(
            "arm", "neutral", f"Revenue per member steady at ${arm:.0f}",
            "ARM is in a healthy range. Focus on retention over pricing changes."
            if arm >= ARM_TARGET else
            "ARM is below the $150 target. Consider premium programming or pricing adjustments.",
        ))

    net = _net(latest)
    joins, cancels = _int(latest, "new_members"), _int(latest, "cancels")
    if net > 0:
        insights.append(TrendInsight(
            "netGrowth", "positive", f"Positive net growth: +{net} members",
            f"{joins} new joins vs {cancels} cancellations. Forward momentum is building.",
        ))
    elif net < 0:
        insights.append(TrendInsight(
            "netGrowth", "critical", f"Negative net growth: {net} members",
            f"Losing {abs(net)} members per month compounds quickly. Retention must be the top priority.",
        ))
    else:
        insights.append(TrendInsight(
            "netGrowth", "neutral", "Net growth is flat",
            "Joins equal cancellations exactly. The gym is treading water.",
        ))
    return insights


def build_micro_kpis(rows: Sequence) -> List[MicroKpi]:
    prev = rows[-2] if len(rows) >= 2 else None
    year_ago = rows[-13] if len(rows) >= 13 else None

    def kpi(key: str, attr: str, formatter, cast=_num) -> MicroKpi:
        values = [cast(m, attr) for m in rows]
        current = values[-1]
        mom = pct_change(current, cast(prev, attr)) if prev is not None else (None, "flat")
        yoy = pct_change(current, cast(year_ago, attr)) if year_ago is not None else (None, "flat")
        return MicroKpi(
            chart_key=key,
            current_value=formatter(current),
            mom=mom[0],
            mom_direction=mom[1],
            yoy=yoy[0],
            yoy_direction=yoy[1],
            trend=determine_trend(values),
        )

    return [
        kpi("rsi", "rsi", lambda v: f"{v}/100", _int),
        kpi("mrr", "mrr", _money),
        kpi("members", "active_members", str, _int),
        kpi("churn", "churn_rate", lambda v: f"{v:.1f}%"),
        kpi("arm", "arm", lambda v: f"${v:.0f}"),
    ]


# ---------------------------------------------------------------------------
# Projections, outlook and target path
# ---------------------------------------------------------------------------

def build_projections(rows: Sequence) -> Tuple[List[TrendProjection], GrowthEngine]:
    projections: List[TrendProjection] = []
    engine = GrowthEngine(total_months=len(rows))
    cumulative = 0
    for m in rows:
        net = _net(m)
        cumulative += net
        engine.cumulative_data.append(GrowthMonth(_month(m), cumulative, _int(m, "new_members"), _int(m, "cancels")))
        projections.append(TrendProjection(
            month=_month(m),
            mrr=_num(m, "mrr"),
            members=_int(m, "active_members"),
            churn=_num(m, "churn_rate"),
            rsi=_int(m, "rsi"),
            arm=_num(m, "arm"),
            net_growth=net,
            joins=_int(m, "new_members"),
            cancels=_int(m, "cancels"),
            cumulative_net_growth=cumulative,
            projected=False,
        ))
    engine.total_net_growth = cumulative

    if len(rows) < 2:
        return projections, engine

    last = rows[-1]
    churn = _num(last, "churn_rate")
    arm = _num(last, "arm")
    avg_new = _average_new_members(rows)
    members = _int(last, "active_members")
    rsi = _int(last, "rsi")
    for i in range(1, PROJECTED_MONTHS + 1):
        lost = round(members * churn / 100)
        members = max(0, members - lost + avg_new)
        net = avg_new - lost
        cumulative += net
        if churn > 7:
            rsi = max(0, rsi - 3)
        elif churn > CHURN_TARGET:
            rsi = max(0, rsi - 1)
        else:
            rsi = min(100, rsi + 1)
        projections.append(TrendProjection(
            month=add_months(last.month_start, i).isoformat(),
            mrr=round(members * arm),
            members=members,
            churn=round(churn, 1),
            rsi=rsi,
            arm=round(arm),
            net_growth=net,
            joins=avg_new,
            cancels=lost,
            cumulative_net_growth=cumulative,
            projected=True,
        ))
    return projections, engine


def _insufficient_outlook(label: str) -> NinetyDayOutlook:
    return NinetyDayOutlook(
        revenue=OutlookItem("stable", label),
        member_count=OutlookItem("stable", label),
        churn=OutlookItem("within-tolerance", label),
        intervention_required="none",
    )


def ninety_day_outlook(rows: Sequence, projections: Sequence[TrendProjection]) -> NinetyDayOutlook:
    projected = [p for p in projections if p.projected]
    if len(projected) < PROJECTED_MONTHS:
        return _insufficient_outlook("Insufficient data for projection")

    latest = rows[-1]
    latest_mrr = _num(latest, "mrr")
    latest_members = _int(latest, "active_members")
    recent = rows[-3:]
    churn_3mo = sum(_num(m, "churn_rate") for m in recent) / len(recent)

    end = projected[PROJECTED_MONTHS - 1]
    mrr_pct = (end.mrr - latest_mrr) / latest_mrr * 100 if latest_mrr > 0 else 0.0
    member_delta = end.members - latest_members

    if mrr_pct > 3:
        revenue = OutlookItem("growing", f"Likely growing (+{mrr_pct:.1f}% projected)")
    elif mrr_pct > -2:
        revenue = OutlookItem("stable", "Likely stable")
    elif mrr_pct > -8:
        revenue = OutlookItem("at-risk", f"Risk of decline ({mrr_pct:.1f}% projected)")
    else:
        revenue = OutlookItem("declining", f"Declining ({mrr_pct:.1f}% projected)")

    if member_delta > 3:
        member_count = OutlookItem("growing", f"Growing (+{member_delta} projected)")
    elif member_delta >= -1:
        member_count = OutlookItem("stable", "Stable")
    elif member_delta >= -5:
        member_count = OutlookItem("at-risk", f"Risk of stagnation ({member_delta} projected)")
    else:
        member_count = OutlookItem("declining", f"Declining ({member_delta} projected)")

    if churn_3mo <= CHURN_TARGET:
        churn = OutlookItem("within-tolerance", f"Within tolerance ({churn_3mo:.1f}% avg)")
    elif churn_3mo <= 7:
        churn = OutlookItem("elevated", f"Elevated ({churn_3mo:.1f}% avg)")
    else:
        churn = OutlookItem("critical", f"Critical ({churn_3mo:.1f}% avg)")

    negatives = sum(1 for item in (revenue, member_count) if item.status in ("at-risk", "declining"))
    if churn.status == "critical" or negatives >= 2:
        intervention = "high"
    elif churn.status == "elevated" or negatives >= 1:
        intervention = "moderate"
    elif revenue.status == "stable" and member_count.status == "stable":
        intervention = "low"
    else:
        intervention = "none"

    return NinetyDayOutlook(revenue, member_count, churn, intervention)


def build_target_path(rows: Sequence) -> List[TargetPathPoint]:
    """Current trajectory vs a linear climb to max(+25%, +$500) over six months."""
    if len(rows) < 2:
        return []
    last = rows[-1]
    latest_mrr = _num(last, "mrr")
    target_mrr = max(latest_mrr * TARGET_MRR_GROWTH, latest_mrr + TARGET_MRR_MIN_LIFT)
    churn = _num(last, "churn_rate")
    arm = _num(last, "arm")
    avg_new = _average_new_members(rows)
    members = _int(last, "active_members")

    path: List[TargetPathPoint] = []
    for i in range(TARGET_PATH_MONTHS + 1):
        path.append(TargetPathPoint(
            month=add_months(last.month_start, i).isoformat(),
            current_trajectory=round(members * arm),
            target_trajectory=round(latest_mrr + (target_mrr - latest_mrr) * i / TARGET_PATH_MONTHS),
        ))
        lost = round(members * churn / 100)
        members = max(0, members - lost + avg_new)
    return path


# ---------------------------------------------------------------------------
# Correlations, timeline and recommendations
# ---------------------------------------------------------------------------

def build_correlations(rows: Sequence) -> List[CorrelationInsight]:
    if len(rows) < 3:
        return []
    first, _, last = rows[-3:]
    mrr_up = _num(last, "mrr") > _num(first, "mrr")
    members_up = _int(last, "active_members") > _int(first, "active_members")
    arm_up = _num(last, "arm") > _num(first, "arm")

    correlations: List[CorrelationInsight] = []
    if mrr_up and members_up and not arm_up:
        correlations.append(CorrelationInsight(
            "MRR growth driven by member count, not pricing",
            "Revenue is rising because you're adding members, but revenue per member is flat. "
            "Look at premium tier opportunities.",
            "neutral",
        ))
    elif mrr_up and arm_up and not members_up:
        correlations.append(CorrelationInsight(
            "MRR growth driven by pricing, not volume",
            "Revenue is up because existing members pay more on average. Efficient, but it has a ceiling.",
            "positive",
        ))
    elif mrr_up and members_up and arm_up:
        correlations.append(CorrelationInsight(
            "Dual-engine growth: more members and higher revenue each",
            "Member count and average revenue are both rising. This is the strongest growth pattern.",
            "positive",
        ))

    if (_num(last, "churn_rate") > _num(first, "churn_rate") + 1
            and _int(last, "active_members") < _int(first, "active_members")):
        correlations.append(CorrelationInsight(
            "Churn spike correlates with member decline",
            "Rising cancellations are directly shrinking the roster. Prioritize retention over acquisition.",
            "warning",
        ))
    if _int(last, "new_members") > _int(first, "new_members") and mrr_up:
        correlations.append(CorrelationInsight(
            "New member influx is lifting revenue",
            "Acquisition momentum is turning into revenue growth. Keep onboarding quality in step with volume.",
            "positive",
        ))
    if _int(last, "member_risk_count") > _int(first, "member_risk_count") + 2:
        correlations.append(CorrelationInsight(
            "At-risk member count is rising",
            "More members are entering the early risk window. This can precede a churn spike in 1-2 months.",
            "warning",
        ))
    return correlations


def build_timeline(rows: Sequence) -> List[TimelineEvent]:
    events: List[TimelineEvent] = []
    for i in range(1, len(rows)):
        m, p = rows[i], rows[i - 1]
        month = _month(m)
        churn, prev_churn = _num(m, "churn_rate"), _num(p, "churn_rate")
        mrr, prev_mrr = _num(m, "mrr"), _num(p, "mrr")
        rsi, prev_rsi = _int(m, "rsi"), _int(p, "rsi")

        if churn - prev_churn > 2:
            events.append(TimelineEvent(month, "churn-spike",
                                        f"Churn jumped from {prev_churn:.1f}% to {churn:.1f}%", "critical"))
        if rsi - prev_rsi < -8:
            events.append(TimelineEvent(month, "rsi-drop", f"RSI dropped from {prev_rsi} to {rsi}", "warning"))
        if prev_mrr > 0:
            change = (mrr - prev_mrr) / prev_mrr * 100
            if change > 10:
                events.append(TimelineEvent(month, "mrr-inflection",
                                            f"MRR surged +{change:.0f}% to {_money(mrr)}", "info"))
            elif change < -8:
                events.append(TimelineEvent(month, "mrr-inflection",
                                            f"MRR dropped {change:.0f}% to {_money(mrr)}", "warning"))
        if i >= 3 and all(abs(_net(x)) <= 1 for x in rows[i - 2:i + 1]):
            events.append(TimelineEvent(month, "growth-plateau",
                                        "Net growth flat for 3 consecutive months", "info"))

    if len(rows) >= 6:
        mid = len(rows) // 2
        first_half = sum(_num(m, "arm") for m in rows[:mid]) / mid
        second_half = sum(_num(m, "arm") for m in rows[mid:]) / (len(rows) - mid)
        if second_half - first_half > 15:
            events.append(TimelineEvent(
                _month(rows[mid]), "milestone",
                f"Average revenue per member shifted up ~${round(second_half - first_half)} (possible price increase)",
                "info",
            ))
    return events


def build_strategic_recommendations(rows: Sequence) -> List[StrategicRecommendation]:
    latest = rows[-1]
    recent = rows[-3:]
    churn_3mo = sum(_num(m, "churn_rate") for m in recent) / len(recent)
    avg_net = sum(_net(m) for m in recent) / len(recent)
    arm = _num(latest, "arm")
    prev_arm = _num(rows[-2], "arm") if len(rows) >= 2 else arm
    rsi = _int(latest, "rsi")
    members = _int(latest, "active_members")
    recs: List[StrategicRecommendation] = []

    if avg_net <= 0 and churn_3mo <= CHURN_TARGET:
        recs.append(StrategicRecommendation(
            "Acquisition", "priority", "Growth is flat: prioritize acquisition",
            "Retention is solid but the roster isn't growing. Invest in referrals, community events "
            "or targeted marketing.",
        ))
    elif avg_net > 2:
        recs.append(StrategicRecommendation(
            "Acquisition", "maintain", "Acquisition momentum is healthy",
            "New members are outpacing cancellations. Keep current channels and focus on onboarding quality.",
        ))
    else:
        recs.append(StrategicRecommendation(
            "Acquisition", "monitor", "Acquisition is steady but not accelerating",
            "Growth exists but is modest. Test new acquisition channels to find more leverage.",
        ))

    if arm >= ARM_TARGET and abs(prev_arm - arm) < 5:
        recs.append(StrategicRecommendation(
            "Pricing", "maintain", "Revenue per member is steady, no pricing pressure",
            "ARM is healthy and stable. Focus on value delivery rather than price changes.",
        ))
    elif arm < 120:
        recs.append(StrategicRecommendation(
            "Pricing", "priority", "Revenue per member is below potential",
            "There's room for a premium tier or a price adjustment. Small per-member increases add up "
            "across the roster.",
        ))
    else:
        recs.append(StrategicRecommendation(
            "Pricing", "monitor", "Revenue per member is moderate",
            "ARM is acceptable but not optimized. Consider add-ons like nutrition coaching or personal training.",
        ))

    if churn_3mo <= CHURN_TARGET and rsi >= HEALTHY_RSI:
        recs.append(StrategicRecommendation(
            "Retention", "maintain", "Retention is strong: maintain systems",
            "Churn is controlled and RSI is healthy. Keep current engagement practices and watch for early warnings.",
        ))
    elif churn_3mo > 7 or rsi < 60:
        recs.append(StrategicRecommendation(
            "Retention", "priority", "Retention requires immediate attention",
            "Members aren't embedding into the community. Structure touchpoints across the first 90 days.",
        ))
    else:
        recs.append(StrategicRecommendation(
            "Retention", "monitor", "Retention has room for improvement",
            "Metrics are acceptable but not robust. Strengthen engagement with personal outreach and events.",
        ))

    risk_pct = _int(latest, "member_risk_count") / members * 100 if members > 0 else 0.0
    if risk_pct > 15:
        recs.append(StrategicRecommendation(
            "Risk Management", "priority", "High exposure to new member churn",
            f"{risk_pct:.0f}% of your roster is in their first 60 days, when most people quit. "
            "Reaching out to them now is the most effective thing you can do.",
        ))
    elif risk_pct > 8:
        recs.append(StrategicRecommendation(
            "Risk Management", "monitor", "Moderate new member risk exposure",
            "A meaningful share of members are in the early risk window. Contact each personally within two weeks.",
        ))
    else:
        recs.append(StrategicRecommendation(
            "Risk Management", "maintain", "New member risk exposure is low",
            "Most of the roster is past the 60-day window. Keep watching new signups as they arrive.",
        ))
    return recs


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def _empty_intelligence() -> TrendIntelligence:
    no_data = ScoreComponent(0, "No data")
    return TrendIntelligence(
        stability_score=StabilityScore(
            score=0,
            tier="plateau-risk",
            headline="Insufficient data",
            detail="Import members and recompute to generate intelligence.",
            components={k: no_data for k in ("rsi_slope", "churn_avg", "net_growth", "revenue_momentum")},
        ),
        ninety_day_outlook=_insufficient_outlook("Insufficient data"),
    )


def generate_trend_intelligence(history: Sequence) -> TrendIntelligence:
    """history: monthly metrics rows in any order."""
    rows = sorted(history, key=lambda m: m.month_start)
    if not rows:
        return _empty_intelligence()

    projections, engine = build_projections(rows)
    return TrendIntelligence(
        stability_score=stability_score(rows),
        ninety_day_outlook=ninety_day_outlook(rows, projections),
        insights=build_insights(rows),
        micro_kpis=build_micro_kpis(rows),
        projections=projections,
        correlations=build_correlations(rows),
        target_path=build_target_path(rows),
        timeline_events=build_timeline(rows),
        strategic_recommendations=build_strategic_recommendations(rows),
        growth_engine=engine,
    )


def generate_forecast(history: Sequence) -> Forecast:
    """Three months forward if churn, joins and ARM stay where they are."""
    rows = sorted(history, key=lambda m: m.month_start)
    if not rows:
        return Forecast(
            next_month_mrr=0,
            mrr_change=0,
            churn_trajectory="Insufficient data",
            projected_churn=0.0,
            if_nothing_changes=IfNothingChanges(0, 0, 0),
            outlook="Not enough data to project.",
        )

    current = rows[-1]
    churn = _num(current, "churn_rate")
    mrr = _num(current, "mrr")
    arm = _num(current, "arm")
    members = _int(current, "active_members")
    joins = _int(current, "new_members")
    net_growth = _net(current)

    next_mrr = max(0, members + net_growth) * arm

    projected_churn = churn
    if len(rows) >= 3:
        churn_shift = churn - _num(rows[-3], "churn_rate")
        if churn_shift > 1:
            trajectory = "Rising: churn is accelerating"
            projected_churn = min(churn + churn_shift / 2, 100.0)
        elif churn_shift < -1:
            trajectory = "Declining: retention is improving"
            projected_churn = max(churn + churn_shift / 2, 0.0)
        else:
            trajectory = "Holding steady"
    else:
        trajectory = "Insufficient history for trend"

    m3_members = members
    m3_mrr = mrr
    for _ in range(3):
        lost = round(m3_members * projected_churn / 100)
        m3_members = max(0, m3_members - lost + joins)
        m3_mrr = m3_members * arm
    revenue_at_risk = max(0.0, mrr - m3_mrr) * 3

    if churn <= 3 and net_growth > 0:
        outlook = "Strong position. Revenue is predictable and growing. Maintain current systems."
    elif churn <= CHURN_TARGET and net_growth >= 0:
        outlook = "Stable but watchful. No immediate risk, but forward momentum is limited."
    elif churn <= 7:
        outlook = "Attention needed. Churn is eating into your gains. Fixing retention is the best move right now."
    else:
        outlook = "Urgent action required. The current trajectory leads to meaningful revenue loss within 90 days."

    return Forecast(
        next_month_mrr=round(next_mrr),
        mrr_change=round(next_mrr - mrr),
        churn_trajectory=trajectory,
        projected_churn=round(projected_churn, 1),
        if_nothing_changes=IfNothingChanges(
            mrr_in_3_months=round(m3_mrr),
            members_in_3_months=m3_members,
            revenue_at_risk=round(revenue_at_risk),
        ),
        outlook=outlook,
    )

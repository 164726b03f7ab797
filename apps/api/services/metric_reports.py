"""
Human-readable reports for one month of gym metrics.

Six fixed reports (churn, RSI, ARM, LTV, risk radar, net growth). Each
carries current value, target, dollar impact, meaning, rationale, action
and a 90-day trend measured against the earliest of the three prior
months that has data.
"""
from dataclasses import dataclass, asdict
from typing import List, Optional, Sequence

CHURN_TARGET = 5.0
RSI_TARGET = 80
ARM_TARGET = 150.0
LTV_TARGET = 3000.0
RISK_TARGET_PCT = 10.0


@dataclass
class MetricReport:
    metric: str
    current: str
    target: str
    impact: str
    meaning: str
    why_it_matters: str
    action: str
    trend_direction: str  # up | down | stable | none
    trend_value: str

    def to_dict(self) -> dict:
        return asdict(self)


def _value(row, key: str) -> float:
    return float(getattr(row, key) or 0)


def ninety_day_trend(current: float, key: str, prior: Sequence) -> tuple:
    """
    prior is [prev1, prev2, prev3] (any may be None). The baseline is the
    oldest available of the three.
    """
    baseline_row = next((row for row in reversed(list(prior)) if row is not None), None)
    if baseline_row is None:
        return "none", "Insufficient data"
    baseline = _value(baseline_row, key)
    delta = current - baseline
    if abs(delta) < 0.01:
        return "stable", "Stable"
    direction = "up" if delta > 0 else "down"
    sign = "+" if delta > 0 else ""
    if baseline == 0:
        # No percentage off a zero baseline; report the absolute change.
        return direction, f"{sign}{round(delta, 2):g} from 0"
    return direction, f"{sign}{delta / baseline * 100:.1f}%"


def _inverted(direction: str) -> str:
    return {"up": "down", "down": "up"}.get(direction, direction)


def generate_metric_reports(metrics, prior: Optional[Sequence] = None) -> List[MetricReport]:
    prior = list(prior or [None, None, None])
    active = int(metrics.active_members)
    churn = _value(metrics, "churn_rate")
    arm = _value(metrics, "arm")
    ltv = _value(metrics, "ltv")
    rsi = int(metrics.rsi)
    risk_count = int(metrics.member_risk_count)
    reports: List[MetricReport] = []

    # Monthly churn
    churn_gap = churn - CHURN_TARGET
    annual_impact = round(arm * (churn_gap / 100) * active * 12) if churn_gap > 0 else 0
    direction, value = ninety_day_trend(churn, "churn_rate", prior)
    reports.append(MetricReport(
        metric="Monthly Churn",
        current=f"{churn:g}%",
        target=f"{CHURN_TARGET:g}%",
        impact=f"+${annual_impact:,} annual revenue if reduced to target" if annual_impact > 0 else "On track",
        meaning=(
            "You're losing too many members. If this keeps up, revenue will feel it within a few months."
            if churn > 7 else
            "Churn is above where you want it. Members are leaving before they build lasting habits."
            if churn > 5 else
            "Retention is solid. Members are staying and building routines."
        ),
        why_it_matters=(
            "Churn is the biggest threat to predictable revenue. Replacing lost members "
            "costs more than keeping the ones you have."
        ),
        action=(
            "Reach out to members who seem to be fading. Set up a 30-day check-in for every new member."
            if churn > 5 else
            "Keep watching for early warning signs and keep building relationships."
        ),
        trend_direction=_inverted(direction),
        trend_value=value,
    ))

    # Retention Stability Index
    direction, value = ninety_day_trend(rsi, "rsi", prior)
    reports.append(MetricReport(
        metric="Retention Stability Index",
        current=f"{rsi}/100",
        target=f"{RSI_TARGET}/100",
        impact=(
            "Revenue is at risk if retention doesn't improve soon" if rsi < 60 else
            "Some retention issues to address before they get worse" if rsi < RSI_TARGET else
            "Strong foundation. Revenue should stay predictable"
        ),
        meaning=(
            "Members are staying, building habits and contributing to a stable revenue base."
            if rsi >= RSI_TARGET else
            "Retention is leaking in the transition from new to committed member."
            if rsi >= 60 else
            "Members are leaving before they see results or join the culture."
        ),
        why_it_matters=(
            "RSI rolls churn, tenure, early cancellations and growth into one number: "
            "the clearest single read on whether membership is building or cycling."
        ),
        action=(
            "Rebuild the first 90-day protocol. Every new member needs a personal coach connection by day 14."
            if rsi < 60 else
            "Audit the 3-month touchpoints, find the week engagement drops and add a coach check-in there."
            if rsi < RSI_TARGET else
            "Keep investing in community events and milestone celebrations."
        ),
        trend_direction=direction,
        trend_value=value,
    ))

    # Revenue per member
    direction, value = ninety_day_trend(arm, "arm", prior)
    reports.append(MetricReport(
        metric="Revenue per Member",
        current=f"${arm:.0f}",
        target=f"${ARM_TARGET:.0f}+",
        impact=(
            f"+${round((ARM_TARGET - arm) * active):,} monthly if ARM reaches target"
            if arm < ARM_TARGET else "Revenue per member is optimized"
        ),
        meaning=(
            "Revenue per member reflects the value you provide." if arm >= ARM_TARGET else
            "You are providing more value than you capture." if arm >= 100 else
            "A high-volume, low-margin model that is hard to sustain."
        ),
        why_it_matters=(
            "The more each member generates, the less pressure there is to chase new signups."
        ),
        action=(
            "Restructure tiers; current rates undercharge for the results delivered." if arm < 100 else
            "Add value-add services: nutrition coaching, personal training, specialty workshops." if arm < ARM_TARGET else
            "Protect these high-value relationships and maintain the margin."
        ),
        trend_direction=direction,
        trend_value=value,
    ))

    # Lifetime value
    direction, value = ninety_day_trend(ltv, "ltv", prior)
    target_churn = max(churn - 1.8, 2)
    current_ltv = arm / (churn / 100) if churn > 0 else 0
    target_ltv = arm / (target_churn / 100)
    ltve_impact = _value(metrics, "ltve_impact")
    reports.append(MetricReport(
        metric="Lifetime Value Engine",
        current=f"${round(ltv):,}",
        target=f"${LTV_TARGET:,.0f}+",
        impact=(
            f"If churn drops from {churn:g}% to {target_churn:.1f}%: "
            f"+${round(target_ltv - current_ltv):,} LTV per member"
            if ltve_impact > 0 else "LTV is maximized at current churn levels"
        ),
        meaning=(
            "Retention and pricing are working together." if ltv >= LTV_TARGET else
            "Stable but inefficient: small retention gains pay off disproportionately." if ltv >= 1500 else
            "The model burns through leads faster than the local market can replace them."
        ),
        why_it_matters=(
            "Lifetime value is the total revenue a member generates before leaving. "
            "Keeping members longer compounds every month."
        ),
        action=(
            "Audit the member journey from day 1 to day 90 before spending on marketing." if ltv < 1500 else
            "Celebrate milestones and give members reasons to stay beyond the workout." if ltv < LTV_TARGET else
            "Reinvest predictable revenue in coaching talent and the facility."
        ),
        trend_direction=direction,
        trend_value=value,
    ))

    # Member risk radar
    direction, value = ninety_day_trend(risk_count, "member_risk_count", prior)
    risk_pct = risk_count / active * 100 if active > 0 else 0.0
    if risk_count > active * 0.15:
        tier = "High"
    elif risk_count > active * 0.08:
        tier = "Moderate"
    elif risk_count > 0:
        tier = "Low"
    else:
        tier = "Clear"
    reports.append(MetricReport(
        metric="Member Risk Radar",
        current=f"{risk_count} flagged ({risk_pct:.1f}%)",
        target=f"< {RISK_TARGET_PCT:g}% of roster",
        impact=(
            f"${round(risk_count * arm):,}/mo revenue at risk" if risk_count > 0
            else "No members currently flagged"
        ),
        meaning={
            "High": "Many new members are disengaging; habit-building protocols need work.",
            "Moderate": "Some newer members need attention; onboarding is passive rather than proactive.",
            "Low": "A few members are in the risk window. Personal outreach can make the difference.",
            "Clear": "Nobody is flagged right now. Onboarding is doing its job.",
        }[tier],
        why_it_matters=(
            "New members are several times more likely to cancel than established ones. "
            "Reaching out early is the most effective retention lever."
        ),
        action=(
            "Call every flagged member personally. Do not delegate this to a mass email." if tier == "High" else
            "Reach out to every flagged member within 2 weeks." if risk_count > 0 else
            "Ask your most engaged new members why they are succeeding and fold that into onboarding."
        ),
        trend_direction=_inverted(direction),
        trend_value=value,
    ))

    # Net member growth
    net = int(metrics.new_members) - int(metrics.cancels)
    growth_pct = net / active * 100 if active > 0 else 0.0
    direction, value = ninety_day_trend(active, "active_members", prior)
    reports.append(MetricReport(
        metric="Net Member Growth",
        current=f"{'+' if net >= 0 else ''}{net} ({growth_pct:.1f}%)",
        target="Positive net growth",
        impact=(
            f"Losing {abs(net)} members/month compounds into revenue erosion" if net < 0 else
            "No forward momentum this month" if net == 0 else
            f"+{net} members adds ~${round(net * arm):,}/mo"
        ),
        meaning=(
            "New members are outpacing cancellations." if net > 0 else
            "Every new member is replacing a departure." if net == 0 else
            "Members are leaving faster than they are replaced."
        ),
        why_it_matters="Net losses compound month over month; growth builds momentum.",
        action=(
            "Call members who left in the last 60 days and fix what they tell you." if net < 0 else
            "Launch a referral push or community event to break the plateau." if net == 0 else
            "Check onboarding capacity so growth does not outpace the culture."
        ),
        trend_direction=direction,
        trend_value=value,
    ))

    return reports

"""
Six-month revenue scenarios.

Projects MRR forward under three paths built from the last three months of
stored metrics:

    expected   mean churn,           mean new members
    upside     churn - 1 sigma,      new + 1 sigma
    downside   churn + 1.5 sigma,    new - 1 sigma

Member counts compound month over month with rounded losses and gains, and
MRR is member count x ARM. Sigma is the population standard deviation; with
fewer than two months it falls back to 30% of the mean.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, asdict
from datetime import date
from typing import List, Optional, Sequence

from services.gym_metrics import add_months, first_of_month

PROJECTION_MONTHS = 6
HISTORY_WINDOW = 3
FALLBACK_SIGMA_RATIO = 0.3


@dataclass
class ScenarioMonth:
    month: str
    current: int
    expected: int
    upside: int
    downside: int


@dataclass
class RevenueScenario:
    projections: List[ScenarioMonth]
    break_even_risk: float
    cash_flow_risk_level: str  # low | moderate | high | critical
    worst_case_mrr: int
    expected_mrr: int
    upside_mrr: int
    scenario_insights: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / max(len(values), 1)


def _sigma(values: Sequence[float], mean: float) -> float:
    if len(values) < 2:
        return mean * FALLBACK_SIGMA_RATIO
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))


def _step(members: int, churn_pct: float, new_members: float) -> int:
    churn_pct = max(0.0, min(100.0, churn_pct))
    lost = round(members * churn_pct / 100)
    return max(0, members - lost + round(max(0.0, new_members)))


def classify_cash_flow_risk(current_mrr: float, final_expected: float, final_downside: float) -> tuple:
    """Returns (break_even_risk, level) from where the downside path lands."""
    if current_mrr <= 0:
        return 0.05, "low"
    if final_downside < current_mrr * 0.6:
        return 0.7, "critical"
    if final_downside < current_mrr * 0.8:
        return 0.3, "high"
    if final_downside < current_mrr * 0.95 or final_expected < current_mrr * 0.95:
        return 0.15, "moderate"
    return 0.05, "low"


def _insights(current_mrr: float, expected: int, downside: int, upside: int) -> List[str]:
    if current_mrr <= 0:
        return ["No recurring revenue recorded yet; import members to project revenue."]

    insights = []
    expected_delta = (expected - current_mrr) / current_mrr * 100
    downside_delta = (downside - current_mrr) / current_mrr * 100

    if expected_delta > 5:
        insights.append(
            f"On the current path, revenue grows {expected_delta:.1f}% over 6 months to ${expected:,}/mo."
        )
    elif expected_delta > -2:
        insights.append(f"Revenue looks stable at ${expected:,}/mo. No big changes expected.")
    else:
        insights.append(
            f"At current churn, revenue shrinks {abs(expected_delta):.1f}% to ${expected:,}/mo. "
            "That is the trend to fight."
        )

    if downside_delta < -15:
        insights.append(
            f"If churn worsens and signups slow, revenue could drop to ${downside:,}/mo, "
            f"a {abs(downside_delta):.0f}% hit. This is the scenario to prevent."
        )

    spread = (upside - downside) / current_mrr * 100
    if spread > 30:
        insights.append(
            f"The gap between best and worst case is {spread:.0f}%. Stabilizing retention would narrow it."
        )
    else:
        insights.append(
            f"The gap between best and worst case is {spread:.0f}%. The revenue base is reasonably predictable."
        )
    return insights


def compute_revenue_scenario(
    metrics_history: Sequence,
    active_member_count: int,
    arm: float,
    as_of: Optional[date] = None,
) -> RevenueScenario:
    """
    metrics_history is ordered oldest first and needs month_start,
    active_members, churn_rate, new_members and mrr.
    """
    history = list(metrics_history)
    latest = history[-1] if history else None
    arm = float(arm)

    if latest is not None:
        current_mrr = float(latest.mrr)
        current_members = int(latest.active_members)
        start_month = latest.month_start
    else:
        current_mrr = active_member_count * arm
        current_members = active_member_count
        start_month = first_of_month(as_of or date.today())

    recent = history[-HISTORY_WINDOW:]
    churn_rates = [float(m.churn_rate) for m in recent]
    new_counts = [float(m.new_members) for m in recent]
    avg_churn = _mean(churn_rates)
    avg_new = _mean(new_counts)
    churn_sigma = _sigma(churn_rates, avg_churn)
    new_sigma = _sigma(new_counts, avg_new)

    projections = [ScenarioMonth(
        month=start_month.isoformat(),
        current=round(current_mrr),
        expected=round(current_mrr),
        upside=round(current_mrr),
        downside=round(current_mrr),
    )]

    expected = upside = downside = current_members
    for i in range(1, PROJECTION_MONTHS + 1):
        expected = _step(expected, avg_churn, avg_new)
        upside = _step(upside, avg_churn - churn_sigma, avg_new + new_sigma)
        downside = _step(downside, avg_churn + churn_sigma * 1.5, avg_new - new_sigma)

        expected_mrr = round(expected * arm)
        upside_mrr = max(round(upside * arm), expected_mrr)
        downside_mrr = min(round(downside * arm), expected_mrr)
        projections.append(ScenarioMonth(
            month=add_months(start_month, i).isoformat(),
            current=round(current_mrr),
            expected=expected_mrr,
            upside=upside_mrr,
            downside=downside_mrr,
        ))

    final = projections[-1]
    risk, level = classify_cash_flow_risk(current_mrr, final.expected, final.downside)
    return RevenueScenario(
        projections=projections,
        break_even_risk=risk,
        cash_flow_risk_level=level,
        worst_case_mrr=final.downside,
        expected_mrr=final.expected,
        upside_mrr=final.upside,
        scenario_insights=_insights(current_mrr, final.expected, final.downside, final.upside),
    )

"""
Composite retention and revenue scores.

These are rubric scores, not statistical models: additive tiers whose exact
thresholds come from SCORING_CONFIG.

- Retention Stability Index (RSI): integer 0-100, starts at 100.
- Revenue stability score (RES): 0-100, sum of ARM, roster and MRR tiers.
- LTV-improvement impact: annual dollar gain from one point less churn.
"""
from datetime import date
from typing import Iterable, List, Optional

from core.scoring_config import SCORING_CONFIG, ScoringConfig


def calendar_months_between(start: date, end: date) -> int:
    """Whole calendar-month difference, ignoring the day of month."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def _tier_points(value: float, tiers, floor: int) -> int:
    for threshold, points in tiers:
        if value >= threshold:
            return points
    return floor


def compute_rsi(
    churn_rate: float,
    active_tenure_months: List[float],
    cancel_count: int,
    new_member_count: int,
    active_start_of_month: int,
    config: ScoringConfig = SCORING_CONFIG,
) -> int:
    score = 100

    for threshold, delta, inclusive in config.rsi_churn_tiers:
        if churn_rate > threshold or (inclusive and churn_rate == threshold):
            score += delta
            break

    if active_start_of_month > 0:
        early_ratio = cancel_count / active_start_of_month
        for threshold, delta in config.rsi_early_churn_tiers:
            if early_ratio > threshold:
                score += delta
                break

    if active_tenure_months:
        avg_tenure = sum(active_tenure_months) / len(active_tenure_months)
        if avg_tenure >= config.rsi_tenure_long_months:
            score += config.rsi_tenure_long_bonus
        elif avg_tenure >= config.rsi_tenure_mid_months:
            score += config.rsi_tenure_mid_bonus
        elif avg_tenure < config.rsi_tenure_short_months:
            score += config.rsi_tenure_short_penalty

    if new_member_count > 0 and active_start_of_month > 0:
        if new_member_count / active_start_of_month > config.rsi_growth_threshold:
            score += config.rsi_growth_bonus

    return max(0, min(100, round(score)))


def compute_res(
    mrr: float,
    active_member_count: int,
    arm: float,
    config: ScoringConfig = SCORING_CONFIG,
) -> float:
    score = (
        _tier_points(arm, config.res_arm_tiers, config.res_arm_floor)
        + _tier_points(active_member_count, config.res_member_tiers, config.res_member_floor)
        + _tier_points(mrr, config.res_mrr_tiers, config.res_mrr_floor)
    )
    return float(min(100, score))


def compute_ltv(arm: float, churn_rate: float, config: ScoringConfig = SCORING_CONFIG) -> float:
    churn_decimal = churn_rate / 100 if churn_rate > 0 else config.default_churn_decimal
    return arm * (1 / churn_decimal)


def compute_ltve_impact(arm: float, churn_rate: float, config: ScoringConfig = SCORING_CONFIG) -> float:
    """Annualized LTV gain from cutting churn by exactly one percentage point."""
    if churn_rate <= 0 or arm <= 0:
        return 0.0
    current_decimal = churn_rate / 100
    if current_decimal <= 0.01:
        return 0.0
    reduced_decimal = (churn_rate - 1) / 100

    current_ltv = arm / current_decimal
    improved_ltv = arm / reduced_decimal if reduced_decimal > 0 else arm * config.ltv_improved_ceiling_multiple
    return (improved_ltv - current_ltv) * 12


def compute_risk_count(
    join_dates: Iterable[date],
    as_of: date,
    config: ScoringConfig = SCORING_CONFIG,
) -> int:
    """Active members whose tenure is within the risk window as of `as_of`."""
    return sum(
        1 for joined in join_dates
        if calendar_months_between(joined, as_of) <= config.risk_window_months
    )


def churn_trend(churn_rates: List[float], delta: Optional[float] = None) -> str:
    """'rising' | 'improving' | 'stable' from oldest to newest of up to 3 rates."""
    delta = SCORING_CONFIG.churn_trend_delta if delta is None else delta
    recent = churn_rates[-3:]
    if len(recent) < 2:
        return "stable"
    change = recent[-1] - recent[0]
    if change > delta:
        return "rising"
    if change < -delta:
        return "improving"
    return "stable"

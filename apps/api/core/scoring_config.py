"""
Scoring Configuration

Every hand-tuned constant used by the metrics, risk, brief and learning
engines lives here, under one version string. Changing a threshold means
changing this file (or overriding via SCORING_* environment variables),
so behaviour changes are diffable and can be A/B tested by version.
"""
from typing import Dict, List, Tuple

from pydantic_settings import BaseSettings, SettingsConfigDict


INTERVENTION_TYPES = (
    "onboarding-acceleration",
    "personal-outreach",
    "win-back",
    "coach-connection",
    "goal-setting",
    "community-integration",
    "milestone-celebration",
    "pricing-review",
)


class ScoringConfig(BaseSettings):
    """Versioned scoring constants."""

    model_config = SettingsConfigDict(
        env_prefix="SCORING_",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    version: str = "2024.10"

    # ------------------------------------------------------------------
    # Retention Stability Index
    # ------------------------------------------------------------------
    # (threshold, delta, inclusive): first matching tier wins.
    # The 5% tier is inclusive so that exactly 5.0% lands in it.
    rsi_churn_tiers: List[Tuple[float, int, bool]] = [
        (10.0, -40, False),
        (7.0, -25, False),
        (5.0, -15, True),
        (3.0, -5, False),
    ]
    rsi_early_churn_tiers: List[Tuple[float, int]] = [(0.10, -15), (0.05, -8)]
    rsi_tenure_long_months: float = 12
    rsi_tenure_long_bonus: int = 10
    rsi_tenure_mid_months: float = 6
    rsi_tenure_mid_bonus: int = 5
    rsi_tenure_short_months: float = 3
    rsi_tenure_short_penalty: int = -10
    rsi_growth_threshold: float = 0.05
    rsi_growth_bonus: int = 5

    # ------------------------------------------------------------------
    # Revenue stability score (threshold, points), ">=" comparisons
    # ------------------------------------------------------------------
    res_arm_tiers: List[Tuple[float, int]] = [(150, 40), (100, 30), (75, 20)]
    res_arm_floor: int = 10
    res_member_tiers: List[Tuple[float, int]] = [(200, 30), (100, 25), (50, 20), (20, 15)]
    res_member_floor: int = 5
    res_mrr_tiers: List[Tuple[float, int]] = [(30000, 30), (15000, 25), (5000, 15)]
    res_mrr_floor: int = 5

    # LTV
    default_churn_decimal: float = 0.05
    ltv_improved_ceiling_multiple: float = 100.0
    risk_window_months: int = 2

    # ------------------------------------------------------------------
    # Member churn probability
    # ------------------------------------------------------------------
    risk_base_probability: float = 0.03
    risk_probability_floor: float = 0.01
    risk_probability_ceiling: float = 0.95

    # (max tenure days, impact), evaluated in order, first match wins
    tenure_bands: List[Tuple[int, float]] = [
        (14, 0.34),
        (30, 0.27),
        (60, 0.21),
        (90, 0.14),
        (180, 0.08),
        (270, 0.05),
        (365, 0.03),
    ]

    never_contacted_early_days: int = 60
    never_contacted_early_impact: float = 0.20
    never_contacted_mid_days: int = 180
    never_contacted_mid_impact: float = 0.10
    contact_gap_critical_days: int = 30
    contact_gap_critical_window: int = 90
    contact_gap_critical_impact: float = 0.15
    contact_gap_general_days: int = 60
    contact_gap_general_impact: float = 0.08
    recent_contact_days: int = 14
    recent_contact_impact: float = -0.06

    gym_churn_high: float = 7.0
    gym_churn_high_impact: float = 0.06
    gym_churn_elevated: float = 5.0
    gym_churn_elevated_impact: float = 0.03

    below_rate_ratio: float = 0.7
    below_rate_impact: float = 0.04

    cancel_window_multiplier: float = 1.2
    cancel_window_early_share: float = 0.4
    cancel_window_impact: float = 0.05
    default_median_cancel_tenure: int = 60
    default_early_cancel_share: float = 0.5

    high_value_quantile: float = 0.2
    high_value_min_tenure: int = 90
    high_value_impact: float = -0.03

    loyalty_min_tenure: int = 365
    loyalty_impact: float = -0.05

    onboarding_window_days: int = 90
    contact_stale_days: int = 60
    urgency_onboarding_weight: float = 0.55
    urgency_decay_threshold: float = 0.5
    urgency_decay_max_impact: float = 0.08

    default_gym_churn: float = 5.0

    # Engagement classes
    core_max_probability: float = 0.15
    core_min_tenure: int = 90
    drifter_max_probability: float = 0.30
    at_risk_max_probability: float = 0.55

    expected_months_cap: float = 60
    revenue_at_risk_months_cap: float = 12
    monthly_probability_cap: float = 0.5

    # ------------------------------------------------------------------
    # Gym archetypes
    # ------------------------------------------------------------------
    archetype_turnaround_churn: float = 7.0
    archetype_premium_arm: float = 175.0
    archetype_community_churn: float = 4.0

    # ------------------------------------------------------------------
    # Intervention prioritization
    # ------------------------------------------------------------------
    intervention_base_churn_delta: Dict[str, float] = {
        "onboarding-acceleration": 0.12,
        "personal-outreach": 0.09,
        "win-back": 0.07,
        "coach-connection": 0.10,
        "goal-setting": 0.06,
        "community-integration": 0.05,
        "milestone-celebration": 0.03,
        "pricing-review": 0.04,
    }
    intervention_confidence: Dict[str, float] = {
        "onboarding-acceleration": 0.75,
        "personal-outreach": 0.70,
        "win-back": 0.45,
        "coach-connection": 0.70,
        "goal-setting": 0.65,
        "community-integration": 0.60,
        "milestone-celebration": 0.55,
        "pricing-review": 0.50,
    }
    # Fit multiplier applied when the intervention does not suit the member.
    intervention_misfit_multiplier: float = 0.3
    archetype_intervention_multipliers: Dict[str, Dict[str, float]] = {
        "turnaround-lab": {"win-back": 1.15, "personal-outreach": 1.15, "pricing-review": 0.85},
        "premium-boutique": {"personal-outreach": 1.1, "coach-connection": 1.1, "pricing-review": 0.8},
        "community-anchor": {"community-integration": 1.15, "milestone-celebration": 1.15},
        "growth-accelerator": {"onboarding-acceleration": 1.15, "coach-connection": 1.1},
    }
    urgency_multipliers: Dict[str, float] = {
        "immediate": 1.5,
        "this-week": 1.25,
        "this-month": 1.0,
        "monitor": 0.8,
    }
    high_value_weight: float = 1.2
    recent_intervention_days: int = 30
    recent_intervention_penalty: float = 0.7
    stale_outreach_days: int = 30
    stale_outreach_boost: float = 1.1
    intervention_confidence_cap: float = 0.95
    prioritized_intervention_count: int = 3

    # Learned feedback -> ranking weight
    feedback_impact_scale: float = 1000.0
    feedback_weight_min: float = 0.8
    feedback_weight_max: float = 1.25

    # ------------------------------------------------------------------
    # Strategic brief
    # ------------------------------------------------------------------
    brief_template_confidence: Dict[str, float] = {
        "early-onboarding-rescue": 0.80,
        "belonging-gap-milestones": 0.70,
        "at-risk-outreach-sprint": 0.75,
        "churn-system-overhaul": 0.60,
        "referral-program": 0.65,
        "bring-a-friend-week": 0.60,
        "open-season-guest-funnel": 0.70,
        "community-event-series": 0.65,
        "veteran-mentor-roles": 0.60,
        "milestone-celebrations": 0.55,
        "specialty-seminar-series": 0.60,
        "coaching-development": 0.60,
        "culture-standards": 0.55,
    }
    trend_urgency: Dict[str, Dict[str, float]] = {
        "rising": {"Retention": 1.3, "Coaching Quality": 1.15, "Community Depth": 1.1, "Acquisition": 0.85},
        "stable": {"Retention": 1.0, "Coaching Quality": 1.0, "Community Depth": 1.0, "Acquisition": 1.0},
        "improving": {"Retention": 0.9, "Coaching Quality": 0.95, "Community Depth": 1.0, "Acquisition": 1.15},
    }
    churn_trend_delta: float = 1.0
    open_season_months: List[int] = [1, 2, 3, 4]
    open_season_community_urgency: float = 1.4
    roi_success_rate: float = 0.3
    roi_min_probability: float = 0.25
    roi_max_probability: float = 0.7
    cohort_alert_survival_pct: float = 60.0
    cohort_alert_min_joined: int = 3

    # ------------------------------------------------------------------
    # Learning loop
    # ------------------------------------------------------------------
    evaluation_windows: List[int] = [30, 60, 90]
    min_execution_strength: float = 0.6
    impact_weight_mrr: float = 0.65
    impact_weight_members: float = 35.0
    impact_weight_churn: float = 120.0
    overlap_weights: Dict[int, float] = {1: 1.0, 2: 0.7, 3: 0.5}
    gym_learning_rate: float = 0.06
    global_learning_rate: float = 0.03
    confidence_gain_rate: float = 0.03
    initial_confidence: float = 0.1
    initial_confidence_cap: float = 0.4
    confidence_cap: float = 0.99
    quality_roster_divisor: float = 100.0
    quality_weight_floor: float = 0.2


# Global config instance
SCORING_CONFIG = ScoringConfig()

"""
Clinical Decision Layer

Triage classification, critical-indicator detection and glucose trend
analysis over patient records.

Usage:
    from posyandu.core.clinical import classify, generate_recommendation

    category = classify(exam, test)
    text = generate_recommendation(exam, test, category)
"""
from .base import (
    RiskCategory,
    TrendDirection,
    GlucoseCategory,
    CriticalIndicatorReport,
    TrendReport,
)
from .categories import categorize_glucose, categorize_bmi
from .risk_classifier import classify, generate_recommendation, count_factors
from .critical_indicators import evaluate_critical_indicators, detect_critical_indicators
from .trend import compute_trend, analyze_trend, trend_direction, generate_trend_recommendation
from .engine import HealthRiskEngine

__all__ = [
    "RiskCategory",
    "TrendDirection",
    "GlucoseCategory",
    "CriticalIndicatorReport",
    "TrendReport",
    "categorize_glucose",
    "categorize_bmi",
    "classify",
    "generate_recommendation",
    "count_factors",
    "evaluate_critical_indicators",
    "detect_critical_indicators",
    "compute_trend",
    "analyze_trend",
    "trend_direction",
    "generate_trend_recommendation",
    "HealthRiskEngine",
]

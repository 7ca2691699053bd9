"""
Display categorizers for single readings.

Used by every listing path (tests, assessments, exams) and by the trend
recommendation, so each band is defined exactly once.
"""
from __future__ import annotations

from typing import Optional

from .base import GlucoseCategory
from .thresholds import BMI, GLUCOSE


def categorize_glucose(value: Optional[float]) -> GlucoseCategory:
    """Map one glucose reading (mg/dL) to its display band."""
    if value is None:
        return GlucoseCategory.UNMEASURED
    if value < GLUCOSE.hypoglycemia:
        return GlucoseCategory.LOW
    if value <= GLUCOSE.normal_fasting_max:
        return GlucoseCategory.NORMAL_FASTING
    if value <= GLUCOSE.prediabetes_max:
        return GlucoseCategory.PREDIABETES
    if value <= GLUCOSE.mild_diabetes_max:
        return GlucoseCategory.MILD_DIABETES
    if value <= GLUCOSE.moderate_diabetes_max:
        return GlucoseCategory.MODERATE_DIABETES
    return GlucoseCategory.SEVERE_DIABETES


def categorize_bmi(bmi: Optional[float]) -> Optional[str]:
    if bmi is None:
        return None
    if bmi < BMI.underweight:
        return "underweight"
    if bmi < BMI.overweight:
        return "normal"
    if bmi < BMI.obese:
        return "overweight"
    return "obese"

"""
Triage Risk Classifier

Turns the latest physical exam and/or lab test into a triage category
and a recommendation string.

Rules (each adds to risk and/or critical counters independently):
    BMI      — risk  < 18.5 or > 30      critical < 16 or > 35
    BP       — risk  ≥ 140/90            critical ≥ 160/100
               risk  < 90/60             critical < 70/40
    Glucose  — risk  ≥ 126               critical ≥ 200
               risk  < 70                critical < 50

Decision: any critical factor → refer; any risk factor → needs_attention;
otherwise normal. A single reading may count as both risk and critical.
"""
from __future__ import annotations

from typing import List, Optional, Tuple

from posyandu.core.storage.models import AdvancedTest, PhysicalExam
from . import messages
from .base import RiskCategory
from .thresholds import BLOOD_PRESSURE as BP, BMI, GLUCOSE


# ── Helpers ───────────────────────────────────────────────────────────────────

def _hypertensive(exam: PhysicalExam) -> bool:
    return exam.systolic >= BP.stage1_systolic or exam.diastolic >= BP.stage1_diastolic


def _hypertensive_stage2(exam: PhysicalExam) -> bool:
    return exam.systolic >= BP.stage2_systolic or exam.diastolic >= BP.stage2_diastolic


def _hypotensive(exam: PhysicalExam) -> bool:
    return exam.systolic < BP.low_systolic or exam.diastolic < BP.low_diastolic


def _glucose(test: Optional[AdvancedTest]) -> Optional[float]:
    return test.blood_glucose_mgdl if test is not None else None


def count_factors(
    exam: Optional[PhysicalExam] = None,
    test: Optional[AdvancedTest] = None,
) -> Tuple[int, int]:
    """Return (risk_factors, critical_factors) for the given readings."""
    risk = 0
    critical = 0

    bmi = exam.bmi if exam is not None else None
    if bmi is not None:
        if bmi < BMI.underweight or bmi > BMI.obese:
            risk += 1
        if bmi < BMI.severe_underweight or bmi > BMI.severe_obese:
            critical += 1

    if exam is not None and exam.has_blood_pressure:
        if _hypertensive(exam):
            risk += 1
        if _hypertensive_stage2(exam):
            critical += 1
        if _hypotensive(exam):
            risk += 1
        if exam.systolic < BP.severe_low_systolic or exam.diastolic < BP.severe_low_diastolic:
            critical += 1

    glucose = _glucose(test)
    if glucose is not None:
        if glucose >= GLUCOSE.diabetes:
            risk += 1
        if glucose >= GLUCOSE.uncontrolled_diabetes:
            critical += 1
        if glucose < GLUCOSE.hypoglycemia:
            risk += 1
        if glucose < GLUCOSE.severe_hypoglycemia:
            critical += 1

    return risk, critical


def classify(
    exam: Optional[PhysicalExam] = None,
    test: Optional[AdvancedTest] = None,
) -> RiskCategory:
    """
    Triage category for the given readings.

    With no exam and no test there is nothing out of range, so the
    result is NORMAL.
    """
    risk, critical = count_factors(exam, test)
    if critical > 0:
        return RiskCategory.REFER
    if risk >= 1:
        return RiskCategory.NEEDS_ATTENTION
    return RiskCategory.NORMAL


def recommendation_fragments(
    exam: Optional[PhysicalExam],
    test: Optional[AdvancedTest],
    category: RiskCategory,
) -> List[str]:
    """Ordered fragments: BMI, blood pressure, glucose, then category advice."""
    fragments: List[str] = []

    bmi = exam.bmi if exam is not None else None
    if bmi is not None:
        if bmi < BMI.underweight:
            fragments.append(messages.BMI_UNDERWEIGHT)
        elif bmi > BMI.overweight:
            fragments.append(messages.BMI_OVERWEIGHT)

    if exam is not None and exam.has_blood_pressure:
        if _hypertensive(exam):
            fragments.append(messages.BP_HIGH)
            if _hypertensive_stage2(exam):
                fragments.append(messages.BP_HIGH_URGENT)
        if _hypotensive(exam):
            fragments.append(messages.BP_LOW)

    glucose = _glucose(test)
    if glucose is not None:
        if glucose >= GLUCOSE.diabetes:
            fragments.append(messages.GLUCOSE_HIGH)
            if glucose >= GLUCOSE.uncontrolled_diabetes:
                fragments.append(messages.GLUCOSE_HIGH_URGENT)
        if glucose < GLUCOSE.hypoglycemia:
            fragments.append(messages.GLUCOSE_LOW)

    fragments.extend(messages.CATEGORY_ADVICE[RiskCategory(category)])
    return fragments


def generate_recommendation(
    exam: Optional[PhysicalExam],
    test: Optional[AdvancedTest],
    category: RiskCategory,
) -> str:
    """Human-readable recommendation, fragments joined with '. '."""
    return messages.FRAGMENT_SEPARATOR.join(recommendation_fragments(exam, test, category))

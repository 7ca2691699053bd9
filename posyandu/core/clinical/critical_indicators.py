"""
Critical Indicator Detection

Finer-grained emergency ladder used by the referral workflow. Runs on the
patient's single most recent exam and single most recent test, which
need not come from the same visit.

Ladder (first match within each group):
    Blood pressure  — crisis ≥ 180/110, else stage-2 ≥ 160/100
    Hypotension     — systolic ≤ 90 AND diastolic ≤ 60
    BMI             — < 18.5 underweight, else ≥ 30 obesity
    Waist           — ≥ 102 abdominal obesity, else ≥ 88 high metabolic risk
    Glucose         — ≥ 400, else ≥ 300, else ≥ 200, else ≤ 70

The waist cutoffs are the male and female values but no sex field is
consulted; both apply to every patient.
"""
from __future__ import annotations

from typing import List, Optional, Tuple

from posyandu.core.storage.models import AdvancedTest, PhysicalExam
from posyandu.utils import get_logger
from . import messages
from .base import CriticalIndicatorReport
from .thresholds import BLOOD_PRESSURE as BP, BMI, GLUCOSE, WAIST

logger = get_logger(__name__)

Finding = Tuple[str, str]


def _at_least(value: Optional[float], threshold: float) -> bool:
    return value is not None and value >= threshold


# ── Rule groups ───────────────────────────────────────────────────────────────

def _blood_pressure_findings(exam: PhysicalExam) -> List[Finding]:
    findings: List[Finding] = []

    if _at_least(exam.systolic, BP.crisis_systolic) or _at_least(exam.diastolic, BP.crisis_diastolic):
        findings.append(messages.HYPERTENSION_CRISIS)
    elif _at_least(exam.systolic, BP.stage2_systolic) or _at_least(exam.diastolic, BP.stage2_diastolic):
        findings.append(messages.STAGE2_HYPERTENSION)

    if exam.has_blood_pressure and \
       exam.systolic <= BP.low_systolic and exam.diastolic <= BP.low_diastolic:
        findings.append(messages.HYPOTENSION)

    return findings


def _body_composition_findings(exam: PhysicalExam) -> List[Finding]:
    findings: List[Finding] = []

    bmi = exam.bmi
    if bmi is not None:
        if bmi < BMI.underweight:
            findings.append(messages.UNDERWEIGHT)
        elif bmi >= BMI.obese:
            findings.append(messages.OBESITY)

    if _at_least(exam.waist_cm, WAIST.abdominal_obesity):
        findings.append(messages.ABDOMINAL_OBESITY)
    elif _at_least(exam.waist_cm, WAIST.high_metabolic_risk):
        findings.append(messages.HIGH_METABOLIC_RISK)

    return findings


def _glucose_findings(test: AdvancedTest) -> List[Finding]:
    glucose = test.blood_glucose_mgdl
    if glucose is None:
        return []
    if glucose >= GLUCOSE.severe_hyperglycemia:
        return [messages.SEVERE_HYPERGLYCEMIA]
    if glucose >= GLUCOSE.hyperglycemia:
        return [messages.HYPERGLYCEMIA]
    if glucose >= GLUCOSE.uncontrolled_diabetes:
        return [messages.DIABETES_MELLITUS]
    if glucose <= GLUCOSE.hypoglycemia:
        return [messages.HYPOGLYCEMIA]
    return []


# ── Public API ────────────────────────────────────────────────────────────────

def evaluate_critical_indicators(
    exam: Optional[PhysicalExam] = None,
    test: Optional[AdvancedTest] = None,
) -> CriticalIndicatorReport:
    """Pure evaluation of already-fetched readings."""
    report = CriticalIndicatorReport()

    findings: List[Finding] = []
    if exam is not None:
        findings.extend(_blood_pressure_findings(exam))
        findings.extend(_body_composition_findings(exam))
    if test is not None:
        findings.extend(_glucose_findings(test))

    for label, recommendation in findings:
        report.indicators.append(label)
        report.recommendations.append(recommendation)

    report.has_critical = len(report.indicators) > 0
    return report


def detect_critical_indicators(patient_id: int, store) -> CriticalIndicatorReport:
    """
    Fetch the latest exam and test for a patient and evaluate them.

    Never raises: a store failure yields an empty report carrying an
    `error` message.
    """
    try:
        exam = store.fetch_latest_physical_exam(patient_id)
        test = store.fetch_latest_advanced_test(patient_id)
        report = evaluate_critical_indicators(exam, test)
    except Exception as exc:
        logger.error(
            f"Critical indicator detection failed for patient {patient_id}: {exc}",
            exc_info=True
        )
        return CriticalIndicatorReport(error=messages.CRITICAL_DETECTION_FAILED)

    if report.has_critical:
        logger.info(
            f"Patient {patient_id}: {len(report.indicators)} critical indicator(s): "
            + ", ".join(report.indicators)
        )
    return report

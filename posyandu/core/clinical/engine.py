"""
Health Risk Engine

Binds the pure clinical functions to a record store so HTTP handlers
need a single collaborator.

Usage:
    from posyandu.core.clinical import HealthRiskEngine

    engine = HealthRiskEngine(store)
    category, recommendation = engine.assess(exam, test)
    report = engine.detect_critical_indicators(patient_id)
    trend = engine.analyze_trend(patient_id)
"""
from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from posyandu.core.storage.models import AdvancedTest, PhysicalExam
from posyandu.core.storage.repository import RecordStore
from .base import CriticalIndicatorReport, RiskCategory, TrendReport
from .critical_indicators import detect_critical_indicators
from .risk_classifier import classify, generate_recommendation
from .trend import analyze_trend


class HealthRiskEngine:
    """
    Stateless facade over the classifier, detector and trend analyzer.

    Holds only a reference to the store; safe to share across requests.
    """

    def __init__(self, store: RecordStore):
        self.store = store

    @staticmethod
    def classify(
        exam: Optional[PhysicalExam] = None,
        test: Optional[AdvancedTest] = None,
    ) -> RiskCategory:
        return classify(exam, test)

    @staticmethod
    def generate_recommendation(
        exam: Optional[PhysicalExam],
        test: Optional[AdvancedTest],
        category: RiskCategory,
    ) -> str:
        return generate_recommendation(exam, test, category)

    def assess(
        self,
        exam: Optional[PhysicalExam] = None,
        test: Optional[AdvancedTest] = None,
    ) -> Tuple[RiskCategory, str]:
        """Category plus the recommendation generated for it."""
        category = classify(exam, test)
        return category, generate_recommendation(exam, test, category)

    def detect_critical_indicators(self, patient_id: int) -> CriticalIndicatorReport:
        return detect_critical_indicators(patient_id, self.store)

    def analyze_trend(self, patient_id: int) -> TrendReport:
        return analyze_trend(patient_id, self.store)

    def patients_with_critical_indicators(self, patient_ids: List[int]) -> Dict[int, CriticalIndicatorReport]:
        """Critical reports for the given patients, keeping only those that fired."""
        reports = {pid: self.detect_critical_indicators(pid) for pid in patient_ids}
        return {pid: r for pid, r in reports.items() if r.has_critical}

"""
Clinical Decision Layer — Base Types

Output contracts of the risk classifier, the critical-indicator detector
and the trend analyzer. All of them are built fresh per call and are
never persisted by the clinical layer itself.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from posyandu.core.storage.models import AdvancedTest


class RiskCategory(str, Enum):
    """
    Triage category of a health assessment.

    REFER           – at least one emergency-level reading
    NEEDS_ATTENTION – at least one out-of-range reading
    NORMAL          – nothing out of range
    """
    NORMAL          = "normal"
    NEEDS_ATTENTION = "needs_attention"
    REFER           = "refer"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    RiskCategory.NORMAL:          0,
    RiskCategory.NEEDS_ATTENTION: 1,
    RiskCategory.REFER:           2,
}


class TrendDirection(str, Enum):
    """Direction of recent change in a patient's glucose history."""
    NO_DATA       = "no_data"
    STABLE        = "stable"
    RISING        = "rising"
    FALLING       = "falling"
    RISING_SHARP  = "rising_sharp"
    FALLING_SHARP = "falling_sharp"
    ERROR         = "error"


class GlucoseCategory(str, Enum):
    """Display band of a single glucose reading (mg/dL)."""
    UNMEASURED        = "unmeasured"
    LOW               = "low"
    NORMAL_FASTING    = "normal_fasting"
    PREDIABETES       = "prediabetes"
    MILD_DIABETES     = "mild_diabetes"
    MODERATE_DIABETES = "moderate_diabetes"
    SEVERE_DIABETES   = "severe_diabetes"


@dataclass
class CriticalIndicatorReport:
    """
    Emergency-level findings for one patient.

    `indicators` and `recommendations` share insertion order but are not
    guaranteed to be the same length.
    """
    has_critical: bool = False
    indicators: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "has_critical": self.has_critical,
            "indicators": list(self.indicators),
            "recommendations": list(self.recommendations),
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class TrendReport:
    """Summary of a patient's blood-glucose history."""
    sample_count: int
    trend: TrendDirection
    recommendation: str
    mean: Optional[float] = None
    max: Optional[float] = None
    min: Optional[float] = None
    last_sample: Optional[AdvancedTest] = None
    last_delta: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "sample_count": self.sample_count,
            "trend": self.trend.value,
            "mean": self.mean,
            "max": self.max,
            "min": self.min,
            "last_sample": self.last_sample.to_dict() if self.last_sample else None,
            "last_delta": self.last_delta,
            "recommendation": self.recommendation,
        }

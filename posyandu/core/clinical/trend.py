"""
Blood Glucose Trend Analysis

Summarises a patient's glucose history (oldest first) into mean/min/max,
a direction label and a recommendation.

Direction rules:
    ≥ 3 samples — last three [a, b, c]: both steps > +5 rising, both < -5
                  falling, else |c - b| > 20 sharp by sign, else stable
    2 samples   — |delta| > 20 sharp by sign, > +5 rising, < -5 falling,
                  else stable
    1 sample    — stable
"""
from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np

from posyandu.core.storage.models import AdvancedTest
from posyandu.utils import get_logger
from . import messages
from .base import TrendDirection, TrendReport
from .categories import categorize_glucose
from .thresholds import GLUCOSE, TREND

logger = get_logger(__name__)


def _sharp(delta: float) -> TrendDirection:
    return TrendDirection.RISING_SHARP if delta > 0 else TrendDirection.FALLING_SHARP


def trend_direction(values: Sequence[float]) -> TrendDirection:
    """Direction label for an oldest-first sequence of readings."""
    if len(values) == 0:
        return TrendDirection.NO_DATA
    if len(values) == 1:
        return TrendDirection.STABLE

    last_delta = values[-1] - values[-2]

    if len(values) >= 3:
        a, b, c = values[-3:]
        d1, d2 = b - a, c - b
        if d1 > TREND.step and d2 > TREND.step:
            return TrendDirection.RISING
        if d1 < -TREND.step and d2 < -TREND.step:
            return TrendDirection.FALLING
        if abs(last_delta) > TREND.sharp:
            return _sharp(last_delta)
        return TrendDirection.STABLE

    if abs(last_delta) > TREND.sharp:
        return _sharp(last_delta)
    if last_delta > TREND.step:
        return TrendDirection.RISING
    if last_delta < -TREND.step:
        return TrendDirection.FALLING
    return TrendDirection.STABLE


def generate_trend_recommendation(
    mean: float,
    maximum: float,
    trend: TrendDirection,
    last_sample: AdvancedTest,
) -> str:
    """
    Level advice for the latest reading, then trend advice (none when
    stable), then a consultation reminder when the mean exceeds 140.

    Args:
        mean: Mean glucose over all samples
        maximum: Highest sample; does not affect the text
        trend: Direction label from trend_direction()
        last_sample: Most recent test, used for the level advice
    """
    fragments: List[str] = []

    level = categorize_glucose(last_sample.blood_glucose_mgdl)
    if level in messages.GLUCOSE_LEVEL_ADVICE:
        fragments.append(messages.GLUCOSE_LEVEL_ADVICE[level])

    if trend in messages.TREND_ADVICE:
        fragments.append(messages.TREND_ADVICE[trend])

    if mean > GLUCOSE.high_mean:
        fragments.append(messages.HIGH_MEAN_ADVICE)

    return messages.FRAGMENT_SEPARATOR.join(fragments)


def compute_trend(samples: Sequence[AdvancedTest]) -> TrendReport:
    """Pure trend computation over oldest-first samples with glucose values."""
    if not samples:
        return TrendReport(
            sample_count=0,
            trend=TrendDirection.NO_DATA,
            recommendation=messages.TREND_NO_DATA,
        )

    values = np.array([float(s.blood_glucose_mgdl) for s in samples], dtype=float)
    mean = float(np.mean(values))
    maximum = float(np.max(values))
    minimum = float(np.min(values))

    last_delta: Optional[float] = None
    if len(values) >= 2:
        last_delta = round(float(values[-1] - values[-2]), 2)

    trend = trend_direction(values.tolist())
    last_sample = samples[-1]

    return TrendReport(
        sample_count=len(samples),
        trend=trend,
        mean=round(mean, 2),
        max=maximum,
        min=minimum,
        last_sample=last_sample,
        last_delta=last_delta,
        recommendation=generate_trend_recommendation(mean, maximum, trend, last_sample),
    )


def analyze_trend(patient_id: int, store) -> TrendReport:
    """
    Fetch a patient's glucose history and summarise it.

    Never raises: any failure yields the `error` sentinel report.
    """
    try:
        samples = store.fetch_advanced_tests_ordered(patient_id)
        report = compute_trend(samples)
    except Exception as exc:
        logger.error(f"Trend analysis failed for patient {patient_id}: {exc}", exc_info=True)
        return TrendReport(
            sample_count=0,
            trend=TrendDirection.ERROR,
            recommendation=messages.TREND_FAILED,
        )

    logger.debug(
        f"Patient {patient_id}: trend={report.trend.value} over {report.sample_count} sample(s)"
    )
    return report

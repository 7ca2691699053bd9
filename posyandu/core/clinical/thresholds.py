"""
Clinical Thresholds

One table per metric, shared by the triage classifier, the
critical-indicator detector, the trend analyzer and the display
categorizers. The consumers deliberately read different rows of the
same table: triage uses the coarse two-tier cutoffs, the detector uses
the finer emergency ladder.

Units: BMI kg/m², blood pressure mmHg, waist cm, glucose mg/dL.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BMIThresholds:
    underweight: float = 18.5          # risk below (triage), indicator below (detector)
    overweight: float = 25.0           # weight-loss advice above
    obese: float = 30.0                # risk above (triage), indicator at/above (detector)
    severe_underweight: float = 16.0   # critical below (triage)
    severe_obese: float = 35.0         # critical above (triage)


@dataclass(frozen=True)
class BloodPressureThresholds:
    # Triage
    stage1_systolic: int = 140
    stage1_diastolic: int = 90
    stage2_systolic: int = 160         # also "Stage-2 Hypertension" indicator
    stage2_diastolic: int = 100
    low_systolic: int = 90             # hypotension risk below; indicator at/below
    low_diastolic: int = 60
    severe_low_systolic: int = 70
    severe_low_diastolic: int = 40
    # Detector only
    crisis_systolic: int = 180
    crisis_diastolic: int = 110


@dataclass(frozen=True)
class WaistThresholds:
    # Male and female cutoffs, both applied regardless of sex
    abdominal_obesity: float = 102.0
    high_metabolic_risk: float = 88.0


@dataclass(frozen=True)
class GlucoseThresholds:
    # Triage
    hypoglycemia: float = 70.0         # risk below; indicator at/below; "low" band below
    severe_hypoglycemia: float = 50.0
    diabetes: float = 126.0
    uncontrolled_diabetes: float = 200.0   # also "Diabetes Mellitus" indicator
    # Detector only
    hyperglycemia: float = 300.0
    severe_hyperglycemia: float = 400.0
    # Display bands (upper bounds, inclusive)
    normal_fasting_max: float = 100.0
    prediabetes_max: float = 125.0
    mild_diabetes_max: float = 199.0
    moderate_diabetes_max: float = 300.0
    # Trend recommendation
    high_mean: float = 140.0


@dataclass(frozen=True)
class TrendThresholds:
    step: float = 5.0      # per-visit change counted as a direction
    sharp: float = 20.0    # single change counted as sharp


BMI = BMIThresholds()
BLOOD_PRESSURE = BloodPressureThresholds()
WAIST = WaistThresholds()
GLUCOSE = GlucoseThresholds()
TREND = TrendThresholds()

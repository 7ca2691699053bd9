"""
Recommendation and indicator text.

Kept apart from the rules so wording can be localised without touching
thresholds or ordering.
"""
from .base import GlucoseCategory, RiskCategory, TrendDirection

FRAGMENT_SEPARATOR = ". "

# ── Triage recommendations ───────────────────────────────────────────────
BMI_UNDERWEIGHT = "Increase body weight with a nutritious diet"
BMI_OVERWEIGHT = "Lose weight through a balanced diet and light exercise"

BP_HIGH = "Check blood pressure regularly and reduce salt intake"
BP_HIGH_URGENT = "Consult a doctor promptly for hypertension management"
BP_LOW = "Monitor blood pressure and increase fluid intake"

GLUCOSE_HIGH = "Check blood glucose regularly and manage the diet"
GLUCOSE_HIGH_URGENT = "Consult a doctor promptly for diabetes management"
GLUCOSE_LOW = "Monitor blood glucose and eat at regular times"

CATEGORY_ADVICE = {
    RiskCategory.REFER: (
        "Refer promptly to a better-equipped health facility",
    ),
    RiskCategory.NEEDS_ATTENTION: (
        "More intensive health monitoring is needed",
        "Routine check-up every 2-4 weeks",
    ),
    RiskCategory.NORMAL: (
        "Maintain a healthy lifestyle",
        "Routine check-up every 3 months",
    ),
}

# ── Critical indicators: (label, recommendation) ─────────────────────────
HYPERTENSION_CRISIS = (
    "Hypertension Crisis",
    "Urgent referral to the community health centre for hypertensive crisis management",
)
STAGE2_HYPERTENSION = (
    "Stage-2 Hypertension",
    "Referral to the community health centre for hypertension evaluation and treatment",
)
HYPOTENSION = (
    "Hypotension",
    "Further evaluation of the cause of hypotension",
)
UNDERWEIGHT = (
    "Underweight",
    "Nutrition counselling to gain weight",
)
OBESITY = (
    "Obesity",
    "Referral to a weight management programme",
)
ABDOMINAL_OBESITY = (
    "Abdominal Obesity",
    "Referral for metabolic risk evaluation",
)
HIGH_METABOLIC_RISK = (
    "High Metabolic Risk",
    "Counselling for metabolic risk management",
)
SEVERE_HYPERGLYCEMIA = (
    "Severe Hyperglycemia",
    "IMMEDIATE referral to the community health centre for emergency diabetes care",
)
HYPERGLYCEMIA = (
    "Hyperglycemia",
    "Prompt referral to the community health centre for diabetes evaluation",
)
DIABETES_MELLITUS = (
    "Diabetes Mellitus",
    "Referral to the community health centre for diabetes confirmation and management",
)
HYPOGLYCEMIA = (
    "Hypoglycemia",
    "Immediate evaluation of the cause of hypoglycemia",
)

CRITICAL_DETECTION_FAILED = "Failed to detect critical health indicators"

# ── Trend analysis ───────────────────────────────────────────────────────
TREND_NO_DATA = "No advanced test data yet"
TREND_FAILED = "Failed to analyze trend"

GLUCOSE_LEVEL_ADVICE = {
    GlucoseCategory.LOW: "Low blood glucose - take a sweet food or drink right away and consult a doctor",
    GlucoseCategory.NORMAL_FASTING: "Normal blood glucose - maintain a healthy lifestyle",
    GlucoseCategory.PREDIABETES: "Prediabetes - lifestyle changes and routine monitoring needed",
    GlucoseCategory.MILD_DIABETES: "Mild diabetes - consult a doctor for diabetes management",
    GlucoseCategory.MODERATE_DIABETES: "Moderate diabetes - intensive medical management needed",
    GlucoseCategory.SEVERE_DIABETES: "Severe diabetes - refer to a specialist promptly",
}

TREND_ADVICE = {
    TrendDirection.RISING_SHARP: "Sharp upward trend - review diet and physical activity",
    TrendDirection.RISING: "Upward trend - watch carbohydrate intake and increase activity",
    TrendDirection.FALLING_SHARP: "Sharp downward trend - watch for possible hypoglycemia",
    TrendDirection.FALLING: "Downward trend - keep up the current healthy habits",
}

HIGH_MEAN_ADVICE = "High average blood glucose - regular consultation with a doctor needed"

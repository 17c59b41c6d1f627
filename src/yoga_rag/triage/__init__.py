"""
Triage Package

Query classification (intent review) and medical safety detection.
"""

from .models import QueryReview, SafetyCategory, SafetyDetection, SafetyRule
from .reviewer import IntentReviewer
from .rules import DEFAULT_SAFETY_RULES
from .safety import SafetyTriage

__all__ = [
    "QueryReview",
    "SafetyCategory",
    "SafetyDetection",
    "SafetyRule",
    "IntentReviewer",
    "DEFAULT_SAFETY_RULES",
    "SafetyTriage",
]

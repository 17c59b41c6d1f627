"""
Reference domain configuration for query triage.

Safety rules: match terms are lowercase substrings and deliberately include
common misspellings, so the keyword path over-flags rather than under-flags.
"""

from __future__ import annotations

import re
from typing import Final, Pattern, Tuple

from .models import SafetyRule

DEFAULT_SAFETY_RULES: Final[Tuple[SafetyRule, ...]] = (
    SafetyRule(
        category="pregnancy",
        description="Pregnancy, expecting, any trimester",
        match_terms=["pregnant", "pregnancy", "expecting", "trimester", "pregnent", "pregant", "prenatal"],
        warning_text="Pregnancy requires specialized yoga guidance.",
        recommendation_text=(
            "Consider prenatal yoga classes under expert supervision. Avoid inversions, deep twists, "
            "and abdominal compressions. Focus on gentle stretching, breathing exercises (pranayama), "
            "and modified poses suitable for your trimester."
        ),
    ),
    SafetyRule(
        category="cardiac",
        description="Heart disease, cardiac issues, heart attack, angina",
        match_terms=["heart disease", "cardiac", "heart attack", "angina", "heart condition", "hart disease"],
        warning_text="Heart conditions require medical supervision.",
        recommendation_text=(
            "Avoid strenuous poses, inversions, and intense breathing exercises. Practice gentle, "
            "restorative poses, relaxation techniques, and meditation only after consulting your cardiologist."
        ),
    ),
    SafetyRule(
        category="post_surgery",
        description="Recent surgery, post-operative recovery",
        match_terms=["surgery", "post-surgery", "post-operative", "operation", "surgry", "operaton"],
        warning_text="Post-surgical recovery requires medical clearance.",
        recommendation_text=(
            "Wait for complete healing and obtain clearance from your surgeon. Start with gentle breathing "
            "exercises and meditation only. Gradually introduce gentle movements under physiotherapist or "
            "yoga therapist guidance."
        ),
    ),
    SafetyRule(
        category="hernia",
        description="Hernia of any kind",
        match_terms=["hernia", "hurnia", "hernea"],
        warning_text="Hernia conditions require medical clearance before practicing yoga.",
        recommendation_text=(
            "Avoid poses involving abdominal pressure, forward bends, and inversions. Instead, practice gentle "
            "breathing exercises, meditation, and consult your doctor before attempting any physical poses."
        ),
    ),
    SafetyRule(
        category="glaucoma",
        description="Glaucoma, elevated eye pressure",
        match_terms=["glaucoma", "glucoma", "eye pressure", "ocular pressure"],
        warning_text="Glaucoma requires special precautions in yoga practice.",
        recommendation_text=(
            "Strictly avoid inversions like headstands, shoulder stands, and downward-facing dog as they "
            "increase intraocular pressure. Practice gentle seated poses, breathing exercises, and meditation "
            "with medical supervision."
        ),
    ),
    SafetyRule(
        category="hypertension",
        description="High blood pressure, hypertension",
        match_terms=["high blood pressure", "hypertension", "high bp", "blood pressure"],
        warning_text="High blood pressure requires careful pose selection.",
        recommendation_text=(
            "Avoid inversions, intense backbends, and breath retention practices. Practice gentle forward "
            "bends, restorative poses like Shavasana, and calming breathing techniques (like Anulom Vilom). "
            "Always practice under guidance."
        ),
    ),
    SafetyRule(
        category="epilepsy",
        description="Epilepsy, seizure disorders",
        match_terms=["epilepsy", "seizure", "epilepsi", "epileptic"],
        warning_text="Epilepsy requires specialized yoga approach.",
        recommendation_text=(
            "Avoid rapid breathing exercises (Bhastrika, Kapalbhati), intense practices, and inversions. "
            "Practice gentle, calming yoga with focus on relaxation, meditation, and slow breathing under "
            "medical supervision."
        ),
    ),
    SafetyRule(
        category="spinal",
        description="Spinal injuries, disc problems",
        match_terms=[
            "spinal injury", "spine injury", "back injury", "severe back", "disc prolapse",
            "slipped disc", "herniated disc", "spinal injurey",
        ],
        warning_text="Spinal injuries require expert guidance and medical clearance.",
        recommendation_text=(
            "Avoid forward bends, deep backbends, twists, and inversions. Practice only under supervision of "
            "a qualified yoga therapist or physiotherapist who can provide modified, therapeutic poses."
        ),
    ),
    SafetyRule(
        category="neck",
        description="Neck injuries, cervical issues",
        match_terms=["neck injury", "cervical", "neck pain", "severe neck", "cervicle"],
        warning_text="Neck injuries require careful practice.",
        recommendation_text=(
            "Avoid shoulder stands, headstands, plow pose, and deep neck rotations. Practice gentle neck "
            "stretches, supported poses, and breathing exercises under expert guidance."
        ),
    ),
    SafetyRule(
        category="osteoporosis",
        description="Osteoporosis, low bone density",
        match_terms=["osteoporosis", "bone density", "brittle bones", "osteoperosis"],
        warning_text="Osteoporosis requires modified practice to prevent fractures.",
        recommendation_text=(
            "Avoid forward bends, deep twists, and high-impact movements. Focus on gentle weight-bearing "
            "poses, balance exercises, and strengthening practices under qualified supervision."
        ),
    ),
)


# Checked against the trimmed raw query.
GREETING_PATTERNS: Final[Tuple[Pattern[str], ...]] = (
    re.compile(r"^(hi|hello|hey|howdy|greetings|namaste|good morning|good afternoon|good evening)[\s!?.,]*$", re.IGNORECASE),
    re.compile(r"^how are you", re.IGNORECASE),
    re.compile(r"^what('s| is) your name", re.IGNORECASE),
    re.compile(r"^who are you", re.IGNORECASE),
    re.compile(r"^(thanks|thank you|bye|goodbye|see you)", re.IGNORECASE),
    re.compile(r"^(ok|okay|yes|no|sure|alright)[\s!?.]*$", re.IGNORECASE),
)


DOMAIN_KEYWORDS: Final[Tuple[str, ...]] = (
    "yoga", "asana", "pose", "posture", "pranayama", "prana", "breathing", "breath",
    "meditation", "dhyana", "stretch", "flexibility", "mindfulness", "relaxation",
    "surya", "namaskar", "sun salutation", "shavasana", "savasana", "warrior",
    "downward", "upward", "cobra", "child pose", "tree pose", "balance", "core",
    "spine", "back pain", "chakra", "mudra", "mantra", "bandha", "kriya", "samadhi",
    "vinyasa", "hatha", "ashtanga", "iyengar", "kundalini", "bikram",
    "headstand", "sirsasana", "handstand", "inversion", "backbend", "forward bend",
    "twist", "hip opener", "nadi", "sutra", "patanjali", "ayurveda",
)

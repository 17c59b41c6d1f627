from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .triage.models import SafetyRule


CLASSIFIER_SYSTEM_PROMPT = """You are a precise query classification system for a Yoga Q&A application.
You must return ONLY valid JSON.
Do not include explanations, markdown, or extra text.
"""


def _category_lines(rules: Sequence["SafetyRule"]) -> str:
    return "\n".join(f"- {r.category}: {r.description}" for r in rules)


def build_review_prompt(query: str, rules: Sequence["SafetyRule"]) -> str:
    """
    Build the unified review prompt: topic relevance, safety and intent in
    one request.
    """
    return f"""
Analyze this user query for THREE things:

1. TOPIC RELEVANCE: Is it about yoga?
2. SAFETY: Does it mention a medical condition that requires professional guidance?
3. INTENT: What is the user trying to do?

USER QUERY: "{query}"

Yoga topics: poses/asanas (names, benefits, how-to), breathing exercises (pranayama),
meditation and mindfulness, yoga philosophy and traditions, physical health through yoga,
yoga for specific goals (back pain, stress, flexibility), yoga styles, yogic lifestyle and Ayurveda.
Not yoga: greetings, weather, cooking, math, programming, other sports.

Medical condition categories (use these exact keys):
{_category_lines(rules)}

Return a JSON object with this exact structure:

{{
  "is_topic_relevant": true,
  "is_unsafe": false,
  "intent": "answerable" | "greeting" | "off_topic" | "unsafe",
  "detected_categories": [],
  "confidence": 0.0,
  "reason": "brief explanation"
}}

Rules:
- Output ONLY JSON
- No markdown
- No trailing text
- Greeting or closing only: intent="greeting"
- Not about yoga: intent="off_topic"
- Mentions a listed medical condition: is_unsafe=true, intent="unsafe", list its category keys
- Safe yoga question: intent="answerable"
- confidence is a number between 0 and 1
""".strip()


def build_safety_prompt(query: str, rules: Sequence["SafetyRule"]) -> str:
    """
    Build the standalone safety classification prompt.
    """
    return f"""
Decide whether this yoga question mentions a medical condition that requires
professional guidance before practicing.

USER QUERY: "{query}"

Medical condition categories (use these exact keys):
{_category_lines(rules)}

Return a JSON object with this exact structure:

{{
  "is_unsafe": false,
  "categories": [],
  "rationale": "brief explanation"
}}

Rules:
- Output ONLY JSON
- No markdown
- No trailing text
- is_unsafe is true exactly when categories is non-empty
""".strip()


ANSWER_SYSTEM_PROMPT = """You are a yoga information system. Provide structured, factual responses using the EXACT format below.

MANDATORY RESPONSE FORMAT:

## Overview
[1-2 sentence direct answer to the question]

## Key Information
• [Fact 1]
• [Fact 2]
• [Fact 3]

## Benefits (if applicable)
• [Benefit 1]
• [Benefit 2]
• [Benefit 3]

## Precautions
⚠️ [Safety point 1]
⚠️ [Safety point 2]

STRICT RULES:
- Use ONLY information present in the knowledge base context
- If the context does not cover the question, say so in the Overview
- Use bullet points (•) for all lists
- Keep each bullet under 10 words
- NO conversational language
- Be concise and direct"""


MEDICAL_ALERT_ADDENDUM = """

MEDICAL ALERT MODE:
Start with:

## ⚠️ Medical Condition Detected

This question mentions a health condition requiring professional guidance.

## Required Steps
• Consult doctor before practicing
• Get medical clearance
• Practice only with certified yoga therapist
• Inform instructor of your condition

Then provide general information if available from context."""


def build_answer_system_prompt(is_unsafe: bool) -> str:
    if is_unsafe:
        return ANSWER_SYSTEM_PROMPT + MEDICAL_ALERT_ADDENDUM
    return ANSWER_SYSTEM_PROMPT


def build_answer_prompt(query: str, context: str, is_unsafe: bool) -> str:
    prompt = f"{context}\n\nQuestion: {query}\n\n"
    if is_unsafe:
        prompt += "This question mentions medical conditions. Start with safety warnings.\n\n"
    prompt += "Answer using the EXACT structured format specified in system prompt. Be concise."
    return prompt


GREETING_RESPONSE = """🙏 **Namaste!**

I'm your Yoga Assistant. I'm here to help you with all things yoga!

**I can help you with:**
• Yoga poses (asanas) and their benefits
• Breathing techniques (pranayama)
• Meditation and mindfulness practices
• Yoga for specific health goals (back pain, stress relief, flexibility)
• Different yoga styles (Hatha, Vinyasa, Ashtanga, etc.)
• Yoga philosophy and spiritual practices

**Try asking:**
• "What are the benefits of Surya Namaskar?"
• "How do I do a headstand safely?"
• "Yoga poses for lower back pain"

What would you like to know about yoga?"""


def build_off_topic_response(reason: str) -> str:
    text = "🙏 **I'm specialized in Yoga!**\n\nYour question doesn't appear to be about yoga.\n\n"
    if reason:
        text += f"{reason}\n\n"
    text += (
        "I can help with:\n"
        "• Yoga poses and techniques\n"
        "• Breathing exercises (pranayama)\n"
        "• Meditation practices\n"
        "• Health benefits of yoga\n"
        "• Yoga philosophy and traditions\n\n"
        "**Please ask me something related to yoga.**"
    )
    return text

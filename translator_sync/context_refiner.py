"""Refines a free-form project description into translation guidance and rates it."""
import json
import logging
import re
from dataclasses import dataclass
from typing import Optional

import jsonschema

from translator_sync.errors import TranslatorSyncError
from translator_sync.translator import TranslationContext, TranslationService

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 5
FALLBACK_QUALITY_SCORE = 3
QUALITY_SCORE_THRESHOLD = 6
QUALITY_SCORE_EXCELLENT = 8
QUALITY_SCORE_MAX = 10

IMPROVEMENT_SUGGESTION = (
    "Consider adding: project type (UI/docs/marketing), target audience "
    "(end-users/developers/business), and content tone (professional/casual/technical)"
)

# The model must answer with this object; extra fields are ignored.
REFINEMENT_SCHEMA = {
    "type": "object",
    "properties": {
        "refinedDescription": {"type": "string"},
        "qualityScore": {"type": "number"},
        "suggestions": {"type": ["string", "null"]},
    },
    "required": ["refinedDescription", "qualityScore"],
}

CODE_FENCE_PATTERN = re.compile(r'```(?:json)?\s*|\s*```')

POSITIVE_KEYWORDS = (
    ("ui", "interface", "website"),
    ("user", "customer", "audience"),
    ("dashboard", "portal", "platform"),
    ("professional", "casual", "formal"),
    ("marketing", "technical", "medical"),
)
NEGATIVE_KEYWORDS = (
    ("install", "setup", "config"),
    ("version", "update", "changelog"),
)


@dataclass
class RefinedContext:
    refined_description: str
    quality_score: float
    suggestions: Optional[str] = None


def build_refinement_prompt(raw_description: str) -> str:
    return f"""Analyze this project description and refine it to contain only information useful for translation context:

RAW DESCRIPTION:
"{raw_description}"

Your task:
1. Extract ONLY the information relevant for translation quality and context
2. Focus on: project type, target audience, content style, domain/industry, tone expectations
3. Remove: technical implementation details, version numbers, installation instructions, etc.
4. Rate the overall usefulness of the original description for translation context (1-10)
5. Suggest improvements if the score is below 7

Respond in this EXACT JSON format on a single line:
{{"refinedDescription": "Refined description with only translation-relevant context", "qualityScore": 8, "suggestions": "Optional suggestions for improvement"}}

Examples of good refined descriptions:
- "Web-based customer support chat interface for e-commerce, casual friendly tone for end users"
- "Internal enterprise dashboard for data analytics, professional technical language for business users"
- "Marketing website for AI startup, engaging persuasive content for potential customers"

JSON only:"""


def evaluate_description_heuristically(description: str) -> RefinedContext:
    """
    Score a description without the LLM.

    Starts at 5, adds a point per group of translation-relevant keywords,
    subtracts for setup or release noise and for very short or long text.
    The result is clamped to 1..10.
    """
    lower = description.lower()
    score = 5
    for group in POSITIVE_KEYWORDS:
        if any(word in lower for word in group):
            score += 1
    for group in NEGATIVE_KEYWORDS:
        if any(word in lower for word in group):
            score -= 1
    if len(description) < 20:
        score -= 2
    if len(description) > 500:
        score -= 1
    score = max(1, min(QUALITY_SCORE_MAX, score))

    logger.debug("Heuristic evaluation: score=%d", score)
    return RefinedContext(
        refined_description=description,
        quality_score=score,
        suggestions=IMPROVEMENT_SUGGESTION if score < 7 else None,
    )


def parse_refinement_response(response_text: str, fallback_description: str) -> RefinedContext:
    """Parse and validate the model's JSON answer, falling back to the heuristic scorer."""
    cleaned = CODE_FENCE_PATTERN.sub("", response_text.strip())
    try:
        parsed = json.loads(cleaned)
        jsonschema.validate(instance=parsed, schema=REFINEMENT_SCHEMA)
    except json.JSONDecodeError as json_exc:
        logger.debug("Refinement response is not valid JSON (%s): %s", json_exc, response_text)
        return evaluate_description_heuristically(fallback_description)
    except jsonschema.ValidationError as schema_exc:
        logger.debug("Refinement response does not match the schema: %s", schema_exc.message)
        return evaluate_description_heuristically(fallback_description)

    score = max(0, min(QUALITY_SCORE_MAX, parsed["qualityScore"]))
    return RefinedContext(
        refined_description=parsed["refinedDescription"].strip() or fallback_description,
        quality_score=score,
        suggestions=parsed.get("suggestions") or None,
    )


class ContextRefiner:
    """Uses a translation service in ``en -> en`` mode to clean up a project description."""

    def __init__(self, service: TranslationService):
        self.service = service

    async def refine(self, raw_description: Optional[str]) -> RefinedContext:
        """
        Refine and rate a project description.

        Args:
            raw_description: Free-form description from the configuration.

        Returns:
            RefinedContext: Score 0 without any call for empty or tiny
            descriptions; the raw description with score 3 if the service fails.
        """
        if not raw_description or len(raw_description.strip()) < MIN_DESCRIPTION_LENGTH:
            return RefinedContext(
                refined_description="",
                quality_score=0,
                suggestions=(
                    "Project description is empty. Please provide information about your project's "
                    "purpose, target audience, and type of content (UI, documentation, marketing, etc.)"
                ),
            )

        prompt = build_refinement_prompt(raw_description)
        try:
            response = await self.service.translate_batch(
                "en", "en", [prompt], TranslationContext(preserve_variables=False)
            )
        except TranslatorSyncError as e:
            logger.warning("Description refinement failed: %s", e)
            return RefinedContext(
                refined_description=raw_description,
                quality_score=FALLBACK_QUALITY_SCORE,
                suggestions="Could not evaluate description quality due to API error",
            )

        context = parse_refinement_response(response.get(prompt, ""), raw_description)
        if not is_quality_sufficient(context):
            logger.warning("Project description quality is low (%s/10). %s",
                           context.quality_score, context.suggestions or "")
        return context


def is_quality_sufficient(context: RefinedContext, threshold: float = QUALITY_SCORE_THRESHOLD) -> bool:
    return context.quality_score >= threshold


def format_quality_assessment(context: RefinedContext) -> str:
    if context.quality_score >= QUALITY_SCORE_EXCELLENT:
        rating = "good"
    elif context.quality_score >= QUALITY_SCORE_THRESHOLD:
        rating = "fair"
    else:
        rating = "poor"
    message = f"Description quality: {context.quality_score}/10 ({rating})"
    if context.suggestions:
        message += f"\nSuggestions: {context.suggestions}"
    return message

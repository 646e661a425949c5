import json
import unittest

from translator_sync.context_refiner import (
    FALLBACK_QUALITY_SCORE,
    ContextRefiner,
    RefinedContext,
    evaluate_description_heuristically,
    format_quality_assessment,
    is_quality_sufficient,
    parse_refinement_response,
)
from translator_sync.errors import ProviderError, ProviderErrorKind
from translator_sync.translator import TranslationService


class CannedService(TranslationService):
    """Answers every text with a fixed response, or raises the given error."""

    def __init__(self, response="", error=None):
        self.response = response
        self.error = error
        self.requests = []

    async def translate_batch(self, source_lang, target_lang, texts, context=None):
        self.requests.append((source_lang, target_lang, list(texts), context))
        if self.error is not None:
            raise self.error
        return {text: self.response for text in texts}


class TestHeuristicEvaluation(unittest.TestCase):
    def test_relevant_keywords_raise_the_score(self):
        context = evaluate_description_heuristically("Customer dashboard, casual tone")
        self.assertEqual(context.quality_score, 8)
        self.assertIsNone(context.suggestions)

    def test_short_description_is_penalised(self):
        context = evaluate_description_heuristically("App for users")
        self.assertEqual(context.quality_score, 4)
        self.assertIsNotNone(context.suggestions)

    def test_setup_noise_lowers_the_score(self):
        context = evaluate_description_heuristically("Run the install script, then update the changelog file")
        self.assertEqual(context.quality_score, 3)

    def test_score_is_clamped(self):
        context = evaluate_description_heuristically("x" * 10)
        self.assertGreaterEqual(context.quality_score, 1)


class TestParseRefinementResponse(unittest.TestCase):
    def test_valid_json(self):
        response = json.dumps({"refinedDescription": "Banking UI", "qualityScore": 9, "suggestions": None})
        context = parse_refinement_response(response, "raw")
        self.assertEqual(context, RefinedContext("Banking UI", 9, None))

    def test_code_fences_are_stripped(self):
        response = '```json\n{"refinedDescription": "Banking UI", "qualityScore": 7}\n```'
        self.assertEqual(parse_refinement_response(response, "raw").refined_description, "Banking UI")

    def test_score_is_clamped_to_ten(self):
        response = json.dumps({"refinedDescription": "Banking UI", "qualityScore": 14})
        self.assertEqual(parse_refinement_response(response, "raw").quality_score, 10)

    def test_invalid_json_falls_back_to_heuristic(self):
        context = parse_refinement_response("not json", "Customer dashboard, casual tone")
        self.assertEqual(context.refined_description, "Customer dashboard, casual tone")
        self.assertEqual(context.quality_score, 8)

    def test_schema_violation_falls_back_to_heuristic(self):
        response = json.dumps({"refinedDescription": "Banking UI", "qualityScore": "high"})
        context = parse_refinement_response(response, "Customer dashboard, casual tone")
        self.assertEqual(context.refined_description, "Customer dashboard, casual tone")


class TestContextRefiner(unittest.IsolatedAsyncioTestCase):
    async def test_empty_description_makes_no_call(self):
        service = CannedService()
        context = await ContextRefiner(service).refine("  ")
        self.assertEqual(context.quality_score, 0)
        self.assertEqual(context.refined_description, "")
        self.assertEqual(service.requests, [])

    async def test_refines_through_english_to_english_call(self):
        response = json.dumps({"refinedDescription": "Retail banking app for customers", "qualityScore": 8})
        service = CannedService(response)

        context = await ContextRefiner(service).refine("Our banking app v2.3, install with npm, for customers")

        self.assertEqual(context.refined_description, "Retail banking app for customers")
        source_lang, target_lang, texts, request_context = service.requests[0]
        self.assertEqual((source_lang, target_lang), ("en", "en"))
        self.assertEqual(len(texts), 1)
        self.assertFalse(request_context.preserve_variables)

    async def test_service_failure_keeps_raw_description(self):
        service = CannedService(error=ProviderError(ProviderErrorKind.NETWORK_ERROR, "down", "openai"))
        with self.assertLogs("translator_sync.context_refiner", level="WARNING"):
            context = await ContextRefiner(service).refine("Customer dashboard, casual tone")
        self.assertEqual(context.refined_description, "Customer dashboard, casual tone")
        self.assertEqual(context.quality_score, FALLBACK_QUALITY_SCORE)

    async def test_low_score_is_logged(self):
        service = CannedService(json.dumps({"refinedDescription": "An app", "qualityScore": 2}))
        with self.assertLogs("translator_sync.context_refiner", level="WARNING") as logs:
            await ContextRefiner(service).refine("An app of some kind")
        self.assertIn("quality is low", logs.output[0])


class TestQualityHelpers(unittest.TestCase):
    def test_is_quality_sufficient(self):
        self.assertTrue(is_quality_sufficient(RefinedContext("x", 6)))
        self.assertFalse(is_quality_sufficient(RefinedContext("x", 5)))
        self.assertTrue(is_quality_sufficient(RefinedContext("x", 5), threshold=5))

    def test_format_quality_assessment(self):
        self.assertEqual(format_quality_assessment(RefinedContext("x", 9)), "Description quality: 9/10 (good)")
        self.assertEqual(format_quality_assessment(RefinedContext("x", 6)), "Description quality: 6/10 (fair)")
        self.assertEqual(
            format_quality_assessment(RefinedContext("x", 2, "Add an audience")),
            "Description quality: 2/10 (poor)\nSuggestions: Add an audience",
        )


if __name__ == '__main__':
    unittest.main()

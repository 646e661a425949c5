import unittest

from translator_sync.variables import (
    extract_variables,
    get_variable_instructions,
    missing_variables,
    validate_variable_preservation,
)


class TestExtractVariables(unittest.TestCase):
    def test_all_four_syntaxes(self):
        text = "Hi {{name}}, you have %{count} items in {$cart} for {user}"
        self.assertEqual(extract_variables(text), ["{{name}}", "%{count}", "{$cart}", "{user}"])

    def test_order_of_first_appearance(self):
        text = "{b} then {{a}} then %{c}"
        self.assertEqual(extract_variables(text), ["{b}", "{{a}}", "%{c}"])

    def test_duplicates_are_removed(self):
        self.assertEqual(extract_variables("{x} and {x} and {{y}} and {{y}}"), ["{x}", "{{y}}"])

    def test_nested_double_brace_is_one_token(self):
        text = "Total: {{ format(amount, {style: 'currency'}) }}!"
        self.assertEqual(extract_variables(text), ["{{ format(amount, {style: 'currency'}) }}"])

    def test_double_brace_not_rematched_as_single(self):
        self.assertEqual(extract_variables("{{name}}"), ["{{name}}"])

    def test_dollar_and_percent_not_rematched_as_single(self):
        self.assertEqual(extract_variables("{$a} %{b}"), ["{$a}", "%{b}"])

    def test_plain_text_and_empty(self):
        self.assertEqual(extract_variables("No variables here"), [])
        self.assertEqual(extract_variables(""), [])

    def test_unmatched_braces_are_ignored(self):
        self.assertEqual(extract_variables("Use } and { carefully"), [])

    def test_idempotent(self):
        text = "Hello {{user}}, {count} new %{kind}"
        self.assertEqual(extract_variables(text), extract_variables(text))


class TestVariablePreservation(unittest.TestCase):
    def test_all_variables_kept(self):
        self.assertTrue(validate_variable_preservation("Hello {{name}}", "Hallo {{name}}"))

    def test_reordering_is_allowed(self):
        self.assertTrue(validate_variable_preservation("{a} then {b}", "{b} dann {a}"))

    def test_extra_variables_are_tolerated(self):
        self.assertTrue(validate_variable_preservation("Hello {name}", "Hallo {name} {extra}"))

    def test_empty_source_validates(self):
        self.assertTrue(validate_variable_preservation("", "anything {x}"))

    def test_missing_variable_fails(self):
        with self.assertLogs("translator_sync.variables", level="WARNING"):
            self.assertFalse(validate_variable_preservation("Hello {{name}}", "Hallo"))

    def test_altered_variable_fails(self):
        self.assertEqual(missing_variables("Hello {{name}}", "Hallo {{nom}}"), ["{{name}}"])

    def test_missing_variables_lists_only_offenders(self):
        self.assertEqual(missing_variables("{a} {b} {c}", "{a} {c}"), ["{b}"])


class TestVariableInstructions(unittest.TestCase):
    def test_no_variables_gives_empty_string(self):
        self.assertEqual(get_variable_instructions("Plain text"), "")

    def test_names_detected_formats(self):
        instructions = get_variable_instructions("Hi {{name}}, {$count} left")
        self.assertIn("React i18next format", instructions)
        self.assertIn("Fluent format", instructions)
        self.assertIn("{{name}}", instructions)
        self.assertNotIn("Ruby i18n format", instructions)


if __name__ == '__main__':
    unittest.main()

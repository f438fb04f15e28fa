"""
Unit tests for ConfigManager class.
"""
import unittest
import logging

from quizbot.config_manager import ConfigManager
from quizbot.bot import build_help_pages
from quizbot.models import QuizSettings, QuizTopic


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager functionality."""

    def setUp(self):
        """Set up test fixtures before each test method."""
        self.config_manager = ConfigManager()

        # Suppress logging during tests
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        """Clean up after each test method."""
        logging.disable(logging.NOTSET)

    def test_initialization_with_defaults(self):
        """Test that ConfigManager initializes with correct default values."""
        settings = self.config_manager.get_quiz_settings()

        self.assertEqual(settings, QuizSettings())
        self.assertEqual(settings.default_question_count, 5)
        self.assertEqual(settings.match_tolerance, 0.25)
        self.assertEqual(self.config_manager.command_prefix, "!")
        self.assertEqual(self.config_manager.channel_name_prefix, "")
        self.assertEqual(self.config_manager.source, "sheets")
        self.assertIsNone(self.config_manager.spreadsheet_id)
        self.assertEqual(self.config_manager.cache_ttl, 60)

    def test_get_quiz_settings_returns_copy(self):
        settings = self.config_manager.get_quiz_settings()
        settings.default_question_count = 42
        self.assertEqual(self.config_manager.get_quiz_settings().default_question_count, 5)

    def test_set_default_question_count(self):
        result = self.config_manager.set_default_question_count(10)

        self.assertTrue(result['success'])
        self.assertIn('user_message', result)
        self.assertEqual(self.config_manager.get_quiz_settings().default_question_count, 10)

    def test_set_default_question_count_invalid_values(self):
        for value in [0, -1, 101, "5", 2.5, True, None]:
            with self.subTest(value=value):
                result = self.config_manager.set_default_question_count(value)
                self.assertFalse(result['success'])
                self.assertIn('error', result)
                self.assertTrue(result['user_message'].startswith("❌"))

        self.assertEqual(self.config_manager.get_quiz_settings().default_question_count, 5)

    def test_set_match_tolerance(self):
        self.assertTrue(self.config_manager.set_match_tolerance(0.5)['success'])
        self.assertEqual(self.config_manager.get_quiz_settings().match_tolerance, 0.5)

        self.assertTrue(self.config_manager.set_match_tolerance(0)['success'])
        self.assertEqual(self.config_manager.get_quiz_settings().match_tolerance, 0.0)

    def test_set_match_tolerance_invalid_values(self):
        for value in [-0.1, 1.5, "0.3", False]:
            with self.subTest(value=value):
                self.assertFalse(self.config_manager.set_match_tolerance(value)['success'])

    def test_set_command_prefix(self):
        self.assertTrue(self.config_manager.set_command_prefix("?")['success'])
        self.assertEqual(self.config_manager.command_prefix, "?")

        for value in ["", "a b", None]:
            with self.subTest(value=value):
                self.assertFalse(self.config_manager.set_command_prefix(value)['success'])
        self.assertEqual(self.config_manager.command_prefix, "?")

    def test_set_source(self):
        self.assertTrue(self.config_manager.set_source("directory")['success'])
        self.assertEqual(self.config_manager.source, "directory")
        self.assertFalse(self.config_manager.set_source("ftp")['success'])
        self.assertEqual(self.config_manager.source, "directory")

    def test_apply_config(self):
        config = {
            "bot": {"command_prefix": "?", "channel_name_prefix": "quiz"},
            "quiz": {"default_question_count": 8, "match_tolerance": 0.2, "hint_placeholder": "_",
                     "help_page_size": 5},
            "sheets": {"spreadsheet_id": "abc", "cache_ttl": 30},
        }

        rejected = self.config_manager.apply_config(config, environ={})

        self.assertEqual(rejected, [])
        settings = self.config_manager.get_quiz_settings()
        self.assertEqual(settings.default_question_count, 8)
        self.assertEqual(settings.match_tolerance, 0.2)
        self.assertEqual(settings.hint_placeholder, "_")
        self.assertEqual(self.config_manager.command_prefix, "?")
        self.assertEqual(self.config_manager.channel_name_prefix, "quiz")
        self.assertEqual(self.config_manager.spreadsheet_id, "abc")
        self.assertEqual(self.config_manager.cache_ttl, 30)
        self.assertEqual(self.config_manager.help_page_size, 5)

    def test_apply_config_reports_rejected_values(self):
        config = {"quiz": {"default_question_count": 0, "source": "ftp"}}

        rejected = self.config_manager.apply_config(config, environ={})

        self.assertEqual(len(rejected), 2)
        self.assertEqual(self.config_manager.get_quiz_settings().default_question_count, 5)
        self.assertEqual(self.config_manager.source, "sheets")

    def test_set_help_page_size(self):
        self.assertTrue(self.config_manager.set_help_page_size(3)['success'])
        self.assertEqual(self.config_manager.help_page_size, 3)

        for value in [0, -5, "10", True]:
            with self.subTest(value=value):
                self.assertFalse(self.config_manager.set_help_page_size(value)['success'])
        self.assertEqual(self.config_manager.help_page_size, 3)

    def test_apply_config_rejects_empty_help_pages(self):
        rejected = self.config_manager.apply_config({"quiz": {"help_page_size": 0}}, environ={})

        self.assertEqual(len(rejected), 1)
        self.assertEqual(self.config_manager.help_page_size, 10)
        self.assertEqual(len(build_help_pages([QuizTopic("geography")], self.config_manager.help_page_size)), 1)

    def test_environment_overrides_config(self):
        config = {"bot": {"channel_name_prefix": "quiz"}, "sheets": {"spreadsheet_id": "from-file"}}
        environ = {
            "DISCORD_CHANNEL_NAME_PREFIX": "trivia",
            "SHEET_ID": "from-env",
            "GOOGLE_TOKEN_PATH": "/secrets/token.json",
        }

        self.config_manager.apply_config(config, environ=environ)

        self.assertEqual(self.config_manager.channel_name_prefix, "trivia")
        self.assertEqual(self.config_manager.spreadsheet_id, "from-env")
        self.assertEqual(self.config_manager.token_path, "/secrets/token.json")
        self.assertEqual(self.config_manager.credentials_path, "credentials.json")

    def test_empty_environment_values_are_ignored(self):
        self.config_manager.apply_config({"sheets": {"spreadsheet_id": "from-file"}}, environ={"SHEET_ID": ""})
        self.assertEqual(self.config_manager.spreadsheet_id, "from-file")

    def test_validate_settings(self):
        validation = self.config_manager.validate_settings()
        self.assertFalse(validation['valid'])
        self.assertEqual(len(validation['issues']), 1)

        self.config_manager.spreadsheet_id = "abc"
        self.assertTrue(self.config_manager.validate_settings()['valid'])

        self.config_manager.set_source("directory")
        self.config_manager.spreadsheet_id = None
        self.assertTrue(self.config_manager.validate_settings()['valid'])

    def test_reset_to_defaults(self):
        self.config_manager.set_command_prefix("?")
        self.config_manager.set_default_question_count(9)
        self.config_manager.reset_to_defaults()

        self.assertEqual(self.config_manager.command_prefix, "!")
        self.assertEqual(self.config_manager.get_quiz_settings().default_question_count, 5)

    def test_get_settings_summary(self):
        self.config_manager.spreadsheet_id = "abc"
        summary = self.config_manager.get_settings_summary()

        self.assertIn("Prefix: !", summary)
        self.assertIn("Default questions: 5", summary)
        self.assertIn("Answer tolerance: 25%", summary)
        self.assertIn("Google Sheets (abc)", summary)


if __name__ == '__main__':
    unittest.main()

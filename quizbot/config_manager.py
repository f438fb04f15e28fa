"""
Configuration manager for Sheet Quiz Bot settings and parameters.
"""
import logging
from typing import Optional, Dict, Any, List, Mapping
import os

from .models import QuizSettings


class ConfigManager:
    """Manages bot configuration settings and quiz parameters."""

    # Default configuration values
    DEFAULT_COMMAND_PREFIX = "!"
    DEFAULT_CHANNEL_NAME_PREFIX = ""
    DEFAULT_SOURCE = "sheets"
    DEFAULT_QUIZ_DIRECTORY = "./quizzes/"
    DEFAULT_CREDENTIALS_PATH = "credentials.json"
    DEFAULT_TOKEN_PATH = "token.json"
    DEFAULT_CACHE_TTL = 60
    DEFAULT_HELP_PAGE_SIZE = 10
    DEFAULT_HELP_PAGE_TIMEOUT = 60

    # Validation limits
    MIN_QUESTION_COUNT = 1
    MAX_QUESTION_COUNT = 100
    MIN_TOLERANCE = 0.0
    MAX_TOLERANCE = 1.0
    MIN_HELP_PAGE_SIZE = 1
    SOURCES = ("sheets", "directory")

    # Environment variables take precedence over config.json
    ENV_OVERRIDES = {
        'DISCORD_CHANNEL_NAME_PREFIX': 'channel_name_prefix',
        'SHEET_ID': 'spreadsheet_id',
        'GOOGLE_CREDENTIALS_PATH': 'credentials_path',
        'GOOGLE_TOKEN_PATH': 'token_path',
    }

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self.reset_to_defaults()

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._quiz_settings = QuizSettings()
        self.command_prefix = self.DEFAULT_COMMAND_PREFIX
        self.channel_name_prefix = self.DEFAULT_CHANNEL_NAME_PREFIX
        self.source = self.DEFAULT_SOURCE
        self.quiz_directory = self.DEFAULT_QUIZ_DIRECTORY
        self.spreadsheet_id: Optional[str] = None
        self.credentials_path = self.DEFAULT_CREDENTIALS_PATH
        self.token_path = self.DEFAULT_TOKEN_PATH
        self.cache_ttl = self.DEFAULT_CACHE_TTL
        self.help_page_size = self.DEFAULT_HELP_PAGE_SIZE
        self.help_page_timeout = self.DEFAULT_HELP_PAGE_TIMEOUT

    def apply_config(self, config: Mapping[str, Any], environ: Optional[Mapping[str, str]] = None) -> List[str]:
        """
        Apply settings from a parsed config.json, then environment overrides.

        Invalid values are logged and the defaults kept.

        Args:
            config: Parsed configuration with ``bot``, ``quiz`` and ``sheets`` sections
            environ: Environment mapping, ``os.environ`` if None

        Returns:
            List of user-friendly messages for settings that were rejected
        """
        environ = os.environ if environ is None else environ
        bot_config = config.get('bot', {})
        quiz_config = config.get('quiz', {})
        sheets_config = config.get('sheets', {})
        rejected = []

        results = [
            self.set_command_prefix(bot_config.get('command_prefix', self.command_prefix)),
            self.set_default_question_count(
                quiz_config.get('default_question_count', self._quiz_settings.default_question_count)),
            self.set_match_tolerance(quiz_config.get('match_tolerance', self._quiz_settings.match_tolerance)),
            self.set_source(quiz_config.get('source', self.source)),
            self.set_help_page_size(quiz_config.get('help_page_size', self.help_page_size)),
        ]
        for result in results:
            if not result['success']:
                rejected.append(result['user_message'])

        self.channel_name_prefix = bot_config.get('channel_name_prefix', self.channel_name_prefix)
        self._quiz_settings.hint_placeholder = quiz_config.get('hint_placeholder',
                                                               self._quiz_settings.hint_placeholder)
        self.quiz_directory = quiz_config.get('quiz_directory', self.quiz_directory)
        self.help_page_timeout = int(quiz_config.get('help_page_timeout', self.help_page_timeout))
        self.spreadsheet_id = sheets_config.get('spreadsheet_id', self.spreadsheet_id)
        self.credentials_path = sheets_config.get('credentials_path', self.credentials_path)
        self.token_path = sheets_config.get('token_path', self.token_path)
        self.cache_ttl = int(sheets_config.get('cache_ttl', self.cache_ttl))

        for variable, attribute in self.ENV_OVERRIDES.items():
            value = environ.get(variable)
            if value:
                setattr(self, attribute, value)
                self.logger.info(f"{attribute} taken from environment variable {variable}")

        self.logger.info("Configuration applied")
        return rejected

    def get_quiz_settings(self) -> QuizSettings:
        """
        Get current quiz settings.

        Returns:
            Copy of the current QuizSettings
        """
        return QuizSettings(
            default_question_count=self._quiz_settings.default_question_count,
            max_question_count=self._quiz_settings.max_question_count,
            match_tolerance=self._quiz_settings.match_tolerance,
            hint_placeholder=self._quiz_settings.hint_placeholder
        )

    def set_command_prefix(self, prefix: str) -> Dict[str, Any]:
        """
        Set the prefix that marks bot commands.

        Args:
            prefix: Non-empty string without whitespace

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(prefix, str) or not prefix or any(ch.isspace() for ch in prefix):
            error_msg = f"Command prefix must be a non-empty string without spaces, got {prefix!r}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Invalid command prefix"
            }

        self.command_prefix = prefix
        self.logger.info(f"Command prefix set to {prefix!r}")
        return {
            'success': True,
            'message': f"Command prefix set to {prefix!r}",
            'user_message': f"✅ Commands now start with `{prefix}`"
        }

    def set_default_question_count(self, count: int) -> Dict[str, Any]:
        """
        Set the number of questions used when a start command gives none.

        Args:
            count: Number of questions

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        # bool is an int subclass
        if not isinstance(count, int) or isinstance(count, bool):
            error_msg = f"Question count must be an integer, got {type(count).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(count).__name__}"
            }

        if count < self.MIN_QUESTION_COUNT or count > self._quiz_settings.max_question_count:
            error_msg = (f"Question count must be between {self.MIN_QUESTION_COUNT} "
                         f"and {self._quiz_settings.max_question_count}")
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ {error_msg}"
            }

        self._quiz_settings.default_question_count = count
        self.logger.info(f"Default question count set to {count}")
        return {
            'success': True,
            'message': f"Default question count set to {count}",
            'user_message': f"✅ Quizzes default to {count} questions"
        }

    def set_match_tolerance(self, ratio: float) -> Dict[str, Any]:
        """
        Set the fraction of an answer that may be misspelled.

        Args:
            ratio: Value between 0 and 1

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(ratio, (int, float)) or isinstance(ratio, bool):
            error_msg = f"Match tolerance must be a number, got {type(ratio).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(ratio).__name__}"
            }

        if not self.MIN_TOLERANCE <= ratio <= self.MAX_TOLERANCE:
            error_msg = f"Match tolerance must be between {self.MIN_TOLERANCE} and {self.MAX_TOLERANCE}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ {error_msg}"
            }

        self._quiz_settings.match_tolerance = float(ratio)
        self.logger.info(f"Match tolerance set to {ratio}")
        return {
            'success': True,
            'message': f"Match tolerance set to {ratio}",
            'user_message': f"✅ Answers may differ by up to {int(ratio * 100)}%"
        }

    def set_source(self, source: str) -> Dict[str, Any]:
        """
        Choose where questions come from.

        Args:
            source: ``sheets`` or ``directory``

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if source not in self.SOURCES:
            error_msg = f"Question source must be one of {', '.join(self.SOURCES)}, got {source!r}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Unknown question source: {source}"
            }

        self.source = source
        self.logger.info(f"Question source set to {source}")
        return {
            'success': True,
            'message': f"Question source set to {source}",
            'user_message': f"✅ Questions will be loaded from {source}"
        }

    def set_help_page_size(self, size: int) -> Dict[str, Any]:
        """
        Set how many quiz topics are listed per help page.

        Args:
            size: Topics per page, at least 1

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(size, int) or isinstance(size, bool):
            error_msg = f"Help page size must be an integer, got {type(size).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(size).__name__}"
            }

        if size < self.MIN_HELP_PAGE_SIZE:
            error_msg = f"Help page size must be at least {self.MIN_HELP_PAGE_SIZE}, got {size}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ {error_msg}"
            }

        self.help_page_size = size
        self.logger.info(f"Help page size set to {size}")
        return {
            'success': True,
            'message': f"Help page size set to {size}",
            'user_message': f"✅ Help pages list {size} quiz sheets"
        }

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }

        if self.source == "sheets" and not self.spreadsheet_id:
            validation_result["valid"] = False
            validation_result["issues"].append(
                "Missing spreadsheet id: set sheets.spreadsheet_id or SHEET_ID"
            )

        if self.source == "directory" and not str(self.quiz_directory).strip():
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid quiz directory: {self.quiz_directory}")

        if self.cache_ttl < 0:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid cache ttl: {self.cache_ttl}")

        if self.help_page_size < 1:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid help page size: {self.help_page_size}")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        source = (f"Google Sheets ({self.spreadsheet_id or 'not set'})"
                  if self.source == "sheets" else f"Directory ({self.quiz_directory})")
        return (
            f"Quiz Settings:\n"
            f"• Prefix: {self.command_prefix}\n"
            f"• Default questions: {self._quiz_settings.default_question_count}\n"
            f"• Answer tolerance: {int(self._quiz_settings.match_tolerance * 100)}%\n"
            f"• Source: {source}"
        )

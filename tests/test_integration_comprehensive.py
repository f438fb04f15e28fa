"""
End-to-end tests: chat messages through the bot, controller, engine and a
real question source, rendered to mocked Discord channels.
"""
import tempfile
import unittest
from unittest.mock import Mock, patch

from quizbot.bot import QuizBot
from quizbot.data_manager import DirectoryQuestionSource, SheetsQuestionSource
from quizbot.models import SessionKey
from tests.test_fixtures import MockDiscordObjects, TestFixtures


class TestCompleteQuizFlow(unittest.IsolatedAsyncioTestCase):
    """Complete quiz sessions driven by chat messages."""

    async def asyncSetUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        TestFixtures.create_temp_quiz_files(self.temp_dir.name)
        self.bot = QuizBot({
            "bot": {"channel_name_prefix": "quiz"},
            "quiz": {"source": "directory", "quiz_directory": self.temp_dir.name},
        })
        await self.bot.setup_hook()
        self.channel = MockDiscordObjects.create_mock_channel(12345, "quiz-room")
        self.key = SessionKey(1, 12345)

    async def asyncTearDown(self):
        self.temp_dir.cleanup()

    async def say(self, content, author_id=67890):
        message = MockDiscordObjects.create_mock_message(content, channel=self.channel, author_id=author_id)
        await self.bot.on_message(message)
        return message

    def sent_titles(self):
        return [call.kwargs['embed'].title for call in self.channel.send.call_args_list]

    async def test_setup_uses_directory_source(self):
        self.assertIsInstance(self.bot.quiz_controller.question_source, DirectoryQuestionSource)

    async def test_play_through_quiz(self):
        misspellings = {"Tokyo": "Tokio", "Paris": "Parris", "Rome": "Rone"}
        await self.say("!capitals 2")
        self.assertEqual(self.sent_titles(), ["Question 1/2"])

        wrong = await self.say("Atlantis")
        wrong.add_reaction.assert_awaited_once_with("❌")

        session = self.bot.quiz_controller.get_session(self.key)
        right = await self.say(misspellings[session.current_question.canonical_answer])
        right.add_reaction.assert_awaited_once_with("✅")
        self.assertEqual(self.sent_titles(), ["Question 1/2", "Question 2/2"])

        await self.say("!skip")
        self.assertEqual(self.sent_titles()[-2:], ["Question Skipped.", "Quiz Ended."])
        summary = self.channel.send.call_args.kwargs['embed'].description
        self.assertEqual(summary, "1 ✅\t1 ❌\t<@67890>")
        self.assertFalse(self.bot.quiz_controller.has_active_session(self.key))

        sends_before = self.channel.send.await_count
        late = await self.say("Paris")
        late.add_reaction.assert_not_awaited()
        late.reply.assert_not_awaited()
        self.assertEqual(self.channel.send.await_count, sends_before)

    async def test_second_start_is_refused(self):
        await self.say("!capitals")
        refused = await self.say("!large 3")

        refused.add_reaction.assert_awaited_once_with("🚫")
        self.assertEqual(self.bot.quiz_controller.get_session(self.key).topic, "capitals")

    async def test_misspelled_topic_gets_suggestion(self):
        message = await self.say("!capitalz")

        message.reply.assert_awaited_once_with("Did you mean `!capitals`? 🤔")
        self.assertFalse(self.bot.quiz_controller.has_active_session(self.key))

    async def test_unknown_topic_shows_help(self):
        await self.say("!xyzzy")

        self.assertEqual(self.sent_titles(), ["Quiz Bot Commands", "Available Quiz Sheets (1/1)"])

    async def test_answers_without_quiz_are_ignored(self):
        message = await self.say("Tokyo")

        message.add_reaction.assert_not_awaited()
        self.channel.send.assert_not_awaited()

    async def test_end_with_no_answers(self):
        await self.say("!capitals 3")
        await self.say("!end")

        self.assertEqual(self.sent_titles()[-1], "Quiz Ended.")
        self.assertEqual(self.channel.send.call_args.kwargs['embed'].description, "No answers were submitted.")

    async def test_hints_until_skip(self):
        await self.say("!large 1")
        answer = self.bot.quiz_controller.get_session(self.key).current_question.canonical_answer

        for _ in range(len(answer) - 1):
            await self.say("!hint")
        self.assertEqual(self.channel.send.call_args.kwargs['embed'].description,
                         f"The answer is {answer[:-1]}❓.")

        await self.say("!hint")
        self.assertEqual(self.sent_titles()[-2:], ["Question Skipped.", "Quiz Ended."])


class TestSourceSelection(unittest.IsolatedAsyncioTestCase):
    """Question source construction from configuration."""

    @patch('quizbot.bot.load_credentials')
    async def test_sheets_source(self, mock_load_credentials):
        mock_load_credentials.return_value = Mock()
        bot = QuizBot({"sheets": {"spreadsheet_id": "abc", "token_path": "tok.json", "cache_ttl": 30}})

        await bot.setup_hook()

        source = bot.quiz_controller.question_source
        self.assertIsInstance(source, SheetsQuestionSource)
        self.assertEqual(source.spreadsheet_id, "abc")
        self.assertEqual(source.cache_ttl, 30)
        mock_load_credentials.assert_called_once_with("credentials.json", "tok.json")


if __name__ == '__main__':
    unittest.main()

import discord
from discord.ext import commands
import logging
import asyncio
from typing import Iterable, List, Optional, Set
import os

from .commands import CommandType, parse_command
from .config_manager import ConfigManager
from .data_manager import DirectoryQuestionSource, SheetsQuestionSource
from .models import PayloadKind, QuizTopic, RenderPayload, SessionKey
from .quiz_controller import QuizController
from .quiz_engine import QuizEngine
from .session_store import SessionStore
from .sheets_auth import load_credentials

logger = logging.getLogger(__name__)

PREVIOUS_PAGE = "⬅️"
NEXT_PAGE = "➡️"


def format_summary(scores: dict) -> str:
    """One line per participant: correct, wrong, mention."""
    if not scores:
        return "No answers were submitted."
    return "\n".join(
        f"{tally.correct} ✅\t{tally.wrong} ❌\t<@{participant}>"
        for participant, tally in scores.items()
    )


def build_help_pages(topics: List[QuizTopic], page_size: int = 10) -> List[discord.Embed]:
    """Split the topic list into embeds of at most ``page_size`` fields."""
    pages = []
    page_count = (len(topics) + page_size - 1) // page_size
    for start in range(0, len(topics), page_size):
        embed = discord.Embed(
            title=f"Available Quiz Sheets ({start // page_size + 1}/{page_count})",
            description="Use these commands to start a quiz with questions from the specified sheet."
        )
        for topic in topics[start:start + page_size]:
            embed.add_field(name=topic.name, value=topic.description or "\u200b", inline=False)
        pages.append(embed)
    return pages


class QuizBot(commands.Bot):
    """Discord bot that runs sheet-backed quizzes in text channels"""

    def __init__(self, config=None, quiz_controller: Optional[QuizController] = None):
        self.config_manager = ConfigManager()
        self.app_config = config or {}
        if self.app_config:
            for problem in self.config_manager.apply_config(self.app_config):
                logger.warning(f"Configuration rejected: {problem}")

        intents = discord.Intents.none()
        intents.guilds = True
        intents.guild_messages = True
        intents.message_content = True
        intents.guild_reactions = True

        super().__init__(
            command_prefix=self.config_manager.command_prefix,
            intents=intents,
            help_command=None  # Messages are routed by on_message
        )

        self.quiz_controller = quiz_controller
        self._background_tasks: Set[asyncio.Task] = set()

    async def setup_hook(self):
        """Called when the bot is starting up"""
        if self.quiz_controller is not None:
            return

        logger.info("Setting up bot components...")
        validation = self.config_manager.validate_settings()
        for issue in validation['issues']:
            logger.error(f"Configuration issue: {issue}")

        settings = self.config_manager.get_quiz_settings()
        engine = QuizEngine(tolerance_ratio=settings.match_tolerance,
                            hint_placeholder=settings.hint_placeholder)
        self.quiz_controller = QuizController(SessionStore(), self.create_question_source(), engine)
        logger.info(self.config_manager.get_settings_summary())
        logger.info("Bot setup completed successfully")

    def create_question_source(self):
        """Build the question source selected in the configuration."""
        if self.config_manager.source == "directory":
            return DirectoryQuestionSource(self.config_manager.quiz_directory)

        credentials = load_credentials(self.config_manager.credentials_path, self.config_manager.token_path)
        return SheetsQuestionSource(
            self.config_manager.spreadsheet_id,
            credentials,
            cache_ttl=self.config_manager.cache_ttl
        )

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    def accepts_message(self, message: discord.Message) -> bool:
        """Only human messages in quiz channels of a guild are handled."""
        if message.author.bot or message.guild is None:
            return False
        if not isinstance(message.channel, discord.TextChannel):
            return False
        return message.channel.name.startswith(self.config_manager.channel_name_prefix)

    async def on_message(self, message: discord.Message):
        """Route a chat message to the quiz controller and render the outcome"""
        if not self.accepts_message(message):
            return

        settings = self.config_manager.get_quiz_settings()
        command = parse_command(
            message.content,
            prefix=self.config_manager.command_prefix,
            default_count=settings.default_question_count,
            max_count=settings.max_question_count
        )
        key = SessionKey(message.guild.id, message.channel.id)

        if command.type is CommandType.START:
            logger.info(f"Start requested in {key}: topic='{command.topic}', count={command.count}")
            payloads = await self.quiz_controller.start(key, command.topic, command.count)
        elif command.type is CommandType.HINT:
            payloads = self.quiz_controller.hint(key)
        elif command.type is CommandType.SKIP:
            payloads = self.quiz_controller.skip(key)
        elif command.type is CommandType.END:
            payloads = self.quiz_controller.end(key)
        else:
            payloads = self.quiz_controller.submit(key, str(message.author.id), command.text)

        await self.render(message, key, payloads)

    async def render(self, message: discord.Message, key: SessionKey, payloads: Iterable[RenderPayload]):
        """
        Display payloads in order.

        A question that cannot be sent is passed over: the controller
        advances the session and whatever it returns is rendered next.
        """
        queue = list(payloads)
        while queue:
            payload = queue.pop(0)
            try:
                await self.render_payload(message, payload)
            except discord.HTTPException as e:
                logger.error(f"Failed to send {payload.kind.value} payload in {key}: {e}")
                if payload.kind is PayloadKind.QUESTION:
                    queue.extend(self.quiz_controller.question_render_failed(key))

    async def render_payload(self, message: discord.Message, payload: RenderPayload):
        channel = message.channel
        kind = payload.kind

        if kind is PayloadKind.QUESTION:
            embed = discord.Embed(
                title=f"Question {payload.question_number}/{payload.total_questions}",
                description=payload.text
            )
            if payload.image_url:
                embed.set_image(url=payload.image_url)
            await channel.send(embed=embed)

        elif kind is PayloadKind.HINT:
            await channel.send(embed=discord.Embed(title="Hint", description=f"The answer is {payload.text}."))

        elif kind is PayloadKind.CORRECT_RESULT:
            await message.add_reaction("✅")
            await message.reply(f"Correct! The answer was {', '.join(payload.answers)}.")

        elif kind is PayloadKind.INCORRECT_SIGNAL:
            await message.add_reaction("❌")

        elif kind is PayloadKind.SKIPPED:
            await channel.send(embed=discord.Embed(
                title="Question Skipped.",
                description=f"The correct answer was {', '.join(payload.answers)}."
            ))

        elif kind is PayloadKind.SUMMARY:
            await channel.send(embed=discord.Embed(title="Quiz Ended.", description=format_summary(payload.scores)))

        elif kind is PayloadKind.ALREADY_ACTIVE_NOTICE:
            await message.add_reaction("🚫")
            await message.reply("A quiz is already in progress in this channel.")

        elif kind is PayloadKind.TOPIC_SUGGESTION:
            prefix = self.config_manager.command_prefix
            candidates = ", ".join(f"`{prefix}{name}`" for name in payload.suggestions)
            await message.reply(f"Did you mean {candidates}? 🤔")

        elif kind is PayloadKind.HELP_LISTING:
            await self.show_help(channel, payload.topics)

    def build_command_help(self) -> discord.Embed:
        prefix = self.config_manager.command_prefix
        help_embed = discord.Embed(
            title="Quiz Bot Commands",
            description="Use these commands to interact with the quiz bot."
        )
        help_embed.add_field(name=f"{prefix}hint", value="Reveal a hint for the current question.", inline=False)
        help_embed.add_field(name=f"{prefix}skip", value="Skip the current question and show the answer.",
                             inline=False)
        help_embed.add_field(name=f"{prefix}end", value="End the quiz and show the final scores.", inline=False)
        help_embed.add_field(
            name=f"{prefix}<sheetName> [questionCount]",
            value="Start a quiz with questions from the specified sheet.",
            inline=False
        )
        return help_embed

    async def show_help(self, channel: discord.TextChannel, topics: List[QuizTopic]):
        """Send the command overview and a pageable list of quiz topics"""
        await channel.send(embed=self.build_command_help())

        pages = build_help_pages(topics, self.config_manager.help_page_size)
        if not pages:
            return

        sent = await channel.send(embed=pages[0])
        if len(pages) > 1:
            task = asyncio.create_task(self.page_through(sent, pages))
            self._background_tasks.add(task)
            task.add_done_callback(self._background_tasks.discard)

    async def page_through(self, sent: discord.Message, pages: List[discord.Embed]):
        """Let users flip help pages with reactions until the window closes"""
        current_page = 0
        try:
            await sent.add_reaction(PREVIOUS_PAGE)
            await sent.add_reaction(NEXT_PAGE)

            def check(reaction: discord.Reaction, user) -> bool:
                return reaction.message.id == sent.id and not user.bot

            while True:
                try:
                    reaction, user = await self.wait_for(
                        "reaction_add", timeout=self.config_manager.help_page_timeout, check=check
                    )
                except asyncio.TimeoutError:
                    break

                emoji = str(reaction.emoji)
                if emoji == PREVIOUS_PAGE and current_page > 0:
                    current_page -= 1
                elif emoji == NEXT_PAGE and current_page < len(pages) - 1:
                    current_page += 1
                await sent.edit(embed=pages[current_page])
                await reaction.remove(user)

            await sent.clear_reactions()
        except discord.HTTPException as e:
            logger.error(f"Help pager stopped: {e}")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    # Fall back to environment variable if no token provided
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = QuizBot(config)

    try:
        logger.info("Starting Sheet Quiz Bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()

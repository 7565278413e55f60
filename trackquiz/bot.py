import discord
from discord import app_commands
from discord.ext import commands
import logging
import asyncio
from typing import List, Optional
import os

from .data_manager import DataManager
from .config_manager import ConfigManager
from .quiz_controller import QuizController
from .models import HistoryQuestion, Player, Question, PersistenceFailureError

logger = logging.getLogger(__name__)

CHOICE_LABELS = ["A", "B", "C", "D", "E", "F", "G", "H", "I", "J"]

CATEGORY_CHOICES = [
    app_commands.Choice(name="Release date", value="release_date"),
    app_commands.Choice(name="Artist", value="artist"),
    app_commands.Choice(name="Popularity", value="popularity"),
    app_commands.Choice(name="Album cover", value="album_cover"),
    app_commands.Choice(name="Random", value="random"),
]


def build_question_embeds(question: Question, number: int, total: int, score: int) -> List[discord.Embed]:
    """
    Render a question as embeds.

    Album-cover questions get one image embed per choice; every other
    category lists its choices as text.
    """
    embed = discord.Embed(
        title=f"Question {number}/{total}",
        description=f"**{question.text}**",
        color=0x1db954
    )
    embed.set_footer(text=f"Score: {score}")

    if not question.category.is_image:
        embed.add_field(
            name="Choices",
            value="\n".join(
                f"**{CHOICE_LABELS[i]}.** {choice}" for i, choice in enumerate(question.choices)
            ),
            inline=False
        )
        return [embed]

    embeds = [embed]
    for i, choice in enumerate(question.choices):
        cover = discord.Embed(title=f"Cover {CHOICE_LABELS[i]}", color=0x1db954)
        cover.set_image(url=choice)
        embeds.append(cover)
    return embeds


def build_completion_embed(completion: dict) -> discord.Embed:
    """Render the final score screen."""
    embed = discord.Embed(
        title="🏁 Quiz Completed!",
        description=f"Your Score: **{completion['score']} / {completion['max_score']}**",
        color=0x00ff00
    )
    embed.add_field(
        name="Correct answers",
        value=f"{completion['correct_count']} of {completion['total_questions']}",
        inline=True
    )
    embed.add_field(name="Total points", value=str(completion['new_total']), inline=True)

    if not completion['score_saved']:
        embed.add_field(
            name="⚠️ Score not saved",
            value="Your points could not be saved this time.",
            inline=False
        )
    if not completion['history_saved']:
        embed.add_field(
            name="⚠️ History not saved",
            value="This quiz will not appear in `/history`.",
            inline=False
        )
    elif completion['quiz_id'] is not None:
        embed.set_footer(text=f"Review it later with /history quiz_id:{completion['quiz_id']}")
    return embed


def build_history_embed(quiz_id: int, questions: List[HistoryQuestion]) -> discord.Embed:
    """Render a stored quiz for read-only review."""
    embed = discord.Embed(
        title=f"Answered Questions History - Quiz {quiz_id}",
        color=0x0589ff
    )
    for question in questions[:25]:
        lines = []
        for i, choice in enumerate(question.choices):
            value = f"[Cover {CHOICE_LABELS[i]}]({choice})" if question.category.is_image else choice
            if i == question.correct_index:
                marker = "✅"
            elif i == question.user_answer_index:
                marker = "❌"
            else:
                marker = "▫️"
            lines.append(f"{marker} {value}")
        if question.user_answer_index is None:
            lines.append("*Not answered*")
        embed.add_field(name=question.text[:256], value="\n".join(lines)[:1024], inline=False)
    return embed


class ChoiceButton(discord.ui.Button):
    """One answer option."""

    def __init__(self, index: int, label: str):
        super().__init__(style=discord.ButtonStyle.secondary, label=label[:80], row=index // 5)
        self.index = index

    async def callback(self, interaction: discord.Interaction):
        await self.view.bot.handle_choice(interaction, self.view, self.index)


class NextButton(discord.ui.Button):
    """Advances past an answered question."""

    def __init__(self, is_last: bool):
        super().__init__(
            style=discord.ButtonStyle.primary,
            label="See results" if is_last else "Next question",
            row=2
        )

    async def callback(self, interaction: discord.Interaction):
        await self.view.bot.handle_next(interaction, self.view)


class QuestionView(discord.ui.View):
    """Buttons for one question of a player's quiz."""

    def __init__(self, bot: "QuizBot", player_id: int, question: Question, embeds: List[discord.Embed],
                 quiz_token: Optional[str] = None, position: Optional[int] = None, timeout: float = 900):
        super().__init__(timeout=timeout)
        self.bot = bot
        self.player_id = player_id
        self.question = question
        self.quiz_token = quiz_token
        self.position = position
        self.embeds = embeds
        self.choice_buttons: List[ChoiceButton] = []

        for i, choice in enumerate(question.choices):
            label = f"Cover {CHOICE_LABELS[i]}" if question.category.is_image else f"{CHOICE_LABELS[i]}. {choice}"
            button = ChoiceButton(i, label)
            self.choice_buttons.append(button)
            self.add_item(button)

    def show_result(self, selected_index: int, correct_index: int, is_last: bool) -> None:
        """Lock the choices, colour the outcome and offer the next step."""
        for button in self.choice_buttons:
            button.disabled = True
            if button.index == correct_index:
                button.style = discord.ButtonStyle.success
            elif button.index == selected_index:
                button.style = discord.ButtonStyle.danger
        self.add_item(NextButton(is_last))

    async def on_timeout(self):
        await self.bot.handle_view_timeout(self)


class QuizBot(commands.Bot):
    """Discord bot that runs trivia quizzes about a user's favourite tracks"""

    def __init__(self, config=None):
        intents = discord.Intents.none()
        intents.guilds = True

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.data_manager: Optional[DataManager] = None
        self.config_manager: Optional[ConfigManager] = None
        self.quiz_controller: Optional[QuizController] = None

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")

            self.config_manager = ConfigManager()
            config_errors = self.config_manager.apply_config(self.app_config)
            for error in config_errors:
                logger.warning(f"Configuration value ignored: {error}")

            self.data_manager = DataManager(
                tracks_directory=self.config_manager.get_tracks_directory(),
                data_directory=self.config_manager.get_data_directory()
            )
            self.quiz_controller = QuizController(self.data_manager, self.config_manager)

            await self.setup_commands()

            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    async def setup_commands(self):
        """Register all slash commands"""
        @self.tree.command(name="help", description="Display available commands and current settings")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="trackquiz", description="Start a quiz about your favourite tracks")
        @app_commands.describe(category="What the questions ask about", questions="Number of questions")
        @app_commands.choices(category=CATEGORY_CHOICES)
        async def trackquiz_command(
            interaction: discord.Interaction,
            category: Optional[app_commands.Choice[str]] = None,
            questions: Optional[app_commands.Range[int, 1, 50]] = None
        ):
            await self.handle_trackquiz(interaction, category.value if category else None, questions)

        @self.tree.command(name="status", description="Show your quiz progress")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        @self.tree.command(name="stop", description="Abandon your running quiz without saving")
        async def stop_command(interaction: discord.Interaction):
            await self.handle_stop(interaction)

        @self.tree.command(name="set_questions", description="Set the default number of questions")
        async def set_questions_command(interaction: discord.Interaction, number: int):
            await self.handle_set_questions(interaction, number)

        @self.tree.command(name="set_category", description="Set the default question category")
        @app_commands.choices(category=CATEGORY_CHOICES)
        async def set_category_command(interaction: discord.Interaction, category: app_commands.Choice[str]):
            await self.handle_set_category(interaction, category.value)

        @self.tree.command(name="history", description="Review your answered quizzes")
        async def history_command(interaction: discord.Interaction, quiz_id: Optional[int] = None):
            await self.handle_history(interaction, quiz_id)

        logger.info("Slash commands registered successfully")

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")

        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    def _make_player(self, user) -> Player:
        """Build the Player for a Discord user, with their stored points."""
        return Player(
            user_id=user.id,
            credential=str(user.id),
            display_name=getattr(user, 'display_name', str(user.id)),
            points=self.data_manager.get_user_score(user.id)
        )

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        help_embed = discord.Embed(
            title="🎵 Track Quiz Commands",
            description="Test how well you know your favourite tracks",
            color=0x00ff00
        )
        help_embed.add_field(
            name="🎮 Quiz",
            value=(
                "`/trackquiz [category] [questions]` - Start a quiz\n"
                "`/status` - Show your quiz progress\n"
                "`/stop` - Abandon your running quiz\n"
                "`/history [quiz_id]` - Review answered quizzes"
            ),
            inline=False
        )
        help_embed.add_field(
            name="📋 Settings",
            value=(
                "`/set_questions <number>` - Default number of questions\n"
                "`/set_category <category>` - Default question category"
            ),
            inline=False
        )
        help_embed.add_field(
            name="⚙️ Current Settings",
            value=f"```\n{self.config_manager.get_settings_summary()}\n```",
            inline=False
        )

        try:
            await interaction.response.send_message(embed=help_embed)
        except discord.HTTPException as e:
            logger.error(f"Error in help command: {e}")

    async def handle_trackquiz(self, interaction: discord.Interaction,
                               category: Optional[str] = None, questions: Optional[int] = None):
        """Handle /trackquiz command"""
        try:
            player = self._make_player(interaction.user)
        except PersistenceFailureError as e:
            logger.error(f"Could not load points for user {interaction.user.id}: {e}")
            await self.send_error_response(interaction, "Could not load your points. Please try again.",
                                           "❌ Quiz Start Failed")
            return

        await interaction.response.defer()
        result = await self.quiz_controller.start_quiz(player, category, questions)

        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "❌ Quiz Start Failed")
            return

        if 'completion' in result:
            embed = build_completion_embed(result['completion'])
            embed.description = "No favourite tracks found, so there is nothing to ask.\n" + embed.description
            await interaction.followup.send(embed=embed)
            return

        await self.send_current_question(interaction, player.user_id)

    async def send_current_question(self, interaction: discord.Interaction, player_id: int):
        """Post the player's current question with its answer buttons."""
        view = self._build_question_view(player_id)
        try:
            await interaction.followup.send(embeds=view.embeds, view=view)
        except discord.HTTPException as e:
            logger.error(f"Failed to send question to player {player_id}: {e}")
            self.quiz_controller.stop_quiz(player_id)
            await self.send_error_response(interaction, "Failed to show the quiz. It has been stopped.",
                                           "❌ Presentation Error")

    def _build_question_view(self, player_id: int) -> QuestionView:
        active = self.quiz_controller.get_active_quiz(player_id)
        question = active.session.current_question
        progress = self.quiz_controller.get_session_progress(player_id)
        embeds = build_question_embeds(
            question, progress['current_question'], progress['total_questions'], progress['score']
        )
        return QuestionView(self, player_id, question, embeds,
                            quiz_token=active.token, position=active.session.cursor)

    async def handle_choice(self, interaction: discord.Interaction, view: QuestionView, index: int):
        """Handle a click on an answer button"""
        if interaction.user.id != view.player_id:
            await self.send_error_response(interaction, "This quiz belongs to someone else.", "❌ Not Your Quiz")
            return

        result = self.quiz_controller.submit_answer(view.player_id, index, view.quiz_token, view.position)
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "❌ Answer Rejected")
            return

        view.show_result(index, result['correct_index'], result['is_last_question'])

        outcome = discord.Embed(
            title="✅ Correct!" if result['is_correct'] else "❌ Wrong!",
            description=f"Score: {result['score']}",
            color=0x00ff00 if result['is_correct'] else 0xe74c3c
        )
        try:
            await interaction.response.edit_message(embeds=view.embeds + [outcome], view=view)
        except discord.HTTPException as e:
            logger.error(f"Failed to show answer result to player {view.player_id}: {e}")

    async def handle_next(self, interaction: discord.Interaction, view: QuestionView):
        """Handle a click on the next-question button"""
        if interaction.user.id != view.player_id:
            await self.send_error_response(interaction, "This quiz belongs to someone else.", "❌ Not Your Quiz")
            return

        result = await self.quiz_controller.advance_question(view.player_id, view.quiz_token, view.position)
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "❌ Cannot Continue")
            return

        view.stop()
        try:
            if result['completed']:
                await interaction.response.edit_message(
                    embed=build_completion_embed(result['completion']), view=None
                )
            else:
                next_view = self._build_question_view(view.player_id)
                await interaction.response.edit_message(embeds=next_view.embeds, view=next_view)
        except discord.HTTPException as e:
            logger.error(f"Failed to show next step to player {view.player_id}: {e}")

    async def handle_view_timeout(self, view: QuestionView):
        """Abandon the quiz whose question message expired unanswered."""
        if view.quiz_token is None:
            return

        active = self.quiz_controller.get_active_quiz(view.player_id)
        if active is None or active.token != view.quiz_token or active.session.cursor != view.position:
            return

        result = self.quiz_controller.stop_quiz(view.player_id, view.quiz_token)
        if result['success']:
            logger.info(f"Quiz for player {view.player_id} timed out and was abandoned")

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        summary = self.quiz_controller.get_session_status_summary(interaction.user.id)
        await self.send_info_response(interaction, summary, "📊 Quiz Status")

    async def handle_stop(self, interaction: discord.Interaction):
        """Handle /stop command"""
        result = self.quiz_controller.stop_quiz(interaction.user.id)
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "❌ Nothing To Stop")
            return

        info = result['session_info']
        await self.send_info_response(
            interaction,
            f"Quiz abandoned at question {info['current_question']}/{info['total_questions']}. "
            "Nothing was saved.",
            "🛑 Quiz Stopped"
        )

    async def handle_set_questions(self, interaction: discord.Interaction, number: int):
        """Handle /set_questions command"""
        result = self.config_manager.set_question_count(number)
        if result['success']:
            await self.send_info_response(interaction, result['user_message'], "⚙️ Settings Updated")
        else:
            await self.send_error_response(interaction, result['user_message'], "❌ Invalid Setting")

    async def handle_set_category(self, interaction: discord.Interaction, category: str):
        """Handle /set_category command"""
        result = self.config_manager.set_category(category)
        if result['success']:
            await self.send_info_response(interaction, result['user_message'], "⚙️ Settings Updated")
        else:
            await self.send_error_response(interaction, result['user_message'], "❌ Invalid Setting")

    async def handle_history(self, interaction: discord.Interaction, quiz_id: Optional[int] = None):
        """Handle /history command"""
        try:
            if quiz_id is None:
                quizzes = self.data_manager.list_user_quizzes(interaction.user.id)
                if not quizzes:
                    await self.send_info_response(interaction, "No answered quizzes found.", "📜 History")
                    return
                lines = [
                    f"`#{quiz['id']}` {quiz['created_at']} - {quiz['correct_count']}/{quiz['question_count']} correct"
                    for quiz in quizzes[:20]
                ]
                await self.send_info_response(interaction, "\n".join(lines), "📜 Your Quizzes")
                return

            questions = self.data_manager.get_quiz_questions(quiz_id, interaction.user.id)
        except PersistenceFailureError as e:
            logger.error(f"Failed to read quiz history: {e}")
            await self.send_error_response(interaction, "Failed to fetch questions.", "❌ History Error")
            return

        if not questions:
            await self.send_info_response(interaction, "No answered questions found.", "📜 History")
            return

        await interaction.response.send_message(embed=build_history_embed(quiz_id, questions), ephemeral=True)

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "Error"):
        """Send error response to user with fallback handling"""
        await self._send_embed_response(interaction, message, title, 0xff0000)

    async def send_info_response(self, interaction: discord.Interaction, message: str, title: str = "ℹ️ Information"):
        """Send formatted info response to user"""
        await self._send_embed_response(interaction, message, title, 0x6699ff)

    async def _send_embed_response(self, interaction: discord.Interaction, message: str, title: str, color: int):
        try:
            embed = discord.Embed(title=title, description=message, color=color)
            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)

        except discord.HTTPException as e:
            logger.error(f"Failed to send embed response: {e}")
            try:
                simple_message = f"{title}: {message}"
                if interaction.response.is_done():
                    await interaction.followup.send(simple_message, ephemeral=True)
                else:
                    await interaction.response.send_message(simple_message, ephemeral=True)
            except discord.HTTPException:
                logger.error("Failed to send fallback response message")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = QuizBot(config)

    try:
        logger.info("Starting Track Quiz Bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()


if __name__ == "__main__":
    asyncio.run(run_bot())

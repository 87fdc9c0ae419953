from __future__ import annotations

import logging

import telebot
from telebot.types import InlineKeyboardButton, InlineKeyboardMarkup

from application.services import (
    ExternalContext,
    OperationResult,
    RoomDirectory,
    change_username,
    clear_all,
    clear_estimate,
    describe_table,
    submit_estimate,
    toggle_reveal,
    toggle_spectator,
)
from domain.models import ESTIMATE_LABELS
from interfaces.telegram.callback_data import (
    encode_action,
    encode_estimate_choice,
    parse_action,
    parse_estimate_choice,
)

logger = logging.getLogger(__name__)


def _build_external_context(from_user) -> ExternalContext:
    """Extract a channel-agnostic context object from a Telegram user."""

    display_name = " ".join(
        part for part in (from_user.first_name, from_user.last_name) if part
    )
    return ExternalContext(
        provider="telegram",
        provider_user_id=str(from_user.id),
        display_name=display_name,
    )


def _room_id(chat_id) -> str:
    return f"telegram-{chat_id}"


def _estimate_keyboard() -> InlineKeyboardMarkup:
    markup = InlineKeyboardMarkup(row_width=4)
    markup.add(
        *[
            InlineKeyboardButton(label, callback_data=encode_estimate_choice(label))
            for label in ESTIMATE_LABELS
        ]
    )
    markup.add(
        InlineKeyboardButton("Reveal / hide", callback_data=encode_action("reveal")),
        InlineKeyboardButton("Clear", callback_data=encode_action("clear")),
        InlineKeyboardButton("Clear all", callback_data=encode_action("clearall")),
        InlineKeyboardButton("Spectate", callback_data=encode_action("spectate")),
    )
    return markup


def create_telegram_bot(bot_token: str, directory: RoomDirectory) -> telebot.TeleBot:
    """
    Configure and return a TeleBot instance hosting one planning poker
    room per chat.

    This module contains only Telegram-specific concerns: parsing Telegram
    messages/callbacks and mapping them to/from application services.
    """

    # Handlers must run one at a time: rooms and identities are not thread-safe.
    bot = telebot.TeleBot(bot_token, threaded=False)

    def send_result(chat_id, result: OperationResult) -> None:
        if not result.success:
            bot.send_message(chat_id, result.error_message)
            return
        for broadcast in result.broadcasts:
            bot.send_message(chat_id, broadcast.text)

    def client_for(from_user, chat_id):
        return directory.get_or_join(_build_external_context(from_user), _room_id(chat_id))

    @bot.message_handler(commands=["start", "help"])
    def handle_help(message):
        bot.send_message(
            message.chat.id,
            "/vote [estimate]   - submit your estimate (no estimate shows the cards)\n"
            "/reveal            - reveal or hide all estimates\n"
            "/clear             - clear your estimate\n"
            "/clearall          - start a new round\n"
            "/spectate          - switch between voting and spectating\n"
            "/name <username>   - change your name\n"
            "/table             - show who has voted\n",
        )

    @bot.message_handler(commands=["vote"])
    def handle_vote(message):
        parts = message.text.split()
        if len(parts) < 2:
            bot.send_message(
                message.chat.id,
                "Pick your estimate",
                reply_markup=_estimate_keyboard(),
            )
            return

        client = client_for(message.from_user, message.chat.id)
        send_result(message.chat.id, submit_estimate(client, parts[1]))

    @bot.message_handler(commands=["reveal", "clear", "clearall", "spectate"])
    def handle_action(message):
        action = message.text.split()[0][1:].split("@")[0]  # strip '/' and bot name
        client = client_for(message.from_user, message.chat.id)
        send_result(message.chat.id, _run_action(client, action))

    @bot.message_handler(commands=["name"])
    def handle_name(message):
        parts = message.text.split(maxsplit=1)
        username = parts[1] if len(parts) > 1 else ""
        client = client_for(message.from_user, message.chat.id)
        send_result(message.chat.id, change_username(client, username))

    @bot.message_handler(commands=["table"])
    def handle_table(message):
        client = client_for(message.from_user, message.chat.id)
        bot.send_message(message.chat.id, describe_table(client))

    @bot.callback_query_handler(func=lambda call: call.data.startswith("est:"))
    def handle_estimate_choice(call):
        try:
            label = parse_estimate_choice(call.data)
        except ValueError:
            bot.answer_callback_query(call.id, "Invalid estimate.")
            return

        client = client_for(call.from_user, call.message.chat.id)
        result = submit_estimate(client, label)
        if not result.success:
            bot.answer_callback_query(call.id, result.error_message)
            return

        # Only the voter learns their own estimate.
        bot.answer_callback_query(call.id, f"You voted {label}")
        send_result(call.message.chat.id, result)

    @bot.callback_query_handler(func=lambda call: call.data.startswith("act:"))
    def handle_action_choice(call):
        try:
            action = parse_action(call.data)
        except ValueError:
            bot.answer_callback_query(call.id, "Invalid action.")
            return

        client = client_for(call.from_user, call.message.chat.id)
        bot.answer_callback_query(call.id)
        send_result(call.message.chat.id, _run_action(client, action))

    return bot


def _run_action(client, action: str) -> OperationResult:
    if action == "reveal":
        return toggle_reveal(client)
    if action == "clear":
        return clear_estimate(client)
    if action == "clearall":
        return clear_all(client)
    if action == "spectate":
        return toggle_spectator(client)
    logger.warning("Unknown table action %r", action)
    return OperationResult(success=False, error_message=f"Unknown action: {action}")

from infrastructure.bootstrap import build_room_directory
from infrastructure.config import load_settings
from infrastructure.logging_config import configure_from_env
from interfaces.telegram.handlers import create_telegram_bot


def main() -> None:
    settings = load_settings()
    configure_from_env()

    if not settings.telegram_token:
        raise RuntimeError("TELEGRAM_TOKEN environment variable is not set.")

    directory = build_room_directory(settings)
    bot = create_telegram_bot(settings.telegram_token, directory)
    try:
        bot.infinity_polling()
    finally:
        directory.leave_all()


if __name__ == "__main__":
    main()

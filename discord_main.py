from infrastructure.bootstrap import build_room_directory
from infrastructure.config import load_settings
from infrastructure.logging_config import configure_from_env
from interfaces.discord.handlers import create_discord_bot


def main() -> None:
    settings = load_settings()
    configure_from_env()

    if not settings.discord_token:
        raise RuntimeError("DISCORD_TOKEN environment variable is not set.")

    directory = build_room_directory(settings)
    bot = create_discord_bot(directory)
    try:
        bot.run(settings.discord_token)
    finally:
        directory.leave_all()


if __name__ == "__main__":
    main()

import random
import unittest

from infrastructure.config import load_settings
from infrastructure.names import (
    generate_presence_id,
    generate_room_id,
    generate_room_token,
    new_presence,
)
from interfaces.telegram.callback_data import (
    encode_action,
    encode_estimate_choice,
    parse_action,
    parse_estimate_choice,
)


class CallbackDataTests(unittest.TestCase):
    def test_estimate_choice(self):
        self.assertEqual(encode_estimate_choice("13"), "est:13")
        self.assertEqual(parse_estimate_choice("est:/"), "/")

    def test_invalid_estimate_choice(self):
        for data in ("est:4", "est", "act:reveal", "est:5:6"):
            with self.assertRaises(ValueError):
                parse_estimate_choice(data)

    def test_actions(self):
        self.assertEqual(parse_action(encode_action("clearall")), "clearall")
        with self.assertRaises(ValueError):
            encode_action("explode")
        with self.assertRaises(ValueError):
            parse_action("act:explode")


class SettingsTests(unittest.TestCase):
    def test_defaults_to_sqlite(self):
        settings = load_settings({"DISCORD_TOKEN": "abc"})
        self.assertEqual(settings.discord_token, "abc")
        self.assertIsNone(settings.telegram_token)
        self.assertEqual(settings.db_path, "planning_poker.db")
        self.assertFalse(settings.use_postgres)

    def test_postgres_when_fully_configured(self):
        settings = load_settings(
            {
                "PGHOST": "db",
                "PGUSER": "poker",
                "PGDATABASE": "poker",
                "PGPASSWORD": "secret",
            }
        )
        self.assertTrue(settings.use_postgres)
        self.assertEqual(settings.pg_params["port"], "5432")

    def test_partial_postgres_config_is_ignored(self):
        settings = load_settings({"PGHOST": "db", "DB_PATH": "/tmp/x.db"})
        self.assertFalse(settings.use_postgres)
        self.assertEqual(settings.db_path, "/tmp/x.db")


class NamesTests(unittest.TestCase):
    def test_room_id_is_three_words(self):
        room_id = generate_room_id(random.Random(7))
        self.assertEqual(len(room_id.split("-")), 3)

    def test_presence_ids_are_hex_prefixed_by_the_clock(self):
        first = generate_presence_id(now_ms=1700000000000)
        second = generate_presence_id(now_ms=1700000000000)
        int(first, 16)
        self.assertTrue(first.startswith(format(1700000000000, "x")))
        self.assertEqual(len(first), len(second))

    def test_new_presence_defaults(self):
        presence = new_presence()
        self.assertTrue(presence.id)
        self.assertIn("-", presence.username)
        self.assertFalse(presence.is_spectator)

    def test_room_token(self):
        self.assertEqual(len(generate_room_token()), 8)


if __name__ == "__main__":
    unittest.main()

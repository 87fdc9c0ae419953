import unittest

from application.events import (
    LOCAL_STORAGE_EVENT,
    STORAGE_EVENT,
    CrossTabEventBus,
    StorageEvent,
)
from application.storage import BrowserContext, SessionStorageValue
from infrastructure.storage.memory_storage import InMemoryStorageMedium


class SessionStorageValueTests(unittest.TestCase):
    def setUp(self) -> None:
        self.medium = InMemoryStorageMedium()
        self.context = BrowserContext(self.medium)
        self.tab_a = self.context.open_tab()
        self.tab_b = self.context.open_tab()

    def test_write_then_read_round_trips(self):
        value = SessionStorageValue("prefs", {}, self.tab_a)
        payload = {"theme": "dark", "deck": ["1", "2", "3"], "count": 3, "flag": True}

        value.set(payload)

        self.assertEqual(value.read(), payload)
        self.assertEqual(value.value, payload)

    def test_malformed_text_falls_back_to_default(self):
        self.medium.set_item("prefs", "{not json")

        with self.assertLogs("application.storage", level="ERROR"):
            value = SessionStorageValue("prefs", {"fallback": 1}, self.tab_a)

        self.assertEqual(value.value, {"fallback": 1})

    def test_deeply_nested_text_falls_back_to_default(self):
        self.medium.set_item("prefs", "[" * 100000)

        with self.assertLogs("application.storage", level="ERROR"):
            value = SessionStorageValue("prefs", {"fallback": 1}, self.tab_a)

        self.assertEqual(value.value, {"fallback": 1})

    def test_failing_custom_deserializer_falls_back_to_default(self):
        def deserialize(raw):
            fields = dict(part.split("=", 1) for part in raw.split(";"))
            return {"theme": fields["theme"]}

        self.medium.set_item("prefs", "colour=blue")

        with self.assertLogs("application.storage", level="ERROR"):
            value = SessionStorageValue(
                "prefs",
                {"theme": "light"},
                self.tab_a,
                deserializer=deserialize,
            )

        self.assertEqual(value.value, {"theme": "light"})

    def test_undefined_placeholder_reads_as_none(self):
        self.medium.set_item("prefs", "undefined")
        value = SessionStorageValue("prefs", {"fallback": 1}, self.tab_a)
        self.assertIsNone(value.value)

    def test_default_is_not_shared_between_reads(self):
        value = SessionStorageValue("prefs", {"items": []}, self.tab_a)
        value.read()["items"].append("x")
        self.assertEqual(value.read(), {"items": []})

    def test_server_context_returns_default_and_rejects_writes(self):
        value = SessionStorageValue("prefs", 5)
        self.assertTrue(value.is_server)
        self.assertEqual(value.value, 5)

        with self.assertLogs("application.storage", level="WARNING"):
            value.set(6)
        self.assertEqual(value.value, 5)

        with self.assertLogs("application.storage", level="WARNING"):
            self.assertEqual(value.remove(), 5)

    def test_write_in_one_tab_reaches_other_tab_once(self):
        writer = SessionStorageValue("count", 0, self.tab_a)
        reader = SessionStorageValue("count", 0, self.tab_b)
        writer.mount()
        reader.mount()
        writer_seen = []
        reader_seen = []
        writer.subscribe(writer_seen.append)
        reader.subscribe(reader_seen.append)

        writer.set(3)

        self.assertEqual(reader.value, 3)
        self.assertEqual(reader_seen, [3])
        self.assertEqual(writer_seen, [3])

    def test_same_tab_listeners_are_notified(self):
        first = SessionStorageValue("count", 0, self.tab_a)
        second = SessionStorageValue("count", 0, self.tab_a)
        first.mount()
        second.mount()

        first.set(4)

        self.assertEqual(second.value, 4)

    def test_redundant_notifications_are_idempotent(self):
        writer = SessionStorageValue("count", 0, self.tab_a)
        reader = SessionStorageValue("count", 0, self.tab_b)
        writer.mount()
        reader.mount()
        seen = []
        reader.subscribe(seen.append)

        writer.set(7)
        for _ in range(3):
            self.tab_a.dispatch_event(StorageEvent(LOCAL_STORAGE_EVENT, "count", self.tab_a.tab_id))
            self.context.bus.dispatch(StorageEvent(STORAGE_EVENT, None, self.tab_a.tab_id))

        self.assertEqual(seen, [7])
        self.assertEqual(self.medium.get_item("count"), "7")

    def test_other_keys_are_ignored(self):
        writer = SessionStorageValue("count", 0, self.tab_a)
        other = SessionStorageValue("other", "x", self.tab_b)
        other.mount()
        seen = []
        other.subscribe(seen.append)

        writer.set(1)

        self.assertEqual(seen, [])
        self.assertEqual(other.value, "x")

    def test_deferred_initialization_hydrates_on_mount(self):
        self.medium.set_item("count", "7")
        value = SessionStorageValue("count", 0, self.tab_a, initialize_with_value=False)
        self.assertEqual(value.value, 0)
        seen = []
        value.subscribe(seen.append)

        value.mount()
        value.mount()

        self.assertEqual(value.value, 7)
        self.assertEqual(seen, [7])

    def test_write_failure_keeps_in_memory_value(self):
        self.medium.quota_bytes = 8
        writer = SessionStorageValue("note", "", self.tab_a)
        reader = SessionStorageValue("note", "", self.tab_b)
        writer.mount()
        reader.mount()

        with self.assertLogs("application.storage", level="WARNING"):
            writer.set("a value that is far too long")

        self.assertEqual(writer.value, "a value that is far too long")
        self.assertIsNone(self.medium.get_item("note"))
        self.assertEqual(reader.value, "")

    def test_functional_update_after_write_failure_builds_on_memory(self):
        value = SessionStorageValue("prefs", {}, self.tab_a)
        self.medium.disabled = True

        with self.assertLogs("application.storage", level="WARNING"):
            value.set({"theme": "dark"})
            value.set(lambda current: dict(current, deck="fibonacci"))

        self.assertEqual(value.value, {"theme": "dark", "deck": "fibonacci"})

        self.medium.disabled = False
        value.set(lambda current: dict(current, count=1))

        self.assertEqual(value.read(), {"theme": "dark", "deck": "fibonacci", "count": 1})

    def test_unavailable_medium_reads_default(self):
        self.medium.disabled = True
        with self.assertLogs("application.storage", level="WARNING"):
            value = SessionStorageValue("count", 1, self.tab_a)
        self.assertEqual(value.value, 1)

    def test_unmounted_value_stops_listening(self):
        writer = SessionStorageValue("count", 0, self.tab_a)
        reader = SessionStorageValue("count", 0, self.tab_b)
        reader.mount()
        reader.unmount()

        writer.set(9)

        self.assertEqual(reader.value, 0)
        self.assertEqual(reader.read(), 9)

    def test_functional_update_uses_stored_value(self):
        value = SessionStorageValue("count", 0, self.tab_a)
        value.set(2)
        value.set(lambda previous: previous + 1)
        self.assertEqual(value.value, 3)

    def test_remove_resets_every_tab_to_default(self):
        writer = SessionStorageValue("count", 0, self.tab_a)
        reader = SessionStorageValue("count", 0, self.tab_b)
        with writer, reader:
            writer.set(5)
            self.assertEqual(reader.value, 5)

            self.assertEqual(writer.remove(), 0)

            self.assertEqual(reader.value, 0)
            self.assertIsNone(self.medium.get_item("count"))

    def test_closed_tab_behaves_like_server(self):
        value = SessionStorageValue("count", 0, self.tab_a)
        self.tab_a.close()
        self.assertTrue(value.is_server)


class CrossTabEventBusTests(unittest.TestCase):
    def test_native_event_skips_origin_tab(self):
        bus = CrossTabEventBus()
        received = []
        bus.add_listener(STORAGE_EVENT, "tab-a", lambda e: received.append("a"))
        bus.add_listener(STORAGE_EVENT, "tab-b", lambda e: received.append("b"))

        delivered = bus.dispatch(StorageEvent(STORAGE_EVENT, "k", "tab-a"), include_origin=False)

        self.assertEqual(delivered, 1)
        self.assertEqual(received, ["b"])

    def test_failing_listener_does_not_block_others(self):
        bus = CrossTabEventBus()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.add_listener(LOCAL_STORAGE_EVENT, "tab-a", broken)
        bus.add_listener(LOCAL_STORAGE_EVENT, "tab-b", received.append)

        with self.assertLogs("application.events", level="ERROR"):
            bus.dispatch(StorageEvent(LOCAL_STORAGE_EVENT, "k", "tab-a"))

        self.assertEqual(len(received), 1)

    def test_remove_listener_and_tab(self):
        bus = CrossTabEventBus()
        remove = bus.add_listener(STORAGE_EVENT, "tab-a", lambda e: None)
        bus.add_listener(STORAGE_EVENT, "tab-b", lambda e: None)

        remove()
        remove()
        self.assertEqual(bus.listener_count(STORAGE_EVENT), 1)

        bus.remove_tab("tab-b")
        self.assertEqual(bus.listener_count(STORAGE_EVENT), 0)


if __name__ == "__main__":
    unittest.main()

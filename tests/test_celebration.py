import unittest

from application.celebration import ConsensusCelebrationTrigger


class ConsensusCelebrationTriggerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.celebrated = []
        self.trigger = ConsensusCelebrationTrigger(self.celebrated.append)
        self.population = ["P1", "P2"]

    def test_fires_once_on_reveal_with_consensus(self):
        estimates = {"P1": "5", "P2": "5"}

        self.assertIsNone(self.trigger.observe(False, estimates, self.population))
        self.assertEqual(self.trigger.observe(True, estimates, self.population), "5")
        # Re-rendering with the same state does not fire again.
        self.assertIsNone(self.trigger.observe(True, estimates, self.population))

        self.assertEqual(self.celebrated, ["5"])
        self.assertEqual(self.trigger.fire_count, 1)
        self.assertEqual(self.trigger.last_label, "5")

    def test_changed_estimate_before_reveal_does_not_fire(self):
        self.trigger.observe(False, {"P1": "5", "P2": "5"}, self.population)
        self.trigger.observe(False, {"P1": "5", "P2": "8"}, self.population)
        self.trigger.observe(True, {"P1": "5", "P2": "8"}, self.population)

        self.assertEqual(self.celebrated, [])

    def test_hiding_does_not_fire_and_next_reveal_can(self):
        estimates = {"P1": "2", "P2": "2"}
        self.trigger.observe(True, estimates, self.population)
        self.trigger.observe(False, estimates, self.population)
        self.trigger.observe(True, estimates, self.population)

        self.assertEqual(self.celebrated, ["2", "2"])

    def test_empty_population_does_not_fire(self):
        self.trigger.observe(True, {"S1": "5"}, [])
        self.assertEqual(self.celebrated, [])

    def test_spectator_entries_are_ignored(self):
        self.trigger.observe(True, {"P1": "5", "P2": "5", "S1": "8"}, self.population)
        self.assertEqual(self.celebrated, ["5"])

    def test_joining_an_already_revealed_room_does_not_fire(self):
        trigger = ConsensusCelebrationTrigger(self.celebrated.append, initially_revealed=True)
        trigger.observe(True, {"P1": "5", "P2": "5"}, self.population)
        self.assertEqual(self.celebrated, [])

    def test_works_without_callback(self):
        trigger = ConsensusCelebrationTrigger()
        self.assertEqual(trigger.observe(True, {"P1": "1"}, ["P1"]), "1")
        self.assertEqual(trigger.fire_count, 1)


if __name__ == "__main__":
    unittest.main()

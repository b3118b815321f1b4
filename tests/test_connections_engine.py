from __future__ import annotations

import unittest

from app.services.connections_engine import ConnectionInput, ConnectionTier, compute_connections, tier_for_sensitivity
from app.services.dpia_engine import compute_dpia

EHR = ConnectionInput(id="1", name="EHR", data_sensitivity="identifiable medical/personal")
PLANNING = ConnectionInput(id="2", name="Planning", data_sensitivity="low")


class ConnectionsEngineTests(unittest.TestCase):
    def test_overall_is_max_regardless_of_registration_order(self):
        dpia = compute_dpia({"Q12": "yes"})
        first = compute_connections([EHR, PLANNING], dpia)
        second = compute_connections([PLANNING, EHR], dpia)
        self.assertIs(first.overall, ConnectionTier.HIGH)
        self.assertEqual(first.score, 3)
        self.assertEqual(first, second)

    def test_dpia_no_interfaces_does_not_override_registered_connections(self):
        result = compute_connections([PLANNING], compute_dpia({"Q12": "no"}))
        self.assertIs(result.overall, ConnectionTier.LOW)
        self.assertIn("no interfaces", result.explanation)

    def test_no_connections_follows_dpia_gatekeeper(self):
        self.assertIs(compute_connections([], compute_dpia({"Q12": "no"})).overall, ConnectionTier.NONE)
        expected = compute_connections([], compute_dpia({"Q12": "yes"}))
        self.assertIs(expected.overall, ConnectionTier.UNKNOWN)
        self.assertEqual(expected.status, "No connections registered")
        unanswered = compute_connections([], compute_dpia({}))
        self.assertIs(unanswered.overall, ConnectionTier.UNKNOWN)
        self.assertFalse(unanswered.has_input)

    def test_unrecognised_sensitivity_is_unknown_and_ignored_by_max(self):
        odd = ConnectionInput(id="3", name="Legacy", data_sensitivity="top secret")
        only_odd = compute_connections([odd], compute_dpia({}))
        self.assertIs(only_odd.connections[0].tier, ConnectionTier.UNKNOWN)
        self.assertIs(only_odd.overall, ConnectionTier.UNKNOWN)
        mixed = compute_connections([odd, PLANNING], compute_dpia({}))
        self.assertIs(mixed.overall, ConnectionTier.LOW)

    def test_sensitivity_aliases(self):
        self.assertIs(tier_for_sensitivity("Identificeerbaar medisch of persoon"), ConnectionTier.HIGH)
        self.assertIs(tier_for_sensitivity("pseudonymous"), ConnectionTier.MEDIUM)
        self.assertIs(tier_for_sensitivity("none"), ConnectionTier.NONE)
        self.assertIs(tier_for_sensitivity(""), ConnectionTier.UNKNOWN)


if __name__ == "__main__":
    unittest.main()

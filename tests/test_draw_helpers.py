from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from vrfraffle.config import RaffleSettings, to_wei
from vrfraffle.draw import UpkeepStatus, evaluate_upkeep, select_winner_index
from vrfraffle.exceptions import RaffleInvariantError, UpkeepNotNeeded
from vrfraffle.models import RaffleState

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


class UpkeepEvaluationTests(unittest.TestCase):
    def _evaluate(self, **overrides) -> UpkeepStatus:
        params = dict(
            state=RaffleState.OPEN,
            last_draw_at=T0,
            interval_seconds=30,
            pool=10,
            participant_count=1,
            now=T0 + timedelta(seconds=30),
        )
        params.update(overrides)
        return evaluate_upkeep(**params)

    def test_all_conditions_hold(self) -> None:
        status = self._evaluate()
        self.assertTrue(status.upkeep_needed)
        self.assertTrue(status)
        self.assertEqual(status.failed_conditions(), [])

    def test_each_condition_can_fail_alone(self) -> None:
        cases = {
            "time_elapsed": dict(now=T0 + timedelta(seconds=29)),
            "has_funds": dict(pool=0),
            "has_players": dict(participant_count=0),
            "is_open": dict(state=RaffleState.CALCULATING),
        }
        for name, override in cases.items():
            with self.subTest(condition=name):
                status = self._evaluate(**override)
                self.assertFalse(status.upkeep_needed)
                self.assertEqual(status.failed_conditions(), [name])

    def test_naive_timestamps_are_treated_as_utc(self) -> None:
        status = self._evaluate(last_draw_at=T0.replace(tzinfo=None))
        self.assertTrue(status.time_elapsed)

    def test_upkeep_not_needed_message_lists_failures(self) -> None:
        status = self._evaluate(pool=0, participant_count=0)
        error = UpkeepNotNeeded(status, pool=0, participant_count=0, state="open")
        self.assertIn("has_funds", str(error))
        self.assertIn("has_players", str(error))
        self.assertIs(error.status, status)


class WinnerSelectionTests(unittest.TestCase):
    def test_modulo_selection(self) -> None:
        for random_value, expected in ((0, 0), (4, 0), (7, 3), (11, 3)):
            with self.subTest(random_value=random_value):
                self.assertEqual(select_winner_index(random_value, 4), expected)

    def test_large_random_word(self) -> None:
        word = (1 << 256) - 1
        self.assertEqual(select_winner_index(word, 7), word % 7)

    def test_zero_participants_is_an_invariant_violation(self) -> None:
        with self.assertRaises(RaffleInvariantError):
            select_winner_index(5, 0)

    def test_negative_random_value_raises(self) -> None:
        with self.assertRaises(ValueError):
            select_winner_index(-1, 3)


class SettingsTests(unittest.TestCase):
    def test_to_wei(self) -> None:
        self.assertEqual(to_wei("0.01"), 10**16)
        self.assertEqual(to_wei(1, "gwei"), 10**9)
        self.assertEqual(to_wei("25", "wei"), 25)
        with self.assertRaises(ValueError):
            to_wei("0.5", "wei")
        with self.assertRaises(ValueError):
            to_wei("1", "finney")
        with self.assertRaises(ValueError):
            to_wei("abc")

    def test_from_env(self) -> None:
        settings = RaffleSettings.from_env(
            {
                "RAFFLE_ENTRANCE_FEE": "10000000000000000",
                "RAFFLE_INTERVAL": "30",
                "VRF_KEY_HASH": "0xd89b",
                "VRF_SUBSCRIPTION_ID": "588",
                "VRF_COORDINATOR_ADDRESS": "0xCoordinator",
                "VRF_CALLBACK_GAS_LIMIT": "250000",
            }
        )
        self.assertEqual(settings.entrance_fee, to_wei("0.01"))
        self.assertEqual(settings.interval_seconds, 30)
        self.assertEqual(settings.subscription_id, 588)
        self.assertEqual(settings.callback_gas_limit, 250000)
        self.assertEqual(settings.request_confirmations, 3)
        self.assertEqual(settings.num_words, 1)

    def test_from_env_reads_fee_in_ether(self) -> None:
        env = {
            "RAFFLE_ENTRANCE_FEE_ETHER": "0.01",
            "RAFFLE_INTERVAL": "30",
            "VRF_KEY_HASH": "0xd89b",
            "VRF_SUBSCRIPTION_ID": "588",
            "VRF_COORDINATOR_ADDRESS": "0xCoordinator",
        }
        self.assertEqual(RaffleSettings.from_env(env).entrance_fee, 10**16)

        # The wei value wins when both are set.
        env["RAFFLE_ENTRANCE_FEE"] = "5"
        self.assertEqual(RaffleSettings.from_env(env).entrance_fee, 5)

        del env["RAFFLE_ENTRANCE_FEE"], env["RAFFLE_ENTRANCE_FEE_ETHER"]
        with self.assertRaises(ValueError) as ctx:
            RaffleSettings.from_env(env)
        self.assertIn("RAFFLE_ENTRANCE_FEE", str(ctx.exception))

    def test_from_env_requires_variables(self) -> None:
        with self.assertRaises(ValueError) as ctx:
            RaffleSettings.from_env({"RAFFLE_ENTRANCE_FEE": "1"})
        self.assertIn("RAFFLE_INTERVAL", str(ctx.exception))

    def test_invalid_settings_rejected(self) -> None:
        base = dict(
            entrance_fee=1,
            interval_seconds=30,
            key_hash="0x",
            subscription_id=1,
            coordinator_address="0xC",
        )
        for override in (
            dict(entrance_fee=0),
            dict(interval_seconds=-1),
            dict(num_words=0),
            dict(coordinator_address=""),
        ):
            with self.subTest(**override):
                with self.assertRaises(ValueError):
                    RaffleSettings(**{**base, **override})


if __name__ == "__main__":
    unittest.main()

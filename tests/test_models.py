import unittest
from datetime import datetime, timezone

from sqlalchemy import create_engine, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from vrfraffle.models import (
    Base,
    Raffle,
    RaffleDraw,
    RaffleEntry,
    RaffleState,
    RandomnessRequest,
)
from vrfraffle.models.types import UINT256_MAX

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_raffle(**overrides) -> Raffle:
    params = dict(
        entrance_fee=10**16,
        interval_seconds=30,
        key_hash="0x" + "cd" * 32,
        subscription_id=588,
        coordinator_address="0xCoordinator",
        created_at=T0,
    )
    params.update(overrides)
    return Raffle(**params)


class DBTestCase(unittest.TestCase):
    def setUp(self):
        # In-memory SQLite for isolation
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )

    def tearDown(self):
        self.engine.dispose()

    def test_raffle_defaults(self):
        with self.Session() as session:
            raffle = make_raffle()
            session.add(raffle)
            session.commit()

            found = Raffle.get_by_id(session, raffle.id)
            assert found is not None
            self.assertEqual(found.raffle_state, RaffleState.OPEN)
            self.assertTrue(found.is_open)
            self.assertEqual(found.pool, 0)
            self.assertEqual(found.round_number, 1)
            self.assertEqual(found.last_draw_at, T0)
            self.assertIsNone(found.recent_winner)
            self.assertIsNone(Raffle.get_by_id(session, raffle.id + 1))

    def test_raffle_rejects_invalid_config(self):
        for override in (
            dict(entrance_fee=0),
            dict(interval_seconds=-5),
            dict(num_words=0),
            dict(coordinator_address=""),
        ):
            with self.subTest(**override):
                with self.assertRaises(ValueError):
                    make_raffle(**override)

    def test_uint256_roundtrip(self):
        big = UINT256_MAX - 1
        with self.Session() as session:
            raffle = make_raffle(entrance_fee=big, subscription_id=UINT256_MAX)
            session.add(raffle)
            session.commit()
            raffle_id = raffle.id

        with self.Session() as session:
            stored = session.execute(
                text("SELECT entrance_fee FROM raffles WHERE id = :id"), {"id": raffle_id}
            ).scalar_one()
            self.assertEqual(stored, str(big))
            loaded = session.get(Raffle, raffle_id)
            assert loaded is not None
            self.assertEqual(loaded.entrance_fee, big)
            self.assertEqual(loaded.subscription_id, UINT256_MAX)

    def test_uint256_rejects_out_of_range(self):
        for value in (-1, UINT256_MAX + 1):
            with self.subTest(value=value):
                with self.Session() as session:
                    raffle = make_raffle()
                    raffle.pool = value
                    session.add(raffle)
                    with self.assertRaises(Exception):
                        session.flush()

    def test_to_json(self):
        with self.Session() as session:
            raffle = make_raffle()
            session.add(raffle)
            session.flush()

            payload = raffle.to_json()
            self.assertEqual(payload["entrance_fee"], str(10**16))
            self.assertEqual(payload["state"], "open")
            self.assertEqual(payload["pool"], "0")
            self.assertEqual(payload["last_draw_at"], T0.isoformat())
            self.assertEqual(payload["coordinator_address"], "0xCoordinator")

    def test_pending_request_lookup(self):
        with self.Session() as session:
            raffle = make_raffle()
            session.add(raffle)
            session.flush()
            self.assertIsNone(RandomnessRequest.pending_for(session, raffle.id))

            ticket = RandomnessRequest(
                raffle_id=raffle.id, request_id=1, round_number=1, participant_count=2
            )
            session.add(ticket)
            session.flush()
            self.assertIs(RandomnessRequest.pending_for(session, raffle.id), ticket)
            self.assertTrue(ticket.is_pending)

            ticket.status = "fulfilled"
            session.flush()
            self.assertIsNone(RandomnessRequest.pending_for(session, raffle.id))

    def test_single_pending_request_per_raffle(self):
        with self.Session() as session:
            raffle = make_raffle()
            other = make_raffle()
            session.add_all([raffle, other])
            session.flush()
            session.add_all(
                [
                    RandomnessRequest(
                        raffle_id=raffle.id, request_id=1, round_number=1, participant_count=1
                    ),
                    RandomnessRequest(
                        raffle_id=other.id, request_id=1, round_number=1, participant_count=1
                    ),
                ]
            )
            session.flush()
            session.add(
                RandomnessRequest(
                    raffle_id=raffle.id, request_id=2, round_number=1, participant_count=1
                )
            )
            with self.assertRaises(IntegrityError):
                session.flush()

    def test_fulfilled_requests_do_not_block_new_ones(self):
        with self.Session() as session:
            raffle = make_raffle()
            session.add(raffle)
            session.flush()
            first = RandomnessRequest(
                raffle_id=raffle.id, request_id=1, round_number=1, participant_count=1
            )
            session.add(first)
            session.flush()
            first.status = "fulfilled"
            session.flush()
            session.add(
                RandomnessRequest(
                    raffle_id=raffle.id, request_id=2, round_number=2, participant_count=1
                )
            )
            session.flush()
            self.assertEqual(
                RandomnessRequest.pending_for(session, raffle.id).request_id, 2
            )

    def test_request_requires_participants(self):
        with self.Session() as session:
            raffle = make_raffle()
            session.add(raffle)
            session.flush()
            session.add(
                RandomnessRequest(
                    raffle_id=raffle.id, request_id=1, round_number=1, participant_count=0
                )
            )
            with self.assertRaises(IntegrityError):
                session.flush()

    def test_entry_positions_unique_per_round(self):
        with self.Session() as session:
            raffle = make_raffle()
            session.add(raffle)
            session.flush()
            session.add_all(
                [
                    RaffleEntry(
                        raffle_id=raffle.id,
                        round_number=1,
                        position=0,
                        participant="0xA",
                        amount=1,
                    ),
                    RaffleEntry(
                        raffle_id=raffle.id,
                        round_number=2,
                        position=0,
                        participant="0xA",
                        amount=1,
                    ),
                ]
            )
            session.flush()
            session.add(
                RaffleEntry(
                    raffle_id=raffle.id,
                    round_number=1,
                    position=0,
                    participant="0xB",
                    amount=1,
                )
            )
            with self.assertRaises(IntegrityError):
                session.flush()

    def test_latest_draw(self):
        with self.Session() as session:
            raffle = make_raffle()
            session.add(raffle)
            session.flush()
            self.assertIsNone(RaffleDraw.latest_for(session, raffle.id))

            for round_number in (1, 2):
                ticket = RandomnessRequest(
                    raffle_id=raffle.id,
                    request_id=round_number,
                    round_number=round_number,
                    participant_count=1,
                )
                ticket.status = "fulfilled"
                session.add(ticket)
                session.flush()
                session.add(
                    RaffleDraw(
                        raffle_id=raffle.id,
                        randomness_request_id=ticket.id,
                        round_number=round_number,
                        random_value=round_number,
                        winner_index=0,
                        winner=f"0xWinner{round_number}",
                        amount=10,
                    )
                )
            session.flush()

            latest = RaffleDraw.latest_for(session, raffle.id)
            assert latest is not None
            self.assertEqual(latest.winner, "0xWinner2")
            self.assertEqual(latest.request.request_id, 2)


if __name__ == "__main__":
    unittest.main()

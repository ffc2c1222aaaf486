"""Demo harness that tops up waiting rooms with mock players.

Mock players go through the same lifecycle operations as any client
(join, then confirm payment for paid rooms); nothing here edits rooms directly.
"""

from __future__ import annotations

from collections.abc import Sequence
import logging

from bingo_server.rooms.lifecycle import RoomLifecycle
from bingo_server.rooms.payments import LedgerPaymentGateway
from bingo_server.rooms.room import RoomError
from bingo_server.rooms.room import STATUS_WAITING

logger = logging.getLogger(__name__)

MOCK_IDENTITIES: tuple[str, ...] = (
    "8xzt3UjS7yjXJHJZ2kQWxUmk6T9RqUL5RhpvLBGfPNk7",
    "6yKHERk8rsbmJxvMpPuwPs1cSKEd6d6KZpfJHXEv3SZM",
    "2ZpFJWYgZHqVqnEgLdAkVh6WGVvLpPnH9HwJPjdFdN5C",
    "9xMRLsxNgNDf3CfKJJhYeUNpRcEWWYTpHYm2KGQFyS4k",
    "4vJ6NUBKDEQf4qLtpxYP8aCdYJ5jhQHyEVqC8JodKADN",
    "7mK4SbQnbr6jvkqxMJJGHP9uZNP9DJYMpxNKVwJRVEYY",
    "3zTpDHXqjLWk4yN5iFCdmKB19Z4sT4kA5SQzjyVn5i1t",
    "5xKTwjRLQFGDF4MLvpUZxEVoTfqLMQFRJeAn3yYfAkXZ",
    "2qMZ5KBWMv5vLBFmMFoNKbKiPnxQ2TkwVpYvFRgj6soq",
    "8pFiM2vyum2jQ6zXPNuWx4QdNBJpNBVBXRYvrTrYS5dM",
)


class MockPlayerHarness:
    def __init__(
        self,
        lifecycle: RoomLifecycle,
        ledger: LedgerPaymentGateway,
        *,
        identities: Sequence[str] = MOCK_IDENTITIES,
        per_room: int = 3,
    ) -> None:
        self.lifecycle = lifecycle
        self.ledger = ledger
        self.identities = tuple(identities)
        self.per_room = per_room

    def fill_room(self, room_id: str) -> list[str]:
        """Add up to per_room mock players to one waiting room; return who joined."""
        joined: list[str] = []
        for identity in self.identities:
            room = self.lifecycle.get_room(room_id)
            if room is None or room.status != STATUS_WAITING or room.is_full:
                break
            if len(joined) >= self.per_room:
                break
            if identity in room.players:
                continue
            try:
                room = self.lifecycle.join_room(room_id, identity)
            except RoomError as exc:
                logger.debug("mock player skipped room_id=%s identity=%s code=%s", room_id, identity, exc.code)
                continue
            joined.append(identity)
            if room.is_paid and identity not in room.payment_confirmed:
                self.ledger.credit(identity, room.entry_fee)
                try:
                    self.lifecycle.confirm_payment(room_id, identity, room.entry_fee)
                except RoomError as exc:
                    logger.warning("mock payment failed room_id=%s identity=%s code=%s", room_id, identity, exc.code)
        if joined:
            logger.info("mock players joined room_id=%s count=%s", room_id, len(joined))
        return joined

    def sweep(self) -> dict[str, list[str]]:
        """Fill every available room once."""
        results: dict[str, list[str]] = {}
        for room in self.lifecycle.get_available_rooms():
            joined = self.fill_room(room.id)
            if joined:
                results[room.id] = joined
        return results


__all__ = ["MOCK_IDENTITIES", "MockPlayerHarness"]

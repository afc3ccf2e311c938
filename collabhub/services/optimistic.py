"""Optimistic mutations over a visible list, reconciled against the backend.

Every mutation changes the local list before its single suspension point (the
remote call) and settles afterwards: confirmed rows take the server's value and
id, failed rows are restored from an immutable snapshot taken up front.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Awaitable, Callable, Generic, Iterable, Iterator, TypeVar

from collabhub.domain.bus import EventBus
from collabhub.domain.events import MutationConfirmed, MutationRolledBack
from collabhub.domain.models import (
    MutationKind,
    MutationResult,
    MutationState,
    OptimisticEntity,
    PendingMutation,
)
from collabhub.errors import MutationInFlightError, RemoteError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_local_ids = itertools.count(1)


def new_local_id(prefix: str = "local") -> str:
    """Return a temporary id that is unique for the lifetime of the process."""
    return f"{prefix}-{next(_local_ids)}"


def _default_id(value: Any) -> str:
    return str(value.id)


class OptimisticCollection(Generic[T]):
    """Ordered list of rows owned by one view, with optimistic create/update/delete.

    Rows are addressed by key: the server id once known, the local id before.
    A second mutation on a key whose previous mutation has not settled is
    refused with ``MutationInFlightError``.

    ``replace_all`` and ``clear`` start a new generation of the list; mutations
    still in flight from an older generation settle without touching it.
    """

    def __init__(
        self,
        name: str,
        *,
        id_of: Callable[[T], str] = _default_id,
        bus: EventBus | None = None,
    ) -> None:
        self.name = name
        self._id_of = id_of
        self._bus = bus
        self._entities: list[OptimisticEntity] = []
        self._in_flight: set[str] = set()
        self._generation = 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[T]:
        return iter(self.values())

    def values(self) -> list[T]:
        return [entity.value for entity in self._entities]

    def entities(self) -> list[OptimisticEntity]:
        return list(self._entities)

    def keys(self) -> list[str]:
        return [entity.key for entity in self._entities]

    def entity(self, key: str) -> OptimisticEntity | None:
        index = self._index(key)
        return None if index is None else self._entities[index]

    def get(self, key: str) -> T | None:
        found = self.entity(key)
        return None if found is None else found.value

    def is_in_flight(self, key: str) -> bool:
        index = self._index(key)
        if index is not None:
            key = self._entities[index].local_id
        return key in self._in_flight

    # ------------------------------------------------------------------
    # Local-only changes
    # ------------------------------------------------------------------

    def replace_all(self, values: Iterable[T]) -> None:
        """Replace the list with freshly fetched, confirmed rows."""
        self._generation += 1
        self._entities = [
            OptimisticEntity(
                local_id=self._id_of(value),
                server_id=self._id_of(value),
                state=MutationState.CONFIRMED,
                value=value,
            )
            for value in values
        ]

    def clear(self) -> None:
        self._generation += 1
        self._entities = []

    def apply_local(self, key: str, mutator: Callable[[T], T]) -> None:
        index = self._require(key)
        entity = self._entities[index]
        self._entities[index] = entity.model_copy(update={"value": mutator(entity.value)})

    def apply_all(self, mutator: Callable[[T], T]) -> None:
        self._entities = [
            entity.model_copy(update={"value": mutator(entity.value)})
            for entity in self._entities
        ]

    def remove_local(self, key: str) -> T:
        index = self._require(key)
        return self._entities.pop(index).value

    def snapshot(self) -> tuple[OptimisticEntity, ...]:
        return tuple(self._entities)

    def restore(self, snapshot: tuple[OptimisticEntity, ...]) -> None:
        self._entities = list(snapshot)

    # ------------------------------------------------------------------
    # Optimistic mutations
    # ------------------------------------------------------------------

    async def create(
        self,
        local_id: str,
        provisional: T,
        remote_create: Callable[[], Awaitable[T]],
    ) -> MutationResult:
        """Show *provisional* immediately, then replace it with the server's row."""
        if self._index(local_id) is not None:
            raise ValueError(f"{local_id!r} is already in {self.name}")
        self._claim(local_id)
        generation = self._generation
        self._entities.append(OptimisticEntity(local_id=local_id, value=provisional))
        mutation = PendingMutation(kind=MutationKind.CREATE, key=local_id)

        try:
            confirmed = await remote_create()
            server_id = self._id_of(confirmed)
        except RemoteError as exc:
            return self._roll_back(mutation, generation, exc)
        except (Exception, asyncio.CancelledError) as exc:
            self._roll_back(mutation, generation, exc)
            raise
        finally:
            self._in_flight.discard(local_id)

        if generation == self._generation:
            index = self._index(local_id)
            if index is not None:
                self._entities[index] = OptimisticEntity(
                    local_id=local_id,
                    server_id=server_id,
                    state=MutationState.CONFIRMED,
                    value=confirmed,
                )
        return self._confirm(mutation.settle(MutationState.CONFIRMED), server_id, confirmed, local_id)

    async def update(
        self,
        key: str,
        mutator: Callable[[T], T],
        remote_update: Callable[[T], Awaitable[T | None]],
    ) -> MutationResult:
        """Apply *mutator* locally, push the result, restore the snapshot on failure.

        ``remote_update`` receives the mutated value; when it returns a value
        that becomes the confirmed row, otherwise the mutated value stays.
        """
        index = self._require(key)
        claimed = self._claim_row(index)
        generation = self._generation
        snapshot = self._entities[index]
        try:
            mutated = mutator(snapshot.value)
        except Exception:
            self._in_flight.discard(claimed)
            raise
        self._entities[index] = snapshot.model_copy(
            update={"value": mutated, "state": MutationState.PENDING}
        )
        mutation = PendingMutation(
            kind=MutationKind.UPDATE, key=key, snapshot=snapshot, position=index
        )

        try:
            returned = await remote_update(mutated)
        except RemoteError as exc:
            return self._roll_back(mutation, generation, exc)
        except (Exception, asyncio.CancelledError) as exc:
            self._roll_back(mutation, generation, exc)
            raise
        finally:
            self._in_flight.discard(claimed)

        value = mutated if returned is None else returned
        if generation == self._generation:
            current = self._index(key)
            if current is not None:
                self._entities[current] = self._entities[current].model_copy(
                    update={"value": value, "state": MutationState.CONFIRMED}
                )
        return self._confirm(mutation.settle(MutationState.CONFIRMED), key, value)

    async def delete(
        self,
        key: str,
        remote_delete: Callable[[], Awaitable[Any]],
    ) -> MutationResult:
        """Remove the row now; put it back where it was if the backend refuses."""
        index = self._require(key)
        claimed = self._claim_row(index)
        generation = self._generation
        snapshot = self._entities.pop(index)
        previous_key = self._entities[index - 1].key if index > 0 else None
        mutation = PendingMutation(
            kind=MutationKind.DELETE,
            key=key,
            snapshot=snapshot,
            position=index,
            previous_key=previous_key,
        )

        try:
            await remote_delete()
        except RemoteError as exc:
            return self._roll_back(mutation, generation, exc)
        except (Exception, asyncio.CancelledError) as exc:
            self._roll_back(mutation, generation, exc)
            raise
        finally:
            self._in_flight.discard(claimed)

        return self._confirm(mutation.settle(MutationState.CONFIRMED), key, snapshot.value)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def _confirm(
        self,
        mutation: PendingMutation,
        key: str,
        value: Any,
        local_id: str | None = None,
    ) -> MutationResult:
        logger.debug("%s %s confirmed for %s", self.name, mutation.kind, key)
        if self._bus is not None:
            self._bus.publish(
                MutationConfirmed(
                    collection=self.name, kind=mutation.kind, key=key, local_id=local_id
                )
            )
        return MutationResult(
            kind=mutation.kind, key=key, state=MutationState.CONFIRMED, value=value
        )

    def _roll_back(
        self, mutation: PendingMutation, generation: int, error: BaseException
    ) -> MutationResult:
        settled = mutation.settle(MutationState.FAILED)
        if generation == self._generation:
            self._restore(settled)
        logger.warning(
            "%s %s failed for %s, rolled back: %s",
            self.name,
            settled.kind,
            settled.key,
            error,
        )
        if self._bus is not None and isinstance(error, Exception):
            self._bus.publish(
                MutationRolledBack(
                    collection=self.name, kind=settled.kind, key=settled.key, error=error
                )
            )
        return MutationResult(
            kind=settled.kind,
            key=settled.key,
            state=MutationState.FAILED,
            value=settled.snapshot.value if settled.snapshot is not None else None,
            error=error if isinstance(error, Exception) else None,
        )

    def _restore(self, mutation: PendingMutation) -> None:
        if mutation.kind == MutationKind.CREATE:
            index = self._index(mutation.key)
            if index is not None:
                del self._entities[index]
        elif mutation.kind == MutationKind.UPDATE:
            index = self._index(mutation.key)
            if index is not None:
                self._entities[index] = mutation.snapshot
        elif self._index(mutation.key) is None:
            self._entities.insert(self._reinsert_position(mutation), mutation.snapshot)

    def _reinsert_position(self, mutation: PendingMutation) -> int:
        # Back in place when the old neighbour still precedes the gap, else at the end.
        if mutation.previous_key is None:
            return 0
        neighbour = self._index(mutation.previous_key)
        if neighbour is not None and neighbour + 1 == mutation.position:
            return mutation.position
        return len(self._entities)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _index(self, key: str) -> int | None:
        for index, entity in enumerate(self._entities):
            if entity.key == key or entity.local_id == key:
                return index
        return None

    def _require(self, key: str) -> int:
        index = self._index(key)
        if index is None:
            raise KeyError(key)
        return index

    def _claim(self, key: str) -> None:
        if key in self._in_flight:
            raise MutationInFlightError(key)
        self._in_flight.add(key)

    def _claim_row(self, index: int) -> str:
        # A row answers to its local and server id; both map to the local id.
        local_id = self._entities[index].local_id
        self._claim(local_id)
        return local_id

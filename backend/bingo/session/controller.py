"""Per-participant coordinator of the shared bingo game.

Every client runs one SessionController. There is no server: the
controller subscribes to the shared session document and player
directory, and implements calling, claiming and resetting as
read-modify-write cycles against the store. Session writes are
conditional on the version that was read and retried on conflict, so
concurrent callers and resetters cannot silently drop each other's
updates.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from bingo.logic.card import FREE, generate_card, is_valid_card
from bingo.logic.enums import GameStatus
from bingo.logic.win import winning_line
from bingo.session.claim_timer import DEFAULT_CLAIM_GRACE_SECONDS, ClaimCooldown
from bingo.session.exceptions import GameUnavailableError
from bingo.session.models import GameSession, ParticipantRecord, SessionPaths
from bingo.session.roles import active_participants, resolve_caller
from bingo.session.view import (
    MSG_ACTION_FAILED,
    MSG_CLAIM_REJECTED,
    MSG_CLAIM_TOO_LATE,
    MSG_CONNECTION_LOST,
    MSG_UNAVAILABLE,
    MSG_WRITE_CONTENDED,
    ViewState,
    markable_cells,
    status_message,
)
from shared.dal.exceptions import DocumentNotFoundError, StoreError, VersionConflictError
from shared.dal.models import BatchResult

if TYPE_CHECKING:
    from bingo.logic.card import Card, CellValue
    from bingo.logic.win import Line
    from shared.dal.document_store import DocumentStore
    from shared.dal.listeners import Subscription
    from shared.dal.models import DocumentSnapshot

logger = structlog.get_logger()

ViewListener = Callable[[ViewState], None]

DEFAULT_WRITE_RETRIES = 5
DEFAULT_PRESENCE_TIMEOUT_SECONDS = 60.0


class SessionController:
    def __init__(
        self,
        store: DocumentStore,
        participant_id: str,
        *,
        app_id: str,
        claim_grace_seconds: float = DEFAULT_CLAIM_GRACE_SECONDS,
        write_retries: int = DEFAULT_WRITE_RETRIES,
        presence_timeout_seconds: float = DEFAULT_PRESENCE_TIMEOUT_SECONDS,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if write_retries < 1:
            raise ValueError(f"write_retries must be at least 1, got {write_retries}")
        self._store = store
        self._participant_id = participant_id
        self._paths = SessionPaths(app_id)
        self._write_retries = write_retries
        self._presence_timeout_seconds = presence_timeout_seconds
        self._rng = rng or random.Random()  # noqa: S311
        self._clock = clock or (lambda: datetime.now(UTC))
        self._log = logger.bind(participant_id=participant_id, app_id=app_id)

        self._session: GameSession | None = None
        self._directory: dict[str, ParticipantRecord] = {}  # observed insertion order
        self._card: Card | None = None
        self._marked: set[CellValue] = set()  # local only, never written to the store
        self._notice: str | None = None  # transient message overriding the status message
        self._degraded = False
        self._unavailable = False

        self._claim_cooldown = ClaimCooldown(self._release_claim, grace_seconds=claim_grace_seconds)
        self._subscriptions: list[Subscription] = []
        self._background_tasks: set[asyncio.Task[None]] = set()
        self._view_listeners: list[ViewListener] = []

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def participant_id(self) -> str:
        return self._participant_id

    @property
    def paths(self) -> SessionPaths:
        return self._paths

    @property
    def card(self) -> Card | None:
        return self._card

    @property
    def session(self) -> GameSession | None:
        return self._session

    @property
    def directory(self) -> dict[str, ParticipantRecord]:
        return dict(self._directory)

    @property
    def marked(self) -> frozenset[CellValue]:
        return frozenset(self._marked)

    @property
    def claim_cooldown(self) -> ClaimCooldown:
        return self._claim_cooldown

    @property
    def is_caller(self) -> bool:
        return resolve_caller(self._session, self._directory) == self._participant_id

    @property
    def view(self) -> ViewState:
        session = self._session
        status = session.status if session is not None else None
        called = session.called_set if session is not None else frozenset()
        own = self._directory.get(self._participant_id)
        has_claimed = own is not None and own.has_claimed_bingo
        is_caller = self.is_caller

        if self._unavailable:
            message = MSG_UNAVAILABLE
        elif self._degraded:
            message = MSG_CONNECTION_LOST
        elif self._notice is not None:
            message = self._notice
        else:
            message = status_message(
                participant_id=self._participant_id,
                status=status,
                last_number=session.last_number if session is not None else None,
                winner=session.winner if session is not None else None,
                is_caller=is_caller,
            )

        return ViewState(
            participant_id=self._participant_id,
            status=status,
            message=message,
            card=self._card,
            called_numbers=session.called_numbers if session is not None else (),
            last_number=session.last_number if session is not None else None,
            marked=frozenset(self._marked),
            markable=markable_cells(self._card, status, called),
            winner=session.winner if session is not None else None,
            caller=resolve_caller(session, self._directory),
            is_caller=is_caller,
            can_call=is_caller and status in (GameStatus.WAITING, GameStatus.PLAYING),
            can_claim=status == GameStatus.PLAYING and not has_claimed and not self._claim_cooldown.pending,
            has_claimed_bingo=has_claimed,
            players=tuple(self._directory),
            active_players=tuple(
                active_participants(self._directory, self._clock(), self._presence_timeout_seconds),
            ),
            degraded=self._degraded,
            unavailable=self._unavailable,
        )

    def add_listener(self, listener: ViewListener) -> Callable[[], None]:
        """Register a view listener. Return a callable that removes it."""
        self._view_listeners.append(listener)

        def remove() -> None:
            if listener in self._view_listeners:
                self._view_listeners.remove(listener)

        return remove

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> ViewState:
        """Join the player directory, create the session if absent, and subscribe.

        Raises GameUnavailableError when the store cannot be reached; the
        view then carries the blocking message and nothing is retried.
        """
        try:
            await self._join()
            await self._ensure_session()
        except StoreError as exc:
            self._unavailable = True
            self._log.exception("failed to initialize game session")
            self._publish()
            raise GameUnavailableError(MSG_UNAVAILABLE) from exc

        self._subscriptions = [
            self._store.subscribe_document(self._paths.session, self._on_session_change, self._on_subscription_error),
            self._store.subscribe_collection(
                self._paths.players,
                self._on_directory_change,
                self._on_subscription_error,
            ),
        ]
        self._log.info("joined game", caller=resolve_caller(self._session, self._directory))
        self._publish()
        return self.view

    async def stop(self) -> None:
        """Unsubscribe and cancel pending timers. The participant record stays in the directory."""
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []
        self._claim_cooldown.cancel()
        tasks = list(self._background_tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def leave(self) -> None:
        """Stop and remove this participant's record from the directory."""
        await self.stop()
        await self._store.delete_document(self._paths.player(self._participant_id))
        self._log.info("left game")

    async def _join(self) -> None:
        path = self._paths.player(self._participant_id)
        existing = self._parse_participant(await self._store.get_document(path))
        if existing is not None and existing.card is not None and is_valid_card(existing.card):
            self._card = existing.card
        else:
            self._card = generate_card(self._rng)

        fields: dict[str, Any] = {
            "id": self._participant_id,
            "card": self._card.to_document(),
            "last_active": self._clock().isoformat(),
        }
        if existing is None:
            fields["has_claimed_bingo"] = False
        await self._store.set_document(path, fields, merge=True)

    async def _ensure_session(self) -> None:
        """Create the session document if absent; the creator becomes the caller.

        create_document is create-if-absent, so racing initializers converge
        on the first writer's document.
        """
        if await self._store.get_document(self._paths.session) is not None:
            return
        fresh = GameSession(caller=self._participant_id)
        if await self._store.create_document(self._paths.session, fresh.to_document()):
            self._log.info("created game session")
        else:
            self._log.info("game session created concurrently by another participant")

    # ------------------------------------------------------------------
    # Store notifications
    # ------------------------------------------------------------------

    def _on_session_change(self, snapshot: DocumentSnapshot | None) -> None:
        if snapshot is None:
            self._session = None
            self._spawn(self._recreate_session())
            self._publish()
            return
        session = self._parse_session(snapshot)
        if session is None:
            return
        previous = self._session
        self._session = session
        if previous is not None and _is_reset(previous, session):
            # marks and claim state refer to the previous round
            self._marked.clear()
            self._notice = None
            self._claim_cooldown.cancel()
        self._publish()

    def _on_directory_change(self, documents: dict[str, DocumentSnapshot]) -> None:
        directory: dict[str, ParticipantRecord] = {}
        for participant_id, snapshot in documents.items():
            record = self._parse_participant(snapshot)
            if record is not None:
                directory[participant_id] = record
        self._directory = directory
        own = directory.get(self._participant_id)
        if own is not None and not own.has_claimed_bingo and self._notice == MSG_CLAIM_REJECTED:
            self._notice = None
        self._publish()

    def _on_subscription_error(self, error: Exception) -> None:
        if not self._degraded:
            self._log.warning("store subscription failed, freezing at last known state", error=str(error))
        self._degraded = True
        self._publish()

    async def _recreate_session(self) -> None:
        try:
            await self._ensure_session()
        except StoreError:
            self._log.exception("failed to recreate missing game session")

    # ------------------------------------------------------------------
    # Local actions
    # ------------------------------------------------------------------

    def toggle_mark(self, value: CellValue) -> bool:
        """Toggle a cell in the local marked set. Return False when marking is not allowed.

        Marks are a local aid only; claiming never looks at them.
        """
        session = self._session
        if session is None or session.status != GameStatus.PLAYING or self._card is None:
            self._log.debug("ignoring mark outside of play", value=value)
            return False
        if value not in self._card or (value != FREE and value not in session.called_set):
            self._log.debug("ignoring mark of uncalled or foreign cell", value=value)
            return False
        if value in self._marked:
            self._marked.discard(value)
        else:
            self._marked.add(value)
        self._publish()
        return True

    async def touch(self) -> None:
        """Refresh this participant's last_active timestamp."""
        await self._store.update_document(
            self._paths.player(self._participant_id),
            {"last_active": self._clock().isoformat()},
        )

    async def call_number(self) -> int | None:
        """Announce the next random uncalled number (caller only).

        Return the called number, or None when the call was not allowed or
        the pool was exhausted (the session then moves to game_over).
        """
        session = self._session
        if session is None or not self.is_caller or session.status == GameStatus.BINGO_CALLED:
            self._log.debug("ignoring call_number", is_caller=self.is_caller)
            return None
        try:
            number = await self._call_number()
        except StoreError:
            self._report_action_failure("call_number")
            return None
        if number is not None:
            await self._touch_quietly()
        return number

    async def _call_number(self) -> int | None:
        path = self._paths.session
        for _ in range(self._write_retries):
            snapshot = await self._store.get_document(path)
            session = self._parse_session(snapshot) if snapshot is not None else None
            if snapshot is None or session is None:
                self._log.warning("cannot call a number without a session document")
                return None
            if session.status == GameStatus.BINGO_CALLED:
                return None

            remaining = session.remaining_numbers()
            number = self._rng.choice(remaining) if remaining else None
            if number is None:
                if session.status == GameStatus.GAME_OVER:
                    return None
                fields: dict[str, Any] = {"status": GameStatus.GAME_OVER.value}
            else:
                fields = {
                    "called_numbers": [*session.called_numbers, number],
                    "status": GameStatus.PLAYING.value,
                }
            try:
                await self._store.update_document(path, fields, expected_version=snapshot.version)
            except VersionConflictError:
                self._log.debug("session changed while calling, retrying")
                continue

            if number is None:
                self._log.info("number pool exhausted, game over")
            else:
                self._log.info("number called", number=number, called_count=len(session.called_numbers) + 1)
            return number

        self._report_contention("call_number")
        return None

    async def claim_bingo(self) -> bool:
        """Claim a win. Return True when this participant was recorded as the winner.

        The claim latch is set first; validation uses the locally cached
        called numbers. A rejected claim keeps the latch for the grace
        delay, then releases it so the participant may claim again.
        """
        session = self._session
        own = self._directory.get(self._participant_id)
        if (
            session is None
            or session.status != GameStatus.PLAYING
            or self._card is None
            or (own is not None and own.has_claimed_bingo)
            or self._claim_cooldown.pending
        ):
            self._log.debug("ignoring claim_bingo", status=session.status if session else None)
            return False

        attempt = self._claim_cooldown.begin_attempt()
        try:
            await self._set_claim_flag(claimed=True)
            cached = self._session or session
            line = winning_line(self._card, cached.called_set)
            if line is None:
                self._notice = MSG_CLAIM_REJECTED
                self._log.info("bingo claim rejected", called_count=len(cached.called_numbers))
                self._claim_cooldown.schedule_release(attempt)
                self._publish()
                return False
            return await self._record_win(line)
        except StoreError:
            self._report_action_failure("claim_bingo")
            return False

    async def _record_win(self, line: Line) -> bool:
        path = self._paths.session
        for _ in range(self._write_retries):
            snapshot = await self._store.get_document(path)
            session = self._parse_session(snapshot) if snapshot is not None else None
            if snapshot is None or session is None or session.status != GameStatus.PLAYING:
                self._notice = MSG_CLAIM_TOO_LATE
                self._log.info("bingo claim arrived after the round ended")
                self._publish()
                return False
            try:
                await self._store.update_document(
                    path,
                    {"status": GameStatus.BINGO_CALLED.value, "winner": self._participant_id},
                    expected_version=snapshot.version,
                )
            except VersionConflictError:
                self._log.debug("session changed while claiming, retrying")
                continue
            self._log.info("bingo!", line=str(line))
            await self._touch_quietly()
            return True

        self._report_contention("claim_bingo")
        return False

    async def _release_claim(self, attempt: int) -> None:
        own = self._directory.get(self._participant_id)
        if attempt != self._claim_cooldown.attempt or (own is not None and not own.has_claimed_bingo):
            return
        self._log.debug("releasing claim latch", attempt=attempt)
        self._notice = None
        await self._set_claim_flag(claimed=False)
        self._publish()

    async def _set_claim_flag(self, *, claimed: bool) -> None:
        path = self._paths.player(self._participant_id)
        try:
            await self._store.update_document(path, {"has_claimed_bingo": claimed})
        except DocumentNotFoundError:
            # record vanished (left from another tab); recreate the minimal entry
            await self._store.set_document(path, {"id": self._participant_id, "has_claimed_bingo": claimed}, merge=True)

    async def reset(self) -> BatchResult:
        """Start a new round: empty session, fresh card, cleared marks and claim flags.

        Return the outcome of clearing every participant's claim flag.
        """
        self._claim_cooldown.cancel()
        try:
            await self._replace_session()
            self._card = generate_card(self._rng)
            self._marked.clear()
            self._notice = None
            await self._store.set_document(
                self._paths.player(self._participant_id),
                {
                    "id": self._participant_id,
                    "card": self._card.to_document(),
                    "has_claimed_bingo": False,
                    "last_active": self._clock().isoformat(),
                },
                merge=True,
            )
            result = await self._clear_claim_flags()
        except StoreError:
            self._report_action_failure("reset")
            return BatchResult()
        self._log.info("game reset", cleared=len(result.succeeded), failed=len(result.failed))
        self._publish()
        return result

    async def _replace_session(self) -> None:
        path = self._paths.session
        for _ in range(self._write_retries):
            snapshot = await self._store.get_document(path)
            current = self._parse_session(snapshot) if snapshot is not None else None
            caller = current.caller if current is not None and current.caller else self._participant_id
            try:
                await self._store.set_document(
                    path,
                    GameSession(caller=caller).to_document(),
                    expected_version=snapshot.version if snapshot is not None else 0,
                )
            except VersionConflictError:
                self._log.debug("session changed while resetting, retrying")
                continue
            return

        # Reset is a full replace by definition; after repeated conflicts it wins unconditionally.
        self._log.warning("reset contended, overwriting session unconditionally")
        caller = self._session.caller if self._session is not None and self._session.caller else self._participant_id
        await self._store.set_document(path, GameSession(caller=caller).to_document())

    async def _clear_claim_flags(self) -> BatchResult:
        """Clear has_claimed_bingo for every enumerated participant, best effort."""
        directory = await self._store.list_documents(self._paths.players)
        updates = [(self._paths.player(participant_id), {"has_claimed_bingo": False}) for participant_id in directory]
        result = await self._store.batch_update(updates)
        if result.failed:
            self._log.warning("some claim flags were not cleared", failed=sorted(result.failed))
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _parse_session(self, snapshot: DocumentSnapshot) -> GameSession | None:
        try:
            return GameSession.model_validate(snapshot.data)
        except ValidationError as exc:
            self._log.warning("ignoring malformed session document", version=snapshot.version, errors=exc.error_count())
            return None

    def _parse_participant(self, snapshot: DocumentSnapshot | None) -> ParticipantRecord | None:
        if snapshot is None:
            return None
        try:
            return ParticipantRecord.model_validate({"id": snapshot.id, **snapshot.data})
        except ValidationError as exc:
            self._log.warning("ignoring malformed participant record", path=snapshot.path, errors=exc.error_count())
            return None

    async def _touch_quietly(self) -> None:
        """Best-effort activity refresh after a successful action."""
        try:
            await self.touch()
        except StoreError:
            self._log.warning("failed to refresh activity timestamp")

    def _report_action_failure(self, action: str) -> None:
        self._notice = MSG_ACTION_FAILED
        self._log.exception("store write failed", action=action)
        self._publish()

    def _report_contention(self, action: str) -> None:
        self._notice = MSG_WRITE_CONTENDED
        self._log.warning("gave up after repeated write conflicts", action=action, retries=self._write_retries)
        self._publish()

    def _spawn(self, coro: Any) -> None:  # noqa: ANN401
        task = asyncio.get_running_loop().create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    def _publish(self) -> None:
        if not self._view_listeners:
            return
        view = self.view
        for listener in list(self._view_listeners):
            try:
                listener(view)
            except Exception:
                self._log.exception("view listener failed")


def _is_reset(previous: GameSession, current: GameSession) -> bool:
    """A reset empties the called numbers or moves a finished round back to waiting."""
    if len(current.called_numbers) < len(previous.called_numbers):
        return True
    return current.status == GameStatus.WAITING and previous.status != GameStatus.WAITING

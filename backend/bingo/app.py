"""Composition root: build a store and a session controller from settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from bingo.session.controller import SessionController
from bingo.session.identity import AnonymousIdentity
from bingo.settings import BingoSettings
from shared.dal.memory_store import MemoryDocumentStore
from shared.db import Database, SqliteDocumentStore
from shared.logging import setup_logging

if TYPE_CHECKING:
    import random

    from bingo.session.identity import IdentityProvider
    from shared.dal.document_store import DocumentStore

logger = structlog.get_logger()


def create_store(settings: BingoSettings) -> DocumentStore:
    """Open the configured document store: SQLite when store_path is set, else in-memory."""
    if settings.store_path is None:
        logger.info("using in-memory document store")
        return MemoryDocumentStore()
    db = Database(settings.store_path)
    db.connect()
    return SqliteDocumentStore(db)


def create_controller(
    settings: BingoSettings | None = None,
    *,
    identity: IdentityProvider | None = None,
    store: DocumentStore | None = None,
    rng: random.Random | None = None,
) -> SessionController:
    """Build a SessionController for one participant.

    Pass store to let several local participants share one instance (the
    only way in-process subscribers see each other's writes live).
    """
    if settings is None:
        settings = BingoSettings()
    if identity is None:
        identity = AnonymousIdentity()
    participant_id = identity.participant_id()
    log_file = setup_logging(
        level=settings.log_level,
        log_format=settings.log_format,
        log_dir=settings.log_dir,
        participant_id=participant_id,
    )
    if log_file is not None:
        logger.info("logging to file", path=str(log_file))
    if store is None:
        store = create_store(settings)
    return SessionController(
        store,
        participant_id,
        app_id=settings.app_id,
        claim_grace_seconds=settings.claim_grace_seconds,
        write_retries=settings.write_retries,
        presence_timeout_seconds=settings.presence_timeout_seconds,
        rng=rng,
    )

"""Shared-state game session: controller, shared documents, roles and view."""

from bingo.session.controller import SessionController
from bingo.session.exceptions import GameUnavailableError
from bingo.session.identity import AnonymousIdentity, IdentityProvider, StaticIdentity
from bingo.session.models import GameSession, ParticipantRecord, SessionPaths
from bingo.session.view import ViewState

__all__ = [
    "AnonymousIdentity",
    "GameSession",
    "GameUnavailableError",
    "IdentityProvider",
    "ParticipantRecord",
    "SessionController",
    "SessionPaths",
    "StaticIdentity",
    "ViewState",
]

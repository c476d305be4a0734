"""Participant identity collaborators.

Identity issuance is outside the game core; the controller only needs a
stable opaque id that is safe to use as a store path segment.
"""

from abc import ABC, abstractmethod
from uuid import uuid4

from shared.dal.paths import split_path


class IdentityProvider(ABC):
    @abstractmethod
    def participant_id(self) -> str:
        """Stable participant id for the lifetime of the client."""
        ...


class AnonymousIdentity(IdentityProvider):
    """Random identity minted once per client instance."""

    def __init__(self) -> None:
        self._participant_id = uuid4().hex

    def participant_id(self) -> str:
        return self._participant_id


class StaticIdentity(IdentityProvider):
    """Pre-provisioned identity, e.g. issued by an external auth service."""

    def __init__(self, participant_id: str) -> None:
        if len(split_path(participant_id)) != 1:
            raise ValueError(f"participant id must be a single path segment, got {participant_id!r}")
        self._participant_id = participant_id

    def participant_id(self) -> str:
        return self._participant_id

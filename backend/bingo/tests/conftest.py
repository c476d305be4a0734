import random

import pytest

from bingo.session.controller import SessionController
from bingo.tests.helpers import TEST_APP_ID, TEST_GRACE_SECONDS
from shared.dal.memory_store import MemoryDocumentStore


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
async def make_controller(store):
    """Factory for controllers sharing one store; all are stopped after the test."""
    controllers: list[SessionController] = []

    def factory(participant_id: str = "alice", **kwargs) -> SessionController:
        kwargs.setdefault("app_id", TEST_APP_ID)
        kwargs.setdefault("claim_grace_seconds", TEST_GRACE_SECONDS)
        kwargs.setdefault("rng", random.Random(len(controllers)))
        controller = SessionController(kwargs.pop("store", store), participant_id, **kwargs)
        controllers.append(controller)
        return controller

    yield factory

    for controller in controllers:
        await controller.stop()


@pytest.fixture
async def alice(make_controller):
    controller = make_controller("alice")
    await controller.start()
    return controller


@pytest.fixture
async def bob(make_controller, alice):
    controller = make_controller("bob")
    await controller.start()
    return controller

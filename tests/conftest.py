import random
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from factories import (
    T0, FakeClock, all_questions, duplicate_ref_template, make_template, randomized_template,
)
from api.app import create_app
from attempt_engine.services.attempt_service import AttemptService
from attempt_engine.services.catalog import InMemoryCatalog
from attempt_engine.storage.attempt_store import AttemptStore, make_engine


@pytest.fixture
def catalog():
    templates = [
        randomized_template(),
        duplicate_ref_template(),
        make_template("tpl-inactive", [("S", [("q1", 1)], False)], is_active=False),
        make_template(
            "tpl-live",
            [("S", [("q1", 1)], False)],
            mode="live",
            start_at=T0 + timedelta(hours=1),
            end_at=T0 + timedelta(hours=3),
        ),
        make_template("tpl-missing-q", [("S", [("q1", 1), ("nope", 1)], False)]),
    ]
    return InMemoryCatalog(templates, all_questions())


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    s = AttemptStore(make_engine("sqlite://"))
    s.create_schema()
    return s


@pytest.fixture
def make_service(catalog, store, clock):
    def _make(policy="resume"):
        seeds = iter(range(1000))
        return AttemptService(
            catalog,
            store,
            active_policy=policy,
            clock=clock,
            rng_factory=lambda: random.Random(next(seeds)),
        )
    return _make


@pytest.fixture
def service(make_service):
    return make_service()


@pytest.fixture
def client(service):
    return TestClient(create_app(service))

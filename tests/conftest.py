"""Shared fixtures for docreader tests."""

import asyncio

import pytest

from docreader.config import ReaderSettings
from docreader.store import ProgressStore
from docreader.web import create_app

SLACK = 800


class StepSleep:
    """Stands in for asyncio.sleep; each call blocks until released by the test."""

    def __init__(self):
        self.delays = []
        self._waiters = []

    async def __call__(self, seconds):
        self.delays.append(seconds)
        fut = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        await fut

    @property
    def pending(self):
        return [f for f in self._waiters if not f.done()]

    async def release(self, n=1):
        for _ in range(n):
            # let freshly started tasks reach their sleep first
            await settle()
            waiters = self.pending
            if not waiters:
                break
            waiters[0].set_result(None)
            await settle()


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


def words(n):
    return " ".join(f"w{i}" for i in range(n))


@pytest.fixture
def settings():
    return ReaderSettings(height_slack=SLACK, min_height_delta=500, height_growth_factor=2.0)


@pytest.fixture
def store(tmp_path):
    return ProgressStore(str(tmp_path / "data" / "progress.db"))


@pytest.fixture
def step_sleep():
    return StepSleep()


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "DATA_DIR": str(tmp_path / "data"),
        "DEFAULT_WPM": 1,
        "MIN_WPM": 1,
    })
    yield app
    app.extensions["docreader"].close()


@pytest.fixture
def client(app):
    return app.test_client()

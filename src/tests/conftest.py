from functools import partial

import pytest

from core.player import PlaybackController
from fakes import FakeFetcher


@pytest.fixture
def controller_factory():
    return partial(PlaybackController, source_factory=lambda path: path)


@pytest.fixture
def fetcher():
    return FakeFetcher()

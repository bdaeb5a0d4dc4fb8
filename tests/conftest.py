import os

import pytest

from awes_kps4.model.kps4 import KPS4
from awes_kps4.setup.settings import Settings

CONFIG_PATH = os.path.join(os.path.dirname(__file__), "..", "data", "config", "kps4.yaml")


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def kps4(settings):
    return KPS4(settings)


@pytest.fixture
def config_path():
    return CONFIG_PATH

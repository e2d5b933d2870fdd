import pytest

from fastmks import config as mks_config


@pytest.fixture(autouse=True)
def _fresh_runtime_config():
    mks_config.reset_runtime_config_cache()
    yield
    mks_config.reset_runtime_config_cache()

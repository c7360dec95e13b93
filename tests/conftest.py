import os

import pytest
from hypothesis import HealthCheck, settings

from sensorlink.utilities.log_sampling import get_log_sampler

settings.register_profile(
    "default",
    suppress_health_check=[HealthCheck.function_scoped_fixture],
    deadline=None,
)
settings.load_profile("default")


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop SENSORLINK_* overrides from the host so defaults stay deterministic."""

    for name in list(os.environ):
        if name.startswith("SENSORLINK_"):
            monkeypatch.delenv(name, raising=False)
    get_log_sampler.cache_clear()
    yield
    get_log_sampler.cache_clear()

import os

import pytest

from outage_monitor.config import ENV_PREFIX, get_context
from outage_monitor.config.monitoring_context import MonitoringContext


@pytest.fixture
def default_context(monkeypatch) -> MonitoringContext:
    """
    Creates a MonitoringContext with every default and no environment overrides.

    Returns:
        MonitoringContext: The defaults, with a fixed instance id.
    """
    for name in list(os.environ):
        if name.startswith(ENV_PREFIX):
            monkeypatch.delenv(name)
    return get_context([])._replace(instance_id="test-instance")

import logging

import pytest

from latchkey.config import OAuthSettings
from latchkey.util.logging import setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    for name in ("latchkey", "httpx", "httpcore", "uvicorn"):
        logging.getLogger(name).setLevel(logging.NOTSET)


class TestSetupLogging:
    def test_applies_configured_level(self, restore_logging):
        # Act
        setup_logging(OAuthSettings(client_id="abc", log_level="DEBUG"))

        # Assert
        assert logging.getLogger("latchkey").level == logging.DEBUG
        assert logging.getLogger().level == logging.DEBUG

    def test_quiets_third_party_loggers(self, restore_logging):
        # Act
        setup_logging(OAuthSettings(client_id="abc"))

        # Assert
        assert logging.getLogger("latchkey").level == logging.INFO
        for name in ("httpx", "httpcore", "uvicorn"):
            assert logging.getLogger(name).level == logging.WARNING

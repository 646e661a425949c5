import logging
import os
from unittest.mock import patch

import pytest

from translator_sync.logging_config import LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo ``setup_logger`` side effects so handlers do not leak between tests."""
    logger = logging.getLogger(LOGGER_NAME)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield logger
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def clean_env():
    """Run with an environment free of TRANSLATOR_* and provider API key variables."""
    kept = {key: value for key, value in os.environ.items()
            if not key.startswith('TRANSLATOR_') and not key.endswith('_API_KEY')}
    with patch.dict(os.environ, kept, clear=True):
        yield


@pytest.fixture
def project_dir(tmp_path, clean_env):
    """A project root holding an empty ``locales`` directory; also the working directory."""
    (tmp_path / 'locales').mkdir()
    cwd = os.getcwd()
    os.chdir(tmp_path)
    try:
        yield tmp_path
    finally:
        os.chdir(cwd)

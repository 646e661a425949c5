import logging
import os
import tempfile
import unittest
from unittest.mock import patch

from translator_sync.logging_config import LOGGER_NAME, TqdmLoggingHandler, setup_logger


class TestSetupLogger(unittest.TestCase):
    def setUp(self):
        self.logger = logging.getLogger(LOGGER_NAME)
        self.saved = (list(self.logger.handlers), self.logger.level, self.logger.propagate)

    def tearDown(self):
        for handler in self.logger.handlers:
            if handler not in self.saved[0]:
                handler.close()
        self.logger.handlers[:] = self.saved[0]
        self.logger.setLevel(self.saved[1])
        self.logger.propagate = self.saved[2]

    def test_console_only(self):
        logger = setup_logger('debug', None, True)
        self.assertEqual(logger.level, logging.DEBUG)
        self.assertFalse(logger.propagate)
        self.assertEqual([type(h) for h in logger.handlers], [TqdmLoggingHandler])

    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_logger('INFO', None, True)
        logger = setup_logger('INFO', None, True)
        self.assertEqual(len(logger.handlers), 1)

    def test_unknown_level_falls_back_to_info(self):
        self.assertEqual(setup_logger('LOUD', None, False).level, logging.INFO)

    def test_http_libraries_are_quiet_unless_debugging(self):
        setup_logger('INFO', None, False)
        self.assertEqual(logging.getLogger('httpx').level, logging.WARNING)
        setup_logger('DEBUG', None, False)
        self.assertEqual(logging.getLogger('httpx').level, logging.DEBUG)

    def test_file_handler_creates_directory(self):
        with tempfile.TemporaryDirectory() as root:
            log_file = os.path.join(root, 'logs', 'run.log')
            logger = setup_logger('INFO', log_file, False)
            logging.getLogger(f'{LOGGER_NAME}.synchronizer').info("Updated de.json")
            for handler in logger.handlers:
                handler.close()
            with open(log_file, encoding='utf-8') as f:
                self.assertIn("INFO - Updated de.json", f.read())

    def test_handler_writes_through_tqdm(self):
        handler = TqdmLoggingHandler()
        record = logging.LogRecord(LOGGER_NAME, logging.INFO, __file__, 1, "progress %d", (3,), None)
        with patch('translator_sync.logging_config.tqdm.write') as mock_write:
            handler.emit(record)
        self.assertEqual(mock_write.call_args.args[0], "progress 3")


if __name__ == '__main__':
    unittest.main()

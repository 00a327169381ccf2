from __future__ import annotations

import logging
import os
import unittest
from unittest import mock

from convoq.observability.logging import get_logger


class LoggingTests(unittest.TestCase):
    def setUp(self):
        root = logging.getLogger()
        self._root_level = root.level
        self._root_handlers = list(root.handlers)

    def tearDown(self):
        with mock.patch.dict(os.environ, {"CONVOQ_LOG_LEVEL": "INFO"}):
            get_logger("convoq.tests")
        root = logging.getLogger()
        root.setLevel(self._root_level)
        root.handlers[:] = self._root_handlers

    def test_level_change_reaches_root_after_first_call(self):
        with mock.patch.dict(os.environ, {"CONVOQ_LOG_LEVEL": "INFO"}):
            get_logger("convoq.tests.first")
        self.assertEqual(logging.getLogger().level, logging.INFO)

        with mock.patch.dict(os.environ, {"CONVOQ_LOG_LEVEL": "WARNING"}):
            logger = get_logger("convoq.tests.second")

        self.assertEqual(logging.getLogger().level, logging.WARNING)
        self.assertEqual(logger.level, logging.WARNING)

    def test_handler_is_attached_once(self):
        get_logger("convoq.tests.a")
        count = len(logging.getLogger().handlers)

        get_logger("convoq.tests.b")

        self.assertEqual(len(logging.getLogger().handlers), count)

    def test_httpx_is_quiet_unless_debugging(self):
        with mock.patch.dict(os.environ, {"CONVOQ_LOG_LEVEL": "INFO"}):
            get_logger("convoq.tests")
        self.assertEqual(logging.getLogger("httpx").level, logging.WARNING)

        with mock.patch.dict(os.environ, {"CONVOQ_LOG_LEVEL": "DEBUG"}):
            get_logger("convoq.tests")
        self.assertEqual(logging.getLogger("httpx").level, logging.DEBUG)

    def test_unknown_level_falls_back_to_info(self):
        with mock.patch.dict(os.environ, {"CONVOQ_LOG_LEVEL": "chatty"}):
            logger = get_logger("convoq.tests.unknown")

        self.assertEqual(logger.level, logging.INFO)


if __name__ == "__main__":
    unittest.main()

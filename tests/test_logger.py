# do not to pollute the global namespace.
# see: https://python-packaging.readthedocs.io/en/latest/testing.html


import io
import os
import json
import logging
import datetime
from unittest import TestCase, mock

from smppsend import log


class TestLogger(TestCase):
    """
    run tests as:
        python -m unittest discover -v -s .
    run one testcase as:
        python -m unittest -v tests.test_logger.TestLogger.test_something
    """

    def setUp(self):
        self._temp_stream = io.StringIO()
        self.logger = log.SimpleLogger(
            "TestLogger", handler=logging.StreamHandler(stream=self._temp_stream)
        )

    def _records(self):
        return [json.loads(line) for line in self._temp_stream.getvalue().splitlines()]

    def test_can_log_string(self):
        self.logger.log(logging.WARN, "can log string")
        self.assertIn("can log string", self._temp_stream.getvalue())

    def test_can_log_dict(self):
        now = datetime.datetime.now()
        self.logger.log(
            logging.WARN,
            {"event": "smppsend.Esme.bind", "stage": "start", "sequence_number": 234_255, "now": now},
        )
        record = self._records()[0]
        self.assertEqual(list(record.keys())[0], "timestamp")
        self.assertEqual(record["event"], "smppsend.Esme.bind")
        self.assertEqual(record["sequence_number"], 234_255)
        self.assertEqual(record["now"], str(now))

    def test_bytes_are_rendered_as_hex(self):
        self.logger.log(logging.INFO, {"short_message": b"\x05\x00\x03\x01"})
        self.assertEqual(self._records()[0]["short_message"], "05000301")

    def test_bind(self):
        self.logger.bind(system_id="smppclient1")
        self.logger.log(logging.INFO, {"event": "one"})
        self.logger.log(logging.INFO, "two")
        self.assertEqual(self._records()[0]["system_id"], "smppclient1")
        self.assertIn("smppclient1", self._records()[1])

    def test_level(self):
        logger = log.SimpleLogger(
            "TestLoggerLevel", level="WARNING", handler=logging.StreamHandler(stream=self._temp_stream)
        )
        logger.log(logging.INFO, {"event": "hidden"})
        logger.log("ERROR", {"event": "shown"})
        self.assertNotIn("hidden", self._temp_stream.getvalue())
        self.assertIn("shown", self._temp_stream.getvalue())

    def test_error_carries_traceback(self):
        try:
            raise ConnectionError("gone")
        except ConnectionError:
            self.logger.log(logging.ERROR, {"event": "smppsend.Esme._receive_data"})
        self.assertIn("Traceback", self._temp_stream.getvalue())

    def test_bad_instantiation(self):
        with self.assertRaises(ValueError):
            log.SimpleLogger(1234)
        with self.assertRaises(ValueError):
            log.SimpleLogger("bad level", level="LOUD")
        with self.assertRaises(ValueError):
            log.SimpleLogger("bad handler", handler="stderr")


class TestLevelFromEnv(TestCase):
    def test_default(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(log.level_from_env(), "INFO")

    def test_log_level(self):
        with mock.patch.dict(os.environ, {"SMPPSEND_LOG_LEVEL": "warning"}, clear=True):
            self.assertEqual(log.level_from_env(), "WARNING")

    def test_unknown_level(self):
        with mock.patch.dict(os.environ, {"SMPPSEND_LOG_LEVEL": "chatty"}, clear=True):
            self.assertEqual(log.level_from_env(), "INFO")

    def test_debug_wins(self):
        with mock.patch.dict(
            os.environ, {"SMPPSEND_DEBUG": "1", "SMPPSEND_LOG_LEVEL": "ERROR"}, clear=True
        ):
            self.assertEqual(log.level_from_env(), "DEBUG")

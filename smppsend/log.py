import os
import sys
import time
import json
import typing
import logging


_LEVEL_NAMES = ["NOTSET", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def level_from_env(default: str = "INFO") -> str:
    """
    log level taken from the environment.
    `SMPPSEND_DEBUG` wins over `SMPPSEND_LOG_LEVEL`.
    """
    if os.environ.get("SMPPSEND_DEBUG"):
        return "DEBUG"
    level = os.environ.get("SMPPSEND_LOG_LEVEL", default).upper()
    if level not in _LEVEL_NAMES:
        return default
    return level


class SimpleLogger(logging.Logger):
    """
    It implements a structured logger that renders logs as json, one object per line, on stderr.

    example usage:

    .. highlight:: python
    .. code-block:: python

        logger = SimpleLogger("smppsend.cli")
        logger.log(logging.INFO,
                   {"event": "smppsend.Esme.bind", "stage": "start", "bind_mode": "trx"})
    """

    def __init__(
        self,
        logger_name: str,
        level: typing.Union[str, int] = logging.INFO,
        log_metadata: typing.Union[None, dict] = None,
        handler: typing.Union[None, logging.Handler] = None,
    ) -> None:
        """
        Parameters:
            logger_name: name of the logger. it should be unique per logger.
            level: the level at which to log
            log_metadata: metadata that will be included in all log statements
            handler: python logging `handler <https://docs.python.org/3/library/logging.html#logging.Handler>`_ to be attached to this logger.
                     By default, a `logging.StreamHandler` writing to stderr is used.
        """
        if not isinstance(logger_name, str):
            raise ValueError(
                "`logger_name` should be of type:: `str` You entered: {0}".format(type(logger_name))
            )
        if not isinstance(level, (int, str)):
            raise ValueError(
                "`level` should be of type:: `str` or `int` You entered: {0}".format(type(level))
            )
        if isinstance(level, str) and level.upper() not in _LEVEL_NAMES:
            raise ValueError(
                """`level` should be one of; 'NOTSET', 'DEBUG', 'INFO', 'WARNING', 'ERROR' or 'CRITICAL'. You entered: {0}""".format(
                    level
                )
            )
        if not isinstance(log_metadata, (type(None), dict)):
            raise ValueError(
                "`log_metadata` should be of type:: `None` or `dict` You entered: {0}".format(
                    type(log_metadata)
                )
            )
        if not isinstance(handler, (type(None), logging.Handler)):
            raise ValueError(
                "`handler` should be of type:: `None` or `logging.Handler` You entered: {0}".format(
                    type(handler)
                )
            )
        super(SimpleLogger, self).__init__(name=logger_name, level=self._nameToLevel(level))
        self.logger_name = logger_name
        self.log_metadata: dict = log_metadata if log_metadata is not None else {}
        self.handler = handler if handler is not None else logging.StreamHandler(sys.stderr)

        formatter = logging.Formatter("%(message)s")
        self.handler.setFormatter(formatter)
        self.handler.setLevel(self.level)
        self.addHandler(self.handler)

    def bind(self, **log_metadata) -> None:
        """
        add metadata that will be included in every subsequent log statement.
        """
        self.log_metadata.update(log_metadata)

    def log(self, level, msg, *args, **kwargs):
        """
        Log `msg` with the integer severity `level`.
        `msg` is usually a dict; it is rendered as json together with a timestamp and the bound log_metadata.
        """
        level = self._nameToLevel(level)
        if level >= logging.ERROR and sys.exc_info()[0] is not None:
            kwargs.update(dict(exc_info=True))

        new_msg = self._process_msg(msg)
        return super(SimpleLogger, self).log(level, new_msg, *args, **kwargs)

    @staticmethod
    def _nameToLevel(level: typing.Union[str, int]) -> int:
        if isinstance(level, int):
            return level
        try:
            return logging._nameToLevel[level.upper()]
        except KeyError as e:
            raise ValueError(
                "`level` should be one of; 'NOTSET', 'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'"
            ) from e

    def _process_msg(self, msg: typing.Union[str, dict]) -> str:
        timestamp = self._formatTime()
        if isinstance(msg, dict):
            # timestamp should appear first in resulting dict
            return self._to_json({"timestamp": timestamp, **msg, **self.log_metadata})
        if self.log_metadata:
            return self._to_json("{0} {1} {2}".format(timestamp, msg, self.log_metadata))
        return self._to_json("{0} {1}".format(timestamp, msg))

    @staticmethod
    def _formatTime() -> str:
        """
        ISO8601-like timestamp with milliseconds, in local time.
        see: https://docs.python.org/3/library/logging.html#logging.Formatter.formatTime
        """
        _formatter = logging.Formatter()
        now = time.time()
        msecs = (now - int(now)) * 1000
        t = time.strftime(_formatter.default_time_format, time.localtime(now))
        return _formatter.default_msec_format % (t, msecs)

    @staticmethod
    def _json_default(obj: typing.Any) -> str:
        if isinstance(obj, (bytes, bytearray)):
            return obj.hex()
        return str(obj)

    def _to_json(self, input_msg) -> str:
        """
        tries to convert the input message to json and returns it.
        if it fails, it returns the error in string(not json) format
        """
        try:
            return json.dumps(input_msg, default=self._json_default)
        except (TypeError, ValueError) as e:
            return "smppsend.SimpleLogger error: {0}".format(str(e))

import typing


class SmppSendError(Exception):
    """
    Base error for everything that ends an smppsend invocation.
    `exit_code` is the process exit status that `cli.cli.main` will use.
    """

    exit_code: int = 1

    def __init__(self, message: str, exit_code: typing.Union[None, int] = None) -> None:
        super(SmppSendError, self).__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code


class HelpRequested(SmppSendError):
    """
    Raised when `--help` was given. Not a failure; carries the usage text.
    """

    exit_code = 0


class UsageError(SmppSendError):
    """
    Malformed, unknown, missing or invalid command line options.
    """

    exit_code = 1


class ConnectivityError(SmppSendError):
    """
    Unable to connect to or bind with the SMSC, or the session was lost.
    """

    exit_code = 3


class BuildError(SmppSendError):
    """
    submit_sm pdus could not be built from the configuration.
    """

    exit_code = 4


class DlrWaitError(SmppSendError):
    """
    Not all delivery receipts arrived in time.
    """

    exit_code = 4

    def __init__(self, message: str, missing: typing.Union[None, typing.List[str]] = None) -> None:
        super(DlrWaitError, self).__init__(message)
        self.missing = missing or []


class SubmissionError(SmppSendError):
    """
    The SMSC rejected (or never acknowledged) a submit_sm.
    """

    exit_code = 6

    def __init__(
        self, message: str, position: int = 0, submitted: typing.Union[None, typing.List[str]] = None
    ) -> None:
        super(SubmissionError, self).__init__(message)
        self.position = position
        self.submitted = submitted or []


class EncodingError(SmppSendError):
    """
    Conversion of a text field to UCS2 failed.
    """

    exit_code = 7

    def __init__(self, message: str, field: str = "") -> None:
        super(EncodingError, self).__init__(message)
        self.field = field

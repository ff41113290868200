import typing
import logging

from . import builder, codec
from .pdu import SubmitSm
from .esme import Esme, SessionError
from .log import SimpleLogger, level_from_env
from .errors import ConnectivityError, SubmissionError, DlrWaitError

if typing.TYPE_CHECKING:
    from .options import Configuration  # noqa: F401


def prepare(config: "Configuration") -> typing.Tuple["Configuration", typing.List[SubmitSm]]:
    """
    everything that can fail before the network is touched: UCS2 conversion and building of the submit_sm pdus.
    Conflicting split options are rejected even when nothing is to be submitted.

    Raises:
        EncodingError: UCS2 conversion failed.
        BuildError: conflicting split options, or the submit_sm pdus could not be built.
    """
    strategy = builder.select_strategy(config)
    config = codec.to_ucs2(config)
    if not config.submit_sm:
        return config, []
    return config, builder.build(config, strategy)


async def connect_and_bind(esme: Esme) -> None:
    try:
        await esme.connect()
        await esme.bind()
    except SessionError as e:
        raise ConnectivityError("Connecting SMSC failed: {0}".format(e.message)) from e


async def submit_all(esme: Esme, requests: typing.List[SubmitSm]) -> typing.List[str]:
    """
    submits `requests` one after the other, each one only after the previous was acknowledged.

    Returns:
        the message_ids, in the order of `requests`.
    """
    message_ids: typing.List[str] = []
    for position, request in enumerate(requests, start=1):
        try:
            message_id = await esme.submit(request)
        except SessionError as e:
            raise SubmissionError(
                "Message submit failed, part {0} of {1} (short_message: {2}): {3}; {4} submitted before it".format(
                    position,
                    len(requests),
                    request.short_message.hex(),
                    e.message,
                    len(message_ids),
                ),
                position=position,
                submitted=message_ids,
            ) from e
        message_ids.append(message_id)
    return message_ids


async def wait_dlrs(
    esme: Esme, message_ids: typing.List[str], timeout_ms: int, logger: logging.Logger
) -> None:
    """
    waits up to `timeout_ms` milliseconds for a delivery receipt of every one of `message_ids`.

    Raises:
        DlrWaitError: listing the message_ids that got no receipt.
    """
    logger.log(
        logging.INFO,
        {
            "event": "smppsend.orchestrator.wait_dlrs",
            "stage": "start",
            "message_ids": message_ids,
            "timeout_ms": timeout_ms,
        },
    )
    esme.correlater.expect(message_ids)
    try:
        missing = await esme.correlater.wait(timeout_ms / 1000)
    except SessionError as e:
        missing = esme.correlater.pending()
        raise DlrWaitError(
            "Waiting dlrs failed: {0}; no receipt for message ids: {1}".format(
                e.message, ", ".join(missing)
            ),
            missing=missing,
        ) from e
    if missing:
        raise DlrWaitError(
            "Waiting dlrs failed: timeout after {0} ms; no receipt for message ids: {1}".format(
                timeout_ms, ", ".join(missing)
            ),
            missing=missing,
        )
    logger.log(
        logging.INFO,
        {
            "event": "smppsend.orchestrator.wait_dlrs",
            "stage": "end",
            "state": "Dlrs for all sent messages received",
        },
    )


async def wait_forever(esme: Esme) -> None:
    try:
        await esme.wait_forever()
    except SessionError as e:
        raise ConnectivityError("Connection to SMSC lost: {0}".format(e.message)) from e


async def run(
    config: "Configuration",
    esme: typing.Union[None, Esme] = None,
    logger: typing.Union[None, logging.Logger] = None,
) -> typing.List[str]:
    """
    connect -> bind -> submit -> wait for delivery receipts -> wait forever; each step only if `config` asks for it.
    The session is unbound and closed on every way out.

    Parameters:
        config: the validated configuration
        esme: the session to use. One is made from `config` if not given.
        logger: python `logger <https://docs.python.org/3/library/logging.html#logging.Logger>`_ instance to be used for logging

    Returns:
        the message_ids of the submitted messages.

    Raises:
        SmppSendError: a subclass of it for every failure.
    """
    if logger is None:
        logger = SimpleLogger("smppsend.orchestrator", level=level_from_env())
    logger.log(
        logging.INFO,
        {
            "event": "smppsend.orchestrator.run",
            "stage": "start",
            "host": config.host,
            "port": config.port,
            "bind_mode": config.bind_mode,
        },
    )
    config, requests = prepare(config)
    if esme is None:
        esme = Esme.from_config(config, logger=logger)

    message_ids: typing.List[str] = []
    async with esme:
        await connect_and_bind(esme)
        if requests:
            message_ids = await submit_all(esme, requests)
        if config.wait_dlrs is not None:
            await wait_dlrs(esme, message_ids, config.wait_dlrs, logger)
        if config.wait:
            await wait_forever(esme)

    logger.log(
        logging.INFO,
        {"event": "smppsend.orchestrator.run", "stage": "end", "message_ids": message_ids},
    )
    return message_ids

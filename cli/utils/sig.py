import signal
import asyncio
import logging
import functools

from smppsend.esme import Esme


async def _signal_handling(logger: logging.Logger, esme: Esme) -> None:
    loop = asyncio.get_running_loop()
    try:
        for _signal in [signal.SIGHUP, signal.SIGQUIT, signal.SIGTERM]:
            loop.add_signal_handler(
                _signal,
                functools.partial(_schedule_termination, logger=logger, _signal=_signal, esme=esme),
            )
    except (ValueError, NotImplementedError) as e:
        logger.log(
            logging.DEBUG,
            {
                "event": "smppsend.cli.signals",
                "stage": "end",
                "state": "this OS does not support the said signal",
                "error": str(e),
            },
        )


def _schedule_termination(
    logger: logging.Logger, _signal: "signal.Signals", esme: Esme
) -> "asyncio.Future":
    # a fresh coroutine for every delivery of the signal
    return asyncio.ensure_future(_handle_termination_signal(logger=logger, _signal=_signal, esme=esme))


async def _handle_termination_signal(
    logger: logging.Logger, _signal: "signal.Signals", esme: Esme
) -> None:
    logger.log(
        logging.INFO,
        {
            "event": "smppsend.cli.signals",
            "stage": "start",
            "state": "received termination signal",
            "signal": _signal.name,
        },
    )

    await esme.shutdown()

    logger.log(
        logging.INFO,
        {"event": "smppsend.cli.signals", "stage": "end", "state": "session has succesfully shutdown"},
    )

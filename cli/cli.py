import os
import sys
import typing
import asyncio
import logging

import smppsend
from smppsend import options, orchestrator
from smppsend.esme import Esme, EsmeConfigError
from smppsend.correlater import DlrCorrelater
from smppsend.errors import SmppSendError, HelpRequested
from smppsend.log import SimpleLogger, level_from_env

from .utils import sig


def main(argv: typing.Union[None, typing.List[str]] = None) -> None:
    """
    entrypoint of smppsend.
    This is the only place where the process exits; the exit status is the `exit_code` of whatever error ended the run.
    """
    if argv is None:
        argv = sys.argv[1:]
    logger = SimpleLogger("smppsend.cli", level=level_from_env())
    exit_code = 0
    try:
        config = options.parse(argv)
        logger.log(
            logging.INFO,
            {
                "event": "smppsend.cli.main",
                "stage": "start",
                "version": smppsend.__version__.about["__version__"],
            },
        )
        asyncio_debug = False
        if os.environ.get("SMPPSEND_DEBUG", None):
            asyncio_debug = True
        asyncio.run(async_main(config=config, logger=logger), debug=asyncio_debug)
    except HelpRequested as e:
        print(e.message)
    except SmppSendError as e:
        print(e.message, file=sys.stderr)
        exit_code = e.exit_code
    except EsmeConfigError as e:
        print("Invalid session settings: {0}".format(e), file=sys.stderr)
        exit_code = 1
    except Exception as e:
        logger.log(logging.ERROR, {"event": "smppsend.cli.main", "stage": "end", "error": str(e)})
        print(str(e) or e.__class__.__name__, file=sys.stderr)
        exit_code = 1
    finally:
        logger.log(logging.DEBUG, {"event": "smppsend.cli.main", "stage": "end"})
    sys.exit(exit_code)


async def async_main(config: options.Configuration, logger: logging.Logger) -> None:
    # 1. add signal termination handlers
    # 2. connect and bind to the SMSC host
    # 3. submit the messages, if any
    # 4. wait for their delivery receipts, if asked to
    # 5. stay bound until terminated, if asked to
    esme = Esme.from_config(config, logger=logger, correlater=DlrCorrelater(logger=logger))
    await sig._signal_handling(logger=logger, esme=esme)
    await orchestrator.run(config, esme=esme, logger=logger)


if __name__ == "__main__":
    main()

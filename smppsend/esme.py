import os
import asyncio
import typing
import logging

from . import pdu
from .log import SimpleLogger, level_from_env
from .correlater import DlrCorrelater
from .sequence import BaseSequenceGenerator, SimpleSequenceGenerator
from .state import (
    BIND_MODES,
    ESME_ROK,
    SmppCommand,
    CommandStatus,
    SmppDataCoding,
    SmppSessionState,
    search_by_command_status,
)

if typing.TYPE_CHECKING:
    from .options import Configuration  # noqa: F401


# a message_payload TLV may carry up to 64KB; anything much bigger is not an SMPP pdu.
MAX_PDU_LENGTH = 0x10000 + 0x400

_RESPONSES = frozenset(
    [
        SmppCommand.GENERIC_NACK,
        SmppCommand.BIND_RECEIVER_RESP,
        SmppCommand.BIND_TRANSMITTER_RESP,
        SmppCommand.BIND_TRANSCEIVER_RESP,
        SmppCommand.SUBMIT_SM_RESP,
        SmppCommand.UNBIND_RESP,
        SmppCommand.ENQUIRE_LINK_RESP,
        SmppCommand.DATA_SM_RESP,
        SmppCommand.DELIVER_SM_RESP,
    ]
)

_BOUND_STATES = frozenset(
    [SmppSessionState.BOUND_TX, SmppSessionState.BOUND_RX, SmppSessionState.BOUND_TRX]
)

ESME_RINVCMDID: CommandStatus = search_by_command_status(0x00000003)
ESME_RSYSERR: CommandStatus = search_by_command_status(0x00000008)


class EsmeConfigError(Exception):
    """
    Error raised when there's an error instantiating an Esme.
    """

    pass


class SessionError(Exception):
    """
    A request could not be completed over the SMPP session.
    `command_status` is set when the SMSC answered with a failure status.
    """

    def __init__(self, message: str, command_status: typing.Union[None, CommandStatus] = None) -> None:
        super(SessionError, self).__init__(message)
        self.message = message
        self.command_status = command_status


def _describe(e: BaseException) -> str:
    # `asyncio.TimeoutError` is raised with no msg/args.
    return str(e) or e.__class__.__name__


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as e:
        raise EsmeConfigError(
            [ValueError("`{0}` should be a number. You entered: {1}".format(name, value))]
        ) from e


class Esme:
    """
    An SMPP session with one SMSC, played in the ESME role.

    The session owns exactly one TCP connection. A reader task demultiplexes every pdu that comes in,
    a writer task is the only one that writes to the connection, and requests are matched with their
    responses by sequence_number. While bound, enquire_link is sent every `enquire_link_interval` seconds.

    example usage:

    .. highlight:: python
    .. code-block:: python

        async with Esme(smsc_host="127.0.0.1", smsc_port=2775, system_id="smppclient1", password="password") as esme:
            await esme.connect()
            await esme.bind()
            message_id = await esme.submit(submit_sm)
    """

    def __init__(
        self,
        smsc_host: str,
        smsc_port: int,
        system_id: str,
        password: str,
        bind_mode: str = "tx",
        system_type: str = "",
        interface_version: int = 0x34,
        addr_ton: int = 0,
        addr_npi: int = 0,
        address_range: str = "",
        correlater: typing.Union[None, DlrCorrelater] = None,
        logger: typing.Union[None, logging.Logger] = None,
        sequence_generator: typing.Union[None, BaseSequenceGenerator] = None,
        socket_timeout: typing.Union[None, float] = None,
        enquire_link_interval: typing.Union[None, float] = None,
    ) -> None:
        """
        Parameters:
            smsc_host: the IP address(or domain name) of the SMSC gateway/server
            smsc_port: the port at which SMSC is listening on
            system_id: Identifies the ESME system requesting to bind as a transceiver with the SMSC.
            password: The password to be used by the SMSC to authenticate the ESME requesting to bind.
            bind_mode: one of; `tx`, `rx` or `trx`
            system_type: Identifies the type of ESME system requesting to bind with the SMSC.
            interface_version: Indicates the version of the SMPP protocol supported by the ESME.
            addr_ton: Type of Number of the ESME address.
            addr_npi: Numbering Plan Indicator (NPI) for ESME address(es) served via this SMPP session.
            address_range: A single ESME address or a range of ESME addresses served via this SMPP session.
            correlater: where delivery receipts are reported to.
            logger: python `logger <https://docs.python.org/3/library/logging.html#logging.Logger>`_ instance to be used for logging
            sequence_generator: python class instance used to generate sequence_numbers
            socket_timeout: seconds to wait for a connection, and for the response to any request.
                            Defaults to `SMPPSEND_SOCKET_TIMEOUT` or 30.0
            enquire_link_interval: seconds between enquire_link requests.
                            Defaults to `SMPPSEND_ENQUIRE_LINK_INTERVAL` or 55.0
        """
        if socket_timeout is None:
            socket_timeout = _env_float("SMPPSEND_SOCKET_TIMEOUT", 30.0)
        if enquire_link_interval is None:
            enquire_link_interval = _env_float("SMPPSEND_ENQUIRE_LINK_INTERVAL", 55.0)
        self._validate_esme_args(
            smsc_host=smsc_host,
            smsc_port=smsc_port,
            system_id=system_id,
            password=password,
            bind_mode=bind_mode,
            system_type=system_type,
            interface_version=interface_version,
            addr_ton=addr_ton,
            addr_npi=addr_npi,
            address_range=address_range,
            correlater=correlater,
            logger=logger,
            sequence_generator=sequence_generator,
            socket_timeout=socket_timeout,
            enquire_link_interval=enquire_link_interval,
        )
        self.smsc_host = smsc_host
        self.smsc_port = smsc_port
        self.system_id = system_id
        self.password = password
        self.bind_mode = bind_mode
        self.system_type = system_type
        self.interface_version = interface_version
        self.addr_ton = addr_ton
        self.addr_npi = addr_npi
        self.address_range = address_range
        self.socket_timeout = socket_timeout
        self.enquire_link_interval = enquire_link_interval

        self.logger = logger if logger is not None else SimpleLogger("smppsend.esme", level=level_from_env())
        self.correlater = correlater if correlater is not None else DlrCorrelater(logger=self.logger)
        self.sequence_generator = (
            sequence_generator if sequence_generator is not None else SimpleSequenceGenerator()
        )
        self.max_sequence_number = 0x7FFFFFFF

        self.current_session_state = SmppSessionState.CLOSED
        self.reader: typing.Union[None, asyncio.StreamReader] = None
        self.writer: typing.Union[None, asyncio.StreamWriter] = None
        self._outbound: typing.Union[None, "asyncio.Queue[typing.Union[None, bytes]]"] = None
        self._pending: typing.Dict[int, asyncio.Future] = {}
        self._tasks: typing.List[asyncio.Task] = []
        self._ended: typing.Union[None, asyncio.Event] = None
        self._end_error: typing.Union[None, SessionError] = None
        self._closing = False

    @classmethod
    def from_config(cls, config: "Configuration", **kwargs) -> "Esme":
        """
        an Esme for the session fields of `config`; `kwargs` are passed on to the constructor.
        """
        return cls(
            smsc_host=config.host,
            smsc_port=config.port,
            system_id=config.system_id,
            password=config.password,
            bind_mode=config.bind_mode,
            system_type=config.system_type,
            interface_version=config.interface_version,
            addr_ton=config.addr_ton,
            addr_npi=config.addr_npi,
            address_range=config.address_range,
            **kwargs
        )

    @staticmethod
    def _validate_esme_args(
        smsc_host: str,
        smsc_port: int,
        system_id: str,
        password: str,
        bind_mode: str,
        system_type: str,
        interface_version: int,
        addr_ton: int,
        addr_npi: int,
        address_range: str,
        correlater: typing.Union[None, DlrCorrelater],
        logger: typing.Union[None, logging.Logger],
        sequence_generator: typing.Union[None, BaseSequenceGenerator],
        socket_timeout: float,
        enquire_link_interval: float,
    ) -> None:
        """
        Checks that the arguments to `Esme` are okay.
        It raises an Exception that comprises of a list of Exceptions
        """
        errors: typing.List[ValueError] = []
        for name, value in [
            ("smsc_host", smsc_host),
            ("system_id", system_id),
            ("password", password),
            ("system_type", system_type),
            ("address_range", address_range),
        ]:
            if not isinstance(value, str):
                errors.append(
                    ValueError(
                        "`{0}` should be of type:: `str` You entered: {1}".format(name, type(value))
                    )
                )
        for name, value in [
            ("smsc_port", smsc_port),
            ("interface_version", interface_version),
            ("addr_ton", addr_ton),
            ("addr_npi", addr_npi),
        ]:
            if not isinstance(value, int):
                errors.append(
                    ValueError(
                        "`{0}` should be of type:: `int` You entered: {1}".format(name, type(value))
                    )
                )
        if bind_mode not in BIND_MODES:
            errors.append(
                ValueError(
                    "`bind_mode` should be one of; {0} You entered: {1}".format(
                        ", ".join(BIND_MODES), bind_mode
                    )
                )
            )
        if not isinstance(correlater, (type(None), DlrCorrelater)):
            errors.append(
                ValueError(
                    "`correlater` should be of type:: `None` or `smppsend.correlater.DlrCorrelater` You entered: {0}".format(
                        type(correlater)
                    )
                )
            )
        if not isinstance(logger, (type(None), logging.Logger)):
            errors.append(
                ValueError(
                    "`logger` should be of type:: `None` or `logging.Logger` You entered: {0}".format(
                        type(logger)
                    )
                )
            )
        if not isinstance(sequence_generator, (type(None), BaseSequenceGenerator)):
            errors.append(
                ValueError(
                    "`sequence_generator` should be of type:: `None` or `smppsend.sequence.BaseSequenceGenerator` You entered: {0}".format(
                        type(sequence_generator)
                    )
                )
            )
        for name, value in [
            ("socket_timeout", socket_timeout),
            ("enquire_link_interval", enquire_link_interval),
        ]:
            if not isinstance(value, float):
                errors.append(
                    ValueError(
                        "`{0}` should be of type:: `float` You entered: {1}".format(name, type(value))
                    )
                )
            elif value <= 0:
                errors.append(
                    ValueError("`{0}` should be greater than 0. You entered: {1}".format(name, value))
                )
        if len(errors):
            raise EsmeConfigError(errors)

    def _log(self, level: int, log_data: dict) -> None:
        self.logger.log(level, log_data)

    def _next_sequence(self) -> int:
        sequence_number = self.sequence_generator.next_sequence()
        if sequence_number > self.max_sequence_number:
            # prevent third party sequence_generators from ruining our party
            raise ValueError(
                "the sequence_number: {0} is greater than the max: {1} allowed by SMPP spec.".format(
                    sequence_number, self.max_sequence_number
                )
            )
        return sequence_number

    @property
    def is_bound(self) -> bool:
        return self.current_session_state in _BOUND_STATES

    @property
    def is_ended(self) -> bool:
        return self._ended is None or self._ended.is_set()

    async def connect(self) -> None:
        """
        make a network connection to SMSC server.

        Raises:
            SessionError: if the connection could not be made within `socket_timeout`
        """
        self._log(
            logging.INFO,
            {
                "event": "smppsend.Esme.connect",
                "stage": "start",
                "smsc_host": self.smsc_host,
                "smsc_port": self.smsc_port,
            },
        )
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self.smsc_host, self.smsc_port), timeout=self.socket_timeout
            )
        except (OSError, ConnectionError, asyncio.TimeoutError) as e:
            self._log(
                logging.ERROR,
                {"event": "smppsend.Esme.connect", "stage": "end", "error": _describe(e)},
            )
            raise SessionError(
                "unable to connect to {0}:{1}: {2}".format(self.smsc_host, self.smsc_port, _describe(e))
            ) from e

        loop = asyncio.get_running_loop()
        self.reader = reader
        self.writer = writer
        self._outbound = asyncio.Queue()
        self._ended = asyncio.Event()
        self.current_session_state = SmppSessionState.OPEN
        self._tasks = [
            loop.create_task(self._receive_data()),
            loop.create_task(self._dequeue_pdus()),
        ]
        self._log(logging.INFO, {"event": "smppsend.Esme.connect", "stage": "end"})

    async def bind(self) -> None:
        """
        send a bind_transmitter, bind_receiver or bind_transceiver pdu to SMSC, depending on `bind_mode`.

        Raises:
            SessionError: if the SMSC refused the bind or did not answer in time.
        """
        mode = BIND_MODES[self.bind_mode]
        sequence_number = self._next_sequence()
        self._log(
            logging.INFO,
            {
                "event": "smppsend.Esme.bind",
                "stage": "start",
                "smpp_command": mode.command,
                "system_id": self.system_id,
                "sequence_number": sequence_number,
            },
        )
        request = pdu.BindRequest(
            smpp_command=mode.command,
            system_id=self.system_id,
            password=self.password,
            system_type=self.system_type,
            interface_version=self.interface_version,
            addr_ton=self.addr_ton,
            addr_npi=self.addr_npi,
            address_range=self.address_range,
        )
        header, _ = await self._request(
            mode.command, pdu.encode_bind(request, sequence_number), sequence_number
        )
        self._check_status(mode.command, header)

        self.current_session_state = mode.bound_state
        self._tasks.append(asyncio.get_running_loop().create_task(self._enquire_link()))
        self._log(
            logging.INFO,
            {
                "event": "smppsend.Esme.bind",
                "stage": "end",
                "smpp_command": mode.command,
                "current_session_state": self.current_session_state,
            },
        )

    async def submit(self, request: pdu.SubmitSm) -> str:
        """
        send a submit_sm pdu to SMSC and wait for its submit_sm_resp.

        Returns:
            the message_id that the SMSC assigned to the message.

        Raises:
            SessionError: if the SMSC rejected the message or did not answer in time.
        """
        sequence_number = self._next_sequence()
        self._log(
            logging.INFO,
            {
                "event": "smppsend.Esme.submit",
                "stage": "start",
                "smpp_command": SmppCommand.SUBMIT_SM,
                "sequence_number": sequence_number,
                "source_addr": request.source_addr,
                "destination_addr": request.destination_addr,
                "short_message": request.short_message,
            },
        )
        header, body = await self._request(
            SmppCommand.SUBMIT_SM, pdu.encode_submit_sm(request, sequence_number), sequence_number
        )
        self._check_status(SmppCommand.SUBMIT_SM, header)
        message_id = pdu.decode_message_id(body)
        self._log(
            logging.INFO,
            {
                "event": "smppsend.Esme.submit",
                "stage": "end",
                "smpp_command": SmppCommand.SUBMIT_SM,
                "sequence_number": sequence_number,
                "message_id": message_id,
            },
        )
        return message_id

    async def unbind(self) -> None:
        """
        send an UNBIND pdu to SMSC and wait for unbind_resp.
        A failure is logged but not raised; the session is going away anyway.
        """
        if not self.is_bound or self.is_ended:
            return
        sequence_number = self._next_sequence()
        self._log(
            logging.INFO,
            {"event": "smppsend.Esme.unbind", "stage": "start", "sequence_number": sequence_number},
        )
        try:
            await self._request(
                SmppCommand.UNBIND, pdu.frame(SmppCommand.UNBIND, sequence_number), sequence_number
            )
        except SessionError as e:
            self._log(
                logging.WARNING,
                {"event": "smppsend.Esme.unbind", "stage": "end", "error": e.message},
            )
            return
        self.current_session_state = SmppSessionState.OPEN
        self._log(logging.INFO, {"event": "smppsend.Esme.unbind", "stage": "end"})

    async def wait_forever(self) -> None:
        """
        blocks until the session ends.
        It returns normally when the session was ended by an unbind(from either side) or by :func:`close <Esme.close>`.

        Raises:
            SessionError: if the connection was lost.
        """
        if self._ended is None:
            raise SessionError("the session has not been established")
        self._log(logging.INFO, {"event": "smppsend.Esme.wait_forever", "stage": "start"})
        await self._ended.wait()
        self._log(
            logging.INFO,
            {
                "event": "smppsend.Esme.wait_forever",
                "stage": "end",
                "error": self._end_error.message if self._end_error else None,
            },
        )
        if self._end_error is not None:
            raise self._end_error

    async def close(self) -> None:
        """
        unbind from SMSC and close the network connection. Calling it more than once is harmless.
        """
        if self._closing:
            return
        self._closing = True
        self._log(logging.DEBUG, {"event": "smppsend.Esme.close", "stage": "start"})

        await self.unbind()
        if self._outbound is not None:
            # the writer task exits once everything queued before this has been written
            self._outbound.put_nowait(None)
            if len(self._tasks) > 1:
                await asyncio.wait([self._tasks[1]], timeout=self.socket_timeout)
        if self.writer is not None:
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except (OSError, ConnectionError) as e:
                self._log(
                    logging.DEBUG,
                    {"event": "smppsend.Esme.close", "stage": "end", "error": _describe(e)},
                )

        for task in self._tasks:
            if not task.done():
                task.cancel()
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                self._log(
                    logging.ERROR,
                    {"event": "smppsend.Esme.close", "stage": "end", "error": _describe(result)},
                )

        self._session_ended(None, "the session was closed")
        self.current_session_state = SmppSessionState.CLOSED
        self._log(logging.DEBUG, {"event": "smppsend.Esme.close", "stage": "end"})

    async def shutdown(self) -> None:
        """
        Cleanly shutdown the session.
        """
        self._log(
            logging.INFO,
            {"event": "smppsend.Esme.shutdown", "stage": "start", "state": "intiating shutdown"},
        )
        await self.close()
        self._log(logging.INFO, {"event": "smppsend.Esme.shutdown", "stage": "end"})

    async def __aenter__(self) -> "Esme":
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.close()

    def _check_status(self, smpp_command: str, header: pdu.Header) -> None:
        if header.smpp_command == SmppCommand.GENERIC_NACK or header.command_status != ESME_ROK.value:
            status = search_by_command_status(header.command_status)
            raise SessionError(
                "{0} was answered with {1} status {2}(0x{3:08X}): {4}".format(
                    smpp_command,
                    header.smpp_command,
                    status.code,
                    status.value,
                    status.description,
                ),
                command_status=status,
            )

    async def _request(
        self, smpp_command: str, msg: bytes, sequence_number: int
    ) -> typing.Tuple[pdu.Header, bytes]:
        """
        queues `msg` for sending and waits for the response with the same sequence_number.
        """
        if self.is_ended:
            raise SessionError(
                "smpp_command `{0}` cannot be sent to SMSC when the session state is `{1}`".format(
                    smpp_command, self.current_session_state
                )
            )
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[sequence_number] = future
        try:
            await self._send(smpp_command, msg)
            return await asyncio.wait_for(future, timeout=self.socket_timeout)
        except asyncio.TimeoutError as e:
            raise SessionError(
                "no response to {0} within {1:.2f} seconds".format(smpp_command, self.socket_timeout)
            ) from e
        finally:
            self._pending.pop(sequence_number, None)

    async def _send(self, smpp_command: str, msg: bytes) -> None:
        if typing.TYPE_CHECKING:
            assert isinstance(self._outbound, asyncio.Queue)
        self._log(
            logging.DEBUG,
            {
                "event": "smppsend.Esme._send",
                "stage": "start",
                "smpp_command": smpp_command,
                "msg": pdu.msg_to_log(msg, self.password),
            },
        )
        await self._outbound.put(msg)

    async def _dequeue_pdus(self) -> None:
        """
        the only writer of the connection; drains the outbound queue until it gets `None`.
        """
        if typing.TYPE_CHECKING:
            assert isinstance(self._outbound, asyncio.Queue)
            assert isinstance(self.writer, asyncio.StreamWriter)
        while True:
            msg = await self._outbound.get()
            if msg is None:
                return
            try:
                self.writer.write(msg)
                await self.writer.drain()
            except (OSError, ConnectionError) as e:
                self._connection_lost(SessionError("unable to write to SMSC: {0}".format(_describe(e))))
                return

    async def _receive_data(self) -> None:
        """
        In a loop; read pdus from the network connected to SMSC and hand them over to :func:`_command_handlers <Esme._command_handlers>`
        """
        if typing.TYPE_CHECKING:
            assert isinstance(self.reader, asyncio.StreamReader)
        while True:
            try:
                header_data = await self.reader.readexactly(pdu.HEADER_LENGTH)
                header = pdu.decode_header(header_data)
                if not (pdu.HEADER_LENGTH <= header.command_length <= MAX_PDU_LENGTH):
                    raise pdu.PduDecodeError(
                        "invalid command_length: {0}".format(header.command_length)
                    )
                body = await self.reader.readexactly(header.command_length - pdu.HEADER_LENGTH)
            except asyncio.IncompleteReadError:
                self._connection_lost(SessionError("connection closed by SMSC"))
                return
            except (OSError, ConnectionError) as e:
                self._connection_lost(SessionError("unable to read from SMSC: {0}".format(_describe(e))))
                return
            except pdu.PduDecodeError as e:
                self._connection_lost(SessionError("invalid pdu from SMSC: {0}".format(e)))
                return
            await self._command_handlers(header, body)

    async def _command_handlers(self, header: pdu.Header, body: bytes) -> None:
        """
        This routes the various different SMPP PDU to their respective handlers.
        """
        smpp_command = header.smpp_command
        self._log(
            logging.DEBUG,
            {
                "event": "smppsend.Esme._command_handlers",
                "stage": "start",
                "smpp_command": smpp_command,
                "command_id": header.command_id,
                "command_status": header.command_status,
                "sequence_number": header.sequence_number,
            },
        )
        if smpp_command is None:
            self._log(
                logging.ERROR,
                {
                    "event": "smppsend.Esme._command_handlers",
                    "stage": "end",
                    "error": "command_id:{0} is unknown.".format(header.command_id),
                },
            )
            await self._respond(
                SmppCommand.GENERIC_NACK,
                header.sequence_number,
                command_status=ESME_RINVCMDID.value,
            )
        elif smpp_command in _RESPONSES:
            future = self._pending.get(header.sequence_number)
            if future is None or future.done():
                self._log(
                    logging.WARNING,
                    {
                        "event": "smppsend.Esme._command_handlers",
                        "stage": "end",
                        "smpp_command": smpp_command,
                        "sequence_number": header.sequence_number,
                        "state": "response to an unknown or expired request",
                    },
                )
                return
            future.set_result((header, body))
        elif smpp_command == SmppCommand.DELIVER_SM:
            await self._handle_deliver_sm(header, body)
        elif smpp_command == SmppCommand.ENQUIRE_LINK:
            await self._respond(SmppCommand.ENQUIRE_LINK_RESP, header.sequence_number)
        elif smpp_command == SmppCommand.UNBIND:
            await self._respond(SmppCommand.UNBIND_RESP, header.sequence_number)
            self._log(
                logging.INFO,
                {"event": "smppsend.Esme._command_handlers", "stage": "end", "state": "SMSC unbound the session"},
            )
            self._session_ended(None, "SMSC unbound the session")
            self.current_session_state = SmppSessionState.CLOSED
            if typing.TYPE_CHECKING:
                assert isinstance(self._outbound, asyncio.Queue)
            self._outbound.put_nowait(None)
        elif smpp_command == SmppCommand.ALERT_NOTIFICATION:
            # alert_notification has no response
            self._log(
                logging.INFO,
                {"event": "smppsend.Esme._command_handlers", "stage": "end", "smpp_command": smpp_command},
            )
        else:
            await self._respond(
                SmppCommand.GENERIC_NACK,
                header.sequence_number,
                command_status=ESME_RINVCMDID.value,
            )

    async def _handle_deliver_sm(self, header: pdu.Header, body: bytes) -> None:
        try:
            message = pdu.decode_deliver_sm(body)
        except pdu.PduDecodeError as e:
            self._log(
                logging.ERROR,
                {"event": "smppsend.Esme.deliver_sm", "stage": "end", "error": str(e)},
            )
            await self._respond(
                SmppCommand.DELIVER_SM_RESP,
                header.sequence_number,
                body=pdu.NULL,
                command_status=ESME_RSYSERR.value,
            )
            return

        receipted_message_id = message.receipted_message_id
        encoding = "utf_16_be" if message.data_coding == SmppDataCoding.ucs2.value else "latin-1"
        self._log(
            logging.INFO,
            {
                "event": "smppsend.Esme.deliver_sm",
                "stage": "end",
                "sequence_number": header.sequence_number,
                "source_addr": message.source_addr,
                "destination_addr": message.destination_addr,
                "esm_class": message.esm_class,
                "data_coding": message.data_coding,
                "short_message": message.short_message.decode(encoding, "replace"),
                "receipted_message_id": receipted_message_id,
            },
        )
        # message_id is unused in deliver_sm_resp and must be NULL
        await self._respond(SmppCommand.DELIVER_SM_RESP, header.sequence_number, body=pdu.NULL)
        if receipted_message_id is not None:
            self.correlater.receipt(receipted_message_id)

    async def _respond(
        self, smpp_command: str, sequence_number: int, body: bytes = b"", command_status: int = 0
    ) -> None:
        await self._send(
            smpp_command, pdu.frame(smpp_command, sequence_number, body, command_status=command_status)
        )

    async def _enquire_link(self) -> None:
        """
        send an ENQUIRE_LINK pdu to SMSC every `enquire_link_interval` seconds while the session lasts.
        """
        while True:
            await asyncio.sleep(self.enquire_link_interval)
            if self.is_ended:
                return
            sequence_number = self._next_sequence()
            try:
                await self._request(
                    SmppCommand.ENQUIRE_LINK,
                    pdu.frame(SmppCommand.ENQUIRE_LINK, sequence_number),
                    sequence_number,
                )
            except SessionError as e:
                self._log(
                    logging.WARNING,
                    {"event": "smppsend.Esme.enquire_link", "stage": "end", "error": e.message},
                )

    def _connection_lost(self, error: SessionError) -> None:
        if not self._closing:
            self._log(
                logging.ERROR,
                {"event": "smppsend.Esme._connection_lost", "stage": "end", "error": error.message},
            )
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        if self._outbound is not None:
            self._outbound.put_nowait(None)
        self._session_ended(None if self._closing else error, error.message)
        self.current_session_state = SmppSessionState.CLOSED

    def _session_ended(self, error: typing.Union[None, SessionError], reason: str) -> None:
        """
        marks the session as over; `error` is None when it ended orderly.
        Anybody still waiting for a response or for receipts is woken up with `reason`.
        """
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error if error is not None else SessionError(reason))
        if self._ended is None or self._ended.is_set():
            return
        self._end_error = error
        self._ended.set()
        self.correlater.abort(error if error is not None else SessionError(reason))

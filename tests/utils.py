import time
import asyncio
import logging
import threading
import typing
from unittest import mock

from smppsend import pdu, tlv
from smppsend.state import SmppCommand, ESM_CLASS_DELIVERY_RECEIPT


# capture warnings during test runs
logging.captureWarnings(True)


def AsyncMock(*args, **kwargs):
    """
    see: https://blog.miguelgrinberg.com/post/unit-testing-asyncio-code
    """
    m = mock.MagicMock(*args, **kwargs)

    async def mock_coro(*args, **kwargs):
        return m(*args, **kwargs)

    mock_coro.mock = m
    return mock_coro


class MockStreamWriter:
    """
    This is a mock of python's StreamWriter;
    https://docs.python.org/3/library/asyncio-stream.html#asyncio.StreamWriter
    Everything written is kept in `written`.
    """

    def __init__(self):
        self.written: typing.List[bytes] = []
        self.closed = False

    async def drain(self):
        pass

    def close(self):
        self.closed = True

    async def wait_closed(self):
        pass

    def write(self, data):
        self.written.append(data)


class MockStreamReader:
    """
    This is a mock of python's StreamReader;
    https://docs.python.org/3/library/asyncio-stream.html#asyncio.StreamReader
    """

    def __init__(self, pdu):
        self.data = pdu

    async def readexactly(self, n):
        _to_read_data = self.data[:n]
        _remaining_data = self.data[n:]

        if len(_to_read_data) != n:
            # unable to read exactly n bytes
            raise asyncio.IncompleteReadError(partial=_to_read_data, expected=n)

        self.data = _remaining_data
        return _to_read_data


class Received(typing.NamedTuple):
    header: pdu.Header
    body: bytes


def receipt_text(message_id: str, stat: str = "DELIVRD") -> bytes:
    now = time.strftime("%y%m%d%H%M")
    return (
        "id:{0} sub:001 dlvrd:001 submit date:{1} done date:{1} stat:{2} err:000 text:".format(
            message_id, now, stat
        )
    ).encode("ascii")


def deliver_sm(
    short_message: bytes,
    esm_class: int = 0,
    tlvs: typing.Union[None, typing.Dict[int, bytes]] = None,
    data_coding: int = 0,
) -> pdu.DeliverSm:
    return pdu.DeliverSm(
        service_type="",
        source_addr_ton=1,
        source_addr_npi=1,
        source_addr="255799000888",
        dest_addr_ton=1,
        dest_addr_npi=1,
        destination_addr="255700111222",
        esm_class=esm_class,
        protocol_id=0,
        priority_flag=0,
        registered_delivery=0,
        data_coding=data_coding,
        short_message=short_message,
        tlvs=tlvs or {},
    )


def submit_sm(**kwargs) -> pdu.SubmitSm:
    fields = dict(
        service_type="",
        source_addr_ton=1,
        source_addr_npi=1,
        source_addr="255700111222",
        dest_addr_ton=1,
        dest_addr_npi=1,
        destination_addr="255799000888",
        esm_class=0,
        protocol_id=0,
        priority_flag=0,
        schedule_delivery_time="",
        validity_period="",
        registered_delivery=1,
        replace_if_present_flag=0,
        data_coding=0,
        sm_default_msg_id=0,
        short_message=b"Hello",
        tlvs={},
    )
    fields.update(kwargs)
    return pdu.SubmitSm(**fields)


class FakeSmsc:
    """
    An in-process SMSC listening on loopback, good enough to drive an smppsend session in tests.

    - bind_* is answered with `bind_status`
    - the n-th submit_sm(1 based) is answered with `submit_statuses.get(n, 0)` and message_id `msg-n`
    - a delivery receipt is sent for every accepted submit_sm whose position is in `receipts_for`(all when None)
    - commands in `silent_on` are never answered
    - enquire_link and unbind are answered
    """

    def __init__(
        self,
        bind_status: int = 0,
        submit_statuses: typing.Union[None, typing.Dict[int, int]] = None,
        receipts_for: typing.Union[None, typing.Set[int]] = None,
        receipt_delay: float = 0.0,
        receipt_tlv: bool = False,
        silent_on: typing.Union[None, typing.Set[str]] = None,
    ) -> None:
        self.bind_status = bind_status
        self.submit_statuses = submit_statuses or {}
        self.receipts_for = receipts_for
        self.receipt_delay = receipt_delay
        self.receipt_tlv = receipt_tlv
        self.silent_on = silent_on or set()

        self.port = 0
        self.received: typing.List[Received] = []
        self.submit_count = 0
        self.sequence_number = 0
        self.server: typing.Union[None, asyncio.AbstractServer] = None
        self.writers: typing.List[asyncio.StreamWriter] = []
        self.connected = None  # type: typing.Union[None, asyncio.Event]

    def next_sequence(self) -> int:
        self.sequence_number += 1
        return self.sequence_number

    def commands(self) -> typing.List[str]:
        return [r.header.smpp_command for r in self.received]

    def submitted(self) -> typing.List[pdu.DeliverSm]:
        """
        the submit_sm pdus received; the mandatory fields that matter to tests are laid out
        like those of deliver_sm, so its decoder is reused.
        """
        return [
            pdu.decode_deliver_sm(r.body)
            for r in self.received
            if r.header.smpp_command == SmppCommand.SUBMIT_SM
        ]

    async def start(self) -> int:
        self.connected = asyncio.Event()
        self.server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self.server.sockets[0].getsockname()[1]
        return self.port

    async def stop(self) -> None:
        for writer in self.writers:
            writer.close()
        if self.server is not None:
            self.server.close()
            await self.server.wait_closed()

    async def send(self, data: bytes) -> None:
        for writer in self.writers:
            if writer.is_closing():
                continue
            writer.write(data)
            await writer.drain()

    async def send_deliver_sm(self, message: pdu.DeliverSm) -> None:
        await self.send(pdu.encode_deliver_sm(message, self.next_sequence()))

    async def send_unbind(self) -> None:
        await self.send(pdu.frame(SmppCommand.UNBIND, self.next_sequence()))

    async def drop(self) -> None:
        """
        close every connection without unbinding.
        """
        for writer in self.writers:
            writer.close()

    async def _send_receipt(self, message_id: str) -> None:
        await asyncio.sleep(self.receipt_delay)
        tlvs = {}
        if self.receipt_tlv:
            tlvs[tlv.RECEIPTED_MESSAGE_ID] = message_id.encode("ascii") + pdu.NULL
        await self.send_deliver_sm(
            deliver_sm(receipt_text(message_id), esm_class=ESM_CLASS_DELIVERY_RECEIPT, tlvs=tlvs)
        )

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.writers.append(writer)
        self.connected.set()
        try:
            while True:
                header = pdu.decode_header(await reader.readexactly(pdu.HEADER_LENGTH))
                body = await reader.readexactly(header.command_length - pdu.HEADER_LENGTH)
                self.received.append(Received(header, body))
                await self._respond(writer, header)
                if header.smpp_command == SmppCommand.UNBIND:
                    break
        except (asyncio.IncompleteReadError, ConnectionError):
            pass
        finally:
            writer.close()

    async def _respond(self, writer: asyncio.StreamWriter, header: pdu.Header) -> None:
        smpp_command = header.smpp_command
        if smpp_command in self.silent_on:
            return

        if smpp_command in (
            SmppCommand.BIND_TRANSMITTER,
            SmppCommand.BIND_RECEIVER,
            SmppCommand.BIND_TRANSCEIVER,
        ):
            writer.write(
                pdu.frame(
                    smpp_command + "_resp",
                    header.sequence_number,
                    pdu.c_octet_string("fake_smsc"),
                    command_status=self.bind_status,
                )
            )
        elif smpp_command == SmppCommand.SUBMIT_SM:
            self.submit_count += 1
            position = self.submit_count
            status = self.submit_statuses.get(position, 0)
            message_id = "msg-{0}".format(position)
            body = pdu.c_octet_string(message_id) if status == 0 else b""
            writer.write(
                pdu.frame(
                    SmppCommand.SUBMIT_SM_RESP, header.sequence_number, body, command_status=status
                )
            )
            if status == 0 and (self.receipts_for is None or position in self.receipts_for):
                asyncio.get_running_loop().create_task(self._send_receipt(message_id))
        elif smpp_command == SmppCommand.ENQUIRE_LINK:
            writer.write(pdu.frame(SmppCommand.ENQUIRE_LINK_RESP, header.sequence_number))
        elif smpp_command == SmppCommand.UNBIND:
            writer.write(pdu.frame(SmppCommand.UNBIND_RESP, header.sequence_number))
        await writer.drain()


class SmscThread:
    """
    runs a FakeSmsc on its own event loop in a background thread, for code under test that
    starts its own event loop(eg `asyncio.run`).

    usage:
        with SmscThread(FakeSmsc()) as smsc:
            main(["--port", str(smsc.port), ...])
    """

    def __init__(self, smsc: FakeSmsc) -> None:
        self.smsc = smsc
        self.loop = asyncio.new_event_loop()
        self.thread = threading.Thread(target=self.loop.run_forever, daemon=True)

    def call(self, coro, timeout: float = 5.0):
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout=timeout)

    def __enter__(self) -> FakeSmsc:
        self.thread.start()
        self.call(self.smsc.start())
        return self.smsc

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.call(self.smsc.stop())
        self.loop.call_soon_threadsafe(self.loop.stop)
        self.thread.join(timeout=5.0)
        self.loop.close()

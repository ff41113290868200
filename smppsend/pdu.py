import re
import struct
import typing

from . import tlv
from .state import (
    COMMAND_IDS,
    SmppCommand,
    ESM_CLASS_DELIVERY_RECEIPT,
    ESM_CLASS_MESSAGE_TYPE_MASK,
    search_by_command_id,
)


HEADER_LENGTH = 16
NULL = chr(0).encode("ascii")

# short_message is an Octet-String of 0-254 octets; sm_length is a 1 octet integer.
MAX_SHORT_MESSAGE_LENGTH = 254


class PduDecodeError(ValueError):
    pass


class Header(typing.NamedTuple):
    command_length: int
    command_id: int
    command_status: int
    sequence_number: int

    @property
    def smpp_command(self) -> typing.Union[None, str]:
        return search_by_command_id(self.command_id)


class BindRequest(typing.NamedTuple):
    smpp_command: str
    system_id: str
    password: str
    system_type: str = ""
    interface_version: int = 0x34
    addr_ton: int = 0
    addr_npi: int = 0
    address_range: str = ""


class SubmitSm(typing.NamedTuple):
    """
    One submit_sm, ready to be framed. `short_message` already contains the UDH, if any.
    """

    service_type: str
    source_addr_ton: int
    source_addr_npi: int
    source_addr: str
    dest_addr_ton: int
    dest_addr_npi: int
    destination_addr: str
    esm_class: int
    protocol_id: int
    priority_flag: int
    schedule_delivery_time: str
    validity_period: str
    registered_delivery: int
    replace_if_present_flag: int
    data_coding: int
    sm_default_msg_id: int
    short_message: bytes
    tlvs: typing.Dict[int, bytes]


class DeliverSm(typing.NamedTuple):
    service_type: str
    source_addr_ton: int
    source_addr_npi: int
    source_addr: str
    dest_addr_ton: int
    dest_addr_npi: int
    destination_addr: str
    esm_class: int
    protocol_id: int
    priority_flag: int
    registered_delivery: int
    data_coding: int
    short_message: bytes
    tlvs: typing.Dict[int, bytes]

    @property
    def is_delivery_receipt(self) -> bool:
        return self.esm_class & ESM_CLASS_MESSAGE_TYPE_MASK == ESM_CLASS_DELIVERY_RECEIPT

    @property
    def receipted_message_id(self) -> typing.Union[None, str]:
        """
        the SMSC message_id that this deliver_sm is a receipt for.
        The `receipted_message_id` TLV is preferred, the `id:` field of the receipt text is the fallback.
        """
        value = self.tlvs.get(tlv.RECEIPTED_MESSAGE_ID)
        if value is not None:
            return value.replace(NULL, b"").decode("ascii", "replace")
        if not self.is_delivery_receipt:
            return None
        # see Appendix B of smpp ver 3.4 spec document for the receipt format
        match = _RECEIPT_ID.search(self.short_message)
        if match is None:
            return None
        return match.group(1).decode("ascii", "replace")


_RECEIPT_ID = re.compile(rb"id:(\S+)", re.IGNORECASE)


def c_octet_string(value: str) -> bytes:
    """
    C-Octet strings are a series of ASCII characters terminated with the NULL character.
    see; section 3.1 of SMPP spec
    """
    return value.encode("ascii") + NULL


def header(command_length: int, smpp_command: str, command_status: int, sequence_number: int) -> bytes:
    return struct.pack(
        ">IIII", command_length, COMMAND_IDS[smpp_command], command_status, sequence_number
    )


def frame(smpp_command: str, sequence_number: int, body: bytes = b"", command_status: int = 0) -> bytes:
    return header(HEADER_LENGTH + len(body), smpp_command, command_status, sequence_number) + body


def encode_bind(request: BindRequest, sequence_number: int) -> bytes:
    body = (
        c_octet_string(request.system_id)
        + c_octet_string(request.password)
        + c_octet_string(request.system_type)
        + struct.pack(">B", request.interface_version)
        + struct.pack(">B", request.addr_ton)
        + struct.pack(">B", request.addr_npi)
        + c_octet_string(request.address_range)
    )
    return frame(request.smpp_command, sequence_number, body)


def encode_submit_sm(request: SubmitSm, sequence_number: int) -> bytes:
    # see section 4.4.1 of smpp ver 3.4 spec document.
    # The mandatory parameters SHOULD be put in the body in the ORDER presented here.
    if len(request.short_message) > MAX_SHORT_MESSAGE_LENGTH:
        raise ValueError(
            "short_message is {0} octets long, the maximum is {1}".format(
                len(request.short_message), MAX_SHORT_MESSAGE_LENGTH
            )
        )
    body = (
        c_octet_string(request.service_type)
        + struct.pack(">B", request.source_addr_ton)
        + struct.pack(">B", request.source_addr_npi)
        + c_octet_string(request.source_addr)
        + struct.pack(">B", request.dest_addr_ton)
        + struct.pack(">B", request.dest_addr_npi)
        + c_octet_string(request.destination_addr)
        + struct.pack(">B", request.esm_class)
        + struct.pack(">B", request.protocol_id)
        + struct.pack(">B", request.priority_flag)
        + c_octet_string(request.schedule_delivery_time)
        + c_octet_string(request.validity_period)
        + struct.pack(">B", request.registered_delivery)
        + struct.pack(">B", request.replace_if_present_flag)
        + struct.pack(">B", request.data_coding)
        + struct.pack(">B", request.sm_default_msg_id)
        + struct.pack(">B", len(request.short_message))
        + request.short_message
    )
    for tag, value in request.tlvs.items():
        body = body + tlv.pack(tag, value)
    return frame(SmppCommand.SUBMIT_SM, sequence_number, body)


def encode_deliver_sm(request: DeliverSm, sequence_number: int) -> bytes:
    """
    deliver_sm is only ever sent by an SMSC; this exists for tests and simulators.
    """
    body = (
        c_octet_string(request.service_type)
        + struct.pack(">BB", request.source_addr_ton, request.source_addr_npi)
        + c_octet_string(request.source_addr)
        + struct.pack(">BB", request.dest_addr_ton, request.dest_addr_npi)
        + c_octet_string(request.destination_addr)
        + struct.pack(">BBB", request.esm_class, request.protocol_id, request.priority_flag)
        + NULL  # schedule_delivery_time
        + NULL  # validity_period
        + struct.pack(">BBBBB", request.registered_delivery, 0, request.data_coding, 0, len(request.short_message))
        + request.short_message
    )
    for tag, value in request.tlvs.items():
        body = body + tlv.pack(tag, value)
    return frame(SmppCommand.DELIVER_SM, sequence_number, body)


def msg_to_log(msg: bytes, password: str = "") -> str:
    """
    returns decoded string from bytes with any password removed.
    the returned string is safe to log.
    """
    log_msg = msg.decode("ascii", "backslashreplace")
    if password and password in log_msg:
        # do not log password, redact it from logs.
        log_msg = log_msg.replace(password, "{REDACTED}")
    return log_msg


def decode_header(data: bytes) -> Header:
    if len(data) < HEADER_LENGTH:
        raise PduDecodeError("pdu header needs {0} octets, got {1}".format(HEADER_LENGTH, len(data)))
    return Header(*struct.unpack(">IIII", data[:HEADER_LENGTH]))


class _BodyReader:
    def __init__(self, body: bytes) -> None:
        self.body = body
        self.position = 0

    def c_octet_string(self) -> str:
        end = self.body.find(NULL, self.position)
        if end == -1:
            raise PduDecodeError("unterminated C-Octet string at offset {0}".format(self.position))
        value = self.body[self.position : end]
        self.position = end + 1
        return value.decode("ascii", "replace")

    def integer(self) -> int:
        if self.position >= len(self.body):
            raise PduDecodeError("pdu body ended at offset {0}".format(self.position))
        value = self.body[self.position]
        self.position += 1
        return value

    def octets(self, length: int) -> bytes:
        if self.position + length > len(self.body):
            raise PduDecodeError("pdu body ended at offset {0}".format(self.position))
        value = self.body[self.position : self.position + length]
        self.position += length
        return value

    def rest(self) -> bytes:
        return self.body[self.position :]


def decode_message_id(body: bytes) -> str:
    """
    the body of submit_sm_resp only has `message_id`, a C-Octet String of upto 65 octets.
    An SMSC that rejects a submit_sm may send no body at all.
    """
    return body.split(NULL, 1)[0].decode("ascii", "replace")


def decode_deliver_sm(body: bytes) -> DeliverSm:
    # see section 4.6.1 of smpp v3.4 spec
    reader = _BodyReader(body)
    service_type = reader.c_octet_string()
    source_addr_ton = reader.integer()
    source_addr_npi = reader.integer()
    source_addr = reader.c_octet_string()
    dest_addr_ton = reader.integer()
    dest_addr_npi = reader.integer()
    destination_addr = reader.c_octet_string()
    esm_class = reader.integer()
    protocol_id = reader.integer()
    priority_flag = reader.integer()
    reader.c_octet_string()  # schedule_delivery_time, must be NULL
    reader.c_octet_string()  # validity_period, must be NULL
    registered_delivery = reader.integer()
    reader.integer()  # replace_if_present_flag, must be NULL
    data_coding = reader.integer()
    reader.integer()  # sm_default_msg_id, must be NULL
    sm_length = reader.integer()
    short_message = reader.octets(sm_length)
    tlvs = tlv.unpack_all(reader.rest())
    return DeliverSm(
        service_type=service_type,
        source_addr_ton=source_addr_ton,
        source_addr_npi=source_addr_npi,
        source_addr=source_addr,
        dest_addr_ton=dest_addr_ton,
        dest_addr_npi=dest_addr_npi,
        destination_addr=destination_addr,
        esm_class=esm_class,
        protocol_id=protocol_id,
        priority_flag=priority_flag,
        registered_delivery=registered_delivery,
        data_coding=data_coding,
        short_message=short_message,
        tlvs=tlvs,
    )

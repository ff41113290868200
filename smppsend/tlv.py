import re
import struct
import typing


class TlvError(Exception):
    """
    Raised when a command line option names a known TLV but its value cannot be converted.
    """

    def __init__(self, key: str, message: str) -> None:
        super(TlvError, self).__init__(message)
        self.key = key
        self.message = message


class UnknownTlv(KeyError):
    """
    Raised by :func:`id_by_name` for names that are not in the catalog.
    """

    pass


class TlvSpec(typing.NamedTuple):
    """
    Catalog entry of an SMPP optional parameter.

    kind is one of:
      - `int`: unsigned big endian integer of `size` octets
      - `cstring`: C-Octet string, NULL terminated, at most `size` octets including the NULL
      - `octets`: Octet string, at most `size` octets
      - `flag`: the parameter has no value part
    """

    name: str
    tag: int
    kind: str
    size: int


# see section 5.3.2 of smpp ver 3.4 spec document.
# All optional parameters have the general TLV format:
# Tag, Integer, 2octets
# Length, Integer, 2octets
# Value, type varies, size varies.
CATALOG: typing.Dict[str, TlvSpec] = {
    spec.name: spec
    for spec in [
        TlvSpec("dest_addr_subunit", 0x0005, "int", 1),
        TlvSpec("dest_network_type", 0x0006, "int", 1),
        TlvSpec("dest_bearer_type", 0x0007, "int", 1),
        TlvSpec("dest_telematics_id", 0x0008, "int", 2),
        TlvSpec("source_addr_subunit", 0x000D, "int", 1),
        TlvSpec("source_network_type", 0x000E, "int", 1),
        TlvSpec("source_bearer_type", 0x000F, "int", 1),
        TlvSpec("source_telematics_id", 0x0010, "int", 1),
        TlvSpec("qos_time_to_live", 0x0017, "int", 4),
        TlvSpec("payload_type", 0x0019, "int", 1),
        TlvSpec("additional_status_info_text", 0x001D, "cstring", 256),
        TlvSpec("receipted_message_id", 0x001E, "cstring", 65),
        TlvSpec("ms_msg_wait_facilities", 0x0030, "int", 1),
        TlvSpec("privacy_indicator", 0x0201, "int", 1),
        TlvSpec("source_subaddress", 0x0202, "octets", 23),
        TlvSpec("dest_subaddress", 0x0203, "octets", 23),
        TlvSpec("user_message_reference", 0x0204, "int", 2),
        TlvSpec("user_response_code", 0x0205, "int", 1),
        TlvSpec("source_port", 0x020A, "int", 2),
        TlvSpec("destination_port", 0x020B, "int", 2),
        TlvSpec("sar_msg_ref_num", 0x020C, "int", 2),
        TlvSpec("language_indicator", 0x020D, "int", 1),
        TlvSpec("sar_total_segments", 0x020E, "int", 1),
        TlvSpec("sar_segment_seqnum", 0x020F, "int", 1),
        TlvSpec("sc_interface_version", 0x0210, "int", 1),
        TlvSpec("callback_num_pres_ind", 0x0302, "int", 1),
        TlvSpec("callback_num_atag", 0x0303, "octets", 65),
        TlvSpec("number_of_messages", 0x0304, "int", 1),
        TlvSpec("callback_num", 0x0381, "octets", 19),
        TlvSpec("dpf_result", 0x0420, "int", 1),
        TlvSpec("set_dpf", 0x0421, "int", 1),
        TlvSpec("ms_availability_status", 0x0422, "int", 1),
        TlvSpec("network_error_code", 0x0423, "octets", 3),
        TlvSpec("message_payload", 0x0424, "octets", 0xFFFF),
        TlvSpec("delivery_failure_reason", 0x0425, "int", 1),
        TlvSpec("more_messages_to_send", 0x0426, "int", 1),
        TlvSpec("message_state", 0x0427, "int", 1),
        TlvSpec("ussd_service_op", 0x0501, "int", 1),
        TlvSpec("display_time", 0x1201, "int", 1),
        TlvSpec("sms_signal", 0x1203, "int", 2),
        TlvSpec("ms_validity", 0x1204, "int", 1),
        TlvSpec("alert_on_message_delivery", 0x130C, "flag", 0),
        TlvSpec("its_reply_type", 0x1380, "int", 1),
        TlvSpec("its_session_info", 0x1383, "int", 2),
    ]
}

TAG_TO_NAME: typing.Dict[int, str] = {spec.tag: name for name, spec in CATALOG.items()}

# `--tlv-0x1403 value` addresses a tag that is not (or not necessarily) in the catalog
_NUMERIC_TLV_KEY = re.compile(r"^tlv_(0x[0-9a-fA-F]{1,4}|[0-9]{1,5})$")

_INT_FORMATS = {1: ">B", 2: ">H", 4: ">I"}


def id_by_name(name: str) -> int:
    """
    returns the numeric tag of the optional parameter called `name`.
    """
    try:
        return CATALOG[name].tag
    except KeyError as e:
        raise UnknownTlv(name) from e


def to_bytes(value: str) -> bytes:
    """
    command line values are text; undecodable argv bytes survive as surrogate escapes
    and are turned back into the original bytes here.
    """
    return value.encode("utf-8", "surrogateescape")


def _convert_int(key: str, spec: TlvSpec, value: typing.Union[None, str]) -> bytes:
    if value is None:
        raise TlvError(key, "a value is required")
    try:
        number = int(value, 0)
    except ValueError as e:
        raise TlvError(key, "invalid integer value {0!r}".format(value)) from e
    max_value = (1 << (8 * spec.size)) - 1
    if number < 0 or number > max_value:
        raise TlvError(
            key, "integer value {0} is out of range 0..{1}".format(number, max_value)
        )
    return struct.pack(_INT_FORMATS[spec.size], number)


def _convert_value(key: str, spec: TlvSpec, value: typing.Union[None, str]) -> bytes:
    if spec.kind == "flag":
        # the TLV has no value field
        return b""
    if spec.kind == "int":
        return _convert_int(key, spec, value)
    if value is None:
        raise TlvError(key, "a value is required")

    raw = to_bytes(value)
    if spec.kind == "cstring":
        raw = raw + chr(0).encode("ascii")
    if len(raw) > spec.size:
        raise TlvError(
            key, "value is {0} octets long, the maximum is {1}".format(len(raw), spec.size)
        )
    return raw


def _resolve_one(key: str, value: typing.Union[None, str]) -> typing.Union[None, typing.Tuple[int, bytes]]:
    spec = CATALOG.get(key)
    if spec is not None:
        return spec.tag, _convert_value(key, spec, value)

    match = _NUMERIC_TLV_KEY.match(key)
    if match is not None:
        tag = int(match.group(1), 0)
        if tag > 0xFFFF:
            raise TlvError(key, "tag {0} is out of range 0..0xFFFF".format(tag))
        if value is None:
            raise TlvError(key, "a value is required")
        return tag, to_bytes(value)

    return None


def resolve(
    raw_options: typing.List[typing.Tuple[str, typing.Union[None, str]]]
) -> typing.Tuple[typing.Dict[int, bytes], typing.List[typing.Tuple[str, typing.Union[None, str]]]]:
    """
    Turns `(key, value)` pairs that are not part of the fixed option schema into TLVs.

    Parameters:
        raw_options: option keys(underscored, without the leading dashes) and their raw values, in command line order.

    Returns:
        a mapping of tag to encoded value, and the pairs that are not TLVs at all.
        Later pairs override earlier ones with the same tag.

    Raises:
        TlvError: if a key names a TLV but its value cannot be converted.
    """
    tlvs: typing.Dict[int, bytes] = {}
    remaining: typing.List[typing.Tuple[str, typing.Union[None, str]]] = []
    for key, value in raw_options:
        resolved = _resolve_one(key, value)
        if resolved is None:
            remaining.append((key, value))
            continue
        tag, encoded = resolved
        tlvs[tag] = encoded
    return tlvs, remaining


def pack(tag: int, value: bytes) -> bytes:
    """
    Returns the wire representation of one optional parameter.
    """
    return struct.pack(">HH", tag, len(value)) + value


def unpack_all(data: bytes) -> typing.Dict[int, bytes]:
    """
    Parses the optional parameters section of a pdu body.
    A truncated trailing TLV is ignored.
    """
    tlvs: typing.Dict[int, bytes] = {}
    position = 0
    while position + 4 <= len(data):
        tag, length = struct.unpack(">HH", data[position : position + 4])
        position += 4
        if position + length > len(data):
            break
        tlvs[tag] = data[position : position + length]
        position += length
    return tlvs


MESSAGE_PAYLOAD: int = id_by_name("message_payload")
RECEIPTED_MESSAGE_ID: int = id_by_name("receipted_message_id")
MESSAGE_STATE: int = id_by_name("message_state")

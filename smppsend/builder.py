import random
import typing

from . import tlv
from .pdu import SubmitSm, MAX_SHORT_MESSAGE_LENGTH
from .state import SmppDataCoding, ESM_CLASS_UDHI
from .errors import BuildError

if typing.TYPE_CHECKING:
    from .options import Configuration  # noqa: F401


# Concatenated short message information elements.
# see 3GPP TS 23.040 section 9.2.3.24.1 and 9.2.3.24.8
IEI_CONCAT_8BIT_REF = 0x00
IEI_CONCAT_16BIT_REF = 0x08
UDH_8BIT_REF_LENGTH = 6
UDH_16BIT_REF_LENGTH = 7
MAX_PARTS = 255


class NoSplit(typing.NamedTuple):
    """
    one submit_sm with the payload as given.
    """

    pass


class CustomUdh(typing.NamedTuple):
    """
    one submit_sm whose short_message is prefixed with a user supplied UDH.
    """

    reference: int
    total_parts: int
    part_num: int


class AutoSplit(typing.NamedTuple):
    """
    as many submit_sm as needed so that UDH plus payload of each stays within `max_bytes`.
    `reference` is picked at random when not given.
    """

    max_bytes: int
    reference: typing.Union[None, int] = None


Strategy = typing.Union[NoSplit, CustomUdh, AutoSplit]


def select_strategy(config: "Configuration") -> Strategy:
    """
    Raises:
        BuildError: if both `--udh` and `--split-max-bytes` were given.
    """
    if config.udh and config.split_max_bytes:
        raise BuildError("Options --udh and --split-max-bytes can't be used together")
    if config.udh:
        return CustomUdh(
            reference=config.udh_ref,
            total_parts=config.udh_total_parts,
            part_num=config.udh_part_num,
        )
    if config.split_max_bytes:
        return AutoSplit(max_bytes=config.split_max_bytes)
    return NoSplit()


def udh(reference: int, total_parts: int, part_num: int) -> bytes:
    """
    Returns a User Data Header holding a single concatenation information element.
    8 bit references are used when they fit, 16 bit ones otherwise.
    """
    if reference <= 0xFF:
        return bytes([UDH_8BIT_REF_LENGTH - 1, IEI_CONCAT_8BIT_REF, 3, reference, total_parts, part_num])
    return bytes(
        [
            UDH_16BIT_REF_LENGTH - 1,
            IEI_CONCAT_16BIT_REF,
            4,
            reference >> 8,
            reference & 0xFF,
            total_parts,
            part_num,
        ]
    )


def is_ucs2(config: "Configuration") -> bool:
    """
    whether the payload is UTF-16/UCS2 text, whose 2 octet code units must never be cut.
    """
    return config.ucs2 or config.data_coding == SmppDataCoding.ucs2.value


def _is_high_surrogate(payload: bytes, offset: int) -> bool:
    return 0xD8 <= payload[offset] <= 0xDB


def split_payload(payload: bytes, max_segment: int, unit: int = 1) -> typing.List[bytes]:
    """
    Cuts `payload` into segments of at most `max_segment` octets.

    With `unit` 2 the payload is taken to be UTF-16 big endian text; segments then hold
    whole code units and a surrogate pair is never divided.
    An empty payload gives a single empty segment.

    Raises:
        BuildError: if not even one character fits in `max_segment` octets.
    """
    chunk = max_segment - (max_segment % unit)
    if chunk <= 0:
        raise BuildError(
            "Error splitting message: {0} octets per part are not enough for a single character".format(
                max_segment
            )
        )
    if not payload:
        return [b""]

    segments = []
    position = 0
    while position < len(payload):
        end = min(position + chunk, len(payload))
        if unit == 2 and end < len(payload) and end - position >= 2 and _is_high_surrogate(payload, end - 2):
            end -= 2
        if end == position:
            raise BuildError(
                "Error splitting message: {0} octets per part are not enough for a single character".format(
                    max_segment
                )
            )
        segments.append(payload[position:end])
        position = end
    return segments


def _payload(config: "Configuration") -> typing.Tuple[bytes, typing.Dict[int, bytes]]:
    """
    the message payload to segment, and the TLVs that go with every segment.
    """
    tlvs = dict(config.tlvs)
    if tlv.MESSAGE_PAYLOAD in tlvs:
        return tlvs.pop(tlv.MESSAGE_PAYLOAD), tlvs
    return config.short_message, tlvs


def _submit_sm(
    config: "Configuration", short_message: bytes, tlvs: typing.Dict[int, bytes], esm_class: int
) -> SubmitSm:
    if len(short_message) > MAX_SHORT_MESSAGE_LENGTH:
        raise BuildError(
            "short_message is {0} octets long, the maximum is {1}; use --split-max-bytes or --message-payload".format(
                len(short_message), MAX_SHORT_MESSAGE_LENGTH
            )
        )
    return SubmitSm(
        service_type=config.service_type,
        source_addr_ton=config.source_addr_ton,
        source_addr_npi=config.source_addr_npi,
        source_addr=config.source_addr,
        dest_addr_ton=config.dest_addr_ton,
        dest_addr_npi=config.dest_addr_npi,
        destination_addr=config.destination_addr,
        esm_class=esm_class,
        protocol_id=config.protocol_id,
        priority_flag=config.priority_flag,
        schedule_delivery_time=config.schedule_delivery_time,
        validity_period=config.validity_period,
        registered_delivery=config.registered_delivery,
        replace_if_present_flag=config.replace_if_present_flag,
        data_coding=config.data_coding if config.data_coding is not None else 0,
        sm_default_msg_id=config.sm_default_msg_id,
        short_message=short_message,
        tlvs=tlvs,
    )


def _build_no_split(config: "Configuration") -> typing.List[SubmitSm]:
    short_message = config.short_message
    if tlv.MESSAGE_PAYLOAD in config.tlvs:
        # short_message and message_payload can't be used together
        short_message = b""
    return [_submit_sm(config, short_message, dict(config.tlvs), config.esm_class)]


def _build_custom_udh(config: "Configuration", strategy: CustomUdh) -> typing.List[SubmitSm]:
    payload, tlvs = _payload(config)
    header = udh(strategy.reference, strategy.total_parts, strategy.part_num)
    return [_submit_sm(config, header + payload, tlvs, config.esm_class | ESM_CLASS_UDHI)]


def _build_auto_split(config: "Configuration", strategy: AutoSplit) -> typing.List[SubmitSm]:
    reference = strategy.reference
    if reference is None:
        reference = random.randint(0, 0xFF)
    header_length = UDH_8BIT_REF_LENGTH if reference <= 0xFF else UDH_16BIT_REF_LENGTH

    payload, tlvs = _payload(config)
    unit = 2 if is_ucs2(config) else 1
    segments = split_payload(payload, strategy.max_bytes - header_length, unit=unit)
    if len(segments) > MAX_PARTS:
        raise BuildError(
            "Error splitting message: it needs {0} parts, at most {1} are possible".format(
                len(segments), MAX_PARTS
            )
        )

    total_parts = len(segments)
    return [
        _submit_sm(
            config,
            udh(reference, total_parts, part_num) + segment,
            dict(tlvs),
            config.esm_class | ESM_CLASS_UDHI,
        )
        for part_num, segment in enumerate(segments, start=1)
    ]


def build(config: "Configuration", strategy: typing.Union[None, Strategy] = None) -> typing.List[SubmitSm]:
    """
    Builds the ordered submit_sm requests for `config`.

    Parameters:
        config: the validated configuration
        strategy: how to lay out the payload. Selected from `config` when not given.

    Raises:
        BuildError: conflicting options or a payload that cannot be laid out.
    """
    if strategy is None:
        strategy = select_strategy(config)
    if isinstance(strategy, CustomUdh):
        return _build_custom_udh(config, strategy)
    if isinstance(strategy, AutoSplit):
        return _build_auto_split(config, strategy)
    return _build_no_split(config)

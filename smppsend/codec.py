import codecs
import typing

from . import tlv
from .state import SmppDataCoding
from .errors import EncodingError

if typing.TYPE_CHECKING:
    from .options import Configuration  # noqa: F401


# text given on the command line is taken to be utf-8
SOURCE_ENCODING = "utf-8"


class UCS2Codec(codecs.Codec):
    """
    This class implements the UCS2 encoding/decoding scheme.

    UCS2 is for all intents & purposes assumed to be the same as big endian UTF16.
    """

    # All the methods have to be staticmethods because they are passed to `codecs.CodecInfo`
    @staticmethod
    def encode(input: str, errors: str = "strict") -> typing.Tuple[bytes, int]:
        return codecs.utf_16_be_encode(input, errors)

    @staticmethod
    def decode(input: bytes, errors: str = "strict") -> typing.Tuple[str, int]:
        return codecs.utf_16_be_decode(input, errors)


def _codec_search_function(_encoding: str) -> typing.Union[None, codecs.CodecInfo]:
    if _encoding == "ucs2":
        return codecs.CodecInfo(name="ucs2", encode=UCS2Codec.encode, decode=UCS2Codec.decode)
    return None


def register_codecs() -> None:
    """
    Makes the `ucs2` encoding available to `str.encode` and `bytes.decode`.
    Registering more than once is harmless; lookups are cached by the codecs registry.
    """
    try:
        codecs.lookup("ucs2")
    except LookupError:
        codecs.register(_codec_search_function)


register_codecs()


def convert_to_ucs2(value: bytes) -> bytes:
    """
    re-encodes utf-8 `value` as UCS2.

    Raises:
        UnicodeError: if `value` is not valid utf-8.
    """
    return value.decode(SOURCE_ENCODING).encode("ucs2")


def to_ucs2(config: "Configuration") -> "Configuration":
    """
    Converts short_message and the message_payload TLV(if any) to UCS2 when `config.ucs2` is set.
    The data_coding field is set to UCS2 unless it was given explicitly.

    Raises:
        EncodingError: naming the field that could not be converted.
    """
    if not config.ucs2:
        return config

    try:
        short_message = convert_to_ucs2(config.short_message)
    except UnicodeError as e:
        raise EncodingError(
            "Failed to convert short_message to ucs2: {0}".format(e), field="short_message"
        ) from e

    tlvs = dict(config.tlvs)
    message_payload_id = tlv.id_by_name("message_payload")
    if message_payload_id in tlvs:
        try:
            tlvs[message_payload_id] = convert_to_ucs2(tlvs[message_payload_id])
        except UnicodeError as e:
            raise EncodingError(
                "Failed to convert message_payload to ucs2: {0}".format(e),
                field="message_payload",
            ) from e

    data_coding = config.data_coding
    if data_coding is None:
        data_coding = SmppDataCoding.ucs2.value
    return config._replace(short_message=short_message, tlvs=tlvs, data_coding=data_coding)

import types
import typing
import argparse

from . import tlv
from .errors import UsageError, HelpRequested


# option name -> type. This is the fixed schema; everything else is a TLV or an error.
SWITCHES: typing.Dict[str, str] = {
    "help": "boolean",
    # session
    "bind_mode": "string",
    "host": "string",
    "port": "integer",
    "system_id": "string",
    "password": "string",
    "system_type": "string",
    "interface_version": "integer",
    "addr_ton": "integer",
    "addr_npi": "integer",
    "address_range": "string",
    # message
    "submit_sm": "boolean",
    "service_type": "string",
    "source_addr_ton": "integer",
    "source_addr_npi": "integer",
    "source_addr": "string",
    "dest_addr_ton": "integer",
    "dest_addr_npi": "integer",
    "destination_addr": "string",
    "esm_class": "integer",
    "protocol_id": "integer",
    "priority_flag": "integer",
    "schedule_delivery_time": "string",
    "validity_period": "string",
    "registered_delivery": "integer",
    "replace_if_present_flag": "integer",
    "data_coding": "integer",
    "sm_default_msg_id": "integer",
    "short_message": "string",
    # control
    "split_max_bytes": "integer",
    "udh": "boolean",
    "udh_ref": "integer",
    "udh_total_parts": "integer",
    "udh_part_num": "integer",
    "ucs2": "boolean",
    "wait_dlrs": "integer",
    "wait": "boolean",
}

DEFAULTS: typing.Dict[str, typing.Any] = {
    "bind_mode": "tx",
    "esm_class": 0,
    "short_message": "",
    "submit_sm": False,
    "udh": False,
    "udh_ref": 0,
    "udh_total_parts": 1,
    "udh_part_num": 1,
    "ucs2": False,
    "wait": False,
}

REQUIRED: typing.List[str] = ["bind_mode", "host", "port", "system_id", "password", "submit_sm"]

BIND_MODES = ("tx", "rx", "trx")

# (key, lowest, highest) for integer options that have a bounded range
_RANGES: typing.List[typing.Tuple[str, int, int]] = [
    ("port", 1, 65535),
    ("interface_version", 0, 255),
    ("addr_ton", 0, 255),
    ("addr_npi", 0, 255),
    ("source_addr_ton", 0, 255),
    ("source_addr_npi", 0, 255),
    ("dest_addr_ton", 0, 255),
    ("dest_addr_npi", 0, 255),
    ("esm_class", 0, 255),
    ("protocol_id", 0, 255),
    ("priority_flag", 0, 255),
    ("registered_delivery", 0, 255),
    ("replace_if_present_flag", 0, 255),
    ("data_coding", 0, 255),
    ("sm_default_msg_id", 0, 255),
    ("split_max_bytes", 1, 0xFFFF),
    ("udh_ref", 0, 0xFFFF),
    ("udh_total_parts", 1, 255),
    ("udh_part_num", 1, 255),
    ("wait_dlrs", 0, 0x7FFFFFFF),
]

# C-Octet String options: the most characters each may carry, excluding the terminating NULL.
# see section 4.1 and 4.4.1 of smpp v3.4 spec document
_C_OCTET_LIMITS: typing.List[typing.Tuple[str, int]] = [
    ("system_id", 15),
    ("password", 8),
    ("system_type", 12),
    ("address_range", 40),
    ("service_type", 5),
    ("source_addr", 20),
    ("destination_addr", 20),
    ("schedule_delivery_time", 16),
    ("validity_period", 16),
]

RawValue = typing.Union[None, str]
RawPairs = typing.List[typing.Tuple[str, RawValue]]


class Configuration(typing.NamedTuple):
    """
    The validated, fully defaulted result of the option pipeline.
    Unset optional SMPP fields carry their protocol NULL value.
    """

    # session
    bind_mode: str
    host: str
    port: int
    system_id: str
    password: str
    system_type: str = ""
    interface_version: int = 0x34
    addr_ton: int = 0
    addr_npi: int = 0
    address_range: str = ""
    # message
    service_type: str = ""
    source_addr_ton: int = 0
    source_addr_npi: int = 0
    source_addr: str = ""
    dest_addr_ton: int = 0
    dest_addr_npi: int = 0
    destination_addr: str = ""
    esm_class: int = 0
    protocol_id: int = 0
    priority_flag: int = 0
    schedule_delivery_time: str = ""
    validity_period: str = ""
    registered_delivery: int = 0
    replace_if_present_flag: int = 0
    # None means `not given`; the SMSC default alphabet(0) unless ucs2 is requested.
    data_coding: typing.Union[None, int] = None
    sm_default_msg_id: int = 0
    short_message: bytes = b""
    tlvs: typing.Mapping[int, bytes] = types.MappingProxyType({})
    # control
    submit_sm: bool = False
    split_max_bytes: typing.Union[None, int] = None
    udh: bool = False
    udh_ref: int = 0
    udh_total_parts: int = 1
    udh_part_num: int = 1
    ucs2: bool = False
    # milliseconds
    wait_dlrs: typing.Union[None, int] = None
    wait: bool = False
    help: bool = False


def dashed(key: str) -> str:
    """
    canonical command line form of an option key; `system_id` -> `--system-id`
    """
    if key.startswith("--"):
        return key
    return "--" + key.replace("_", "-")


def format_keys(keys: typing.Iterable[str]) -> str:
    """
    renders keys the way they are shown in diagnostics, eg: `"--host", "--port"`
    Keys that already start with a dash are rendered as they were typed.
    """
    return ", ".join(
        '"{0}"'.format(key if key.startswith("-") else dashed(key)) for key in keys
    )


def _format_args(args: typing.Iterable[str]) -> str:
    return ", ".join('"{0}"'.format(arg) for arg in args)


def _key_from_option(option: str) -> str:
    return option.lstrip("-").replace("-", "_")


class _OptionParser(argparse.ArgumentParser):
    """
    argparse exits the process on errors. Errors are turned into exceptions instead,
    so that the caller decides the exit code.
    """

    def error(self, message):
        raise UsageError("Invalid options: {0}".format(message))


def make_parser() -> argparse.ArgumentParser:
    """
    this is abstracted into its own method so that it is easier to test it.
    """
    parser = _OptionParser(
        prog="smppsend",
        description="""smppsend binds to an SMSC, optionally submits short messages,
                waits for their delivery receipts and keeps listening for incoming messages.
                example usage:
                smppsend --bind-mode trx --host 127.0.0.1 --port 2775 \
                --system-id smppclient1 --password password \
                --submit-sm --source-addr 255700111222 --destination-addr 255799000888 \
                --short-message "hello" --registered-delivery 1 --wait-dlrs 10000""",
        epilog="""Any other --<name> option is sent as the SMPP optional parameter(TLV) called <name>,
                eg: --message-payload "a long text" or --sar-msg-ref-num 12.
                A tag can also be given as a number: --tlv-0x1403 value.""",
        add_help=False,
        allow_abbrev=False,
        exit_on_error=False,
        argument_default=argparse.SUPPRESS,
    )
    helps = {
        "help": "Show this help and exit.",
        "bind_mode": "One of tx, rx or trx. Default: tx",
        "host": "The IP address(or domain name) of the SMSC.",
        "port": "The port at which the SMSC is listening on.",
        "system_id": "Identifies the ESME system requesting to bind.",
        "password": "The password used by the SMSC to authenticate the ESME.",
        "wait_dlrs": "Wait TIMEOUT milliseconds for delivery receipts of all submitted messages.",
        "wait": "After everything else is done, stay bound and log incoming messages until terminated.",
        "split_max_bytes": "Split short_message into UDH concatenated parts of at most this many octets.",
        "udh": "Prepend a User Data Header built from --udh-ref, --udh-total-parts and --udh-part-num.",
        "ucs2": "Convert short_message and message_payload to UCS2.",
        "submit_sm": "Submit a message after binding.",
    }
    for key, kind in SWITCHES.items():
        if kind == "boolean":
            parser.add_argument(dashed(key), dest=key, action="store_true", help=helps.get(key))
        else:
            parser.add_argument(
                dashed(key), dest=key, metavar=kind.upper(), type=str, help=helps.get(key)
            )
    return parser


def tokenize(args: typing.List[str]) -> typing.Tuple[typing.Dict[str, typing.Any], RawPairs]:
    """
    Parses `args` against the fixed option schema.

    Returns:
        the typed values of options from the schema, and the `(key, raw value)` pairs
        of every other `--option`(TLV candidates) in command line order.

    Raises:
        UsageError: for malformed options, values of the wrong type or positional arguments.
    """
    parser = make_parser()
    try:
        namespace, extras = parser.parse_known_args(args)
    except argparse.ArgumentError as e:
        if e.argument_name is None:
            raise UsageError("Invalid options: {0}".format(e.message)) from e
        raise UsageError(
            "Invalid options: {0}".format(format_keys([e.argument_name.split("/")[0]]))
        ) from e

    parsed: typing.Dict[str, typing.Any] = {}
    invalid: typing.List[str] = []
    for key, value in vars(namespace).items():
        if SWITCHES[key] == "integer":
            try:
                parsed[key] = int(value)
            except ValueError:
                invalid.append(key)
        else:
            parsed[key] = value

    others: RawPairs = []
    redundant: typing.List[str] = []
    position = 0
    while position < len(extras):
        token = extras[position]
        position += 1
        if token.startswith("--") and len(token) > 2:
            name, sep, value = token[2:].partition("=")
            if not sep:
                if position < len(extras) and not extras[position].startswith("--"):
                    value = extras[position]
                    position += 1
                else:
                    value = None
            others.append((_key_from_option(name), value))
        elif token.startswith("-") and token != "-":
            invalid.append(token)
        else:
            redundant.append(token)

    if invalid:
        raise UsageError("Invalid options: {0}".format(format_keys(invalid)))
    if redundant:
        raise UsageError("Redundant command line arguments: {0}".format(_format_args(redundant)))
    return parsed, others


def convert_tlvs(
    opts: typing.Dict[str, typing.Any], others: RawPairs
) -> typing.Tuple[typing.Dict[str, typing.Any], RawPairs]:
    """
    Resolves the non-schema options into TLVs, stored under the `tlvs` key.
    Returns the options and whatever could not be resolved.
    """
    try:
        tlvs, remaining = tlv.resolve(others)
    except tlv.TlvError as e:
        raise UsageError(
            "Error parsing tlv option {0}: {1}".format(format_keys([e.key]), e.message)
        ) from e
    return {**opts, "tlvs": tlvs}, remaining


def find_unknown(remaining: RawPairs) -> typing.List[str]:
    return [key for key, _ in remaining]


def validate_unknown(remaining: RawPairs) -> None:
    unknown = find_unknown(remaining)
    if unknown:
        raise UsageError("Unrecognized options: {0}".format(format_keys(unknown)))


def set_defaults(
    opts: typing.Dict[str, typing.Any], defaults: typing.Union[None, typing.Dict[str, typing.Any]] = None
) -> typing.Dict[str, typing.Any]:
    """
    fills in defaults for keys the user did not supply. Never overrides a supplied value.
    """
    if defaults is None:
        defaults = DEFAULTS
    return {**defaults, **opts}


def show_help(opts: typing.Dict[str, typing.Any]) -> None:
    if opts.get("help"):
        raise HelpRequested(make_parser().format_help())


def find_missing(
    opts: typing.Dict[str, typing.Any], required: typing.Union[None, typing.List[str]] = None
) -> typing.List[str]:
    if required is None:
        required = REQUIRED
    return [key for key in required if opts.get(key) is None]


def validate_missing(opts: typing.Dict[str, typing.Any]) -> None:
    missing = find_missing(opts)
    if missing:
        raise UsageError("Missing options: {0}".format(format_keys(missing)))


def validate_values(opts: typing.Dict[str, typing.Any]) -> None:
    """
    checks value ranges so that later stages never see an out of range field.
    """
    if opts["bind_mode"] not in BIND_MODES:
        raise UsageError(
            "Invalid value {0!r} for option {1}, expected one of: {2}".format(
                opts["bind_mode"], format_keys(["bind_mode"]), ", ".join(BIND_MODES)
            )
        )
    out_of_range = [
        key
        for key, lowest, highest in _RANGES
        if key in opts and not (lowest <= opts[key] <= highest)
    ]
    if out_of_range:
        raise UsageError("Option values out of range: {0}".format(format_keys(out_of_range)))
    not_ascii = [key for key, _ in _C_OCTET_LIMITS if key in opts and not opts[key].isascii()]
    if not_ascii:
        raise UsageError("Option values must be ASCII: {0}".format(format_keys(not_ascii)))
    too_long = [key for key, limit in _C_OCTET_LIMITS if key in opts and len(opts[key]) > limit]
    if too_long:
        raise UsageError("Option values too long: {0}".format(format_keys(too_long)))


def to_configuration(opts: typing.Dict[str, typing.Any]) -> Configuration:
    fields = {key: value for key, value in opts.items() if key in Configuration._fields}
    fields["short_message"] = tlv.to_bytes(opts.get("short_message", ""))
    fields["tlvs"] = dict(opts.get("tlvs", {}))
    return Configuration(**fields)


def parse(args: typing.List[str]) -> Configuration:
    """
    Runs the whole option pipeline over command line `args`.

    Raises:
        HelpRequested: `--help` was given.
        UsageError: any parsing or validation failure.
    """
    opts, others = tokenize(args)
    opts, remaining = convert_tlvs(opts, others)
    validate_unknown(remaining)
    opts = set_defaults(opts)
    show_help(opts)
    validate_missing(opts)
    validate_values(opts)
    return to_configuration(opts)

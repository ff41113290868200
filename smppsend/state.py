import typing


class SmppSessionState:
    """
    Represents the states in which an SMPP session can be in.
    """

    # see section 2.2 of SMPP spec document v3.4

    # An ESME has established a network connection to the SMSC but has not yet issued a Bind request.
    OPEN: str = "OPEN"
    # A connected ESME has requested to bind and has received a response from the SMSC authorising its Bind request.
    BOUND_TX: str = "BOUND_TX"
    BOUND_RX: str = "BOUND_RX"
    BOUND_TRX: str = "BOUND_TRX"
    # An ESME has unbound from the SMSC and has closed the network connection.
    CLOSED: str = "CLOSED"


class SmppCommand:
    """
    Represents the SMPP commands that smppsend sends or understands.
    """

    # see section 4 of SMPP spec document v3.4
    GENERIC_NACK: str = "generic_nack"
    BIND_RECEIVER: str = "bind_receiver"
    BIND_RECEIVER_RESP: str = "bind_receiver_resp"
    BIND_TRANSMITTER: str = "bind_transmitter"
    BIND_TRANSMITTER_RESP: str = "bind_transmitter_resp"
    BIND_TRANSCEIVER: str = "bind_transceiver"
    BIND_TRANSCEIVER_RESP: str = "bind_transceiver_resp"
    SUBMIT_SM: str = "submit_sm"
    SUBMIT_SM_RESP: str = "submit_sm_resp"
    DELIVER_SM: str = "deliver_sm"
    DELIVER_SM_RESP: str = "deliver_sm_resp"
    UNBIND: str = "unbind"
    UNBIND_RESP: str = "unbind_resp"
    ENQUIRE_LINK: str = "enquire_link"
    ENQUIRE_LINK_RESP: str = "enquire_link_resp"
    DATA_SM: str = "data_sm"
    DATA_SM_RESP: str = "data_sm_resp"
    ALERT_NOTIFICATION: str = "alert_notification"


# see section 5.1.2.1 of smpp ver 3.4 spec document
COMMAND_IDS: typing.Dict[str, int] = {
    SmppCommand.GENERIC_NACK: 0x80000000,
    SmppCommand.BIND_RECEIVER: 0x00000001,
    SmppCommand.BIND_RECEIVER_RESP: 0x80000001,
    SmppCommand.BIND_TRANSMITTER: 0x00000002,
    SmppCommand.BIND_TRANSMITTER_RESP: 0x80000002,
    SmppCommand.SUBMIT_SM: 0x00000004,
    SmppCommand.SUBMIT_SM_RESP: 0x80000004,
    SmppCommand.DELIVER_SM: 0x00000005,
    SmppCommand.DELIVER_SM_RESP: 0x80000005,
    SmppCommand.UNBIND: 0x00000006,
    SmppCommand.UNBIND_RESP: 0x80000006,
    SmppCommand.BIND_TRANSCEIVER: 0x00000009,
    SmppCommand.BIND_TRANSCEIVER_RESP: 0x80000009,
    SmppCommand.ENQUIRE_LINK: 0x00000015,
    SmppCommand.ENQUIRE_LINK_RESP: 0x80000015,
    SmppCommand.ALERT_NOTIFICATION: 0x00000102,
    SmppCommand.DATA_SM: 0x00000103,
    SmppCommand.DATA_SM_RESP: 0x80000103,
}

COMMAND_NAMES: typing.Dict[int, str] = {v: k for k, v in COMMAND_IDS.items()}


def search_by_command_id(command_id: int) -> typing.Union[None, str]:
    return COMMAND_NAMES.get(command_id)


class BindMode(typing.NamedTuple):
    """
    A session role together with the pdus used to negotiate it.
    """

    name: str
    command: str
    resp_command: str
    bound_state: str


# `tx` = transmitter, `rx` = receiver, `trx` = transceiver
BIND_MODES: typing.Dict[str, BindMode] = {
    "tx": BindMode(
        name="tx",
        command=SmppCommand.BIND_TRANSMITTER,
        resp_command=SmppCommand.BIND_TRANSMITTER_RESP,
        bound_state=SmppSessionState.BOUND_TX,
    ),
    "rx": BindMode(
        name="rx",
        command=SmppCommand.BIND_RECEIVER,
        resp_command=SmppCommand.BIND_RECEIVER_RESP,
        bound_state=SmppSessionState.BOUND_RX,
    ),
    "trx": BindMode(
        name="trx",
        command=SmppCommand.BIND_TRANSCEIVER,
        resp_command=SmppCommand.BIND_TRANSCEIVER_RESP,
        bound_state=SmppSessionState.BOUND_TRX,
    ),
}


class CommandStatus(typing.NamedTuple):
    """
    An SMPP command status
    """

    code: str
    value: int
    description: str


# see section 5.1.3 of smpp ver 3.4 spec document
_COMMAND_STATUSES: typing.List[CommandStatus] = [
    CommandStatus("ESME_ROK", 0x00000000, "Success"),
    CommandStatus("ESME_RINVMSGLEN", 0x00000001, "Message Length is invalid"),
    CommandStatus("ESME_RINVCMDLEN", 0x00000002, "Command Length is invalid"),
    CommandStatus("ESME_RINVCMDID", 0x00000003, "Invalid Command ID"),
    CommandStatus("ESME_RINVBNDSTS", 0x00000004, "Incorrect BIND Status for given command"),
    CommandStatus("ESME_RALYBND", 0x00000005, "ESME Already in Bound State"),
    CommandStatus("ESME_RINVPRTFLG", 0x00000006, "Invalid Priority Flag"),
    CommandStatus("ESME_RINVREGDLVFLG", 0x00000007, "Invalid Registered Delivery Flag"),
    CommandStatus("ESME_RSYSERR", 0x00000008, "System Error"),
    CommandStatus("ESME_RINVSRCADR", 0x0000000A, "Invalid Source Address"),
    CommandStatus("ESME_RINVDSTADR", 0x0000000B, "Invalid Dest Addr"),
    CommandStatus("ESME_RINVMSGID", 0x0000000C, "Message ID is invalid"),
    CommandStatus("ESME_RBINDFAIL", 0x0000000D, "Bind Failed"),
    CommandStatus("ESME_RINVPASWD", 0x0000000E, "Invalid Password"),
    CommandStatus("ESME_RINVSYSID", 0x0000000F, "Invalid System ID"),
    CommandStatus("ESME_RCANCELFAIL", 0x00000011, "Cancel SM Failed"),
    CommandStatus("ESME_RREPLACEFAIL", 0x00000013, "Replace SM Failed"),
    CommandStatus("ESME_RMSGQFUL", 0x00000014, "Message Queue Full"),
    CommandStatus("ESME_RINVSERTYP", 0x00000015, "Invalid Service Type"),
    CommandStatus("ESME_RINVNUMDESTS", 0x00000033, "Invalid number of destinations"),
    CommandStatus("ESME_RINVDLNAME", 0x00000034, "Invalid Distribution List name"),
    CommandStatus("ESME_RINVDESTFLAG", 0x00000040, "Destination flag is invalid (submit_multi)"),
    CommandStatus("ESME_RINVSUBREP", 0x00000042, "Invalid submit with replace request"),
    CommandStatus("ESME_RINVESMCLASS", 0x00000043, "Invalid esm_class field data"),
    CommandStatus("ESME_RCNTSUBDL", 0x00000044, "Cannot Submit to Distribution List"),
    CommandStatus("ESME_RSUBMITFAIL", 0x00000045, "submit_sm or submit_multi failed"),
    CommandStatus("ESME_RINVSRCTON", 0x00000048, "Invalid Source address TON"),
    CommandStatus("ESME_RINVSRCNPI", 0x00000049, "Invalid Source address NPI"),
    CommandStatus("ESME_RINVDSTTON", 0x00000050, "Invalid Destination address TON"),
    CommandStatus("ESME_RINVDSTNPI", 0x00000051, "Invalid Destination address NPI"),
    CommandStatus("ESME_RINVSYSTYP", 0x00000053, "Invalid system_type field"),
    CommandStatus("ESME_RINVREPFLAG", 0x00000054, "Invalid replace_if_present flag"),
    CommandStatus("ESME_RINVNUMMSGS", 0x00000055, "Invalid number of messages"),
    CommandStatus("ESME_RTHROTTLED", 0x00000058, "Throttling error (ESME has exceeded allowed message limits)"),
    CommandStatus("ESME_RINVSCHED", 0x00000061, "Invalid Scheduled Delivery Time"),
    CommandStatus("ESME_RINVEXPIRY", 0x00000062, "Invalid message validity period (Expiry time)"),
    CommandStatus("ESME_RINVDFTMSGID", 0x00000063, "Predefined Message Invalid or Not Found"),
    CommandStatus("ESME_RX_T_APPN", 0x00000064, "ESME Receiver Temporary App Error Code"),
    CommandStatus("ESME_RX_P_APPN", 0x00000065, "ESME Receiver Permanent App Error Code"),
    CommandStatus("ESME_RX_R_APPN", 0x00000066, "ESME Receiver Reject Message Error Code"),
    CommandStatus("ESME_RQUERYFAIL", 0x00000067, "query_sm request failed"),
    CommandStatus("ESME_RINVOPTPARSTREAM", 0x000000C0, "Error in the optional part of the PDU Body."),
    CommandStatus("ESME_ROPTPARNOTALLWD", 0x000000C1, "Optional Parameter not allowed"),
    CommandStatus("ESME_RINVPARLEN", 0x000000C2, "Invalid Parameter Length."),
    CommandStatus("ESME_RMISSINGOPTPARAM", 0x000000C3, "Expected Optional Parameter missing"),
    CommandStatus("ESME_RINVOPTPARAMVAL", 0x000000C4, "Invalid Optional Parameter Value"),
    CommandStatus("ESME_RDELIVERYFAILURE", 0x000000FE, "Delivery Failure (used for data_sm_resp)"),
    CommandStatus("ESME_RUNKNOWNERR", 0x000000FF, "Unknown Error"),
]

_COMMAND_STATUS_BY_VALUE: typing.Dict[int, CommandStatus] = {s.value: s for s in _COMMAND_STATUSES}

ESME_ROK: CommandStatus = _COMMAND_STATUS_BY_VALUE[0x00000000]


def search_by_command_status(value: int) -> CommandStatus:
    """
    Returns the CommandStatus for `value`.
    Values that the v3.4 spec reserves (or leaves to vendors) map to a `Reserved` status.
    """
    status = _COMMAND_STATUS_BY_VALUE.get(value)
    if status is not None:
        return status
    if 0x00000400 <= value <= 0x000004FF:
        return CommandStatus("Reserved", value, "Reserved for SMSC vendor specific errors")
    return CommandStatus("Reserved", value, "Reserved")


class DataCoding(typing.NamedTuple):
    """
    An SMPP data encoding.
    """

    code: str
    value: int
    description: str


class SmppDataCoding:
    """
    The data_coding values smppsend has to reason about.
    see section 5.2.19 of smpp ver 3.4 spec document.
    """

    gsm0338: DataCoding = DataCoding(code="gsm0338", value=0b00000000, description="SMSC Default Alphabet")
    ascii: DataCoding = DataCoding(
        code="ascii", value=0b00000001, description="IA5(CCITT T.50) / ASCII(ANSI X3.4)"
    )
    octet_unspecified_I: DataCoding = DataCoding(
        code="octet_unspecified_I", value=0b00000010, description="Octet unspecified(8 - bit binary)"
    )
    latin_1: DataCoding = DataCoding(code="latin_1", value=0b00000011, description="Latin 1 (ISO - 8859 - 1)")
    ucs2: DataCoding = DataCoding(code="ucs2", value=0b00001000, description="UCS2(ISO / IEC - 10646)")


# esm_class bit that marks a short_message as starting with a User Data Header.
# see section 5.2.12 of smpp ver 3.4 spec document
ESM_CLASS_UDHI: int = 0b01000000

# esm_class message type bits; xx0001xx is an SMSC Delivery Receipt
ESM_CLASS_MESSAGE_TYPE_MASK: int = 0b00111100
ESM_CLASS_DELIVERY_RECEIPT: int = 0b00000100

# do not to pollute the global namespace.
# see: https://python-packaging.readthedocs.io/en/latest/testing.html

import struct
from unittest import TestCase

from smppsend import pdu, tlv
from smppsend.state import SmppCommand

from .utils import deliver_sm, receipt_text, submit_sm


class TestEncode(TestCase):
    """
    run tests as:
        python -m unittest discover -v -s .
    run one testcase as:
        python -m unittest -v tests.test_pdu.TestEncode.test_bind
    """

    def test_bind(self):
        request = pdu.BindRequest(
            smpp_command=SmppCommand.BIND_TRANSCEIVER, system_id="smppclient1", password="password"
        )
        data = pdu.encode_bind(request, 1)
        body = b"smppclient1\x00password\x00\x00\x34\x00\x00\x00"
        self.assertEqual(data, struct.pack(">IIII", 16 + len(body), 0x00000009, 0, 1) + body)

    def test_submit_sm(self):
        data = pdu.encode_submit_sm(submit_sm(), 7)
        header = pdu.decode_header(data)
        self.assertEqual(header.smpp_command, SmppCommand.SUBMIT_SM)
        self.assertEqual(header.command_length, len(data))
        self.assertEqual(header.sequence_number, 7)
        self.assertTrue(data.endswith(b"\x01\x00\x00\x00\x05Hello"))

    def test_submit_sm_with_tlvs(self):
        data = pdu.encode_submit_sm(
            submit_sm(short_message=b"", tlvs={tlv.MESSAGE_PAYLOAD: b"payload"}), 1
        )
        self.assertTrue(data.endswith(b"\x00\x04\x24\x00\x07payload"))

    def test_submit_sm_too_long(self):
        with self.assertRaises(ValueError):
            pdu.encode_submit_sm(submit_sm(short_message=b"x" * 255), 1)

    def test_frame_with_status(self):
        data = pdu.frame(SmppCommand.GENERIC_NACK, 3, command_status=0x03)
        self.assertEqual(data, struct.pack(">IIII", 16, 0x80000000, 3, 3))

    def test_msg_to_log_redacts_password(self):
        request = pdu.BindRequest(
            smpp_command=SmppCommand.BIND_TRANSMITTER, system_id="id", password="s3cret"
        )
        log_msg = pdu.msg_to_log(pdu.encode_bind(request, 1), "s3cret")
        self.assertNotIn("s3cret", log_msg)
        self.assertIn("{REDACTED}", log_msg)


class TestDecode(TestCase):
    def test_header_too_short(self):
        with self.assertRaises(pdu.PduDecodeError):
            pdu.decode_header(b"\x00\x00")

    def test_unknown_command(self):
        header = pdu.decode_header(struct.pack(">IIII", 16, 0x00000999, 0, 1))
        self.assertIsNone(header.smpp_command)

    def test_deliver_sm(self):
        message = deliver_sm(b"hello there", tlvs={tlv.MESSAGE_STATE: b"\x02"})
        data = pdu.encode_deliver_sm(message, 5)
        decoded = pdu.decode_deliver_sm(data[pdu.HEADER_LENGTH :])
        self.assertEqual(decoded, message)
        self.assertFalse(decoded.is_delivery_receipt)
        self.assertIsNone(decoded.receipted_message_id)

    def test_deliver_sm_truncated(self):
        data = pdu.encode_deliver_sm(deliver_sm(b"hello"), 5)
        with self.assertRaises(pdu.PduDecodeError):
            pdu.decode_deliver_sm(data[pdu.HEADER_LENGTH : -3])

    def test_receipt_id_from_text(self):
        message = deliver_sm(receipt_text("abc-123"), esm_class=0x04)
        self.assertTrue(message.is_delivery_receipt)
        self.assertEqual(message.receipted_message_id, "abc-123")

    def test_receipt_id_tlv_is_preferred(self):
        message = deliver_sm(
            receipt_text("from-text"),
            esm_class=0x04,
            tlvs={tlv.RECEIPTED_MESSAGE_ID: b"from-tlv\x00"},
        )
        self.assertEqual(message.receipted_message_id, "from-tlv")

    def test_text_of_mobile_originated_message_is_not_a_receipt(self):
        message = deliver_sm(b"id:not-a-receipt", esm_class=0x00)
        self.assertIsNone(message.receipted_message_id)

    def test_message_id(self):
        self.assertEqual(pdu.decode_message_id(b"9f86d081\x00"), "9f86d081")
        self.assertEqual(pdu.decode_message_id(b""), "")

# do not to pollute the global namespace.
# see: https://python-packaging.readthedocs.io/en/latest/testing.html

import asyncio
import logging
from unittest import TestCase, mock

from smppsend import esme, log, orchestrator
from smppsend.errors import BuildError, ConnectivityError, DlrWaitError, EncodingError, SubmissionError
from smppsend.options import Configuration
from smppsend.state import SmppCommand

from .utils import FakeSmsc


class TestOrchestrator(TestCase):
    """
    run tests as:
        python -m unittest discover -v -s .
    run one testcase as:
        python -m unittest -v tests.test_orchestrator.TestOrchestrator.test_submit_and_receipt
    """

    def setUp(self):
        self.loop = asyncio.new_event_loop()
        self.logger = log.SimpleLogger("TestOrchestrator", handler=logging.NullHandler())
        self.smsc = FakeSmsc()

    def tearDown(self):
        self._run(self.smsc.stop())
        self.loop.close()

    def _run(self, coro):
        return self.loop.run_until_complete(coro)

    def _config(self, port: int, **kwargs) -> Configuration:
        fields = dict(
            bind_mode="trx",
            host="127.0.0.1",
            port=port,
            system_id="smppclient1",
            password="password",
            source_addr="255700111222",
            destination_addr="255799000888",
            registered_delivery=1,
            short_message=b"Hello",
            submit_sm=True,
        )
        fields.update(kwargs)
        return Configuration(**fields)

    def _orchestrate(self, **kwargs):
        """
        starts the fake SMSC and runs the whole pipeline against it.
        """

        async def scenario():
            port = await self.smsc.start()
            config = self._config(port, **kwargs)
            session = esme.Esme.from_config(config, logger=self.logger, socket_timeout=1.0)
            return await orchestrator.run(config, esme=session, logger=self.logger)

        return self._run(scenario())

    def test_submit_and_receipt(self):
        message_ids = self._orchestrate(wait_dlrs=2000)
        self.assertEqual(message_ids, ["msg-1"])
        self.assertEqual(
            self.smsc.commands(),
            [
                SmppCommand.BIND_TRANSCEIVER,
                SmppCommand.SUBMIT_SM,
                SmppCommand.DELIVER_SM_RESP,
                SmppCommand.UNBIND,
            ],
        )
        submitted = self.smsc.submitted()[0]
        self.assertEqual(submitted.short_message, b"Hello")
        self.assertEqual(submitted.registered_delivery, 1)

    def test_bind_only(self):
        self.assertEqual(self._orchestrate(submit_sm=False), [])
        self.assertEqual(self.smsc.commands(), [SmppCommand.BIND_TRANSCEIVER, SmppCommand.UNBIND])

    def test_split_message_is_submitted_in_order(self):
        payload = bytes(range(65, 65 + 20))
        message_ids = self._orchestrate(short_message=payload, split_max_bytes=10)
        self.assertEqual(message_ids, ["msg-{0}".format(i) for i in range(1, 6)])
        bodies = [s.short_message for s in self.smsc.submitted()]
        self.assertEqual([b[5] for b in bodies], [1, 2, 3, 4, 5])
        self.assertEqual(b"".join(b[6:] for b in bodies), payload)

    def test_missing_receipts(self):
        self.smsc.receipts_for = {1, 3}
        with self.assertRaises(DlrWaitError) as raised:
            self._orchestrate(short_message=b"x" * 20, split_max_bytes=10, wait_dlrs=300)

        error = raised.exception
        self.assertEqual(error.exit_code, 4)
        self.assertEqual(error.missing, ["msg-2", "msg-4", "msg-5"])
        self.assertEqual(
            error.message,
            "Waiting dlrs failed: timeout after 300 ms; no receipt for message ids: msg-2, msg-4, msg-5",
        )
        # still unbound on the way out
        self.assertEqual(self.smsc.commands()[-1], SmppCommand.UNBIND)

    def test_connection_lost_while_waiting_receipts(self):
        self.smsc.receipts_for = set()

        async def drop_later():
            await asyncio.sleep(0.1)
            await self.smsc.drop()

        self.loop.create_task(drop_later())
        with self.assertRaises(DlrWaitError) as raised:
            self._orchestrate(wait_dlrs=5000)
        self.assertEqual(
            raised.exception.message,
            "Waiting dlrs failed: connection closed by SMSC; no receipt for message ids: msg-1",
        )

    def test_submit_rejected(self):
        self.smsc.submit_statuses = {2: 0x00000045}
        with self.assertRaises(SubmissionError) as raised:
            self._orchestrate(short_message=b"x" * 12, split_max_bytes=10, wait_dlrs=1000)

        error = raised.exception
        self.assertEqual(error.exit_code, 6)
        self.assertEqual(error.position, 2)
        self.assertEqual(error.submitted, ["msg-1"])
        self.assertIn("Message submit failed, part 2 of 3", error.message)
        self.assertIn("ESME_RSUBMITFAIL", error.message)
        # the third part is never sent
        self.assertEqual(len(self.smsc.submitted()), 2)
        self.assertEqual(self.smsc.commands()[-1], SmppCommand.UNBIND)

    def test_bind_rejected(self):
        self.smsc.bind_status = 0x0000000E
        with self.assertRaises(ConnectivityError) as raised:
            self._orchestrate()
        self.assertEqual(raised.exception.exit_code, 3)
        self.assertTrue(raised.exception.message.startswith("Connecting SMSC failed: "))
        self.assertNotIn(SmppCommand.SUBMIT_SM, self.smsc.commands())

    def test_wait_ends_when_smsc_unbinds(self):
        async def unbind_later():
            await asyncio.sleep(0.1)
            await self.smsc.send_unbind()

        self.loop.create_task(unbind_later())
        self.assertEqual(self._orchestrate(wait=True), ["msg-1"])

    def test_wait_fails_when_connection_is_lost(self):
        async def drop_later():
            await asyncio.sleep(0.1)
            await self.smsc.drop()

        self.loop.create_task(drop_later())
        with self.assertRaises(ConnectivityError) as raised:
            self._orchestrate(submit_sm=False, wait=True)
        self.assertEqual(raised.exception.message, "Connection to SMSC lost: connection closed by SMSC")


class TestPrepare(TestCase):
    """
    failures that happen before the network is touched.
    """

    def setUp(self):
        self.loop = asyncio.new_event_loop()
        self.logger = log.SimpleLogger("TestPrepare", handler=logging.NullHandler())

    def tearDown(self):
        self.loop.close()

    def _config(self, **kwargs) -> Configuration:
        fields = dict(
            bind_mode="tx", host="127.0.0.1", port=1, system_id="id", password="pw", submit_sm=True
        )
        fields.update(kwargs)
        return Configuration(**fields)

    def _run_without_network(self, config: Configuration):
        session = esme.Esme.from_config(config, logger=self.logger)
        with mock.patch.object(session, "connect") as mock_connect:
            try:
                self.loop.run_until_complete(
                    orchestrator.run(config, esme=session, logger=self.logger)
                )
            finally:
                self.assertFalse(mock_connect.called)

    def test_build_error(self):
        config = self._config(udh=True, split_max_bytes=140)
        with self.assertRaises(BuildError):
            self._run_without_network(config)

    def test_split_conflict_without_submit(self):
        config = self._config(submit_sm=False, udh=True, split_max_bytes=140)
        with self.assertRaises(BuildError) as raised:
            self._run_without_network(config)
        self.assertEqual(raised.exception.exit_code, 4)

    def test_split_conflict_wins_over_encoding_error(self):
        config = self._config(udh=True, split_max_bytes=140, ucs2=True, short_message=b"\xff")
        with self.assertRaises(BuildError):
            orchestrator.prepare(config)

    def test_encoding_error(self):
        config = self._config(ucs2=True, short_message=b"\xff")
        with self.assertRaises(EncodingError):
            self._run_without_network(config)

    def test_prepare(self):
        config, requests = orchestrator.prepare(self._config(ucs2=True, short_message=b"hi"))
        self.assertEqual(config.data_coding, 8)
        self.assertEqual(len(requests), 1)
        self.assertEqual(requests[0].short_message, b"\x00h\x00i")

    def test_prepare_without_submit(self):
        _, requests = orchestrator.prepare(self._config(submit_sm=False, short_message=b"x" * 300))
        self.assertEqual(requests, [])

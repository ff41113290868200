import asyncio
import typing
import logging

from .log import SimpleLogger


class DlrCorrelater:
    """
    Keeps track of which submitted messages are still waiting for a delivery receipt.

    Messages are keyed by the message_id that the SMSC returned in submit_sm_resp.
    A receipt can be reported before its message_id is expected; since submissions are
    sequential, the receipt for an early message may arrive while later ones are still being submitted.

    It is only ever touched from the event loop thread that runs the session, so it needs no lock.
    """

    def __init__(self, logger: typing.Union[None, logging.Logger] = None) -> None:
        # a dict keeps the submission order of message_ids
        self._pending: typing.Dict[str, None] = {}
        self._received: typing.Set[str] = set()
        self._error: typing.Union[None, BaseException] = None
        self._done = asyncio.Event()
        self._done.set()
        self.logger = logger if logger is not None else SimpleLogger("smppsend.correlater")

    def expect(self, message_ids: typing.Iterable[str]) -> None:
        """
        registers message_ids whose receipts should be waited for.
        """
        for message_id in message_ids:
            if message_id in self._received:
                continue
            self._pending[message_id] = None
        if self._pending and self._error is None:
            self._done.clear()
        self.logger.log(
            logging.DEBUG,
            {"event": "smppsend.DlrCorrelater.expect", "stage": "end", "pending": self.pending()},
        )

    def receipt(self, message_id: str) -> bool:
        """
        records a delivery receipt. Returns True if `message_id` was being waited for.
        """
        self._received.add(message_id)
        if message_id not in self._pending:
            return False
        del self._pending[message_id]
        if not self._pending:
            self._done.set()
        return True

    def pending(self) -> typing.List[str]:
        """
        the message_ids that have no receipt yet, in the order they were expected.
        """
        return list(self._pending)

    def abort(self, error: BaseException) -> None:
        """
        wakes up any waiter with `error`; used when the session ends before all receipts came in.
        """
        if self._error is None:
            self._error = error
        self._done.set()

    async def wait(self, timeout: float) -> typing.List[str]:
        """
        waits for receipts of every expected message_id.

        Parameters:
            timeout: seconds to wait

        Returns:
            the message_ids that are still missing; an empty list means all receipts arrived.

        Raises:
            the error given to :func:`abort <DlrCorrelater.abort>`, if the session ended while there were missing receipts.
        """
        try:
            await asyncio.wait_for(self._done.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return self.pending()
        if self._pending and self._error is not None:
            raise self._error
        return self.pending()

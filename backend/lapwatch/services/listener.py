"""
UDP telemetry listener.

Receives datagrams from the simulator and runs each one through the pipeline:

    decode -> session observe -> lap detect -> evaluate / persist

Everything up to lap detection happens synchronously in the datagram
callback, so detector state is updated in packet order before any store
round trip starts. Evaluation runs as a separate task per detected lap;
overlapping evaluations may finish out of order.
"""

import asyncio
import logging
from typing import Callable, Optional

from lapwatch.config import DEFAULT_STORE_TIMEOUT_S, DEFAULT_UDP_HOST, DEFAULT_UDP_PORT
from lapwatch.errors import ListenerFault
from lapwatch.models.lap import DEFAULT_SIM
from lapwatch.models.telemetry import LapCompleted
from lapwatch.services.decoder import DecodeFailure, JsonSnapshotDecoder, SnapshotDecoder
from lapwatch.services.evaluator import BestTimeEvaluator, Decision
from lapwatch.services.lap_detector import LapDetector
from lapwatch.services.repository import LapStore
from lapwatch.services.session_tracker import SessionTracker


logger = logging.getLogger(__name__)


DecisionCallback = Callable[[Decision], None]


class _TelemetryProtocol(asyncio.DatagramProtocol):
    """Forwards transport events to the owning listener."""

    def __init__(self, listener: "TelemetryListener"):
        self._listener = listener

    def datagram_received(self, data: bytes, addr) -> None:
        self._listener.handle_datagram(data)

    def error_received(self, exc: Exception) -> None:
        self._listener._record_fault(exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc is not None:
            self._listener._record_fault(exc)


class TelemetryListener:
    """
    Long-lived UDP listener owning one decoder, tracker, detector and evaluator.

    Nothing here is shared between listener instances, so several listeners
    (different ports, test harnesses) can run in the same process.
    """

    def __init__(
        self,
        store: LapStore,
        host: str = DEFAULT_UDP_HOST,
        port: int = DEFAULT_UDP_PORT,
        decoder: Optional[SnapshotDecoder] = None,
        sim: str = DEFAULT_SIM,
        store_timeout_s: float = DEFAULT_STORE_TIMEOUT_S,
        reset_on_session_change: bool = False,
        on_decision: Optional[DecisionCallback] = None,
    ):
        self.host = host
        self.port = port
        self.decoder = decoder or JsonSnapshotDecoder()
        self.tracker = SessionTracker()
        self.detector = LapDetector(reset_on_session_change=reset_on_session_change)
        self.evaluator = BestTimeEvaluator(store, sim=sim, timeout_s=store_timeout_s)
        self.on_decision = on_decision

        self.fault: Optional[ListenerFault] = None
        self.packets_received = 0
        self.packets_skipped = 0

        self._transport: Optional[asyncio.DatagramTransport] = None
        self._pending: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._transport is not None and not self._transport.is_closing()

    @property
    def local_address(self) -> Optional[tuple]:
        """Address the socket is bound to (useful when port 0 was requested)."""
        if self._transport is None:
            return None
        return self._transport.get_extra_info("sockname")

    async def start(self) -> None:
        """
        Bind the UDP socket and start receiving.

        Raises:
            ListenerFault: If the socket cannot be bound
        """
        if self.is_running:
            return

        loop = asyncio.get_running_loop()
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _TelemetryProtocol(self),
                local_addr=(self.host, self.port),
            )
        except OSError as e:
            raise ListenerFault(f"Cannot bind UDP {self.host}:{self.port}: {e}") from e

        self._transport = transport
        self.fault = None
        address = self.local_address
        logger.info(f"Listening for UDP packets on {address[0]}:{address[1]}")
        logger.info("Waiting for the simulator to start broadcasting...")

    async def stop(self, drain_timeout_s: float = 2.0) -> None:
        """
        Close the socket, then give in-flight evaluations a short grace period.

        Evaluations still running after drain_timeout_s are cancelled.
        """
        if self._transport is not None:
            self._transport.close()
            self._transport = None
            logger.info("Telemetry listener stopped")

        if not self._pending:
            return

        pending = list(self._pending)
        done, not_done = await asyncio.wait(pending, timeout=drain_timeout_s)
        for task in not_done:
            task.cancel()
        if not_done:
            logger.warning(f"Cancelled {len(not_done)} lap evaluation(s) still in flight")
            await asyncio.gather(*not_done, return_exceptions=True)

    def handle_datagram(self, data: bytes) -> Optional[asyncio.Task]:
        """
        Process one datagram.

        Returns the evaluation task when a lap was completed, None otherwise.
        Must be called from within a running event loop.
        """
        self.packets_received += 1
        try:
            result = self.decoder.decode(data)
            if isinstance(result, DecodeFailure):
                self.packets_skipped += 1
                logger.debug(f"Skipping packet ({result.reason.value}): {result.detail}")
                return None

            self.tracker.observe(result)
            lap = self.detector.on_snapshot(result)
            if lap is None:
                return None

            task = asyncio.get_running_loop().create_task(self._evaluate(lap))
        except Exception as e:
            logger.error(f"Error processing telemetry packet: {e}")
            return None

        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _evaluate(self, lap: LapCompleted) -> Decision:
        decision = await self.evaluator.evaluate(lap)
        if self.on_decision is not None:
            try:
                self.on_decision(decision)
            except Exception as e:
                logger.error(f"Decision callback failed: {e}")
        return decision

    def _record_fault(self, exc: Exception) -> None:
        self.fault = ListenerFault(f"UDP listener error: {exc}")
        logger.error(f"UDP listener error: {exc}")

"""Per-customer conversation workflow.

Every customer id behaves as a serialized unit: all reads-modify-writes of its
state happen under a lock owned by that id, so at most one extraction call is
in flight per customer. Messages arriving while a call is in flight are
buffered and drained into the next batch.

State machine::

    COLLECT        --(first message)-------> PROCESSING
    PROCESSING     --(ALL_INFO_COLLECTED)--> CLOSED
    PROCESSING     --(any other reply)-----> WAITING_REPLY
    PROCESSING     --(extraction failure)--> ERROR
    WAITING_REPLY  --(new message)---------> PROCESSING
    WAITING_REPLY  --(timer fires)---------> FOLLOW_UP
    FOLLOW_UP      --(new message)---------> PROCESSING
"""

from __future__ import annotations

import asyncio
import weakref
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict

from prospect_workflow.agent.signals import ExtractionSignal, parse_signal, render_transcript
from prospect_workflow.agent.tools import ExtractionTools
from prospect_workflow.adapters.memory_state_store import InMemoryConversationStateStore
from prospect_workflow.errors import (
    ExtractionFailure,
    InvalidTransactionType,
    StaleTimerFire,
    ValidationError,
)
from prospect_workflow.interfaces.protocols import (
    ClientRecordStore,
    ConversationStateStore,
    ExtractionAgent,
    OutboundMessenger,
)
from prospect_workflow.models import (
    ClientRecord,
    ConversationState,
    ConversationStatus,
    FenceToken,
    Message,
)
from prospect_workflow.settings import WorkflowSettings
from prospect_workflow.timer import FollowUpTimer

logger = structlog.get_logger(__name__)


class Accepted(BaseModel):
    """Acknowledgement returned once an inbound message is stored."""

    model_config = ConfigDict(frozen=True)

    customer_id: str
    status: ConversationStatus
    queued: bool = True
    detail: str = "Processing started"


class ConversationWorkflow:
    def __init__(
        self,
        agent: ExtractionAgent,
        messenger: OutboundMessenger,
        record_store: ClientRecordStore,
        state_store: Optional[ConversationStateStore] = None,
        timer: Optional[FollowUpTimer] = None,
        *,
        follow_up_interval: timedelta = timedelta(days=1),
        max_follow_ups: int = 1,
        retry_from_error: bool = False,
        extraction_timeout: Optional[float] = 60.0,
        follow_up_subject: str = "Following up on your property inquiry",
        follow_up_message: str = (
            "We are still waiting for a few details to complete your property inquiry."
        ),
    ) -> None:
        self.agent = agent
        self.messenger = messenger
        self.record_store = record_store
        self.state_store: ConversationStateStore = (
            state_store if state_store is not None else InMemoryConversationStateStore()
        )
        self.timer = timer if timer is not None else FollowUpTimer()
        self.timer.bind(self.on_timer_fire)

        self.follow_up_interval = follow_up_interval
        self.max_follow_ups = max_follow_ups
        self.retry_from_error = retry_from_error
        self.extraction_timeout = extraction_timeout
        self.follow_up_subject = follow_up_subject
        self.follow_up_message = follow_up_message

        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._tasks: set[asyncio.Task[None]] = set()

    @classmethod
    def from_settings(
        cls,
        settings: WorkflowSettings,
        agent: ExtractionAgent,
        messenger: OutboundMessenger,
        record_store: ClientRecordStore,
        state_store: Optional[ConversationStateStore] = None,
    ) -> "ConversationWorkflow":
        return cls(
            agent,
            messenger,
            record_store,
            state_store,
            follow_up_interval=settings.follow_up_interval,
            max_follow_ups=settings.max_follow_ups,
            retry_from_error=settings.retry_from_error,
            extraction_timeout=settings.extraction_timeout,
            follow_up_subject=settings.follow_up_subject,
            follow_up_message=settings.follow_up_message,
        )

    # Public operations

    async def submit(
        self,
        customer_id: str,
        subject: str,
        content: str,
        *,
        sender: Optional[str] = None,
    ) -> Accepted:
        """Store an inbound message and start processing it in the background."""

        _validate_inbound(customer_id, subject, content)
        message = Message.from_user(sender or customer_id, subject, content)
        log = logger.bind(customer_id=customer_id)

        async with self._lock_for(customer_id):
            state = await self.state_store.load(customer_id)
            if state is None:
                state = ConversationState.new(customer_id)

            if not self._accepts_messages(state):
                log_drop = log.warning if state.status is ConversationStatus.ERROR else log.info
                log_drop("Dropping message for finished conversation", status=state.status.value)
                return Accepted(
                    customer_id=customer_id,
                    status=state.status,
                    queued=False,
                    detail=f"Conversation is {state.status.value}",
                )

            self.timer.cancel(customer_id)
            state = state.add_unread_message(message)

            if state.is_processing:
                await self.state_store.save(state)
                log.info("Buffered message while processing", buffered=len(state.unread_messages))
                return Accepted(
                    customer_id=customer_id,
                    status=state.status,
                    detail="Message buffered for the next batch",
                )

            previous = state.status
            state = state.start_processing()
            await self.state_store.save(state)
            log.info(
                "Dispatching batch",
                previous_status=previous.value,
                batch_size=len(state.in_flight),
            )
            self._spawn(customer_id, state.in_flight)

        return Accepted(customer_id=customer_id, status=state.status)

    async def status(self, customer_id: str) -> ConversationStatus:
        state = await self.state_store.load(customer_id)
        return state.status if state is not None else ConversationStatus.COLLECT

    async def state(self, customer_id: str) -> Optional[ConversationState]:
        return await self.state_store.load(customer_id)

    async def on_timer_fire(self, customer_id: str, token: FenceToken) -> None:
        """Handle a follow-up timer, ignoring fires the conversation has moved past."""

        async with self._lock_for(customer_id):
            state = await self.state_store.load(customer_id)
            if state is None or not state.matches(token):
                stale = StaleTimerFire(
                    customer_id, token, state.fence_token() if state else None
                )
                logger.debug("Ignoring stale follow-up timer", customer_id=customer_id, **stale.payload)
                return

            state = state.follow_up_required()
            await self.state_store.save(state)
            if state.follow_ups_sent < self.max_follow_ups:
                self.timer.arm(customer_id, self.follow_up_interval, state.fence_token())

        logger.info(
            "Follow-up required",
            customer_id=customer_id,
            follow_ups_sent=state.follow_ups_sent,
        )
        try:
            await self.messenger.send(
                state.contact_address, self.follow_up_subject, self.follow_up_message
            )
        except Exception:
            logger.exception("Failed to send follow-up", customer_id=customer_id)

    async def recover(self) -> int:
        """Resume conversations persisted by a previous process.

        Interrupted batches are dispatched again and follow-up timers are
        re-armed with whatever remains of their interval. Returns the number of
        conversations touched.
        """

        touched = 0

        for stored in await self.state_store.list_by_status(ConversationStatus.PROCESSING):
            async with self._lock_for(stored.customer_id):
                state = await self.state_store.load(stored.customer_id)
                if state is None or not state.is_processing:
                    continue
                state = state.resume_processing()
                await self.state_store.save(state)
                logger.info(
                    "Resuming interrupted batch",
                    customer_id=state.customer_id,
                    batch_size=len(state.in_flight),
                )
                self._spawn(state.customer_id, state.in_flight)
                touched += 1

        waiting = await self.state_store.list_by_status(
            ConversationStatus.WAITING_REPLY, ConversationStatus.FOLLOW_UP
        )
        now = datetime.now(timezone.utc)
        for state in waiting:
            if state.status is ConversationStatus.FOLLOW_UP and (
                state.follow_ups_sent >= self.max_follow_ups
            ):
                continue
            if state.status is ConversationStatus.WAITING_REPLY and self.max_follow_ups <= 0:
                continue
            remaining = self.follow_up_interval - (now - _aware(state.last_updated))
            self.timer.arm(
                state.customer_id, max(remaining, timedelta(0)), state.fence_token()
            )
            touched += 1

        return touched

    async def wait_idle(self) -> None:
        """Wait until no processing cycle is running."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        await self.timer.cancel_all()
        await self.wait_idle()
        # cycles finishing during the wait may have armed new timers
        await self.timer.cancel_all()

    # Processing cycle

    def _spawn(self, customer_id: str, batch: tuple[Message, ...]) -> None:
        task = asyncio.create_task(
            self._run_cycle(customer_id, batch), name=f"extraction-{customer_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_cycle(self, customer_id: str, batch: tuple[Message, ...]) -> None:
        while batch:
            tools = ExtractionTools(
                self.messenger,
                self.record_store,
                on_record_saved=partial(self._record_saved, customer_id),
            )
            try:
                reply = await self._call_agent(customer_id, render_transcript(batch), tools)
            except InvalidTransactionType as exc:
                # a rejected record leaves the conversation open
                logger.warning(
                    "Client record rejected, waiting for reply",
                    customer_id=customer_id,
                    transaction_type=exc.value,
                )
                reply = ExtractionSignal.WAIT_REPLY.value
            except Exception as exc:
                failure = ExtractionFailure(customer_id, exc)
                logger.error(
                    "Extraction call failed",
                    customer_id=customer_id,
                    error=str(failure),
                    exc_info=exc,
                )
                await self._fail(customer_id, str(failure))
                return

            signal = parse_signal(reply)
            if signal is ExtractionSignal.WAIT_REPLY and (reply or "").strip() != signal.value:
                logger.warning(
                    "Unrecognised agent reply, treating as WAIT_REPLY",
                    customer_id=customer_id,
                    reply=reply,
                )

            try:
                async with self._lock_for(customer_id):
                    batch = await self._complete_cycle(customer_id, signal)
            except Exception as exc:
                logger.error(
                    "Failed to record cycle outcome",
                    customer_id=customer_id,
                    signal=signal.value,
                    exc_info=exc,
                )
                await self._fail(
                    customer_id,
                    f"Failed to record {signal.value} for {customer_id}: "
                    f"{str(exc) or type(exc).__name__}",
                )
                return

    async def _call_agent(
        self, customer_id: str, transcript: str, tools: ExtractionTools
    ) -> str:
        call = self.agent.extract(customer_id, transcript, tools)
        if self.extraction_timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=self.extraction_timeout)

    async def _complete_cycle(
        self, customer_id: str, signal: ExtractionSignal
    ) -> tuple[Message, ...]:
        """Apply the signal and return the next batch to process, if any."""

        state = await self.state_store.load(customer_id)
        if state is None or not state.is_processing:
            logger.warning(
                "Cycle finished for a conversation that is not processing",
                customer_id=customer_id,
                status=state.status.value if state else None,
            )
            return ()

        if signal is ExtractionSignal.ALL_INFO_COLLECTED:
            if state.unread_messages:
                logger.warning(
                    "Discarding messages received after all info was collected",
                    customer_id=customer_id,
                    discarded=len(state.unread_messages),
                )
            await self.state_store.save(state.closed())
            logger.info("All info collected", customer_id=customer_id)
            return ()

        if state.unread_messages:
            state = state.start_processing()
            await self.state_store.save(state)
            logger.info(
                "Dispatching buffered batch",
                customer_id=customer_id,
                batch_size=len(state.in_flight),
            )
            return state.in_flight

        state = state.waiting_reply()
        await self.state_store.save(state)
        if self.max_follow_ups > 0:
            self.timer.arm(customer_id, self.follow_up_interval, state.fence_token())
        logger.info("Waiting for reply", customer_id=customer_id)
        return ()

    async def _fail(self, customer_id: str, reason: str) -> None:
        """Move the conversation to ERROR; a store failure here is logged, not raised."""

        try:
            async with self._lock_for(customer_id):
                state = await self.state_store.load(customer_id)
                if state is None:
                    state = ConversationState.new(customer_id)
                if state.unread_messages:
                    logger.warning(
                        "Discarding messages buffered before the failure",
                        customer_id=customer_id,
                        discarded=len(state.unread_messages),
                    )
                await self.state_store.save(state.error(reason))
        except Exception:
            logger.exception(
                "Failed to persist ERROR state", customer_id=customer_id, reason=reason
            )

    async def _record_saved(self, customer_id: str, record: ClientRecord) -> None:
        async with self._lock_for(customer_id):
            state = await self.state_store.load(customer_id)
            if state is None:
                return
            await self.state_store.save(
                state.with_details(
                    record.details.location,
                    record.details.property_type,
                    record.details.transaction_type,
                )
            )

    # Helpers

    def _lock_for(self, customer_id: str) -> asyncio.Lock:
        # entries live only while some coroutine holds or awaits the lock
        lock = self._locks.get(customer_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[customer_id] = lock
        return lock

    def _accepts_messages(self, state: ConversationState) -> bool:
        if state.status is ConversationStatus.CLOSED:
            return False
        if state.status is ConversationStatus.ERROR:
            return self.retry_from_error
        return True


def _validate_inbound(customer_id: str, subject: str, content: str) -> None:
    if not customer_id or not customer_id.strip():
        raise ValidationError("sender cannot be empty")
    if not subject or not subject.strip():
        raise ValidationError("subject cannot be empty")
    if not content or not content.strip():
        raise ValidationError("content cannot be empty")


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


__all__ = ["Accepted", "ConversationWorkflow"]

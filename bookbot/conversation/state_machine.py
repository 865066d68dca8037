"""
Finite state machine and router for the booking conversation.

The allowed state changes are declared once in
``ConversationStateMachine.TRANSITIONS``; the router validates every move
against that table, so the graph below is the single source of truth:

    MENU ─► SERVICE_SELECT ─► INTAKE (steps 0, 1, 2) ─► CONFIRM ─┬─► SLOT_SELECT ─► AI_CHAT
      │                                                          ├─► AI_CHAT (no slots)
      └─► HANDOFF ◄────────────────────── AI_CHAT (escalation)   └─► DONE (declined)

A greeting from any non-terminal state closes the conversation (DONE) and
opens a fresh one in MENU. HANDOFF and DONE are absorbing.

Usage:
    router = ConversationRouter(store, tenant_cache, messenger, completion, calendar)
    result = await router.handle(event)
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, TypeVar

from bookbot.config import settings
from bookbot.conversation import menus
from bookbot.conversation.handoff import (
    REASON_AI_ESCALATION,
    REASON_CUSTOMER_REQUEST,
    HandoffController,
    suggests_handoff,
)
from bookbot.errors import DataIntegrityError
from bookbot.logging_context import set_conversation_id
from bookbot.prompts.system_prompts import build_chat_system_prompt
from bookbot.schemas.conversation_schema import (
    AiChatData,
    AttributeBag,
    ChatTurn,
    ConfirmData,
    Conversation,
    ConversationState,
    DoneData,
    IntakeData,
    ServiceSelectData,
    SlotSelectData,
    TERMINAL_STATES,
)
from bookbot.schemas.job_schema import Job, JobStatus
from bookbot.schemas.message_schema import (
    ButtonMessage,
    InboundEvent,
    ListMessage,
    OutboundMessage,
    TextMessage,
)
from bookbot.schemas.tenant_schema import Tenant
from bookbot.services.interfaces import CalendarProvider, CompletionService, Messenger, Store
from bookbot.services.tenant_cache import TenantResolverCache
from bookbot.tools.availability import book_slot, find_available_slots
from bookbot.tools.faq import FAQ_TOPIC_PREFIX, answer_for_topic, match_faq
from bookbot.tools.quotes import generate_quote
from bookbot.tools.services import get_service

logger = logging.getLogger(__name__)

GREETINGS = frozenset({"hi", "hello", "hey", "start", "menu", "hola", "bonjour"})

_SLOT_TOKEN = re.compile(rf"^{menus.SLOT_PREFIX}(\d+)$")


def is_greeting(text: str) -> bool:
    """Exact, case-insensitive match against the restart words."""
    return text.strip().lower() in GREETINGS


class TransitionTrigger(str, Enum):
    """Events that cause state transitions."""

    BOOKING_STARTED = "booking_started"
    HUMAN_REQUESTED = "human_requested"
    SERVICE_CHOSEN = "service_chosen"
    INTAKE_ANSWERED = "intake_answered"
    JOB_QUOTED = "job_quoted"
    SLOTS_OFFERED = "slots_offered"
    NO_SLOTS = "no_slots"
    BOOKING_DECLINED = "booking_declined"
    SLOT_BOOKED = "slot_booked"
    ESCALATED = "escalated"
    RESTARTED = "restarted"


@dataclass
class Transition:
    """A single valid state transition."""

    from_state: ConversationState
    to_state: ConversationState
    trigger: TransitionTrigger


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


_S = ConversationState
_T = TransitionTrigger

_RESTARTABLE = (_S.MENU, _S.SERVICE_SELECT, _S.INTAKE, _S.CONFIRM, _S.SLOT_SELECT, _S.AI_CHAT)


class ConversationStateMachine:
    """
    Validates state changes against the fixed transition table.

    An undeclared move is a programming error, never a reaction to user
    input: unrecognized tokens re-prompt without changing state.
    """

    TRANSITIONS: list[Transition] = [
        # --- Main menu ---
        Transition(_S.MENU, _S.SERVICE_SELECT, _T.BOOKING_STARTED),
        Transition(_S.MENU, _S.HANDOFF, _T.HUMAN_REQUESTED),

        # --- Structured intake ---
        Transition(_S.SERVICE_SELECT, _S.INTAKE, _T.SERVICE_CHOSEN),
        Transition(_S.INTAKE, _S.INTAKE, _T.INTAKE_ANSWERED),
        Transition(_S.INTAKE, _S.CONFIRM, _T.JOB_QUOTED),

        # --- Confirmation gate ---
        Transition(_S.CONFIRM, _S.SLOT_SELECT, _T.SLOTS_OFFERED),
        Transition(_S.CONFIRM, _S.AI_CHAT, _T.NO_SLOTS),
        Transition(_S.CONFIRM, _S.DONE, _T.BOOKING_DECLINED),

        # --- Scheduling ---
        Transition(_S.SLOT_SELECT, _S.AI_CHAT, _T.SLOT_BOOKED),

        # --- Free-form chat ---
        Transition(_S.AI_CHAT, _S.HANDOFF, _T.ESCALATED),

        # --- Restart on greeting ---
        *[Transition(state, _S.DONE, _T.RESTARTED) for state in _RESTARTABLE],
    ]

    def __init__(self, state: ConversationState = ConversationState.MENU) -> None:
        self._current_state = state

    @property
    def current_state(self) -> ConversationState:
        return self._current_state

    def transition(self, trigger: TransitionTrigger) -> ConversationState:
        """
        Execute a state transition.

        Returns:
            The new conversation state.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                old_state = self._current_state
                self._current_state = t.to_state
                logger.debug(
                    "State transition: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self) -> list[TransitionTrigger]:
        """Return all triggers valid from the current state."""
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def is_terminal(self) -> bool:
        return self._current_state in TERMINAL_STATES


@dataclass
class TurnResult:
    """What one inbound event did. ``messages`` were handed to the messenger in order."""

    conversation_id: Optional[str]
    state: Optional[ConversationState]
    messages: list[OutboundMessage] = field(default_factory=list)


@dataclass
class _Turn:
    tenant: Tenant
    conversation: Conversation
    to: str
    token: str
    now: datetime


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


_BagT = TypeVar("_BagT")


def _bag(conversation: Conversation, kind: type[_BagT]) -> _BagT:
    """Return the attribute bag, checked against the type the handler expects."""
    data = conversation.data
    if not isinstance(data, kind):
        raise DataIntegrityError(
            f"Conversation {conversation.id} has {data.state} data, expected {kind.__name__}"
        )
    return data


class ConversationRouter:
    """
    Drives one inbound event through the conversation graph.

    Per event: resolve the tenant, load or create the customer and their
    active conversation, compute the transition and outbound messages,
    persist, then send. Outbound failures are logged per message and never
    undo a persisted transition.
    """

    def __init__(
        self,
        store: Store,
        tenant_cache: TenantResolverCache,
        messenger: Messenger,
        completion: CompletionService,
        calendar: CalendarProvider,
        clock: Callable[[], datetime] = _utc_now,
        handoff: Optional[HandoffController] = None,
    ) -> None:
        self._store = store
        self._tenants = tenant_cache
        self._messenger = messenger
        self._completion = completion
        self._calendar = calendar
        self._clock = clock
        self._handoff = handoff or HandoffController()

    # ------------------------------------------------------------------ #
    # Entry point
    # ------------------------------------------------------------------ #

    async def handle(self, event: InboundEvent, tenant: Optional[Tenant] = None) -> TurnResult:
        """
        Process one inbound event. A caller that already resolved the tenant
        passes it in; otherwise it is looked up here.

        Raises:
            DataIntegrityError: If the tenant is unknown or inactive, or a job
                referenced by the conversation no longer exists.
        """
        if tenant is None:
            tenant = await self.resolve_tenant(event)
        customer = await self._store.get_or_create_customer(tenant.id, event.customer_address)
        conversation = await self._store.get_active_conversation(tenant.id, customer.id)

        if conversation is not None:
            set_conversation_id(conversation.id)
            if conversation.state == ConversationState.HANDOFF:
                logger.debug("Conversation is handed off, dropping event %s", event.event_id)
                return TurnResult(conversation.id, conversation.state)

        if conversation is None or is_greeting(event.token):
            if conversation is not None:
                self._move(conversation, _T.RESTARTED, DoneData())
                await self._store.save_conversation(conversation)
                logger.info("Conversation closed by greeting")
            conversation = await self._store.create_conversation(tenant.id, customer.id)
            set_conversation_id(conversation.id)
            logger.info("Conversation started for customer %s", customer.id)
            messages: list[OutboundMessage] = [menus.welcome_menu(customer.address)]
            await self._deliver(tenant, messages)
            return TurnResult(conversation.id, conversation.state, messages)

        turn = _Turn(
            tenant=tenant,
            conversation=conversation,
            to=customer.address,
            token=event.token,
            now=self._clock(),
        )
        handler = self._handlers[conversation.state]
        messages = await handler(self, turn)

        await self._store.save_conversation(conversation)
        await self._deliver(tenant, messages)
        return TurnResult(conversation.id, conversation.state, messages)

    async def resolve_tenant(self, event: InboundEvent) -> Tenant:
        """Map the event to an active tenant, whichever way the event names it.

        Raises:
            DataIntegrityError: If the tenant is unknown or inactive.
        """
        if event.tenant_id:
            tenant = await self._tenants.get_by_id(event.tenant_id)
        else:
            tenant = await self._tenants.get_by_channel_id(event.channel_id or "")
        if tenant is None:
            raise DataIntegrityError(f"No tenant for {event.tenant_key}")
        if not tenant.active:
            raise DataIntegrityError(f"Tenant {tenant.id} is inactive")
        return tenant

    @staticmethod
    def _move(conversation: Conversation, trigger: TransitionTrigger, bag: AttributeBag) -> None:
        """Validate the move against the transition table, then install the new bag."""
        target = ConversationStateMachine(conversation.state).transition(trigger)
        if bag.state != target.value:
            raise InvalidTransitionError(
                f"Trigger '{trigger.value}' leads to {target.value}, got {bag.state} data"
            )
        conversation.data = bag

    async def _deliver(self, tenant: Tenant, messages: list[OutboundMessage]) -> None:
        for message in messages:
            try:
                if isinstance(message, TextMessage):
                    await self._messenger.send_text(tenant, message.to, message.body)
                elif isinstance(message, ButtonMessage):
                    await self._messenger.send_buttons(
                        tenant, message.to, message.body, message.options
                    )
                elif isinstance(message, ListMessage):
                    await self._messenger.send_list(
                        tenant, message.to, message.body, message.label, message.rows
                    )
            except Exception as exc:
                logger.warning("Failed to send %s message to %s: %s", message.kind, message.to, exc)

    async def _load_job(self, job_id: str) -> Job:
        job = await self._store.get_job(job_id)
        if job is None:
            raise DataIntegrityError(f"Job {job_id} not found")
        return job

    def _start_handoff(
        self, turn: _Turn, trigger: TransitionTrigger, reason: str
    ) -> list[TextMessage]:
        ConversationStateMachine(turn.conversation.state).transition(trigger)
        return self._handoff.handoff(turn.tenant, turn.conversation, turn.to, reason)

    # ------------------------------------------------------------------ #
    # State handlers
    # ------------------------------------------------------------------ #

    async def _on_menu(self, turn: _Turn) -> list[OutboundMessage]:
        token = turn.token
        if token in (menus.MENU_REQUEST, menus.MENU_QUOTE):
            self._move(turn.conversation, _T.BOOKING_STARTED, ServiceSelectData())
            return [menus.service_menu(turn.to)]

        if token == menus.MENU_FAQ:
            return [menus.faq_menu(turn.to)]

        if token.startswith(FAQ_TOPIC_PREFIX):
            answer = answer_for_topic(token)
            if answer:
                return [menus.faq_answer(turn.to, answer)]
            return [menus.welcome_menu(turn.to)]

        if token == menus.MENU_HUMAN:
            return self._start_handoff(turn, _T.HUMAN_REQUESTED, REASON_CUSTOMER_REQUEST)

        return [menus.welcome_menu(turn.to)]

    async def _on_service_select(self, turn: _Turn) -> list[OutboundMessage]:
        service = get_service(turn.token)
        if service is None:
            return [menus.service_menu(turn.to)]

        self._move(
            turn.conversation,
            _T.SERVICE_CHOSEN,
            IntakeData(service_id=service["id"], service_type=service["title"], step=0),
        )
        return [menus.intake_question(turn.to, 0, service["title"])]

    async def _on_intake(self, turn: _Turn) -> list[OutboundMessage]:
        intake = _bag(turn.conversation, IntakeData)
        token = turn.token

        if intake.step < 2:
            if not token:
                return [menus.intake_question(turn.to, intake.step, intake.service_type)]
            field_name = "description" if intake.step == 0 else "address"
            updated = intake.model_copy(update={field_name: token, "step": intake.step + 1})
            self._move(turn.conversation, _T.INTAKE_ANSWERED, updated)
            return [menus.intake_question(turn.to, updated.step, intake.service_type)]

        if token not in (menus.URGENT_YES, menus.URGENT_NO):
            return [menus.intake_question(turn.to, 2, intake.service_type)]

        urgent = token == menus.URGENT_YES
        description = intake.description or ""
        address = intake.address or ""
        quote = await generate_quote(self._completion, intake.service_type, description, urgent)

        job = await self._store.create_job(
            Job(
                id="",
                tenant_id=turn.tenant.id,
                customer_id=turn.conversation.customer_id,
                service_type=intake.service_type,
                description=description,
                address=address,
                urgent=urgent,
                quote=quote,
            )
        )
        self._move(
            turn.conversation,
            _T.JOB_QUOTED,
            ConfirmData(
                service_id=intake.service_id,
                service_type=intake.service_type,
                description=description,
                address=address,
                urgent=urgent,
                job_id=job.id,
                quote=quote,
            ),
        )
        return [self._summary(turn.to, turn.conversation.data)]

    @staticmethod
    def _summary(to: str, details: ConfirmData) -> ButtonMessage:
        return menus.job_confirmation(
            to,
            service_type=details.service_type,
            description=details.description,
            address=details.address,
            urgent=details.urgent,
            quote=details.quote,
        )

    async def _on_confirm(self, turn: _Turn) -> list[OutboundMessage]:
        details = _bag(turn.conversation, ConfirmData)

        if turn.token == menus.CONFIRM_NO:
            self._move(turn.conversation, _T.BOOKING_DECLINED, DoneData())
            return [menus.closing(turn.to)]

        if turn.token != menus.CONFIRM_YES:
            return [self._summary(turn.to, details)]

        job = await self._load_job(details.job_id)
        job.advance_status(JobStatus.CONFIRMED)
        await self._store.save_job(job)

        slots = await find_available_slots(
            self._calendar, turn.tenant, details.service_type, details.urgent, turn.now
        )
        if not slots:
            logger.info("No automatic slot for job %s, manual follow-up", job.id)
            self._move(turn.conversation, _T.NO_SLOTS, AiChatData(job_id=job.id))
            return [menus.no_slots_follow_up(turn.to)]

        self._move(
            turn.conversation,
            _T.SLOTS_OFFERED,
            SlotSelectData(**details.model_dump(exclude={"state"}), offered_slots=slots),
        )
        return [menus.slot_picker(turn.to, slots, turn.now, turn.tenant.business_hours.tz)]

    async def _on_slot_select(self, turn: _Turn) -> list[OutboundMessage]:
        details = _bag(turn.conversation, SlotSelectData)
        tz = turn.tenant.business_hours.tz

        match = _SLOT_TOKEN.match(turn.token)
        index = int(match.group(1)) if match else -1
        if not 0 <= index < len(details.offered_slots):
            return [menus.slot_picker(turn.to, details.offered_slots, turn.now, tz)]

        chosen = details.offered_slots[index]
        job = await self._load_job(details.job_id)
        event = await book_slot(
            self._calendar,
            turn.tenant,
            service_type=details.service_type,
            description=details.description,
            address=details.address,
            customer_address=turn.to,
            start=chosen,
            urgent=details.urgent,
        )

        job.scheduled_at = chosen
        if event is not None:
            job.calendar_event_id = event.event_id
            job.calendar_link = event.link or None
        await self._store.save_job(job)

        self._move(turn.conversation, _T.SLOT_BOOKED, AiChatData(job_id=job.id))
        logger.info("Job %s booked for %s", job.id, chosen.isoformat())
        return [menus.booked(turn.to, chosen, tz, details.address)]

    async def _on_ai_chat(self, turn: _Turn) -> list[OutboundMessage]:
        answer = match_faq(turn.token)
        if answer:
            return [TextMessage(to=turn.to, body=answer)]

        conversation = turn.conversation
        history = [*conversation.ai_history, ChatTurn(role="user", content=turn.token)]
        limit = settings.timeouts.ai_timeout_sec
        try:
            reply = await asyncio.wait_for(
                self._completion.chat(build_chat_system_prompt(turn.tenant), history),
                timeout=limit,
            )
        except asyncio.TimeoutError:
            logger.warning("AI chat timed out after %.1fs", limit)
            return [menus.apology(turn.to)]
        except Exception as exc:
            logger.warning("AI chat failed: %s", exc)
            return [menus.apology(turn.to)]

        conversation.ai_history = [*history, ChatTurn(role="assistant", content=reply)]
        messages: list[OutboundMessage] = [TextMessage(to=turn.to, body=reply)]
        if suggests_handoff(reply):
            messages.extend(self._start_handoff(turn, _T.ESCALATED, REASON_AI_ESCALATION))
        return messages

    _handlers = {
        ConversationState.MENU: _on_menu,
        ConversationState.SERVICE_SELECT: _on_service_select,
        ConversationState.INTAKE: _on_intake,
        ConversationState.CONFIRM: _on_confirm,
        ConversationState.SLOT_SELECT: _on_slot_select,
        ConversationState.AI_CHAT: _on_ai_chat,
    }

"""
Offline console demo: runs full booking conversations without any API keys.

Drives the real router, tenant cache, slot finder, and FAQ matcher with the
in-memory store and calendar, a canned completion service, and a messenger
that prints to the terminal. No network calls.

Usage:
    python console_demo.py
    python console_demo.py --scenario booking
    python console_demo.py --scenario no_slots
"""

import argparse
import asyncio
import itertools
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from bookbot.config import settings
from bookbot.conversation.state_machine import ConversationRouter
from bookbot.prompts.system_prompts import HANDOFF_PHRASE
from bookbot.schemas.conversation_schema import ChatTurn, ConversationState
from bookbot.schemas.message_schema import ButtonOption, InboundEvent, ListRow
from bookbot.schemas.tenant_schema import BusinessHours, Tenant
from bookbot.services.memory_calendar import InMemoryCalendar
from bookbot.services.memory_store import InMemoryStore
from bookbot.services.tenant_cache import TenantResolverCache

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_CUSTOMER = "+447700900123"

DEMO_TENANT = Tenant(
    id="demo",
    name="Acme Repairs",
    whatsapp_phone_number_id="100000000000001",
    whatsapp_token="offline",
    calendar_id="demo-calendar",
    owner_phone="+447700900000",
    business_hours=BusinessHours(days=[1, 2, 3, 4, 5, 6]),
)


class ConsoleMessenger:
    """Prints outbound messages and remembers the option ids last offered."""

    def __init__(self) -> None:
        self.last_options: list[str] = []

    def _print(self, to: str, body: str) -> None:
        prefix = "Bot" if to != DEMO_TENANT.owner_phone else "Bot -> owner"
        print(f"{GREEN}{BOLD}[{prefix}]{RESET} {GREEN}{body}{RESET}")

    async def send_text(self, tenant: Tenant, to: str, body: str) -> None:
        self._print(to, body)

    async def send_buttons(
        self, tenant: Tenant, to: str, body: str, options: Sequence[ButtonOption]
    ) -> None:
        self._print(to, body)
        self._show_options([(o.id, o.title) for o in options])

    async def send_list(
        self, tenant: Tenant, to: str, body: str, label: str, rows: Sequence[ListRow]
    ) -> None:
        self._print(to, body)
        print(f"{DIM}  ({label}){RESET}")
        self._show_options([(r.id, r.title) for r in rows])

    def _show_options(self, options: list[tuple[str, str]]) -> None:
        self.last_options = [option_id for option_id, _ in options]
        for i, (option_id, title) in enumerate(options, 1):
            print(f"{YELLOW}  {i}. {title}{RESET} {DIM}[{option_id}]{RESET}")


class CannedCompletion:
    """Offline stand-in for the completion service."""

    async def chat(self, system_prompt: str, history: Sequence[ChatTurn]) -> str:
        last = history[-1].content if history else ""
        if "JSON quote estimate" in last:
            urgent = "Urgent: true" in last
            return '{"min": 120, "max": 220}' if urgent else '{"min": 90, "max": 160}'
        lower = last.lower()
        if any(word in lower for word in ("angry", "complaint", "useless", "again")):
            return f"I'm sorry about this. {HANDOFF_PHRASE} who can give you more accurate help."
        return "Happy to help! Our engineer will bring common parts, so most jobs are finished in one visit."


class ConsoleSession:
    """Simulates a customer's WhatsApp exchange in the terminal."""

    SCENARIOS: dict[str, list[str]] = {
        "booking": [
            "hi",
            "menu_request",
            "svc_plumber",
            "Leaking kitchen tap",
            "10 Main St, London",
            "intake_urgent_no",
            "confirm_yes",
            "slot_0",
            "Will the engineer bring parts?",
        ],
        "faq": [
            "hello",
            "menu_faq",
            "faq_price",
            "faq_area",
            "menu",
        ],
        "handoff": [
            "hi",
            "menu_human",
            "hello? anyone there?",
        ],
        "no_slots": [
            "hi",
            "menu_request",
            "svc_locksmith",
            "Locked out of my flat",
            "22 Baker St",
            "intake_urgent_yes",
            "confirm_yes",
            "This is useless, I'm locked out again",
        ],
    }

    MAX_INPUT_LENGTH = 500

    def __init__(self, scenario: Optional[str] = None) -> None:
        self.store = InMemoryStore()
        self.store.add_tenant(DEMO_TENANT)
        self.calendar = InMemoryCalendar()
        self.messenger = ConsoleMessenger()
        self.router = ConversationRouter(
            self.store,
            TenantResolverCache(self.store),
            self.messenger,
            CannedCompletion(),
            self.calendar,
        )
        self._event_ids = itertools.count(1)
        if scenario == "no_slots":
            now = datetime.now(timezone.utc)
            self.calendar.add_busy(DEMO_TENANT.calendar_id, now, now + timedelta(days=30))

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _to_event(self, raw: str) -> InboundEvent:
        """Numbers and option ids pick from the last menu; anything else is free text."""
        options = self.messenger.last_options
        option_id: Optional[str] = None
        if raw.isdigit() and 1 <= int(raw) <= len(options):
            option_id = options[int(raw) - 1]
        elif raw in options:
            option_id = raw
        return InboundEvent(
            event_id=f"console-{next(self._event_ids)}",
            customer_address=DEMO_CUSTOMER,
            tenant_id=DEMO_TENANT.id,
            text=None if option_id else raw,
            selected_option_id=option_id,
        )

    async def _send(self, raw: str, echo: bool = True) -> Optional[ConversationState]:
        event = self._to_event(raw[: self.MAX_INPUT_LENGTH])
        if echo:
            shown = event.selected_option_id or event.text
            print(f"\n{BLUE}[Customer] {RESET}{shown}")
        result = await self.router.handle(event)
        if result.state is not None:
            self.system_log(f"State: {result.state.value}")
        if result.state == ConversationState.HANDOFF and not result.messages:
            self.system_log("Conversation is with a human; message not answered")
        return result.state

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  BOOKING ASSISTANT - {title}{RESET}")
        print(f"{BOLD}  Business: {DEMO_TENANT.name} ({DEMO_TENANT.business_hours.timezone}){RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    def _summary(self) -> None:
        for job in self.store.list_jobs():
            when = job.scheduled_at.isoformat() if job.scheduled_at else "to be arranged"
            print(
                f"{DIM}  Job {job.id}: {job.service_type}, {job.status.value}, "
                f"{settings.business.currency_symbol}{job.quote.min}-{job.quote.max}, {when}{RESET}"
            )

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"Scenario: {scenario}")
        for step in steps:
            await self._send(step)

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        self._summary()
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def run(self) -> None:
        self._banner("Console Demo")
        print(f"{BOLD}  Type a message, a menu number, or 'quit' to exit{RESET}")

        await self._send("hi")
        while True:
            user_input = (await asyncio.to_thread(input, f"\n{BLUE}[Customer] {RESET}")).strip()
            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                break
            await self._send(user_input, echo=False)
        self._summary()


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    # Keep the transcript readable; router logs are noise at INFO here
    logging.getLogger("bookbot").setLevel(logging.WARNING)

    session = ConsoleSession(args.scenario)
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    main()

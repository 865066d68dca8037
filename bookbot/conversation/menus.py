"""
Outbound message builders.

Each function returns the message(s) for one step of the exchange; the
router decides when to send them. Option ids here are the tokens the
router matches on, so they are part of the conversation contract.
"""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from bookbot.config import settings
from bookbot.schemas.job_schema import QuoteRange
from bookbot.schemas.message_schema import (
    ButtonMessage,
    ButtonOption,
    ListMessage,
    ListRow,
    TextMessage,
)
from bookbot.tools.services import SERVICES
from bookbot.utils import truncate

# WhatsApp rejects list rows with longer titles
MAX_ROW_TITLE = 24

MENU_REQUEST = "menu_request"
MENU_QUOTE = "menu_quote"
MENU_FAQ = "menu_faq"
MENU_HUMAN = "menu_human"

URGENT_YES = "intake_urgent_yes"
URGENT_NO = "intake_urgent_no"

CONFIRM_YES = "confirm_yes"
CONFIRM_NO = "confirm_no"

SLOT_PREFIX = "slot_"

CONTINUE_HINT = '\n\n_Type anything to continue or say "menu" to go back._'

INTAKE_QUESTIONS = {
    0: (
        "Great choice! To get started with your *{service}* request, could you briefly "
        'describe the problem? (e.g. "leaking kitchen tap")'
    ),
    1: "Thanks! What's the address where you need the service?",
    2: "Is this urgent? 🚨",
}


def _row(row_id: str, title: str, description: str = "") -> ListRow:
    return ListRow(id=row_id, title=truncate(title, MAX_ROW_TITLE), description=description)


def welcome_menu(to: str) -> ListMessage:
    # A list, not buttons: there are four options and buttons max out at three
    return ListMessage(
        to=to,
        body="👋 Welcome! I'm your service booking assistant.\n\nHow can I help you today?",
        label="Choose an option",
        rows=[
            _row(MENU_REQUEST, "🔧 Request a Service", "Book a plumber, locksmith, electrician..."),
            _row(MENU_QUOTE, "💰 Get a Quote", "Estimate cost before booking"),
            _row(MENU_FAQ, "❓ FAQ", "Hours, pricing, coverage & more"),
            _row(MENU_HUMAN, "👤 Speak to Someone", "Connect with our team directly"),
        ],
    )


def faq_menu(to: str) -> ListMessage:
    return ListMessage(
        to=to,
        body="❓ *Frequently Asked Questions*\n\nSelect a topic or just type your question:",
        label="Browse FAQs",
        rows=[
            _row("faq_hours", "🕐 Opening Hours", "When are you available?"),
            _row("faq_price", "💰 Pricing & Rates", "How much does it cost?"),
            _row("faq_urgent", "🚨 Emergency Service", "Same-day or urgent help"),
            _row("faq_area", "📍 Coverage Area", "Do you cover my location?"),
            _row("faq_payment", "💳 Payment Methods", "Cash, card, bank transfer?"),
            _row("faq_guarantee", "✅ Guarantee & Insurance", "Are you insured?"),
        ],
    )


def faq_answer(to: str, answer: str) -> TextMessage:
    return TextMessage(to=to, body=answer + CONTINUE_HINT)


def service_menu(to: str) -> ListMessage:
    return ListMessage(
        to=to,
        body="Which service do you need?\n\nSelect from the list below 👇",
        label="Choose a service",
        rows=[_row(s["id"], s["title"], s["description"]) for s in SERVICES],
    )


def intake_question(to: str, step: int, service_type: str):
    """Question for intake *step*. Step 2 is answered with the urgency buttons."""
    body = INTAKE_QUESTIONS[step].format(service=service_type)
    if step == 2:
        return ButtonMessage(
            to=to,
            body=body,
            options=[
                ButtonOption(id=URGENT_YES, title="🚨 Yes, urgent"),
                ButtonOption(id=URGENT_NO, title="📅 No, can wait"),
            ],
        )
    return TextMessage(to=to, body=body)


def format_price(quote: QuoteRange) -> str:
    symbol = settings.business.currency_symbol
    return f"{symbol}{quote.min}–{symbol}{quote.max}"


def job_confirmation(
    to: str,
    *,
    service_type: str,
    description: str,
    address: str,
    urgent: bool,
    quote: QuoteRange,
) -> ButtonMessage:
    """Job summary with the estimate, asking the customer to confirm."""
    priority = "🚨 Urgent (within 2 hours)" if urgent else "📅 Scheduled"
    body = (
        "✅ *Here's your job summary:*\n\n"
        f"🔧 Service: {service_type}\n"
        f"📝 Problem: {description}\n"
        f"📍 Address: {address}\n"
        f"⏰ Priority: {priority}\n"
        f"💰 Estimated quote: {format_price(quote)}\n\n"
        "Shall I confirm this booking?"
    )
    return ButtonMessage(
        to=to,
        body=body,
        options=[
            ButtonOption(id=CONFIRM_YES, title="✅ Confirm Booking"),
            ButtonOption(id=CONFIRM_NO, title="❌ Cancel"),
        ],
    )


def _clock(local: datetime) -> str:
    return local.strftime("%I:%M%p").lstrip("0").lower()


def format_slot_label(slot: datetime, now: datetime, tz: ZoneInfo) -> str:
    """Short label for a slot: "Today 2:00pm", "Tomorrow 9:00am", "Mon 14 Apr 10:00am"."""
    local = slot.astimezone(tz)
    today = now.astimezone(tz).date()
    if local.date() == today:
        return f"Today {_clock(local)}"
    if local.date() == today + timedelta(days=1):
        return f"Tomorrow {_clock(local)}"
    return f"{local:%a} {local.day} {local:%b} {_clock(local)}"


def slot_picker(to: str, slots: list[datetime], now: datetime, tz: ZoneInfo) -> ListMessage:
    """List of offered slots; the row id carries the slot's index."""
    return ListMessage(
        to=to,
        body="📅 *Choose your appointment slot*\n\nHere are the next available times for your booking:",
        label="Pick a slot",
        rows=[
            _row(f"{SLOT_PREFIX}{i}", format_slot_label(slot, now, tz), "Tap to confirm this time")
            for i, slot in enumerate(slots)
        ],
    )


def no_slots_follow_up(to: str) -> TextMessage:
    return TextMessage(
        to=to,
        body=(
            "✅ *Booking confirmed!*\n\nWe couldn't find an automatic slot right now. "
            "Our team will contact you shortly to arrange a convenient time. 📞\n\n"
            "Is there anything else I can help with?"
        ),
    )


def booked(to: str, slot: datetime, tz: ZoneInfo, address: str) -> TextMessage:
    local = slot.astimezone(tz)
    label = f"{local:%A} {local.day} {local:%B}, {_clock(local)}"
    return TextMessage(
        to=to,
        body=(
            f"✅ *Appointment booked!*\n\n📅 {label}\n📍 {address}\n\n"
            "Your engineer will arrive at the scheduled time. You'll receive a reminder "
            "closer to the date.\n\nIs there anything else I can help with?"
        ),
    )


def closing(to: str) -> TextMessage:
    return TextMessage(to=to, body="No problem! Feel free to message us anytime you need help. 😊")


def apology(to: str) -> TextMessage:
    return TextMessage(
        to=to,
        body=(
            "Sorry, I'm having trouble answering right now. Please try again in a moment, "
            'or say "menu" to see your options.'
        ),
    )

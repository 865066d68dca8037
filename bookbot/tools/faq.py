"""
Keyword FAQ lookup.

A cheap short-circuit checked before the completion service is called.
Matching is a case-insensitive substring scan over ``FAQS`` in table order;
the first entry with a matching keyword wins.
"""

import logging
from typing import Optional, TypedDict

logger = logging.getLogger(__name__)


class FAQEntry(TypedDict):
    keywords: list[str]
    answer: str


FAQS: list[FAQEntry] = [
    {
        "keywords": ["weekend", "saturday", "sunday", "open", "hours", "opening"],
        "answer": (
            "📅 *Opening Hours*\n\n"
            "We're available 7 days a week, including weekends and bank holidays.\n\n"
            "• Mon–Fri: 7am–9pm\n• Sat–Sun: 8am–6pm\n\n"
            "Emergency call-outs are available 24/7 (out-of-hours surcharge applies)."
        ),
    },
    {
        "keywords": ["call-out", "callout", "charge", "fee", "cost", "price", "rate", "quote", "much"],
        "answer": (
            "💰 *Standard Rates*\n\n"
            "• Plumber: £80–£120 call-out + parts/labour\n"
            "• Locksmith: £60–£100 call-out\n"
            "• Electrician: £60–£100 call-out\n"
            "• Handyman: £40–£60/hr (min. 1 hour)\n\n"
            "Urgent/out-of-hours: +30–50%\n\n"
            "Send me the details and I'll give you a more accurate estimate! 👇"
        ),
    },
    {
        "keywords": ["urgent", "emergency", "asap", "tonight", "now", "immediately", "quickly"],
        "answer": (
            "🚨 *Emergency Service*\n\n"
            "We offer same-day and emergency call-outs. An engineer can usually be "
            "with you within 60–90 minutes.\n\n"
            "Shall I book an urgent job for you now? Just tell me what you need! 🔧"
        ),
    },
    {
        "keywords": ["area", "cover", "location", "zone", "travel", "come to", "radius"],
        "answer": (
            "📍 *Coverage Area*\n\n"
            "We cover the city centre and surrounding areas up to 15 miles. "
            "If you're unsure, share your postcode and we'll check!"
        ),
    },
    {
        "keywords": ["guarantee", "warranty", "insured", "insurance", "accredited"],
        "answer": (
            "✅ *Our Guarantee*\n\n"
            "All our engineers are fully insured and accredited. Every job comes with "
            "a *12-month workmanship guarantee*.\n\n"
            "If anything isn't right after the job, we'll come back and fix it at no extra cost."
        ),
    },
    {
        "keywords": ["payment", "pay", "card", "cash", "invoice", "bank transfer", "bacs"],
        "answer": (
            "💳 *Payment Methods*\n\n"
            "We accept:\n• Cash\n• Credit/debit card\n• Bank transfer (BACS)\n\n"
            "Payment is due on completion of work. We can email an invoice if needed."
        ),
    },
    {
        "keywords": ["how long", "long take", "duration", "time", "wait", "minutes", "hours"],
        "answer": (
            "⏱️ *Job Duration*\n\n"
            "Most standard jobs take 1–2 hours. Larger or more complex jobs may take longer.\n\n"
            "We'll give you a time estimate on-site before starting any work."
        ),
    },
    {
        "keywords": ["cancel", "rescheduled", "reschedule", "postpone", "change"],
        "answer": (
            "🔄 *Cancellations & Rescheduling*\n\n"
            "You can cancel or reschedule at no cost up to *2 hours before* the appointment.\n\n"
            "To change a booking, just reply here or call us directly."
        ),
    },
]

# Topic tokens from the FAQ menu, mapped to keywords that select an entry.
FAQ_TOPICS: dict[str, list[str]] = {
    "faq_hours": ["weekend", "open"],
    "faq_price": ["cost", "price"],
    "faq_urgent": ["urgent", "emergency"],
    "faq_area": ["area", "cover"],
    "faq_payment": ["payment", "pay"],
    "faq_guarantee": ["guarantee", "insured"],
}

FAQ_TOPIC_PREFIX = "faq_"


def match_faq(text: str) -> Optional[str]:
    """Return the answer of the first FAQ with a keyword contained in *text*."""
    lower = text.lower()
    for faq in FAQS:
        if any(keyword in lower for keyword in faq["keywords"]):
            return faq["answer"]
    return None


def answer_for_topic(topic: str) -> Optional[str]:
    """Return the canned answer for a FAQ-menu topic token, or None if unknown."""
    keywords = FAQ_TOPICS.get(topic)
    if not keywords:
        logger.debug("Unknown FAQ topic: %s", topic)
        return None
    for faq in FAQS:
        if any(k in keywords for k in faq["keywords"]):
            return faq["answer"]
    return None

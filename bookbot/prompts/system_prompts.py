"""
System prompts for the completion service.

The chat prompt is built per tenant so the assistant speaks for the right
business. The escalation phrase below is also what the router looks for in
replies to decide on a human handoff, so the two must stay in sync.
"""

from bookbot.config import settings
from bookbot.schemas.tenant_schema import Tenant
from bookbot.tools.services import get_service_titles

HANDOFF_PHRASE = "I'll connect you with our team"

CHAT_STYLE_RULES = """
MESSAGING RULES:
- Keep replies short and conversational (2-4 sentences max).
- Always be warm, professional, and reassuring.
- Always give a price range, never a fixed price.
- End quote estimates with "This is an estimate, the engineer will confirm on-site."
"""

PRICING_GUIDELINES = """
Pricing guidelines:
- Plumber call-out: 80-120. Simple fix: +50-100. Complex: +150-400
- Locksmith: 60-100 call-out. Lock change: +50-150. Emergency entry: +80-200
- Electrician: 60-100 call-out. Socket/switch: +40-80. Full rewire: 2000+
- Handyman: 40-60/hr, minimum 1 hour
"""

QUOTE_SYSTEM_PROMPT = "You are a pricing assistant for a service business. Reply with ONLY valid JSON."


def build_chat_system_prompt(tenant: Tenant) -> str:
    """Prompt for free-form chat after (or instead of) a booking."""
    services = ", ".join(get_service_titles())
    return f"""You are a helpful assistant for {tenant.name}, a local service business
offering these services: {services}.

Your job is to:
1. Answer customer questions about services, pricing, and availability
2. When asked for a quote, estimate a realistic price range from the service type and description
{PRICING_GUIDELINES}
Prices are in {settings.business.currency_symbol}.
{CHAT_STYLE_RULES}
If a customer is angry or the problem sounds complex, suggest speaking to a human
with exactly this sentence: "{HANDOFF_PHRASE} who can give you more accurate help."
"""


def build_quote_request(service_type: str, description: str, urgent: bool) -> str:
    """User turn asking for a strictly numeric price estimate."""
    return f"""Give me a JSON quote estimate for this job.
Service: {service_type}
Description: {description}
Urgent: {str(urgent).lower()}

Reply with ONLY valid JSON in this exact format: {{"min": 80, "max": 150}}
No explanation, just the JSON."""

"""Prompt templates for LLM-composed outreach messages.

Templates use Python string placeholders ({variable_name}) for injection of
campaign and creator context.
"""

OUTREACH_SYSTEM_PROMPT = """You are writing a first outreach message on behalf of a brand's \
influencer marketing team.

RULES:
- Write ONLY the message body. No subject line, no signature block.
- Use the EXACT compensation provided. Do not invent or modify monetary values.
- Use the EXACT deliverables and timeline provided.
- Do not promise anything not explicitly listed (no exclusivity, no usage rights).
- Do not reference other creators or their rates.
- Keep it short: 2-3 paragraphs for email, 3-4 sentences for a phone script.
- Address the creator by their first name.
"""

OUTREACH_USER_PROMPT = """Compose an outreach message for this collaboration:

CHANNEL: {channel}
BRAND: {brand}
CAMPAIGN: {campaign_name}
CAMPAIGN DESCRIPTION: {description}
CREATOR: {creator_name}
AUDIENCE: {followers} followers, {engagement_rate}% engagement
DELIVERABLES: {deliverables}
TIMELINE: {timeline}
COMPENSATION: {compensation}

Write the message now."""

TEMPLATE_MESSAGE = """Hi {first_name},

{brand} would love to work with you on "{campaign_name}". \
We're looking for {deliverables} over {timeline}, with compensation of {compensation}.

A draft contract is ready for your review. Let us know if you're interested!"""

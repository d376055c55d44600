"""Prompt and response schema for batch country sentiment analysis."""

from typing import Any

from .config import MAX_HEADLINES

HEADLINE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "category": {"type": "STRING", "enum": ["GOOD", "BAD", "NEUTRAL"]},
        "snippet": {"type": "STRING", "description": "Very brief context."},
        "source": {"type": "STRING"},
        "url": {"type": "STRING"},
    },
    "required": ["title", "category", "snippet"],
}

BATCH_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "countryName": {"type": "STRING"},
            "sentimentScore": {
                "type": "NUMBER",
                "description": (
                    "A score from -1.0 (very negative) to 1.0 (very positive) "
                    "representing the overall news sentiment."
                ),
            },
            "stateSummary": {
                "type": "STRING",
                "description": (
                    "A 1-2 sentence summary of the country's current geopolitical "
                    "or social state based on the last 24 hours."
                ),
            },
            "headlines": {
                "type": "ARRAY",
                "items": HEADLINE_SCHEMA,
                "description": (
                    f"Top {MAX_HEADLINES} most relevant and recent news headlines "
                    "from the last 24 hours."
                ),
            },
        },
        "required": ["countryName", "sentimentScore", "stateSummary", "headlines"],
    },
}


def build_batch_prompt(countries: list[str]) -> str:
    """Build the analysis prompt for a batch of countries."""
    names = ", ".join(countries)
    return f"""
Perform a real-time news sentiment analysis for each of these countries: {names}.

CRITICAL: Use Google Search to find news headlines published strictly within
the LAST 24 HOURS.

For each country:
1. Search for the top news stories for the country today.
2. Identify the top {MAX_HEADLINES} most significant events.
3. Classify each headline as:
   - GOOD: Economic growth, peace treaties, scientific breakthroughs, social improvements.
   - BAD: Conflict, natural disasters, political corruption, crime spikes, economic crashes.
   - NEUTRAL: Routine diplomatic visits, general announcements, sports (unless major).
4. Calculate an aggregated sentiment score (-1.0 to 1.0) based on these stories.
5. Provide a "State of the Nation" summary reflecting these recent events.

Return one array entry per country and set countryName to the country name
exactly as given above. If absolutely no news is found in the last 24h, you
may look back 48h, but note this in the summary.
""".strip()

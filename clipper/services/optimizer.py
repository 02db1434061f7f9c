"""AI-assisted query refinement.

A raw topic such as ``"bananas"`` searches poorly across archives with very
different cataloguing conventions.  The optimizer asks a text model for four
phrasings (scientific naming, archival, fine art, space/science) and hands
each one to the matching group of sources.

Failure is never propagated: any phrase that cannot be obtained falls back to
the raw topic.
"""

import json
import logging
from typing import Any, Optional

from google.genai import types

from clipper.models.topic import SmartQuery
from clipper.services.genai_client import get_genai_client

logger = logging.getLogger(__name__)

#: Reply keys mapped to SmartQuery fields.
PHRASE_KEYS = {
    "generalPhrase": "general_phrase",
    "archivalPhrase": "archival_phrase",
    "artPhrase": "art_phrase",
    "spacePhrase": "space_phrase",
}

_PROMPT = (
    "You are helping search public-domain image archives for the subject: \"{topic}\".\n"
    "Return JSON with exactly four short search phrases:\n"
    "- generalPhrase: scientific or canonical naming, as used by Wikimedia Commons categories\n"
    "- archivalPhrase: historical / archival wording for library and document archives\n"
    "- artPhrase: wording a museum would use to catalogue fine art depicting the subject\n"
    "- spacePhrase: space or science wording suitable for a space agency image library\n"
    "Each phrase must be at most six words. Do not add commentary."
)

_RESPONSE_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={key: types.Schema(type=types.Type.STRING) for key in PHRASE_KEYS},
    required=list(PHRASE_KEYS),
)


def parse_reply(topic: str, text: Optional[str]) -> SmartQuery:
    """Build a SmartQuery from the model's JSON *text*, falling back per phrase."""
    payload: Any = json.loads(text or "")
    if not isinstance(payload, dict):
        raise ValueError("Optimizer reply is not a JSON object.")

    phrases = {}
    for key, field_name in PHRASE_KEYS.items():
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            phrases[field_name] = value.strip()
        else:
            logger.info("Optimizer reply missing %s; using raw topic", key)
            phrases[field_name] = topic
    return SmartQuery(**phrases)


class QueryOptimizer:
    """Derives per-category search phrases from a topic via a Gemini text model."""

    def __init__(self, model: str, client: Any = None, enabled: bool = True) -> None:
        self.model = model
        self.enabled = enabled
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_genai_client()
        return self._client

    async def optimize(self, topic: str) -> SmartQuery:
        if not self.enabled:
            return SmartQuery.fallback(topic)

        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=_PROMPT.format(topic=topic),
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=_RESPONSE_SCHEMA,
                ),
            )
            query = parse_reply(topic, response.text)
        except Exception as exc:
            logger.warning("Query optimisation failed for %r, using raw topic: %s", topic, exc)
            return SmartQuery.fallback(topic)

        logger.info("Optimised %r -> %s", topic, query.model_dump())
        return query

"""
Mobiledoc container for post and author bodies.

Ghost stores rich content as mobiledoc.  The corpus is markdown, and Ghost
renders a ``markdown`` card natively, so the whole body is placed in a
single card instead of being decomposed into sections and markups.  Links,
emphasis and embeds therefore stay as markdown text inside the card.

Round-trip law: ``decode_mobiledoc(encode_mobiledoc(body)) == body`` for
every string ``body``.
"""

from __future__ import annotations

import json
from typing import Any, Dict

from ghost_migration.exceptions import ParseError

MOBILEDOC_VERSION = "0.3.1"
MARKDOWN_CARD = "markdown"
# Section type 10 is a card section; 0 is the index into ``cards``.
CARD_SECTION = [10, 0]


def build_mobiledoc(markdown: str) -> Dict[str, Any]:
    return {
        "version": MOBILEDOC_VERSION,
        "markups": [],
        "atoms": [],
        "cards": [[MARKDOWN_CARD, {"cardName": MARKDOWN_CARD, "markdown": markdown}]],
        "sections": [list(CARD_SECTION)],
    }


def encode_mobiledoc(markdown: str) -> str:
    """Serialize ``markdown`` as a single-card mobiledoc JSON string."""
    return json.dumps(build_mobiledoc(markdown), ensure_ascii=False, separators=(",", ":"))


def decode_mobiledoc(mobiledoc: str) -> str:
    """
    Return the markdown held by a container produced by
    :func:`encode_mobiledoc`.

    :raises ParseError: if ``mobiledoc`` is not JSON or does not hold
        exactly one markdown card.
    """
    try:
        doc = json.loads(mobiledoc)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Invalid mobiledoc JSON: {e}") from e

    if not isinstance(doc, dict) or doc.get("version") != MOBILEDOC_VERSION:
        raise ParseError("Unsupported mobiledoc version")
    cards = doc.get("cards")
    if not isinstance(cards, list) or len(cards) != 1:
        raise ParseError("Expected exactly one card in mobiledoc")
    card = cards[0]
    if (
        not isinstance(card, list)
        or len(card) != 2
        or card[0] != MARKDOWN_CARD
        or not isinstance(card[1], dict)
        or not isinstance(card[1].get("markdown"), str)
    ):
        raise ParseError("Mobiledoc card is not a markdown card")
    return card[1]["markdown"]

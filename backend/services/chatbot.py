"""Rule-based chat replies."""

from __future__ import annotations

import random

OPENERS = ("yo", "bro listen", "ngl", "lowkey", "highkey", "bro fr")
CLOSERS = (
    "that's the move fr.",
    "hope that clears it up bro.",
    "go lock it in.",
    "stay locked and dialed.",
    "alright i'm out.",
)
VIBE_TAGS = ("✨", "💅", "🥤", "🔥", "🫶", "🌈", "🤸‍♀️", "💻")

# Matched as substrings in this order; the first hit wins.
KEYWORD_REPLIES: dict[str, str] = {
    "hello": "yo what's good?",
    "hi": "sup bro, what's the angle?",
    "hey": "hey bro, what's the play?",
    "help": "say less, i'm on it.",
    "follow": "go hype your crew, that's literally the point.",
    "message": "slide into the DMs respectfully, bro.",
    "admin": "admin mode is straight boss energy.",
    "verified": "verification is instant now bro, you're good.",
    "bot": "i'm basically your Gen-Z bro AI.",
}

EMPTY_PROMPT_REPLY = "say something real, bro 👀"
FAILURE_REPLY = "uhhh my brain buffer glitched. try again womp womp."
MIN_PROMPT_LENGTH = 6


def post_count_line(post_count: int) -> str:
    noun = "post" if post_count == 1 else "posts"
    return f"you got {post_count} {noun} on the grid rn."


def genz_response(
    prompt: str | None,
    *,
    post_count: int | None = None,
    rng: random.Random | None = None,
) -> str:
    """Answer ``prompt`` in the bot's voice.

    ``post_count`` is the caller's number of posts; it is only used when the
    prompt mentions posts.
    """
    cleaned = (prompt or "").strip()
    if not cleaned:
        return EMPTY_PROMPT_REPLY

    rng = rng or random.Random()
    lowered = cleaned.lower()
    opener = rng.choice(OPENERS)
    closer = rng.choice(CLOSERS)
    vibe = rng.choice(VIBE_TAGS)

    if post_count is not None and "post" in lowered:
        return f"{opener} {post_count_line(post_count)} {closer} {vibe}"

    for keyword, reply in KEYWORD_REPLIES.items():
        if keyword in lowered:
            return f"{opener} {reply} {closer} {vibe}"

    if "?" in lowered:
        question = cleaned.replace("?", "", 1)
        return f"{opener} solid question, i'd {question}? lock it in and keep moving. {closer} {vibe}"

    if len(lowered) < MIN_PROMPT_LENGTH:
        return f"{opener} need more details bro {vibe}"

    return f"{opener} {cleaned} is valid. stay focused & keep the drama lowkey. {closer} {vibe}"

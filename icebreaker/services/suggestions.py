from typing import List, Optional


GREETINGS = ["Hey! 👋", "How's your day going?", "Nice to meet you!"]

_TOPICS = [
    (("book", "read"), [
        "What genre do you usually enjoy?",
        "I love reading too! Any recommendations?",
        "That book sounds fascinating!",
        "I've been meaning to read that one!",
    ]),
    (("coffee", "café", "cafe"), [
        "I'm a coffee lover too! ☕",
        "What's your favorite coffee shop?",
        "Do you prefer espresso or pour-over?",
        "Coffee dates are the best!",
    ]),
    (("travel", "trip"), [
        "Where's your dream destination?",
        "Travel stories are the best! ✈️",
        "I love exploring new places too!",
        "Any travel tips to share?",
    ]),
    (("music", "song"), [
        "What's your favorite genre? 🎵",
        "I love discovering new music!",
        "Do you play any instruments?",
        "Music connects people so well!",
    ]),
]

DEFAULT_REPLIES = [
    "That's really interesting!",
    "Tell me more about that!",
    "I love your perspective on this!",
    "We have so much to talk about!",
    "That sounds amazing!",
    "I couldn't agree more!",
]


def contextual_replies(last_message: Optional[str]) -> List[str]:
    if not last_message:
        return list(GREETINGS)
    text = last_message.lower()
    for keywords, replies in _TOPICS:
        if any(k in text for k in keywords):
            return list(replies)
    return list(DEFAULT_REPLIES)

"""Starter prompt catalog loaded by ``flask seed-prompts``."""

from turnroom.services.turns.constants import PROMPT_PHOTO, PROMPT_TEXT

CATALOG = {
    'fun': [
        ("What's the most useless talent you have?", PROMPT_TEXT),
        ("If you could only eat one snack forever, what would it be?", PROMPT_TEXT),
        ("What's the weirdest thing you've ever googled?", PROMPT_TEXT),
        ("Which fictional world would you move to tomorrow?", PROMPT_TEXT),
        ("Show us the last thing that made you laugh.", PROMPT_PHOTO),
        ("Snap a photo of whatever is to your left right now.", PROMPT_PHOTO),
    ],
    'family': [
        ("What's a family tradition you want to keep forever?", PROMPT_TEXT),
        ("Which relative would survive a zombie apocalypse longest?", PROMPT_TEXT),
        ("What meal reminds you most of home?", PROMPT_TEXT),
        ("Share an old photo you love.", PROMPT_PHOTO),
    ],
    'deep': [
        ("What belief did you hold five years ago that you've since let go?", PROMPT_TEXT),
        ("When do you feel most like yourself?", PROMPT_TEXT),
        ("What's something you're quietly proud of?", PROMPT_TEXT),
        ("Take a photo of a place that makes you feel calm.", PROMPT_PHOTO),
    ],
    'flirty': [
        ("What's your idea of a perfect first date?", PROMPT_TEXT),
        ("What's the best compliment you've ever received?", PROMPT_TEXT),
        ("Show us your outfit today.", PROMPT_PHOTO),
    ],
    'couple': [
        ("What's your favorite memory of us so far?", PROMPT_TEXT),
        ("Where should our next trip be and why?", PROMPT_TEXT),
        ("What's a small thing I do that you love?", PROMPT_TEXT),
        ("Share a photo from a day we spent together.", PROMPT_PHOTO),
    ],
}

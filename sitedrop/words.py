"""Word lists for human-readable deploy keys (adjective-color-noun)."""

from __future__ import annotations

import secrets

COLORS: tuple[str, ...] = (
    "red", "green", "blue", "yellow", "orange",
    "purple", "pink", "brown", "black", "white",
)

ADJECTIVES: tuple[str, ...] = (
    "smol", "tiny", "giant", "interesting", "smart", "bright", "dull",
    "extreme", "beautiful", "pretty", "dark", "epic", "salty", "silly",
    "funny", "lame", "lazy", "loud", "lucky", "mad", "mean", "mighty",
    "mysterious", "nasty", "odd", "old", "powerful", "quiet", "rapid",
    "scary", "shiny", "shy", "smooth", "sour", "spicy", "stupid", "sweet",
    "tasty", "terrible", "ugly", "unusual", "vast", "wet", "wild", "witty",
    "wrong", "zany", "zealous", "zippy", "zombie", "zorro",
)

NOUNS: tuple[str, ...] = (
    "cat", "dog", "mouse", "pig", "cow", "horse", "sheep", "chicken",
    "duck", "goat", "panda", "tiger", "lion", "elephant", "monkey", "bird",
    "fish", "snake", "frog", "turtle", "hamster", "penguin", "kangaroo",
    "whale", "dolphin", "crocodile", "snail", "ant", "bee", "beetle",
    "butterfly", "dragon", "eagle", "giraffe", "lizard", "rabbit", "spider",
    "zebra",
)


def make_key() -> str:
    """Return a random key such as ``zany-purple-tiger``."""
    return "-".join((
        secrets.choice(ADJECTIVES),
        secrets.choice(COLORS),
        secrets.choice(NOUNS),
    ))

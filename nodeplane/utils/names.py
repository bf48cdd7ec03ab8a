"""Human-readable random names for nodes, sessions and generated keys."""

from __future__ import annotations

import secrets

_ADJECTIVES = (
    "amber", "ancient", "autumn", "billowing", "bitter", "black", "blue", "bold",
    "brave", "breezy", "bright", "broken", "calm", "cold", "cool", "crimson",
    "curly", "damp", "dark", "dawn", "delicate", "divine", "dry", "empty",
    "falling", "fancy", "flat", "floral", "fragrant", "frosty", "gentle", "green",
    "hidden", "holy", "icy", "jolly", "late", "lingering", "little", "lively",
    "long", "lucky", "misty", "morning", "muddy", "nameless", "noisy", "odd",
    "old", "orange", "patient", "plain", "polished", "proud", "purple", "quiet",
    "rapid", "raspy", "red", "restless", "rough", "round", "royal", "shiny",
    "shrill", "shy", "silent", "small", "snowy", "soft", "solitary", "sparkling",
    "spring", "square", "steep", "still", "summer", "super", "sweet", "swift",
    "throbbing", "tight", "tiny", "twilight", "wandering", "weathered", "white",
    "wild", "winter", "wispy", "withered", "yellow", "young",
)

_NOUNS = (
    "art", "band", "bar", "base", "bird", "block", "boat", "bonus", "bread",
    "breeze", "brook", "bush", "butterfly", "cake", "cell", "cherry", "cloud",
    "credit", "darkness", "dawn", "dew", "disk", "dream", "dust", "feather",
    "field", "fire", "firefly", "flower", "fog", "forest", "frog", "frost",
    "glade", "glitter", "grass", "hall", "hat", "haze", "heart", "hill", "king",
    "lab", "lake", "leaf", "limit", "math", "meadow", "mode", "moon", "morning",
    "mountain", "mouse", "mud", "night", "paper", "pine", "poetry", "pond",
    "queen", "rain", "recipe", "resonance", "rice", "river", "salad", "scene",
    "sea", "shadow", "shape", "silence", "sky", "smoke", "snow", "snowflake",
    "sound", "star", "sun", "sunset", "surf", "term", "thunder", "tooth", "tree",
    "truth", "union", "unit", "violet", "voice", "water", "waterfall", "wave",
    "wildflower", "wind", "wood",
)


def random_phrase(words: int, sep: str = "-") -> str:
    """Return ``words`` random words joined by ``sep``; the last one is a noun."""
    if words < 1:
        raise ValueError("words must be >= 1")
    parts = [secrets.choice(_ADJECTIVES) for _ in range(words - 1)]
    parts.append(secrets.choice(_NOUNS))
    return sep.join(parts)


__all__ = ["random_phrase"]

"""Fixed non-generative verse pool used when the primary pipeline fails."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import AbstractSet, Optional, Tuple

from walkworthy.candidates import exclude_verses

NO_CANDIDATES_MESSAGE = "No verse candidates from MCP"


@dataclass(frozen=True)
class FallbackVerse:
    ref: str
    text: str
    encouragement: str


FALLBACK_OPTIONS: Tuple[FallbackVerse, ...] = (
    FallbackVerse(
        ref="Philippians 4:6-7",
        text=(
            "Do not be anxious about anything, but in everything by prayer and supplication "
            "with thanksgiving let your requests be made known to God."
        ),
        encouragement=(
            "God invites you to bring today's stress to Him. Take a pause, breathe, and ask for His peace."
        ),
    ),
    FallbackVerse(
        ref="Isaiah 41:10",
        text=(
            "Fear not, for I am with you; be not dismayed, for I am your God; I will strengthen you, "
            "I will help you, I will uphold you with my righteous right hand."
        ),
        encouragement="You are not facing today alone. Lean on God's strength and let Him hold you steady.",
    ),
    FallbackVerse(
        ref="Psalm 55:22",
        text=(
            "Cast your burden on the Lord, and he will sustain you; "
            "he will never permit the righteous to be moved."
        ),
        encouragement="Lay every burden down in prayer and trust that God will carry what feels too heavy.",
    ),
    FallbackVerse(
        ref="Matthew 11:28-29",
        text=(
            "Come to me, all who labor and are heavy laden, and I will give you rest. Take my yoke upon you, "
            "and learn from me, for I am gentle and lowly in heart, and you will find rest for your souls."
        ),
        encouragement=(
            "When your schedule feels relentless, rest in Jesus. He is gentle and ready to refresh your soul."
        ),
    ),
    FallbackVerse(
        ref="2 Timothy 1:7",
        text="For God gave us a spirit not of fear but of power and love and self-control.",
        encouragement=(
            "Step into today with courage: God equips you with a spirit of power, love, and a clear mind."
        ),
    ),
)


def pick_fallback(excluded: AbstractSet[str], rng: Optional[random.Random] = None) -> FallbackVerse:
    """Pick from the pool minus exclusions, or from the whole pool if that leaves nothing."""

    pool = exclude_verses(FALLBACK_OPTIONS, excluded) or list(FALLBACK_OPTIONS)
    return (rng or random).choice(pool)

"""Deterministic daily quote selection."""

from __future__ import annotations

import hashlib
import logging

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "inspirational"

# Display names sent by the mobile client mapped to library keys.
CATEGORY_ALIASES: dict[str, str] = {
  "buddhist": "buddhist",
  "christian": "christian",
  "good feelings": "good_feelings",
  "hindu": "hindu",
  "inspirational": "inspirational",
  "jewish": "jewish",
  "mindfulness": "mindfulness",
  "muslim": "muslim",
  "philosophical": "philosophical",
  "stoic": "stoic",
  "success": "success",
  "zen": "zen",
}

QUOTE_LIBRARY: dict[str, tuple[str, ...]] = {
  "buddhist": (
    "Peace comes from within. Do not seek it without. - Buddha",
    "What you think, you become. - Buddha",
    "Every morning we are born again. What we do today is what matters most. - Buddha",
  ),
  "christian": (
    "This is the day the Lord has made; let us rejoice and be glad in it. - Psalm 118:24",
    "Be strong and courageous. Do not be afraid. - Joshua 1:9",
    "His mercies are new every morning. - Lamentations 3:23",
  ),
  "good_feelings": (
    "Happiness is not by chance, but by choice. - Jim Rohn",
    "Keep your face always toward the sunshine, and shadows will fall behind you. - Walt Whitman",
    "A smile is the shortest distance between two people. - Victor Borge",
  ),
  "hindu": (
    "You have the right to work, but never to the fruit of work. - Bhagavad Gita",
    "The mind acts like an enemy for those who do not control it. - Bhagavad Gita",
    "Set thy heart upon thy work, but never on its reward. - Bhagavad Gita",
  ),
  "inspirational": (
    "Discipline is remembering what you want. - David Campbell",
    "The secret of getting ahead is getting started. - Mark Twain",
    "It always seems impossible until it's done. - Nelson Mandela",
    "Act as if what you do makes a difference. It does. - William James",
  ),
  "jewish": (
    "If I am not for myself, who will be for me? And if not now, when? - Hillel",
    "Who is wise? One who learns from every person. - Pirkei Avot",
    "The day is short, the work is much. - Rabbi Tarfon",
  ),
  "mindfulness": (
    "The present moment is filled with joy and happiness. If you are attentive, you will see it. - Thich Nhat Hanh",
    "Wherever you go, there you are. - Jon Kabat-Zinn",
    "Breathe. Let go. And remind yourself that this very moment is the only one you know you have for sure. - Oprah Winfrey",
  ),
  "muslim": (
    "Verily, with hardship comes ease. - Quran 94:6",
    "The best of people are those that bring most benefit to the rest of mankind. - Prophet Muhammad",
    "Be in this world as if you were a stranger or a traveler. - Prophet Muhammad",
  ),
  "philosophical": (
    "The unexamined life is not worth living. - Socrates",
    "We are what we repeatedly do. Excellence, then, is not an act, but a habit. - Will Durant",
    "He who has a why to live can bear almost any how. - Friedrich Nietzsche",
  ),
  "stoic": (
    "You have power over your mind, not outside events. Realize this, and you will find strength. - Marcus Aurelius",
    "We suffer more often in imagination than in reality. - Seneca",
    "No man is free who is not master of himself. - Epictetus",
  ),
  "success": (
    "Success is the sum of small efforts, repeated day in and day out. - Robert Collier",
    "Don't watch the clock; do what it does. Keep going. - Sam Levenson",
    "Quality is not an act, it is a habit. - Aristotle",
  ),
  "zen": (
    "Before enlightenment, chop wood, carry water. After enlightenment, chop wood, carry water. - Zen proverb",
    "In the beginner's mind there are many possibilities. - Shunryu Suzuki",
    "Sitting quietly, doing nothing, spring comes, and the grass grows by itself. - Zen proverb",
  ),
}


def resolve_category(preference: str | None) -> str:
  """Map a client display name or library key to a library key."""
  if not preference:
    return DEFAULT_CATEGORY
  normalized = preference.strip().lower().replace("_", " ")
  category = CATEGORY_ALIASES.get(normalized)
  if category is None:
    logger.info("Unknown quote preference %r, using %s", preference, DEFAULT_CATEGORY)
    return DEFAULT_CATEGORY
  return category


def daily_quote(preference: str | None, local_date: str) -> str:
  """Pick the same quote for a category on a given local date."""
  category = resolve_category(preference)
  quotes = QUOTE_LIBRARY[category]
  digest = hashlib.sha256(f"{category}:{local_date}".encode()).digest()
  return quotes[int.from_bytes(digest[:8], "big") % len(quotes)]

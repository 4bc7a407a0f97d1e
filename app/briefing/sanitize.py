"""Clean generated scripts so they read naturally through text-to-speech."""

from __future__ import annotations

import re

PAUSE_MARKER = "[pause]"

_PAUSE_RE = re.compile(r"\[\s*pause\s*\]", re.IGNORECASE)
_SENTINEL = "\x00"
_MD_LINK_RE = re.compile(r"\[([^\[\]]+)\]\((?:https?://|www\.)[^)]*\)")
_BRACKETED_RE = re.compile(r"\[[^\[\]]*\]")
_URL_RE = re.compile(r"(?:https?://|www\.)\S+", re.IGNORECASE)
_MARKDOWN_RE = re.compile(r"[*_#`>~\[\]]+")
_BULLET_RE = re.compile(r"^[ \t]*(?:[-•][ \t]+)+", re.MULTILINE)
_PARAGRAPH_RE = re.compile(r"\n\s*\n")
_LABEL_RE = re.compile(r"^(?:(?:greeting|weather|calendar|news|sports|stocks|markets|quote|closing|close)\s*:\s*)+", re.IGNORECASE)
_GREETING_RE = re.compile(r"^(good morning[^.!?]*[.!?])(?:\s*good morning[^.!?]*[.!?])+", re.IGNORECASE)
_SPACE_BEFORE_PUNCT_RE = re.compile(r"\s+([,.;:!?])")
_REPEATED_COMMA_RE = re.compile(r",(?:\s*,)+")
_ELLIPSIS_RE = re.compile(r"\.{3}")
_DOT_RUN_RE = re.compile(r"\.{4,}")
_DASH_RUN_RE = re.compile(r"\s*-{2,}\s*")

MAX_ELLIPSES_PER_PARAGRAPH = 1
MAX_EM_DASHES_PER_PARAGRAPH = 2
# Stripping one layer of markup can expose another (a URL split by asterisks, say).
MAX_PASSES = 8


def _cap(pattern: str | re.Pattern[str], text: str, limit: int, replacement: str) -> str:
  """Keep the first ``limit`` matches and replace the rest."""
  seen = 0

  def _replace(match: re.Match[str]) -> str:
    nonlocal seen
    seen += 1
    return match.group(0) if seen <= limit else replacement

  compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
  return compiled.sub(_replace, text)


def _tidy(text: str) -> str:
  text = re.sub(r"\s+", " ", text).strip()
  text = _SPACE_BEFORE_PUNCT_RE.sub(r"\1", text)
  text = _REPEATED_COMMA_RE.sub(",", text)
  return text.lstrip(",;: ").strip()


def _strip_labels(line: str) -> str:
  text = _tidy(line)
  previous = None
  while text != previous:
    previous = text
    text = _tidy(_LABEL_RE.sub("", text))
  return text


def _normalize_pauses(text: str) -> str:
  """Spell out ellipses and dash runs, then cap them per paragraph."""
  text = _DASH_RUN_RE.sub(" — ", text.replace("…", "..."))
  # Tidying can glue ". ..." into a longer dot run, so collapse afterwards.
  text = _DOT_RUN_RE.sub("...", _tidy(text))
  text = _cap(_ELLIPSIS_RE, text, MAX_ELLIPSES_PER_PARAGRAPH, ",")
  text = _cap("—", text, MAX_EM_DASHES_PER_PARAGRAPH, ", ")
  return _tidy(text)


def _clean_paragraph(paragraph: str) -> str:
  # Labels are matched per line so list-style sections lose theirs too.
  text = _tidy(" ".join(_strip_labels(line) for line in paragraph.splitlines()))
  return _normalize_pauses(text)


def _sanitize_pass(text: str) -> str:
  text = _PAUSE_RE.sub(_SENTINEL, text.replace(_SENTINEL, ""))
  text = _MD_LINK_RE.sub(r"\1", text)
  text = _BRACKETED_RE.sub(" ", text)
  text = _URL_RE.sub(" ", text)
  text = _BULLET_RE.sub("", text)
  text = _MARKDOWN_RE.sub("", text)

  paragraphs = [_clean_paragraph(part) for part in _PARAGRAPH_RE.split(text.strip())]
  paragraphs = [part for part in paragraphs if part]
  if paragraphs:
    # Keep the first greeting when the model repeats it.
    paragraphs[0] = _tidy(_GREETING_RE.sub(lambda match: match.group(1), paragraphs[0]))

  return "\n\n".join(paragraphs).replace(_SENTINEL, PAUSE_MARKER)


def sanitize_for_speech(raw: str) -> str:
  """Strip markup, links, labels and excess pause punctuation.

  ``[pause]`` markers survive; every other bracketed direction is removed.
  Paragraph breaks are kept. Passes repeat until the text stops changing, so
  applying the function twice gives the same text.
  """
  if not raw:
    return ""
  text = _sanitize_pass(raw)
  for _ in range(MAX_PASSES):
    cleaned = _sanitize_pass(text)
    if cleaned == text:
      break
    text = cleaned
  return text


def count_words(text: str) -> int:
  """Count spoken words, ignoring pause markers and bare punctuation."""
  cleaned = _PAUSE_RE.sub(" ", text or "")
  return sum(1 for token in cleaned.split() if any(char.isalnum() for char in token))

import re

UI_PREFIX_RE = re.compile(r"^(?:Play|Resume|My List|More Info|Rate|Thumbs Up|Thumbs Down)\b\s*", re.IGNORECASE)
PUNCTUATION_RE = re.compile(r"[:\-–—]")
TRAILING_YEAR_RE = re.compile(r"\s*\(?\d{4}\)?$")
NON_WORD_RE = re.compile(r"[^\w\s]")
LEADING_ARTICLE_RE = re.compile(r"^(?:The|A|An)\s+", re.IGNORECASE)
WHITESPACE_RE = re.compile(r"\s+")


def _collapse(value: str) -> str:
    return WHITESPACE_RE.sub(" ", value).strip()


def clean_title(raw: str | None) -> str:
    """Strip catalog UI action labels ("Play", "Resume", ...) from a rendered title."""
    if not raw:
        return ""
    return UI_PREFIX_RE.sub("", _collapse(raw)).strip()


def normalize_key(title: str) -> str:
    return _collapse(title).casefold()


def title_variations(title: str) -> list[str]:
    """Candidate spellings of ``title`` to try against a provider.

    The original title always comes first. Each rewrite is derived from the
    original (not from the previous rewrite) and is only kept when it differs
    from every spelling already collected.
    """
    variations = [title]

    def add(candidate: str) -> None:
        if candidate and candidate not in variations:
            variations.append(candidate)

    add(_collapse(PUNCTUATION_RE.sub(" ", title)))
    add(TRAILING_YEAR_RE.sub("", title).strip())
    add(_collapse(NON_WORD_RE.sub(" ", title)))
    add(LEADING_ARTICLE_RE.sub("", title).strip())
    return variations

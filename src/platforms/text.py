"""
Text helpers shared by the platform adapters.

Provides:
    - smart_truncate(): Shorten text at a word boundary, keeping hashtags
    - truncation_warning(): The warning recorded on a truncated post
"""

import re

HASHTAG_RE = re.compile(r"#\w+")
_WHITESPACE_RE = re.compile(r"\s+")
ELLIPSIS = "..."


def smart_truncate(text: str, limit: int) -> str:
    """Shorten *text* to at most *limit* characters, preserving hashtags.

    Hashtags are pulled out of the body and re-appended after the
    truncated body as ``"<body>... #tag1 #tag2"``.  The body is cut at a
    word boundary.  If the hashtags alone do not fit, the text is hard-cut
    at *limit*.

    Args:
        text: The original text.
        limit: Maximum length of the result.

    Returns:
        *text* unchanged if it already fits, otherwise the shortened text.
    """
    if len(text) <= limit:
        return text

    hashtags = HASHTAG_RE.findall(text)
    hashtag_text = " ".join(hashtags)
    body = _WHITESPACE_RE.sub(" ", HASHTAG_RE.sub("", text)).strip()

    # "... " separator between the body and the hashtags
    reserved = len(hashtag_text) + (len(ELLIPSIS) + 1 if hashtag_text else len(ELLIPSIS))
    available = limit - reserved
    if available <= 0:
        return text[:limit]

    kept = ""
    for word in body.split(" "):
        next_length = len(kept) + (1 if kept else 0) + len(word)
        if next_length > available:
            break
        kept = f"{kept} {word}" if kept else word

    if hashtag_text:
        return f"{kept}{ELLIPSIS} {hashtag_text}"
    return f"{kept}{ELLIPSIS}"


def truncation_warning(original_length: int, final_length: int) -> str:
    return (
        f"Post was auto-truncated from {original_length} "
        f"to {final_length} characters"
    )


__all__ = ["smart_truncate", "truncation_warning", "HASHTAG_RE"]

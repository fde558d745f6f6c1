from __future__ import annotations


def normalize_tag(text: str) -> str:
    """Tag names are stored lowercase with underscores; fold user input the same way."""
    return text.strip().lower().replace(" ", "_")


def char_to_byte(text: str, char_index: int) -> int:
    """
    Convert a character cursor (what text widgets report) to a UTF-8 byte offset.
    Cursors past the end clamp to len(text.encode()).
    """
    if char_index <= 0:
        return 0
    return len(text[:char_index].encode("utf-8"))


def byte_to_char(text: str, byte_index: int) -> int:
    """
    Convert a UTF-8 byte offset back to a character index.
    An offset inside a multi-byte sequence floors to the start of that character.
    """
    if byte_index <= 0:
        return 0
    head = text.encode("utf-8")[:byte_index]
    return len(head.decode("utf-8", errors="ignore"))

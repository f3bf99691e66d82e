"""
Splitting of outbound text into chunks the service accepts.
"""

MAX_MESSAGE_CHARS = 4000
MAX_MESSAGE_LINES = 25

BREAK_CHARACTERS = "\n\t .,/\\-(){}[]|=+*&"


def _last_break(window: str) -> int:
    """Index of the last break character after position 0, or -1."""
    return max(window.rfind(c, 1) for c in BREAK_CHARACTERS)


def _after_nth_newline(window: str, n: int) -> int:
    index = 0
    for _ in range(n):
        index = window.index("\n", index) + 1
    return index


def split_message(
    text: str,
    max_chars: int = MAX_MESSAGE_CHARS,
    max_lines: int = MAX_MESSAGE_LINES,
) -> list[str]:
    """
    Split text into chunks of at most max_chars characters and max_lines newlines.

    Breaks are chosen in order of preference:
    - just after the max_lines-th newline, when the window has too many lines
    - at the last newline in the window
    - at the last whitespace or punctuation character in the window
    - hard, at exactly max_chars

    A newline or punctuation character used as a break point is dropped.
    Nothing is dropped for the line-limit and hard breaks. No chunk is empty.

    Args:
        text: Text to send
        max_chars: Maximum characters per chunk
        max_lines: Maximum newline characters per chunk

    Returns:
        Chunks in sending order
    """
    if max_chars < 1:
        raise ValueError("max_chars must be at least 1")
    if max_lines < 1:
        raise ValueError("max_lines must be at least 1")

    chunks = []

    while text:
        if len(text) <= max_chars and text.count("\n") <= max_lines:
            chunks.append(text)
            break

        window = text[:max_chars]
        skip = 1

        if window.count("\n") > max_lines:
            cut = _after_nth_newline(window, max_lines)
            skip = 0
        else:
            cut = window.rfind("\n", 1)
            if cut == -1:
                cut = _last_break(window)
            if cut == -1:
                cut = max_chars
                skip = 0

        chunks.append(text[:cut])
        text = text[cut + skip :]

    return chunks

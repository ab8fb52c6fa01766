"""
Reply splitting for natural multi-message delivery.

AI replies usually come as a few paragraphs. Sending each paragraph as its own
WhatsApp message reads much more like a person typing than one long block.
"""
import re

# One or more blank (or whitespace-only) lines
PARAGRAPH_BREAK = re.compile(r"\n[ \t]*(?:\r?\n[ \t]*)+")


def split_messages(text: str) -> list[str]:
    """
    Split an AI reply into independently sendable chunks.

    Splits on blank lines, strips every chunk and drops empty ones, keeping
    their order. Text without any blank line comes back as a single
    chunk.

    Args:
        text: The full AI reply

    Returns:
        Ordered list of chunks (empty only when text is blank)

    Example:
        >>> split_messages("A\\n\\nB\\n\\nC")
        ['A', 'B', 'C']
    """
    if not text or not text.strip():
        return []

    normalized = text.replace("\r\n", "\n")
    chunks = [chunk.strip() for chunk in PARAGRAPH_BREAK.split(normalized)]
    chunks = [chunk for chunk in chunks if chunk]

    return chunks or [normalized.strip()]

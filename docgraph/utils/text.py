
CHUNK_SIZE = 512
PREVIEW_LENGTH = 500
EXCERPT_LENGTH = 2000

def chunk_text(text: str, size: int = CHUNK_SIZE) -> list[str]:
    """Split text into consecutive spans of at most `size` characters.

    Purely by character count: no word or sentence awareness, no overlap.
    The last span may be shorter. Empty text gives no chunks.
    """
    if size <= 0:
        raise ValueError("size must be a positive integer")
    if not text:
        return []
    return [text[i:i + size] for i in range(0, len(text), size)]

def content_preview(text: str, limit: int = PREVIEW_LENGTH) -> str:
    return (text or "")[:limit]

def extraction_excerpt(text: str, limit: int = EXCERPT_LENGTH) -> str:
    return (text or "")[:limit]

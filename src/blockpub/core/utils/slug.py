"""File-name normalization for uploaded artifacts"""

import re


def normalize_name(name: str) -> str:
    """Lowercase `name`, replacing every non-alphanumeric character with '_'."""
    return re.sub(r'[^a-z0-9]', '_', name, flags=re.IGNORECASE).lower()


def image_filename(block_name: str, content_type: str) -> str:
    """Cover image file name: normalized block name plus the MIME subtype ('image/png' -> '.png')."""
    ext = content_type.split('/', 1)[1].split(';', 1)[0].strip() if '/' in content_type else 'bin'
    return f"{normalize_name(block_name) or 'block'}.{ext}"

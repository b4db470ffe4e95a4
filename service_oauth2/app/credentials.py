"""
Bearer credential extraction.
"""

from typing import Optional


def extract_bearer_token(header_value: Optional[str]) -> str:
    """
    Strip transport framing from a raw Authorization header value.

    Removes the first "Authorization:" and the first "Bearer" (both case
    sensitive) and surrounding whitespace. The remainder is not validated
    here; later steps reject it if it is not a token.
    """
    value = header_value or ""
    value = value.replace("Authorization:", "", 1)
    value = value.replace("Bearer", "", 1)
    return value.strip()

import html

import bleach


def clean_text(value) -> str:
    """Strip every tag and keep the stored text plain (escaping happens at render time)."""
    cleaned = bleach.clean((value or '').strip(), tags=[], attributes={}, strip=True)
    return html.unescape(cleaned).strip()

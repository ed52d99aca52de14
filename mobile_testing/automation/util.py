import re
from datetime import datetime
from typing import Optional

_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


def safe_test_name(test_name: str) -> str:
    """
    Reduce a pytest node name like 'test_login[standard_user]' to a filename-safe token.
    Returns 'test' if nothing usable remains. Robust against None/empty input.
    """
    if not test_name:
        return "test"
    base = re.sub(r'[^0-9A-Za-z_.-]+', '_', str(test_name)).strip('_.')
    return base or 'test'


def ensure_png_name(name: str) -> str:
    """Append '.png' unless the name already ends with it (case-insensitive)."""
    name = (name or '').strip() or f"screenshot_{datetime.now().strftime(_TIMESTAMP_FORMAT)}"
    return name if name.lower().endswith('.png') else f"{name}.png"


def failure_screenshot_name(test_name: str, when: Optional[datetime] = None) -> str:
    """
    Return 'FAILED_<test>_<YYYY-mm-dd_HH-MM-SS>.png' for a failed test.
    """
    stamp = (when or datetime.now()).strftime(_TIMESTAMP_FORMAT)
    return f"FAILED_{safe_test_name(test_name)}_{stamp}.png"

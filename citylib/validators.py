import re
from typing import Optional

EMAIL_PATTERN = re.compile(r"^[\w.-]+@[\w.-]+\.[A-Za-z]{2,}$", re.ASCII)


class TextValidator:
    """Required-field checks for catalog input."""

    @staticmethod
    def is_blank(text: Optional[str]) -> bool:
        return text is None or not text.strip()

    @staticmethod
    def normalize(text: Optional[str]) -> str:
        if text is None:
            return ""
        return text.strip()


class EmailValidator:
    """Simple email check: word/dot/hyphen local part, ``@``, domain, 2+ letter suffix."""

    @staticmethod
    def is_valid_email(email: Optional[str]) -> bool:
        if not email:
            return False
        return EMAIL_PATTERN.fullmatch(email) is not None

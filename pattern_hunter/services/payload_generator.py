"""Random payload generation for search tasks."""

import logging
import random
from typing import Optional

logger = logging.getLogger(__name__)


class PayloadGenerator:
    """Fills a URL template's placeholder with a random string.

    If the template lacks the placeholder the random string is appended.
    """

    def __init__(self, url_template: str, placeholder: str, length: int, charset: str,
                 rng: Optional[random.Random] = None):
        if length < 1:
            raise ValueError("length must be at least 1")
        if not charset:
            raise ValueError("charset cannot be empty")
        self.url_template = url_template
        self.placeholder = placeholder
        self.length = length
        self.charset = charset
        self._rng = rng or random.Random()
        self._has_placeholder = bool(placeholder) and placeholder in url_template
        if not self._has_placeholder:
            logger.warning("Placeholder missing in url_template. Appending random string.")

    @classmethod
    def from_config(cls, config) -> "PayloadGenerator":
        return cls(
            url_template=config.url_template,
            placeholder=config.random_string_placeholder,
            length=config.random_string_length,
            charset=config.random_string_charset,
        )

    def random_string(self) -> str:
        return "".join(self._rng.choice(self.charset) for _ in range(self.length))

    def __call__(self) -> str:
        random_string = self.random_string()
        if self._has_placeholder:
            return self.url_template.replace(self.placeholder, random_string)
        return self.url_template + random_string

"""
Display titles for mirrored proposals and poll options.

Titles come from a key → text catalog; a missing key falls back to the key
itself, so a raw template also works. ``{{field}}`` placeholders are filled
from the event's return values.
"""
import re
from typing import Any, Dict, Mapping, Optional

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")

DEFAULT_CATALOG: Dict[str, str] = {
    "moloch-no": "No",
    "moloch-yes": "Yes",
}


class TitleRenderer:
    def __init__(self, catalog: Optional[Mapping[str, str]] = None, choice_prefix: str = "moloch"):
        self.catalog: Dict[str, str] = {**DEFAULT_CATALOG, **(catalog or {})}
        self.choice_prefix = choice_prefix

    def translate(self, key: str) -> str:
        return self.catalog.get(key, key)

    def render(self, template_key: Optional[str], values: Mapping[str, Any]) -> str:
        """Translate ``template_key`` and substitute its placeholders.

        Placeholders without a value render as an empty string.
        """
        if not template_key:
            return ""

        def _substitute(match: "re.Match[str]") -> str:
            value = values.get(match.group(1))
            return "" if value is None else str(value)

        return _PLACEHOLDER.sub(_substitute, self.translate(template_key))

    def choice_label(self, choice: str) -> str:
        return self.translate(f"{self.choice_prefix}-{choice}")

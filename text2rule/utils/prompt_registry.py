"""
Prompt registry.

Maps a prompt key to its template and per-key attributes (for example the
consistency threshold and retry ceiling of the consistency check). Defaults
come from text2rule.prompts; an optional XML file can override or add keys:

    <prompts>
      <prompt key="consistency_check_prompt" consistency_threshold="0.85" max_retries="2">
        ...template...
      </prompt>
    </prompts>
"""
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from text2rule.prompts import DEFAULT_PROMPTS

logger = logging.getLogger(__name__)


class PromptNotFoundError(KeyError):
    """Raised when a prompt key is not registered."""
    pass


@dataclass
class PromptTemplate:
    """A prompt template and its attributes."""
    key: str
    template: str
    attributes: dict[str, str] = field(default_factory=dict)


def fill_template(template: str, values: dict[str, str]) -> str:
    """
    Replace each ``{{ $json.<token> }}`` placeholder with its value.

    ``values`` is keyed by the token between ``$json`` and ``}}``, e.g.
    ``".input_text"`` or ``"['output.normal_statements']"``. Substitution is a
    single pass, so placeholders that appear inside inserted values are left
    alone. Unknown placeholders stay in the output.
    """
    if not values:
        return template

    placeholders = {f"{{{{ $json{token} }}}}": str(value) for token, value in values.items()}
    pattern = re.compile("|".join(re.escape(p) for p in placeholders))
    return pattern.sub(lambda m: placeholders[m.group(0)], template)


class PromptRegistry:
    """Lookup of prompt templates by key."""

    def __init__(self, prompts_file: Optional[str] = None):
        self._prompts: dict[str, PromptTemplate] = {}
        for key, entry in DEFAULT_PROMPTS.items():
            self.register(key, entry["template"], entry.get("attributes"))

        if prompts_file:
            self.load_xml(prompts_file)

        logger.info(f"PromptRegistry initialized with {len(self._prompts)} prompts")

    def register(self, key: str, template: str, attributes: Optional[dict] = None) -> None:
        self._prompts[key] = PromptTemplate(
            key=key,
            template=template,
            attributes={k: str(v) for k, v in (attributes or {}).items()},
        )

    def load_xml(self, path: str) -> int:
        """Load prompts from an XML file. Returns the number of prompts loaded."""
        xml_path = Path(path)
        root = ET.parse(xml_path).getroot()

        loaded = 0
        for element in root.iter("prompt"):
            key = element.get("key")
            if not key:
                logger.warning(f"Skipping prompt without key in {xml_path}")
                continue
            attributes = {k: v for k, v in element.attrib.items() if k != "key"}
            template = (element.text or "").strip()
            self.register(key, template, attributes)
            loaded += 1

        logger.info(f"Loaded {loaded} prompts from {xml_path}")
        return loaded

    def get(self, key: str) -> str:
        try:
            return self._prompts[key].template
        except KeyError:
            raise PromptNotFoundError(key) from None

    def get_attribute(self, key: str, name: str, default: Optional[str] = None) -> Optional[str]:
        prompt = self._prompts.get(key)
        if prompt is None:
            return default
        return prompt.attributes.get(name, default)

    def get_float(self, key: str, name: str, default: float) -> float:
        value = self.get_attribute(key, name)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            logger.warning(f"Attribute {name}={value!r} on {key} is not a number, using {default}")
            return default

    def get_int(self, key: str, name: str, default: int) -> int:
        value = self.get_attribute(key, name)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Attribute {name}={value!r} on {key} is not an integer, using {default}")
            return default

    def keys(self) -> list[str]:
        return list(self._prompts)

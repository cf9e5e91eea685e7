"""
AI Suggester module for XML structure detection.
Asks a chat model for an item root path and field mappings, or falls back
to the local heuristic detector. Output is a raw suggestion payload meant
for SuggestionNormalizer; nothing here is trusted without review.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

from .errors import XmlParseError
from .structure_detector import StructureDetector
from .utils import compute_bytes_hash, truncate_string
from .xml_document import parse_xml

logger = logging.getLogger(__name__)


DETECTION_MODES = ('detailedFields', 'dynamicBlock')
MAX_SAMPLE_CHARS = 20000

_SHARED_RULES = """Return ONLY a JSON object, no other text.
Use XPath expressions. Paths in "mappings" should be relative to "itemRootPath" when one is given.
For repeated elements (several images, categories) give one XPath that selects all of them.
Prefer the CDATA/text content of elements; use "@name" for attributes."""

_DETAILED_PROMPT = """You analyse XML product feeds and propose field mappings.
Output schema:
{"itemRootPath": "absolute XPath of one item, e.g. /catalog/products/product",
 "mappings": [{"fieldName": "Name", "xpath": "name/text()"}]}
Look for identifiers (ID, SKU, EAN), names, descriptions, prices, brands, URLs, stock and categories.
When field names are data, e.g. <attribute><name>Color</name><value>Red</value></attribute>,
emit one mapping per key with fieldName "Color" and xpath "attributes/attribute[name/text()='Color']/value/text()".
When the key is an attribute, e.g. <feature name="Material">Cotton</feature>,
use xpath "features/feature[@name='Material']/text()".
""" + _SHARED_RULES

_DYNAMIC_BLOCK_PROMPT = """You analyse XML product feeds and separate fixed fields from ONE repeating key/value block.
Output schema:
{"itemRootPath": "absolute XPath of one item",
 "mappings": [{"fieldName": "Name", "xpath": "name/text()"}],
 "dynamicBlockMapping": {
   "repeatingElementXPath": "XPath of the repeating key/value elements, e.g. attributes/attribute",
   "keySource": {"from": "attribute | childElementText | repeatingElementText", "identifier": "name"},
   "valueSource": {"from": "attribute | childElementText | repeatingElementText | text", "identifier": "value"}}}
Fields covered by the dynamic block must NOT appear in "mappings".
""" + _SHARED_RULES


class AISuggester:
    """Generates structure suggestions from a model or the local detector."""

    def __init__(self, ai_config: Dict[str, Any], detector: Optional[StructureDetector] = None):
        """
        Initialize suggester.

        Args:
            ai_config: AI configuration (provider, model, api key or env var, timeout)
            detector: Structure detector used by the 'local' provider
        """
        self.ai_config = ai_config
        self.provider = ai_config.get('provider', 'local')
        self.model = ai_config.get('model', 'gpt-4o-mini')
        self.timeout = ai_config.get('timeout', 30)
        self.api_key = ai_config.get('api_key') or os.environ.get(ai_config.get('api_key_env', 'OPENAI_API_KEY'))
        self.detector = detector or StructureDetector()
        self._cache: Dict[str, Dict[str, Any]] = {}

    def suggest_structure(self, xml_sample: str, mode: str = 'detailedFields') -> Dict[str, Any]:
        """
        Suggest an item root path and mappings for an XML sample.

        Args:
            xml_sample: XML text representing one or more items
            mode: 'detailedFields' or 'dynamicBlock'

        Returns:
            Raw suggestion payload ({} when no suggestion could be produced)
        """
        if mode not in DETECTION_MODES:
            raise ValueError(f"Unknown detection mode: {mode}")

        if len(xml_sample) > MAX_SAMPLE_CHARS:
            logger.warning(f"XML sample truncated from {len(xml_sample)} to {MAX_SAMPLE_CHARS} characters")
            xml_sample = xml_sample[:MAX_SAMPLE_CHARS]

        cache_key = compute_bytes_hash(f"{self.provider}:{self.model}:{mode}:{xml_sample}")
        if cache_key in self._cache:
            logger.debug("Using cached suggestion")
            return self._cache[cache_key]

        if self.provider == 'local':
            suggestion = self._local_suggest(xml_sample)
        else:
            suggestion = self._ai_suggest(xml_sample, mode)

        if suggestion:
            self._cache[cache_key] = suggestion
        return suggestion

    def _local_suggest(self, xml_sample: str) -> Dict[str, Any]:
        """Heuristic detection, returned in the same payload shape a model would use."""
        try:
            doc = parse_xml(xml_sample)
        except XmlParseError as e:
            logger.error(f"Local suggester could not parse sample: {e}")
            return {}

        profile = self.detector.detect(doc).profile
        mappings = []
        for mapping in profile.field_mappings:
            entry = mapping.to_dict()
            mappings.append({
                'fieldName': entry['header'],
                'xpath': entry['sourcePath'],
                'isDynamicAttributeMapping': entry['isDynamicAttributeMapping'],
            })
        return {'itemRootPath': profile.item_root_path, 'mappings': mappings}

    def _ai_suggest(self, xml_sample: str, mode: str) -> Dict[str, Any]:
        """Call AI API for suggestions."""
        try:
            if self.provider == 'openai':
                return self._suggest_openai(xml_sample, mode)
            else:
                logger.warning(f"Unknown AI provider: {self.provider}")
                return {}
        except Exception as e:
            logger.error(f"Error calling AI suggester: {e}")
            return {}

    def _suggest_openai(self, xml_sample: str, mode: str) -> Dict[str, Any]:
        """Call OpenAI chat completions in JSON mode."""
        from openai import OpenAI

        if not self.api_key:
            logger.error("OpenAI provider selected but no API key is configured")
            return {}

        system_prompt = _DETAILED_PROMPT if mode == 'detailedFields' else _DYNAMIC_BLOCK_PROMPT
        client = OpenAI(api_key=self.api_key, timeout=self.timeout)
        response = client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": f"XML sample:\n---XML START---\n{xml_sample}\n---XML END---"},
            ],
            temperature=0.2,
            response_format={"type": "json_object"},
        )

        response_text = response.choices[0].message.content or ''
        try:
            payload = json.loads(response_text)
        except ValueError:
            logger.error(f"Model returned non-JSON content: {truncate_string(response_text)}")
            return {}

        if not isinstance(payload, dict):
            logger.error("Model returned JSON that is not an object")
            return {}
        if 'error' in payload:
            logger.warning(f"Model reported an error: {payload['error']}")
            return {}

        logger.info(f"AI suggester returned {len(payload.get('mappings') or [])} mappings")
        return payload

"""
Tag-name vocabularies used by structure inference.
Overridable through the `vocabulary` section of global_config.yaml.
"""

# Tag names that usually denote one record, in priority order
ITEM_TAG_VOCABULARY = (
    'product',
    'item',
    'entry',
    'record',
    'article',
    'offer',
    'listing',
    'good',
    'merchandise',
    'variant',
    'sku',
)

# Containers that usually hold dynamic key/value holders
CONTAINER_TAG_VOCABULARY = (
    'attributes',
    'attrs',
    'properties',
    'specs',
    'specifications',
    'features',
)

# Key/value holder conventions: key child/attribute and value children in fallback order
DYNAMIC_KEY_NAME = 'name'
DYNAMIC_VALUE_NAMES = ('value', 'label')

# Holder attributes carried over as extra columns when name/value pairs are expanded
HOLDER_ID_ATTRIBUTES = ('id', 'attributeId')

# Richest-element fallback needs at least this many child elements + attributes
MIN_RICH_ELEMENT_FIELDS = 3

# Item attributes at or above this count are proposed as one dynamic '@*' mapping
DYNAMIC_ATTRIBUTE_THRESHOLD = 3

# How deep below the item container tags are searched
MAX_CONTAINER_DEPTH = 3

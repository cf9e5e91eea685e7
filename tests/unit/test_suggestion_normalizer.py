import json

import pytest

from feedmapper.errors import ProfileError
from feedmapper.models import DynamicBlockMapping, KeySourceKind, ProfileStatus, RegularFieldMapping
from feedmapper.suggestion_normalizer import (
    SuggestionNormalizer,
    infer_common_root,
    normalize_suggestion,
    relativize,
    split_path_segments,
)


def test_root_is_inferred_from_absolute_paths():
    raw = [
        {'fieldName': 'Name', 'xpath': '/store/items/item/name/text()'},
        {'fieldName': 'Price', 'xpath': '/store/items/item/price/text()'},
    ]
    assert normalize_suggestion(raw).to_dict() == {
        'itemRootPath': '/store/items/item',
        'mappings': [
            {'fieldName': 'Name', 'path': 'name/text()'},
            {'fieldName': 'Price', 'path': 'price/text()'},
        ],
    }


def test_relative_paths_under_explicit_root_are_unchanged():
    raw = {
        'itemRootPath': '/catalog/product',
        'mappings': [
            {'fieldName': 'ID', 'path': '@id'},
            {'fieldName': 'Name', 'path': 'name/text()'},
        ],
    }
    normalized = normalize_suggestion(raw)
    assert normalized.item_root_path == '/catalog/product'
    assert [m.path for m in normalized.mappings] == ['@id', 'name/text()']


def test_relative_paths_without_root_are_unchanged():
    normalized = normalize_suggestion([{'fieldName': 'Name', 'path': 'name/text()'}])
    assert normalized.item_root_path is None
    assert [m.path for m in normalized.mappings] == ['name/text()']


def test_absolute_paths_under_explicit_root_are_relativized():
    raw = {
        'itemRootPath': '/shop/offer/',
        'suggestedMappings': [
            {'field': 'SKU', 'sourcePath': '/shop/offer/@sku'},
            {'name': 'Title', 'xpath': '/shop/offer/title/text()'},
        ],
    }
    normalized = normalize_suggestion(raw)
    assert normalized.item_root_path == '/shop/offer'
    assert [(m.field_name, m.path) for m in normalized.mappings] == [('SKU', '@sku'), ('Title', 'title/text()')]


def test_json_string_input():
    raw = json.dumps({'mappings': [{'fieldName': 'Name', 'xpath': '/a/b/name/text()'}]})
    normalized = SuggestionNormalizer().normalize(raw)
    assert normalized.item_root_path == '/a/b'
    assert normalized.mappings[0].path == 'name/text()'


@pytest.mark.parametrize('raw', ['not json', 42, None, '"just a string"', '[' * 100000])
def test_unrecognized_input_gives_empty_suggestion(raw):
    normalized = normalize_suggestion(raw)
    assert normalized.mappings == []
    assert normalized.item_root_path is None


def test_incomplete_entries_are_dropped():
    raw = [
        {'fieldName': 'Name'},
        {'xpath': '/a/b/c'},
        'garbage',
        {'fieldName': 'Price', 'xpath': 'price/text()'},
    ]
    assert [m.field_name for m in normalize_suggestion(raw).mappings] == ['Price']


def test_dynamic_entry_may_omit_name():
    raw = {
        'itemRootPath': '/c/p',
        'mappings': [{'xpath': 'attributes/*', 'isDynamicAttributeMapping': True}],
    }
    mapping = normalize_suggestion(raw).mappings[0]
    assert mapping.is_dynamic
    assert mapping.field_name == ''


def test_dynamic_block_path_is_relativized():
    raw = {
        'itemRootPath': '/shop/product',
        'mappings': [{'fieldName': 'Name', 'xpath': 'name/text()'}],
        'dynamicBlockMapping': {
            'repeatingElementXPath': '/shop/product/params/param',
            'keySource': {'from': 'attribute', 'identifier': 'name'},
            'valueSource': {'from': 'text'},
        },
    }
    block = normalize_suggestion(raw).dynamic_block
    assert block.repeating_element_path == 'params/param'
    assert block.key_source.kind == KeySourceKind.ATTRIBUTE


def test_invalid_dynamic_block_is_ignored():
    raw = {
        'itemRootPath': '/shop/product',
        'mappings': [{'fieldName': 'Name', 'xpath': 'name/text()'}],
        'dynamicBlockMapping': {'repeatingElementXPath': 'params/param', 'keySource': {'from': 'nowhere'}},
    }
    normalized = normalize_suggestion(raw)
    assert normalized.dynamic_block is None
    assert len(normalized.mappings) == 1


def test_predicate_paths_share_the_item_root():
    raw = [
        {'fieldName': 'Color', 'xpath': "/c/p/attributes/attribute[name/text()='Color']/value/text()"},
        {'fieldName': 'Name', 'xpath': '/c/p/name/text()'},
    ]
    normalized = normalize_suggestion(raw)
    assert normalized.item_root_path == '/c/p'
    assert normalized.mappings[0].path == "attributes/attribute[name/text()='Color']/value/text()"


def test_common_root_stops_before_attributes():
    assert infer_common_root(['/a/b/@id', '/a/b/name/text()']) == '/a/b'


def test_no_common_root():
    assert infer_common_root(['/a/x', '/b/y']) is None
    assert infer_common_root(['/a/x', 'relative/y']) is None
    assert infer_common_root([]) is None


def test_relativize():
    assert relativize('/a/b', '/a/b') == '.'
    assert relativize('/a/b//c', '/a/b') == './/c'
    assert relativize('/a/b@id', '/a/b') == '@id'
    assert relativize('/a/b/c/text()', '/a/b') == 'c/text()'
    assert relativize('/x/y', '/a/b') == '/x/y'


def test_split_ignores_slashes_in_predicates():
    assert split_path_segments("/a/b[c/d='x/y']") == ['', 'a', "b[c/d='x/y']"]


def test_to_profile():
    raw = {
        'itemRootPath': '/c/p',
        'mappings': [
            {'fieldName': 'Name', 'path': 'name/text()'},
            {'fieldName': 'Attr ', 'path': 'attributes/*', 'isDynamicAttributeMapping': True},
        ],
    }
    profile = normalize_suggestion(raw).to_profile('suggested')
    assert profile.status == ProfileStatus.HEURISTIC
    assert profile.field_mappings[0] == RegularFieldMapping('name/text()', 'Name')
    assert profile.field_mappings[1] == DynamicBlockMapping(source_path='attributes/*', header_prefix='Attr ')


def test_to_profile_without_root_raises():
    with pytest.raises(ProfileError):
        normalize_suggestion([{'fieldName': 'Name', 'path': 'name/text()'}]).to_profile()

import json
import sys
import types
from types import SimpleNamespace

import pytest

from feedmapper.ai_suggester import MAX_SAMPLE_CHARS, AISuggester
from feedmapper.suggestion_normalizer import normalize_suggestion


def _fake_openai(content, calls):
    class _Completions:
        def create(self, **kwargs):
            calls.append(kwargs)
            return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

    class OpenAI:
        def __init__(self, api_key=None, timeout=None):
            self.chat = SimpleNamespace(completions=_Completions())

    module = types.ModuleType('openai')
    module.OpenAI = OpenAI
    return module


def test_local_provider_uses_heuristic_detection(catalog_xml):
    suggestion = AISuggester({'provider': 'local'}).suggest_structure(catalog_xml)
    assert suggestion['itemRootPath'] == '/catalog/products/product'
    assert {'fieldName': 'Name', 'xpath': 'name/text()', 'isDynamicAttributeMapping': False} in suggestion['mappings']

    normalized = normalize_suggestion(suggestion)
    assert normalized.item_root_path == '/catalog/products/product'
    assert any(m.is_dynamic and m.path == 'attributes/*' for m in normalized.mappings)


def test_local_provider_on_malformed_sample():
    assert AISuggester({'provider': 'local'}).suggest_structure('<catalog><product>') == {}


def test_unknown_mode():
    with pytest.raises(ValueError):
        AISuggester({}).suggest_structure('<a/>', mode='everything')


def test_suggestions_are_cached(catalog_xml):
    suggester = AISuggester({'provider': 'local'})
    assert suggester.suggest_structure(catalog_xml) is suggester.suggest_structure(catalog_xml)


def test_openai_provider(monkeypatch):
    payload = {'itemRootPath': '/shop/offer', 'mappings': [{'fieldName': 'Title', 'xpath': 'title/text()'}]}
    calls = []
    monkeypatch.setitem(sys.modules, 'openai', _fake_openai(json.dumps(payload), calls))

    suggester = AISuggester({'provider': 'openai', 'api_key': 'sk-test', 'model': 'test-model'})
    assert suggester.suggest_structure('<shop><offer/></shop>', mode='dynamicBlock') == payload
    assert calls[0]['model'] == 'test-model'
    assert calls[0]['response_format'] == {'type': 'json_object'}
    assert 'dynamicBlockMapping' in calls[0]['messages'][0]['content']


@pytest.mark.parametrize('content', ['not json', '[1, 2]', '{"error": "no items found"}'])
def test_openai_unusable_response(monkeypatch, content):
    monkeypatch.setitem(sys.modules, 'openai', _fake_openai(content, []))
    suggester = AISuggester({'provider': 'openai', 'api_key': 'sk-test'})
    assert suggester.suggest_structure('<a/>') == {}


def test_openai_without_api_key(monkeypatch):
    calls = []
    monkeypatch.setitem(sys.modules, 'openai', _fake_openai('{}', calls))
    monkeypatch.delenv('FEEDMAPPER_TEST_KEY', raising=False)
    suggester = AISuggester({'provider': 'openai', 'api_key_env': 'FEEDMAPPER_TEST_KEY'})
    assert suggester.suggest_structure('<a/>') == {}
    assert calls == []


def test_provider_errors_degrade_to_empty(monkeypatch):
    def boom(self, xml_sample, mode):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(AISuggester, '_suggest_openai', boom)
    assert AISuggester({'provider': 'openai', 'api_key': 'sk-test'}).suggest_structure('<a/>') == {}


def test_long_samples_are_truncated(monkeypatch):
    seen = []

    def capture(self, xml_sample, mode):
        seen.append(xml_sample)
        return {}

    monkeypatch.setattr(AISuggester, '_suggest_openai', capture)
    AISuggester({'provider': 'openai'}).suggest_structure('<a>' + 'x' * (MAX_SAMPLE_CHARS + 10) + '</a>')
    assert len(seen[0]) == MAX_SAMPLE_CHARS

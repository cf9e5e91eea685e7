import pytest

from feedmapper.config_loader import DEFAULT_CONFIG, ConfigLoader
from feedmapper.errors import ProfileError
from feedmapper.models import CsvProfile, DynamicBlockMapping, MappingProfile, ProfileStatus, RegularFieldMapping


XML_PROFILE = """
type: xml
itemRootPath: /catalog/products/product
fieldMappings:
  - sourcePath: "@id"
    header: ID
  - sourcePath: name/text()
    header: Name
  - sourcePath: attributes/attribute
    header: ""
    isDynamicAttributeMapping: true
"""

CSV_PROFILE = """
type: csv
delimiter: ";"
header_mappings:
  Artikelnummer: SKU
"""


def test_defaults_without_global_config(config_dir):
    config = ConfigLoader(config_dir).load_global_config()
    assert config == DEFAULT_CONFIG
    assert config is not DEFAULT_CONFIG


def test_global_config_overrides_are_merged(config_dir):
    (config_dir / "global_config.yaml").write_text(
        "log_level: DEBUG\nai:\n  provider: openai\nvocabulary:\n  item_tags: [artikel]\n",
        encoding='utf-8',
    )
    loader = ConfigLoader(config_dir)
    config = loader.load_global_config()
    assert config['log_level'] == 'DEBUG'
    assert config['ai']['provider'] == 'openai'
    assert config['ai']['model'] == DEFAULT_CONFIG['ai']['model']
    item_tags, container_tags = loader.load_vocabulary()
    assert item_tags == ('artikel',)
    assert container_tags == tuple(DEFAULT_CONFIG['vocabulary']['container_tags'])

def test_mutating_loaded_config_leaves_defaults_alone(config_dir):
    config = ConfigLoader(config_dir).load_global_config()
    config['ai']['provider'] = 'openai'
    config['vocabulary']['item_tags'].append('artikel')
    assert DEFAULT_CONFIG['ai']['provider'] != 'openai'
    assert 'artikel' not in DEFAULT_CONFIG['vocabulary']['item_tags']


def test_numeric_yaml_values_are_read_as_text(config_dir):
    (config_dir / "profiles" / "numbers.yaml").write_text(
        "itemRootPath: /feed/item\nfieldMappings:\n  - {sourcePath: year/text(), header: 2024}\n",
        encoding='utf-8',
    )
    profile = ConfigLoader(config_dir).load_profile('numbers')
    assert profile.field_mappings == [RegularFieldMapping('year/text()', '2024')]



def test_load_xml_profile_by_name(config_dir):
    (config_dir / "profiles" / "shop.yaml").write_text(XML_PROFILE, encoding='utf-8')
    profile = ConfigLoader(config_dir).load_profile('shop')
    assert isinstance(profile, MappingProfile)
    assert profile.name == 'shop'
    assert profile.status == ProfileStatus.HEURISTIC
    assert profile.field_mappings == [
        RegularFieldMapping('@id', 'ID'),
        RegularFieldMapping('name/text()', 'Name'),
        DynamicBlockMapping('attributes/attribute'),
    ]


def test_load_csv_profile_by_path(tmp_path, config_dir):
    path = tmp_path / "csv_profile.yml"
    path.write_text(CSV_PROFILE, encoding='utf-8')
    profile = ConfigLoader(config_dir).load_profile(path)
    assert profile == CsvProfile(header_mappings={'Artikelnummer': 'SKU'}, delimiter=';', name='csv_profile')


def test_missing_profile(config_dir):
    with pytest.raises(FileNotFoundError):
        ConfigLoader(config_dir).load_profile('nope')


@pytest.mark.parametrize('content', [
    "type: json\n",
    "- just\n- a list\n",
    "itemRootPath: /a\nfieldMappings: []\n",
    "itemRootPath: /a\nstatus: approved\nfieldMappings:\n  - {sourcePath: x, header: X}\n",
])
def test_invalid_profiles(config_dir, content):
    (config_dir / "profiles" / "bad.yaml").write_text(content, encoding='utf-8')
    with pytest.raises(ProfileError):
        ConfigLoader(config_dir).load_profile('bad')


def test_save_then_load(config_dir, tmp_path):
    loader = ConfigLoader(config_dir)
    profile = MappingProfile(
        '/feed/item',
        [RegularFieldMapping('title/text()', 'Title'), DynamicBlockMapping('@*', 'attr_')],
        name='feed',
        status=ProfileStatus.USER_CONFIRMED,
    )
    path = loader.save_profile(profile, config_dir / "profiles" / "feed.yaml")
    assert loader.load_profile('feed') == profile
    assert path.read_text(encoding='utf-8').startswith('type: xml\n')


def test_cache_is_used_until_cleared(config_dir):
    path = config_dir / "global_config.yaml"
    path.write_text("log_level: DEBUG\n", encoding='utf-8')
    loader = ConfigLoader(config_dir)
    assert loader.load_global_config()['log_level'] == 'DEBUG'

    path.write_text("log_level: ERROR\n", encoding='utf-8')
    assert loader.load_global_config()['log_level'] == 'DEBUG'
    loader.clear_cache()
    assert loader.load_global_config()['log_level'] == 'ERROR'

from feedmapper.models import (
    DynamicBlockMapping,
    InferenceStrategy,
    MappingProfile,
    ProfileStatus,
    RegularFieldMapping,
)
from feedmapper.record_extractor import extract_records
from feedmapper.structure_detector import (
    FieldMappingInferencer,
    ItemRootInferencer,
    detect_structure,
    format_compound_name,
    format_header_name,
    infer_field_mappings,
    infer_item_root,
)
from feedmapper.xml_document import parse_xml


def test_header_name_formatting():
    assert format_header_name('productName') == 'Product Name'
    assert format_header_name('product_name') == 'Product Name'
    assert format_header_name('shipping-cost') == 'Shipping Cost'
    assert format_header_name('g:price') == 'Price'


def test_compound_name_formatting():
    assert format_compound_name('attribute') + format_compound_name('Color') == 'AttributeColor'
    assert format_compound_name('net weight') == 'NetWeight'


def test_vocabulary_item_root(catalog_doc):
    result = infer_item_root(catalog_doc)
    assert result.path == '/catalog/products/product'
    assert result.strategy == InferenceStrategy.VOCABULARY
    assert not result.low_confidence
    assert result.status == ProfileStatus.HEURISTIC
    assert result.element.getAttribute('id') == '1'


def test_repeating_vocabulary_tag_wins_over_single_occurrence():
    doc = parse_xml(
        '<feed><item><title>Header</title></item>'
        '<offers><offer><n>1</n></offer><offer><n>2</n></offer></offers></feed>'
    )
    assert infer_item_root(doc).path == '/feed/offers/offer'


def test_richest_element_when_no_vocabulary_match():
    doc = parse_xml(
        '<data><rows>'
        '<row a="1" b="2"><c>1</c></row>'
        '<row a="3" b="4"><c>2</c></row>'
        '</rows></data>'
    )
    result = infer_item_root(doc)
    assert result.path == '/data/rows/row'
    assert result.strategy == InferenceStrategy.RICHEST_ELEMENT


def test_document_root_fallback_is_low_confidence():
    doc = parse_xml('<config><a>1</a></config>')
    result = infer_item_root(doc)
    assert result.path == '/config'
    assert result.strategy == InferenceStrategy.DOCUMENT_ROOT
    assert result.low_confidence


def test_items_under_different_parents_use_descendant_path():
    doc = parse_xml('<root><a><product><x/></product></a><b><product><y/></product></b></root>')
    assert infer_item_root(doc).path == '//product'


def test_custom_vocabulary():
    doc = parse_xml('<shop><artikel><nr>1</nr></artikel><artikel><nr>2</nr></artikel></shop>')
    result = ItemRootInferencer(item_tags=['artikel']).infer(doc)
    assert result.path == '/shop/artikel'


def test_inference_is_deterministic(catalog_doc):
    first = infer_item_root(catalog_doc)
    second = infer_item_root(catalog_doc)
    assert (first.path, first.strategy, first.element) == (second.path, second.strategy, second.element)


def test_field_mappings_for_item(first_product):
    mappings = infer_field_mappings(first_product)
    assert [m.source_path for m in mappings] == [
        'name/text()',
        'price/text()',
        'description/text()',
        'image/text()',
        'attributes/text()',
        '@id',
        'attributes/*',
    ]
    assert mappings[0] == RegularFieldMapping('name/text()', 'Name')
    assert mappings[5] == RegularFieldMapping('@id', 'Id')
    assert isinstance(mappings[6], DynamicBlockMapping)


def test_many_attributes_collapse_into_dynamic_mapping():
    item = parse_xml('<product sku="1" ean="2" stock="3"><name>x</name></product>').documentElement
    mappings = infer_field_mappings(item)
    assert mappings[-1] == DynamicBlockMapping(source_path='@*')
    assert not any(m.source_path.startswith('@') and m.source_path != '@*' for m in mappings)


def test_nested_container_is_found_within_depth():
    item = parse_xml(
        '<product><details><specs><spec name="W">1</spec></specs></details></product>'
    ).documentElement
    paths = [m.source_path for m in FieldMappingInferencer().infer(item)]
    assert 'details/specs/*' in paths
    assert FieldMappingInferencer(max_depth=1).infer(item)[-1].source_path == 'details/text()'


def test_key_value_children_expand_into_predicate_mappings():
    item = parse_xml(
        '<product>'
        '<attribute><name>Color</name><value>Red</value></attribute>'
        '<attribute><name>Size</name><value>M</value></attribute>'
        '</product>'
    ).documentElement
    mappings = FieldMappingInferencer(expand_key_value_children=True).infer(item)
    assert mappings == [
        RegularFieldMapping('attribute/text()', 'Attribute'),
        RegularFieldMapping("attribute[name/text()='Color']/value/text()", 'AttributeColor'),
        RegularFieldMapping("attribute[name/text()='Size']/value/text()", 'AttributeSize'),
    ]

def test_key_value_holders_inside_container_expand(catalog_doc):
    item = catalog_doc.getElementsByTagName('product')[0]
    mappings = FieldMappingInferencer(expand_key_value_children=True).infer(item)
    assert mappings[-3:] == [
        DynamicBlockMapping(source_path='attributes/*'),
        RegularFieldMapping("attributes/attribute[name/text()='Color']/value/text()", 'AttributeColor'),
        RegularFieldMapping("attributes/attribute[name/text()='Size']/value/text()", 'AttributeSize'),
    ]

    profile = MappingProfile('/catalog/products/product', mappings[-2:])
    records = extract_records(catalog_doc, profile)
    assert records == [
        {'AttributeColor': 'Red', 'AttributeSize': 'M'},
        {'AttributeColor': 'Blue', 'AttributeSize': ''},
    ]


def test_holder_ids_become_columns():
    item = parse_xml(
        '<product><attributes>'
        '<attribute id="7" attributeId="C1"><name>Color</name><label>Red</label></attribute>'
        '</attributes></product>'
    ).documentElement
    paths = {m.header: m.source_path for m in FieldMappingInferencer(expand_key_value_children=True).infer(item)
             if isinstance(m, RegularFieldMapping)}
    assert paths['AttributeColor'] == "attributes/attribute[name/text()='Color']/label/text()"
    assert paths['AttributeColorId'] == "attributes/attribute[name/text()='Color']/@id"
    assert paths['AttributeColorAttributeId'] == "attributes/attribute[name/text()='Color']/@attributeId"



def test_detected_profile_extracts_records(catalog_doc):
    result = detect_structure(catalog_doc, name='catalog')
    profile = result.profile
    assert profile.status == ProfileStatus.HEURISTIC
    assert profile.name == 'catalog'

    records = extract_records(catalog_doc, profile)
    assert len(records) == 2
    assert records[0]['Name'] == 'Widget'
    assert records[0]['Id'] == '1'
    assert records[0]['Color'] == 'Red'
    assert records[0]['Size'] == 'M'
    assert records[1]['Color'] == 'Blue'
    assert records[1]['Image'] == ''

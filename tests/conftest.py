import logging
from pathlib import Path

import pytest

from feedmapper.xml_document import parse_xml


CATALOG_XML = """<?xml version="1.0" encoding="UTF-8"?>
<catalog>
  <products>
    <product id="1">
      <name>Widget</name>
      <price>9.99</price>
      <description><![CDATA[Hello & <b>World</b>]]></description>
      <image>a.jpg</image>
      <image>b.jpg</image>
      <attributes>
        <attribute><name>Color</name><value>Red</value></attribute>
        <attribute><name>Size</name><value>M</value></attribute>
      </attributes>
    </product>
    <product id="2">
      <name>Gadget</name>
      <price>19.50</price>
      <description>Plain text</description>
      <attributes>
        <attribute><name>Color</name><value>Blue</value></attribute>
      </attributes>
    </product>
  </products>
</catalog>
"""


@pytest.fixture
def catalog_xml():
    return CATALOG_XML


@pytest.fixture
def catalog_doc():
    return parse_xml(CATALOG_XML)


@pytest.fixture
def first_product(catalog_doc):
    return catalog_doc.getElementsByTagName('product')[0]


@pytest.fixture
def catalog_file(tmp_path) -> Path:
    p = tmp_path / "catalog.xml"
    p.write_text(CATALOG_XML, encoding='utf-8')
    return p


@pytest.fixture
def config_dir(tmp_path) -> Path:
    d = tmp_path / "config"
    (d / "profiles").mkdir(parents=True)
    return d


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)

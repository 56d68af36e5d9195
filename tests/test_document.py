import xml.etree.ElementTree as ET

import pytest

from atpack.errors import AtPackError, DocumentError
from atpack.parsers.document import (
    as_document,
    attr,
    attr_float,
    attr_hex,
    attr_hex_opt,
    attr_int,
    first_descendant,
    has_attr,
    local_name,
    parse_document,
    select,
    with_attr,
)

MIXED = b"""<root xmlns:at="urn:example:at">
  <memories>
    <at:memory name="FLASH" start="0x0"/>
    <memory name="IRAM" start="0x100"/>
  </memories>
</root>"""


def test_local_name_forms():
    assert local_name("{urn:x}memory") == "memory"
    assert local_name("at:memory") == "memory"
    assert local_name("memory") == "memory"
    assert local_name(ET.Comment) == ""


def test_qualified_and_unqualified_elements_match_alike():
    doc = parse_document(MIXED)
    names = [attr(e, "name") for e in doc.iter("memory")]
    assert names == ["FLASH", "IRAM"]
    assert [attr(e, "name") for e in doc.select("memories", "memory")] == ["FLASH", "IRAM"]


def test_root_matches_first_select_step():
    doc = parse_document(MIXED)
    assert len(doc.select("root", "memory")) == 2
    assert doc.first("root") is doc.root


def test_namespaces_are_recorded():
    doc = parse_document(MIXED, source="mixed.xml")
    assert doc.namespaces["at"] == "urn:example:at"
    assert doc.source == "mixed.xml"


def test_parent_and_closest():
    doc = parse_document(MIXED)
    mem = doc.first("memory")
    assert local_name(doc.parent(mem).tag) == "memories"
    assert doc.closest(mem, "root") is doc.root
    assert doc.closest(mem, "nothing") is None
    assert doc.parent(doc.root) is None


def test_prefixed_attribute_lookup():
    el = ET.fromstring('<a xmlns:edc="http://crownking/edc" edc:beginaddr="0x10" plain="x"/>')
    assert attr(el, "edc:beginaddr") == "0x10"
    assert attr(el, "beginaddr") == "0x10"
    assert attr(el, "edc:plain") == "x"
    assert has_attr(el, "edc:beginaddr")
    assert not has_attr(el, "missing")


def test_attribute_getters_never_raise():
    el = ET.fromstring('<a dec="12" hex="0x1f" lead="08" bad="abc" f="1.5" empty=""/>')
    assert attr_int(el, "dec") == 12
    assert attr_int(el, "hex") == 31
    assert attr_int(el, "lead") == 8
    assert attr_int(el, "bad") == 0
    assert attr_int(None, "dec") == 0
    assert attr_hex(el, "hex") == 0x1F
    assert attr_hex(el, "dec") == 0x12
    assert attr_hex_opt(el, "bad") == 0xABC
    assert attr_hex_opt(el, "f") is None
    assert attr_hex_opt(el, "empty") is None
    assert attr_float(el, "f") == 1.5
    assert attr_float(el, "bad") is None
    assert attr(el, "empty", "fallback") == "fallback"


def test_select_and_with_attr_on_elements():
    root = ET.fromstring(MIXED)
    mems = select(root, "memory")
    assert len(mems) == 2
    assert [attr(m, "start") for m in with_attr(mems, "name", "IRAM")] == ["0x100"]
    assert select(None, "memory") == []


def test_first_descendant_skips_the_element_itself():
    root = ET.fromstring(b"<memory><memories><at:memory xmlns:at='urn:x' name='FLASH'/></memories></memory>")
    assert attr(first_descendant(root, "memory"), "name") == "FLASH"
    assert first_descendant(root, "missing") is None
    assert first_descendant(None, "memory") is None


def test_malformed_document_raises():
    with pytest.raises(DocumentError) as info:
        parse_document(b"<a><b></a>", source="broken.xml")
    err = info.value
    assert isinstance(err, AtPackError)
    assert err.source == "broken.xml"
    assert "broken.xml" in str(err)
    assert err.details["diagnostic"] == err.diagnostic


def test_empty_document_raises():
    with pytest.raises(DocumentError):
        parse_document(b"")


def test_as_document_passes_documents_through():
    doc = parse_document(MIXED)
    assert as_document(doc) is doc
    assert as_document(MIXED.decode()).root.tag == "root"

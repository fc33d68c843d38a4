"""package.xml generation for metadata deploy/retrieve."""
from typing import Dict, List, Optional

from lxml import etree

from sforg_mcp import config

PNS = "http://soap.sforce.com/2006/04/metadata"


def generate_package_xml(types: Dict[str, List[str]], api_version: Optional[str] = None) -> str:
    """Build a manifest listing ``members`` for each metadata type.

    Types are emitted in name order, members in the order given (duplicates dropped).
    """
    if not types:
        raise ValueError("At least one metadata type is required")

    root = etree.Element(etree.QName(PNS, "Package"), nsmap={None: PNS})
    for metadata_type in sorted(types):
        members = list(dict.fromkeys(types[metadata_type] or ["*"]))
        types_tag = etree.SubElement(root, etree.QName(PNS, "types"))
        for member in members:
            etree.SubElement(types_tag, etree.QName(PNS, "members")).text = member
        etree.SubElement(types_tag, etree.QName(PNS, "name")).text = metadata_type

    etree.SubElement(root, etree.QName(PNS, "version")).text = api_version or config.API_VERSION

    return etree.tostring(
        root, encoding="UTF-8", xml_declaration=True, pretty_print=True
    ).decode("utf-8")

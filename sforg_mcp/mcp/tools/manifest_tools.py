"""Manifest (package.xml) generation, available to both backends."""
import logging
from pathlib import Path
from typing import Dict, List, Optional

from sforg_mcp.mcp.server import register_tool, to_json
from sforg_mcp.services.manifest import generate_package_xml

logger = logging.getLogger(__name__)


@register_tool()
def sf_generate_manifest(
    types: Dict[str, List[str]],
    output_path: Optional[str] = None,
    api_version: Optional[str] = None,
) -> str:
    """Build a package.xml manifest for metadata deploy or retrieve.

    An empty member list for a type means every component of that type ("*").

    Args:
        types: Metadata type to member names (e.g. {"ApexClass": ["InvoiceService"], "Flow": []})
        output_path: Where to write package.xml (optional, content is only returned if omitted)
        api_version: Manifest API version (defaults to the server's API version)
    """
    xml = generate_package_xml(types, api_version)
    result = {"success": True, "content": xml}
    if output_path:
        path = Path(output_path).expanduser()
        if path.is_dir():
            path = path / "package.xml"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(xml, encoding="utf-8")
        logger.info("Wrote manifest to %s", path)
        result["path"] = str(path)
    return to_json(result)

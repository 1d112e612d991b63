"""HCL rendering for Edge DNS zones and recordsets, plus the import script."""

import logging
import os
from typing import Any, Callable, Dict, List, Optional

from zone_inventory import (
    ZoneExportError,
    ZoneInventory,
    check_layout,
    normalize_resource_name,
    parse_recordsets,
    reconcile,
    recordset_resource_name,
    zone_declared,
)

logger = logging.getLogger(__name__)

MODULE_FOLDER = "modules"

# Attribute values starting with one of these are emitted unquoted
REFERENCE_PREFIXES = ("var.", "local.", "module.")

SOA_FIELDS = ("name_server", "email_address", "serial", "refresh", "retry", "expiry", "nxdomain_ttl")


# --- HCL Generation ---

def hcl_string(value: str) -> str:
    """Escape and quote a string for HCL."""
    escaped = value.replace('\\', '\\\\').replace('"', '\\"').replace('\n', '\\n')
    return f'"{escaped}"'


def hcl_value(value: Any, indent: int = 2) -> str:
    """Convert a Python value to HCL representation."""
    if isinstance(value, bool):
        return "true" if value else "false"
    elif isinstance(value, (int, float)):
        return str(value)
    elif isinstance(value, str):
        return hcl_string(value)
    elif isinstance(value, list):
        items = ", ".join(hcl_value(v) for v in value)
        return f"[{items}]"
    elif isinstance(value, dict):
        pad = " " * (indent + 2)
        lines = []
        for k, v in value.items():
            lines.append(f"{pad}{hcl_string(k)} = {hcl_value(v, indent + 2)}")
        return "{\n" + "\n".join(lines) + "\n" + " " * indent + "}"
    elif value is None:
        return "null"
    else:
        return hcl_string(str(value))


def is_reference(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(REFERENCE_PREFIXES)


def render_attr(key: str, value: Any, indent: int = 2) -> str:
    pad = " " * indent
    if is_reference(value):
        return f"{pad}{key} = {value}"
    return f"{pad}{key} = {hcl_value(value, indent)}"


def render_resource(resource_type: str, tf_id: str, attrs: Dict[str, Any],
                    blocks: Optional[Dict[str, Dict[str, Any]]] = None,
                    depends_on: Optional[List[str]] = None,
                    comments: Optional[List[str]] = None) -> str:
    """Render a single HCL resource block."""
    lines = []
    if comments:
        for c in comments:
            lines.append(f"# {c}")
    lines.append(f'resource "{resource_type}" "{tf_id}" {{')
    for key, value in attrs.items():
        lines.append(render_attr(key, value))
    for block_name, block_attrs in (blocks or {}).items():
        lines.append(f"  {block_name} {{")
        for key, value in block_attrs.items():
            lines.append(render_attr(key, value, indent=4))
        lines.append("  }")
    if depends_on:
        lines.append(f"  depends_on = [{', '.join(depends_on)}]")
    lines.append("}")
    return "\n".join(lines)


# --- Zone ---

def render_provider_header() -> str:
    return '''terraform {
  required_providers {
    akamai = {
      source = "akamai/akamai"
    }
  }
}

provider "akamai" {
  edgerc         = var.edgerc_path
  config_section = var.config_section
}
'''


def render_zone(zone_obj: Dict[str, Any], zone_rsc: str, segmented: bool = False) -> str:
    """Render provider header, zone local and the akamai_dns_zone resource."""
    zone = zone_obj.get("zone", "")
    attrs: Dict[str, Any] = {
        "contract": "var.contractid",
        "group": "var.groupid",
        "zone": "local.zone",
        "type": zone_obj.get("type", "PRIMARY").upper(),
    }
    masters = zone_obj.get("masters") or []
    if masters:
        attrs["masters"] = list(masters)
    if zone_obj.get("comment"):
        attrs["comment"] = zone_obj["comment"]
    attrs["sign_and_serve"] = bool(zone_obj.get("signAndServe", False))
    if zone_obj.get("signAndServeAlgorithm"):
        attrs["sign_and_serve_algorithm"] = zone_obj["signAndServeAlgorithm"]
    if zone_obj.get("target"):
        attrs["target"] = zone_obj["target"]
    if zone_obj.get("endCustomerId"):
        attrs["end_customer_id"] = zone_obj["endCustomerId"]

    blocks = {}
    tsig = zone_obj.get("tsigKey")
    if isinstance(tsig, dict) and tsig.get("name"):
        blocks["tsig_key"] = {
            "name": tsig["name"],
            "algorithm": tsig.get("algorithm", ""),
            "secret": "var.tsig_secret",
        }

    lines = [
        "# Edge DNS zone " + zone,
        "# Generated by edgedns-export",
    ]
    if segmented:
        # Marks the root as modular even before any module block is appended
        lines.append("# Recordsets are declared in per-name modules (zonename = local.zone)")
    lines.extend([
        "",
        render_provider_header(),
        "locals {",
        f"  zone = {hcl_string(zone)}",
        "}",
        "",
        render_resource("akamai_dns_zone", zone_rsc, attrs, blocks=blocks),
        "",
    ])
    return "\n".join(lines)


# --- Recordsets ---

def parse_soa(rdata: List[str]) -> Dict[str, Any]:
    """Split SOA rdata ("ns email serial refresh retry expiry minimum") into fields."""
    if not rdata:
        return {}
    parts = rdata[0].split()
    fields: Dict[str, Any] = {}
    for key, value in zip(SOA_FIELDS, parts):
        fields[key] = int(value) if value.isdigit() else value
    # serial is managed by Edge DNS
    fields.pop("serial", None)
    return fields


def render_recordset(zone_rsc: str, record: Dict[str, Any], zone_ref: str = "local.zone",
                     depends_on: Optional[List[str]] = None) -> str:
    """Render one akamai_dns_record resource for a {name, type, ttl, rdata} recordset."""
    name = record.get("name", "")
    record_type = record.get("type", "")
    rdata = [str(r) for r in record.get("rdata") or []]
    attrs: Dict[str, Any] = {
        "zone": zone_ref,
        "name": name,
        "recordtype": record_type,
        "ttl": int(record.get("ttl", 0) or 0),
    }
    if record_type == "SOA":
        attrs.update(parse_soa(rdata))
    else:
        attrs["target"] = rdata
    return render_resource("akamai_dns_record", recordset_resource_name(zone_rsc, name, record_type),
                           attrs, depends_on=depends_on)


# --- Segmented (per record name) modules ---

def module_path(work_path: str, name: str) -> str:
    return os.path.join(work_path, MODULE_FOLDER, normalize_resource_name(name))


def module_filename(work_path: str, name: str) -> str:
    name_rsc = normalize_resource_name(name)
    return os.path.join(work_path, MODULE_FOLDER, name_rsc, f"{name_rsc}.tf")


def render_module_header() -> str:
    return '''terraform {
  required_providers {
    akamai = {
      source = "akamai/akamai"
    }
  }
}

variable "zonename" {
  description = "Edge DNS zone the recordsets belong to"
  type        = string
}
'''


def render_module_block(name: str, zone_rsc: str) -> str:
    """Root-module call of the per-name module holding a record name's recordsets."""
    name_rsc = normalize_resource_name(name)
    return "\n".join([
        f'module "{name_rsc}" {{',
        f'  source     = "./{MODULE_FOLDER}/{name_rsc}"',
        "  zonename   = local.zone",
        f"  depends_on = [akamai_dns_zone.{zone_rsc}]",
        "}",
    ])


def module_declared(existing_text: str, name: str) -> bool:
    return f'module "{normalize_resource_name(name)}"' in existing_text


# --- Variables ---

def render_dnsvars(contract_id: str, edgerc_path: str = "~/.edgerc", section: str = "default",
                   tsig: bool = False) -> str:
    lines = [
        "# Variables for Edge DNS Terraform configuration",
        "# Generated by edgedns-export",
        "",
        'variable "edgerc_path" {',
        "  type    = string",
        f"  default = {hcl_string(edgerc_path)}",
        "}",
        "",
        'variable "config_section" {',
        "  type    = string",
        f"  default = {hcl_string(section)}",
        "}",
        "",
        'variable "contractid" {',
        "  type    = string",
        f"  default = {hcl_string(contract_id)}",
        "}",
        "",
        'variable "groupid" {',
        "  type    = string",
        '  default = ""',
        "}",
        "",
    ]
    if tsig:
        lines.extend([
            'variable "tsig_secret" {',
            '  description = "TSIG key secret for zone transfers"',
            "  type        = string",
            "  sensitive   = true",
            "}",
            "",
        ])
    return "\n".join(lines)


def write_dnsvars(work_path: str, content: str) -> str:
    filepath = os.path.join(work_path, "dnsvars.tf")
    with open(filepath, "w") as f:
        f.write(content)
    return filepath


# --- Import script ---

def render_import_script(zone: str, recordsets: Dict[str, List[str]], zone_declared: bool = False,
                         segmented: bool = False) -> List[str]:
    """Build `terraform init` followed by one import command per generated resource."""
    zone_rsc = normalize_resource_name(zone)
    commands = ["terraform init"]
    if not zone_declared:
        commands.append(f'terraform import akamai_dns_zone.{zone_rsc} "{zone}"')
    for name in sorted(recordsets):
        prefix = f"module.{normalize_resource_name(name)}." if segmented else ""
        for record_type in sorted(recordsets[name]):
            rsc_name = recordset_resource_name(zone_rsc, name, record_type)
            commands.append(
                f'terraform import {prefix}akamai_dns_record.{rsc_name} "{zone}#{name}#{record_type}"')
    return commands


def import_script_filename(work_path: str, zone_rsc: str) -> str:
    return os.path.join(work_path, f"{zone_rsc}_resource_import.script")


def write_import_script(filepath: str, commands: List[str]):
    """Write the import script, one command per line."""
    with open(filepath, "w") as f:
        f.write("\n".join(commands) + "\n")
    os.chmod(filepath, 0o755)


# --- Artifact ---

class GeneratedArtifact:
    """Config text to append plus the import commands for one config run."""

    def __init__(self, zone: str, residual: Dict[str, List[str]], zone_declared: bool,
                 segmented: bool, root_text: str = "",
                 module_texts: Optional[Dict[str, str]] = None):
        self.zone = zone
        self.residual = residual
        self.zone_declared = zone_declared
        self.segmented = segmented
        self.root_text = root_text
        self.module_texts = module_texts or {}

    @property
    def import_commands(self) -> List[str]:
        return render_import_script(self.zone, self.residual, self.zone_declared, self.segmented)

    @property
    def resource_count(self) -> int:
        return sum(len(types) for types in self.residual.values())

    def resource_config(self) -> Dict[str, Any]:
        """Serializable form used by a later import-script run."""
        return {
            "zone": self.zone,
            "zone_declared": self.zone_declared,
            "segmented": self.segmented,
            "recordsets": self.residual,
        }

    @classmethod
    def from_resource_config(cls, data: Dict[str, Any]) -> "GeneratedArtifact":
        if not isinstance(data, dict):
            raise ZoneExportError(f"expected a JSON object, got {type(data).__name__}")
        zone = data.get("zone", "")
        if not isinstance(zone, str):
            raise ZoneExportError("zone must be a string")
        return cls(
            zone=zone.lower(),
            residual=parse_recordsets(data.get("recordsets")),
            zone_declared=bool(data.get("zone_declared", False)),
            segmented=bool(data.get("segmented", False)),
        )


def join_blocks(existing_text: str, blocks: List[str]) -> str:
    """Join blocks for appending after existing_text, keeping a blank line between them."""
    if not blocks:
        return ""
    text = "\n\n".join(b.strip("\n") for b in blocks) + "\n"
    if existing_text and not existing_text.endswith("\n"):
        return "\n\n" + text
    if existing_text:
        return "\n" + text
    return text


def generate_artifact(zone_obj: Dict[str, Any], inventory: ZoneInventory, root_text: str,
                      module_texts: Optional[Dict[str, str]] = None,
                      fetch_record: Optional[Callable[[str, str], Dict[str, Any]]] = None,
                      segmented: bool = False) -> GeneratedArtifact:
    """Render config for every recordset of the inventory not yet declared.

    root_text is the current root config and module_texts the current module
    config per record name (segmented layout only). Nothing is written here.
    """
    module_texts = module_texts or {}
    check_layout(root_text, segmented)

    zone = inventory.zone
    zone_rsc = normalize_resource_name(zone)
    zone_obj = dict(zone_obj or {})
    zone_obj.setdefault("zone", zone)
    existing_text = root_text
    if segmented:
        existing_text = "\n".join([root_text] + [module_texts.get(n, "") for n in inventory.names()])
    residual, _ = reconcile(inventory, existing_text)
    declared = zone_declared(root_text, zone_rsc)

    root_blocks = []
    if not root_text:
        root_blocks.append(render_zone(zone_obj, zone_rsc, segmented=segmented))
    elif not declared:
        logger.warning(f"Existing config has no akamai_dns_zone.{zone_rsc} declaration")

    new_module_texts = {}
    for name in sorted(residual):
        blocks = []
        for record_type in residual[name]:
            record = fetch_record(name, record_type) if fetch_record else {}
            record = dict(record or {})
            record.setdefault("name", name)
            record.setdefault("type", record_type)
            if segmented:
                blocks.append(render_recordset(zone_rsc, record, zone_ref="var.zonename"))
            else:
                blocks.append(render_recordset(zone_rsc, record,
                                               depends_on=[f"akamai_dns_zone.{zone_rsc}"]))
        if segmented:
            current = module_texts.get(name, "")
            if not current:
                blocks.insert(0, render_module_header())
            new_module_texts[name] = join_blocks(current, blocks)
            if not module_declared(root_text, name):
                root_blocks.append(render_module_block(name, zone_rsc))
        else:
            root_blocks.extend(blocks)

    return GeneratedArtifact(zone, residual, declared, segmented,
                             root_text=join_blocks(root_text, root_blocks),
                             module_texts=new_module_texts)

"""
Zone inventory and reconciliation against previously generated Terraform config.

The inventory step records which record names and types a zone holds. The
config step subtracts whatever an earlier run already declared so that
repeated runs against the same work path only append new resources.
"""

import json
import logging
import os
import re
from typing import Dict, Iterable, List, Optional, Tuple

from edgedns_client import EdgeDNSClient

logger = logging.getLogger(__name__)

ResidualSet = Dict[str, List[str]]
ExistingTypeMap = Dict[str, Dict[str, bool]]


# --- Errors ---

class ZoneExportError(Exception):
    """Base class for fatal export errors."""


class WorkPathError(ZoneExportError):
    """The Terraform work path is missing or not a directory."""


class InventoryExistsError(ZoneExportError):
    """An inventory side file already exists and would be overwritten."""


class InventoryMissingError(ZoneExportError):
    """A config run was requested but no inventory is available."""


class LayoutMismatchError(ZoneExportError):
    """Existing config layout (modular vs flat) conflicts with the requested one."""


# --- Resource naming ---

def normalize_resource_name(name: str) -> str:
    """Convert a DNS name to a Terraform resource name (dots and wildcards -> _)."""
    return re.sub(r'[^A-Za-z0-9_-]', '_', name)


def recordset_resource_name(zone: str, name: str, record_type: str) -> str:
    """Unique resource name for one (zone, name, type) recordset."""
    return normalize_resource_name(f"{zone}_{name}_{record_type}")


def inventory_filename(work_path: str, zone_rsc: str) -> str:
    return os.path.join(work_path, f"{zone_rsc}_resources.json")


def resource_config_filename(work_path: str, zone_rsc: str) -> str:
    return os.path.join(work_path, f"{zone_rsc}_zoneconfig.json")


def config_filename(work_path: str, zone_rsc: str) -> str:
    return os.path.join(work_path, f"{zone_rsc}.tf")


# --- Inventory ---

def parse_recordsets(raw) -> Dict[str, List[str]]:
    """Validate a {name: [types]} mapping read from a side file."""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ZoneExportError(f"recordsets must be a mapping of name to types, got {type(raw).__name__}")
    recordsets = {}
    for name, types in raw.items():
        if types is None:
            types = []
        if not isinstance(types, list) or not all(isinstance(t, str) for t in types):
            raise ZoneExportError(f"record types for {name} must be a list of strings")
        recordsets[name] = list(types)
    return recordsets


class ZoneInventory:
    """Record names of a zone and the record types under each name."""

    def __init__(self, zone: str, recordsets: Optional[Dict[str, List[str]]] = None):
        self.zone = zone
        self.recordsets = recordsets or {}

    def names(self) -> List[str]:
        return sorted(self.recordsets)

    def types(self, name: str) -> List[str]:
        return sorted(self.recordsets.get(name, []))

    def identifiers(self) -> List[Tuple[str, str, str]]:
        """Flattened (zone, name, type) identifiers in stable order."""
        return [(self.zone, name, t) for name in self.names() for t in self.types(name)]

    def to_dict(self) -> Dict:
        return {
            "zone": self.zone,
            "recordsets": {name: self.types(name) for name in self.names()},
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ZoneInventory":
        if not isinstance(data, dict):
            raise ZoneExportError(f"expected a JSON object, got {type(data).__name__}")
        # Accept the capitalised keys written by earlier exporters
        zone = data.get("zone", data.get("Zone", ""))
        if not isinstance(zone, str):
            raise ZoneExportError("zone must be a string")
        # uppercase characters cause issues with TF resource names
        return cls(zone.lower(), parse_recordsets(data.get("recordsets", data.get("Recordsets"))))

    def __eq__(self, other) -> bool:
        if not isinstance(other, ZoneInventory):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"ZoneInventory(zone={self.zone!r}, recordsets={self.to_dict()['recordsets']!r})"


def fetch_inventory(client: EdgeDNSClient, zone: str,
                    record_names: Optional[Iterable[str]] = None,
                    names_only: bool = False) -> ZoneInventory:
    """Query the API for a zone's record names and, per name, its record types.

    Names are fetched one at a time. Any HTTP failure propagates and aborts
    the run.
    """
    if record_names:
        names = list(record_names)
    else:
        names = client.get_zone_names(zone)
    logger.debug(f"Inventorying {len(names)} record names in {zone}")

    recordsets: Dict[str, List[str]] = {}
    for name in sorted(names):
        if names_only:
            recordsets[name] = []
        else:
            recordsets[name] = client.get_zone_name_types(zone, name)
    return ZoneInventory(zone, recordsets)


def save_inventory(inventory: ZoneInventory, path: str):
    """Write the inventory side file. Refuses to overwrite an existing one."""
    if os.path.exists(path):
        raise InventoryExistsError(f"Resource list file {path} exists. Remove to continue.")
    with open(path, "w") as f:
        json.dump(inventory.to_dict(), f, indent=2)


def load_inventory(path: str) -> ZoneInventory:
    if not os.path.exists(path):
        raise InventoryMissingError(
            f"Resource list file {path} not found. Run with --resources first.")
    with open(path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ZoneExportError(f"Failed to read json zone resources file {path}: {e}")
    try:
        return ZoneInventory.from_dict(data)
    except ZoneExportError as e:
        raise ZoneExportError(f"Failed to read json zone resources file {path}: {e}")


# --- Existing config scanner ---

def scan_config(path: str) -> str:
    """Return previously generated config text, or "" when there is none."""
    if not os.path.exists(path):
        return ""
    with open(path) as f:
        return f.read()


def append_config(path: str, text: str):
    """Append rendered config. Existing text is never truncated."""
    if not text:
        return
    with open(path, "a") as f:
        f.write(text)


# --- Reconciliation ---

def is_modular(existing_text: str) -> bool:
    return "module" in existing_text and "zonename" in existing_text


def check_layout(existing_text: str, segmented: bool):
    """Reject mixing the per-name module layout with a flat root config."""
    if not existing_text:
        return
    if is_modular(existing_text):
        if not segmented:
            raise LayoutMismatchError("Existing zone config is modularized")
    elif segmented:
        raise LayoutMismatchError("Existing zone config is not modularized")


def zone_declared(existing_text: str, zone_rsc: str) -> bool:
    return f'"akamai_dns_zone" "{zone_rsc}"' in existing_text


def reconcile(inventory: ZoneInventory, existing_text: str) -> Tuple[ResidualSet, ExistingTypeMap]:
    """Remove recordsets whose quoted resource name already appears in existing_text.

    Membership is a plain substring test on the quoted resource name, so a
    quoted name that only shows up inside a comment also counts as declared.
    """
    zone_rsc = normalize_resource_name(inventory.zone)
    residual: ResidualSet = {}
    type_map: ExistingTypeMap = {}
    for name in inventory.names():
        typed = {}
        remaining = []
        for record_type in inventory.types(name):
            rsc_name = recordset_resource_name(zone_rsc, name, record_type)
            if f'"{rsc_name}"' in existing_text:
                logger.warning(f"Recordset resource {rsc_name} found in existing tf file")
                continue
            typed[record_type] = True
            remaining.append(record_type)
        if remaining:
            residual[name] = remaining
        type_map[name] = typed
    return residual, type_map

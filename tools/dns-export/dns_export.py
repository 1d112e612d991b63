#!/usr/bin/env python3
"""
edgedns-export: Export an Akamai Edge DNS zone as Terraform .tf files.

Usage:
    python3 dns_export.py example.com --resources --tfworkpath ./exported
    python3 dns_export.py example.com --createconfig --importscript --tfworkpath ./exported
    python3 dns_export.py example.com --resources --createconfig --importscript --segmentconfig
    python3 dns_export.py example.com --resources --namesonly --recordname www.example.com

Steps can run together or one at a time. --resources writes the zone
inventory, --createconfig appends config for recordsets not yet declared in
the work path, --importscript writes the terraform import commands for what
the last config run generated.
"""

import argparse
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

import requests

from edgedns_client import DEFAULT_EDGERC, DEFAULT_SECTION, EdgeDNSClient
from zone_hcl import (
    GeneratedArtifact,
    MODULE_FOLDER,
    generate_artifact,
    import_script_filename,
    module_filename,
    render_dnsvars,
    write_dnsvars,
    write_import_script,
)
from zone_inventory import (
    InventoryExistsError,
    InventoryMissingError,
    WorkPathError,
    ZoneExportError,
    ZoneInventory,
    append_config,
    config_filename,
    fetch_inventory,
    inventory_filename,
    load_inventory,
    normalize_resource_name,
    resource_config_filename,
    save_inventory,
    scan_config,
)

logger = logging.getLogger(__name__)


class RunContext:
    """Settings and intermediate results shared by the steps of one run."""

    def __init__(self, zone: str, work_path: str = "./", create_inventory: bool = False,
                 create_config: bool = False, import_script: bool = False,
                 config_only: bool = False, segmented: bool = False, names_only: bool = False,
                 record_names: Optional[List[str]] = None,
                 edgerc_path: str = DEFAULT_EDGERC, section: str = DEFAULT_SECTION):
        # uppercase characters cause issues with TF resource names
        self.zone = zone.lower()
        self.zone_rsc = normalize_resource_name(self.zone)
        self.work_path = os.path.normpath(work_path)
        self.create_inventory = create_inventory
        self.create_config = create_config
        self.import_script = import_script
        self.config_only = config_only
        self.segmented = segmented
        self.names_only = names_only
        self.record_names = record_names or []
        self.edgerc_path = edgerc_path
        self.section = section
        self.inventory: Optional[ZoneInventory] = None
        self.artifact: Optional[GeneratedArtifact] = None

    @property
    def inventory_path(self) -> str:
        return inventory_filename(self.work_path, self.zone_rsc)

    @property
    def config_path(self) -> str:
        return config_filename(self.work_path, self.zone_rsc)

    @property
    def resource_config_path(self) -> str:
        return resource_config_filename(self.work_path, self.zone_rsc)

    @property
    def import_script_path(self) -> str:
        return import_script_filename(self.work_path, self.zone_rsc)


def check_work_path(work_path: str):
    if not os.path.isdir(work_path):
        raise WorkPathError(f"Destination work path {work_path} is not accessible.")


# --- Steps ---

def run_inventory(ctx: RunContext, client: EdgeDNSClient) -> ZoneInventory:
    """Inventory zone names/types and persist them to the resources side file."""
    check_work_path(ctx.work_path)
    if os.path.exists(ctx.inventory_path):
        raise InventoryExistsError(f"Resource list file {ctx.inventory_path} exists. Remove to continue.")

    print("  Inventorying zone and recordsets...")
    inventory = fetch_inventory(client, ctx.zone, record_names=ctx.record_names,
                                names_only=ctx.names_only)
    save_inventory(inventory, ctx.inventory_path)
    print(f"    -> {ctx.inventory_path} ({len(inventory.recordsets)} names, "
          f"{len(inventory.identifiers())} recordsets)")
    ctx.inventory = inventory
    return inventory


def resolve_inventory(ctx: RunContext) -> ZoneInventory:
    if ctx.inventory is not None and not ctx.config_only:
        return ctx.inventory
    return load_inventory(ctx.inventory_path)


def read_module_texts(ctx: RunContext, names: List[str]) -> Dict[str, str]:
    return {name: scan_config(module_filename(ctx.work_path, name)) for name in names}


def run_config(ctx: RunContext, client: EdgeDNSClient, zone_obj: Dict[str, Any]) -> GeneratedArtifact:
    """Append config for undeclared recordsets and save the resource config."""
    check_work_path(ctx.work_path)
    inventory = resolve_inventory(ctx)

    print("  Creating zone configuration...")
    root_text = scan_config(ctx.config_path)
    module_texts = read_module_texts(ctx, inventory.names()) if ctx.segmented else {}

    artifact = generate_artifact(
        zone_obj,
        inventory,
        root_text,
        module_texts=module_texts,
        fetch_record=lambda name, record_type: client.get_record(ctx.zone, name, record_type),
        segmented=ctx.segmented,
    )

    if ctx.segmented:
        os.makedirs(os.path.join(ctx.work_path, MODULE_FOLDER), exist_ok=True)
    for name, text in artifact.module_texts.items():
        path = module_filename(ctx.work_path, name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        append_config(path, text)
    append_config(ctx.config_path, artifact.root_text)

    tsig = isinstance(zone_obj.get("tsigKey"), dict) and bool(zone_obj["tsigKey"].get("name"))
    write_dnsvars(ctx.work_path, render_dnsvars(zone_obj.get("contractId", ""),
                                                edgerc_path=ctx.edgerc_path,
                                                section=ctx.section, tsig=tsig))

    with open(ctx.resource_config_path, "w") as f:
        json.dump(artifact.resource_config(), f, indent=2)

    skipped = len(inventory.identifiers()) - artifact.resource_count
    print(f"    -> {ctx.config_path} ({artifact.resource_count} recordsets added, "
          f"{skipped} already declared)")
    ctx.artifact = artifact
    return artifact


def resolve_artifact(ctx: RunContext) -> GeneratedArtifact:
    if ctx.artifact is not None:
        return ctx.artifact
    if not os.path.exists(ctx.resource_config_path):
        raise InventoryMissingError(
            f"Resource config file {ctx.resource_config_path} not found. Run with --createconfig first.")
    with open(ctx.resource_config_path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ZoneExportError(f"Failed to read resource config file {ctx.resource_config_path}: {e}")
    try:
        return GeneratedArtifact.from_resource_config(data)
    except ZoneExportError as e:
        raise ZoneExportError(f"Failed to read resource config file {ctx.resource_config_path}: {e}")


def run_import_script(ctx: RunContext) -> List[str]:
    """Write the terraform import script for the last generated config."""
    check_work_path(ctx.work_path)
    print("  Creating zone import script...")
    commands = resolve_artifact(ctx).import_commands
    write_import_script(ctx.import_script_path, commands)
    print(f"    -> {ctx.import_script_path} ({len(commands) - 1} import commands)")
    return commands


def run(ctx: RunContext, client: EdgeDNSClient):
    """Run the requested steps in order. The first failure aborts the run."""
    if ctx.config_only and ctx.create_inventory:
        raise ZoneExportError("--configonly reads the saved inventory and cannot be combined with --resources")
    if ctx.config_only:
        ctx.create_config = True

    print(f"Configuring zone {ctx.zone}")
    zone_obj = client.get_zone(ctx.zone)

    if ctx.create_inventory:
        run_inventory(ctx, client)
    if ctx.create_config:
        run_config(ctx, client, zone_obj)
    if ctx.import_script:
        run_import_script(ctx)

    print("Zone configuration completed")


def main():
    parser = argparse.ArgumentParser(
        prog="edgedns-export",
        description="Export an Akamai Edge DNS zone as Terraform .tf files"
    )
    parser.add_argument("zone", help="Zone name, e.g. example.com")
    parser.add_argument("--edgerc", default=os.environ.get("AKAMAI_EDGERC", DEFAULT_EDGERC),
                        help="Path to .edgerc credentials file (or AKAMAI_EDGERC env var)")
    parser.add_argument("--section", default=os.environ.get("AKAMAI_EDGERC_SECTION", DEFAULT_SECTION),
                        help="Section of the .edgerc file (or AKAMAI_EDGERC_SECTION env var)")
    parser.add_argument("--account-key", default=os.environ.get("AKAMAI_ACCOUNT_KEY", ""),
                        help="Account switch key (or AKAMAI_ACCOUNT_KEY env var)")
    parser.add_argument("--insecure", action="store_true",
                        help="Skip TLS certificate verification")
    parser.add_argument("--tfworkpath", default="./",
                        help="Directory for generated Terraform files (default: ./)")
    parser.add_argument("--resources", action="store_true",
                        help="Inventory zone names/types into <zone>_resources.json")
    parser.add_argument("--createconfig", action="store_true",
                        help="Generate Terraform config for recordsets not already declared")
    parser.add_argument("--importscript", action="store_true",
                        help="Generate the terraform import script")
    parser.add_argument("--configonly", action="store_true",
                        help="Generate config from the saved inventory without re-querying names")
    parser.add_argument("--namesonly", action="store_true",
                        help="Inventory record names only, without their types")
    parser.add_argument("--recordname", action="append", default=[],
                        help="Restrict the inventory to this record name (repeatable)")
    parser.add_argument("--segmentconfig", action="store_true",
                        help="Place each record name's recordsets in its own module")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose output")

    args = parser.parse_args()

    if not (args.resources or args.createconfig or args.importscript or args.configonly):
        parser.error("nothing to do: pass --resources, --createconfig, --configonly and/or --importscript")

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    ctx = RunContext(
        args.zone,
        work_path=args.tfworkpath,
        create_inventory=args.resources,
        create_config=args.createconfig,
        import_script=args.importscript,
        config_only=args.configonly,
        segmented=args.segmentconfig,
        names_only=args.namesonly,
        record_names=args.recordname,
        edgerc_path=args.edgerc,
        section=args.section,
    )

    try:
        client = EdgeDNSClient.from_edgerc(args.edgerc, args.section,
                                           account_key=args.account_key, insecure=args.insecure)
        run(ctx, client)
    except (ZoneExportError, requests.RequestException, OSError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        logger.debug("Export failed", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()

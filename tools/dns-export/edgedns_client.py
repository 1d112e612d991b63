"""HTTP client for the Akamai Edge DNS (config-dns v2) API."""

import logging
import os
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
import urllib3
from requests.auth import AuthBase
from akamai.edgegrid import EdgeGridAuth, EdgeRc

logger = logging.getLogger(__name__)

DEFAULT_EDGERC = os.path.join("~", ".edgerc")
DEFAULT_SECTION = "default"

API_PREFIX = "/config-dns/v2"


class EdgeDNSClient:
    """HTTP client for Edge DNS zone and recordset lookups (EdgeGrid auth)."""

    def __init__(self, base_url: str, auth: Optional[AuthBase] = None,
                 account_key: str = "", insecure: bool = False):
        self.base_url = base_url.rstrip("/")
        self.account_key = account_key
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
        })
        if auth is not None:
            self.session.auth = auth
        self.session.verify = not insecure
        if insecure:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    @classmethod
    def from_edgerc(cls, edgerc_path: str = DEFAULT_EDGERC, section: str = DEFAULT_SECTION,
                    account_key: str = "", insecure: bool = False) -> "EdgeDNSClient":
        """Create a client from an .edgerc credentials file section."""
        path = os.path.expanduser(edgerc_path)
        if not os.path.exists(path):
            raise FileNotFoundError(f"edgerc file not found: {path}")
        edgerc = EdgeRc(path)
        if not edgerc.has_section(section):
            raise ValueError(f"section '{section}' not found in {path}")
        host = edgerc.get(section, "host")
        if not account_key and edgerc.has_option(section, "account_key"):
            account_key = edgerc.get(section, "account_key")
        logger.debug(f"Using edgerc {path} [{section}] -> {host}")
        return cls(f"https://{host}", auth=EdgeGridAuth.from_edgerc(edgerc, section),
                   account_key=account_key, insecure=insecure)

    def get(self, path: str) -> Any:
        params = {"accountSwitchKey": self.account_key} if self.account_key else None
        resp = self.session.get(f"{self.base_url}{API_PREFIX}{path}", params=params)
        resp.raise_for_status()
        return resp.json() if resp.content else None

    def get_zone(self, zone: str) -> Dict[str, Any]:
        """Fetch zone metadata (type, contractId, masters, ...)."""
        data = self.get(f"/zones/{quote(zone)}")
        return data if isinstance(data, dict) else {}

    def get_zone_names(self, zone: str) -> List[str]:
        """List every record name defined in a zone."""
        data = self.get(f"/zones/{quote(zone)}/names")
        if not isinstance(data, dict):
            return []
        return list(data.get("names") or [])

    def get_zone_name_types(self, zone: str, name: str) -> List[str]:
        """List the record types defined under one record name."""
        data = self.get(f"/zones/{quote(zone)}/names/{quote(name)}/types")
        if not isinstance(data, dict):
            return []
        return list(data.get("types") or [])

    def get_record(self, zone: str, name: str, record_type: str) -> Dict[str, Any]:
        """Fetch a single recordset: {name, type, ttl, rdata}."""
        data = self.get(f"/zones/{quote(zone)}/names/{quote(name)}/types/{quote(record_type)}")
        return data if isinstance(data, dict) else {}

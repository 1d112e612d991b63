"""Unit tests for edgedns_client.py."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from edgedns_client import EdgeDNSClient

EDGERC = """[default]
client_secret = c2VjcmV0
host = akab-abcdefghijklmnop.luna.akamaiapis.net
access_token = akab-access-token
client_token = akab-client-token

[switch]
client_secret = c2VjcmV0
host = akab-switch.luna.akamaiapis.net
access_token = akab-access-token
client_token = akab-client-token
account_key = 1-ABCDE
"""


def response(payload, status=200):
    resp = MagicMock(spec=requests.Response)
    resp.content = b"x" if payload is not None else b""
    resp.json.return_value = payload
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} Client Error")
    return resp


class TestEdgeDNSClientInit:
    def test_trailing_slash_stripped(self):
        client = EdgeDNSClient("https://akab-host.luna.akamaiapis.net/")
        assert client.base_url == "https://akab-host.luna.akamaiapis.net"

    def test_insecure_disables_verify(self):
        client = EdgeDNSClient("https://host", insecure=True)
        assert client.session.verify is False


class TestEdgeDNSClientGet:
    def test_paths(self):
        client = EdgeDNSClient("https://host")
        with patch.object(client.session, "get", return_value=response({"names": ["a", "b"]})) as get:
            assert client.get_zone_names("example.com") == ["a", "b"]
            get.assert_called_once_with("https://host/config-dns/v2/zones/example.com/names",
                                        params=None)

    def test_account_switch_key(self):
        client = EdgeDNSClient("https://host", account_key="1-ABCDE")
        with patch.object(client.session, "get", return_value=response({"types": ["A"]})) as get:
            assert client.get_zone_name_types("example.com", "www.example.com") == ["A"]
            get.assert_called_once_with(
                "https://host/config-dns/v2/zones/example.com/names/www.example.com/types",
                params={"accountSwitchKey": "1-ABCDE"})

    def test_get_record(self):
        record = {"name": "www.example.com", "type": "A", "ttl": 300, "rdata": ["192.0.2.1"]}
        client = EdgeDNSClient("https://host")
        with patch.object(client.session, "get", return_value=response(record)) as get:
            assert client.get_record("example.com", "www.example.com", "A") == record
            assert get.call_args[0][0].endswith("/zones/example.com/names/www.example.com/types/A")

    def test_wildcard_name_quoted(self):
        client = EdgeDNSClient("https://host")
        with patch.object(client.session, "get", return_value=response({"types": []})) as get:
            client.get_zone_name_types("example.com", "*.example.com")
            assert "/names/%2A.example.com/types" in get.call_args[0][0]

    def test_empty_body(self):
        client = EdgeDNSClient("https://host")
        with patch.object(client.session, "get", return_value=response(None)):
            assert client.get_zone_names("example.com") == []
            assert client.get_zone("example.com") == {}

    def test_http_error_raised(self):
        client = EdgeDNSClient("https://host")
        with patch.object(client.session, "get", return_value=response({}, status=403)):
            with pytest.raises(requests.HTTPError):
                client.get_zone("example.com")


class TestFromEdgerc:
    def test_reads_host(self, tmp_path):
        path = tmp_path / ".edgerc"
        path.write_text(EDGERC)
        client = EdgeDNSClient.from_edgerc(str(path))
        assert client.base_url == "https://akab-abcdefghijklmnop.luna.akamaiapis.net"
        assert client.session.auth is not None
        assert client.account_key == ""

    def test_account_key_from_section(self, tmp_path):
        path = tmp_path / ".edgerc"
        path.write_text(EDGERC)
        client = EdgeDNSClient.from_edgerc(str(path), "switch")
        assert client.account_key == "1-ABCDE"

    def test_explicit_account_key_wins(self, tmp_path):
        path = tmp_path / ".edgerc"
        path.write_text(EDGERC)
        client = EdgeDNSClient.from_edgerc(str(path), "switch", account_key="9-ZZZ")
        assert client.account_key == "9-ZZZ"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            EdgeDNSClient.from_edgerc(str(tmp_path / "none"))

    def test_missing_section(self, tmp_path):
        path = tmp_path / ".edgerc"
        path.write_text(EDGERC)
        with pytest.raises(ValueError):
            EdgeDNSClient.from_edgerc(str(path), "nope")

"""
Brief: Unit tests for DoH JSON and DoH wire transports using a local HTTP stub.

Inputs:
  - None

Outputs:
  - None
"""

import json
import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from dnsprobe.dns import transport
from dnsprobe.dns.transport import (
    QueryStatus,
    Transport,
    query_doh_json,
    query_doh_wire,
)
from dnsprobe.dns.codec import decode_message, encode_query

from dns_builders import a_rdata, build_response, query_id, soa_rdata, txt_rdata


JSON_ANSWERS = {
    "/resolve": {
        "Status": 0,
        "Answer": [{"name": "example.com.", "type": 1, "TTL": 300, "data": "93.184.216.34"}],
    },
    "/txt": {
        "Status": 0,
        "Answer": [
            {"name": "example.com.", "type": 16, "TTL": 300, "data": '"ab" "cd"'},
            {"name": "example.com.", "type": 16, "TTL": 300, "data": '"v=spf1 -all"'},
        ],
    },
    "/soa": {
        "Status": 0,
        "Answer": [{
            "name": "example.org.", "type": 6, "TTL": 300,
            "data": "ns1.example.org. hostmaster.example.org. 1 7200 3600 1209600 300",
        }],
    },
    "/dkim": {
        "Status": 0,
        "Answer": [{"name": "example.com.", "type": 16, "TTL": 300, "data": 'v=DKIM1; n="note"; p=abc'}],
    },
    "/empty": {"Status": 0},
    "/nxdomain": {"Status": 3},
    "/servfail": {"Status": 2},
}


class _StubHandler(BaseHTTPRequestHandler):
    def _headers(self):
        return {k.lower(): v for k, v in self.headers.items()}

    def do_GET(self):  # noqa: N802
        url = urlparse(self.path)
        self.server.requests.append(("GET", url.path, self._headers(), parse_qs(url.query)))

        if url.path == "/notjson":
            body = b"<html>nope</html>"
        elif url.path in JSON_ANSWERS:
            body = json.dumps(JSON_ANSWERS[url.path]).encode()
        else:
            self.send_response(500)
            self.end_headers()
            return

        self.send_response(200)
        self.send_header("Content-Type", "application/dns-json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_POST(self):  # noqa: N802
        ln = int(self.headers.get("Content-Length", "0"))
        query = self.rfile.read(ln)
        self.server.requests.append(("POST", self.path, self._headers(), query))

        if self.path == "/dns-query":
            body = build_response(query, [(1, a_rdata("93.184.216.34"))])
        elif self.path == "/badid":
            body = build_response(query, [(1, a_rdata("203.0.113.66"))], msg_id=query_id(query) ^ 1)
        elif self.path == "/servfail":
            body = build_response(query, [], rcode=2)
        elif self.path == "/soa":
            body = build_response(query, [(6, soa_rdata("ns1.example.org", "hostmaster.example.org"))])
        else:
            self.send_response(404)
            self.end_headers()
            return

        self.send_response(200)
        self.send_header("Content-Type", "application/dns-message")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, fmt, *args):  # quiet
        return


@pytest.fixture(scope="module")
def stub_server():
    srv = HTTPServer(("127.0.0.1", 0), _StubHandler)
    srv.requests = []
    host, port = srv.server_address

    t = threading.Thread(target=srv.serve_forever, daemon=True)
    t.start()
    time.sleep(0.05)
    try:
        yield srv, f"http://{host}:{port}"
    finally:
        srv.shutdown()
        srv.server_close()


def test_doh_json_resolves(stub_server):
    srv, base = stub_server
    result = query_doh_json(f"{base}/resolve", "example.com", "A", timeout=2.0)
    assert result.status == QueryStatus.RESOLVED
    assert result.transport == Transport.DOH_JSON
    assert result.records == ["93.184.216.34"]

    method, path, headers, params = srv.requests[-1]
    assert method == "GET"
    assert headers["accept"] == "application/dns-json"
    assert params == {"name": ["example.com"], "type": ["1"]}


def test_doh_json_numeric_type_for_txt(stub_server):
    srv, base = stub_server
    result = query_doh_json(f"{base}/txt", "example.com", "TXT", timeout=2.0)
    assert result.records == ["abcd", "v=spf1 -all"]
    assert srv.requests[-1][3]["type"] == ["16"]


@pytest.mark.parametrize(
    "path, status, error",
    [
        ("/empty", QueryStatus.NO_RECORDS, None),
        ("/nxdomain", QueryStatus.NO_RECORDS, "NXDOMAIN"),
        ("/servfail", QueryStatus.ERROR, "SERVFAIL"),
        ("/notjson", QueryStatus.ERROR, "Invalid JSON response"),
        ("/broken", QueryStatus.ERROR, "HTTP 500"),
    ],
)
def test_doh_json_status_mapping(stub_server, path, status, error):
    _srv, base = stub_server
    result = query_doh_json(f"{base}{path}", "example.com", "A", timeout=2.0)
    assert result.status == status
    assert result.error == error
    assert result.records == []


def test_doh_wire_resolves(stub_server):
    srv, base = stub_server
    result = query_doh_wire(f"{base}/dns-query", "example.com", "A", timeout=2.0)
    assert result.status == QueryStatus.RESOLVED
    assert result.transport == Transport.DOH_WIRE
    assert result.records == ["93.184.216.34"]

    method, path, headers, body = srv.requests[-1]
    assert method == "POST"
    assert headers["content-type"] == "application/dns-message"
    assert body[12:] == b"\x07example\x03com\x00\x00\x01\x00\x01"


def test_doh_wire_rejects_mismatched_id(stub_server):
    _srv, base = stub_server
    result = query_doh_wire(f"{base}/badid", "example.com", "A", timeout=2.0)
    assert result.status == QueryStatus.ERROR
    assert result.error == "Transaction id mismatch"


def test_doh_wire_servfail_and_http_errors(stub_server):
    _srv, base = stub_server
    assert query_doh_wire(f"{base}/servfail", "example.com", "A", timeout=2.0).error == "SERVFAIL"
    missing = query_doh_wire(f"{base}/missing", "example.com", "A", timeout=2.0)
    assert missing.status == QueryStatus.ERROR
    assert missing.error == "HTTP 404"


def test_doh_json_retries_through_proxy(monkeypatch):
    calls = []

    def fake_fetch(url, params, timeout, use_proxy):
        calls.append(use_proxy)
        if not use_proxy:
            raise httpx.ConnectError("[Errno 111] Connection refused")
        return {"Status": 0, "Answer": [{"type": 1, "data": "192.0.2.10"}]}

    monkeypatch.setattr(transport, "_fetch_json", fake_fetch)
    result = query_doh_json("https://doh.example/resolve", "example.com", "A")
    assert calls == [False, True]
    assert result.status == QueryStatus.RESOLVED
    assert result.records == ["192.0.2.10"]


def test_doh_json_no_proxy_retry_for_other_errors(monkeypatch):
    calls = []

    def fake_fetch(url, params, timeout, use_proxy):
        calls.append(use_proxy)
        raise httpx.ConnectError("[Errno -2] Name or service not known")

    monkeypatch.setattr(transport, "_fetch_json", fake_fetch)
    result = query_doh_json("https://doh.example/resolve", "example.com", "A")
    assert calls == [False]
    assert result.status == QueryStatus.ERROR
    assert "not known" in result.error


def test_doh_json_proxy_retry_failure_is_error(monkeypatch):
    def fake_fetch(url, params, timeout, use_proxy):
        if use_proxy:
            raise httpx.ProxyError("407 Proxy Authentication Required")
        raise httpx.ConnectError("proxy connection refused")

    monkeypatch.setattr(transport, "_fetch_json", fake_fetch)
    result = query_doh_json("https://doh.example/resolve", "example.com", "A")
    assert result.status == QueryStatus.ERROR
    assert "407" in result.error


@pytest.mark.parametrize(
    "data, expected",
    [
        ('"hello"', "hello"),
        ('"ab" "cd"', "abcd"),
        ('"say \\"hi\\""', 'say "hi"'),
        ('"back\\\\slash"', "back\\slash"),
        ("bare", "bare"),
        ('v=DKIM1; n="note"; p=abc', 'v=DKIM1; n="note"; p=abc'),
    ],
)
def test_unquote_txt(data, expected):
    assert transport._unquote_txt(data) == expected


def test_unquoted_txt_with_inner_quotes_is_kept(stub_server):
    _srv, base = stub_server
    result = query_doh_json(f"{base}/dkim", "example.com", "TXT", timeout=2.0)
    assert result.records == ['v=DKIM1; n="note"; p=abc']


def test_escaped_txt_matches_wire_decode():
    query = encode_query("example.com", "TXT", query_id=5)
    wire = decode_message(build_response(query, [(16, txt_rdata('say "hi"', " back\\slash"))]))
    assert wire.values == [transport._unquote_txt('"say \\"hi\\"" " back\\\\slash"')]


def test_soa_value_same_over_json_and_wire(stub_server):
    _srv, base = stub_server
    over_json = query_doh_json(f"{base}/soa", "example.org", "SOA", timeout=2.0)
    over_wire = query_doh_wire(f"{base}/soa", "example.org", "SOA", timeout=2.0)
    assert over_json.status == over_wire.status == QueryStatus.RESOLVED
    assert over_json.records == over_wire.records == ["ns1.example.org"]

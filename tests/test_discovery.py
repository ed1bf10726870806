"""Tests for discovery models and zeroconf naming helpers."""

from conftest import candidate, host_record

from lanlauncher.discovery.models import RemotePeer, ServiceIdentity
from lanlauncher.discovery.service import instance_name, qualified_type


class TestRemotePeer:
    """Conversion from resolved records."""

    def test_candidate_flags(self):
        p = RemotePeer.from_resolved(candidate("A", can_host=True, is_self=True))
        assert p.can_host is True
        assert p.is_self is True
        assert p.wad is None

    def test_missing_can_host_means_false(self):
        resolved = candidate("A")
        resolved.txt = {}
        assert RemotePeer.from_resolved(resolved).can_host is False

    def test_host_record_fields(self):
        p = RemotePeer.from_resolved(host_record("H", wad="doom2.wad", address="192.168.1.9", port=6000))
        assert p.wad == "doom2.wad"
        assert p.connect_address == "192.168.1.9"
        assert p.port == 6000

    def test_connect_falls_back_to_hostname(self):
        p = RemotePeer.from_resolved(host_record("H", address=None))
        assert p.connect_address == "H.local"


class TestServiceIdentity:
    def test_wildcards(self):
        ident = ServiceIdentity(name="A", type="_t._udp", domain="local", interface=2, protocol="inet")
        assert ident.matches("A", "_t._udp", "local")
        assert ident.matches("A", "_t._udp", "local", interface=2, protocol="inet")
        assert not ident.matches("A", "_t._udp", "local", interface=3)
        assert not ident.matches("B", "_t._udp", "local")


class TestNaming:
    def test_qualified_type(self):
        assert qualified_type("_oe-doom-client._udp") == "_oe-doom-client._udp.local."

    def test_instance_name(self):
        fq_type = "_oe-doom-client._udp.local."
        assert instance_name("abc #2._oe-doom-client._udp.local.", fq_type) == "abc #2"
        assert instance_name("other", fq_type) == "other"

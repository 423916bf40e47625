import copy
import socket

import pytest
import speedtest

from conftest import IDENTITY, make_candidate
from speedtest_exporter.config import SpeedtestConfig
from speedtest_exporter.measurements import provider as provider_module
from speedtest_exporter.measurements.errors import CandidateFetchError, IdentityFetchError, PhaseError
from speedtest_exporter.measurements.phases import PhaseRunner
from speedtest_exporter.measurements.provider import SpeedtestCliProvider
from speedtest_exporter.metrics import MetricSink

SERVERS = {
    14.2: [{"id": "2", "name": "Utrecht", "country": "Netherlands", "lat": "52.09", "lon": "5.12",
            "host": "st2.example.net:8080", "url": "http://st2.example.net:8080/speedtest/upload.php",
            "sponsor": "Example", "d": 14.2}],
    3.1: [{"id": "1", "name": "Amsterdam", "country": "Netherlands", "lat": "52.37", "lon": "4.89",
           "host": "st1.example.net:8080", "url": "http//st1.example.net:8080/speedtest/upload.php",
           "sponsor": "Example", "d": 3.1}],
}


class FakeResults:
    ping = 23.5
    bytes_received = 125_000_000
    bytes_sent = 40_000_000


class FakeSpeedtest:
    instances = []
    raise_on = set()

    def __init__(self, source_address=None, timeout=10, secure=False):
        if "config" in self.raise_on:
            raise speedtest.ConfigRetrievalError("HTTP Error 403")
        self.kwargs = dict(source_address=source_address, timeout=timeout, secure=secure)
        self.config = {"client": {"ip": "198.51.100.7", "lat": "52.37", "lon": "4.89", "isp": "Example ISP"}}
        self.results = FakeResults()
        self._best = {}
        self.pinged = None
        FakeSpeedtest.instances.append(self)

    def get_servers(self):
        if "servers" in self.raise_on:
            raise speedtest.ServersRetrievalError()
        return SERVERS

    def get_best_server(self, servers=None):
        if "ping" in self.raise_on:
            raise speedtest.SpeedtestBestServerFailure("Unable to connect to servers to test latency.")
        self.pinged = servers
        self._best = servers[0]
        return servers[0]

    def download(self):
        if "download" in self.raise_on:
            raise OSError("connection reset by peer")
        self.downloaded_from = self._best
        return 93_000_000.0

    def upload(self):
        if "upload" in self.raise_on:
            raise speedtest.SpeedtestUploadTimeout()
        self.uploaded_to = self._best
        return 41_000_000.0


@pytest.fixture
def fake_speedtest(monkeypatch):
    FakeSpeedtest.instances = []
    FakeSpeedtest.raise_on = set()
    monkeypatch.setattr(provider_module.speedtest, "Speedtest", FakeSpeedtest)
    return FakeSpeedtest


@pytest.fixture
def provider(fake_speedtest):
    return SpeedtestCliProvider(SpeedtestConfig(timeout=5, secure=True, source_address="192.0.2.1"))


def test_fetch_identity_reads_client_config(provider, fake_speedtest):
    identity = provider.fetch_identity()

    assert identity.ip == "198.51.100.7"
    assert identity.isp == "Example ISP"
    assert (identity.lat, identity.lon) == ("52.37", "4.89")
    assert fake_speedtest.instances[0].kwargs == {"source_address": "192.0.2.1", "timeout": 5, "secure": True}


def test_fetch_identity_translates_errors(provider, fake_speedtest):
    fake_speedtest.raise_on = {"config"}
    with pytest.raises(IdentityFetchError, match="could not fetch user information"):
        provider.fetch_identity()


def test_candidates_are_ordered_by_distance(provider):
    identity = provider.fetch_identity()
    candidates = provider.fetch_candidates(identity)

    assert [c.server_id for c in candidates] == ["1", "2"]
    assert candidates[0].distance == 3.1
    assert candidates[0].sponsor == "Example"
    # repair happens at selection, not here
    assert candidates[0].url.startswith("http//")


def test_fetch_candidates_translates_errors(provider, fake_speedtest):
    identity = provider.fetch_identity()
    fake_speedtest.raise_on = {"servers"}
    with pytest.raises(CandidateFetchError):
        provider.fetch_candidates(identity)


def test_ping_returns_seconds_for_the_given_server(provider, fake_speedtest):
    provider.fetch_identity()
    latency = provider.ping(make_candidate("55"))

    assert latency == pytest.approx(0.0235)
    assert fake_speedtest.instances[0].pinged[0]["id"] == "55"


def test_throughput_targets_the_selected_server(provider, fake_speedtest):
    provider.fetch_identity()
    candidate = make_candidate("55")

    download = provider.download(candidate)
    upload = provider.upload(candidate, account_bytes=True)

    client = fake_speedtest.instances[0]
    assert client.downloaded_from["id"] == "55"
    assert client.uploaded_to["url"] == candidate.url
    assert download.raw == 93_000_000.0
    assert download.bytes_transferred is None
    assert upload.raw == 41_000_000.0
    assert upload.bytes_transferred == 40_000_000


@pytest.mark.parametrize("phase", ["ping", "download", "upload"])
def test_phase_errors_are_translated(provider, fake_speedtest, phase):
    provider.fetch_identity()
    fake_speedtest.raise_on = {phase}
    with pytest.raises(PhaseError) as excinfo:
        getattr(provider, phase)(make_candidate())
    assert excinfo.value.phase == {"ping": "latency"}.get(phase, phase)


def test_phases_require_identity_first(provider):
    with pytest.raises(RuntimeError):
        provider.ping(make_candidate())


def test_partial_latency_failure_is_a_phase_error(provider, fake_speedtest, monkeypatch):
    provider.fetch_identity()
    # one of three requests timed out: (3600 + 0.02 + 0.02) / 6 seconds
    monkeypatch.setattr(FakeResults, "ping", 600_006.667)
    with pytest.raises(PhaseError, match="latency requests"):
        provider.ping(make_candidate())


@pytest.mark.parametrize("phase, counter", [("download", "bytes_received"), ("upload", "bytes_sent")])
def test_zero_byte_transfer_is_a_phase_error(provider, monkeypatch, phase, counter):
    provider.fetch_identity()
    monkeypatch.setattr(FakeResults, counter, 0)
    with pytest.raises(PhaseError) as excinfo:
        getattr(provider, phase)(make_candidate())
    assert excinfo.value.phase == phase


# The tests below run the real speedtest-cli measurement code; only the
# speedtest.net configuration download is replaced.

CLIENT_CONFIG = {
    "client": {"ip": "198.51.100.7", "lat": "52.37", "lon": "4.89", "isp": "Example ISP"},
    "ignore_servers": [],
    "sizes": {"upload": [32768], "download": [350]},
    "counts": {"upload": 1, "download": 1},
    "threads": {"upload": 1, "download": 1},
    "length": {"upload": 2, "download": 2},
    "upload_max": 1,
}


def _canned_get_config(self):
    self.config.update(copy.deepcopy(CLIENT_CONFIG))
    self.lat_lon = (52.37, 4.89)
    return self.config


@pytest.fixture
def unreachable_server():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    # nothing listens on the port once the socket is closed
    return make_candidate(
        "9",
        host=f"127.0.0.1:{port}",
        url=f"http://127.0.0.1:{port}/speedtest/upload.php",
    )


@pytest.fixture
def offline_provider(monkeypatch):
    monkeypatch.setattr(speedtest.Speedtest, "get_config", _canned_get_config)
    provider = SpeedtestCliProvider(SpeedtestConfig(timeout=2))
    provider.fetch_identity()
    return provider


def test_unreachable_server_latency_fails(offline_provider, unreachable_server):
    with pytest.raises(PhaseError) as excinfo:
        offline_provider.ping(unreachable_server)
    assert excinfo.value.phase == "latency"


def test_unreachable_server_download_fails(offline_provider, unreachable_server):
    with pytest.raises(PhaseError) as excinfo:
        offline_provider.download(unreachable_server)
    assert excinfo.value.phase == "download"


def test_unreachable_server_upload_fails(offline_provider, unreachable_server):
    with pytest.raises(PhaseError) as excinfo:
        offline_provider.upload(unreachable_server)
    assert excinfo.value.phase == "upload"


def test_unreachable_server_fails_every_phase(offline_provider, unreachable_server, registry):
    sink = MetricSink()
    results = PhaseRunner(offline_provider, registry).run_all("test-uuid", IDENTITY, unreachable_server, sink)

    assert [(r.phase, r.success) for r in results] == [
        ("latency", False),
        ("download", False),
        ("upload", False),
    ]
    assert sink.samples == []

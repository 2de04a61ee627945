"""Tests for paypal_rest.config_store.

Tests cover:
- parse_config for mappings, text/bytes streams and file paths
- Flattening of nested YAML and ${ENV_VAR} substitution
- Load failures (missing file, malformed YAML, non-mapping) and their logging
- ConfigStore state transitions and the one-shot implicit load
- Typed views: base_url and http_configuration
"""

import io
import logging
import string
import threading
from pathlib import Path

import pytest
import yaml
from hypothesis import given, settings
from hypothesis import strategies as st

from paypal_rest.config_store import (
    DEFAULT_CONFIG_PATH,
    ConfigError,
    ConfigLoadError,
    ConfigStore,
    parse_config,
)
from paypal_rest.models import HttpMethod
from paypal_rest.request_builder import build_headers


class CountingStore(ConfigStore):
    """ConfigStore that counts load() calls."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.loads = 0

    def load(self, source) -> None:
        self.loads += 1
        super().load(source)


# =============================================================================
# parse_config
# =============================================================================


class TestParseConfig:
    def test_mapping_copied_and_stringified(self):
        source = {"service.EndPoint": "https://x/", "http.MaxConnection": 10, "http.UseProxy": False}
        result = parse_config(source)
        assert result == {
            "service.EndPoint": "https://x/",
            "http.MaxConnection": "10",
            "http.UseProxy": "false",
        }
        source["service.EndPoint"] = "changed"
        assert result["service.EndPoint"] == "https://x/"

    def test_nested_yaml_flattened(self):
        stream = io.StringIO(
            "service:\n"
            "  EndPoint: https://api.example.com/\n"
            "http:\n"
            "  ReadTimeOut: 3000\n"
            "  UseProxy: true\n"
        )
        assert parse_config(stream) == {
            "service.EndPoint": "https://api.example.com/",
            "http.ReadTimeOut": "3000",
            "http.UseProxy": "true",
        }

    def test_dotted_and_nested_spellings_equivalent(self):
        dotted = parse_config(io.StringIO("service.EndPoint: https://a/\n"))
        nested = parse_config(io.StringIO("service:\n  EndPoint: https://a/\n"))
        assert dotted == nested

    def test_bytes_stream(self):
        stream = io.BytesIO(b"mode: live\n")
        assert parse_config(stream) == {"mode": "live"}

    def test_empty_document_is_empty_config(self):
        assert parse_config(io.StringIO("")) == {}

    def test_null_value_becomes_empty_string(self):
        assert parse_config(io.StringIO("http.ProxyHost:\n")) == {"http.ProxyHost": ""}

    def test_list_value_joined(self):
        assert parse_config(io.StringIO("scopes: [a, b]\n")) == {"scopes": "a,b"}

    def test_file_path(self, tmp_path: Path):
        config_file = tmp_path / "sdk.yaml"
        config_file.write_text("mode: sandbox\n", encoding="utf-8")
        assert parse_config(config_file) == {"mode": "sandbox"}
        assert parse_config(str(config_file)) == {"mode": "sandbox"}

    def test_missing_file(self, tmp_path: Path):
        missing = tmp_path / "nope.yaml"
        with pytest.raises(ConfigLoadError, match="File doesn't exist"):
            parse_config(missing)

    def test_malformed_yaml_chains_cause(self):
        with pytest.raises(ConfigLoadError, match="Invalid YAML") as exc_info:
            parse_config(io.StringIO("service: [unclosed\n"))
        assert isinstance(exc_info.value.__cause__, yaml.YAMLError)

    def test_non_mapping_document(self):
        with pytest.raises(ConfigLoadError, match="must be a YAML mapping"):
            parse_config(io.StringIO("- a\n- b\n"))

    def test_unsupported_source(self):
        with pytest.raises(ConfigLoadError, match="Unsupported config source"):
            parse_config(42)  # type: ignore[arg-type]

    def test_env_var_substitution(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PAYPAL_ENDPOINT", "https://env.example.com/")
        result = parse_config(io.StringIO("service.EndPoint: ${PAYPAL_ENDPOINT}\n"))
        assert result["service.EndPoint"] == "https://env.example.com/"

    def test_unset_env_var_fails(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("PAYPAL_UNSET_VAR", raising=False)
        with pytest.raises(ConfigLoadError, match="PAYPAL_UNSET_VAR"):
            parse_config(io.StringIO("http.ProxyPassword: ${PAYPAL_UNSET_VAR}\n"))

    def test_mapping_not_env_substituted(self):
        """In-memory mappings are taken literally and never fail."""
        result = parse_config({"key": "${NOT_A_REAL_VAR_FOR_SURE}"})
        assert result == {"key": "${NOT_A_REAL_VAR_FOR_SURE}"}


# =============================================================================
# ConfigStore.load
# =============================================================================


class TestConfigStoreLoad:
    def test_starts_uninitialized(self):
        store = ConfigStore()
        assert not store.initialized
        assert store.as_dict() == {}

    def test_load_marks_initialized(self):
        store = ConfigStore()
        store.load({"mode": "live"})
        assert store.initialized
        assert store.get("mode") == "live"

    def test_reload_replaces_everything(self):
        store = ConfigStore()
        store.load({"mode": "live", "http.MaxConnection": "5"})
        store.load({"mode": "sandbox"})
        assert store.as_dict() == {"mode": "sandbox"}

    def test_failed_load_keeps_previous_state(self, tmp_path: Path):
        store = ConfigStore()
        store.load({"service.EndPoint": "https://keep.example.com/"})

        with pytest.raises(ConfigLoadError):
            store.load(tmp_path / "missing.yaml")

        assert store.initialized
        assert store.base_url == "https://keep.example.com/"

    def test_failed_first_load_stays_uninitialized(self):
        store = ConfigStore()
        with pytest.raises(ConfigLoadError):
            store.load(io.StringIO("[1, 2"))
        assert not store.initialized

    def test_failure_logged_at_error(self, tmp_path: Path, caplog: pytest.LogCaptureFixture):
        store = ConfigStore()
        with caplog.at_level(logging.ERROR, logger="paypal_rest.config_store"):
            with pytest.raises(ConfigLoadError):
                store.load(tmp_path / "missing.yaml")

        records = [r for r in caplog.records if r.name == "paypal_rest.config_store"]
        assert len(records) == 1
        assert records[0].levelno == logging.ERROR
        assert "File doesn't exist" in records[0].getMessage()
        assert records[0].exc_info is not None

    def test_mapping_load_logs_nothing_at_error(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.ERROR):
            ConfigStore().load({"a": "b"})
        assert caplog.records == []

    @given(
        segments=st.lists(
            st.text(alphabet=string.ascii_lowercase + string.digits, min_size=1, max_size=8),
            max_size=3,
        ),
        token=st.text(alphabet=string.ascii_letters + string.digits, min_size=1, max_size=20),
    )
    @settings(max_examples=50, deadline=None)
    def test_equivalent_sources_give_identical_state(self, segments: list[str], token: str):
        """Mapping, text stream and bytes stream of the same settings are interchangeable."""
        endpoint = "https://api.example.com/" + "/".join(segments)
        document = yaml.safe_dump({"service": {"EndPoint": endpoint}})

        store = ConfigStore()
        observed = []
        for source in (
            {"service.EndPoint": endpoint},
            io.StringIO(document),
            io.BytesIO(document.encode("utf-8")),
            {"service.EndPoint": endpoint},
        ):
            store.load(source)
            observed.append((store.base_url, store.http_configuration(), build_headers(token)))

        assert all(entry == observed[0] for entry in observed)


# =============================================================================
# ConfigStore.ensure_initialized
# =============================================================================


class TestEnsureInitialized:
    def test_loads_bundled_default(self):
        store = ConfigStore()
        store.ensure_initialized()
        assert store.initialized
        assert store.base_url == "https://api.sandbox.paypal.com/"

    def test_bundled_default_exists(self):
        assert DEFAULT_CONFIG_PATH.exists()

    def test_noop_when_already_loaded(self):
        store = CountingStore(default_source={"mode": "live"})
        store.load({"mode": "sandbox"})
        store.ensure_initialized()
        store.ensure_initialized()
        assert store.loads == 1
        assert store.get("mode") == "sandbox"

    def test_implicit_load_happens_once(self):
        store = CountingStore(default_source={"mode": "live"})
        store.ensure_initialized()
        store.ensure_initialized()
        assert store.loads == 1

    def test_concurrent_first_use_loads_once(self):
        store = CountingStore(default_source={"mode": "live"})
        barrier = threading.Barrier(8)

        def worker() -> None:
            barrier.wait()
            store.ensure_initialized()

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.loads == 1
        assert store.get("mode") == "live"

    def test_failed_default_load_propagates(self, tmp_path: Path):
        store = ConfigStore(default_source=tmp_path / "absent.yaml")
        with pytest.raises(ConfigLoadError):
            store.ensure_initialized()
        assert not store.initialized

    def test_explicit_reload_after_implicit(self):
        store = ConfigStore(default_source={"mode": "sandbox"})
        store.ensure_initialized()
        store.load({"mode": "live"})
        store.ensure_initialized()
        assert store.get("mode") == "live"


# =============================================================================
# Typed views
# =============================================================================


class TestBaseUrl:
    def test_endpoint_with_slash_unchanged(self):
        store = ConfigStore()
        store.load({"service.EndPoint": "https://api.example.com/v1/"})
        assert store.base_url == "https://api.example.com/v1/"

    def test_endpoint_without_slash_unchanged(self):
        store = ConfigStore()
        store.load({"service.EndPoint": "https://api.example.com/v1"})
        assert store.base_url == "https://api.example.com/v1"

    @pytest.mark.parametrize(
        "mode,expected",
        [
            ("sandbox", "https://api.sandbox.paypal.com/"),
            ("live", "https://api.paypal.com/"),
            ("LIVE", "https://api.paypal.com/"),
        ],
    )
    def test_mode_fallback(self, mode: str, expected: str):
        store = ConfigStore()
        store.load({"mode": mode})
        assert store.base_url == expected

    def test_endpoint_wins_over_mode(self):
        store = ConfigStore()
        store.load({"mode": "live", "service.EndPoint": "https://override.example.com/"})
        assert store.base_url == "https://override.example.com/"

    def test_no_endpoint_no_mode(self):
        store = ConfigStore()
        store.load({})
        with pytest.raises(ConfigError, match="service.EndPoint"):
            store.base_url


class TestHttpConfiguration:
    def test_defaults(self):
        store = ConfigStore()
        store.load({"service.EndPoint": "https://a.example.com"})
        params = store.http_configuration()
        assert params.endpoint_url == "https://a.example.com/"
        assert params.http_method == HttpMethod.GET
        assert params.connect_timeout is None
        assert params.read_timeout is None
        assert params.max_connections is None
        assert params.proxy is None
        assert params.verify_ssl is True

    def test_timeouts_in_milliseconds(self):
        store = ConfigStore()
        store.load({
            "mode": "sandbox",
            "http.ConnectionTimeOut": "1500",
            "http.ReadTimeOut": "30000",
            "http.MaxConnection": "20",
        })
        params = store.http_configuration("post")
        assert params.http_method == HttpMethod.POST
        assert params.connect_timeout == 1.5
        assert params.read_timeout == 30.0
        assert params.max_connections == 20

    def test_zero_timeout_means_default(self):
        store = ConfigStore()
        store.load({"mode": "sandbox", "http.ReadTimeOut": "0"})
        assert store.http_configuration().read_timeout is None

    def test_proxy_enabled(self):
        store = ConfigStore()
        store.load({
            "mode": "sandbox",
            "http.UseProxy": "true",
            "http.ProxyHost": "proxy.local",
            "http.ProxyPort": "3128",
            "http.ProxyUserName": "user",
            "http.ProxyPassword": "pw",
        })
        proxy = store.http_configuration().proxy
        assert proxy is not None
        assert proxy.url == "http://user:pw@proxy.local:3128"

    def test_proxy_disabled_ignores_host(self):
        store = ConfigStore()
        store.load({"mode": "sandbox", "http.UseProxy": "false", "http.ProxyHost": "proxy.local"})
        assert store.http_configuration().proxy is None

    def test_proxy_without_host(self):
        store = ConfigStore()
        store.load({"mode": "sandbox", "http.UseProxy": "yes"})
        with pytest.raises(ConfigError, match="http.ProxyHost"):
            store.http_configuration()

    def test_tls_settings(self):
        store = ConfigStore()
        store.load({
            "mode": "sandbox",
            "http.VerifySSL": "false",
            "http.CABundle": "/etc/ca.pem",
            "http.ClientCert": "/etc/cert.pem",
            "http.ClientKey": "/etc/key.pem",
        })
        params = store.http_configuration()
        assert params.verify_ssl is False
        assert params.ca_bundle == "/etc/ca.pem"
        assert params.cert == "/etc/cert.pem"
        assert params.key == "/etc/key.pem"

    def test_bad_integer(self):
        store = ConfigStore()
        store.load({"mode": "sandbox", "http.MaxConnection": "lots"})
        with pytest.raises(ConfigError, match="http.MaxConnection"):
            store.http_configuration()

    def test_bad_boolean(self):
        store = ConfigStore()
        store.load({"mode": "sandbox", "http.VerifySSL": "maybe"})
        with pytest.raises(ConfigError, match="http.VerifySSL"):
            store.http_configuration()

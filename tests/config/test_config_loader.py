from pathlib import Path
import textwrap

import pytest
from pydantic import ValidationError

from chunkops.config.loader import load_config
from chunkops.config.settings import load_runtime_settings


CLUSTER_YAML = textwrap.dedent("""
    name: my-cluster
    namespace: curvebs
    image: ${CURVE_IMAGE}
    storage:
      nodes: [node1, node2, node3]
      port: 8200
      devices:
        - name: /dev/sdb
          percentage: 80
        - name: /dev/sdc
    snapshot_clone:
      enable: true
      port: 5555
""")


def test_load_config_minimal_ok(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("CURVE_IMAGE", "opencurvedocker/curvebs:v1.2.6")
    monkeypatch.delenv("CHUNKOPS_OVERRIDES_FILE", raising=False)
    f = tmp_path / "cluster.yaml"
    f.write_text(CLUSTER_YAML)

    spec = load_config(f)

    assert spec.name == "my-cluster"
    assert spec.image == "opencurvedocker/curvebs:v1.2.6"
    assert spec.storage.nodes == ["node1", "node2", "node3"]
    assert [d.short_name for d in spec.storage.devices] == ["sdb", "sdc"]
    assert spec.storage.devices[1].percentage == 80
    assert spec.snapshot_clone.enable is True
    assert spec.mds.dummy_port == 7700


def test_overrides_file_is_merged(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("CURVE_IMAGE", "img")
    f = tmp_path / "cluster.yaml"
    f.write_text(CLUSTER_YAML)
    o = tmp_path / "site.yaml"
    o.write_text("storage:\n  port: 9000\nimage_pull_policy: Always\n")
    monkeypatch.setenv("CHUNKOPS_OVERRIDES_FILE", str(o))

    spec = load_config(f)

    assert spec.storage.port == 9000
    assert spec.storage.nodes == ["node1", "node2", "node3"]
    assert spec.image_pull_policy == "Always"


def test_invalid_percentage_is_rejected(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("CHUNKOPS_OVERRIDES_FILE", raising=False)
    f = tmp_path / "cluster.yaml"
    f.write_text("name: c\nstorage:\n  nodes: [n1]\n  devices:\n    - name: /dev/sdb\n      percentage: 150\n")
    with pytest.raises(ValidationError):
        load_config(f)


def test_runtime_settings_defaults(monkeypatch):
    for var in ("CHUNKOPS_FORMAT_TIMEOUT", "CHUNKOPS_FORMAT_POLL", "CHUNKOPS_POOL_TIMEOUT",
                "CHUNKOPS_ROLLOUT_TIMEOUT", "CHUNKOPS_KUBE_CONTEXT"):
        monkeypatch.delenv(var, raising=False)
    s = load_runtime_settings()
    assert s.format_timeout_seconds == 86400
    assert s.format_poll_seconds == 20
    assert s.pool_timeout_seconds == 600
    assert s.rollout_timeout_seconds == 900
    assert s.kube_context is None


def test_runtime_settings_from_env(monkeypatch):
    monkeypatch.setenv("CHUNKOPS_FORMAT_TIMEOUT", "30")
    monkeypatch.setenv("CHUNKOPS_FORMAT_POLL", "0.5")
    monkeypatch.setenv("CHUNKOPS_KUBE_CONTEXT", "kind-curve")
    s = load_runtime_settings()
    assert s.format_timeout_seconds == 30.0
    assert s.format_poll_seconds == 0.5
    assert s.kube_context == "kind-curve"

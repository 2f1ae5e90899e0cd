import pytest

from diskguard.guard.config import GuardSettings, load_config as load_guard_config
from diskguard.monitor.config import (
    MonitorConfig,
    NodeConfig,
    channel_for_node,
    load_config as load_monitor_config,
)
from diskguard.channels import LocalChannel, SshChannel
from diskguard.shared.config import env_flag, get_config_path, load_yaml_config
from diskguard.shared.models import GuardConfig

GUARD_ENV_VARS = [
    "DISKGUARD_CONFIG",
    "DISKGUARD_THRESHOLD_GB",
    "DISKGUARD_RECYCLER_ENABLED",
    "DISKGUARD_MONITOR_CONFIG",
    "DISKGUARD_ENV",
    "MQTT_BROKER",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in GUARD_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # isolate from any config or .env in the working tree
    monkeypatch.chdir(tmp_path)


def test_guard_defaults():
    settings = load_guard_config()
    assert settings.guard == GuardConfig(threshold_gb=1, recycler_enabled=False)
    assert settings.monitor_retry_delay == 1.0
    assert settings.mqtt_enabled is False
    assert settings.mqtt.client_id == "diskguard-check"


def test_guard_from_yaml(tmp_path):
    path = tmp_path / "guard.yaml"
    path.write_text(
        "threshold_gb: 20\n"
        "recycler_enabled: true\n"
        "monitor_retry_delay: 2.5\n"
        "mqtt_enabled: true\n"
        "mqtt:\n"
        "  broker: mqtt.ci.internal\n"
        "log_level: DEBUG\n"
    )

    settings = load_guard_config(str(path))

    assert settings.guard == GuardConfig(20, True)
    assert settings.monitor_retry_delay == 2.5
    assert settings.mqtt.broker == "mqtt.ci.internal"
    assert settings.mqtt.client_id == "diskguard-check"
    assert settings.log_level == "DEBUG"


def test_guard_config_path_from_env(tmp_path, monkeypatch):
    path = tmp_path / "guard.yaml"
    path.write_text("threshold_gb: 7\n")
    monkeypatch.setenv("DISKGUARD_CONFIG", str(path))

    assert load_guard_config().guard.threshold_gb == 7


def test_guard_env_overrides(tmp_path, monkeypatch):
    path = tmp_path / "guard.yaml"
    path.write_text("threshold_gb: 7\nrecycler_enabled: false\n")
    monkeypatch.setenv("DISKGUARD_RECYCLER_ENABLED", "yes")
    monkeypatch.setenv("MQTT_BROKER", "broker.local")

    settings = load_guard_config(str(path))

    assert settings.guard == GuardConfig(7, True)
    assert settings.mqtt.broker == "broker.local"
    assert settings.mqtt_enabled is True


def test_guard_threshold_env_override(monkeypatch):
    monkeypatch.setenv("DISKGUARD_THRESHOLD_GB", "12")
    assert load_guard_config().guard == GuardConfig(12, False)


def test_guard_settings_from_empty_dict():
    assert GuardSettings.from_dict({}).guard == GuardConfig()


@pytest.mark.parametrize("value, expected", [("1", True), ("TRUE", True), (" on ", True), ("0", False), ("no", False)])
def test_env_flag(value, expected):
    assert env_flag(value) is expected


def test_load_yaml_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_yaml_config(tmp_path / "missing.yaml", load_env=False)


def test_get_config_path_uses_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("DISKGUARD_ENV", "ci")
    assert get_config_path(config_dir=tmp_path) == tmp_path / "config-ci.yaml"


def test_monitor_from_yaml(tmp_path):
    path = tmp_path / "monitor.yaml"
    path.write_text(
        "check_interval: 15\n"
        "topic: ci/nodes\n"
        "nodes:\n"
        "  - name: built-in\n"
        "    path: /var/ci\n"
        "  - name: win-01\n"
        "    path: D:\\ci\n"
        "    host: win-01.ci\n"
        "    user: jenkins\n"
        "    os: Windows\n"
    )

    config = load_monitor_config(str(path))

    assert config.check_interval == 15
    assert config.topic == "ci/nodes"
    assert config.mqtt.client_id == "diskguard-monitor"
    assert [n.name for n in config.nodes] == ["built-in", "win-01"]
    assert config.nodes[1].is_unix is False


def test_monitor_defaults_with_env(monkeypatch):
    monkeypatch.setenv("MQTT_BROKER", "broker.local")
    config = load_monitor_config()
    assert config.nodes == []
    assert config.mqtt.broker == "broker.local"


def test_channel_for_node():
    local = channel_for_node(NodeConfig(name="built-in", path="/var/ci"))
    remote = channel_for_node(NodeConfig(name="win", path="D:\\ci", host="win", os="windows"))

    assert isinstance(local, LocalChannel)
    assert isinstance(remote, SshChannel)
    assert remote.is_unix is False


def test_monitor_config_default_instances_are_independent():
    first, second = MonitorConfig(), MonitorConfig()
    first.mqtt.broker = "elsewhere"
    assert second.mqtt.broker == "localhost"


def test_example_configs_load():
    from pathlib import Path

    config_dir = Path(__file__).resolve().parent.parent / "config"

    settings = load_guard_config(str(config_dir / "config-default.yaml"))
    monitor = load_monitor_config(str(config_dir / "monitor-default.yaml"))

    assert settings.guard == GuardConfig()
    assert [node.name for node in monitor.nodes] == ["built-in", "linux-01", "win-01"]


@pytest.mark.parametrize("value, expected", [("false", False), ("True", True), (False, False), (1, True)])
def test_guard_config_reads_quoted_booleans(value, expected):
    assert GuardConfig.from_dict({"recycler_enabled": value}).recycler_enabled is expected


def test_guard_config_found_by_environment_name(tmp_path, monkeypatch):
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "config-ci.yaml").write_text("threshold_gb: 9\n")
    monkeypatch.setenv("DISKGUARD_ENV", "ci")

    assert load_guard_config().guard.threshold_gb == 9


def test_default_guard_config_picked_up_from_working_tree(tmp_path):
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "config-default.yaml").write_text("recycler_enabled: true\n")

    assert load_guard_config().guard.recycler_enabled is True


def test_monitor_config_found_by_environment_name(tmp_path, monkeypatch):
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "monitor-ci.yaml").write_text(
        "nodes:\n  - name: linux-09\n    path: /ci\n"
    )
    monkeypatch.setenv("DISKGUARD_ENV", "ci")

    assert [node.name for node in load_monitor_config().nodes] == ["linux-09"]

"""
测试配置加载

覆盖：
- 默认值与 YAML 加载
- timeout_s 必须短于 interval_s
- 环境变量覆盖（包括随仓库提供的 config.yaml）
- 运营者探测超时受桥拉取超时约束
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from network_monitor.config import (
    ActivityStatsConfig, AppConfig, BridgeStatusConfig, NodeStatusConfig, get_config, load_config,
)


def test_defaults():
    config = AppConfig()

    assert config.api.port == 3000
    assert [c.domain for c in config.domain_configs()] == [
        "node_status", "bundler_health", "balances", "bridge_status", "activity_stats",
    ]
    assert config.domains.node_status.interval_s == 10
    assert config.domains.node_status.timeout_s == 5
    assert config.domains.bridge_status.interval_s == 120
    assert config.domains.bridge_status.timeout_s == 60
    assert config.domains.activity_stats.timeout_s == 60


def test_timeout_must_be_shorter_than_interval():
    with pytest.raises(ValidationError):
        NodeStatusConfig(interval_s=10, timeout_s=10)
    with pytest.raises(ValidationError):
        NodeStatusConfig(interval_s=10, timeout_s=0)
    with pytest.raises(ValidationError):
        NodeStatusConfig(interval_s=0)


def test_default_timeout_capped_by_interval():
    assert BridgeStatusConfig(interval_s=20).timeout_s == 10
    assert NodeStatusConfig(interval_s=4).timeout_s == 2
    assert ActivityStatsConfig(interval_s=600).timeout_s == 60


def test_missing_file_uses_defaults(tmp_path):
    config = load_config(str(tmp_path / "nope.yaml"))
    assert config == AppConfig()


def test_load_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "api:\n"
        "  port: 8080\n"
        "logging:\n"
        "  file: logs/monitor.log\n"
        "domains:\n"
        "  balances:\n"
        "    upstream_url: http://reth:8545\n"
        "    interval_s: 30\n"
        "    deposit_wallet: '0xD00D'\n"
        "  activity_stats:\n"
        "    keys_path: keys.json\n"
        "    page_size: 25\n",
        encoding="utf-8",
    )

    config = load_config(str(path))

    assert config.api.port == 8080
    assert config.domains.balances.upstream_url == "http://reth:8545"
    assert config.domains.balances.interval_s == 30
    assert config.domains.balances.timeout_s == 5
    assert config.domains.balances.deposit_wallet == "0xD00D"
    assert config.domains.balances.validating_wallet == "0xC0FFEE"
    assert config.domains.activity_stats.page_size == 25
    # 相对路径以配置文件目录为基准
    assert config.logging.file == str((tmp_path / "logs" / "monitor.log").resolve())
    assert config.domains.activity_stats.keys_path == str((tmp_path / "keys.json").resolve())


def test_env_overrides(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text("domains:\n  node_status:\n    upstream_url: http://from-yaml:8545\n", encoding="utf-8")

    monkeypatch.setenv("RPC_URL", "http://from-env:8545")
    monkeypatch.setenv("STRATA_BRIDGE_RPC_URL", "http://bridge:8546")
    monkeypatch.setenv("NETWORK_STATUS_REFETCH_INTERVAL_S", "30")
    monkeypatch.setenv("BRIDGE_STATUS_REFETCH_INTERVAL_S", "20")
    monkeypatch.setenv("DEPOSIT_PAYMASTER_WALLET", "0xBEEF")
    monkeypatch.setenv("PORT", "4000")

    config = load_config(str(path))

    assert config.domains.node_status.upstream_url == "http://from-env:8545"
    assert config.domains.bridge_status.upstream_url == "http://bridge:8546"
    assert config.domains.node_status.interval_s == 30
    assert config.domains.bundler_health.interval_s == 30
    assert config.domains.balances.interval_s == 10
    assert config.domains.bridge_status.interval_s == 20
    assert config.domains.bridge_status.timeout_s == 10
    assert config.domains.balances.deposit_wallet == "0xBEEF"
    assert config.api.port == 4000


def test_env_interval_conflicting_with_yaml_timeout(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text("domains:\n  balances:\n    timeout_s: 8\n", encoding="utf-8")
    monkeypatch.setenv("BALANCES_REFETCH_INTERVAL_S", "5")

    with pytest.raises(ValidationError):
        load_config(str(path))


def test_get_config_singleton(tmp_path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text("api:\n  port: 9000\n", encoding="utf-8")
    monkeypatch.setenv("NETWORK_MONITOR_CONFIG_PATH", str(path))

    config = get_config()
    assert config.api.port == 9000
    assert get_config() is config


REPO_CONFIG = Path(__file__).parent.parent / "config.yaml"


def test_repo_config_with_short_env_interval(monkeypatch):
    """随仓库提供的 config.yaml 在 3 秒周期下仍可加载"""
    monkeypatch.setenv("NETWORK_STATUS_REFETCH_INTERVAL_S", "3")
    monkeypatch.setenv("BALANCES_REFETCH_INTERVAL_S", "3")
    monkeypatch.setenv("BRIDGE_STATUS_REFETCH_INTERVAL_S", "20")

    config = load_config(str(REPO_CONFIG))

    assert config.domains.node_status.interval_s == 3
    assert config.domains.node_status.timeout_s == 1.5
    assert config.domains.bundler_health.timeout_s == 1.5
    assert config.domains.balances.timeout_s == 1.5
    assert config.domains.bridge_status.timeout_s == 10
    for domain_config in config.domain_configs():
        assert domain_config.timeout_s < domain_config.interval_s


def test_operator_ping_timeout_clamped():
    assert BridgeStatusConfig().operator_ping_timeout_s == 5
    assert BridgeStatusConfig(operator_ping_timeout_s=120000).operator_ping_timeout_s == 30
    assert BridgeStatusConfig(interval_s=20, operator_ping_timeout_s=8).operator_ping_timeout_s == 5

    with pytest.raises(ValidationError):
        BridgeStatusConfig(operator_ping_timeout_s=0)


def test_operator_ping_timeout_from_env(monkeypatch):
    monkeypatch.setenv("BRIDGE_OPERATOR_PING_TIMEOUT_S", "120000")

    config = load_config(str(REPO_CONFIG))

    bridge = config.domains.bridge_status
    assert bridge.operator_ping_timeout_s < bridge.timeout_s

"""
配置加载模块

从 config.yaml 加载配置，支持 Pydantic 验证和环境变量覆盖。

每个数据域一份 DomainConfig（domain / interval_s / timeout_s / upstream_url），
启动时通过 AppConfig.domain_configs() 枚举。
"""

import logging
import os
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 5.0


class APIConfig(BaseModel):
    """API 服务配置"""
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]


class LoggingConfig(BaseModel):
    """日志配置"""
    level: str = "INFO"
    file: Optional[str] = None


class DomainConfig(BaseModel):
    """单个数据域的轮询配置"""
    domain: str
    interval_s: int = 10
    timeout_s: Optional[float] = None
    upstream_url: str
    enabled: bool = True

    default_timeout_s: ClassVar[float] = DEFAULT_TIMEOUT_S

    @model_validator(mode="after")
    def _check_timeout(self):
        if self.interval_s <= 0:
            raise ValueError(f"{self.domain}: interval_s must be positive")
        if self.timeout_s is None:
            # 未显式配置时取默认值，但必须短于轮询周期
            self.timeout_s = min(self.default_timeout_s, self.interval_s / 2)
        if not 0 < self.timeout_s < self.interval_s:
            raise ValueError(
                f"{self.domain}: timeout_s ({self.timeout_s}) must be "
                f"between 0 and interval_s ({self.interval_s})"
            )
        self._check_domain()
        return self

    def _check_domain(self):
        """子类的额外校验（在 timeout_s 确定之后执行）"""


class NodeStatusConfig(DomainConfig):
    """节点 RPC 健康探测"""
    domain: str = "node_status"
    interval_s: int = 10
    upstream_url: str = "http://localhost:8545"


class BundlerHealthConfig(DomainConfig):
    """Bundler 健康检查"""
    domain: str = "bundler_health"
    interval_s: int = 10
    upstream_url: str = "http://localhost:4337/health"


class BalancesConfig(DomainConfig):
    """Paymaster 钱包余额"""
    domain: str = "balances"
    interval_s: int = 10
    upstream_url: str = "http://localhost:8545"
    deposit_wallet: str = "0xCAFE"
    validating_wallet: str = "0xC0FFEE"


class BridgeStatusConfig(DomainConfig):
    """桥状态（upstream_url 为桥 RPC，node_rpc_url 为节点 RPC）"""
    domain: str = "bridge_status"
    interval_s: int = 120
    default_timeout_s: ClassVar[float] = 60.0
    upstream_url: str = "http://localhost:8546"
    node_rpc_url: str = "http://localhost:8545"
    operator_ping_timeout_s: float = 5.0
    operator_name_prefix: str = "Alpen Labs"

    def _check_domain(self):
        if self.operator_ping_timeout_s <= 0:
            raise ValueError("bridge_status: operator_ping_timeout_s must be positive")
        # 单个运营者无响应时只应标记为 Offline，不能拖垮整次拉取
        limit = self.timeout_s / 2
        if self.operator_ping_timeout_s > limit:
            logger.warning(
                f"bridge_status: operator_ping_timeout_s ({self.operator_ping_timeout_s}) "
                f"exceeds half of timeout_s ({self.timeout_s}), clamped to {limit}"
            )
            self.operator_ping_timeout_s = limit


class ActivityStatsConfig(DomainConfig):
    """区块浏览器活动统计（upstream_url 为 user operations 查询地址）"""
    domain: str = "activity_stats"
    interval_s: int = 120
    default_timeout_s: ClassVar[float] = 60.0
    upstream_url: str = "http://localhost/api/v2/proxy/account-abstraction/operations"
    accounts_url: str = "http://localhost/api/v2/proxy/account-abstraction/accounts"
    page_size: int = 100
    max_pages: int = 50
    accounts_limit: int = 5
    keys_path: Optional[str] = None


class DomainsConfig(BaseModel):
    """所有数据域"""
    node_status: NodeStatusConfig = Field(default_factory=NodeStatusConfig)
    bundler_health: BundlerHealthConfig = Field(default_factory=BundlerHealthConfig)
    balances: BalancesConfig = Field(default_factory=BalancesConfig)
    bridge_status: BridgeStatusConfig = Field(default_factory=BridgeStatusConfig)
    activity_stats: ActivityStatsConfig = Field(default_factory=ActivityStatsConfig)


class AppConfig(BaseModel):
    """应用配置（完整配置）"""
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    domains: DomainsConfig = Field(default_factory=DomainsConfig)

    def domain_configs(self) -> List[DomainConfig]:
        """按固定顺序枚举所有数据域配置"""
        d = self.domains
        return [d.node_status, d.bundler_health, d.balances, d.bridge_status, d.activity_stats]


class EnvOverrides(BaseSettings):
    """
    环境变量覆盖（也会读取当前目录下的 .env）

    变量名与部署脚本（docker-compose）中使用的保持一致。
    """
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    rpc_url: Optional[str] = Field(default=None, validation_alias="RPC_URL")
    reth_url: Optional[str] = Field(default=None, validation_alias="RETH_URL")
    bundler_url: Optional[str] = Field(default=None, validation_alias="BUNDLER_URL")
    strata_rpc_url: Optional[str] = Field(default=None, validation_alias="STRATA_RPC_URL")
    bridge_rpc_url: Optional[str] = Field(default=None, validation_alias="STRATA_BRIDGE_RPC_URL")
    user_ops_query_url: Optional[str] = Field(default=None, validation_alias="USER_OPS_QUERY_URL")
    accounts_query_url: Optional[str] = Field(default=None, validation_alias="ACCOUNTS_QUERY_URL")
    deposit_wallet: Optional[str] = Field(default=None, validation_alias="DEPOSIT_PAYMASTER_WALLET")
    validating_wallet: Optional[str] = Field(default=None, validation_alias="VALIDATING_PAYMASTER_WALLET")
    network_interval_s: Optional[int] = Field(default=None, validation_alias="NETWORK_STATUS_REFETCH_INTERVAL_S")
    balances_interval_s: Optional[int] = Field(default=None, validation_alias="BALANCES_REFETCH_INTERVAL_S")
    bridge_interval_s: Optional[int] = Field(default=None, validation_alias="BRIDGE_STATUS_REFETCH_INTERVAL_S")
    activity_interval_s: Optional[int] = Field(default=None, validation_alias="ACTIVITY_STATS_REFETCH_INTERVAL_S")
    operator_ping_timeout_s: Optional[float] = Field(default=None, validation_alias="BRIDGE_OPERATOR_PING_TIMEOUT_S")
    activity_page_size: Optional[int] = Field(default=None, validation_alias="ACTIVITY_QUERY_PAGE_SIZE")
    activity_keys_path: Optional[str] = Field(default=None, validation_alias="ACTIVITY_KEYS_PATH")
    port: Optional[int] = Field(default=None, validation_alias="PORT")
    log_level: Optional[str] = Field(default=None, validation_alias="LOG_LEVEL")


# 环境变量字段 -> 配置路径
_ENV_TARGETS: Dict[str, List[tuple]] = {
    "rpc_url": [("domains", "node_status", "upstream_url")],
    "reth_url": [("domains", "balances", "upstream_url")],
    "bundler_url": [("domains", "bundler_health", "upstream_url")],
    "strata_rpc_url": [("domains", "bridge_status", "node_rpc_url")],
    "bridge_rpc_url": [("domains", "bridge_status", "upstream_url")],
    "user_ops_query_url": [("domains", "activity_stats", "upstream_url")],
    "accounts_query_url": [("domains", "activity_stats", "accounts_url")],
    "deposit_wallet": [("domains", "balances", "deposit_wallet")],
    "validating_wallet": [("domains", "balances", "validating_wallet")],
    "network_interval_s": [
        ("domains", "node_status", "interval_s"),
        ("domains", "bundler_health", "interval_s"),
    ],
    "balances_interval_s": [("domains", "balances", "interval_s")],
    "bridge_interval_s": [("domains", "bridge_status", "interval_s")],
    "activity_interval_s": [("domains", "activity_stats", "interval_s")],
    "operator_ping_timeout_s": [("domains", "bridge_status", "operator_ping_timeout_s")],
    "activity_page_size": [("domains", "activity_stats", "page_size")],
    "activity_keys_path": [("domains", "activity_stats", "keys_path")],
    "port": [("api", "port")],
    "log_level": [("logging", "level")],
}


def apply_env_overrides(raw_config: Dict[str, Any], overrides: Optional[EnvOverrides] = None) -> Dict[str, Any]:
    """将环境变量写入原始配置字典（环境变量优先于 YAML）"""
    if overrides is None:
        overrides = EnvOverrides()

    for field, targets in _ENV_TARGETS.items():
        value = getattr(overrides, field)
        if value is None:
            continue
        for path in targets:
            node = raw_config
            for key in path[:-1]:
                node = node.setdefault(key, {})
            node[path[-1]] = value
    return raw_config


def load_config(config_path: Optional[str] = None, overrides: Optional[EnvOverrides] = None) -> AppConfig:
    """
    加载配置文件

    优先级：
    1. 参数指定的路径
    2. 环境变量 NETWORK_MONITOR_CONFIG_PATH
    3. 默认路径 config.yaml

    文件不存在时使用默认配置，随后再应用环境变量覆盖。
    """
    if config_path is None:
        config_path = os.environ.get("NETWORK_MONITOR_CONFIG_PATH", "config.yaml")

    raw_config: Dict[str, Any] = {}
    config_file = Path(config_path)

    if config_file.exists():
        with open(config_file, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f) or {}

        # 相对路径以配置文件所在目录为基准，避免依赖 CWD
        base_dir = config_file.resolve().parent

        def _resolve_path(value: Optional[str]) -> Optional[str]:
            if not value:
                return value
            path = Path(value)
            if path.is_absolute():
                return str(path)
            return str((base_dir / path).resolve())

        log_cfg = raw_config.get("logging") or {}
        if log_cfg.get("file"):
            log_cfg["file"] = _resolve_path(log_cfg["file"])

        activity_cfg = (raw_config.get("domains") or {}).get("activity_stats") or {}
        if activity_cfg.get("keys_path"):
            activity_cfg["keys_path"] = _resolve_path(activity_cfg["keys_path"])
    else:
        logger.debug(f"Config file {config_file} not found, using defaults")

    raw_config = apply_env_overrides(raw_config, overrides)
    return AppConfig(**raw_config)


# 全局配置实例（延迟加载）
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """获取全局配置实例（单例模式）"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config():
    """重置配置（主要用于测试）"""
    global _config
    _config = None

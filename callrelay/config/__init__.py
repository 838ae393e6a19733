"""callrelay 的配置模块。"""

from callrelay.config.loader import get_env_file, load_config, read_config
from callrelay.config.schema import Config, DeliveryConfig, DLiveConfig, ReconnectConfig

__all__ = ["Config", "DeliveryConfig", "DLiveConfig", "ReconnectConfig", "load_config", "read_config", "get_env_file"]

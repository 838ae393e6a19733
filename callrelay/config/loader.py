"""配置加载实用工具。"""

from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from callrelay.config.schema import Config
from callrelay.errors import ConfigError


def get_env_file() -> Path:
    """获取默认的 .env 文件路径（当前工作目录）。"""
    return Path.cwd() / ".env"


def _invalid_keys(error: ValidationError) -> dict[str, str]:
    """将校验错误的位置映射回环境变量名称，例如 ("reconnect", "strategy") -> RECONNECT_STRATEGY。"""
    invalid = {}
    for item in error.errors():
        key = "_".join(str(part) for part in item["loc"]).upper() or "CONFIG"
        invalid.setdefault(key, item["msg"])
    return invalid


def read_config(env_file: Path | None = None) -> Config:
    """
    从环境变量和 .env 文件读取配置，不检查必需项。

    异常：
        ConfigError：某个配置值无法通过校验。
    """
    path = env_file or get_env_file()
    try:
        if path.exists():
            logger.debug(f"从 {path} 加载环境变量")
            return Config(_env_file=path)
        return Config(_env_file=None)
    except ValidationError as e:
        raise ConfigError(invalid=_invalid_keys(e)) from e


def load_config(env_file: Path | None = None, authenticated: bool = False) -> Config:
    """
    加载配置并检查必需项。

    参数：
        env_file：.env 文件的可选路径。如果未提供，则使用默认路径。
        authenticated：是否以认证模式运行（此时需要 DLIVE_AUTH_KEY）。

    返回：
        已加载的配置对象。

    异常：
        ConfigError：缺少必需的配置项或配置值无效。
    """
    config = read_config(env_file)
    missing = config.missing_keys(authenticated=authenticated)
    if missing:
        raise ConfigError(missing)
    return config

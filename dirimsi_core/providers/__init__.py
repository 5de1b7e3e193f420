"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供各厂商的具体实现 (如 gemini_client)。
"""

from typing import Literal, Optional

from dirimsi_core.config.settings import settings
from dirimsi_core.providers.base import ProviderClient
from dirimsi_core.providers.gemini_client import GeminiClient
from dirimsi_core.providers.registry import get_provider_config


def create_provider(name: Optional[str] = None) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。"""

    provider_name = (name or getattr(settings, "default_provider", "gemini")).lower()
    # 未登记的名字直接抛 KeyError
    get_provider_config(provider_name)
    return GeminiClient(settings)


DefaultProviderName = Literal["gemini"]

"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护预设服务商与模型列表 (registry)。
- 提供 OpenAI 兼容接口的流式实现 (openai_compat)。
"""

from typing import Optional

from sheet_agent.config.settings import settings
from sheet_agent.domain.exceptions import ValidationError
from sheet_agent.providers.base import ProviderClient
from sheet_agent.providers.openai_compat import OpenAICompatibleClient
from sheet_agent.providers.registry import PROVIDER_REGISTRY, ProviderConfig, get_provider_config


def create_provider(
    name: Optional[str] = None,
    *,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    cfg=settings,
) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。

    名称不在预设列表中时必须给出 base_url（自定义服务商）。
    """

    provider_name = (name or getattr(cfg, "default_provider", "deepseek")).lower()
    try:
        provider_cfg = get_provider_config(provider_name)
    except KeyError:
        custom_base = base_url or getattr(cfg, "llm_base_url", None)
        if not custom_base:
            raise ValidationError(
                code="UNKNOWN_PROVIDER",
                message=f"Unknown provider {provider_name!r} and no base URL configured",
            )
        provider_cfg = ProviderConfig(name=provider_name, display_name=provider_name, base_url=custom_base)
    return OpenAICompatibleClient(provider_cfg, cfg=cfg, api_key=api_key, base_url=base_url)


__all__ = [
    "PROVIDER_REGISTRY",
    "OpenAICompatibleClient",
    "ProviderClient",
    "ProviderConfig",
    "create_provider",
    "get_provider_config",
]

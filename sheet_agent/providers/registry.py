"""预设服务商配置。

每个服务商只需要一个 OpenAI 兼容的 base_url 和一组常用模型 ID；
模型列表在无法在线获取 /models 时作为兜底选项。"""

from dataclasses import dataclass, field
from typing import List, Mapping


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    display_name: str
    base_url: str
    models: List[str] = field(default_factory=list)

    @property
    def default_model(self) -> str:
        return self.models[0] if self.models else ""


DEEPSEEK_CONFIG = ProviderConfig(
    name="deepseek",
    display_name="DeepSeek",
    base_url="https://api.deepseek.com/v1",
    models=["deepseek-chat", "deepseek-reasoner", "deepseek-coder"],
)

# 智谱 GLM / BigModel
ZHIPU_CONFIG = ProviderConfig(
    name="zhipu",
    display_name="智谱 AI",
    base_url="https://open.bigmodel.cn/api/paas/v4",
    models=[
        "glm-4-flash",
        "glm-4-air",
        "glm-4-airx",
        "glm-4-long",
        "glm-4-plus",
        "glm-4-0520",
        "glm-4",
        "glm-4v",
        "glm-4v-plus",
    ],
)

GEMINI_CONFIG = ProviderConfig(
    name="gemini",
    display_name="Google Gemini",
    base_url="https://generativelanguage.googleapis.com/v1beta/openai",
    models=["gemini-2.0-flash", "gemini-2.0-flash-lite", "gemini-1.5-pro", "gemini-1.5-flash"],
)

# 通义千问（DashScope 兼容模式）
QWEN_CONFIG = ProviderConfig(
    name="qwen",
    display_name="通义千问",
    base_url="https://dashscope.aliyuncs.com/compatible-mode/v1",
    models=["qwen-turbo", "qwen-plus", "qwen-max", "qwen-long"],
)

OPENAI_CONFIG = ProviderConfig(
    name="openai",
    display_name="OpenAI",
    base_url="https://api.openai.com/v1",
    models=["gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "o1", "o1-mini", "o3-mini"],
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    cfg.name: cfg
    for cfg in (DEEPSEEK_CONFIG, ZHIPU_CONFIG, GEMINI_CONFIG, QWEN_CONFIG, OPENAI_CONFIG)
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")

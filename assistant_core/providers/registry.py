"""OpenAI 端点与模型配置。

集中维护 OpenAI 的端点路径与已知模型参数：

- chat_path / threads_path：相对 ClientConfig.base_url 的端点路径。
- models：已知的 Chat Completions 模型及其默认温度。

未登记的模型名按原样透传，使用默认温度，便于直接试用新模型。"""

from dataclasses import dataclass
from typing import Dict


DEFAULT_TEMPERATURE = 0.7


@dataclass(frozen=True)
class ModelConfig:
    """单个模型的配置。"""

    name: str
    default_temperature: float = DEFAULT_TEMPERATURE


@dataclass(frozen=True)
class ProviderConfig:
    """Provider 的端点与模型表。"""

    name: str
    chat_path: str
    threads_path: str
    models: Dict[str, ModelConfig]


OPENAI_CONFIG = ProviderConfig(
    name="openai",
    chat_path="/chat/completions",
    threads_path="/threads",
    models={
        "gpt-4": ModelConfig(name="gpt-4"),
        "gpt-4o": ModelConfig(name="gpt-4o"),
        "gpt-3.5-turbo": ModelConfig(name="gpt-3.5-turbo"),
    },
)


def get_model_config(model: str, provider: ProviderConfig = OPENAI_CONFIG) -> ModelConfig:
    """返回模型配置；未登记的模型使用默认参数。"""

    return provider.models.get(model) or ModelConfig(name=model)

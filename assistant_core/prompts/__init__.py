"""系统提示词加载工具。

按 Agent 类型和语言(locale) 从 prompts/<locale> 目录读取 system prompt 文本，
用于初始化 ChatClient 的 ConversationHistory。
"""

from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent

PROMPT_FILES = {
    "weather-assistant": "weather_assistant_system.md",
}


def load_system_prompt(agent_type: str = "weather-assistant", locale: str = "en") -> str:
    """根据 Agent 类型和语言加载系统提示词文本。"""

    try:
        fname = PROMPTS_DIR / locale / PROMPT_FILES[agent_type]
    except KeyError:
        raise KeyError(f"Unknown agent type: {agent_type!r}")
    return fname.read_text(encoding="utf-8").strip()

"""系统提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取对应的 system prompt 文本，
用于构造会话的第一条 Turn.system。
"""

from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent
DEFAULT_PROMPT_NAME = "todo_assistant"


def load_system_prompt(name: str = DEFAULT_PROMPT_NAME, locale: str = "en") -> str:
    """根据提示词名称和语言加载系统提示词文本（去掉首尾空白）。"""

    fname = PROMPTS_DIR / locale / f"{name}_system.md"
    return fname.read_text(encoding="utf-8").strip()

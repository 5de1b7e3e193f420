"""系统提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取系统提示词模板，
填入助手名称与创作者说明后，作为请求中的第一条 user 回合发送。
"""

from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent


def load_system_prompt(assistant_name: str, creator_attribution: str, locale: str = "en") -> str:
    """加载并填充系统提示词。

    创作者说明属于配置而不是逻辑，模板中只保留占位符。
    """

    fname = PROMPTS_DIR / locale / "culture_guide_system.md"
    template = fname.read_text(encoding="utf-8")
    return template.format(assistant_name=assistant_name, creator_attribution=creator_attribution)


def acknowledgement(assistant_name: str) -> str:
    """紧跟系统提示词的固定 model 回合。"""

    return f"I understand. I am {assistant_name}, ready to share the wisdom of Africa."

"""提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取导师提示词模板，
再把学科上下文与学生问题填入模板，得到发给 Provider 的完整 prompt。
"""

from functools import lru_cache
from pathlib import Path

from tutor_core.domain.models import ConversationContext


PROMPTS_DIR = Path(__file__).resolve().parent


@lru_cache(maxsize=None)
def load_prompt_template(locale: str = "en") -> str:
    fname = PROMPTS_DIR / locale / "tutor_system.md"
    return fname.read_text(encoding="utf-8")


def build_tutor_prompt(message: str, context: ConversationContext, locale: str = "en") -> str:
    """把上下文与问题填入模板。

    使用 str.replace 而不是 str.format，学生输入里的花括号不会被当成占位符。
    """

    prompt = load_prompt_template(locale)
    for key, value in (
        ("{subject}", context.subject),
        ("{chapter}", context.chapter),
        ("{topic}", context.topic),
    ):
        prompt = prompt.replace(key, value)
    return prompt.replace("{message}", message)

"""提示词模板加载工具。

每个操作对应 templates 目录下的一个 markdown 模板，
占位符使用 $name 形式（string.Template），避免与模板中的 JSON 花括号冲突。
"""

from pathlib import Path
from string import Template


PROMPTS_DIR = Path(__file__).resolve().parent / "templates"


def load_prompt(name: str, **values: object) -> str:
    """读取模板并填充占位符；缺少的占位符会抛出 KeyError。"""

    fname = PROMPTS_DIR / f"{name}.md"
    return Template(fname.read_text(encoding="utf-8")).substitute(**values).strip()

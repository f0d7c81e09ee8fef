"""Code review prompt template."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .registry import PromptArgument, PromptDescriptor

__all__ = ["CODE_REVIEW_PROMPT", "generate_code_review_prompt", "render_code_review"]

CODE_REVIEW_PROMPT = PromptDescriptor(
    name="code_review",
    description="Perform a comprehensive code review",
    arguments=(
        PromptArgument(name="code", description="Code to review", required=True),
        PromptArgument(name="language", description="Programming language", required=False),
    ),
)

_CHECKLIST = """Please analyze the code for:
1. **Code Quality**: Readability, maintainability, and organization
2. **Best Practices**: Following language-specific conventions and patterns
3. **Performance**: Potential optimizations and efficiency improvements
4. **Security**: Potential vulnerabilities or security concerns
5. **Error Handling**: Proper error handling and edge cases
6. **Testing**: Testability and potential test cases
7. **Documentation**: Code comments and documentation needs

Provide specific suggestions for improvement with examples where applicable."""


def generate_code_review_prompt(code: str, language: str | None = None) -> str:
    return (
        f"Please perform a comprehensive code review of the following {language or 'code'}:\n"
        "\n"
        f"```{language or ''}\n"
        f"{code}\n"
        "```\n"
        "\n"
        f"{_CHECKLIST}"
    )


def render_code_review(arguments: Mapping[str, Any]) -> dict[str, Any]:
    text = generate_code_review_prompt(str(arguments["code"]), arguments.get("language") or None)
    return {
        "description": "Code review prompt",
        "messages": [{"role": "user", "content": {"type": "text", "text": text}}],
    }

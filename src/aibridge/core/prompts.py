"""Prompt templates for each request kind."""

from __future__ import annotations

from .errors import LocalPreconditionError
from .models import AIRequest, RequestKind

__all__ = ["build_prompt", "DEFAULT_LANGUAGE"]

DEFAULT_LANGUAGE = "Enforce Script"

# Used in the "No code selected for ..." message.
_PURPOSES: dict[RequestKind, str] = {
    RequestKind.CODE_GENERATION: "generation",
    RequestKind.CODE_ANALYSIS: "analysis",
    RequestKind.CODE_DEBUGGING: "debugging",
    RequestKind.DOCUMENTATION: "documentation",
    RequestKind.OPTIMIZATION: "optimization",
    RequestKind.EXPLANATION: "explanation",
    RequestKind.REFACTORING: "refactoring",
}


def build_prompt(
    request: AIRequest,
    *,
    language: str = DEFAULT_LANGUAGE,
    code_style: str = "Standard",
) -> str:
    """Return the prompt text for ``request``.

    Raises:
        LocalPreconditionError: chat input is empty, or a code-centric kind was
            invoked without a selected code excerpt.
    """

    if request.kind is RequestKind.CHAT:
        return _chat_prompt(request, language)

    code = request.context.selected_code
    if not code.strip():
        raise LocalPreconditionError(message=f"No code selected for {_PURPOSES[request.kind]}")

    focus = request.user_input.strip()
    kind = request.kind
    if kind is RequestKind.CODE_GENERATION:
        lines = [
            f"Generate {language} code based on this request:",
            "",
            focus,
            "",
            "Existing code for reference:",
            code,
            "",
            "Context:",
            f"- {request.context.summary()}",
            f"- Use proper {language} syntax",
            f"- Follow the {code_style} coding style",
            "- Include appropriate comments",
            "- Ensure code is production-ready",
        ]
        return "\n".join(lines)
    if kind is RequestKind.CODE_ANALYSIS:
        lines = [
            f"Analyze this {language} code:",
            "",
            code,
            "",
            f"Focus on: {focus or 'general quality'}",
            "",
            "Please provide:",
            "- Code quality assessment",
            "- Potential bugs or issues",
            "- Performance considerations",
            "- Best practice recommendations",
        ]
        return "\n".join(lines)
    if kind is RequestKind.CODE_DEBUGGING:
        return f"Debug this {language} code:\n\n{code}\n\nError/Issue: {focus}"
    if kind is RequestKind.DOCUMENTATION:
        return f"Generate documentation for this {language} code:\n\n{code}\n\nDocumentation type: {focus}"
    if kind is RequestKind.OPTIMIZATION:
        return f"Optimize this {language} code:\n\n{code}\n\nOptimization focus: {focus}"
    if kind is RequestKind.EXPLANATION:
        return f"Explain this {language} code:\n\n{code}\n\nSpecific question: {focus}"
    return f"Refactor this {language} code:\n\n{code}\n\nRefactoring goal: {focus}"


def _chat_prompt(request: AIRequest, language: str) -> str:
    user_input = request.user_input.strip()
    if not user_input:
        raise LocalPreconditionError(message="Please enter a request.")

    sections = [
        f"You are an expert {language} development assistant embedded in the editor.",
        "Answer the user's question concisely and include code where it helps.",
        "",
        f"User: {user_input}",
    ]
    if request.context.has_code:
        sections.extend(["", "Selected code:", request.context.selected_code])
    sections.extend(["", f"Context: {request.context.summary()}"])
    return "\n".join(sections)

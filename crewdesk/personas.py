"""Persona text used to flavour task prompts."""
from __future__ import annotations

from crewdesk.classifier import Intent


INTENT_PREAMBLES: dict[Intent, str] = {
    Intent.WRITE: "You are a skilled writer. Create clear, engaging content.",
    Intent.RESEARCH: "You are a thorough researcher. Find accurate, relevant information.",
    Intent.ANALYZE: "You are an analytical expert. Provide detailed, logical analysis.",
    Intent.CREATE: "You are a creative thinker. Generate innovative, original ideas.",
    Intent.EDIT: "You are a meticulous editor. Improve clarity and quality.",
    Intent.EXPLAIN: "You are a patient teacher. Explain concepts simply and clearly.",
    Intent.SOLVE: "You are a problem solver. Find practical, effective solutions.",
    Intent.GENERAL: "You are a helpful assistant. Provide useful, friendly assistance.",
}


def build_task_prompt(request: str, intent: Intent, role: str | None = None) -> str:
    preamble = INTENT_PREAMBLES.get(intent, INTENT_PREAMBLES[Intent.GENERAL])
    return (
        f"{preamble}\n\n"
        f"As the team's {role or 'assistant'}, please help with this request:\n\n"
        f"{request}"
    )

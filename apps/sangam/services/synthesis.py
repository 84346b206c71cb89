"""Answer synthesis: ranked matches -> bounded context -> prompt -> generated text.

Context entries are '[YYYY-MM-DD] content' in ranked order. An entry that would push the
context past max_context_length stops accumulation; later entries are dropped whole.
"""

import logging
from collections.abc import Sequence

from apps.sangam.errors import ConfigurationError, SynthesisError
from apps.sangam.schemas.sangam import EmbeddingMatch, InfoType, QueryContext
from apps.sangam.services.llm_provider import LLMProvider

logger = logging.getLogger(__name__)

NO_CONTEXT = "No relevant context found."
PROBE_PROMPT = "Hello, this is a test."

DEFAULT_SYSTEM_PROMPT = """You are Sangam, an AI assistant for business communities. Your role is to help users recall and understand their team's conversations and decisions.

CORE RESPONSIBILITIES:
- Summarize conversations and extract key decisions
- Answer questions about past discussions
- Identify important documents, deadlines, and action items
- Provide context about team activities and progress

COMMUNICATION STYLE:
- Be concise but comprehensive
- Use a professional yet friendly tone
- Focus on actionable insights
- Acknowledge when information is incomplete
- Use markdown formatting for better readability

RESPONSE GUIDELINES:
- Base your answers strictly on the provided context
- If context is insufficient, clearly state what information is missing
- Highlight important dates, decisions, and action items
- Maintain confidentiality and professionalism
- Avoid speculation beyond the provided context
- Format your responses using markdown for better structure:
  * Use **bold** for emphasis on important information
  * Use *italics* for dates, names, or specific terms
  * Use bullet points (-) for lists
  * Use numbered lists (1.) for sequential items
  * Use `code blocks` for technical terms or file names
  * Use > blockquotes for important quotes or decisions
  * Use ## headers for major sections when appropriate

Remember: You are helping teams stay organized and informed about their collaborative work."""

SUMMARY_SYSTEM_PROMPT = """You are Sangam, creating a summary of team conversations.

Focus on:
- Key decisions made
- Important deadlines and dates
- Action items and responsibilities
- Documents or resources shared
- Major topics discussed
- Progress updates

Structure your summary with clear headings and bullet points. Be comprehensive but concise."""

INFO_TYPE_QUESTIONS: dict[InfoType, str] = {
    InfoType.DECISIONS: "What key decisions were made in these conversations?",
    InfoType.DEADLINES: "What deadlines, dates, or time-sensitive items are mentioned?",
    InfoType.DOCUMENTS: "What documents, files, or resources were shared or discussed?",
    InfoType.ACTION_ITEMS: "What action items or tasks were assigned or discussed?",
}

CLOSING_INSTRUCTION = (
    "Please provide a helpful, accurate response based on the context above. "
    "If the context doesn't contain enough information to answer the question, please say so clearly."
)


def build_context_text(matches: Sequence[EmbeddingMatch], max_length: int) -> str:
    if not matches:
        return NO_CONTEXT
    entries: list[str] = []
    length = 0
    for m in matches:
        entry = f"[{m.created_at.date().isoformat()}] {m.content}"
        if length + len(entry) > max_length:
            break
        entries.append(entry)
        length += len(entry)
    return "\n\n".join(entries).strip() or NO_CONTEXT


def build_prompt(ctx: QueryContext) -> str:
    context_text = build_context_text(ctx.relevant_messages, ctx.max_context_length)
    return (
        f"{ctx.system_prompt}\n\n"
        f"CONTEXT FROM PREVIOUS CONVERSATIONS:\n{context_text}\n\n"
        f"USER QUESTION: {ctx.question}\n\n"
        f"{CLOSING_INSTRUCTION}"
    )


class SynthesisEngine:
    """Generates plain-text answers grounded in retrieved matches. No retry; provider errors propagate."""

    def __init__(self, provider: LLMProvider, max_context_length: int = 8000) -> None:
        self.provider = provider
        self.max_context_length = max_context_length

    def generate_response(self, ctx: QueryContext) -> str:
        prompt = build_prompt(ctx)
        text = self.provider.generate(prompt)
        if not text or not text.strip():
            raise SynthesisError("Empty response from generation model")
        return text.strip()

    def _context(self, question: str, matches: Sequence[EmbeddingMatch], system_prompt: str) -> QueryContext:
        return QueryContext(
            question=question,
            relevant_messages=list(matches),
            system_prompt=system_prompt,
            max_context_length=self.max_context_length,
        )

    def answer_question(self, question: str, matches: Sequence[EmbeddingMatch]) -> str:
        return self.generate_response(self._context(question, matches, DEFAULT_SYSTEM_PROMPT))

    def generate_summary(self, matches: Sequence[EmbeddingMatch], time_range: str | None = None) -> str:
        question = (
            f"Please provide a summary of conversations from {time_range}"
            if time_range
            else "Please provide a summary of these recent conversations"
        )
        return self.generate_response(self._context(question, matches, SUMMARY_SYSTEM_PROMPT))

    def extract_key_info(self, matches: Sequence[EmbeddingMatch], info_type: InfoType | str) -> str:
        question = INFO_TYPE_QUESTIONS[InfoType(info_type)]
        return self.generate_response(self._context(question, matches, DEFAULT_SYSTEM_PROMPT))

    def validate_configuration(self) -> tuple[bool, str | None]:
        """One short live generation call."""
        try:
            text = self.provider.generate(PROBE_PROMPT)
        except ConfigurationError as e:
            return False, str(e)
        except Exception as e:
            logger.warning("synthesis: probe failed err=%s", e)
            return False, f"Generation probe failed: {e}"
        if not text or not text.strip():
            return False, "Generation probe returned an empty response"
        return True, None

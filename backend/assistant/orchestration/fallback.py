"""
Fallback Adapter

Answers free-form retirement questions when no scripted flow applies.
This is a bounded AI task - informational only, never advice and never
transaction guidance. It never sees or changes the active flow; it only
receives a read-only summary of the participant's account.

Order of resolution:
1. Topic guard (optional): clearly off-topic questions get a fixed answer
2. LLM call with a short system instruction, account context and recent messages
3. Deterministic keyword responder on any failure of step 2
"""
from typing import Dict, Iterable, List, Optional
import asyncio
import re

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from assistant.core.config import settings
from assistant.core.langfuse_handler import get_trace_config
from assistant.core.logging import get_logger
from assistant.orchestration.flows import FlowKind
from assistant.orchestration.flows.base import format_currency
from assistant.orchestration.participant import ParticipantProfile
from assistant.orchestration.session import CompletionSnapshot, Message, MessageRole


logger = get_logger("fallback")


SYSTEM_INSTRUCTION = """You are a retirement plan assistant for a US 401(k) participant portal.

Answer ONLY general, informational questions about US retirement plans:
contributions, employer match, vesting, loans, withdrawals, rollovers and taxes.

Rules:
- Do not give personalised financial, tax or legal advice
- Do not tell the user how to submit or change a transaction
- Use the participant context below only to make general answers concrete;
  never invent account details it does not list
- Reply in 2-3 short sentences, under 50 words
- If the question is not about US retirement plans, say you can only help with retirement topics"""

OUT_OF_SCOPE_MESSAGE = (
    "I can only help with US retirement plan topics, such as loans, withdrawals, "
    "contributions, vesting and rollovers."
)

TOPIC_KEYWORDS = [
    "401", "retire", "loan", "borrow", "withdraw", "contribut", "enroll", "vest",
    "match", "balance", "tax", "roth", "rollover", "roll over", "ira", "pension",
    "plan", "invest", "fund", "savings", "save", "penalty", "rmd", "beneficiar",
    "account", "age", "employer", "hardship", "distribution",
]

GREETING_PATTERN = re.compile(r"\b(hi|hello|hey|help|thanks|thank you)\b", re.IGNORECASE)


# Sentence ends are terminal punctuation followed by whitespace; decimals and
# common abbreviations stay inside their sentence
SENTENCE_BOUNDARY = re.compile(r"(?<!\be\.g\.)(?<!\bi\.e\.)(?<!\bvs\.)(?<=[.!?])\s+", re.IGNORECASE)


def truncate_response(
    text: str,
    max_sentences: Optional[int] = None,
    max_words: Optional[int] = None,
) -> str:
    """
    Keep an answer short: at most ``max_sentences`` sentences and about
    ``max_words`` words. Sentences keep their own punctuation.
    """
    max_sentences = max_sentences or settings.FALLBACK_MAX_SENTENCES
    max_words = max_words or settings.FALLBACK_MAX_WORDS

    text = text.strip()
    sentences = [s.strip() for s in SENTENCE_BOUNDARY.split(text) if s.strip()]
    if len(sentences) > max_sentences:
        text = " ".join(sentences[:max_sentences])

    words = text.split()
    if len(words) > max_words:
        text = " ".join(words[:max_words]) + "..."

    return text


def is_on_topic(text: str) -> bool:
    """Whether a question plausibly concerns retirement plans or is a greeting."""
    text_lower = text.lower()
    if any(keyword in text_lower for keyword in TOPIC_KEYWORDS):
        return True
    return bool(GREETING_PATTERN.search(text_lower))


class KeywordResponder:
    """
    Deterministic, non-advisory answers keyed on domain keywords.

    The first matching rule wins; rule order matters.
    """

    def respond(self, text: str) -> str:
        text_lower = text.lower().strip()

        if "loan" in text_lower:
            return (
                "Plans commonly allow loans of up to 50% of your vested balance, "
                "to a maximum of $50,000. Loans are repaid through payroll with interest."
            )

        if any(k in text_lower for k in ["withdraw", "take out"]):
            return (
                "Withdrawals before age 59½ generally incur a 10% penalty plus income tax. "
                "Some plans allow hardship or in-service withdrawals."
            )

        if "contribut" in text_lower:
            return (
                "The 2024 employee contribution limit is $23,000. "
                "Participants aged 50 or older can add a $7,500 catch-up contribution."
            )

        if any(k in text_lower for k in ["enroll", "sign up", "join"]):
            return (
                "Enrolling sets your contribution rate, plan type and investment approach. "
                "Many plans match part of what you contribute."
            )

        if re.search(r"\bage\b", text_lower) or re.search(r"\b(25|30|35|40|45|50|55|60|65)\b", text_lower):
            return self._age_answer(text_lower)

        if any(k in text_lower for k in ["balance", "how much"]):
            return (
                "Your vested balance is the part of your account you own outright. "
                "Loan and withdrawal limits are based on it."
            )

        if "match" in text_lower:
            return (
                "A common employer match is 50% of contributions up to 6% of salary. "
                "Matching rules vary by plan."
            )

        if "retire" in text_lower:
            return (
                "Penalty-free withdrawals from a 401(k) generally begin at 59½. "
                "Required minimum distributions start at 73."
            )

        if any(k in text_lower for k in ["tax", "roth"]):
            return (
                "Traditional 401(k) contributions are taxed when withdrawn. "
                "Roth 401(k) contributions are taxed now and qualified withdrawals are tax-free."
            )

        if any(k in text_lower for k in ["rollover", "roll over", "transfer"]):
            return (
                "A rollover moves your 401(k) to an IRA or a new employer's plan. "
                "Direct rollovers are not taxed."
            )

        if "vest" in text_lower:
            return (
                "Your own contributions are always 100% vested. "
                "Employer contributions typically vest over 3 to 6 years."
            )

        if GREETING_PATTERN.search(text_lower) or len(text_lower) < 5:
            return "I can share information about loans, withdrawals, contributions, vesting and more."

        return (
            "I can help with US retirement topics: loans, withdrawals, contributions, "
            "rollovers and more."
        )

    def _age_answer(self, text: str) -> str:
        match = re.search(r"\b(\d{2})\b", text)
        if not match:
            return "Contribution limits and withdrawal rules change at certain ages, such as 50, 59½ and 73."
        age = int(match.group(1))
        if age < 50:
            return f"At {age}, the standard 2024 contribution limit of $23,000 applies."
        if age < 60:
            return f"At {age}, you may be eligible for a $7,500 catch-up contribution on top of the standard limit."
        return f"At {age}, withdrawals after 59½ are generally free of the 10% early withdrawal penalty."


def to_chat_history(messages: Iterable[Message]) -> List[BaseMessage]:
    history: List[BaseMessage] = []
    for message in messages:
        if message.role == MessageRole.USER:
            history.append(HumanMessage(content=message.content))
        else:
            history.append(AIMessage(content=message.content))
    return history


def account_context(
    participant: Optional[ParticipantProfile],
    snapshots: Optional[Dict[FlowKind, CompletionSnapshot]] = None,
) -> str:
    """
    Short participant context block for the fallback model.

    Only facts the portal already shows the participant are included.
    """
    if participant is None or not participant.account_known:
        return "Participant context: not available."

    lines = [
        "Participant context:",
        f"- Vested balance: {format_currency(participant.vested_balance)} "
        f"({participant.vested_percent}% vested)",
        f"- Maximum loan available: {format_currency(participant.max_loan)}",
        f"- Available to withdraw: {format_currency(participant.withdrawal_available)}",
        f"- Employment: {'active' if participant.employment_active else 'not active'}",
    ]

    snapshots = snapshots or {}
    enrollment = snapshots.get(FlowKind.ENROLLMENT)
    if enrollment is not None:
        state = enrollment.state
        lines.append(
            f"- Enrollment: submitted this session ({state.plan_type}, "
            f"{state.contribution_percent}% contribution)"
        )
    else:
        lines.append("- Enrollment: no enrollment submitted this session")

    submitted = [kind.value for kind in (FlowKind.LOAN, FlowKind.WITHDRAWAL) if kind in snapshots]
    if submitted:
        lines.append(f"- Requests submitted this session: {', '.join(submitted)}")

    return "\n".join(lines)


class FallbackAdapter:
    """
    Informational responder used only when no scripted flow is active.

    Never raises: every failure of the model call lands on the keyword
    responder.
    """

    def __init__(self, llm=None, responder: Optional[KeywordResponder] = None):
        self._llm = llm
        self.responder = responder or KeywordResponder()

    @property
    def llm(self):
        if self._llm is None:
            from assistant.orchestration.routing import get_llm
            self._llm = get_llm()
        return self._llm

    async def answer(
        self,
        text: str,
        recent_messages: List[Message],
        context: Optional[str] = None,
    ) -> str:
        """
        Answer a free-form question.

        Args:
            text: Current user question
            recent_messages: Recent log messages, oldest first
            context: Participant context block from ``account_context``

        Returns:
            Short informational answer
        """
        if settings.FALLBACK_TOPIC_GUARD and not is_on_topic(text):
            return OUT_OF_SCOPE_MESSAGE

        if not settings.FALLBACK_ENABLED:
            return self.responder.respond(text)

        history = recent_messages[-settings.FALLBACK_CONTEXT_MESSAGES:] if recent_messages else []
        messages = [
            SystemMessage(content=f"{SYSTEM_INSTRUCTION}\n\n{context or account_context(None)}"),
            *to_chat_history(history),
            HumanMessage(content=text),
        ]

        config = get_trace_config("retirement_fallback", tags=[settings.LLM_PROVIDER])

        try:
            response = await asyncio.wait_for(
                self.llm.ainvoke(messages, config=config),
                timeout=settings.FALLBACK_TIMEOUT_SECONDS,
            )
            content = getattr(response, "content", None)
            if not isinstance(content, str) or not content.strip():
                raise ValueError("Empty response from LLM")
            return truncate_response(content)
        except Exception as e:
            logger.warning(f"Fallback LLM call failed, using keyword responder: {e}")
            return self.responder.respond(text)

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from notebook_rag.core.config import settings
from notebook_rag.core.exceptions import GenerationError, NotFoundError
from notebook_rag.models import sql_models as models
from notebook_rag.schemas import Citation
from notebook_rag.services.context_service import ContextAssembler
from notebook_rag.services.prompts import CHAT_SYSTEM_PROMPT, NO_DOCUMENTS_MESSAGE

# Configure Logging
logger = logging.getLogger(__name__)

NO_CONTENT_RETRIEVED = "No content retrieved."


@dataclass
class ChatAnswer:
    success: bool
    text: str
    citations: List[Citation] = field(default_factory=list)
    sources_used: int = 0
    error: Optional[str] = None


def build_overview(documents: List[models.Document]) -> str:
    parts = []
    for doc in documents:
        if not doc.summary:
            continue
        part = f"Document: {doc.filename}\nSummary: {doc.summary}"
        if doc.tags:
            part += f"\nTopics: {', '.join(doc.tags)}"
        parts.append(part)
    if not parts:
        return ""
    return "\n=== DOCUMENT OVERVIEW ===\n" + "\n\n".join(parts) + "\n"


def build_system_prompt(documents: List[models.Document], prompt_context: str) -> str:
    return CHAT_SYSTEM_PROMPT.format(
        overview=build_overview(documents),
        context=prompt_context or NO_CONTENT_RETRIEVED,
    )


def bound_history(history: List[Dict], turns: int) -> List[Dict]:
    """Keeps the last `turns` messages; older ones are dropped."""
    if turns <= 0:
        return []
    return [{"role": h["role"], "content": h["content"]} for h in history[-turns:]]


class ChatOrchestrator:
    def __init__(self, db: Session, assembler: ContextAssembler, generation_client, history_turns: int = None):
        self.db = db
        self.assembler = assembler
        self.generation_client = generation_client
        self.history_turns = settings.CHAT_HISTORY_TURNS if history_turns is None else history_turns

    def _stored_history(self, notebook_id: int) -> List[Dict]:
        messages = self.db.query(models.ChatMessage).filter(
            models.ChatMessage.notebook_id == notebook_id
        ).order_by(
            models.ChatMessage.created_at.desc(), models.ChatMessage.id.desc()
        ).limit(max(self.history_turns, 0)).all()
        return [{"role": m.role, "content": m.content} for m in reversed(messages)]

    def _save_message(self, notebook_id: int, user_id: Optional[str], role: str, content: str,
                      citations: Optional[List[Citation]] = None) -> models.ChatMessage:
        message = models.ChatMessage(
            notebook_id=notebook_id,
            user_id=user_id,
            role=role,
            content=content,
            citations=[c.model_dump() for c in citations or []],
            created_at=datetime.utcnow(),
        )
        self.db.add(message)
        self.db.commit()
        return message

    async def answer(self, message: str, notebook_id: int, history: Optional[List[Dict]] = None,
                     user_id: Optional[str] = None) -> ChatAnswer:
        notebook = self.db.query(models.Notebook).filter(models.Notebook.id == notebook_id).first()
        if not notebook:
            raise NotFoundError("Notebook", notebook_id)

        # History is read before this turn is stored
        if history is None:
            history = self._stored_history(notebook_id)
        history = bound_history(history, self.history_turns)

        self._save_message(notebook_id, user_id, "user", message)

        documents = self.db.query(models.Document).filter(models.Document.notebook_id == notebook_id).all()
        if not documents:
            self._save_message(notebook_id, user_id, "assistant", NO_DOCUMENTS_MESSAGE)
            return ChatAnswer(success=True, text=NO_DOCUMENTS_MESSAGE)

        context = await self.assembler.build_context(message, [doc.id for doc in documents])
        system_prompt = build_system_prompt(documents, context.prompt_context)
        logger.info(f"Chat in notebook {notebook_id}: {len(documents)} documents, "
                    f"{context.sources_used} sources, {len(history)} history turns")

        try:
            reply = await self.generation_client.generate(message, history=history, system=system_prompt)
        except GenerationError as e:
            logger.error(f"Chat generation failed: {e.message} {e.detail or ''}")
            error_text = f"Sorry, I could not generate an answer: {e.message}"
            self._save_message(notebook_id, user_id, "assistant", error_text)
            return ChatAnswer(success=False, text=error_text, error=e.message)

        self._save_message(notebook_id, user_id, "assistant", reply, context.citations)
        notebook.updated_at = datetime.utcnow()
        self.db.commit()

        return ChatAnswer(
            success=True,
            text=reply,
            citations=context.citations,
            sources_used=context.sources_used,
        )

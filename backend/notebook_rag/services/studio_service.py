"""
Studio artifacts: mind maps, flashcards, quizzes, reports, audio overviews
and infographics generated from a notebook's summaries and chunk text.

JSON-producing artifacts go through StructuredArtifactGenerator. When the
model output cannot be parsed, a deterministic fallback is built from data
we already have (summaries, tags) and the response is flagged `degraded`.
"""
import base64
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from notebook_rag import schemas
from notebook_rag.core.config import settings
from notebook_rag.core.exceptions import GenerationError, ImageGenerationError, SpeechSynthesisError
from notebook_rag.models import sql_models as models
from notebook_rag.models.vector_models import DocumentChunk
from notebook_rag.services import prompts
from notebook_rag.services.media_service import ensure_wav
from notebook_rag.services.notebook_service import collect_tags, get_documents, get_notebook
from notebook_rag.services.structured_output import parse_structured

logger = logging.getLogger(__name__)

NO_DOCUMENTS = "No documents found in this notebook."
CENTRAL_LABEL_CHARS = 50
NODE_LABEL_CHARS = 40
MINDMAP_MAX_DEPTH = 5
MINDMAP_FALLBACK_CATEGORIES = 5
INFOGRAPHIC_MAX_TAGS = 10
REPORT_DOC_CHARS = 2000


@dataclass
class ArtifactOutcome:
    value: Any
    degraded: bool = False
    message: Optional[str] = None


class StructuredArtifactGenerator:
    """Prompt -> model -> parse_structured -> convert, with a fallback when parsing fails."""

    def __init__(self, generation_client):
        self.generation_client = generation_client

    async def generate_text(self, prompt: str, system: Optional[str] = None) -> str:
        return await self.generation_client.generate(prompt, system=system)

    async def generate_json(self, prompt: str, convert: Callable[[Any], Any], fallback: Callable[[], Any],
                            expect: type = None, json_mode: bool = False) -> ArtifactOutcome:
        """
        GenerationError propagates; parse and conversion failures do not.
        `convert` raises ValueError when the parsed value is unusable.
        """
        response = await self.generation_client.generate(prompt, json_mode=json_mode)

        outcome = parse_structured(response, expect=expect)
        if outcome.ok:
            try:
                return ArtifactOutcome(value=convert(outcome.value))
            except (ValueError, TypeError, KeyError) as e:
                reason = str(e)
        else:
            reason = outcome.error.message

        logger.warning(f"Using fallback artifact: {reason}")
        return ArtifactOutcome(
            value=fallback(),
            degraded=True,
            message=f"The model response could not be used ({reason}); showing a simplified result.",
        )


# --- Mind map conversion ---

def _branch_label(branch) -> str:
    if isinstance(branch, str):
        return branch.strip()
    if isinstance(branch, dict):
        for key in ("name", "label", "title"):
            value = branch.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return ""


def _branch_children(branch) -> list:
    if not isinstance(branch, dict):
        return []
    children = branch.get("children") or branch.get("subcategories") or []
    return children if isinstance(children, list) else []


def _count_branches(children: list) -> int:
    return sum(1 + _count_branches(_branch_children(branch)) for branch in children if _branch_label(branch))


def _node_type(depth: int) -> str:
    if depth == 2:
        return "category"
    if depth == 3:
        return "concept"
    return "detail"


def convert_mind_map(data: Dict, fallback_label: str = "Notebook"):
    """
    Flattens {centralLabel, branches: [{name, children: [...]}]} into nodes and
    edges. Ids come from the index path ("node-0-2-1"), so identical input gives
    identical ids. Siblings with the same label (case-insensitive) are merged
    into the first one.
    """
    if not isinstance(data, dict):
        raise ValueError("Mind map must be a JSON object")

    branches = data.get("branches") or data.get("categories") or []
    if not isinstance(branches, list):
        raise ValueError("Mind map branches must be a list")

    central_label = data.get("centralLabel") or data.get("central") or fallback_label
    nodes = [schemas.MindMapNode(id="central", label=str(central_label)[:CENTRAL_LABEL_CHARS], type="central")]
    edges = []
    dropped = 0

    def walk(children: list, parent_id: str, path: List[int], depth: int):
        nonlocal dropped
        seen = set()
        for i, branch in enumerate(children):
            label = _branch_label(branch)
            key = label.casefold()
            if not label or key in seen:
                continue
            seen.add(key)

            node_path = path + [i]
            node_id = "node-" + "-".join(str(p) for p in node_path)
            nodes.append(schemas.MindMapNode(id=node_id, label=label[:NODE_LABEL_CHARS], type=_node_type(depth)))
            edges.append(schemas.MindMapEdge(source=parent_id, target=node_id))

            if depth < MINDMAP_MAX_DEPTH:
                walk(_branch_children(branch), node_id, node_path, depth + 1)
            else:
                dropped += _count_branches(_branch_children(branch))

    walk(branches, "central", [], 2)
    if dropped:
        logger.warning(f"Mind map deeper than {MINDMAP_MAX_DEPTH} levels: dropped {dropped} nodes")
    if len(nodes) == 1:
        raise ValueError("Mind map has no branches")
    return nodes, edges


def fallback_mind_map(central_label: str, tags: List[str]):
    nodes = [schemas.MindMapNode(id="central", label=central_label[:CENTRAL_LABEL_CHARS], type="central")]
    edges = []
    for i, tag in enumerate(tags[:MINDMAP_FALLBACK_CATEGORIES]):
        nodes.append(schemas.MindMapNode(id=f"cat-{i}", label=tag[:NODE_LABEL_CHARS], type="category"))
        edges.append(schemas.MindMapEdge(source="central", target=f"cat-{i}"))
    return nodes, edges


# --- Flashcards / quiz conversion ---

def _items(data, *keys) -> list:
    if isinstance(data, dict):
        for key in keys:
            if isinstance(data.get(key), list):
                return data[key]
        raise ValueError(f"Expected a list under one of {keys}")
    if not isinstance(data, list):
        raise ValueError("Expected a JSON list")
    return data


def convert_flashcards(data, count: int) -> List[schemas.Flashcard]:
    cards = []
    for item in _items(data, "flashcards", "cards"):
        if not isinstance(item, dict):
            continue
        question = str(item.get("question") or item.get("front") or "").strip()
        answer = str(item.get("answer") or item.get("back") or "").strip()
        if question and answer:
            cards.append(schemas.Flashcard(id=len(cards) + 1, question=question, answer=answer))
        if len(cards) >= count:
            break
    if not cards:
        raise ValueError("No usable flashcards")
    return cards


def _match_option(answer, options: List[str]) -> Optional[str]:
    if not isinstance(answer, str):
        return None
    wanted = answer.strip().casefold()
    for option in options:
        if option.casefold() == wanted:
            return option
    return None


def convert_quiz(data, count: int) -> List[schemas.QuizQuestion]:
    questions = []
    for item in _items(data, "quiz", "questions"):
        if not isinstance(item, dict):
            continue
        question = str(item.get("question") or "").strip()
        options = [str(o).strip() for o in item.get("options") or [] if str(o).strip()]
        answer = _match_option(item.get("answer"), options)
        if not question or len(options) < 2 or answer is None:
            continue
        explanation = item.get("explanation")
        questions.append(schemas.QuizQuestion(
            id=len(questions) + 1,
            question=question,
            options=options,
            answer=answer,
            explanation=str(explanation).strip() if explanation else None,
        ))
        if len(questions) >= count:
            break
    if not questions:
        raise ValueError("No usable quiz questions")
    return questions


def fallback_flashcards(documents: List[models.Document], count: int) -> List[schemas.Flashcard]:
    cards = []
    for doc in documents:
        if doc.summary and len(cards) < count:
            cards.append(schemas.Flashcard(id=len(cards) + 1, question=f"What is {doc.filename} about?", answer=doc.summary))
    return cards


def fallback_quiz(documents: List[models.Document], count: int) -> List[schemas.QuizQuestion]:
    """'Which source...' questions; each needs at least one other document as a distractor."""
    names = [doc.filename for doc in documents]
    questions = []
    for doc in documents:
        if not doc.summary or len(questions) >= count:
            continue
        distractors = [name for name in names if name != doc.filename][:3]
        if not distractors:
            continue
        questions.append(schemas.QuizQuestion(
            id=len(questions) + 1,
            question=f"Which source is described as: \"{doc.summary[:200]}\"?",
            options=sorted([doc.filename] + distractors),
            answer=doc.filename,
            explanation=f"This is the summary of {doc.filename}.",
        ))
    return questions


@dataclass
class NotebookMaterial:
    notebook: models.Notebook
    documents: List[models.Document] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    content: str = ""

    @property
    def summaries_text(self) -> str:
        lines = [f"- {doc.filename}: {doc.summary}" for doc in self.documents if doc.summary]
        return "\n".join(lines) or "(no summaries available)"

    @property
    def has_content(self) -> bool:
        return bool(self.content.strip()) or any(doc.summary for doc in self.documents)


class StudioService:
    def __init__(self, db: Session, generation_client, speech_client=None, image_client=None):
        self.db = db
        self.generator = StructuredArtifactGenerator(generation_client)
        self.speech_client = speech_client
        self.image_client = image_client

    def _chunk_content(self, document_ids: List[int], limit: int) -> str:
        if not document_ids or limit <= 0:
            return ""
        rows = self.db.query(DocumentChunk.text).filter(
            DocumentChunk.document_id.in_(document_ids)
        ).order_by(DocumentChunk.document_id, DocumentChunk.chunk_index).all()

        parts = []
        total = 0
        for row in rows:
            if total >= limit:
                break
            piece = row.text[:limit - total]
            parts.append(piece)
            total += len(piece)
        return "\n\n".join(parts)

    def gather(self, notebook_id: int, content_chars: int, max_tags: int = None) -> NotebookMaterial:
        notebook = get_notebook(self.db, notebook_id)
        documents = get_documents(self.db, notebook_id)
        return NotebookMaterial(
            notebook=notebook,
            documents=documents,
            tags=collect_tags(documents, max_tags or settings.NOTEBOOK_SUMMARY_MAX_TAGS),
            content=self._chunk_content([doc.id for doc in documents], content_chars),
        )

    async def mind_map(self, notebook_id: int, notebook_name: Optional[str] = None) -> schemas.MindMapResponse:
        material = self.gather(notebook_id, settings.MINDMAP_CONTENT_CHARS)
        central_label = notebook_name or material.notebook.name or "Notebook"

        if not material.documents or not material.has_content:
            nodes, edges = fallback_mind_map(central_label, [])
            return schemas.MindMapResponse(nodes=nodes, edges=edges, message=NO_DOCUMENTS)

        prompt = prompts.MINDMAP_PROMPT.format(
            summaries=material.summaries_text,
            tags=", ".join(material.tags) or "none",
            content=material.content,
        )
        try:
            outcome = await self.generator.generate_json(
                prompt,
                convert=lambda data: convert_mind_map(data, central_label),
                fallback=lambda: fallback_mind_map(central_label, material.tags),
                expect=dict,
                json_mode=True,
            )
        except GenerationError as e:
            logger.error(f"Mind map generation failed: {e.message}")
            return schemas.MindMapResponse(success=False, error=e.message)

        nodes, edges = outcome.value
        logger.info(f"Mind map for notebook {notebook_id}: {len(nodes)} nodes, degraded={outcome.degraded}")
        return schemas.MindMapResponse(nodes=nodes, edges=edges, degraded=outcome.degraded, message=outcome.message)

    async def flashcards(self, notebook_id: int, count: int = 10) -> schemas.FlashcardResponse:
        material = self.gather(notebook_id, settings.STUDY_CONTENT_CHARS)
        if not material.documents:
            return schemas.FlashcardResponse(success=False, error=NO_DOCUMENTS)

        prompt = prompts.FLASHCARD_PROMPT.format(
            count=count,
            summaries=material.summaries_text,
            tags=", ".join(material.tags) or "none",
            content=material.content,
        )
        try:
            outcome = await self.generator.generate_json(
                prompt,
                convert=lambda data: convert_flashcards(data, count),
                fallback=lambda: fallback_flashcards(material.documents, count),
            )
        except GenerationError as e:
            logger.error(f"Flashcard generation failed: {e.message}")
            return schemas.FlashcardResponse(success=False, error=e.message)

        return schemas.FlashcardResponse(flashcards=outcome.value, degraded=outcome.degraded, message=outcome.message)

    async def quiz(self, notebook_id: int, count: int = 20, difficulty: str = "medium") -> schemas.QuizResponse:
        material = self.gather(notebook_id, settings.STUDY_CONTENT_CHARS)
        if not material.documents:
            return schemas.QuizResponse(success=False, error=NO_DOCUMENTS, difficulty=difficulty)

        prompt = prompts.QUIZ_PROMPT.format(
            count=count,
            difficulty=difficulty,
            difficulty_hint=prompts.QUIZ_DIFFICULTY.get(difficulty, prompts.QUIZ_DIFFICULTY["medium"]),
            summaries=material.summaries_text,
            tags=", ".join(material.tags) or "none",
            content=material.content,
        )
        try:
            outcome = await self.generator.generate_json(
                prompt,
                convert=lambda data: convert_quiz(data, count),
                fallback=lambda: fallback_quiz(material.documents, count),
            )
        except GenerationError as e:
            logger.error(f"Quiz generation failed: {e.message}")
            return schemas.QuizResponse(success=False, error=e.message, difficulty=difficulty)

        return schemas.QuizResponse(quiz=outcome.value, difficulty=difficulty,
                                    degraded=outcome.degraded, message=outcome.message)

    def _report_context(self, documents: List[models.Document]) -> str:
        sections = []
        total = 0
        for doc in documents:
            section = f"## {doc.filename}\n"
            if doc.summary:
                section += f"Summary: {doc.summary}\n"
            if doc.extracted_text:
                section += f"\n{doc.extracted_text[:REPORT_DOC_CHARS]}\n"
            section = section[:settings.REPORT_CONTEXT_CHARS - total]
            if not section:
                break
            sections.append(section)
            total += len(section)
        return "\n".join(sections)

    async def report(self, notebook_id: int, report_type: str = "briefing") -> schemas.ReportResponse:
        if report_type not in prompts.REPORT_PROMPTS:
            report_type = "briefing"
        get_notebook(self.db, notebook_id)
        documents = get_documents(self.db, notebook_id)
        if not documents:
            return schemas.ReportResponse(success=False, error=NO_DOCUMENTS, report_type=report_type)

        config = prompts.REPORT_PROMPTS[report_type]
        prompt = prompts.REPORT_PROMPT.format(
            system=config["system"],
            context=self._report_context(documents),
            tags=", ".join(collect_tags(documents, settings.NOTEBOOK_SUMMARY_MAX_TAGS)) or "none",
            format=config["format"],
        )
        try:
            report = await self.generator.generate_text(prompt, system=config["system"])
        except GenerationError as e:
            logger.error(f"Report generation failed: {e.message}")
            return schemas.ReportResponse(success=False, error=e.message, report_type=report_type)

        return schemas.ReportResponse(report=report, report_type=report_type)

    async def audio(self, notebook_id: int, audio_type: str = "overview", voice: str = None) -> schemas.AudioResponse:
        title, template = prompts.AUDIO_PROMPTS.get(audio_type, prompts.AUDIO_PROMPTS["overview"])
        material = self.gather(notebook_id, settings.STUDY_CONTENT_CHARS)
        if not material.documents:
            return schemas.AudioResponse(success=False, error=NO_DOCUMENTS, title=title)
        if self.speech_client is None:
            return schemas.AudioResponse(success=False, error="Speech synthesis is not configured", title=title)

        content = f"Summaries:\n{material.summaries_text}\n\nContent:\n{material.content}"
        prompt = template.format(content=content[:settings.STUDY_CONTENT_CHARS])
        try:
            script = await self.generator.generate_text(prompt)
            audio = await self.speech_client.synthesize(script, voice)
        except (GenerationError, SpeechSynthesisError) as e:
            logger.error(f"Audio generation failed: {e.message}")
            return schemas.AudioResponse(success=False, error=e.message, title=title)

        wav = ensure_wav(audio, sample_rate=settings.SPEECH_SAMPLE_RATE)
        logger.info(f"Audio for notebook {notebook_id}: {len(script)} chars script, {len(wav)} bytes")
        return schemas.AudioResponse(
            audio=base64.b64encode(wav).decode("ascii"),
            title=title,
            script=script,
        )

    async def infographic(self, notebook_id: int) -> schemas.InfographicResponse:
        get_notebook(self.db, notebook_id)
        documents = get_documents(self.db, notebook_id)
        if not documents:
            return schemas.InfographicResponse(success=False, error=NO_DOCUMENTS)
        if self.image_client is None:
            return schemas.InfographicResponse(success=False, error="Image generation is not configured")

        title = os.path.splitext(documents[0].filename)[0]
        summaries = "\n\n".join(doc.summary for doc in documents if doc.summary) or title
        prompt = prompts.INFOGRAPHIC_PROMPT.format(
            title=title,
            content=summaries,
            tags=", ".join(collect_tags(documents, INFOGRAPHIC_MAX_TAGS)) or "none",
        )
        try:
            image = await self.image_client.generate_image(prompt)
        except ImageGenerationError as e:
            logger.error(f"Infographic generation failed: {e.message}")
            return schemas.InfographicResponse(success=False, error=e.message, title=title)

        return schemas.InfographicResponse(
            image=base64.b64encode(image.data).decode("ascii"),
            mime_type=image.mime_type,
            title=title,
        )

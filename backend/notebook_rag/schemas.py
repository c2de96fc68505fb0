from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Literal
from datetime import datetime

# --- Notebooks ---
class NotebookBase(BaseModel):
    name: str = "Untitled notebook"

class NotebookCreate(NotebookBase):
    user_id: Optional[str] = None

class Notebook(NotebookBase):
    id: int
    user_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

class DocumentSummary(BaseModel):
    doc_name: str
    summary: str

class NotebookSummary(BaseModel):
    title: str
    summaries: List[DocumentSummary] = []
    tags: List[str] = []
    source_count: int = 0

# --- Documents ---
class Document(BaseModel):
    id: int
    notebook_id: int
    filename: str
    file_size: int = 0
    media_type: Optional[str] = None
    status: str
    error_message: Optional[str] = None
    chunk_count: int = 0
    embedded_chunk_count: int = 0
    summary: Optional[str] = None
    tags: Optional[List[str]] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

# --- Chat ---
class Citation(BaseModel):
    chunk_id: int
    document_id: int
    filename: str
    excerpt: str

class HistoryTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str

class ChatRequest(BaseModel):
    message: str
    notebook_id: int
    user_id: Optional[str] = None
    conversation_history: Optional[List[HistoryTurn]] = None

class ChatResponse(BaseModel):
    success: bool = True
    response: str
    citations: List[Citation] = []
    sources_used: int = 0
    error: Optional[str] = None

class ChatMessage(BaseModel):
    id: int
    notebook_id: int
    role: str
    content: str
    citations: Optional[List[Citation]] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class SearchRequest(BaseModel):
    query: str
    notebook_id: int
    match_count: int = Field(default=10, ge=1, le=50)

class SearchHit(BaseModel):
    chunk_id: int
    document_id: int
    chunk_index: int
    text: str
    score: float

# --- Studio ---
class StudioRequest(BaseModel):
    notebook_id: int
    user_id: Optional[str] = None

class MindMapRequest(StudioRequest):
    notebook_name: Optional[str] = None

class FlashcardRequest(StudioRequest):
    count: int = Field(default=10, ge=1, le=50)

class QuizRequest(StudioRequest):
    count: int = Field(default=20, ge=1, le=50)
    difficulty: Literal["easy", "medium", "hard"] = "medium"

class ReportRequest(StudioRequest):
    report_type: str = "briefing"

class AudioRequest(StudioRequest):
    audio_type: Literal["overview", "pixar_story"] = "overview"
    voice: Optional[str] = None

class MindMapNode(BaseModel):
    id: str
    label: str
    type: Literal["central", "category", "concept", "detail"]

class MindMapEdge(BaseModel):
    source: str
    target: str

class Flashcard(BaseModel):
    id: int
    question: str
    answer: str

class QuizQuestion(BaseModel):
    id: int
    question: str
    options: List[str]
    answer: str
    explanation: Optional[str] = None

class ArtifactResponse(BaseModel):
    success: bool = True
    degraded: bool = False
    message: Optional[str] = None
    error: Optional[str] = None

class MindMapResponse(ArtifactResponse):
    nodes: List[MindMapNode] = []
    edges: List[MindMapEdge] = []

class FlashcardResponse(ArtifactResponse):
    flashcards: List[Flashcard] = []

class QuizResponse(ArtifactResponse):
    quiz: List[QuizQuestion] = []
    difficulty: Optional[str] = None

class ReportResponse(ArtifactResponse):
    report: Optional[str] = None
    report_type: Optional[str] = None

class AudioResponse(ArtifactResponse):
    audio: Optional[str] = None # base64 WAV
    mime_type: str = "audio/wav"
    title: Optional[str] = None
    script: Optional[str] = None

class InfographicResponse(ArtifactResponse):
    image: Optional[str] = None # base64
    mime_type: Optional[str] = None
    title: Optional[str] = None

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from notebook_rag.api.routers import chats, documents, notebooks, studio
from notebook_rag.core.database import init_db
from notebook_rag.core.config import settings
from notebook_rag.services.ollama_service import check_ollama_connection
import logging

# Configure Logging
# Using force=True to override default handlers and ensure consistent formatting
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)-9s %(name)-40s %(message)s",
    force=True
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for the FastAPI application.
    Creates tables (and the pgvector extension) and checks Ollama on startup.
    """
    init_db()
    await check_ollama_connection()
    yield

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan
)

# CORS
origins = [
    "http://localhost",
    "http://localhost:3000", # React default
    "http://localhost:5173", # Vite default
    "*"
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include Routers
app.include_router(notebooks.router, prefix=f"{settings.API_V1_STR}/notebooks", tags=["notebooks"])
app.include_router(documents.router, prefix=settings.API_V1_STR, tags=["documents"])
app.include_router(chats.router, prefix=f"{settings.API_V1_STR}/chats", tags=["chats"])
app.include_router(studio.router, prefix=f"{settings.API_V1_STR}/studio", tags=["studio"])

@app.get("/")
def read_root():
    """
    Root endpoint to verify backend status.
    """
    return {"message": "Notebook RAG Backend Running"}

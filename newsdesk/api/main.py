import logging
import time
from contextlib import asynccontextmanager
from typing import Any, List, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from newsdesk.ai import OpenAITextGenerator
from newsdesk.ai.chat import ChatAssistant
from newsdesk.config import Settings
from newsdesk.errors import AppError, ValidationError
from newsdesk.extractor.feed_extractor import FeedExtractor
from newsdesk.feeds import JinaReader
from newsdesk.images import CoverImageResolver, S3ObjectStore
from newsdesk.pautas.suggester import PautaSuggester
from newsdesk.posts.orchestrator import PostGenerator
from newsdesk.storage.models import PautaSource
from newsdesk.storage.repository import JsonRecordStore
from newsdesk.tracker.feed_sync import FeedSynchronizer

logger = logging.getLogger(__name__)

settings = Settings.from_env()

store = JsonRecordStore(settings.db_path)
reader = JinaReader.from_settings(settings)
generator = OpenAITextGenerator.from_settings(settings)
extractor = FeedExtractor(generator, char_budget=settings.extract_char_budget)
synchronizer = FeedSynchronizer.from_settings(settings, reader, extractor, store)
image_resolver = CoverImageResolver.from_settings(settings, S3ObjectStore.from_settings(settings))
post_generator = PostGenerator.from_settings(settings, reader, generator, image_resolver, store)
suggester = PautaSuggester(reader, generator, store, fetch_workers=settings.batch_concurrency)
chat_assistant = ChatAssistant(reader, generator)

# Scheduler com configurações para evitar empilhamento de jobs
scheduler = BackgroundScheduler(
    job_defaults={
        "coalesce": True,         # junta execuções atrasadas
        "max_instances": 1,       # não roda dois syncs ao mesmo tempo
        "misfire_grace_time": 30,
    }
)


def sync_active_sources():
    """Job agendado: sincroniza todas as fontes ativas (de todos os donos)."""
    sources = store.list_sources(active=True)
    if not sources:
        logger.info("[sync] Nenhuma fonte ativa encontrada.")
        return None
    return synchronizer.sync_all(sources)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler.add_job(sync_active_sources, "interval", minutes=settings.sync_interval_minutes, id="sync_feed")
    scheduler.start()
    yield
    scheduler.shutdown(wait=False)


# ---------- Schemas de entrada ----------
class SourceIn(BaseModel):
    owner_id: int
    title: str
    url: str
    active: bool = True


class SourceUpdate(BaseModel):
    title: Optional[str] = None
    url: Optional[str] = None
    active: Optional[bool] = None


class PautaIn(BaseModel):
    owner_id: int
    subject: str
    summary: str
    sources: List[PautaSource] = Field(default_factory=list)


class PromptIn(BaseModel):
    owner_id: int
    prompt: str


class IdsIn(BaseModel):
    ids: List[int]


class ChatIn(BaseModel):
    # validado pelo ChatAssistant para devolver 400 com a mensagem de erro da aplicação
    messages: Any = None
    url: Optional[str] = None


#%% APP

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=512)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.get("/health")
def health():
    return {"status": "ok", "ts": int(time.time())}


# ---------- Fontes ----------
@app.get("/sources")
def list_sources(owner_id: Optional[int] = None):
    return {"status": "success", "data": [s.model_dump() for s in store.list_sources(owner_id=owner_id)]}


@app.post("/sources", status_code=201)
def create_source(body: SourceIn):
    source = store.create_source(body.owner_id, body.title, body.url, body.active)
    return {"status": "success", "data": source.model_dump()}


@app.get("/sources/{source_id}")
def get_source(source_id: int):
    source = store.get_source(source_id)
    if source is None:
        raise HTTPException(404, "Fonte não encontrada")
    return {"status": "success", "data": source.model_dump()}


@app.put("/sources/{source_id}")
def update_source(source_id: int, body: SourceUpdate):
    fields = body.model_dump(exclude_none=True)
    if not fields:
        raise ValidationError("Informe ao menos um campo para atualizar")
    source = store.update_source(source_id, **fields)
    if source is None:
        raise HTTPException(404, "Fonte não encontrada")
    return {"status": "success", "data": source.model_dump()}


@app.delete("/sources/{source_id}")
def delete_source(source_id: int):
    if not store.delete_source(source_id):
        raise HTTPException(404, "Fonte não encontrada")
    return {"status": "success"}


# ---------- Feed ----------
@app.post("/feed/sync")
def sync_feed(owner_id: int):
    sources = store.list_sources(owner_id=owner_id)
    if not sources:
        raise ValidationError("Nenhuma fonte cadastrada. Cadastre fontes antes de buscar feed.")
    stats = synchronizer.sync_all(sources)
    return {"status": "completed", "message": stats.message, "stats": stats.model_dump()}


@app.get("/feed")
def list_feed(owner_id: int, source_id: Optional[int] = None, read: Optional[bool] = None,
              search: Optional[str] = None, page: int = 1, limit: int = 20):
    source_ids = [s.id for s in store.list_sources(owner_id=owner_id)]
    if source_id is not None:
        source_ids = [sid for sid in source_ids if sid == source_id]
    items, total = store.list_feed_items(source_ids=source_ids, read=read, search=search, page=page, limit=limit)
    return {
        "status": "success",
        "data": [i.model_dump(mode="json") for i in items],
        "pagination": {"page": page, "limit": limit, "total": total},
    }


@app.patch("/feed/read-all")
def mark_all_feed_read(owner_id: int):
    source_ids = [s.id for s in store.list_sources(owner_id=owner_id)]
    return {"status": "success", "updated": store.mark_all_feed_items_read(source_ids)}


@app.get("/feed/{item_id}")
def get_feed_item(item_id: int):
    item = store.get_feed_item(item_id)
    if item is None:
        raise HTTPException(404, "Feed item não encontrado")
    return {"status": "success", "data": item.model_dump(mode="json")}


@app.patch("/feed/{item_id}/read")
def mark_feed_read(item_id: int, read: bool = True):
    if not store.set_feed_item_read(item_id, read):
        raise HTTPException(404, "Feed item não encontrado")
    return {"status": "success"}


@app.delete("/feed/{item_id}")
def delete_feed_item(item_id: int):
    if not store.delete_feed_item(item_id):
        raise HTTPException(404, "Feed item não encontrado")
    return {"status": "success"}


@app.post("/feed/delete-many")
def delete_feed_items(body: IdsIn):
    if not body.ids:
        raise ValidationError("Informe ao menos um ID")
    return {"status": "success", "deleted": store.delete_feed_items(body.ids)}


@app.post("/feed/{item_id}/convert", status_code=201)
def convert_feed_item(item_id: int, owner_id: int):
    post = post_generator.convert_feed_item(item_id, owner_id)
    return {"status": "success", "data": post.model_dump(mode="json")}


# ---------- Pautas ----------
@app.get("/pautas")
def list_pautas(owner_id: Optional[int] = None):
    return {"status": "success", "data": [p.model_dump(mode="json") for p in store.list_pautas(owner_id)]}


@app.post("/pautas", status_code=201)
def create_pauta(body: PautaIn):
    pauta = store.create_pauta(body.owner_id, body.subject, body.summary, body.sources)
    return {"status": "success", "data": pauta.model_dump(mode="json")}


@app.post("/pautas/suggest")
def suggest_pautas(owner_id: int):
    sources = store.list_sources(owner_id=owner_id)
    if not sources:
        raise ValidationError("Nenhuma fonte cadastrada. Cadastre fontes antes de gerar pautas.")
    created = suggester.create_suggestions(owner_id, sources)
    return {"status": "completed", "created": created}


@app.get("/pautas/{pauta_id}")
def get_pauta(pauta_id: int):
    pauta = store.get_pauta(pauta_id)
    if pauta is None:
        raise HTTPException(404, "Pauta não encontrada")
    return {"status": "success", "data": pauta.model_dump(mode="json")}


@app.delete("/pautas/{pauta_id}")
def delete_pauta(pauta_id: int):
    if not store.delete_pauta(pauta_id):
        raise HTTPException(404, "Pauta não encontrada")
    return {"status": "success"}


@app.patch("/pautas/{pauta_id}/read")
def mark_pauta_read(pauta_id: int):
    if not store.set_pauta_read(pauta_id):
        raise HTTPException(404, "Pauta não encontrada")
    return {"status": "success"}


@app.post("/pautas/{pauta_id}/convert", status_code=201)
def convert_pauta(pauta_id: int, owner_id: int):
    post = post_generator.convert_pauta(pauta_id, owner_id)
    return {"status": "success", "data": post.model_dump(mode="json")}


# ---------- Posts ----------
@app.post("/posts/from-prompt", status_code=201)
def post_from_prompt(body: PromptIn):
    post = post_generator.generate_from_prompt(body.prompt, body.owner_id)
    return {"status": "success", "data": post.model_dump(mode="json")}



# ---------- Chat ----------
@app.post("/chat")
def chat(body: ChatIn):
    return {"response": chat_assistant.reply(body.messages, body.url)}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("newsdesk.api.main:app", host="0.0.0.0", port=8000, reload=True)

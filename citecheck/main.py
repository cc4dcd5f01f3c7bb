from typing import Any, Dict, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Response, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from citecheck.config import Settings, check_api_keys_on_startup, get_settings, logger
from citecheck.models import ProgressUpdate, VerifyDocumentRequest
from citecheck.services import (
    BlobStore,
    FileBlobStore,
    ProgressHub,
    build_store_factory,
    load_result,
    process_document,
)

app = FastAPI(title="CiteCheck")


@app.on_event("startup")
async def startup_event():
    check_api_keys_on_startup()


@app.on_event("shutdown")
async def shutdown_event():
    if _progress_hub is not None:
        _progress_hub.close()


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_blob_store: Optional[BlobStore] = None
_progress_hub: Optional[ProgressHub] = None


def get_blob_store() -> BlobStore:
    global _blob_store
    if _blob_store is None:
        _blob_store = FileBlobStore(get_settings().BLOB_STORE_DIR)
    return _blob_store


def get_progress_hub() -> ProgressHub:
    global _progress_hub
    if _progress_hub is None:
        _progress_hub = ProgressHub(build_store_factory(get_settings(), get_blob_store()))
    return _progress_hub


@app.get("/")
async def health_check():
    return {"status": "ok", "message": "CiteCheck is running."}


@app.post("/api/documents/{document_id}/verify", status_code=202)
async def verify_document(
    document_id: str,
    request: VerifyDocumentRequest,
    background_tasks: BackgroundTasks,
    settings: Settings = Depends(get_settings),
    blob_store: BlobStore = Depends(get_blob_store),
    hub: ProgressHub = Depends(get_progress_hub),
):
    logger.info("Queued document %s with %d footnotes", document_id, len(request.footnotes))
    background_tasks.add_task(
        process_document,
        document_id,
        list(request.footnotes),
        settings,
        blob_store,
        hub,
    )
    return {"id": document_id, "status": "processing"}


@app.get("/api/documents/{document_id}")
async def get_document(document_id: str, blob_store: BlobStore = Depends(get_blob_store)) -> Dict[str, Any]:
    result = await load_result(blob_store, document_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"No results for document {document_id}")
    return result.to_wire()


@app.get("/api/documents/{document_id}/progress")
async def get_progress(document_id: str, hub: ProgressHub = Depends(get_progress_hub)):
    snapshot = await hub.actor(document_id).get()
    await hub.release(document_id)
    return snapshot.to_wire() if snapshot else None


@app.post("/api/documents/{document_id}/progress", status_code=204)
async def set_progress(
    document_id: str,
    update: ProgressUpdate,
    hub: ProgressHub = Depends(get_progress_hub),
):
    await hub.actor(document_id).set(update)
    await hub.release(document_id)
    return Response(status_code=204)


@app.websocket("/api/documents/{document_id}/stream")
async def progress_stream(
    websocket: WebSocket,
    document_id: str,
    hub: ProgressHub = Depends(get_progress_hub),
):
    await websocket.accept()
    actor = hub.actor(document_id)
    await actor.subscribe(websocket)
    try:
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.info("Progress subscriber disconnected from %s", document_id)
    finally:
        actor.unsubscribe(websocket)
        await hub.release(document_id)

"""
FastAPI service exposing the grocery list, platform selection and
price comparison pipeline.

The owner is an opaque user id supplied by the identity provider in the
X-User-Id header; this service never authenticates users itself.
"""

from fastapi import FastAPI, HTTPException, BackgroundTasks, Depends, Header, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from datetime import datetime
from typing import List, Optional

from quickcompare.core.settings import LOG_FORMAT, LOG_DATEFMT
from quickcompare.core.db import ComparisonStore, init_database
from quickcompare.extraction.adapter import ExtractionAdapter
from quickcompare.extraction.backends import get_extraction_backend
from quickcompare.models.api import (
    CompareRequest, ErrorKind, ItemPayload, RunSummary, ValidationResult
)
from quickcompare.models.grocery_list import GroceryItem
from quickcompare.models.platform import Platform, SelectionRequest
from quickcompare.models.product import ComparisonGroup
from quickcompare.pipeline.orchestrator import ComparisonOrchestrator, clean_items
from quickcompare.pipeline.ranker import rank
from quickcompare.pipeline.validator import SelectionError, build_selection_request, validate_selection

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt=LOG_DATEFMT
)
logger = logging.getLogger(__name__)

app = FastAPI(title="QuickCompare API")

# Enable CORS for browser front-ends
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_store: Optional[ComparisonStore] = None
_adapter: Optional[ExtractionAdapter] = None


def get_store() -> ComparisonStore:
    """Return the shared store, creating the schema on first use."""
    global _store
    if _store is None:
        init_database()
        _store = ComparisonStore()
    return _store


def get_adapter() -> ExtractionAdapter:
    """Return the shared adapter over the configured extraction backend."""
    global _adapter
    if _adapter is None:
        _adapter = ExtractionAdapter(get_extraction_backend())
    return _adapter


def get_orchestrator(
    store: ComparisonStore = Depends(get_store),
    adapter: ExtractionAdapter = Depends(get_adapter)
) -> ComparisonOrchestrator:
    return ComparisonOrchestrator(store, adapter, store.list_platforms())


def get_owner(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Opaque authenticated-user id; requests without one are rejected."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="No authorization header")
    return x_user_id.strip()


def _rejection(reason: ErrorKind, message: str) -> HTTPException:
    return HTTPException(status_code=422, detail={"reason": reason.value, "message": message})


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}


@app.get("/api/platforms", response_model=List[Platform])
def list_platforms(store: ComparisonStore = Depends(get_store)):
    return store.list_platforms()


# -------------------------------------------------
# Grocery list
# -------------------------------------------------

@app.get("/api/items", response_model=List[GroceryItem])
def list_items(owner: str = Depends(get_owner), store: ComparisonStore = Depends(get_store)):
    return store.list_items(owner)


@app.post("/api/items", response_model=GroceryItem, status_code=201)
def add_item(payload: ItemPayload, owner: str = Depends(get_owner), store: ComparisonStore = Depends(get_store)):
    try:
        return store.add_item(owner, payload.name)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=f"Invalid item: {e}")


@app.put("/api/items/{item_id}", response_model=GroceryItem)
def update_item(
    item_id: int,
    payload: ItemPayload,
    owner: str = Depends(get_owner),
    store: ComparisonStore = Depends(get_store)
):
    try:
        item = store.update_item(owner, item_id, payload.name)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=f"Invalid item: {e}")
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


@app.delete("/api/items/{item_id}", status_code=204)
def delete_item(item_id: int, owner: str = Depends(get_owner), store: ComparisonStore = Depends(get_store)):
    if not store.delete_item(owner, item_id):
        raise HTTPException(status_code=404, detail="Item not found")
    return Response(status_code=204)


# -------------------------------------------------
# Selection and comparison
# -------------------------------------------------

@app.post("/api/selection/validate", response_model=ValidationResult)
def validate(request: CompareRequest, store: ComparisonStore = Depends(get_store)):
    available = [p.id for p in store.list_platforms()]
    return validate_selection(request.pincode, request.platform_ids, available)


@app.get("/api/selection/latest", response_model=SelectionRequest)
def latest_selection(owner: str = Depends(get_owner), store: ComparisonStore = Depends(get_store)):
    selection = store.latest_selection(owner)
    if selection is None:
        raise HTTPException(status_code=404, detail="No selection yet")
    return selection


@app.post("/api/compare", response_model=RunSummary)
def compare(
    request: CompareRequest,
    background_tasks: BackgroundTasks,
    background: bool = False,
    owner: str = Depends(get_owner),
    store: ComparisonStore = Depends(get_store),
    orchestrator: ComparisonOrchestrator = Depends(get_orchestrator)
):
    """
    Run a comparison over the owner's stored grocery list.

    With background=true the run is scheduled and 202 is returned right away;
    the run completes even if the caller stops listening.
    """
    available = [p.id for p in store.list_platforms()]
    try:
        selection = build_selection_request(owner, request.pincode, request.platform_ids, available)
    except SelectionError as e:
        raise _rejection(e.reason, e.message)

    items = clean_items(item.name for item in store.list_items(owner))
    if not items:
        raise _rejection(ErrorKind.NO_ITEMS, "No grocery items found. Please add items to your list first.")

    logger.info(f"[API] Compare for {owner}: {len(items)} items on {selection.platform_ids}")

    if background:
        background_tasks.add_task(orchestrator.run, selection, items)
        return JSONResponse(
            status_code=202,
            content={"status": "accepted", "owner": owner, "platform_ids": selection.platform_ids, "items": items}
        )

    try:
        return orchestrator.run(selection, items)
    except Exception as e:
        logger.error(f"[API] Compare failed for {owner}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/results", response_model=List[ComparisonGroup])
def results(
    include_empty: bool = False,
    owner: str = Depends(get_owner),
    store: ComparisonStore = Depends(get_store)
):
    items = [item.name for item in store.list_items(owner)] if include_empty else None
    return rank(store, owner, items)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)

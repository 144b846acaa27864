"""
Knowledge base endpoints: document ingestion, search and maintenance.
"""

from fastapi import APIRouter, Depends, HTTPException

from .deps import get_device_directory, get_knowledge_base
from .schemas import (
    BatchDocumentRequest,
    BatchDocumentResponse,
    DocumentRequest,
    DocumentResponse,
    RemoveResponse,
    SearchHit,
    SearchRequest,
    SearchResponse,
    StatsResponse,
    SyncResponse,
)

MAX_TOP_K = 50

router = APIRouter()


@router.post("/documents", response_model=DocumentResponse)
def add_document(req: DocumentRequest, kb=Depends(get_knowledge_base)):
    doc_id = kb.add_document(req.text, req.metadata)
    if doc_id is None:
        raise HTTPException(status_code=500, detail="Embedding failed; document not stored")
    return DocumentResponse(id=doc_id)


@router.post("/documents/batch", response_model=BatchDocumentResponse)
def add_documents(req: BatchDocumentRequest, kb=Depends(get_knowledge_base)):
    if not req.documents:
        raise HTTPException(status_code=400, detail="documents cannot be empty")
    ids = kb.add_documents([(doc.text, doc.metadata) for doc in req.documents])
    if not ids:
        raise HTTPException(status_code=500, detail="Embedding failed; no documents stored")
    return BatchDocumentResponse(ids=ids)


@router.post("/search", response_model=SearchResponse)
def search(req: SearchRequest, kb=Depends(get_knowledge_base)):
    if not req.query.strip():
        raise HTTPException(status_code=400, detail="query cannot be empty")
    top_k = max(1, min(req.top_k, MAX_TOP_K))
    results = kb.search(req.query, top_k)
    return SearchResponse(
        query=req.query,
        results=[
            SearchHit(id=r.document.id, text=r.document.text, score=r.score, metadata=r.document.metadata)
            for r in results
        ],
    )


@router.get("/stats", response_model=StatsResponse)
def stats(kb=Depends(get_knowledge_base)):
    return StatsResponse(count=kb.count(), store=kb.vector_store.__class__.__name__)


@router.delete("/documents", response_model=RemoveResponse)
def clear(kb=Depends(get_knowledge_base)):
    removed = kb.count()
    kb.clear()
    return RemoveResponse(removed=removed)


@router.delete("/sources/{source}", response_model=RemoveResponse)
def remove_source(source: str, kb=Depends(get_knowledge_base)):
    return RemoveResponse(removed=kb.remove_by_source(source))


@router.post("/sync-devices", response_model=SyncResponse)
def sync_devices(kb=Depends(get_knowledge_base), directory=Depends(get_device_directory)):
    return SyncResponse(added=kb.sync_from_devices(directory.find_all(enabled_only=True)))


@router.get("/context")
def context_preview(q: str, kb=Depends(get_knowledge_base)):
    """Preview the RAG context a question would receive."""
    return {"query": q, "context": kb.build_context(q)}

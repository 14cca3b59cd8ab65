from typing import Any, List

from fastapi import APIRouter, Depends

from ..schemas import QueryRequest, QueryResponse
from ..services.rag import QueryService
from ..deps import get_query_service

router = APIRouter(tags=["chat"])


@router.post("/chat/query", response_model=QueryResponse)
async def query(req: QueryRequest, service: QueryService = Depends(get_query_service)):
    return await service.answer(req.query, req.owner_id, req.conversation_id)


@router.get("/chat/history/{owner_id}")
async def history(owner_id: str, service: QueryService = Depends(get_query_service)) -> List[Any]:
    return await service.history(owner_id)

from fastapi import Request

from .services.ingestion import DocumentIngestionPipeline
from .services.rag import QueryService

# Services are built once in the app lifespan and kept on app.state

def get_pipeline(request: Request) -> DocumentIngestionPipeline:
    return request.app.state.pipeline

def get_query_service(request: Request) -> QueryService:
    return request.app.state.query_service

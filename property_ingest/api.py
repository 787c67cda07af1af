"""API entry point for triggering listing ingestion.

Run this module to expose a small HTTP service with a single trigger
endpoint, or pass ``--run_once`` to execute one ingestion from the command
line and print the summary.  Clients are built once at startup and reused
by every run.
"""

from __future__ import annotations

import argparse
import json
import logging
from typing import Any, Dict, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from property_chat.errors import PropertyBotError
from property_chat.listings import ListingsClient
from property_chat.llm_client import ChatLLMClient
from property_chat.utils import setup_logging

from .config import IngestionConfig, VectorStoreConfig
from .pipeline import IngestionPipeline
from .vector_store import VectorStoreWriter

logger = logging.getLogger(__name__)


def build_pipeline(config: IngestionConfig, llm_client: Optional[ChatLLMClient] = None) -> IngestionPipeline:
    return IngestionPipeline(
        llm_client or ChatLLMClient(config.llm),
        ListingsClient(config.listings),
        VectorStoreWriter(config.vector_store),
        config,
    )


def add_ingest_routes(app: FastAPI, pipeline: IngestionPipeline) -> None:
    app.state.pipeline = pipeline

    @app.post("/api/ingest")
    async def ingest():
        logger.info("Ingestion triggered")
        try:
            summary = await run_in_threadpool(app.state.pipeline.run)
        except PropertyBotError as exc:
            logger.error("Ingestion failed with %s: %s", type(exc).__name__, exc)
            return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc)})
        except Exception as exc:
            logger.exception("Ingestion failed")
            return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})

        logger.info("Ingestion complete: %d of %d processed", summary.processed, summary.total_found)
        return summary.to_dict()


def create_app(
    config: Optional[IngestionConfig] = None,
    *,
    log_dir: Optional[str] = None,
    pipeline: Optional[IngestionPipeline] = None,
) -> FastAPI:
    """Create and return a FastAPI app bound to an ingestion pipeline."""
    if log_dir:
        setup_logging(log_dir, logging.INFO)

    pipeline = pipeline or build_pipeline(config or IngestionConfig())

    app = FastAPI(title="Property Ingestion", version="0.1.0")

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    add_ingest_routes(app, pipeline)
    return app


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Refresh the property vector index.")
    parser.add_argument("--host", default="0.0.0.0", help="Host interface to bind the HTTP server.")
    parser.add_argument("--port", type=int, default=8003, help="Port for the HTTP server.")
    parser.add_argument("--log_dir", default="./logs", help="Directory for application logs.")
    parser.add_argument("--index_name", default="properties", help="Pinecone index to upsert into.")
    parser.add_argument("--namespace", default="", help="Pinecone namespace.")
    parser.add_argument("--page", type=int, default=1, help="Listings page to ingest.")
    parser.add_argument("--batch_size", type=int, default=5, help="Properties per upsert batch.")
    parser.add_argument(
        "--batch_delay_seconds",
        type=float,
        default=2.0,
        help="Pause between batches to smooth provider load.",
    )
    parser.add_argument("--vision_model", default="gpt-4o-mini", help="Model used to caption images.")
    parser.add_argument("--embedding_model", default="text-embedding-3-small", help="Embedding model.")
    parser.add_argument(
        "--run_once",
        action="store_true",
        help="Run a single ingestion, print the summary and exit instead of serving.",
    )
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> IngestionConfig:
    return IngestionConfig(
        vector_store=VectorStoreConfig(index_name=args.index_name, namespace=args.namespace),
        page=args.page,
        batch_size=args.batch_size,
        batch_delay_seconds=args.batch_delay_seconds,
        vision_model=args.vision_model,
        embedding_model=args.embedding_model,
    )


def main(argv: Optional[list[str]] = None) -> None:
    load_dotenv()
    args = parse_args(argv)
    setup_logging(args.log_dir, logging.INFO)
    config = config_from_args(args)

    if args.run_once:
        summary = build_pipeline(config).run()
        payload: Dict[str, Any] = summary.to_dict()
        print(json.dumps({k: v for k, v in payload.items() if k != "properties"}, indent=2))
        return

    app = create_app(config, log_dir=args.log_dir)
    logger.info("Starting ingestion API on %s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()

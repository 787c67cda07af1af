"""Unified FastAPI server exposing chat, streaming chat and listing ingestion."""

from __future__ import annotations

import argparse
import logging
from typing import Dict, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

from property_chat import ChatConfig
from property_chat.api import (
    add_chat_routes,
    build_chat_service,
    config_from_args as chat_config_from_args,
    install_error_handlers,
)
from property_chat.llm_client import ChatLLMClient
from property_chat.service import ChatService
from property_chat.utils import setup_logging
from property_ingest import IngestionConfig, IngestionPipeline, VectorStoreConfig
from property_ingest.api import add_ingest_routes, build_pipeline

logger = logging.getLogger(__name__)


# ---------- FastAPI Factory ----------
def create_app(
    log_dir: Optional[str] = "./logs",
    chat_config: Optional[ChatConfig] = None,
    ingestion_config: Optional[IngestionConfig] = None,
    *,
    chat_service: Optional[ChatService] = None,
    pipeline: Optional[IngestionPipeline] = None,
) -> FastAPI:
    """Build every client once and mount both pipelines on one app.

    The chat service and the ingestion pipeline share a single
    :class:`ChatLLMClient`.
    """
    if log_dir:
        setup_logging(log_dir, logging.INFO)

    chat_config = chat_config or ChatConfig()
    ingestion_config = ingestion_config or IngestionConfig(llm=chat_config.llm, listings=chat_config.listings)

    if chat_service is None or pipeline is None:
        llm_client = ChatLLMClient(chat_config.llm)
        chat_service = chat_service or build_chat_service(chat_config, llm_client)
        pipeline = pipeline or build_pipeline(ingestion_config, llm_client)

    app = FastAPI(title="PropertyBot Middle Layer", version="0.1.0")
    install_error_handlers(app)

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    add_chat_routes(app, chat_service)
    add_ingest_routes(app, pipeline)
    return app


# ---------- CLI ----------
def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the PropertyBot middle-layer server.")
    parser.add_argument("--host", default="0.0.0.0", help="Host interface to bind.")
    parser.add_argument("--port", type=int, default=8010, help="Port to bind.")
    parser.add_argument("--log_dir", default="./logs", help="Directory for application logs.")
    parser.add_argument("--llm_base_url", default="https://api.openai.com/v1", help="OpenAI-compatible API base URL.")
    parser.add_argument("--llm_model", default="gpt-4o", help="Model name for completions.")
    parser.add_argument("--max_tokens", type=int, default=1000, help="Completion token limit.")
    parser.add_argument("--temperature", type=float, default=0.7, help="Sampling temperature.")
    parser.add_argument("--request_timeout", type=int, default=60, help="Timeout for LLM calls (seconds).")
    parser.add_argument("--listings_endpoint", help="Override the listings API URL.")
    parser.add_argument("--max_history_messages", type=int, default=20, help="History messages kept per turn.")
    parser.add_argument("--index_name", default="properties", help="Pinecone index for ingestion.")
    parser.add_argument("--namespace", default="", help="Pinecone namespace for ingestion.")
    parser.add_argument("--batch_size", type=int, default=5, help="Properties per upsert batch.")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    load_dotenv()
    args = parse_args(argv)
    chat_cfg = chat_config_from_args(args)
    ingest_cfg = IngestionConfig(
        llm=chat_cfg.llm,
        listings=chat_cfg.listings,
        vector_store=VectorStoreConfig(index_name=args.index_name, namespace=args.namespace),
        batch_size=args.batch_size,
    )

    app = create_app(args.log_dir, chat_cfg, ingest_cfg)
    logger.info("Starting middle-layer server on %s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()

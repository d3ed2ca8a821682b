from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import structlog
from fastapi import FastAPI

from prospect_workflow import dependencies
from prospect_workflow.adapters import LoggingMessenger, get_stores
from prospect_workflow.agent import LLMExtractionAgent
from prospect_workflow.db import Database
from prospect_workflow.interfaces.protocols import ClientRecordStore
from prospect_workflow.log import configure_logging
from prospect_workflow.routers import emails, health, prospects
from prospect_workflow.settings import DEFAULT_CONFIG_PATH, init_settings
from prospect_workflow.workflow import ConversationWorkflow

logger = structlog.get_logger(__name__)


def create_app(
    workflow: Optional[ConversationWorkflow] = None,
    record_store: Optional[ClientRecordStore] = None,
    *,
    config_path: str | Path = DEFAULT_CONFIG_PATH,
) -> FastAPI:
    """
    Build the HTTP application.

    When ``workflow`` is given the app uses it as-is; otherwise the lifespan
    loads configuration, opens the SQL stores, wires the LLM agent and resumes
    any conversation left over by a previous run.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if workflow is not None:
            dependencies.set_workflow(workflow)
            dependencies.set_record_store(record_store or workflow.record_store)
            try:
                yield
            finally:
                await workflow.shutdown()
                dependencies.set_workflow(None)
                dependencies.set_record_store(None)
            return

        settings = init_settings(config_path)
        configure_logging(settings.log_level, settings.log_json)

        database = Database(settings.database_url)
        await database.init_db()
        state_store, client_store = get_stores("sql", database)
        built = ConversationWorkflow.from_settings(
            settings,
            LLMExtractionAgent.from_settings(settings),
            LoggingMessenger(),
            client_store,
            state_store,
        )
        dependencies.set_workflow(built)
        dependencies.set_record_store(client_store)

        resumed = await built.recover()
        logger.info("Prospect workflow started", resumed=resumed)
        try:
            yield
        finally:
            await built.shutdown()
            await database.dispose()
            dependencies.set_workflow(None)
            dependencies.set_record_store(None)

    app = FastAPI(title="Prospect Workflow", lifespan=lifespan)
    app.include_router(emails.router)
    app.include_router(prospects.router)
    app.include_router(health.router)
    return app


__all__ = ["create_app"]

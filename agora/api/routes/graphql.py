"""
agora.api.routes.graphql — GraphQL endpoint
============================================
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from agora.api.deps import get_chain_client, get_config, get_dispatcher, get_engine, get_optional_user
from agora.api.schema import GraphQLContext, schema
from agora.config import AgoraConfig
from agora.services.chain_client import ChainClient
from agora.services.notification_dispatcher import NotificationDispatcher

router = APIRouter(tags=["graphql"])
logger = logging.getLogger(__name__)


class GraphQLRequest(BaseModel):
    query: str
    variables: dict[str, Any] | None = None
    operation_name: str | None = Field(None, alias="operationName")


@router.post("/graphql")
def graphql(
    body: GraphQLRequest,
    user: dict | None = Depends(get_optional_user),
    engine: Engine = Depends(get_engine),
    chain: ChainClient = Depends(get_chain_client),
    cfg: AgoraConfig = Depends(get_config),
    dispatcher: NotificationDispatcher | None = Depends(get_dispatcher),
):
    context = GraphQLContext(
        engine=engine,
        chain=chain,
        config=cfg,
        address=user["address"] if user else None,
        dispatcher=dispatcher,
    )
    result = schema.execute(
        body.query,
        variable_values=body.variables,
        operation_name=body.operation_name,
        context_value=context,
    )

    payload: dict[str, Any] = {"data": result.data}
    if result.errors:
        for error in result.errors:
            if error.original_error is not None:
                logger.warning("GraphQL resolver error: %s", error.original_error)
        payload["errors"] = [error.formatted for error in result.errors]
    # Errors before execution (syntax, validation) leave no data at all.
    status_code = 400 if result.errors and result.data is None else 200
    return JSONResponse(payload, status_code=status_code)

"""Phase 2: one schema-constrained call, no tools, no partial results."""

from __future__ import annotations

import logging
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from lexdraft.agents.research import AgentModel
from lexdraft.errors import ExtractionFailure

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

NO_OUTPUT_MESSAGE = "No structured output generated."


async def extract_structured(
    model: AgentModel,
    *,
    prompt: str,
    output_model: type[ModelT],
    schema_name: str,
    system: str = "",
) -> ModelT:
    payload = await model.extract(
        prompt=prompt,
        schema_name=schema_name,
        schema=output_model.model_json_schema(),
        system=system,
    )
    if not payload:
        logger.error("Structured extraction returned nothing schema=%s", schema_name)
        raise ExtractionFailure(NO_OUTPUT_MESSAGE)

    try:
        return output_model.model_validate(payload)
    except ValidationError as exc:
        logger.error("Structured output failed validation schema=%s errors=%s", schema_name, exc.error_count())
        raise ExtractionFailure(f"Structured output for {schema_name} did not match the schema: {exc}") from exc

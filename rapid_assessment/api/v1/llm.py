# rapid_assessment/api/v1/llm.py
from fastapi import APIRouter, Depends

from rapid_assessment.api.v1.auth import get_current_user
from rapid_assessment.core.exceptions import InvalidRequestError
from rapid_assessment.models.llm import ACCESS_KEY_ID_PATTERN, BedrockConnectionResult, BedrockConnectionTest
from rapid_assessment.services.llm_adapters import bedrock_adapter

router = APIRouter(prefix="/llm", tags=["llm"], dependencies=[Depends(get_current_user)])

@router.post("/test", response_model=BedrockConnectionResult)
async def bedrock_connection_route(payload: BedrockConnectionTest):
    if bool(payload.access_key_id) != bool(payload.secret_access_key):
        raise InvalidRequestError("Missing required AWS credentials", code="MISSING_AWS_CREDENTIALS")
    if payload.access_key_id and not ACCESS_KEY_ID_PATTERN.match(payload.access_key_id):
        raise InvalidRequestError("Invalid AWS Access Key ID format", code="INVALID_ACCESS_KEY_ID")
    return await bedrock_adapter.check_connection(
        region=payload.region,
        access_key_id=payload.access_key_id,
        secret_access_key=payload.secret_access_key,
        model_id=payload.model_id,
    )

# rapid_assessment/services/llm_adapters/bedrock_adapter.py
import asyncio
import concurrent.futures
import json
import logging
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, EndpointConnectionError, NoCredentialsError

from rapid_assessment.core.config import settings
from rapid_assessment.core.exceptions import ReportGenerationError

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "bedrock-2023-05-31"

# connection checks send a tiny prompt to the cheapest model
TEST_PROMPT = "Hello"
TEST_MAX_TOKENS = 10

_thread_pool = concurrent.futures.ThreadPoolExecutor(max_workers=3)

# botocore error code -> (status, message)
_ERROR_MAP = {
    "AccessDeniedException": (403, "Access denied. Please check your AWS permissions for Bedrock service"),
    "AccessDenied": (403, "Access denied. Please check your AWS permissions for Bedrock service"),
    "UnauthorizedOperation": (401, "Invalid AWS credentials or insufficient permissions"),
    "UnrecognizedClientException": (401, "Invalid AWS credentials or insufficient permissions"),
    "InvalidUserID.NotFound": (401, "Invalid AWS credentials or insufficient permissions"),
    "ModelNotReadyException": (400, "Bedrock model is not available in the selected region"),
    "ValidationException": (400, "Bedrock rejected the request"),
    "ThrottlingException": (429, "Request throttled. Please try again later"),
}


def _get_client(region: Optional[str] = None, access_key_id: Optional[str] = None,
                secret_access_key: Optional[str] = None):
    """Explicit credentials win over configured ones; with neither, boto3 resolves its default chain."""
    client_kwargs = {"region_name": region or settings.AWS_REGION}
    if not (access_key_id and secret_access_key):
        access_key_id, secret_access_key = settings.AWS_ACCESS_KEY_ID, settings.AWS_SECRET_ACCESS_KEY
    if access_key_id and secret_access_key:
        client_kwargs["aws_access_key_id"] = access_key_id
        client_kwargs["aws_secret_access_key"] = secret_access_key
    return boto3.client("bedrock-runtime", **client_kwargs)


def build_request_body(prompt: str, max_tokens: int) -> dict:
    return {
        "anthropic_version": ANTHROPIC_VERSION,
        "max_tokens": max_tokens,
        "messages": [{"role": "user", "content": prompt}],
    }


def map_client_error(exc: ClientError) -> ReportGenerationError:
    code = exc.response.get("Error", {}).get("Code", "")
    status, message = _ERROR_MAP.get(code, (500, None))
    if message is None:
        message = exc.response.get("Error", {}).get("Message") or "Unknown error occurred while generating report"
    return ReportGenerationError(message, status_code=status, code=code or "BEDROCK_ERROR")


def map_botocore_error(exc: BotoCoreError) -> ReportGenerationError:
    if isinstance(exc, EndpointConnectionError):
        return ReportGenerationError("Network error. Please check your internet connection",
                                     status_code=503, code="BEDROCK_UNREACHABLE")
    if isinstance(exc, NoCredentialsError):
        return ReportGenerationError("Invalid AWS credentials or insufficient permissions",
                                     status_code=401, code="NO_CREDENTIALS")
    return ReportGenerationError(str(exc), status_code=500, code="BEDROCK_ERROR")


def _invoke_model(client, model_id: str, prompt: str, max_tokens: int) -> dict:
    return client.invoke_model(
        modelId=model_id,
        contentType="application/json",
        accept="application/json",
        body=json.dumps(build_request_body(prompt, max_tokens)),
    )


def _invoke(prompt: str, max_tokens: int) -> dict:
    """
    Blocking Bedrock call. Run in threadpool for async use.
    """
    resp = _invoke_model(_get_client(), settings.BEDROCK_MODEL_ID, prompt, max_tokens)
    payload = json.loads(resp["body"].read())
    content = payload.get("content") or []
    if not content or "text" not in content[0]:
        raise ReportGenerationError("Failed to generate report content", status_code=500, code="EMPTY_MODEL_RESPONSE")
    return {"text": content[0]["text"], "model": settings.BEDROCK_MODEL_ID}


def _ping(region: str, access_key_id: Optional[str], secret_access_key: Optional[str], model_id: str) -> bool:
    client = _get_client(region, access_key_id, secret_access_key)
    resp = _invoke_model(client, model_id, TEST_PROMPT, TEST_MAX_TOKENS)
    return resp.get("body") is not None


async def _in_thread(fn, *args):
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(_thread_pool, fn, *args)
    except ClientError as exc:
        logger.error("Bedrock invoke_model failed: %s", exc)
        raise map_client_error(exc) from exc
    except BotoCoreError as exc:
        logger.error("Bedrock client error: %s", exc)
        raise map_botocore_error(exc) from exc


async def complete(prompt: str, max_tokens: int = 4000) -> dict:
    return await _in_thread(_invoke, prompt, max_tokens)


async def check_connection(region: Optional[str] = None, access_key_id: Optional[str] = None,
                           secret_access_key: Optional[str] = None, model_id: Optional[str] = None) -> dict:
    """Invoke the test model once with a minimal prompt to confirm credentials and region."""
    region = region or settings.AWS_REGION
    model_id = model_id or settings.BEDROCK_TEST_MODEL_ID
    if not await _in_thread(_ping, region, access_key_id, secret_access_key, model_id):
        raise ReportGenerationError("Unexpected response from AWS Bedrock", status_code=500,
                                    code="EMPTY_MODEL_RESPONSE")
    logger.info("Bedrock connection check passed (region=%s, model=%s)", region, model_id)
    return {
        "success": True,
        "message": "Successfully connected to AWS Bedrock",
        "region": region,
        "model_tested": model_id,
    }

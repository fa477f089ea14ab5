# rapid_assessment/models/llm.py
import re
from typing import Optional

from pydantic import BaseModel

ACCESS_KEY_ID_PATTERN = re.compile(r"^AKIA[0-9A-Z]{16}$")


class BedrockConnectionTest(BaseModel):
    # omitted credentials fall back to the server's AWS settings
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    region: Optional[str] = None
    model_id: Optional[str] = None


class BedrockConnectionResult(BaseModel):
    success: bool
    message: str
    region: str
    model_tested: str

import asyncio
import re

MODEL_NAME = "mock-report-model"

_COMPANY_RE = re.compile(r"Company Name:\s*(.+)")


async def complete(prompt: str, max_tokens: int = 4000) -> dict:
    # deterministic markdown report derived from the prompt
    await asyncio.sleep(0)  # yield
    match = _COMPANY_RE.search(prompt or "")
    company = match.group(1).strip() if match else "the organization"
    text = "\n".join([
        "# Executive Summary",
        f"This report summarizes the assessment responses provided by {company}.",
        "",
        "## Current State Analysis",
        "- Responses were captured for every required question.",
        "",
        "## Recommendations",
        "- **Prioritize** the highest-value use case.",
        "- Establish data governance before scaling.",
        "",
        "## Risk Assessment",
        "* Data quality gaps may delay delivery.",
        "",
        "## Implementation Roadmap",
        "### Phase 1",
        "Pilot with a *limited* user group.",
        "",
        "## Next Steps",
        "- Schedule a follow-up workshop.",
    ])
    return {"text": text, "model": MODEL_NAME}

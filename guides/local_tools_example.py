"""Run the competitor analysis workflow with a local Python tool.

Uses pydantic-ai's ``test`` model so it runs offline:

    python guides/local_tools_example.py "who outranks us for trail shoes?"
"""

import asyncio
import sys
from pathlib import Path

from stepwright import WorkflowCatalog, WorkflowExecutor, build_handlers
from stepwright.config import StepwrightConfig
from stepwright.transcript import format_transcript, render_transcript

WORKFLOWS = Path(__file__).parent / "workflows"


async def search_competitors(domain: str, query: str) -> dict:
    """Pretend search returning competitor domains for ``query``."""
    await asyncio.sleep(0.1)
    return {"domain": domain, "query": query, "competitors": ["rival.com", "other.com"]}


async def main():
    query = sys.argv[1] if len(sys.argv) > 1 else "who outranks us for trail shoes?"

    config = StepwrightConfig()
    config.llm.default_model = "test"
    handlers = build_handlers(config, tools={"search_competitors": search_competitors})
    executor = WorkflowExecutor(WorkflowCatalog.from_paths([WORKFLOWS]), handlers)

    execution = await executor.execute(
        "competitor-analysis",
        query,
        user_id="guide",
        parameters={"domain": "example.com"},
    )
    print(render_transcript(format_transcript(execution)))


if __name__ == "__main__":
    asyncio.run(main())

"""
Patch Sandbox: FastAPI entry point.

Receives a patch plan plus the scenario it is meant to fix, runs it through
the security gate and the deterministic sandbox, then returns the result
(and, for /simulate, the meter events it triggers).

Start with:
    uvicorn patchsandbox.main:app --reload --port 8000
"""
import logging
from fastapi import FastAPI, HTTPException
from patchsandbox.config import LOG_LEVEL
from patchsandbox.pipeline import PatchSandbox
from patchsandbox.schemas import (
    LintRequest,
    LintResult,
    SandboxExecutionResult,
    SimulationRequest,
    SimulationResponse,
)

logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s  %(name)s  %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Patch Sandbox", version="1.0.0")
sandbox = PatchSandbox()


@app.post("/validate", response_model=SandboxExecutionResult)
async def validate(request: SimulationRequest):
    """
    Security gate + simulation:
      1. Decompose the diff (policy errors come back as a failed result)
      2. Detect, score and accept or reject
      3. Simulate accepted patches deterministically
    A rejected patch is a normal 200 response with success=false.
    """
    logger.info(f"Validate: scenario '{request.context.scenario_id}'")
    try:
        return sandbox.validate(request.patch, request.context)
    except Exception as e:
        logger.error(f"Sandbox error: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/simulate", response_model=SimulationResponse)
async def simulate(request: SimulationRequest):
    logger.info(f"Simulate: scenario '{request.context.scenario_id}'")
    try:
        result, outcome = sandbox.simulate(request.patch, request.context)
        return SimulationResponse(result=result, events=outcome)
    except Exception as e:
        logger.error(f"Sandbox error: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/lint", response_model=LintResult)
async def lint(request: LintRequest):
    try:
        return sandbox.lint(request.patch, request.rules)
    except ValueError as e:
        logger.error(f"Lint failed: {e}")
        raise HTTPException(status_code=422, detail=str(e))


@app.get("/cache")
async def cache_stats():
    return sandbox.cache_stats()


@app.delete("/cache")
async def clear_cache():
    sandbox.clear_cache()
    return {"status": "cleared"}


@app.get("/health")
async def health():
    return {"status": "ok", "service": "patch-sandbox"}

"""FastAPI web adapter for the Visual Von-Neumann Machine."""

import logging

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import Optional, Union

from vvm import assemble, run_program, RunOptions
from vvm.examples import EXAMPLES
from vvm.isa import MEMORY_SIZE, WORD_MIN, WORD_MAX


# Constants
MAX_PROGRAM_SIZE = 50 * 1024  # 50KB

logger = logging.getLogger(__name__)


# Request/Response models
class RunOptionsModel(BaseModel):
    memory_size: int = Field(default=MEMORY_SIZE, ge=1, le=MEMORY_SIZE)
    max_cycles: int = Field(default=10000, ge=1, le=1000000)
    trace: bool = True
    trace_events: bool = False
    trace_watch: list[int] = Field(default_factory=list)
    initial_memory: dict[str, int] = Field(default_factory=dict)


class AssembleRequest(BaseModel):
    program: str


class RunRequest(BaseModel):
    program: str
    inputs: list[Union[int, str]] = Field(default_factory=list)
    options: Optional[RunOptionsModel] = None


class AssembleResponse(BaseModel):
    ok: bool
    entries: list[dict]
    errors: list[dict]
    memory: list[int]


class RunResponse(BaseModel):
    status: str
    run_state: str
    outputs: list[int]
    cycles_executed: int
    final_state: dict
    memory: list[int]
    trace_watch: list[int]
    trace: list[dict]
    messages: list[dict]
    warnings: list[dict]
    assembly_errors: list[dict]
    events: Optional[list[dict]] = None
    error: Optional[dict] = None


# Create FastAPI app
app = FastAPI(
    title="Visual Von-Neumann Machine",
    description="Web API for assembling and running VVM decimal programs",
    version="0.1.0",
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _check_program_size(program: str) -> None:
    if len(program) > MAX_PROGRAM_SIZE:
        raise HTTPException(
            status_code=400,
            detail=f"Program size exceeds limit of {MAX_PROGRAM_SIZE} bytes",
        )


@app.post("/api/assemble", response_model=AssembleResponse)
async def assemble_code(request: AssembleRequest):
    """Assemble a program without running it."""
    _check_program_size(request.program)
    result = assemble(request.program)
    return {
        "ok": result.ok,
        "entries": [e.to_dict() for e in result.entries],
        "errors": [e.to_error_info().to_dict() for e in result.errors],
        "memory": result.memory_image(),
    }


@app.post("/api/run", response_model=RunResponse, response_model_exclude_none=True)
async def run_code(request: RunRequest):
    """Execute a VVM program to completion.

    Args:
        request: Program code, input values, and execution options

    Returns:
        Execution result with outputs, trace, and final state
    """
    _check_program_size(request.program)

    # Build options
    opts = request.options or RunOptionsModel()

    # Convert initial_memory keys from string to int
    initial_memory = {}
    for k, v in opts.initial_memory.items():
        try:
            addr = int(k)
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid memory address key: {k}",
            )
        if not 0 <= addr < opts.memory_size or not WORD_MIN <= v <= WORD_MAX:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid initial memory cell: {k}={v}",
            )
        initial_memory[addr] = v

    run_opts = RunOptions(
        memory_size=opts.memory_size,
        max_cycles=opts.max_cycles,
        trace=opts.trace,
        trace_events=opts.trace_events,
        trace_watch=opts.trace_watch,
        initial_memory=initial_memory,
    )

    # Execute program
    result = run_program(
        program_text=request.program,
        inputs=request.inputs,
        options=run_opts,
    )
    logger.info(
        "Run finished: %s after %d cycles", result.run_state, result.cycles_executed
    )

    return result.to_dict()


@app.get("/api/examples")
async def list_examples():
    """Return the bundled sample programs."""
    return EXAMPLES


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=8080)

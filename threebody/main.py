import logging
from typing import Any, Dict, List

from fastapi import Body as RequestBody
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .configuration import export_configuration, import_configuration
from .errors import ConfigurationError, UnknownPresetError
from .logging_config import setup_logging
from .physics import multi_step
from .presets import PRESETS, get_preset
from .schemas import (
    ConfigurationErrorResponse,
    PresetSummary,
    StepRequest,
    StepResponse,
    body_models,
)
from .session import SimulationSession
from .settings import CORS_ORIGINS, TICK_HZ
from .transport import WebSocketConnection

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="threebody")
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request, exc: ConfigurationError):
    body_number = exc.body_index + 1 if exc.body_index is not None else None
    payload = ConfigurationErrorResponse(detail=str(exc), body=body_number, field=exc.field)
    return JSONResponse(status_code=422, content=payload.model_dump())


@app.get("/api/presets", response_model=List[PresetSummary])
def list_presets():
    return [preset.summary() for preset in PRESETS.values()]


@app.get("/api/presets/{preset_id}")
def preset_configuration(preset_id: str) -> Dict[str, Any]:
    try:
        preset = get_preset(preset_id)
    except UnknownPresetError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return export_configuration(preset.configuration())


@app.post("/api/step", response_model=StepResponse)
def step_bodies(req: StepRequest):
    """
    Stateless stepping: advance the posted bodies by ``ticks`` cadence ticks
    and report how many RK4 sub-steps that took.
    """
    bodies = tuple(body.to_body() for body in req.bodies)
    iterations = 0

    def count() -> None:
        nonlocal iterations
        iterations += 1

    for _ in range(req.ticks):
        bodies = multi_step(bodies, req.timeSpeed, on_sub_step=count)
    return {"bodies": body_models(bodies), "iterations": iterations}


@app.post("/api/config/import")
def import_config(payload: Dict[str, Any] = RequestBody(...)) -> Dict[str, Any]:
    """Validate a configuration document and echo it back normalised."""
    config = import_configuration(payload)
    return export_configuration(config)


@app.websocket("/ws")
async def simulation_socket(websocket: WebSocket):
    await websocket.accept()
    logger.info("Simulation session opened")
    connection = WebSocketConnection(
        websocket.send_text,
        websocket.receive_text,
        (WebSocketDisconnect, RuntimeError, OSError),
    )
    session = SimulationSession(connection, tick_hz=TICK_HZ)
    await session.serve()

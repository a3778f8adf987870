from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ..sim.core.config import SimulationConfig
from ..sim.core.world import World
from .headless import load_scenario

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueuedSnapshot:
    tick: int
    payload: str


class SnapshotBuffer:
    """Serialized frames kept until an observer acknowledges their tick."""

    def __init__(self) -> None:
        self._frames: deque[QueuedSnapshot] = deque()
        self._lock = asyncio.Lock()

    async def push(self, frame: QueuedSnapshot) -> None:
        async with self._lock:
            self._frames.append(frame)

    async def acknowledge(self, tick: int) -> None:
        async with self._lock:
            while self._frames and self._frames[0].tick <= tick:
                self._frames.popleft()

    async def after(self, tick: int) -> List[QueuedSnapshot]:
        async with self._lock:
            return [frame for frame in self._frames if frame.tick > tick]

    async def clear(self) -> None:
        async with self._lock:
            self._frames.clear()


class SimulationController:
    """Steps one ``World`` at its tick rate and streams frames to observers."""

    def __init__(self, config: SimulationConfig, broadcast_interval: int = 1):
        self.config = config
        self.world = World(config)
        self.broadcast_interval = max(1, broadcast_interval)
        self.buffer = SnapshotBuffer()
        # observer -> last tick delivered to it
        self.observers: Dict[WebSocket, int] = {}
        self._world_lock = asyncio.Lock()
        self._ticker: asyncio.Task | None = None

    def status(self) -> Dict[str, Any]:
        return {
            "config_id": self.config.id,
            "running": self.world.running,
            "tick": self.world.tick_count,
            "population": self.world.population,
        }

    def frame(self) -> QueuedSnapshot:
        snapshot = self.world.snapshot()
        body = {
            **snapshot.to_dict(),
            "metrics": asdict(self.world.metrics()),
            "states": self.world.state_distribution(),
        }
        return QueuedSnapshot(snapshot.tick, json.dumps({"type": "snapshot", "tick": snapshot.tick, "payload": body}))

    async def start(self) -> None:
        if self._ticker is None:
            self._ticker = asyncio.create_task(self._run())
        self.world.start()

    async def stop(self) -> None:
        self.world.pause()

    async def reset(self) -> None:
        async with self._world_lock:
            self.world.reset()
        await self.buffer.clear()
        self.observers = dict.fromkeys(self.observers, -1)
        logger.info("Simulation %r reset", self.config.id)
        await self.publish()

    async def publish(self) -> None:
        await self.buffer.push(self.frame())
        for websocket in list(self.observers):
            try:
                await self.flush(websocket)
            except WebSocketDisconnect:
                self.observers.pop(websocket, None)

    async def flush(self, websocket: WebSocket) -> None:
        for frame in await self.buffer.after(self.observers.get(websocket, -1)):
            await websocket.send_text(frame.payload)
            self.observers[websocket] = frame.tick

    async def handle_message(self, message: str) -> None:
        try:
            payload = json.loads(message)
        except json.JSONDecodeError:
            logger.debug("Ignoring non-JSON observer message")
            return
        if isinstance(payload, dict) and payload.get("type") == "ack" and isinstance(payload.get("tick"), int):
            await self.buffer.acknowledge(payload["tick"])

    async def _run(self) -> None:
        interval = 1.0 / max(1, self.config.tick_rate)
        while True:
            await asyncio.sleep(interval)
            if not self.world.running:
                continue
            async with self._world_lock:
                self.world.tick(1.0)
            if self.world.tick_count % self.broadcast_interval == 0:
                await self.publish()


app = FastAPI(title="Swarmlab Observation Server")
controller = SimulationController(load_scenario(None))

_CONTROL_ACTIONS = {
    "start": SimulationController.start,
    "stop": SimulationController.stop,
    "reset": SimulationController.reset,
}


@app.on_event("startup")
async def _startup() -> None:
    await controller.start()


@app.get("/api/status")
async def status() -> JSONResponse:
    return JSONResponse(controller.status())


@app.get("/api/states")
async def states() -> JSONResponse:
    return JSONResponse(controller.world.state_distribution())


@app.get("/api/metrics")
async def metrics() -> JSONResponse:
    return JSONResponse(asdict(controller.world.metrics()))


@app.post("/api/control/{action}")
async def control(action: str) -> JSONResponse:
    handler = _CONTROL_ACTIONS.get(action)
    if handler is None:
        raise HTTPException(status_code=404, detail=f"unknown action {action!r}")
    await handler(controller)
    return JSONResponse(controller.status())


@app.websocket("/ws")
async def observe(websocket: WebSocket) -> None:
    await websocket.accept()
    controller.observers[websocket] = -1
    await controller.flush(websocket)
    try:
        while True:
            await controller.handle_message(await websocket.receive_text())
    except WebSocketDisconnect:
        controller.observers.pop(websocket, None)


__all__ = ["app", "controller"]

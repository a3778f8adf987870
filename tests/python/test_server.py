import asyncio
import json

from fastapi.testclient import TestClient

from swarmlab.app import server
from swarmlab.app.server import QueuedSnapshot, SimulationController, SnapshotBuffer
from swarmlab.sim.core.config import load_config

SCENARIO = {
    "id": "served",
    "initial_count": 5,
    "species": [{"id": "s", "initial_state": "a", "states": {"a": {}, "b": {}}}],
}


class RecordingSocket:
    def __init__(self):
        self.sent = []

    async def send_text(self, text):
        self.sent.append(json.loads(text)["tick"])


def _ticks(frames):
    return [frame.tick for frame in frames]


def test_snapshot_buffer_drops_acknowledged_frames() -> None:
    async def exercise() -> None:
        buffer = SnapshotBuffer()
        for tick in (1, 2, 3):
            await buffer.push(QueuedSnapshot(tick, "{}"))
        await buffer.acknowledge(2)
        assert _ticks(await buffer.after(-1)) == [3]
        assert _ticks(await buffer.after(3)) == []

    asyncio.run(exercise())


def test_publish_queues_frames_until_ack_message() -> None:
    controller = SimulationController(load_config(SCENARIO))

    async def exercise() -> None:
        controller.world.start()
        controller.world.tick()
        await controller.publish()
        controller.world.tick()
        await controller.publish()
        assert _ticks(await controller.buffer.after(-1)) == [1, 2]

        await controller.handle_message("not json")
        await controller.handle_message(json.dumps({"type": "ack", "tick": "1"}))
        assert _ticks(await controller.buffer.after(-1)) == [1, 2]

        await controller.handle_message(json.dumps({"type": "ack", "tick": 1}))
        assert _ticks(await controller.buffer.after(-1)) == [2]

    asyncio.run(exercise())


def test_observers_receive_each_frame_once() -> None:
    controller = SimulationController(load_config(SCENARIO))
    socket = RecordingSocket()

    async def exercise() -> None:
        controller.observers[socket] = -1
        controller.world.start()
        for _ in range(2):
            controller.world.tick()
            await controller.publish()
        await controller.flush(socket)

    asyncio.run(exercise())
    assert socket.sent == [1, 2]
    assert controller.observers[socket] == 2


def test_frame_carries_agents_metrics_and_states() -> None:
    controller = SimulationController(load_config(SCENARIO))
    frame = controller.frame()
    payload = json.loads(frame.payload)

    assert frame.tick == 0
    assert payload["type"] == "snapshot"
    assert payload["tick"] == 0
    assert len(payload["payload"]["agents"]) == 5
    assert set(payload["payload"]["agents"][0]) == {"id", "x", "y", "state", "vx", "vy"}
    assert payload["payload"]["states"] == {"a": 5}
    assert "complexity" in payload["payload"]["metrics"]


def test_reset_clears_queue_and_republishes() -> None:
    controller = SimulationController(load_config(SCENARIO))

    async def exercise() -> None:
        controller.world.start()
        for _ in range(3):
            controller.world.tick()
            await controller.publish()
        await controller.reset()
        assert _ticks(await controller.buffer.after(-1)) == [0]
        assert not controller.world.running

    asyncio.run(exercise())


def test_http_endpoints(monkeypatch) -> None:
    controller = SimulationController(load_config(SCENARIO))
    monkeypatch.setattr(server, "controller", controller)
    client = TestClient(server.app)

    status = client.get("/api/status").json()
    assert status == {"config_id": "served", "running": False, "tick": 0, "population": 5}
    assert client.get("/api/states").json() == {"a": 5}
    assert set(client.get("/api/metrics").json()) == {
        "clustering",
        "movement",
        "state_changes",
        "diversity",
        "stability",
        "complexity",
    }

    assert client.post("/api/control/stop").json()["running"] is False
    assert client.post("/api/control/reset").json() == status
    assert client.post("/api/control/rewind").status_code == 404

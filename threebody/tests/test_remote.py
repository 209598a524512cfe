import asyncio
import json
from contextlib import asynccontextmanager

import pytest

from threebody.body import bodies_to_dicts
from threebody.client import connect_websocket, remote_stepper
from threebody.errors import TransportClosed, TransportError
from threebody.physics import SUB_STEPS, multi_step
from threebody.presets import get_preset
from threebody.schemas import BodiesUpdateMessage, body_models
from threebody.session import SimulationSession
from threebody.steppers import LocalStepper, RemoteStepper
from threebody.system import RunState, SimulationDriver
from threebody.transport import ReconnectPolicy, WebSocketConnection, memory_pipe

FAST_RETRY = ReconnectPolicy(initial_delay=0.01, max_delay=0.05)


@asynccontextmanager
async def loopback():
    """Client end of an in-process pipe served by a fresh SimulationSession."""
    client_end, server_end = memory_pipe()
    session = SimulationSession(server_end, tick_hz=200)
    serving = asyncio.create_task(session.serve())
    try:
        yield client_end
    finally:
        await client_end.close()
        await asyncio.gather(serving, return_exceptions=True)


async def wait_until(predicate, timeout=3.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


def _replay(bodies, speed, iterations):
    for _ in range(iterations // SUB_STEPS):
        bodies = multi_step(bodies, speed)
    return bodies


def test_backoff_delays():
    policy = ReconnectPolicy()
    assert [policy.delay(n) for n in range(7)] == [0.5, 1.0, 2.0, 4.0, 8.0, 10.0, 10.0]
    assert ReconnectPolicy(max_attempts=2).delay(2) is None


@pytest.mark.asyncio
async def test_remote_stepping_matches_local_integration(figure_eight):
    stepper = RemoteStepper(loopback, FAST_RETRY)
    driver = SimulationDriver(figure_eight, time_speed=1.5, stepper=stepper)

    driver.start()
    await wait_until(lambda: driver.iterations >= 4 * SUB_STEPS)
    driver.pause()

    assert driver.state is RunState.PAUSED
    assert driver.iterations % SUB_STEPS == 0
    expected = _replay(figure_eight, 1.5, driver.iterations)
    for body, reference in zip(driver.bodies, expected):
        assert body.x == pytest.approx(reference.x, abs=1e-12)
        assert body.vy == pytest.approx(reference.vy, abs=1e-12)

    driver.reset()
    assert driver.iterations == 0
    assert driver.bodies == tuple(figure_eight)
    await stepper.aclose()


@pytest.mark.asyncio
async def test_remote_stepper_reconnects_and_resyncs():
    attempts = []

    @asynccontextmanager
    async def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise TransportError("connection refused")
        async with loopback() as connection:
            yield connection

    butterfly = get_preset("butterfly").bodies
    stepper = RemoteStepper(flaky, FAST_RETRY)
    driver = SimulationDriver(butterfly, stepper=stepper)
    driver.start()

    await asyncio.wait_for(stepper.connected.wait(), timeout=3.0)
    await wait_until(lambda: driver.iterations >= 2 * SUB_STEPS)
    driver.pause()
    assert len(attempts) == 3

    # The session started from its default bodies; the resync must have replaced them.
    expected = _replay(butterfly, 1.0, driver.iterations)
    assert driver.bodies[0].x == pytest.approx(expected[0].x, abs=1e-12)
    await stepper.aclose()


@pytest.mark.asyncio
async def test_remote_stepper_gives_up_after_max_attempts(figure_eight):
    attempts = []

    @asynccontextmanager
    async def refused():
        attempts.append(1)
        raise TransportError("connection refused")
        yield  # pragma: no cover

    stepper = RemoteStepper(refused, ReconnectPolicy(initial_delay=0.01, max_attempts=2))
    driver = SimulationDriver(figure_eight, stepper=stepper)
    driver.start()

    await wait_until(lambda: len(attempts) == 3)
    await asyncio.sleep(0.1)
    assert len(attempts) == 3
    assert driver.is_running
    assert driver.iterations == 0
    await stepper.aclose()


@pytest.mark.asyncio
async def test_switching_modes_keeps_one_stepper(figure_eight):
    local = LocalStepper(tick_hz=200)
    driver = SimulationDriver(figure_eight, stepper=local)
    driver.start()
    await wait_until(lambda: driver.iterations >= 2 * SUB_STEPS)

    remote = RemoteStepper(loopback, FAST_RETRY)
    driver.use_stepper(remote)
    assert local.running is False
    switched_at = driver.iterations

    await wait_until(lambda: driver.iterations >= switched_at + 2 * SUB_STEPS)
    assert driver.is_running

    back = LocalStepper(tick_hz=200)
    driver.use_stepper(back)
    assert back.running is True
    await remote.aclose()

    resumed_at = driver.iterations
    await wait_until(lambda: driver.iterations > resumed_at)
    driver.close()
    assert back.running is False


@pytest.mark.asyncio
async def test_session_answers_malformed_messages():
    client_end, server_end = memory_pipe()
    session = SimulationSession(server_end, tick_hz=200)
    serving = asyncio.create_task(session.serve())

    await client_end.send("not json")
    reply = json.loads(await client_end.recv())
    assert reply["type"] == "error"

    await client_end.send(json.dumps({"type": "set_bodies", "bodies": []}))
    reply = json.loads(await client_end.recv())
    assert reply["type"] == "error"

    await client_end.close()
    await asyncio.wait_for(serving, timeout=1.0)
    assert session.driver.stepper.driver is None


@pytest.mark.asyncio
async def test_websocket_transport_wraps_connection_failures():
    with pytest.raises(TransportError):
        async with connect_websocket("ws://127.0.0.1:1/ws"):
            pass  # pragma: no cover

    stepper = remote_stepper("ws://127.0.0.1:1/ws", ReconnectPolicy(max_attempts=0))
    assert isinstance(stepper, RemoteStepper)
    assert stepper.policy.delay(0) is None


def _snapshot(bodies, iterations, epoch):
    return BodiesUpdateMessage(
        bodies=body_models(bodies), iterations=iterations, epoch=epoch
    ).model_dump_json()


@pytest.mark.asyncio
async def test_snapshots_from_before_a_reset_are_dropped(figure_eight):
    client_end, peer = memory_pipe()

    @asynccontextmanager
    async def connect():
        yield client_end

    async def received(count):
        return [json.loads(await peer.recv()) for _ in range(count)]

    stepper = RemoteStepper(connect, FAST_RETRY)
    driver = SimulationDriver(figure_eight, stepper=stepper)
    driver.start()
    resync = await asyncio.wait_for(received(3), timeout=3.0)
    assert [m["type"] for m in resync] == ["set_bodies", "set_time_speed", "start"]
    old_epoch = resync[0]["epoch"]

    advanced = multi_step(figure_eight, 1.0)
    await peer.send(_snapshot(advanced, 500, old_epoch))
    await wait_until(lambda: driver.iterations == 500)

    driver.pause()
    driver.reset()
    driver.start()
    control = await asyncio.wait_for(received(4), timeout=3.0)
    assert [m["type"] for m in control] == ["pause", "reset", "set_bodies", "start"]
    epoch = control[1]["epoch"]
    assert epoch == control[2]["epoch"] != old_epoch

    # Computed before the peer saw the reset, delivered after the restart.
    await peer.send(_snapshot(advanced, 505, old_epoch))
    await peer.send(_snapshot(figure_eight, 0, epoch))
    restarted = multi_step(figure_eight, 1.0)
    await peer.send(_snapshot(restarted, 5, epoch))

    await wait_until(lambda: driver.iterations >= 5)
    assert driver.iterations == 5
    assert driver.bodies == tuple(restarted)
    await stepper.aclose()


@pytest.mark.asyncio
async def test_session_rejects_out_of_range_numbers(figure_eight):
    client_end, server_end = memory_pipe()
    session = SimulationSession(server_end, tick_hz=200)
    serving = asyncio.create_task(session.serve())

    bodies = bodies_to_dicts(get_preset("butterfly").bodies)
    bodies[0]["x"] = 10**400
    await client_end.send(json.dumps({"type": "set_bodies", "bodies": bodies}))
    reply = json.loads(await asyncio.wait_for(client_end.recv(), timeout=3.0))
    assert reply["type"] == "error"
    assert not serving.done()
    assert session.driver.bodies == tuple(figure_eight)

    await client_end.close()
    await asyncio.wait_for(serving, timeout=1.0)


@pytest.mark.asyncio
async def test_websocket_connection_maps_closed_errors():
    class Gone(Exception):
        pass

    frames = [b'{"type": "start"}']

    async def send_frame(text):
        raise Gone("socket closed")

    async def recv_frame():
        if frames:
            return frames.pop()
        raise Gone("socket closed")

    connection = WebSocketConnection(send_frame, recv_frame, (Gone,))
    assert await connection.recv() == '{"type": "start"}'
    with pytest.raises(TransportClosed):
        await connection.recv()
    with pytest.raises(TransportClosed):
        await connection.send('{"type": "pause"}')

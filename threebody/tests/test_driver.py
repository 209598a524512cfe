import asyncio

import pytest

from conftest import ManualStepper
from threebody.configuration import Configuration
from threebody.physics import SUB_STEPS, multi_step
from threebody.presets import get_preset
from threebody.steppers import LocalStepper
from threebody.system import RunState, SimulationDriver


def test_driver_starts_idle_with_checkpoint(figure_eight, manual_stepper):
    driver = SimulationDriver(figure_eight, stepper=manual_stepper)
    assert driver.state is RunState.IDLE
    assert driver.checkpoint == tuple(figure_eight)
    assert driver.iterations == 0
    assert driver.tick() is False


def test_tick_advances_and_publishes(figure_eight, manual_stepper):
    driver = SimulationDriver(figure_eight, stepper=manual_stepper)
    updates = []
    driver.subscribe(lambda bodies, iterations: updates.append((bodies, iterations)))

    driver.start()
    assert driver.tick() is True
    assert driver.iterations == SUB_STEPS
    assert updates == [(driver.bodies, SUB_STEPS)]
    assert driver.bodies == multi_step(figure_eight, 1.0)


def test_start_and_pause_are_idempotent(figure_eight, manual_stepper):
    driver = SimulationDriver(figure_eight, stepper=manual_stepper)
    driver.pause()
    assert driver.state is RunState.IDLE

    driver.start()
    driver.start()
    assert [event for event, _ in manual_stepper.log] == ["start"]

    driver.tick()
    bodies = driver.bodies
    driver.pause()
    driver.pause()
    assert driver.state is RunState.PAUSED
    assert driver.bodies == bodies
    assert driver.tick() is False


def test_reset_restores_checkpoint(figure_eight, manual_stepper):
    driver = SimulationDriver(get_preset("butterfly").bodies, stepper=manual_stepper)
    driver.load_bodies(figure_eight)
    driver.start()
    for _ in range(25):
        driver.tick()
    assert driver.bodies != tuple(figure_eight)

    published = []
    driver.subscribe(lambda bodies, iterations: published.append((bodies, iterations)))
    driver.reset()

    assert driver.state is RunState.IDLE
    assert driver.bodies == tuple(figure_eight)
    assert driver.iterations == 0
    assert published == [(tuple(figure_eight), 0)]
    assert manual_stepper.running is False


def test_load_bodies_while_running_keeps_checkpoint(figure_eight, manual_stepper):
    driver = SimulationDriver(figure_eight, stepper=manual_stepper)
    driver.start()
    driver.tick()
    edited = [figure_eight[0].with_state(0.1, 0.2, 0.0, 0.0)] + list(figure_eight[1:])

    driver.load_bodies(edited)
    assert driver.bodies == tuple(edited)
    assert driver.checkpoint == tuple(figure_eight)
    assert driver.iterations == SUB_STEPS

    driver.pause()
    driver.load_bodies(edited)
    assert driver.checkpoint == tuple(edited)


def test_body_count_is_fixed_during_a_run(figure_eight, manual_stepper):
    driver = SimulationDriver(figure_eight, stepper=manual_stepper)
    driver.start()
    with pytest.raises(ValueError):
        driver.load_bodies(figure_eight[:2])


def test_set_checkpoint_leaves_current_state(figure_eight, manual_stepper):
    butterfly = get_preset("butterfly").bodies
    driver = SimulationDriver(figure_eight, stepper=manual_stepper)
    driver.set_checkpoint(butterfly)
    assert driver.bodies == tuple(figure_eight)
    driver.reset()
    assert driver.bodies == butterfly


def test_set_speed_applies_to_next_tick(figure_eight, manual_stepper):
    driver = SimulationDriver(figure_eight, stepper=manual_stepper)
    driver.start()
    driver.tick()
    before = driver.bodies
    driver.set_speed(3.0)
    driver.tick()
    assert driver.bodies == multi_step(before, 3.0)

    for bad in (0.0, -1.0, float("nan"), float("inf")):
        with pytest.raises(ValueError):
            driver.set_speed(bad)
    assert driver.time_speed == 3.0


def test_load_configuration_resets_run(figure_eight, manual_stepper):
    driver = SimulationDriver(figure_eight, stepper=manual_stepper)
    driver.start()
    driver.tick()

    spiral = get_preset("spiral").configuration()
    driver.load_configuration(spiral)

    assert driver.state is RunState.IDLE
    assert driver.iterations == 0
    assert driver.bodies == spiral.bodies
    assert driver.checkpoint == spiral.bodies
    assert driver.time_speed == spiral.time_speed


def test_failing_observer_does_not_block_others(figure_eight, manual_stepper):
    driver = SimulationDriver(figure_eight, stepper=manual_stepper)
    seen = []

    def broken(bodies, iterations):
        raise RuntimeError("display went away")

    driver.subscribe(broken)
    unsubscribe = driver.subscribe(lambda bodies, iterations: seen.append(iterations))
    driver.start()
    driver.tick()
    unsubscribe()
    driver.tick()
    assert seen == [SUB_STEPS]


def test_remote_updates_only_apply_while_running(figure_eight, manual_stepper):
    driver = SimulationDriver(figure_eight, stepper=manual_stepper)
    advanced = multi_step(figure_eight, 1.0)

    assert driver.receive_remote_update(advanced, SUB_STEPS) is False
    assert driver.bodies == tuple(figure_eight)

    driver.start()
    assert driver.receive_remote_update(advanced, SUB_STEPS) is True
    assert driver.bodies == advanced
    assert driver.iterations == SUB_STEPS


def test_switching_steppers_stops_old_before_starting_new(figure_eight):
    log = []
    first = ManualStepper(log)
    second = ManualStepper(log)
    driver = SimulationDriver(figure_eight, stepper=first)
    driver.start()

    driver.use_stepper(second)

    assert log == [("start", first), ("stop", first), ("detach", first), ("start", second)]
    assert first.driver is None
    assert second.driver is driver
    assert driver.is_running


def test_switching_steppers_while_paused_does_not_start(figure_eight):
    log = []
    first = ManualStepper(log)
    second = ManualStepper(log)
    driver = SimulationDriver(figure_eight, stepper=first)
    driver.use_stepper(second)
    assert ("start", second) not in log
    assert driver.state is RunState.IDLE


def test_local_stepper_needs_an_event_loop(figure_eight):
    driver = SimulationDriver(figure_eight, stepper=LocalStepper())
    with pytest.raises(RuntimeError):
        driver.start()
    assert driver.state is RunState.IDLE


def test_configuration_defaults():
    config = Configuration(bodies=get_preset("figure-eight").bodies)
    assert config.time_speed == 1.0
    assert config.trail_length == 100


@pytest.mark.asyncio
async def test_local_stepper_ticks_until_paused(figure_eight):
    driver = SimulationDriver(figure_eight, stepper=LocalStepper(tick_hz=200))
    driver.start()
    await asyncio.sleep(0.1)
    driver.pause()

    iterations = driver.iterations
    assert iterations > 0
    assert iterations % SUB_STEPS == 0
    assert driver.stepper.running is False

    await asyncio.sleep(0.05)
    assert driver.iterations == iterations

    driver.reset()
    assert driver.iterations == 0
    assert driver.bodies == tuple(figure_eight)
    driver.close()


@pytest.mark.asyncio
async def test_local_stepper_error_pauses_the_driver(figure_eight, monkeypatch):
    driver = SimulationDriver(figure_eight, stepper=LocalStepper(tick_hz=200))

    def diverged():
        raise FloatingPointError("state diverged")

    monkeypatch.setattr(driver, "tick", diverged)
    driver.start()
    await asyncio.sleep(0.05)

    assert driver.state is RunState.PAUSED
    assert driver.stepper.running is False
    assert driver.bodies == tuple(figure_eight)
    driver.close()

"""Tests for the execution controller."""

import asyncio

import pytest
from vvm.controller import ExecutionController
from vvm.errors import ControllerBusyError
from vvm.events import (
    CycleAdvanced,
    EventRecorder,
    LineExecuted,
    MemoryRead,
    Message,
    RegisterChanged,
    RunState,
    RunStateChanged,
)
from vvm.instructions import QueueInput
from vvm.examples import EXAMPLES

COUNTDOWN = "LDA 10\nSUB 11\nSTO 10\nBRZ 05\nBR 00\nHLT\n*10\nDAT 3\nDAT 1"


def make_controller(inputs=(), rate=1000.0):
    controller = ExecutionController(rate=rate, input_provider=QueueInput(inputs))
    recorder = EventRecorder()
    controller.bus.subscribe(recorder)
    return controller, recorder


class TestLoading:
    """Program loading."""

    def test_load_writes_memory_image(self):
        controller, _ = make_controller()
        result = controller.load_program("LDA 10\nHLT\n*10\nDAT 005")
        assert result.ok
        assert controller.memory.read(0) == 510
        assert controller.memory.read(10) == 5
        assert controller.program is result
        assert controller.run_state == RunState.READY

    def test_load_with_errors_loads_nothing(self):
        controller, recorder = make_controller()
        result = controller.load_program("OUT\nFOO 5")
        assert not result.ok
        assert controller.program is None
        assert controller.memory.snapshot() == [0] * 100
        errors = [m for m in recorder.of_type(Message) if m.level == "error"]
        assert [m.text for m in errors] == ["Line 2: Unknown instruction 'FOO'"]

    def test_reload_clears_previous_program(self):
        """Stale words from an earlier program never leak into the next one."""
        controller, _ = make_controller()
        controller.load_program("*50\nDAT 9")
        assert controller.memory.read(50) == 9
        controller.load_program("HLT")
        assert controller.memory.read(50) == 0

    def test_reload_is_idempotent(self):
        controller, recorder = make_controller()
        traces = []
        for _ in range(2):
            controller.load_program(COUNTDOWN)
            recorder.clear()
            controller.run_until_stopped(100)
            traces.append((list(recorder.events), controller.memory.snapshot()))
            controller.reset()
        assert traces[0] == traces[1]


class TestStepping:
    """single_step and reset."""

    def test_single_step_runs_one_cycle(self):
        controller, recorder = make_controller()
        controller.load_program("LDA 10\nHLT\n*10\nDAT 005")
        recorder.clear()
        assert controller.single_step() is True
        assert controller.cycle == 1
        assert controller.cpu.ac == 5
        assert recorder.events[0] == CycleAdvanced(1)
        assert LineExecuted(1, 0) in recorder.events
        assert controller.current_line == 1

    def test_halt_transitions_state(self):
        controller, recorder = make_controller()
        controller.load_program("LDA 10\nHLT\n*10\nDAT 005")
        controller.single_step()
        assert controller.single_step() is False
        assert controller.run_state == RunState.HALTED
        assert recorder.events[-1] == RunStateChanged(RunState.HALTED)
        # Terminal: further steps do nothing
        assert controller.single_step() is False
        assert controller.cycle == 2

    def test_error_transitions_state(self):
        controller, _ = make_controller(inputs=[])
        controller.load_program("IN\nHLT")
        controller.single_step()
        assert controller.run_state == RunState.ERRORED
        assert controller.cpu.error.source_line_no == 1

    def test_line_executed_follows_cpu_events(self):
        """LineExecuted comes after the cycle's CPU events and before the state change."""
        controller, recorder = make_controller()
        controller.load_program("HLT")
        recorder.clear()
        controller.single_step()
        assert recorder.events == [
            CycleAdvanced(1),
            RegisterChanged("MAR", 0),
            MemoryRead(0),
            RegisterChanged("MBR", 0),
            RegisterChanged("IR", 0),
            RegisterChanged("PC", 1),
            Message("success", "Program terminated (HALT)", 1),
            LineExecuted(1, 0),
            RunStateChanged(RunState.HALTED),
        ]

    def test_line_executed_follows_branches(self):
        controller, recorder = make_controller()
        controller.load_program("BR 2\nNOP\nHLT")
        controller.run_until_stopped(10)
        lines = [e.source_line_no for e in recorder.of_type(LineExecuted)]
        assert lines == [1, 3]

    def test_run_until_stopped_reports_each_cycle(self):
        controller, _ = make_controller()
        controller.load_program(COUNTDOWN)
        seen = []
        executed = controller.run_until_stopped(100, on_cycle=lambda: seen.append(controller.cycle))
        assert controller.run_state == RunState.HALTED
        assert seen == list(range(1, executed + 1))

    def test_run_until_stopped_honours_limit(self):
        controller, _ = make_controller()
        controller.load_program("BR 0\nHLT")
        assert controller.run_until_stopped(7) == 7
        assert controller.run_state == RunState.READY

    def test_reset_restores_zero_state(self):
        controller, _ = make_controller(inputs=[-5])
        controller.load_program("IN\nSTO 20\nHLT")
        controller.run_until_stopped(10)
        assert controller.memory.read(20) == -5

        controller.reset()
        assert controller.memory.snapshot() == [0] * 100
        assert controller.cpu.get_state() == {
            "pc": 0, "ac": 0, "ir": 0, "mar": 0, "mbr": 0, "z": False, "n": False,
        }
        assert controller.cycle == 0
        assert controller.program is None
        assert controller.current_line is None
        assert controller.run_state == RunState.READY

    def test_reset_after_error(self):
        controller, _ = make_controller()
        controller.load_program("950")
        controller.single_step()
        assert controller.run_state == RunState.ERRORED
        controller.reset()
        assert controller.run_state == RunState.READY
        assert controller.cpu.error is None

    def test_overflow_freezes_machine(self):
        controller, _ = make_controller()
        controller.load_program("LDA 10\nADD 10\nADD 10\nHLT\n*10\nDAT 999")
        controller.run_until_stopped(10)
        assert controller.run_state == RunState.ERRORED
        ac = controller.cpu.ac
        assert controller.single_step() is False
        assert controller.cpu.ac == ac == 999


class TestRate:
    def test_set_rate(self):
        controller, _ = make_controller()
        controller.set_rate(4)
        assert controller.rate == 4.0

    @pytest.mark.parametrize("rate", [0, -1, float("inf"), float("nan")])
    def test_invalid_rate(self, rate):
        controller, _ = make_controller()
        with pytest.raises(ValueError):
            controller.set_rate(rate)


class TestRun:
    """Paced run, pause and re-entrancy."""

    def test_run_to_halt(self):
        controller, recorder = make_controller()
        controller.load_program(COUNTDOWN)
        state = asyncio.run(controller.run())
        assert state == RunState.HALTED
        assert controller.memory.read(10) == 0
        states = [e.state for e in recorder.of_type(RunStateChanged)]
        assert states == [RunState.RUNNING, RunState.HALTED]

    def test_run_on_halted_machine_is_noop(self):
        controller, _ = make_controller()
        controller.load_program("HLT")
        controller.single_step()
        cycles = controller.cycle
        assert asyncio.run(controller.run()) == RunState.HALTED
        assert controller.cycle == cycles

    def test_pause_stops_before_next_cycle(self):
        controller, _ = make_controller(rate=1000.0)

        async def scenario():
            controller.load_program("BR 0\nHLT")
            task = asyncio.create_task(controller.run())
            await asyncio.sleep(0.05)
            controller.pause()
            paused_at = controller.cycle
            state = await task
            return paused_at, state

        paused_at, state = asyncio.run(scenario())
        assert state == RunState.READY
        assert controller.cycle == paused_at
        assert controller.run_state == RunState.READY
        assert not controller.is_running

    def test_pause_wakes_slow_run(self):
        """Pausing a slow run returns without waiting out the interval."""
        controller, _ = make_controller(rate=0.01)

        async def scenario():
            controller.load_program("BR 0\nHLT")
            task = asyncio.create_task(controller.run())
            await asyncio.sleep(0)
            controller.pause()
            return await asyncio.wait_for(task, timeout=5)

        assert asyncio.run(scenario()) == RunState.READY
        assert controller.cycle == 1

    def test_resume_after_pause_keeps_rate(self):
        """Pausing then running again leaves exactly one loop driving cycles."""
        controller, _ = make_controller(rate=20.0)

        async def scenario():
            controller.load_program("BR 0\nHLT")
            first = asyncio.create_task(controller.run())
            await asyncio.sleep(0.01)
            controller.pause()
            second = asyncio.create_task(controller.run())
            await asyncio.sleep(1.0)
            superseded_done = first.done()
            still_running = controller.is_running
            controller.pause()
            await asyncio.gather(first, second)
            return superseded_done, still_running

        superseded_done, still_running = asyncio.run(scenario())
        assert superseded_done
        assert still_running
        # One cycle before the pause, then about 20 per second
        assert controller.cycle <= 25
        assert controller.run_state == RunState.READY
        assert not controller.is_running

    def test_run_is_reentrant_safe(self):
        controller, _ = make_controller(rate=1000.0)

        async def scenario():
            controller.load_program("BR 0\nHLT")
            task = asyncio.create_task(controller.run())
            await asyncio.sleep(0)
            second = await controller.run()
            controller.pause()
            await task
            return second

        assert asyncio.run(scenario()) == RunState.RUNNING

    def test_single_step_while_running_is_refused(self):
        controller, _ = make_controller(rate=1000.0)

        async def scenario():
            controller.load_program("BR 0\nHLT")
            task = asyncio.create_task(controller.run())
            await asyncio.sleep(0)
            try:
                with pytest.raises(ControllerBusyError):
                    controller.single_step()
            finally:
                controller.pause()
                await task

        asyncio.run(scenario())


class TestExamples:
    """The bundled sample programs."""

    def run_example(self, key, inputs=()):
        controller, _ = make_controller(inputs=inputs)
        assert controller.load_program(EXAMPLES[key]["source"]).ok
        controller.run_until_stopped(1000)
        return controller

    def test_sum(self):
        controller = self.run_example("sum", inputs=[6])
        assert controller.run_state == RunState.HALTED
        assert controller.cpu.io.outputs == [5]

    def test_fibonacci(self):
        controller = self.run_example("fibonacci")
        assert controller.cpu.io.outputs == [1]
        assert [controller.memory.read(a) for a in (20, 21, 22)] == [0, 1, 1]

    @pytest.mark.parametrize("first,second,expected", [(7, 5, 7), (3, 8, 8), (4, 4, 4)])
    def test_max(self, first, second, expected):
        controller = self.run_example("max", inputs=[first, second])
        assert controller.run_state == RunState.HALTED
        assert controller.cpu.io.outputs == [expected]

    def test_loop(self):
        controller = self.run_example("loop")
        assert controller.cpu.io.outputs == [1, 2, 3, 4, 5]
        assert controller.cycle == 35
        assert controller.cpu.warnings == []


def test_registers_published_on_reset():
    controller, recorder = make_controller()
    controller.reset()
    names = [e.name for e in recorder.of_type(RegisterChanged)]
    assert names == ["PC", "AC", "IR", "MAR", "MBR"]

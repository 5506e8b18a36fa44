"""
Tests for the session state machine.

Tests:
- Solve and debug flows and their events
- Empty queues and degraded solutions
- Reset and new captures while work is in flight
- Quota exhaustion reporting
"""

import asyncio

from conftest import EXTRACTION_JSON, block_forever, event_names, png_bytes, wait_for_state
from models.events import (
    DebugError,
    DebugSuccess,
    InitialStart,
    ModelUsed,
    NoCaptures,
    ProblemExtracted,
    SolutionError,
    SolutionSuccess,
)
from models.session_models import QueueKind, SessionState
from services.inference.errors import CANCELED_MESSAGE


class TestSolveFlow:
    """Queue -> Extracting -> Solving -> Solved."""

    def test_successful_solve(self, controller, bus, solver):
        subscription = bus.subscribe()

        async def scenario():
            await controller.capture_primary(png_bytes())
            await controller.process()

        asyncio.run(scenario())

        events = subscription.drain()
        assert event_names(events) == [
            "initial-start",
            "model-used",
            "problem-extracted",
            "model-used",
            "solution-success",
        ]
        assert events[0] == InitialStart()
        assert events[1] == ModelUsed(model_id="gpt-5")
        success = events[-1]
        assert isinstance(success, SolutionSuccess)
        assert success.time_complexity == "O(n)"
        assert success.short_answer == "Use a hash map of seen values."

        assert controller.state is SessionState.SOLVED
        assert controller.session.problem.solution.startswith("def two_sum")
        assert controller.session.last_used_model == "gpt-5"
        roles = [turn.role for turn in controller.memory.turns()]
        assert roles == ["user", "assistant"]

    def test_process_without_captures(self, controller, bus, solver):
        """An empty primary queue emits NoCaptures and makes no provider call."""
        subscription = bus.subscribe()

        asyncio.run(controller.process())

        assert subscription.drain() == [NoCaptures()]
        assert controller.state is SessionState.QUEUE
        assert solver.extract.calls == []

    def test_degraded_solution_still_solves(self, controller, bus, solver):
        """A solution that fails validation yields a degraded record."""
        raw = "Here is my answer without any JSON at all."
        solver.solve.default = raw
        subscription = bus.subscribe()

        async def scenario():
            await controller.capture_primary(png_bytes())
            await controller.process()

        asyncio.run(scenario())

        success = [event for event in subscription.drain() if isinstance(event, SolutionSuccess)]
        assert len(success) == 1
        assert controller.state is SessionState.SOLVED
        assert success[0].code.startswith("#")
        assert raw in success[0].thoughts

    def test_degraded_code_comment_follows_language(self, controller, bus, solver, settings):
        settings.code_language = "java"
        solver.solve.default = "{not json"
        subscription = bus.subscribe()

        async def scenario():
            await controller.capture_primary(png_bytes())
            await controller.process()

        asyncio.run(scenario())

        success = [event for event in subscription.drain() if isinstance(event, SolutionSuccess)]
        assert success[0].code.startswith("//")

    def test_extraction_falls_back_to_raw_text(self, controller, bus, solver):
        solver.extract.default = "Find the longest palindrome in a string."
        subscription = bus.subscribe()

        async def scenario():
            await controller.capture_primary(png_bytes())
            await controller.process()

        asyncio.run(scenario())

        extracted = [event for event in subscription.drain() if isinstance(event, ProblemExtracted)]
        assert extracted == [ProblemExtracted(statement="Find the longest palindrome in a string.")]

    def test_rate_limited_everywhere_reports_out_of_credits(self, controller, bus, solver, sleep):
        solver.extract.default = Exception("429 quota exceeded")
        subscription = bus.subscribe()

        async def scenario():
            await controller.capture_primary(png_bytes())
            await controller.process()

        asyncio.run(scenario())

        events = subscription.drain()
        assert event_names(events) == ["initial-start", "out-of-credits", "solution-error"]
        assert controller.state is SessionState.QUEUE
        assert solver.extract.calls == ["gpt-5", "gpt-5-mini", "gpt-4.1", "gpt-4.1-mini"]
        assert len(sleep.delays) == 3

    def test_chain_starts_at_preferred_model(self, controller, solver):
        controller.update_preferences(preferred_model="gpt-4.1")

        async def scenario():
            await controller.capture_primary(png_bytes())
            await controller.process()

        asyncio.run(scenario())

        assert solver.extract.calls == ["gpt-4.1"]
        assert controller.session.last_used_model == "gpt-4.1"

    def test_process_ignored_while_solving(self, controller, solver):
        solver.solve.default = block_forever

        async def scenario():
            await controller.capture_primary(png_bytes())
            task = controller.start(controller.process())
            await wait_for_state(controller, SessionState.SOLVING)
            await controller.process()
            state = controller.state
            await controller.shutdown()
            await asyncio.gather(task, return_exceptions=True)
            return state

        assert asyncio.run(scenario()) is SessionState.SOLVING
        assert len(solver.extract.calls) == 1


class TestResetAndSupersession:
    """Work in flight never outlives a reset or a new problem."""

    def test_reset_while_solving(self, controller, bus, solver, store):
        solver.solve.default = block_forever
        subscription = bus.subscribe()

        async def scenario():
            await controller.capture_primary(png_bytes())
            task = controller.start(controller.process())
            await wait_for_state(controller, SessionState.SOLVING)
            await controller.reset()
            await task

        asyncio.run(scenario())

        events = subscription.drain()
        assert event_names(events).count("reset-view") == 1
        assert "solution-success" not in event_names(events)
        assert controller.state is SessionState.QUEUE
        assert controller.queues.primary == [] and controller.queues.secondary == []
        assert len(controller.memory) == 0
        assert controller.session.problem is None
        assert store.files == {}

    def test_canceled_flow_reports_cancellation(self, controller, bus, solver):
        solver.solve.default = block_forever
        subscription = bus.subscribe()

        async def scenario():
            await controller.capture_primary(png_bytes())
            task = controller.start(controller.process())
            await wait_for_state(controller, SessionState.SOLVING)
            await controller.reset()
            await task

        asyncio.run(scenario())

        errors = [event for event in subscription.drain() if isinstance(event, SolutionError)]
        assert errors == [SolutionError(message="Processing was canceled by the user.")]

    def test_new_capture_cancels_solve_in_flight(self, controller, bus, solver):
        solver.solve.default = block_forever
        subscription = bus.subscribe()

        async def scenario():
            await controller.capture_primary(png_bytes())
            task = controller.start(controller.process())
            await wait_for_state(controller, SessionState.SOLVING)
            replacement = await controller.capture_primary(png_bytes(color="black"))
            await task
            return replacement

        replacement = asyncio.run(scenario())

        assert controller.state is SessionState.QUEUE
        assert controller.queues.primary == [replacement]
        assert "solution-success" not in event_names(subscription.drain())

    def test_process_during_slow_capture_does_not_solve_old_image(self, controller, bus, solver, store):
        """A solve started while a new capture is being written is dropped."""
        subscription = bus.subscribe()

        async def scenario():
            await controller.capture_primary(png_bytes())
            save_gate, extract_gate = asyncio.Event(), asyncio.Event()

            async def slow_extract(model):
                await extract_gate.wait()
                return EXTRACTION_JSON

            solver.extract.default = slow_extract
            store.save_gate = save_gate
            capture = asyncio.ensure_future(controller.capture_primary(png_bytes(color="black")))
            while not store.saves_waiting:
                await asyncio.sleep(0)

            task = controller.start(controller.process())
            while not solver.extract.calls:
                await asyncio.sleep(0)
            save_gate.set()
            replacement = await capture
            extract_gate.set()
            await task
            return replacement

        replacement = asyncio.run(scenario())

        assert controller.state is SessionState.QUEUE
        assert controller.queues.primary == [replacement]
        assert controller.session.problem is None
        names = event_names(subscription.drain())
        assert "problem-extracted" not in names
        assert "solution-success" not in names
        assert names.count("solution-error") == 1


class TestDebugFlow:
    """Solved -> Debugging -> Solved."""

    def solve(self, controller):
        async def scenario():
            await controller.capture_primary(png_bytes())
            await controller.process()

        asyncio.run(scenario())

    def test_debug_after_solve(self, controller, bus, solver):
        self.solve(controller)
        subscription = bus.subscribe()

        async def scenario():
            await controller.capture_secondary(png_bytes(color="red"))
            await controller.process()

        asyncio.run(scenario())

        events = subscription.drain()
        assert event_names(events) == ["debug-start", "model-used", "debug-success"]
        assert events[-1] == DebugSuccess(text="The loop misses the last element; iterate to len(nums).")
        assert controller.state is SessionState.SOLVED
        assert controller.session.has_debugged
        assert controller.session.problem.debug_analysis.startswith("The loop")
        assert controller.memory.turns()[-1].content.startswith("Debug analysis:")

    def test_debug_without_secondary_captures(self, controller, bus, solver):
        self.solve(controller)
        subscription = bus.subscribe()

        asyncio.run(controller.process())

        assert subscription.drain() == [NoCaptures()]
        assert controller.state is SessionState.SOLVED
        assert solver.debug.calls == []

    def test_debug_failure_returns_to_solved(self, controller, bus, solver):
        self.solve(controller)
        solver.debug.default = RuntimeError("vision input rejected")
        subscription = bus.subscribe()

        async def scenario():
            await controller.capture_secondary(png_bytes(color="red"))
            await controller.process()

        asyncio.run(scenario())

        events = subscription.drain()
        assert event_names(events) == ["debug-start", "debug-error"]
        assert events[-1].message == "vision input rejected"
        assert controller.state is SessionState.SOLVED
        assert not controller.session.has_debugged

    def test_reset_while_debugging(self, controller, bus, solver):
        """Reset aborts the debug call and nothing from it is kept."""
        self.solve(controller)
        solver.debug.default = block_forever
        subscription = bus.subscribe()

        async def scenario():
            await controller.capture_secondary(png_bytes(color="red"))
            task = controller.start(controller.process())
            await wait_for_state(controller, SessionState.DEBUGGING)
            await controller.reset()
            await task

        asyncio.run(scenario())

        errors = [event for event in subscription.drain() if isinstance(event, DebugError)]
        assert errors == [DebugError(message=CANCELED_MESSAGE)]
        assert controller.state is SessionState.QUEUE
        assert not controller.session.has_debugged
        assert controller.session.problem is None

    def test_new_capture_while_debugging(self, controller, bus, solver):
        self.solve(controller)
        problem = controller.session.problem
        solver.debug.default = block_forever
        subscription = bus.subscribe()

        async def scenario():
            await controller.capture_secondary(png_bytes(color="red"))
            task = controller.start(controller.process())
            await wait_for_state(controller, SessionState.DEBUGGING)
            await controller.capture_primary(png_bytes(color="black"))
            await task

        asyncio.run(scenario())

        events = subscription.drain()
        errors = [event for event in events if isinstance(event, DebugError)]
        assert errors == [DebugError(message=CANCELED_MESSAGE)]
        assert "debug-success" not in event_names(events)
        assert controller.state is SessionState.QUEUE
        assert not controller.session.has_debugged
        assert problem.debug_analysis is None

    def test_successful_solve_clears_secondary_queue(self, controller, store):
        async def scenario():
            await controller.capture_primary(png_bytes())
            await controller.capture_secondary(png_bytes(color="red"))
            await controller.process()

        asyncio.run(scenario())

        assert controller.queues.secondary == []


class TestCaptureActions:
    def test_delete_defaults_to_queue_in_view(self, controller):
        async def scenario():
            await controller.capture_primary(png_bytes())
            return await controller.delete(0)

        result = asyncio.run(scenario())

        assert result.success
        assert controller.queues.primary == []

    def test_delete_explicit_secondary(self, controller):
        async def scenario():
            await controller.capture_secondary(png_bytes())
            return await controller.delete(0, QueueKind.SECONDARY)

        assert asyncio.run(scenario()).success

    def test_snapshot(self, controller):
        asyncio.run(controller.capture_primary(png_bytes()))

        snapshot = controller.snapshot()

        assert snapshot["state"] == "queue"
        assert len(snapshot["primary"]) == 1
        assert snapshot["problem"] is None
        assert snapshot["in_flight"] == {"solve": False, "debug": False}

import asyncio
import threading

import pytest

from webpilot.config.config import Settings
from webpilot.core.errors import ElementResolutionError
from webpilot.core.models import Task, TaskOutcome
from webpilot.core.planner import DecisionClient
from webpilot.core.security import SecurityGate
from webpilot.infra.tracing import MemoryLog
from webpilot.infra.worker_pool import PoolClosedError
from webpilot.orchestrator import Orchestrator, TaskWorker
from webpilot.surface.page_surface import PageSurface

from fakes import (
    ChatMessage,
    FakeChatClient,
    FakeElement,
    FakePage,
    FakeRuntime,
    FakeSurface,
    ScriptedDecider,
    SlowDecider,
)


def fast_settings(**overrides):
    settings = Settings(step_delay_sec=0.0, wait_action_sec=0.0, navigation_wait_sec=0.0)
    for key, value in overrides.items():
        setattr(settings, key, value)
    return settings


class Confirm:
    def __init__(self, reply):
        self.reply = reply
        self.prompts = []

    def __call__(self, prompt):
        self.prompts.append(prompt)
        return self.reply


def run_one(settings, surface, decider, gate=None, text="do something", cancel=None, trace=None):
    async def scenario():
        worker = TaskWorker(
            settings,
            surface,
            decider,
            gate or SecurityGate(confirm=Confirm("n")),
            cancel or asyncio.Event(),
            text_log=MemoryLog(),
            trace=trace,
        )
        result = await worker.run_task(Task.create(text))
        return worker, result

    return asyncio.run(scenario())


def click(target, reasoning="next step", **extra):
    return {"reasoning": reasoning, "action": "click", "target": target, **extra}


def test_click_login_resolves_by_exact_text_and_continues():
    login = FakeElement("Login")
    page = FakePage({'text="Login"': [login]}, elements=[{"tag": "button", "text": "Login"}])
    surface = PageSurface(page)
    decider = ScriptedDecider([click("Login", "open the login form"), {"reasoning": "done", "action": "complete"}])

    worker, result = run_one(fast_settings(), surface, decider, text="click login button")

    assert login.clicks == 1
    assert page.queried[0] == 'text="Login"'
    assert result.history[0] == "click: Login -> open the login form"
    # step 2 ran after the click
    assert len(decider.calls) == 2
    assert "- Login" in decider.calls[0]["page_state"]
    assert result.outcome is TaskOutcome.COMPLETED
    assert result.steps == 2


def test_denied_purchase_aborts_before_execution():
    surface = FakeSurface()
    confirm = Confirm("n")
    decider = ScriptedDecider([click("Buy now", "add it to the basket")])

    worker, result = run_one(fast_settings(), surface, decider, gate=SecurityGate(confirm=confirm), text="buy the item")

    assert len(confirm.prompts) == 1
    assert result.outcome is TaskOutcome.ABORTED_SECURITY
    assert result.steps == 1
    assert surface.actions() == []
    assert result.history == []


def test_approved_sensitive_action_executes():
    surface = FakeSurface()
    decider = ScriptedDecider([click("Buy now"), {"reasoning": "bought", "action": "complete"}])

    _, result = run_one(fast_settings(), surface, decider, gate=SecurityGate(confirm=Confirm("y")))

    assert ("click_element", "Buy now") in surface.actions()
    assert result.outcome is TaskOutcome.COMPLETED


def test_history_keeps_last_fifteen_of_sixteen_steps():
    decisions = [{"reasoning": f"step {i}", "action": "scroll"} for i in range(1, 17)]
    decisions[-1] = {"reasoning": "step 16", "action": "scroll", "completed": True}
    decider = ScriptedDecider(decisions)

    _, result = run_one(fast_settings(), FakeSurface(), decider)

    assert result.steps == 16
    assert len(result.history) == 15
    assert "scroll:  -> step 1" not in result.history
    assert result.history[0] == "scroll:  -> step 2"
    assert result.history[-1] == "scroll:  -> step 16"


def test_step_limit_after_fifty_steps():
    decider = ScriptedDecider([{"reasoning": "keep looking", "action": "scroll"}], repeat_last=True)
    surface = FakeSurface()

    worker, result = run_one(fast_settings(), surface, decider)

    assert result.outcome is TaskOutcome.STEP_LIMIT_REACHED
    assert result.steps == 50
    assert len(decider.calls) == 50
    assert surface.actions().count(("scroll_page",)) == 50
    assert any("Maximum steps reached" in line for line in worker.text_log.lines)


def test_malformed_decision_on_step_three_aborts():
    good = ChatMessage(arguments='{"reasoning": "look around", "action": "scroll"}')
    bad = ChatMessage(content="I think you should click something")
    decider = DecisionClient("", "m", client=FakeChatClient([good, good, bad]))

    _, result = run_one(fast_settings(), FakeSurface(), decider)

    assert result.outcome is TaskOutcome.ABORTED_ERROR
    assert result.stop_reason == "decision_error"
    assert result.steps == 3
    assert result.history == ["scroll:  -> look around", "scroll:  -> look around"]


def test_missing_element_is_recovered_by_scrolling():
    surface = FakeSurface(failures={"click_element": [ElementResolutionError("Next")]})
    decider = ScriptedDecider([click("Next"), {"reasoning": "finished", "action": "complete"}])

    _, result = run_one(fast_settings(), surface, decider)

    assert surface.actions()[:2] == [("click_element", "Next"), ("scroll_page",)]
    assert result.history[0] == "click: Next -> next step"
    assert result.outcome is TaskOutcome.COMPLETED


def test_unclassified_error_is_fatal():
    surface = FakeSurface(failures={"click_element": [RuntimeError("browser has been closed")]})
    decider = ScriptedDecider([click("Next")])

    _, result = run_one(fast_settings(), surface, decider)

    assert result.outcome is TaskOutcome.ABORTED_ERROR
    assert result.stop_reason == "execute_error"
    assert result.history == []


def test_unknown_action_is_fatal():
    decider = ScriptedDecider([{"reasoning": "?", "action": "teleport"}])
    _, result = run_one(fast_settings(), FakeSurface(), decider)
    assert result.stop_reason == "unknown_action"
    assert result.outcome is TaskOutcome.ABORTED_ERROR


def test_state_extraction_failure_aborts():
    surface = FakeSurface(failures={"extract_state": [RuntimeError("page crashed")]})
    decider = ScriptedDecider([])
    _, result = run_one(fast_settings(), surface, decider)
    assert result.stop_reason == "state_error"
    assert decider.calls == []


def test_decision_timeout_aborts():
    _, result = run_one(fast_settings(decision_timeout_sec=0.01), FakeSurface(), SlowDecider(1.0))
    assert result.stop_reason == "decision_error"
    assert "timeout" in result.stop_details


def test_navigate_updates_auth_and_hint():
    surface = FakeSurface(auth=(True, "dana"))
    decider = ScriptedDecider(
        [
            {"reasoning": "go", "action": "navigate", "url": "https://shop.test/"},
            {"reasoning": "done", "action": "complete"},
        ]
    )

    worker, _ = run_one(fast_settings(), surface, decider, text="show my orders")

    assert worker.auth.get("shop.test").is_logged_in
    assert "signed in as dana" in decider.calls[1]["auth_hint"]


def test_wait_action_uses_configured_seconds():
    surface = FakeSurface()
    decider = ScriptedDecider([{"reasoning": "loading", "action": "wait"}, {"reasoning": "ok", "action": "complete"}])
    _, result = run_one(fast_settings(wait_action_sec=0.0), surface, decider)
    assert ("wait", 0.0) in surface.actions()
    assert result.outcome is TaskOutcome.COMPLETED


def test_cancelled_before_start():
    cancel = asyncio.Event()
    cancel.set()
    decider = ScriptedDecider([])

    async def scenario():
        worker = TaskWorker(fast_settings(), FakeSurface(), decider, SecurityGate(), cancel, text_log=MemoryLog())
        return await worker.run_task(Task.create("anything"))

    result = asyncio.run(scenario())
    assert result.outcome is TaskOutcome.CANCELLED
    assert decider.calls == []


def test_cancel_wakes_politeness_sleep():
    async def scenario():
        cancel = asyncio.Event()
        decider = ScriptedDecider([{"reasoning": "look", "action": "scroll"}], repeat_last=True)
        worker = TaskWorker(fast_settings(step_delay_sec=30.0), FakeSurface(), decider, SecurityGate(), cancel)
        running = asyncio.create_task(worker.run_task(Task.create("browse")))
        await asyncio.sleep(0.05)
        assert worker.is_running
        cancel.set()
        result = await asyncio.wait_for(running, timeout=2)
        return worker, result

    worker, result = asyncio.run(scenario())
    assert result.outcome is TaskOutcome.CANCELLED
    assert result.steps == 2
    assert not worker.is_running


def test_history_is_cleared_between_tasks():
    async def scenario():
        decider = ScriptedDecider(
            [
                {"reasoning": "a", "action": "scroll"},
                {"reasoning": "done", "action": "complete"},
                {"reasoning": "done", "action": "complete"},
            ]
        )
        worker = TaskWorker(fast_settings(), FakeSurface(), decider, SecurityGate(), asyncio.Event())
        first = await worker.run_task(Task.create("first"))
        second = await worker.run_task(Task.create("second"))
        return decider, first, second

    decider, first, second = asyncio.run(scenario())
    assert len(first.history) == 2
    assert second.history == ["complete:  -> done"]
    assert decider.calls[2]["history"] == "No recent actions"


def test_orchestrator_runs_tasks_on_each_worker_surface():
    async def scenario():
        surfaces = [FakeSurface(), FakeSurface()]
        decider = ScriptedDecider([{"reasoning": "done", "action": "complete"}], repeat_last=True)
        settings = fast_settings(workers_min=1, workers_max=2, workers_current=2)
        orchestrator = Orchestrator(settings, FakeRuntime(surfaces), decider, SecurityGate(), text_log=MemoryLog())
        await orchestrator.start()
        ids = [await orchestrator.submit(f"task {i}") for i in range(4)]
        await orchestrator.stop(drain=True)
        return orchestrator, surfaces, ids

    orchestrator, surfaces, ids = asyncio.run(scenario())
    assert sorted(orchestrator.results) == sorted(ids)
    assert all(r.outcome is TaskOutcome.COMPLETED for r in orchestrator.results.values())
    assert all(s.closed for s in surfaces)
    assert orchestrator.metrics().workers_current == 2


def test_orchestrator_pumps_provider_queue():
    async def scenario():
        source = asyncio.Queue()
        decider = ScriptedDecider([{"reasoning": "done", "action": "complete"}], repeat_last=True)
        orchestrator = Orchestrator(
            fast_settings(), FakeRuntime([FakeSurface()]), decider, SecurityGate(), sources=[source]
        )
        await orchestrator.start()
        task = Task.create("from provider")
        await source.put(task)
        for _ in range(100):
            if task.id in orchestrator.results:
                break
            await asyncio.sleep(0.01)
        await orchestrator.stop()
        return orchestrator, task

    orchestrator, task = asyncio.run(scenario())
    assert orchestrator.results[task.id].text == "from provider"


def test_cancel_during_blocked_confirmation_stops_task():
    release = threading.Event()

    def confirm(prompt):
        release.wait()
        return "y"

    async def scenario():
        cancel = asyncio.Event()
        surface = FakeSurface()
        decider = ScriptedDecider([click("Buy now", reasoning="purchase")])
        worker = TaskWorker(fast_settings(), surface, decider, SecurityGate(confirm=confirm), cancel)
        running = asyncio.create_task(worker.run_task(Task.create("buy the item")))
        await asyncio.sleep(0.05)
        cancel.set()
        result = await asyncio.wait_for(running, timeout=2)
        return surface, result

    try:
        surface, result = asyncio.run(scenario())
    finally:
        release.set()
    assert result.outcome is TaskOutcome.CANCELLED
    assert surface.actions() == []


def test_results_keep_only_the_newest_entries():
    async def scenario():
        decider = ScriptedDecider([{"reasoning": "done", "action": "complete"}], repeat_last=True)
        orchestrator = Orchestrator(
            fast_settings(), FakeRuntime([FakeSurface()]), decider, SecurityGate(), results_limit=2
        )
        await orchestrator.start()
        ids = [await orchestrator.submit(f"task {i}") for i in range(3)]
        await orchestrator.stop(drain=True)
        return orchestrator, ids

    orchestrator, ids = asyncio.run(scenario())
    assert list(orchestrator.results) == ids[1:]


def test_wait_result_returns_finished_task():
    async def scenario():
        decider = ScriptedDecider([{"reasoning": "done", "action": "complete"}], repeat_last=True)
        orchestrator = Orchestrator(fast_settings(), FakeRuntime([FakeSurface()]), decider, SecurityGate())
        await orchestrator.start()
        task_id = await orchestrator.submit("read the page")
        result = await asyncio.wait_for(orchestrator.wait_result(task_id), timeout=2)
        await orchestrator.stop()
        return task_id, result

    task_id, result = asyncio.run(scenario())
    assert result.task_id == task_id
    assert result.outcome is TaskOutcome.COMPLETED


def test_wait_result_fails_for_task_that_never_runs():
    async def scenario():
        orchestrator = Orchestrator(fast_settings(), FakeRuntime([FakeSurface()]), ScriptedDecider([]), SecurityGate())
        await orchestrator.start()
        waiting = asyncio.create_task(orchestrator.wait_result("missing"))
        await asyncio.sleep(0)
        await orchestrator.stop()
        with pytest.raises(PoolClosedError):
            await waiting
        with pytest.raises(PoolClosedError):
            await orchestrator.wait_result("missing")

    asyncio.run(scenario())

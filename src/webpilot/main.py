import argparse
import asyncio
from typing import List

from webpilot.config.config import Settings
from webpilot.core.models import TaskResult
from webpilot.core.planner import DecisionClient
from webpilot.core.security import SecurityGate
from webpilot.infra.runtime import BrowserRuntime
from webpilot.infra.task_provider import TaskProvider
from webpilot.infra.tracing import TextLogger, TraceLogger
from webpilot.io.console import ConsoleInput, in_daemon_thread
from webpilot.orchestrator import Orchestrator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Headful browser agent driven by a language model.")
    parser.add_argument("--goal", help="Single task for the agent.")
    parser.add_argument("--goals", nargs="+", help="Several tasks, queued in order.")
    parser.add_argument("--max-steps", type=int, help="Max steps per task.")
    parser.add_argument("--workers", type=int, help="Number of concurrent workers (one browser page each).")
    parser.add_argument("--decision-timeout", type=float, help="Decision service timeout in seconds.")
    parser.add_argument("--step-delay", type=float, help="Pause between steps in seconds.")
    parser.add_argument("--headless", action="store_true", help="Run the browser without a window.")
    return parser


def apply_cli_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    if args.max_steps:
        settings.max_steps = max(1, args.max_steps)
    if args.workers:
        workers = max(1, args.workers)
        settings.workers_current = workers
        settings.workers_max = max(settings.workers_max, workers)
        settings.workers_min = min(settings.workers_min, workers)
    if args.decision_timeout:
        settings.decision_timeout_sec = max(0.1, args.decision_timeout)
    if args.step_delay is not None:
        settings.step_delay_sec = max(0.0, args.step_delay)
    if args.headless:
        settings.headless = True
    return settings


GOAL_PROMPT = "Enter task for the agent (leave blank to stop): "


def _report(result: TaskResult) -> None:
    print(f"[agent] {result.task_id} {result.outcome.value}: {result.text}")


async def run_goals(orchestrator: Orchestrator, provider: TaskProvider, goals: List[str]) -> None:
    task_ids = [await provider.submit(goal) for goal in goals]
    for task_id in task_ids:
        _report(await orchestrator.wait_result(task_id))


async def interactive_session(orchestrator: Orchestrator, provider: TaskProvider, console: ConsoleInput) -> None:
    """Prompt, run, report; the next prompt opens only after the task has finished."""
    while True:
        goal = await in_daemon_thread(console.ask, GOAL_PROMPT)
        if not goal or not goal.strip():
            print("[agent] No task provided; stopping.")
            return
        task_id = await provider.submit(goal)
        print(f"[agent] Queued task {task_id}")
        _report(await orchestrator.wait_result(task_id))


async def amain() -> None:
    args = build_parser().parse_args()
    settings = apply_cli_overrides(Settings.load(), args)

    if not settings.openai_api_key:
        print("[agent] OPENAI_API_KEY not set; nothing to do.")
        return

    text_log = TextLogger(settings.paths.logs_dir / "agent.log")
    trace = TraceLogger(settings.paths.logs_dir / "trace.jsonl")
    runtime = BrowserRuntime(settings, text_log=text_log)
    decider = DecisionClient(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        max_retries=settings.decision_max_retries,
    )
    provider = TaskProvider(settings.queue_capacity, text_log=text_log)
    # One reader for stdin: goal prompts and security confirmations.
    console = ConsoleInput()
    orchestrator = Orchestrator(
        settings,
        runtime,
        decider,
        SecurityGate(confirm=console.ask),
        sources=[provider.queue],
        text_log=text_log,
        trace=trace,
    )

    await runtime.launch()
    print(f"[agent] Browser started with persistent profile at: {settings.paths.user_data_dir}")
    print(f"[agent] Trace/logs: {settings.paths.logs_dir}")

    try:
        await orchestrator.start()
        goals = list(args.goals or ([args.goal] if args.goal else []))
        if goals:
            await run_goals(orchestrator, provider, goals)
        else:
            await interactive_session(orchestrator, provider, console)
        await orchestrator.stop(drain=True)
    except (KeyboardInterrupt, asyncio.CancelledError):
        print("\n[agent] Interrupt received, shutting down...")
        await orchestrator.stop(cancel_running=True)
    finally:
        await runtime.close()
        print("[agent] Browser closed. Bye.")


def main() -> None:
    try:
        asyncio.run(amain())
    except KeyboardInterrupt:
        print("[agent] Interrupted.")


if __name__ == "__main__":
    main()

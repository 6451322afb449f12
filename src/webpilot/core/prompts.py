from __future__ import annotations

from typing import Dict, List, Optional

SYSTEM_PROMPT = """You are an autonomous web browsing agent. Your goal is to complete tasks by interacting with web pages.

AVAILABLE ACTIONS:
- click: Click on an element (button, link, etc.)
- type: Type text into an input field
- navigate: Go to a new URL
- scroll: Scroll the page to see more content
- wait: Wait for the page to load
- wait_user: Pause so the human operator can act (log in, solve a captcha)
- complete: The task is finished

RESPONSE FORMAT (call browser_decision with these fields):
{
    "reasoning": "your step-by-step reasoning",
    "action": "action_name",
    "target": "element description or visible text",
    "text": "text to type (if applicable)",
    "url": "url to navigate to (if applicable)",
    "need_approval": true/false,
    "completed": true/false
}

SECURITY: Set "need_approval" to true for destructive actions such as purchases or deletions.

COMPLETION: Set "completed" to true only when the task is fully done.

BE SPECIFIC: Describe exactly which element to interact with, using its visible text."""

USER_TEMPLATE = """TASK: {task}

CURRENT PAGE STATE:
{page_state}

RECENT HISTORY:
{history}
{auth_block}
Based on the current page and task, decide the next action. Be precise about which element to interact with."""


def build_decision_prompt(
    task: str,
    page_state: str,
    history: str,
    *,
    auth_hint: Optional[str] = None,
) -> List[Dict[str, str]]:
    auth_block = f"\nAUTHENTICATION:\n{auth_hint}\n" if auth_hint else ""
    user_text = USER_TEMPLATE.format(
        task=task,
        page_state=page_state,
        history=history,
        auth_block=auth_block,
    )
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user_text},
    ]

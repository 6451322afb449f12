from __future__ import annotations

import asyncio
import copy
import json
from typing import Any, Dict, List, Optional, Protocol

from jsonschema import Draft7Validator
from jsonschema.exceptions import ValidationError
from openai import AsyncOpenAI

from webpilot.core.errors import DecisionError
from webpilot.core.models import ACTIONS, Decision
from webpilot.core.prompts import build_decision_prompt

# Validation leaves `action` open so an out-of-vocabulary action surfaces as
# UnknownActionError at dispatch instead of a malformed decision.
DECISION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "reasoning": {"type": "string"},
        "action": {"type": "string", "minLength": 1},
        "target": {"type": ["string", "null"]},
        "text": {"type": ["string", "null"]},
        "url": {"type": ["string", "null"]},
        "need_approval": {"type": "boolean"},
        "completed": {"type": "boolean"},
    },
    "required": ["reasoning", "action"],
}

_VALIDATOR = Draft7Validator(DECISION_SCHEMA)


def _tool_parameters() -> Dict[str, Any]:
    params = copy.deepcopy(DECISION_SCHEMA)
    params["properties"]["action"] = {"type": "string", "enum": list(ACTIONS)}
    return params


TOOL_NAME = "browser_decision"


class Decider(Protocol):
    async def decide(
        self,
        task: str,
        page_state: str,
        history: str,
        *,
        auth_hint: Optional[str] = None,
    ) -> Decision: ...


def extract_json_object(content: str) -> Dict[str, Any]:
    """First-to-last brace span of ``content`` parsed as a JSON object."""
    start = content.find("{")
    end = content.rfind("}") + 1
    if start == -1 or end <= start:
        raise DecisionError("response contains no JSON object")
    try:
        payload = json.loads(content[start:end])
    except json.JSONDecodeError as e:
        raise DecisionError(f"failed to parse decision JSON: {e}") from e
    if not isinstance(payload, dict):
        raise DecisionError("decision JSON is not an object")
    return payload


def parse_decision(payload: Dict[str, Any]) -> Decision:
    try:
        _VALIDATOR.validate(payload)
    except ValidationError as e:
        raise DecisionError(f"decision failed schema validation: {e.message}") from e
    return Decision.from_payload(payload)


class DecisionClient:
    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        base_url: Optional[str] = None,
        max_retries: int = 2,
        rate_limit_backoff: float = 1.0,
        client: Optional[Any] = None,
    ) -> None:
        if not api_key and client is None:
            raise ValueError("OPENAI_API_KEY is required for DecisionClient.")
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.model = model
        self.max_retries = max(0, max_retries)
        self.rate_limit_backoff = rate_limit_backoff

    async def decide(
        self,
        task: str,
        page_state: str,
        history: str,
        *,
        auth_hint: Optional[str] = None,
    ) -> Decision:
        messages = build_decision_prompt(task, page_state, history, auth_hint=auth_hint)
        return await self.call(messages)

    async def call(self, messages: List[Dict[str, str]]) -> Decision:
        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries + 1):
            try:
                payload = await self._call_once(messages)
            except DecisionError:
                raise
            except Exception as e:
                msg = str(e).lower()
                last_error = e
                if ("rate limit" in msg or "rate_limit" in msg) and attempt < self.max_retries:
                    if self.rate_limit_backoff > 0:
                        await asyncio.sleep(self.rate_limit_backoff * (attempt + 1))
                    continue
                raise DecisionError(f"decision service call failed: {e}") from e
            return parse_decision(payload)
        raise DecisionError(f"decision service failed after {self.max_retries + 1} attempts: {last_error}")

    async def _call_once(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        tool_def = {
            "type": "function",
            "function": {
                "name": TOOL_NAME,
                "description": "Decide the next browser action.",
                "parameters": _tool_parameters(),
            },
        }
        response = await self.client.chat.completions.create(
            model=self.model,
            temperature=0.1,
            max_tokens=1000,
            messages=messages,
            tools=[tool_def],
            tool_choice={"type": "function", "function": {"name": TOOL_NAME}},
        )
        if not response.choices:
            raise DecisionError("no choices in response")

        message = response.choices[0].message
        if message.tool_calls:
            arguments = message.tool_calls[0].function.arguments
            try:
                payload = json.loads(arguments)
            except json.JSONDecodeError as e:
                raise DecisionError(f"failed to parse tool arguments: {e}") from e
            if not isinstance(payload, dict):
                raise DecisionError("tool arguments are not an object")
            return payload
        if message.content:
            return extract_json_object(message.content)
        raise DecisionError("decision service returned an empty message")

"""
Agent Runner - Drives an agent through its archetype's LLM/tool loop
"""

import asyncio
import json
import logging
import re
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..errors import (
    ExecutionCancelled,
    LLMProviderError,
    MaxIterationsExceeded,
    OrchestrationError,
    ToolNotFound,
    ToolResolutionFailed,
)
from ..llm.base import LLMResponse, ProviderRegistry, ToolCall
from ..tools.base import ToolRegistry, ToolsBridge
from ..workflow.executors.base import CancellationToken
from ..workflow.models import ExecutionStatus, RetryPolicy, utcnow
from .models import Agent, AgentExecution, AgentType, ExecutionStep, PromptConfig

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."

SUBTASKS = [
    {
        "id": "task1",
        "type": "analysis",
        "description": "Analyze the input",
        "prompt": (
            "Analyze the following request. List the key requirements, constraints "
            "and any missing information.\n\nRequest:\n{input}"
        ),
    },
    {
        "id": "task2",
        "type": "generation",
        "description": "Generate response",
        "prompt": (
            "Using this analysis:\n{analysis}\n\nWrite a complete response to the "
            "request:\n{input}"
        ),
    },
]

SYNTHESIS_PROMPT = (
    "Combine the analysis and the draft below into one final answer for the user. "
    "Return only the answer.\n\nRequest:\n{input}\n\nAnalysis:\n{analysis}\n\n"
    "Draft:\n{generation}"
)

AUTONOMOUS_PROMPT = (
    "Decide how to handle the user's request. Reply with a JSON object only: "
    '{{"action": "respond", "parameters": {{"response": "<answer>"}}}} to answer '
    'directly, or {{"action": "<tool name>", "parameters": {{...}}}} to call one '
    "of these tools: {tools}."
)

_JSON_BLOCK = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)

WorkflowRunner = Callable[..., Awaitable[Any]]


def process_prompt_variables(content: str, prompts: List[PromptConfig]) -> str:
    """Replace every ``{{name}}`` with the variable's default value, across all prompts"""
    processed = content
    for prompt in prompts:
        for variable in prompt.variables:
            value = "" if variable.defaultValue is None else str(variable.defaultValue)
            processed = processed.replace(f"{{{{{variable.name}}}}}", value)
    return processed


def get_system_prompt(agent: Agent) -> str:
    for prompt in agent.config.prompts:
        if prompt.type == "system" and prompt.isActive:
            return process_prompt_variables(prompt.content, agent.config.prompts)
    return DEFAULT_SYSTEM_PROMPT


def backoff_delay(policy: RetryPolicy, attempt: int) -> float:
    """Delay before retry number ``attempt`` (1-based)"""
    if policy.backoffStrategy == "linear":
        return policy.retryDelay * attempt
    return policy.retryDelay * (2 ** (attempt - 1))


def parse_decision(content: Optional[str]) -> Dict[str, Any]:
    """Read an autonomous decision; anything unparseable becomes a direct response"""
    text = (content or "").strip()
    block = _JSON_BLOCK.search(text)
    if block:
        text = block.group(1)
    try:
        decision = json.loads(text)
    except ValueError:
        decision = None
    if not isinstance(decision, dict) or not isinstance(decision.get("action"), str):
        return {"action": "respond", "parameters": {"response": content or ""}}
    if not isinstance(decision.get("parameters"), dict):
        decision["parameters"] = {}
    return decision


class AgentRunner:
    """
    Executes agents.

    Every LLM call goes through ``_call_llm``, which applies the agent's retry
    policy to transient provider errors and accounts tokens, cost and API
    calls. Steps are appended to the execution as they start, so a failed run
    keeps everything recorded up to the failing step.
    """

    def __init__(
        self,
        providers: ProviderRegistry,
        tools: Optional[ToolRegistry] = None,
        store: Any = None,
        workflow_runner: Optional[WorkflowRunner] = None,
        default_model: str = "gpt-3.5-turbo",
    ):
        self.providers = providers
        self.default_model = default_model
        self.tools = tools
        self.store = store
        self.workflow_runner = workflow_runner

    async def run(
        self,
        agent: Agent,
        text_input: str,
        debug_mode: bool = False,
        cancel_token: Optional[CancellationToken] = None,
        workflow_execution_id: Optional[str] = None,
    ) -> AgentExecution:
        """
        Run an agent to completion.

        Args:
            agent: The agent definition
            text_input: User input
            debug_mode: Record full message lists on each step
            cancel_token: Shared token, e.g. from the owning workflow execution
            workflow_execution_id: Owning workflow execution, if any

        Returns:
            AgentExecution in a terminal state; failures are recorded, not raised
        """
        execution = AgentExecution(
            agentId=agent.id,
            input=text_input,
            workflowExecutionId=workflow_execution_id,
        )
        token = cancel_token if cancel_token is not None else CancellationToken()
        if self.store is not None:
            self.store.put(execution)
            self.store.register_token(execution.id, token)

        debug = debug_mode or agent.config.execution.debugMode
        timeout = agent.config.execution.timeout or None
        started = time.monotonic()
        logger.info(f"Starting agent execution: {execution.id} ({agent.name}, {agent.type.value})")

        try:
            output = await asyncio.wait_for(
                self._dispatch(agent, text_input, execution, token, debug), timeout
            )
            execution.output = output
            execution.status = ExecutionStatus.COMPLETED

        except ExecutionCancelled:
            self._fail(execution, "Execution cancelled", ExecutionCancelled.code, ExecutionStatus.CANCELLED)

        except asyncio.TimeoutError:
            self._fail(execution, f"Agent execution timed out after {timeout}s", "TIMEOUT")

        except OrchestrationError as e:
            self._fail(execution, e.message, e.code)

        except Exception as e:
            logger.error(f"Agent execution failed: {execution.id} - {e}")
            self._fail(execution, str(e) or type(e).__name__, None)

        finally:
            execution.completedAt = utcnow()
            execution.metrics.duration = int((time.monotonic() - started) * 1000)
            if self.store is not None:
                self.store.release_token(execution.id)

        logger.info(
            f"Agent execution finished: {execution.id} - {execution.status.value} "
            f"({len(execution.steps)} steps, {execution.metrics.tokenCount} tokens)"
        )
        return execution

    @staticmethod
    def _fail(
        execution: AgentExecution,
        message: str,
        code: Optional[str],
        status: ExecutionStatus = ExecutionStatus.FAILED,
    ):
        execution.status = status
        execution.error = message
        execution.errorCode = code
        if status == ExecutionStatus.FAILED:
            execution.metrics.errorCount += 1
        for step in execution.steps:
            if not step.status.is_terminal:
                step.fail(message, status)

    async def _dispatch(
        self,
        agent: Agent,
        text_input: str,
        execution: AgentExecution,
        token: CancellationToken,
        debug: bool,
    ) -> str:
        if agent.type == AgentType.PROMPT_BASED:
            return await self._run_prompt_based(agent, text_input, execution, token, debug)
        if agent.type == AgentType.TOOL_USING:
            return await self._run_tool_using(agent, text_input, execution, token, debug)
        if agent.type == AgentType.MULTI_AGENT:
            return await self._run_multi_agent(agent, text_input, execution, token, debug)
        if agent.type == AgentType.WORKFLOW:
            return await self._run_workflow(agent, text_input, execution, token)
        if agent.type == AgentType.AUTONOMOUS:
            return await self._run_autonomous(agent, text_input, execution, token, debug)
        raise ValueError(f"Unknown agent type: {agent.type}")

    # ----- Archetypes -----

    async def _run_prompt_based(self, agent, text_input, execution, token, debug) -> str:
        step = self._start_step(execution, "llm_call", "Processing input with LLM", {"input": text_input})
        messages = [
            {"role": "system", "content": get_system_prompt(agent)},
            {"role": "user", "content": text_input},
        ]
        response = await self._call_llm(agent, execution, token, messages, step=step, debug=debug)
        content = response.content or ""
        step.complete({"content": content, "tokens": response.tokens_used})
        return content

    async def _run_tool_using(self, agent, text_input, execution, token, debug) -> str:
        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": get_system_prompt(agent)},
            {"role": "user", "content": text_input},
        ]
        tool_schemas = ToolsBridge.to_openai(agent.tools) or None
        max_steps = agent.config.execution.maxSteps

        for iteration in range(1, max_steps + 1):
            token.raise_if_cancelled(execution.id)
            step = self._start_step(
                execution,
                "llm_tool_call",
                f"Iteration {iteration}: Analyzing and calling tools",
                {"iteration": iteration},
            )
            response = await self._call_llm(
                agent, execution, token, messages, tools=tool_schemas, step=step, debug=debug
            )

            if not response.tool_calls:
                content = response.content or ""
                step.complete({"content": content})
                return content

            messages.append({
                "role": "assistant",
                "content": response.content,
                "tool_calls": [call.to_message() for call in response.tool_calls],
            })
            results = []
            for call in response.tool_calls:
                result = await self._execute_tool_call(agent, call, token)
                results.append({"toolCallId": call.id, "name": call.name, "result": result})
                messages.append({
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": ToolsBridge.format_tool_result(result),
                })
            step.complete({
                "toolCalls": [call.to_message() for call in response.tool_calls],
                "results": results,
            })

        raise MaxIterationsExceeded(max_steps)

    async def _run_multi_agent(self, agent, text_input, execution, token, debug) -> str:
        system_prompt = get_system_prompt(agent)
        results: Dict[str, str] = {}

        for task in SUBTASKS:
            step = self._start_step(
                execution, "subtask", task["description"], {"taskId": task["id"], "taskType": task["type"]}
            )
            prompt = task["prompt"].format(input=text_input, **results)
            messages = [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ]
            response = await self._call_llm(agent, execution, token, messages, step=step, debug=debug)
            results[task["type"]] = response.content or ""
            step.complete({"taskId": task["id"], "result": results[task["type"]]})

        step = self._start_step(
            execution, "synthesis", "Synthesizing sub-task results", {"tasks": [t["id"] for t in SUBTASKS]}
        )
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": SYNTHESIS_PROMPT.format(input=text_input, **results)},
        ]
        response = await self._call_llm(agent, execution, token, messages, step=step, debug=debug)
        output = response.content or ""
        step.complete({"synthesizedOutput": output})
        return output

    async def _run_workflow(self, agent, text_input, execution, token) -> str:
        step = self._start_step(
            execution, "workflow_execution", "Executing workflow", {"workflowId": agent.workflowId}
        )

        if not agent.workflowId or self.workflow_runner is None:
            # Input already carries upstream workflow results
            step.complete({"workflowResult": text_input})
            return text_input

        workflow_execution = await self.workflow_runner(agent.workflowId, text_input, cancel_token=token)
        execution.metrics.tokenCount += workflow_execution.metrics.totalTokens
        execution.metrics.cost += workflow_execution.metrics.totalCost

        if workflow_execution.status == ExecutionStatus.CANCELLED:
            raise ExecutionCancelled(execution.id)
        if workflow_execution.status != ExecutionStatus.COMPLETED:
            raise RuntimeError(
                f"Workflow {agent.workflowId} {workflow_execution.status.value}: {workflow_execution.error}"
            )

        final = workflow_execution.finalOutput
        output = final if isinstance(final, str) else json.dumps(final, default=str)
        step.complete({"workflowExecutionId": workflow_execution.id, "workflowResult": output})
        return output

    async def _run_autonomous(self, agent, text_input, execution, token, debug) -> str:
        step = self._start_step(
            execution, "autonomous_execution", "Running autonomous decision-making", {"input": text_input}
        )
        tool_names = ", ".join(tool.name for tool in agent.tools) or "none"
        messages = [
            {
                "role": "system",
                "content": f"{get_system_prompt(agent)}\n\n{AUTONOMOUS_PROMPT.format(tools=tool_names)}",
            },
            {"role": "user", "content": text_input},
        ]
        response = await self._call_llm(agent, execution, token, messages, step=step, debug=debug)
        decision = parse_decision(response.content)
        action = decision["action"]
        parameters = decision["parameters"]

        if action != "respond" and agent.find_tool(action) is not None:
            call = ToolCall(id=f"call_{uuid.uuid4().hex[:8]}", name=action, arguments=json.dumps(parameters))
            tool_result = await self._execute_tool_call(agent, call, token)
            result = ToolsBridge.format_tool_result(tool_result)
        else:
            result = parameters.get("response")
            if not isinstance(result, str):
                result = response.content or ""

        step.complete({"decision": decision, "result": result})
        return result

    # ----- Helpers -----

    @staticmethod
    def _start_step(
        execution: AgentExecution,
        step_type: str,
        description: str,
        step_input: Optional[Dict[str, Any]] = None,
    ) -> ExecutionStep:
        step = ExecutionStep(type=step_type, input=step_input or {}, metadata={"description": description})
        execution.steps.append(step)
        return step

    async def _call_llm(
        self,
        agent: Agent,
        execution: AgentExecution,
        token: CancellationToken,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        step: Optional[ExecutionStep] = None,
        debug: bool = False,
    ) -> LLMResponse:
        """One logical LLM call, retried on transient provider errors"""
        model = agent.config.model
        policy = agent.config.execution.retryPolicy
        provider = self.providers.get(model.provider)
        attempt = 0

        while True:
            execution.metrics.apiCalls += 1
            try:
                response = await token.guard(
                    provider.chat(
                        messages,
                        model.modelName or self.default_model,
                        temperature=model.temperature,
                        max_tokens=model.maxTokens,
                        tools=tools,
                    ),
                    execution.id,
                )
                break
            except LLMProviderError as e:
                if not e.is_transient or attempt >= policy.maxRetries:
                    raise
                attempt += 1
                delay = backoff_delay(policy, attempt)
                logger.warning(
                    f"Transient provider error {e.code} for {execution.id}, "
                    f"retry {attempt}/{policy.maxRetries} in {delay:.2f}s"
                )
                if await token.wait(delay):
                    raise ExecutionCancelled(execution.id)

        execution.metrics.tokenCount += response.tokens_used
        execution.metrics.cost += response.cost

        if step is not None:
            step.metadata["tokens"] = step.metadata.get("tokens", 0) + response.tokens_used
            if attempt:
                step.metadata["retries"] = attempt
            if debug:
                step.metadata.setdefault("messages", []).append([dict(m) for m in messages])
        return response

    async def _execute_tool_call(
        self, agent: Agent, call: ToolCall, token: CancellationToken
    ) -> Any:
        """Run one requested tool; failures become error results for the model"""
        tool = agent.find_tool(call.name)
        if tool is None:
            return {"error": f"Tool {call.name} not found", "code": ToolNotFound.code}

        implementation = self.tools.get(tool.type) if self.tools is not None else None
        if implementation is None:
            return {
                "error": f"Tool implementation for {tool.type} not found",
                "code": ToolResolutionFailed.code,
            }

        try:
            args = json.loads(call.arguments or "{}")
        except ValueError as e:
            return {"error": f"Invalid tool arguments: {e}"}
        if not isinstance(args, dict):
            return {"error": "Tool arguments must be a JSON object"}

        try:
            return await token.guard(
                implementation.execute({**tool.config, **args}, cancel_token=token)
            )
        except ExecutionCancelled:
            raise
        except Exception as e:
            logger.warning(f"Tool {call.name} failed: {e}")
            return {"error": str(e)}

"""
Workflow Templates - Pre-built workflows and the agents they reference
"""

from typing import List, Dict, Any, Optional

# Agents referenced by the workflow templates below; registered at startup
AGENT_TEMPLATES: List[Dict[str, Any]] = [
    {
        "id": "customer-service-chatbot",
        "name": "Customer Service Chatbot",
        "description": "Handles inquiries, support tickets and escalation",
        "type": "prompt_based",
        "config": {
            "model": {"provider": "openai", "modelName": "gpt-4", "temperature": 0.7, "maxTokens": 1000},
            "prompts": [
                {
                    "id": "system",
                    "name": "Customer Service System Prompt",
                    "type": "system",
                    "content": (
                        "You are a helpful customer service agent for {{company_name}}. "
                        "Greet customers warmly, understand their needs, and escalate "
                        "complex issues to human agents when necessary.\n\n"
                        "Support Hours: {{support_hours}}\n"
                        "Escalation Policy: {{escalation_policy}}"
                    ),
                    "variables": [
                        {"name": "company_name", "defaultValue": "TechCorp"},
                        {"name": "support_hours", "defaultValue": "24/7"},
                        {
                            "name": "escalation_policy",
                            "defaultValue": "Escalate for technical issues, billing disputes, or legal matters",
                        },
                    ],
                }
            ],
            "execution": {
                "maxSteps": 10,
                "timeout": 300,
                "retryPolicy": {"maxRetries": 3, "backoffStrategy": "exponential", "retryDelay": 1},
            },
            "memory": {"type": "short_term", "maxSize": 10, "retention": 24, "strategy": "fifo"},
        },
    },
    {
        "id": "content-creation-assistant",
        "name": "Content Creation Assistant",
        "description": "Drafts content for a target audience in a given brand voice",
        "type": "multi_agent",
        "config": {
            "model": {"provider": "openai", "modelName": "gpt-4", "temperature": 0.8, "maxTokens": 2000},
            "prompts": [
                {
                    "id": "system",
                    "name": "Content Creator System Prompt",
                    "type": "system",
                    "content": (
                        "You are an expert content creator producing {{content_type}} for "
                        "{{target_audience}}. Write in a {{brand_voice}} voice."
                    ),
                    "variables": [
                        {"name": "content_type", "defaultValue": "blog posts"},
                        {"name": "target_audience", "defaultValue": "Tech professionals"},
                        {"name": "brand_voice", "defaultValue": "Professional yet approachable"},
                    ],
                }
            ],
        },
    },
]

# Pre-built workflow templates
WORKFLOW_TEMPLATES: List[Dict[str, Any]] = [
    {
        "id": "support-triage",
        "name": "Support Triage",
        "description": "Answer a customer message and notify a human when it needs escalation",
        "category": "customer_service",
        "nodes": [
            {
                "id": "trigger-1",
                "type": "trigger",
                "position": {"x": 100, "y": 200},
                "data": {"label": "New Message", "config": {"triggerType": "webhook"}},
            },
            {
                "id": "agent-1",
                "type": "agent",
                "position": {"x": 350, "y": 200},
                "data": {"label": "Support Agent", "config": {"agentId": "customer-service-chatbot"}},
            },
            {
                "id": "condition-1",
                "type": "condition",
                "position": {"x": 600, "y": 200},
                "data": {
                    "label": "Needs Escalation?",
                    "config": {
                        "conditionType": "expression",
                        "condition": (
                            "'escalate' in (str(input.get('input', '')) + ' ' "
                            "+ str(input.get('result', ''))).lower()"
                        ),
                    },
                },
            },
            {
                "id": "action-1",
                "type": "action",
                "position": {"x": 850, "y": 100},
                "data": {
                    "label": "Notify Team",
                    "config": {
                        "actionType": "send_notification",
                        "actionConfig": {
                            "channel": "support",
                            "message": "Escalation requested: {{input}}",
                        },
                    },
                },
            },
            {
                "id": "output-1",
                "type": "output",
                "position": {"x": 850, "y": 300},
                "data": {"label": "Reply", "config": {"name": "reply"}},
            },
        ],
        "edges": [
            {"id": "e1", "source": "trigger-1", "target": "agent-1"},
            {"id": "e2", "source": "agent-1", "target": "condition-1"},
            {
                "id": "e3", "source": "condition-1", "target": "action-1",
                "condition": {"field": "result", "operator": "equals", "value": True},
            },
            {"id": "e4", "source": "agent-1", "target": "output-1"},
        ],
    },
    {
        "id": "content-fan-out",
        "name": "Content Fan-out",
        "description": "Draft content for two channels in parallel branches and join the results",
        "category": "content",
        "nodes": [
            {
                "id": "input-1",
                "type": "input",
                "position": {"x": 100, "y": 200},
                "data": {"label": "Brief"},
            },
            {
                "id": "split-1",
                "type": "split",
                "position": {"x": 300, "y": 200},
                "data": {"label": "Per Channel"},
            },
            {
                "id": "agent-blog",
                "type": "agent",
                "position": {"x": 550, "y": 100},
                "data": {"label": "Blog Draft", "config": {"agentId": "content-creation-assistant"}},
            },
            {
                "id": "agent-social",
                "type": "agent",
                "position": {"x": 550, "y": 300},
                "data": {"label": "Social Draft", "config": {"agentId": "content-creation-assistant"}},
            },
            {
                "id": "merge-1",
                "type": "merge",
                "position": {"x": 800, "y": 200},
                "data": {"label": "Collect Drafts", "config": {"requireAll": True}},
            },
            {
                "id": "output-1",
                "type": "output",
                "position": {"x": 1050, "y": 200},
                "data": {"label": "Drafts", "config": {"name": "drafts"}},
            },
        ],
        "edges": [
            {"id": "e1", "source": "input-1", "target": "split-1"},
            {"id": "e2", "source": "split-1", "sourceHandle": "blog", "target": "agent-blog"},
            {"id": "e3", "source": "split-1", "sourceHandle": "social", "target": "agent-social"},
            {"id": "e4", "source": "agent-blog", "target": "merge-1"},
            {"id": "e5", "source": "agent-social", "target": "merge-1"},
            {"id": "e6", "source": "merge-1", "target": "output-1"},
        ],
    },
    {
        "id": "batch-notify",
        "name": "Batch Notify",
        "description": "Collect a notification line per item, wait, then send them in one call",
        "category": "automation",
        "nodes": [
            {
                "id": "input-1",
                "type": "input",
                "position": {"x": 100, "y": 200},
                "data": {"label": "Items"},
            },
            {
                "id": "loop-1",
                "type": "loop",
                "position": {"x": 350, "y": 200},
                "data": {
                    "label": "Format Lines",
                    "config": {
                        "loopType": "foreach",
                        "itemsField": "items",
                        "maxIterations": 50,
                        "bodyExpression": "f'{index + 1}. {item}'",
                    },
                },
            },
            {
                "id": "delay-1",
                "type": "delay",
                "position": {"x": 600, "y": 200},
                "data": {"label": "Cool Down", "config": {"delayAmount": 500, "delayUnit": "milliseconds"}},
            },
            {
                "id": "action-1",
                "type": "action",
                "position": {"x": 850, "y": 200},
                "data": {
                    "label": "Send Digest",
                    "config": {"actionType": "send_notification", "actionConfig": {"channel": "digest"}},
                },
            },
        ],
        "edges": [
            {"id": "e1", "source": "input-1", "target": "loop-1"},
            {"id": "e2", "source": "loop-1", "target": "delay-1"},
            {"id": "e3", "source": "delay-1", "target": "action-1"},
        ],
    },
]


def get_workflow_templates() -> List[Dict[str, Any]]:
    """Get all available workflow templates."""
    return [
        {
            "id": t["id"],
            "name": t["name"],
            "description": t["description"],
            "category": t["category"],
            "nodeCount": len(t["nodes"]),
        }
        for t in WORKFLOW_TEMPLATES
    ]


def get_workflow_template(template_id: str) -> Optional[Dict[str, Any]]:
    """Get a specific workflow template by ID."""
    for t in WORKFLOW_TEMPLATES:
        if t["id"] == template_id:
            return t
    return None

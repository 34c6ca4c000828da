"""
Restricted expression evaluation for condition and loop nodes.

Expressions run with a whitelist of builtins. This is not a sandbox: workflow
authors are trusted, isolation is left to the deployment.
"""

from typing import Any, Dict, Optional

SAFE_BUILTINS: Dict[str, Any] = {
    "len": len,
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "list": list,
    "dict": dict,
    "tuple": tuple,
    "set": set,
    "abs": abs,
    "min": min,
    "max": max,
    "sum": sum,
    "any": any,
    "all": all,
    "round": round,
    "sorted": sorted,
    "range": range,
    "enumerate": enumerate,
    "isinstance": isinstance,
    "True": True,
    "False": False,
    "None": None,
}


def build_namespace(
    inputs: Any,
    variables: Optional[Dict[str, Any]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Names visible to an expression: every variable, plus input/value/variables"""
    variables = variables or {}
    namespace = dict(variables)
    namespace.update({
        "input": inputs,
        "value": inputs,
        "variables": variables,
    })
    namespace.update(extra)
    return namespace


def evaluate_expression(expression: str, namespace: Dict[str, Any]) -> Any:
    """Evaluate a single Python expression against the namespace"""
    if not isinstance(expression, str) or not expression.strip():
        raise ValueError("Expression is empty")
    return eval(expression, {"__builtins__": SAFE_BUILTINS}, dict(namespace))


def run_script(script: str, namespace: Dict[str, Any], result_name: str = "result") -> Any:
    """
    Execute a script and return the value it assigned to ``result``.

    Raises ValueError if the script never assigns the result name.
    """
    if not isinstance(script, str) or not script.strip():
        raise ValueError("Script is empty")
    local_vars = dict(namespace)
    local_vars.pop(result_name, None)
    exec(script, {"__builtins__": SAFE_BUILTINS}, local_vars)
    if result_name not in local_vars:
        raise ValueError(f"Script did not assign '{result_name}'")
    return local_vars[result_name]

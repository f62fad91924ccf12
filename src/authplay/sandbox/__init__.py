"""Capability-scoped execution of playground snippets.

* :mod:`~authplay.sandbox.interpreter` -- AST-walking interpreter for a
  Python subset, with an attribute allow-list and a step budget.
* :mod:`~authplay.sandbox.capabilities` -- the ``fetch`` and ``console``
  bindings and console value rendering.
* :mod:`~authplay.sandbox.runner` -- :class:`SandboxedRunner`, which wires
  the three bindings together and reports every failure as output.
"""

from authplay.sandbox.capabilities import FetchCapability, FetchResponse, SandboxConsole, render_value
from authplay.sandbox.interpreter import Interpreter
from authplay.sandbox.runner import BINDING_NAMES, SandboxedRunner

__all__ = [
    "BINDING_NAMES",
    "FetchCapability",
    "FetchResponse",
    "Interpreter",
    "SandboxConsole",
    "SandboxedRunner",
    "render_value",
]

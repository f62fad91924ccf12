"""A small, capability-scoped interpreter for playground snippets.

Snippets are written in a Python subset and evaluated by walking their
:mod:`ast` directly. Nothing is handed to :func:`exec` or :func:`eval`, so
the only objects a snippet can reach are the bindings it is given, the
values it builds from literals, and whatever those expose through the
attribute allow-list below.

Rules enforced while walking:

* No builtins. An unknown name is an error, not a lookup in module globals.
* Attributes starting with ``_`` are never readable. Other attributes are
  readable only if listed for the object's exact type in
  :data:`ALLOWED_ATTRIBUTES`, or in the object's ``sandbox_attributes``.
* Function/class definitions, imports, ``try``, ``with``, ``global``,
  ``lambda``, ``del`` and ``raise`` are rejected as unsupported syntax.
* Every statement and expression costs one step; exceeding ``max_steps``
  aborts the run, so ``while True: pass`` terminates.
* ``**``, ``*`` and ``+`` refuse results beyond :data:`MAX_INTEGER_BITS`
  or :data:`MAX_SEQUENCE_LENGTH` before computing them.
* ``await`` works at top level, and on non-awaitables it just returns the
  value. A bare expression statement that evaluates to an awaitable is
  awaited too.

Example::

    interpreter = Interpreter({"console": console}, max_steps=10_000)
    await interpreter.run("console.log(1 + 1)")
"""

from __future__ import annotations

import ast
import inspect
import operator
from typing import Any, Callable

from authplay.exceptions import SandboxError

MAX_SEQUENCE_LENGTH = 1_000_000
MAX_EXPONENT = 10_000
MAX_INTEGER_BITS = 1_000_000

ALLOWED_ATTRIBUTES: dict[type, frozenset[str]] = {
    str: frozenset(
        {
            "capitalize", "count", "endswith", "find", "isalnum", "isalpha",
            "isdigit", "join", "lower", "lstrip", "replace", "rsplit", "rstrip",
            "split", "splitlines", "startswith", "strip", "title", "upper", "zfill",
        }
    ),
    dict: frozenset(
        {"copy", "get", "items", "keys", "pop", "setdefault", "update", "values"}
    ),
    list: frozenset(
        {"append", "copy", "count", "extend", "index", "insert", "pop", "remove", "reverse", "sort"}
    ),
    tuple: frozenset({"count", "index"}),
    set: frozenset(
        {"add", "difference", "discard", "intersection", "remove", "union"}
    ),
}

_BIN_OPS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
    ast.BitAnd: operator.and_,
    ast.BitOr: operator.or_,
    ast.BitXor: operator.xor,
}

_UNARY_OPS: dict[type, Callable[[Any], Any]] = {
    ast.Not: operator.not_,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
    ast.Invert: operator.invert,
}

_COMPARE_OPS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}


class _Break(Exception):
    pass


class _Continue(Exception):
    pass


def _syntax_name(node: ast.AST) -> str:
    return type(node).__name__


def allowed_attributes(value: Any) -> frozenset[str]:
    """Attribute names a snippet may read on *value*."""
    allowed = ALLOWED_ATTRIBUTES.get(type(value))
    if allowed is not None:
        return allowed
    return getattr(type(value), "sandbox_attributes", frozenset())


class Interpreter:
    """Evaluate one snippet against a fixed set of bindings.

    Args:
        bindings: The names visible to the snippet. The dict is copied;
            rebinding a name inside the snippet never affects the caller.
        max_steps: Statement + expression evaluations allowed per run.
    """

    def __init__(self, bindings: dict[str, Any], max_steps: int = 100_000) -> None:
        self._scopes: list[dict[str, Any]] = [dict(bindings)]
        self._max_steps = max_steps
        self._steps = 0

    @property
    def steps(self) -> int:
        return self._steps

    async def run(self, source: str) -> None:
        """Parse and execute *source*.

        Raises:
            SandboxError: For syntax errors, unsupported constructs,
                forbidden names/attributes, or an exhausted step budget.
            Exception: Runtime errors inside the snippet (``KeyError``,
                ``ZeroDivisionError``...) propagate unchanged.
        """
        try:
            tree = ast.parse(source, mode="exec")
        except SyntaxError as exc:
            raise SandboxError(f"SyntaxError: {exc.msg} (line {exc.lineno})") from exc
        try:
            await self._exec_block(tree.body)
        except (_Break, _Continue) as exc:
            raise SandboxError("'break' or 'continue' outside loop") from exc

    # ------------------------------------------------------------------ #
    # Statements
    # ------------------------------------------------------------------ #

    def _tick(self) -> None:
        self._steps += 1
        if self._steps > self._max_steps:
            raise SandboxError(f"Step limit of {self._max_steps} exceeded")

    async def _exec_block(self, body: list[ast.stmt]) -> None:
        for stmt in body:
            await self._exec(stmt)

    async def _exec(self, node: ast.stmt) -> None:
        self._tick()
        if isinstance(node, ast.Expr):
            value = await self._eval(node.value)
            if inspect.isawaitable(value):
                await value
        elif isinstance(node, ast.Assign):
            value = await self._eval(node.value)
            for target in node.targets:
                await self._assign(target, value)
        elif isinstance(node, ast.AugAssign):
            await self._aug_assign(node)
        elif isinstance(node, ast.AnnAssign):
            if node.value is not None:
                await self._assign(node.target, await self._eval(node.value))
        elif isinstance(node, ast.If):
            if await self._eval(node.test):
                await self._exec_block(node.body)
            else:
                await self._exec_block(node.orelse)
        elif isinstance(node, ast.For):
            await self._exec_for(node)
        elif isinstance(node, ast.While):
            await self._exec_while(node)
        elif isinstance(node, ast.Break):
            raise _Break()
        elif isinstance(node, ast.Continue):
            raise _Continue()
        elif isinstance(node, ast.Pass):
            return
        else:
            raise SandboxError(f"Unsupported syntax: {_syntax_name(node)}")

    async def _exec_for(self, node: ast.For) -> None:
        iterable = await self._eval(node.iter)
        broke = False
        for item in iterable:
            self._tick()
            await self._assign(node.target, item)
            try:
                await self._exec_block(node.body)
            except _Break:
                broke = True
                break
            except _Continue:
                continue
        if not broke:
            await self._exec_block(node.orelse)

    async def _exec_while(self, node: ast.While) -> None:
        broke = False
        while await self._eval(node.test):
            try:
                await self._exec_block(node.body)
            except _Break:
                broke = True
                break
            except _Continue:
                continue
        if not broke:
            await self._exec_block(node.orelse)

    async def _assign(self, target: ast.expr, value: Any) -> None:
        if isinstance(target, ast.Name):
            self._store(target.id, value)
        elif isinstance(target, (ast.Tuple, ast.List)):
            items = list(value)
            if len(items) != len(target.elts):
                raise ValueError(
                    f"expected {len(target.elts)} values to unpack, got {len(items)}"
                )
            for elt, item in zip(target.elts, items):
                await self._assign(elt, item)
        elif isinstance(target, ast.Subscript):
            container = await self._eval(target.value)
            key = await self._eval(target.slice)
            container[key] = value
        else:
            raise SandboxError(f"Unsupported assignment target: {_syntax_name(target)}")

    async def _aug_assign(self, node: ast.AugAssign) -> None:
        op = _BIN_OPS.get(type(node.op))
        if op is None:
            raise SandboxError(f"Unsupported operator: {_syntax_name(node.op)}")
        current = await self._eval(_as_load(node.target))
        value = await self._eval(node.value)
        await self._assign(node.target, self._binary(node.op, op, current, value))

    # ------------------------------------------------------------------ #
    # Names
    # ------------------------------------------------------------------ #

    def _store(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            raise SandboxError(f"Names starting with '_' are not allowed: {name}")
        self._scopes[-1][name] = value

    def _load(self, name: str) -> Any:
        if name.startswith("_"):
            raise SandboxError(f"Names starting with '_' are not allowed: {name}")
        for scope in reversed(self._scopes):
            if name in scope:
                return scope[name]
        raise SandboxError(f"name '{name}' is not defined")

    # ------------------------------------------------------------------ #
    # Expressions
    # ------------------------------------------------------------------ #

    async def _eval(self, node: ast.expr) -> Any:
        self._tick()
        if isinstance(node, ast.Constant):
            return node.value
        if isinstance(node, ast.Name):
            return self._load(node.id)
        if isinstance(node, ast.Await):
            value = await self._eval(node.value)
            if inspect.isawaitable(value):
                return await value
            return value
        if isinstance(node, ast.Call):
            return await self._call(node)
        if isinstance(node, ast.Attribute):
            return self._getattr(await self._eval(node.value), node.attr)
        if isinstance(node, ast.Subscript):
            container = await self._eval(node.value)
            return container[await self._eval(node.slice)]
        if isinstance(node, ast.Slice):
            lower = await self._eval(node.lower) if node.lower else None
            upper = await self._eval(node.upper) if node.upper else None
            step = await self._eval(node.step) if node.step else None
            return slice(lower, upper, step)
        if isinstance(node, ast.BinOp):
            op = _BIN_OPS.get(type(node.op))
            if op is None:
                raise SandboxError(f"Unsupported operator: {_syntax_name(node.op)}")
            left = await self._eval(node.left)
            right = await self._eval(node.right)
            return self._binary(node.op, op, left, right)
        if isinstance(node, ast.UnaryOp):
            return _UNARY_OPS[type(node.op)](await self._eval(node.operand))
        if isinstance(node, ast.BoolOp):
            return await self._bool_op(node)
        if isinstance(node, ast.Compare):
            return await self._compare(node)
        if isinstance(node, ast.IfExp):
            if await self._eval(node.test):
                return await self._eval(node.body)
            return await self._eval(node.orelse)
        if isinstance(node, ast.JoinedStr):
            parts = [await self._eval(value) for value in node.values]
            return "".join(str(part) for part in parts)
        if isinstance(node, ast.FormattedValue):
            return await self._formatted(node)
        if isinstance(node, (ast.List, ast.Tuple, ast.Set)):
            items = await self._eval_elements(node.elts)
            if isinstance(node, ast.Tuple):
                return tuple(items)
            if isinstance(node, ast.Set):
                return set(items)
            return items
        if isinstance(node, ast.Dict):
            result: dict[Any, Any] = {}
            for key_node, value_node in zip(node.keys, node.values):
                value = await self._eval(value_node)
                if key_node is None:
                    result.update(value)
                else:
                    result[await self._eval(key_node)] = value
            return result
        if isinstance(node, (ast.ListComp, ast.SetComp, ast.GeneratorExp)):
            items = await self._comprehension(node.generators, node.elt)
            return set(items) if isinstance(node, ast.SetComp) else items
        if isinstance(node, ast.DictComp):
            pairs = await self._comprehension(
                node.generators, ast.Tuple(elts=[node.key, node.value], ctx=ast.Load())
            )
            return dict(pairs)
        raise SandboxError(f"Unsupported syntax: {_syntax_name(node)}")

    async def _eval_elements(self, elts: list[ast.expr]) -> list[Any]:
        items: list[Any] = []
        for elt in elts:
            if isinstance(elt, ast.Starred):
                items.extend(await self._eval(elt.value))
            else:
                items.append(await self._eval(elt))
        return items

    async def _call(self, node: ast.Call) -> Any:
        func = await self._eval(node.func)
        if not callable(func):
            raise TypeError(f"'{type(func).__name__}' object is not callable")
        args = await self._eval_elements(node.args)
        kwargs: dict[str, Any] = {}
        for keyword in node.keywords:
            value = await self._eval(keyword.value)
            if keyword.arg is None:
                if not isinstance(value, dict):
                    raise TypeError("argument after ** must be a dict")
                kwargs.update(value)
            else:
                kwargs[keyword.arg] = value
        return func(*args, **kwargs)

    def _getattr(self, value: Any, attr: str) -> Any:
        if attr.startswith("_"):
            raise SandboxError(f"Access to attribute '{attr}' is not allowed")
        if attr not in allowed_attributes(value):
            raise SandboxError(
                f"'{type(value).__name__}' object has no accessible attribute '{attr}'"
            )
        return getattr(value, attr)

    def _binary(self, op_node: ast.operator, op: Callable[[Any, Any], Any], left: Any, right: Any) -> Any:
        _check_result_size(op_node, left, right)
        return op(left, right)

    async def _bool_op(self, node: ast.BoolOp) -> Any:
        value: Any = None
        for operand in node.values:
            value = await self._eval(operand)
            if isinstance(node.op, ast.And) and not value:
                return value
            if isinstance(node.op, ast.Or) and value:
                return value
        return value

    async def _compare(self, node: ast.Compare) -> bool:
        left = await self._eval(node.left)
        for op_node, comparator in zip(node.ops, node.comparators):
            right = await self._eval(comparator)
            if not _COMPARE_OPS[type(op_node)](left, right):
                return False
            left = right
        return True

    async def _formatted(self, node: ast.FormattedValue) -> str:
        value = await self._eval(node.value)
        if node.conversion == ord("r"):
            value = repr(value)
        elif node.conversion == ord("a"):
            value = ascii(value)
        elif node.conversion == ord("s"):
            value = str(value)
        spec = ""
        if node.format_spec is not None:
            spec = await self._eval(node.format_spec)
        return format(value, spec)

    async def _comprehension(self, generators: list[ast.comprehension], elt: ast.expr) -> list[Any]:
        results: list[Any] = []
        self._scopes.append({})
        try:
            await self._walk_generators(generators, 0, elt, results)
        finally:
            self._scopes.pop()
        return results

    async def _walk_generators(
        self,
        generators: list[ast.comprehension],
        index: int,
        elt: ast.expr,
        results: list[Any],
    ) -> None:
        if index == len(generators):
            results.append(await self._eval(elt))
            return
        generator = generators[index]
        if generator.is_async:
            raise SandboxError("Unsupported syntax: async comprehension")
        for item in await self._eval(generator.iter):
            self._tick()
            await self._assign(generator.target, item)
            for condition in generator.ifs:
                if not await self._eval(condition):
                    break
            else:
                await self._walk_generators(generators, index + 1, elt, results)


def _check_result_size(op_node: ast.operator, left: Any, right: Any) -> None:
    """Reject operations whose result would be too large to compute quickly.

    Evaluation is synchronous between awaits, so a single huge integer or
    sequence operation cannot be interrupted by the run timeout.
    """
    if isinstance(op_node, ast.Pow) and isinstance(right, int):
        if abs(right) > MAX_EXPONENT:
            raise SandboxError(f"Exponent larger than {MAX_EXPONENT} is not allowed")
        if isinstance(left, int) and right > 0 and left.bit_length() * right > MAX_INTEGER_BITS:
            raise SandboxError("Integer result is too large")
    elif isinstance(op_node, ast.Mult):
        if isinstance(left, int) and isinstance(right, int):
            if left.bit_length() + right.bit_length() > MAX_INTEGER_BITS:
                raise SandboxError("Integer result is too large")
            return
        for seq, count in ((left, right), (right, left)):
            if isinstance(seq, (str, list, tuple)) and isinstance(count, int):
                if len(seq) * count > MAX_SEQUENCE_LENGTH:
                    raise SandboxError("Sequence repetition result is too large")
    elif isinstance(op_node, ast.Add):
        if isinstance(left, (str, list, tuple)) and isinstance(right, (str, list, tuple)):
            if len(left) + len(right) > MAX_SEQUENCE_LENGTH:
                raise SandboxError("Sequence concatenation result is too large")


def _as_load(target: ast.expr) -> ast.expr:
    """Return a load-context copy of an assignment target."""
    if isinstance(target, ast.Name):
        return ast.Name(id=target.id, ctx=ast.Load())
    if isinstance(target, ast.Subscript):
        return ast.Subscript(value=target.value, slice=target.slice, ctx=ast.Load())
    raise SandboxError(f"Unsupported assignment target: {_syntax_name(target)}")

"""
Lowers Ember ASTs into backend IR.

Classes:
    - Session: One compilation session; owns the backend module, the persistent
      prototype table and the per-function variable scope.
    - CodeGen: Walks AST nodes and issues backend operations for each variant.

Lowering contract:
    - NumberExpr     → constant
    - VariableExpr   → scope lookup, UnknownNameError when absent
    - BinaryExpr     → lhs then rhs, then add/sub/mul/div, or ult/ueq widened to float
    - CallExpr       → resolve callee, check arity before lowering any argument,
                       lower arguments left to right, emit call
    - Prototype      → declare (RedefinitionError / ArityError on conflicts)
    - Function       → declare, register prototype, bind parameters, lower body,
                       return; on failure nothing of the attempt survives
    - IfExpr         → compare cond against 0.0, branch, lower both arms, merge
                       the arms' exit blocks with a phi

Every failure is raised as a `LangError` subclass and left for the unit driver
to report. Trees deeper than `MAX_LOWERING_DEPTH` raise `NestingError` instead of
exhausting the interpreter stack.

Example:
    >>> session = Session()
    >>> fn = CodeGen(session).lower(Parser(tokenize("def id : x { x }")).parse_definition())
"""

from ember.ember_ast import (
    ASTNode,
    BinaryExpr,
    CallExpr,
    Function,
    IfExpr,
    NumberExpr,
    Prototype,
    VariableExpr,
)
from ember.ember_constants import MAX_LOWERING_DEPTH
from ember.ember_errors import (
    ArityError,
    NestingError,
    OperatorError,
    RedefinitionError,
    UnknownNameError,
)
from ember.ember_ir import Backend, IRFunction, IRModule, Value

ARITH_OPCODES: dict[str, str] = {"+": "add", "-": "sub", "*": "mul", "/": "div"}
COMPARE_OPCODES: dict[str, str] = {"<": "ult", "=": "ueq"}


class Session:
    """State shared by every unit lowered in one run.

    Attributes:
        backend (Backend): The IR backend; an `IRModule` unless one is supplied.
        prototypes (dict[str, Prototype]): Declared prototypes by name. Persists
            across units so later units can call earlier functions.
        named_values (dict[str, Value]): Parameter bindings of the function
            currently being lowered. Cleared at the start of every function.
    """

    def __init__(self, backend: Backend | None = None) -> None:
        self.backend: Backend = backend if backend is not None else IRModule()
        self.prototypes: dict[str, Prototype] = {}
        self.named_values: dict[str, Value] = {}


class CodeGen:
    """Lowers AST nodes against a `Session`'s backend."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self.depth = 0

    @property
    def backend(self) -> Backend:
        return self.session.backend

    def lower(self, node: ASTNode) -> Value | IRFunction:
        self.depth += 1
        try:
            if self.depth > MAX_LOWERING_DEPTH:
                raise NestingError(
                    "Expression nested too deeply to compile",
                    getattr(node, "line", 0),
                    getattr(node, "col", 0),
                )
            match node:
                case NumberExpr():
                    return self.lower_number(node)
                case VariableExpr():
                    return self.lower_variable(node)
                case BinaryExpr():
                    return self.lower_binary(node)
                case CallExpr():
                    return self.lower_call(node)
                case IfExpr():
                    return self.lower_if(node)
                case Prototype():
                    return self.lower_prototype(node)
                case Function():
                    return self.lower_function(node)
                case _:
                    raise TypeError(f"Cannot lower {type(node).__name__}")
        finally:
            self.depth -= 1

    def lower_value(self, node: ASTNode) -> Value:
        value = self.lower(node)
        if isinstance(value, IRFunction):
            raise TypeError(f"{type(node).__name__} does not produce a value")
        return value

    def get_function(self, name: str) -> IRFunction | None:
        """Finds a materialized function, else declares one from a stored prototype."""
        fn = self.backend.lookup_function(name)
        if fn is not None:
            return fn
        proto = self.session.prototypes.get(name)
        if proto is not None:
            return self.lower_prototype(proto)
        return None

    # Expressions

    def lower_number(self, node: NumberExpr) -> Value:
        return self.backend.constant(node.value)

    def lower_variable(self, node: VariableExpr) -> Value:
        value = self.session.named_values.get(node.name)
        if value is None:
            raise UnknownNameError(
                f"Unknown variable name '{node.name}'", node.line, node.col
            )
        return value

    def lower_binary(self, node: BinaryExpr) -> Value:
        lhs = self.lower_value(node.lhs)
        rhs = self.lower_value(node.rhs)

        if node.op in ARITH_OPCODES:
            return self.backend.binary_op(ARITH_OPCODES[node.op], lhs, rhs)
        if node.op in COMPARE_OPCODES:
            cmp = self.backend.binary_op(COMPARE_OPCODES[node.op], lhs, rhs)
            return self.backend.to_float(cmp)
        raise OperatorError(
            f"Invalid binary operator '{node.op}'", node.line, node.col
        )

    def lower_call(self, node: CallExpr) -> Value:
        fn = self.get_function(node.callee)
        if fn is None:
            raise UnknownNameError(
                f"Unknown function referenced: {node.callee}", node.line, node.col
            )

        if len(fn.args) != len(node.args):
            raise ArityError(
                f"Incorrect number of arguments passed to '{node.callee}'. "
                f"Expected {len(fn.args)}, got {len(node.args)}",
                node.line,
                node.col,
            )

        args = [self.lower_value(arg) for arg in node.args]
        return self.backend.call(fn, args)

    def lower_if(self, node: IfExpr) -> Value:
        cond = self.lower_value(node.cond)
        cond = self.backend.binary_op("one", cond, self.backend.constant(0.0))

        then_block, else_block, merge_block = self.backend.branch_on_condition(cond)

        self.backend.position_at_end(then_block)
        then_value = self.lower_value(node.then)
        # the arm may have added blocks; the one that jumps is the predecessor
        then_exit = self.backend.jump(merge_block)

        self.backend.position_at_end(else_block)
        else_value = self.lower_value(node.orelse)
        else_exit = self.backend.jump(merge_block)

        self.backend.position_at_end(merge_block)
        return self.backend.merge_values(
            [(then_value, then_exit), (else_value, else_exit)]
        )

    # Declarations

    def lower_prototype(self, node: Prototype) -> IRFunction:
        fn = self.backend.lookup_function(node.name)
        if fn is None:
            fn = self.backend.declare_function(node.name, node.arity)
            # arguments are named once; later prototypes bind by position
            for arg, name in zip(fn.args, node.params):
                arg.name = name
        elif not fn.is_declaration:
            raise RedefinitionError(
                f"Redefinition of function '{node.name}'", node.line, node.col
            )
        elif len(fn.args) != node.arity:
            raise ArityError(
                f"Redefinition of function '{node.name}' with different number of args. "
                f"Expected {len(fn.args)}, got {node.arity}",
                node.line,
                node.col,
            )

        return fn

    def lower_function(self, node: Function) -> IRFunction:
        proto = node.proto
        previous = self.session.prototypes.get(proto.name)
        existed = self.backend.lookup_function(proto.name) is not None

        fn = self.lower_prototype(proto)
        self.session.prototypes[proto.name] = proto

        scope = self.session.named_values
        scope.clear()
        try:
            self.backend.begin_function_body(fn)
            for arg, name in zip(fn.args, proto.params):
                scope[name] = arg
            ret = self.lower_value(node.body)
            self.backend.finish_function(fn, ret)
        except Exception:
            self._abandon(fn, existed, previous)
            raise
        finally:
            scope.clear()
        return fn

    def _abandon(
        self, fn: IRFunction, existed: bool, previous: Prototype | None
    ) -> None:
        """Undoes a failed definition: body, declaration and prototype entry."""
        if existed:
            self.backend.clear_body(fn)
        else:
            self.backend.discard_function(fn)

        name = fn.name
        if previous is None:
            self.session.prototypes.pop(name, None)
        else:
            self.session.prototypes[name] = previous

    def discard(self, fn: IRFunction) -> None:
        """Removes a function and its prototype, e.g. a transient top-level expression."""
        self.backend.discard_function(fn)
        self.session.prototypes.pop(fn.name, None)


__all__ = ["ARITH_OPCODES", "COMPARE_OPCODES", "CodeGen", "Session"]

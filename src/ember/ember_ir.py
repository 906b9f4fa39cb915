"""
Backend capability interface and the LLVM backend for Ember.

The lowering pass talks to its backend only through the `Backend` protocol, so
any object providing these operations can stand in for the real IR (tests use
a recording double). `IRModule` is the reference implementation, built on
`llvmlite.ir`: every function takes and returns `double`, and every function
lives in one `ir.Module` until it is discarded.

Classes:
    Backend (Protocol): Operations the lowering pass consumes.
    IRModule: The llvmlite-backed reference backend.

Operation kinds accepted by `IRModule.binary_op`:
    add, sub, mul, div          fadd / fsub / fmul / fdiv
    ult, ueq                    unordered fcmp (true if either side is NaN)
    one                         ordered fcmp not-equal

Finished functions are checked with the LLVM verifier. Execution JIT-compiles
the function and everything it can call with MCJIT; declarations without a
body bind to the host symbol of the same name (the C math library is loaded
into the symbol search path first).

Raises:
    IRError: When an operation would produce malformed IR.
    ExecutionError: When a compiled function cannot be run.
"""

from __future__ import annotations

import ctypes
import ctypes.util
import functools
from collections.abc import Sequence
from typing import Protocol

from llvmlite import binding, ir

from ember.ember_errors import ExecutionError, IRError

DOUBLE = ir.DoubleType()

IRFunction = ir.Function
BasicBlock = ir.Block
Value = ir.Value

ARITH_OPS: dict[str, str] = {
    "add": "fadd",
    "sub": "fsub",
    "mul": "fmul",
    "div": "fdiv",
}
COMPARE_OPS: dict[str, tuple[str, str]] = {
    "ult": ("fcmp_unordered", "<"),
    "ueq": ("fcmp_unordered", "=="),
    "one": ("fcmp_ordered", "!="),
}


class Backend(Protocol):  # pragma: no cover
    """Protocol for the IR backend consumed by the lowering pass.

    Every operation except `constant` may raise.
    """

    def declare_function(self, name: str, arity: int) -> IRFunction: ...

    def lookup_function(self, name: str) -> IRFunction | None: ...

    def begin_function_body(self, fn: IRFunction) -> BasicBlock: ...

    def constant(self, value: float) -> Value: ...

    def binary_op(self, kind: str, lhs: Value, rhs: Value) -> Value: ...

    def to_float(self, value: Value) -> Value: ...

    def call(self, fn: IRFunction, args: Sequence[Value]) -> Value: ...

    def branch_on_condition(
        self, cond: Value
    ) -> tuple[BasicBlock, BasicBlock, BasicBlock]: ...

    def position_at_end(self, block: BasicBlock) -> None: ...

    def jump(self, target: BasicBlock) -> BasicBlock: ...

    def merge_values(self, incoming: Sequence[tuple[Value, BasicBlock]]) -> Value: ...

    def finish_function(self, fn: IRFunction, value: Value) -> None: ...

    def clear_body(self, fn: IRFunction) -> None: ...

    def discard_function(self, fn: IRFunction) -> None: ...

    def execute(self, fn: IRFunction) -> float: ...


class IRModule:
    """
    Reference implementation of `Backend` over `llvmlite.ir`.

    Attributes:
        name (str): Module name.
        module (ir.Module): The module holding every live function.
        builder (ir.IRBuilder): Instruction builder; unpositioned between bodies.
    """

    def __init__(self, name: str = "main") -> None:
        self.name = name
        self.module = ir.Module(name=name)
        self.builder = ir.IRBuilder()

    @property
    def functions(self) -> dict[str, IRFunction]:
        """Live functions by name, in declaration order."""
        return {fn.name: fn for fn in self.module.functions}

    # Functions

    def declare_function(self, name: str, arity: int) -> IRFunction:
        if name in self.module.globals:
            raise IRError(f"Function '{name}' is already declared")
        fnty = ir.FunctionType(DOUBLE, [DOUBLE] * arity)
        return ir.Function(self.module, fnty, name=name)

    def lookup_function(self, name: str) -> IRFunction | None:
        fn = self.module.globals.get(name)
        return fn if isinstance(fn, ir.Function) else None

    def begin_function_body(self, fn: IRFunction) -> BasicBlock:
        if not fn.is_declaration:
            raise IRError(f"Function '{fn.name}' already has a body")
        block = fn.append_basic_block("entry")
        self.builder = ir.IRBuilder(block)
        return block

    def finish_function(self, fn: IRFunction, value: Value) -> None:
        self.current_block()
        self.builder.ret(value)
        self.builder = ir.IRBuilder()
        self.verify(fn)

    def clear_body(self, fn: IRFunction) -> None:
        block = self.builder.block
        if block is not None and block.function is fn:
            self.builder = ir.IRBuilder()
        fn.blocks.clear()

    def discard_function(self, fn: IRFunction) -> None:
        self.clear_body(fn)
        if self.module.globals.get(fn.name) is not fn:
            return

        # the module scope never forgets a name, so survivors move to a fresh module
        module = ir.Module(name=self.name)
        for value in self.module.globals.values():
            if value is fn:
                continue
            module.scope.register(value.name)
            module.add_global(value)
            value.parent = module
        self.module = module

    # Instructions

    def current_block(self) -> BasicBlock:
        """Returns the insertion block, which must still accept instructions."""
        block = self.builder.block
        if block is None:
            raise IRError("No insertion point")
        if block.is_terminated:
            raise IRError(f"Block '{block.name}' is already terminated")
        return block

    def position_at_end(self, block: BasicBlock) -> None:
        self.builder.position_at_end(block)

    def constant(self, value: float) -> Value:
        return ir.Constant(DOUBLE, float(value))

    def binary_op(self, kind: str, lhs: Value, rhs: Value) -> Value:
        if kind in ARITH_OPS:
            self.current_block()
            emit = getattr(self.builder, ARITH_OPS[kind])
            return emit(lhs, rhs, f"{kind}tmp")
        if kind in COMPARE_OPS:
            self.current_block()
            method, op = COMPARE_OPS[kind]
            return getattr(self.builder, method)(op, lhs, rhs, "cmptmp")
        raise IRError(f"Unknown binary opcode '{kind}'")

    def to_float(self, value: Value) -> Value:
        self.current_block()
        return self.builder.uitofp(value, DOUBLE, "booltmp")

    def call(self, fn: IRFunction, args: Sequence[Value]) -> Value:
        if len(args) != len(fn.args):
            raise IRError(
                f"Call to '{fn.name}' with {len(args)} arguments, expected {len(fn.args)}"
            )
        self.current_block()
        return self.builder.call(fn, list(args), "calltmp")

    def branch_on_condition(
        self, cond: Value
    ) -> tuple[BasicBlock, BasicBlock, BasicBlock]:
        fn = self.current_block().function
        then = fn.append_basic_block("then")
        orelse = fn.append_basic_block("else")
        merge = fn.append_basic_block("merge")
        self.builder.cbranch(cond, then, orelse)
        return then, orelse, merge

    def jump(self, target: BasicBlock) -> BasicBlock:
        """Branches to `target` and returns the block that branched."""
        block = self.current_block()
        self.builder.branch(target)
        return block

    def merge_values(self, incoming: Sequence[tuple[Value, BasicBlock]]) -> Value:
        block = self.current_block()
        if any(not isinstance(i, ir.PhiInstr) for i in block.instructions):
            raise IRError(f"Phi must lead block '{block.name}'")
        phi = self.builder.phi(DOUBLE, "iftmp")
        for value, origin in incoming:
            phi.add_incoming(value, origin)
        return phi

    # Checking

    def verify(self, fn: IRFunction) -> None:
        """Checks block termination, then runs the LLVM verifier over the module."""
        for block in fn.blocks:
            if not block.is_terminated:
                raise IRError(f"Block '{block.name}' in '{fn.name}' has no terminator")
        try:
            binding.parse_assembly(self.render()).verify()
        except RuntimeError as e:
            raise IRError(f"Invalid IR for '{fn.name}': {e}") from e

    def render(self) -> str:
        return str(self.module)

    # Execution

    def execute(self, fn: IRFunction) -> float:
        """JIT-compiles `fn` with its callees, runs it with no arguments and returns the result."""
        if fn.is_declaration:
            raise ExecutionError(f"Function '{fn.name}' has no body")
        if fn.args:
            raise ExecutionError(
                f"Function '{fn.name}' takes {len(fn.args)} arguments and cannot be executed"
            )

        functions = reachable_functions(fn)
        initialize_native()
        for other in functions:
            if other.is_declaration and binding.address_of_symbol(other.name) is None:
                raise ExecutionError(f"Unresolved external function '{other.name}'")

        unit = ir.Module(name=f"{self.name}.{fn.name}")
        for other in functions:
            unit.add_global(other)
        target_machine = binding.Target.from_default_triple().create_target_machine()
        unit.triple = binding.get_default_triple()
        unit.data_layout = str(target_machine.target_data)

        try:
            llvm_module = binding.parse_assembly(str(unit))
            llvm_module.verify()
            engine = binding.create_mcjit_compiler(llvm_module, target_machine)
            engine.finalize_object()
        except RuntimeError as e:
            raise ExecutionError(f"Error compiling '{fn.name}': {e}") from e

        address = engine.get_function_address(fn.name)
        entry = ctypes.CFUNCTYPE(ctypes.c_double)(address)
        return float(entry())


@functools.cache
def initialize_native() -> None:
    """Prepares the host target for JIT compilation and exposes the C math library."""
    binding.initialize_native_target()
    binding.initialize_native_asmprinter()
    libm = ctypes.util.find_library("m")
    if libm is not None:
        binding.load_library_permanently(libm)


def reachable_functions(fn: IRFunction) -> list[IRFunction]:
    """Returns `fn` followed by every function its body can reach through calls."""
    seen: dict[str, IRFunction] = {}
    pending = [fn]
    while pending:
        current = pending.pop()
        if current.name in seen:
            continue
        seen[current.name] = current
        for block in current.blocks:
            for instr in block.instructions:
                if isinstance(instr, ir.CallInstr) and isinstance(instr.callee, ir.Function):
                    pending.append(instr.callee)
    return list(seen.values())


__all__ = [
    "ARITH_OPS",
    "COMPARE_OPS",
    "DOUBLE",
    "Backend",
    "BasicBlock",
    "IRFunction",
    "IRModule",
    "Value",
    "initialize_native",
    "reachable_functions",
]

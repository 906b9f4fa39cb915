import math

import pytest
from llvmlite import ir

from ember.ember_errors import ExecutionError, IRError
from ember.ember_ir import IRFunction, IRModule, reachable_functions


def build_add(module: IRModule) -> IRFunction:
    fn = module.declare_function("add", 2)
    fn.args[0].name, fn.args[1].name = "x", "y"
    module.begin_function_body(fn)
    total = module.binary_op("add", fn.args[0], fn.args[1])
    module.finish_function(fn, total)
    return fn


def build_main(module: IRModule, callee: IRFunction, *args: float) -> IRFunction:
    fn = module.declare_function("main", 0)
    module.begin_function_body(fn)
    result = module.call(callee, [module.constant(a) for a in args])
    module.finish_function(fn, result)
    return fn


def build_compare(module: IRModule, kind: str, lhs: float, rhs: float) -> IRFunction:
    fn = module.declare_function(f"cmp_{kind}", 0)
    module.begin_function_body(fn)
    cmp = module.binary_op(kind, module.constant(lhs), module.constant(rhs))
    module.finish_function(fn, module.to_float(cmp))
    return fn


def test_declare_and_lookup() -> None:
    module = IRModule()
    fn = module.declare_function("f", 1)
    assert module.lookup_function("f") is fn
    assert module.lookup_function("g") is None
    assert fn.is_declaration
    assert len(fn.args) == 1
    assert fn.function_type.return_type == ir.DoubleType()


def test_declaring_twice_is_an_error() -> None:
    module = IRModule()
    module.declare_function("f", 1)
    with pytest.raises(IRError, match="already declared"):
        module.declare_function("f", 1)


def test_name_is_free_again_after_discard() -> None:
    module = IRModule()
    first = module.declare_function("a", 0)
    module.discard_function(first)
    second = module.declare_function("a", 0)
    assert second is not first
    assert module.lookup_function("a") is second


def test_discard_keeps_other_functions_usable() -> None:
    module = IRModule()
    add = build_add(module)
    module.discard_function(module.declare_function("scratch", 0))
    assert list(module.functions) == ["add"]
    assert module.execute(build_main(module, add, 2.0, 3.0)) == 5.0


def test_render_definition_and_declaration() -> None:
    module = IRModule()
    sin = module.declare_function("sin", 1)
    sin.args[0].name = "x"
    build_add(module)
    text = module.render()
    assert 'declare double @"sin"(double %"x")' in text
    assert 'define double @"add"(double %"x", double %"y")' in text
    assert "entry:" in text
    assert '%"addtmp" = fadd double %"x", %"y"' in text
    assert 'ret double %"addtmp"' in text


def test_begin_body_twice_is_an_error() -> None:
    module = IRModule()
    fn = build_add(module)
    with pytest.raises(IRError, match="already has a body"):
        module.begin_function_body(fn)


def test_no_insertion_point() -> None:
    module = IRModule()
    with pytest.raises(IRError, match="No insertion point"):
        module.binary_op("add", module.constant(1.0), module.constant(2.0))


def test_unknown_opcode() -> None:
    module = IRModule()
    fn = module.declare_function("f", 0)
    module.begin_function_body(fn)
    with pytest.raises(IRError, match="Unknown binary opcode"):
        module.binary_op("pow", module.constant(1.0), module.constant(2.0))


def test_insert_after_terminator_is_an_error() -> None:
    module = IRModule()
    fn = module.declare_function("f", 0)
    block = module.begin_function_body(fn)
    module.finish_function(fn, module.constant(1.0))
    module.position_at_end(block)
    with pytest.raises(IRError, match="already terminated"):
        module.binary_op("add", module.constant(1.0), module.constant(2.0))


def test_call_arity_is_checked() -> None:
    module = IRModule()
    add = build_add(module)
    fn = module.declare_function("f", 0)
    module.begin_function_body(fn)
    with pytest.raises(IRError, match="expected 2"):
        module.call(add, [module.constant(1.0)])


def test_verify_rejects_unterminated_block() -> None:
    module = IRModule()
    fn = module.declare_function("f", 0)
    module.begin_function_body(fn)
    with pytest.raises(IRError, match="has no terminator"):
        module.verify(fn)


@pytest.mark.parametrize(
    "kind,op", [("ult", "ult"), ("ueq", "ueq"), ("one", "one")]
)  # type: ignore[misc]
def test_compare_kinds(kind: str, op: str) -> None:
    module = IRModule()
    fn = build_compare(module, kind, 1.0, 2.0)
    cmp, widen, ret = fn.blocks[0].instructions
    assert isinstance(cmp, ir.FCMPInstr) and cmp.op == op
    assert widen.opname == "uitofp"
    assert ret.opname == "ret"


@pytest.mark.parametrize(
    "kind,lhs,rhs,value",
    [
        ("ult", 1.0, 2.0, 1.0),
        ("ult", 2.0, 1.0, 0.0),
        ("ult", math.nan, 1.0, 1.0),
        ("ueq", 3.0, 3.0, 1.0),
        ("ueq", math.nan, 3.0, 1.0),
        ("one", 3.0, 4.0, 1.0),
        ("one", math.nan, 0.0, 0.0),
    ],
)  # type: ignore[misc]
def test_compare_semantics(kind: str, lhs: float, rhs: float, value: float) -> None:
    module = IRModule()
    assert module.execute(build_compare(module, kind, lhs, rhs)) == value


def test_branch_and_merge_structure() -> None:
    module = IRModule()
    fn = module.declare_function("pick", 1)
    module.begin_function_body(fn)
    cond = module.binary_op("one", fn.args[0], module.constant(0.0))
    then, orelse, merge = module.branch_on_condition(cond)
    module.position_at_end(then)
    then_exit = module.jump(merge)
    module.position_at_end(orelse)
    else_exit = module.jump(merge)
    module.position_at_end(merge)
    phi = module.merge_values(
        [(module.constant(1.0), then_exit), (module.constant(2.0), else_exit)]
    )
    module.finish_function(fn, phi)

    assert [b.name for b in fn.blocks] == ["entry", "then", "else", "merge"]
    assert fn.blocks[0].terminator.operands[1:] == [then, orelse]
    assert isinstance(phi, ir.PhiInstr)
    assert [origin for _, origin in phi.incomings] == [then, orelse]
    assert merge.instructions[0] is phi


def test_verify_rejects_mismatched_phi() -> None:
    module = IRModule()
    fn = module.declare_function("f", 1)
    module.begin_function_body(fn)
    cond = module.binary_op("one", fn.args[0], module.constant(0.0))
    then, orelse, merge = module.branch_on_condition(cond)
    module.position_at_end(then)
    then_exit = module.jump(merge)
    module.position_at_end(orelse)
    module.jump(merge)
    module.position_at_end(merge)
    phi = module.merge_values([(module.constant(1.0), then_exit)])
    with pytest.raises(IRError, match="Invalid IR for 'f'"):
        module.finish_function(fn, phi)


def test_phi_must_lead_block() -> None:
    module = IRModule()
    fn = module.declare_function("f", 1)
    entry = module.begin_function_body(fn)
    module.binary_op("add", fn.args[0], fn.args[0])
    with pytest.raises(IRError, match="Phi must lead"):
        module.merge_values([(module.constant(1.0), entry)])


def test_clear_body_keeps_declaration() -> None:
    module = IRModule()
    fn = build_add(module)
    module.clear_body(fn)
    assert fn.is_declaration
    assert module.lookup_function("add") is fn


def test_discard_removes_function_and_insertion_point() -> None:
    module = IRModule()
    fn = module.declare_function("f", 0)
    module.begin_function_body(fn)
    module.discard_function(fn)
    assert module.lookup_function("f") is None
    with pytest.raises(IRError, match="No insertion point"):
        module.current_block()


def test_reachable_functions_follow_calls() -> None:
    module = IRModule()
    add = build_add(module)
    module.declare_function("unused", 0)
    main = build_main(module, add, 1.0, 2.0)
    assert [fn.name for fn in reachable_functions(main)] == ["main", "add"]


def test_execute_call() -> None:
    module = IRModule()
    add = build_add(module)
    main = build_main(module, add, 2.0, 3.0)
    assert module.execute(main) == 5.0


def test_execute_twice() -> None:
    module = IRModule()
    main = build_main(module, build_add(module), 0.5, 0.25)
    assert module.execute(main) == 0.75
    assert module.execute(main) == 0.75


def test_execute_rejects_declarations_and_parameters() -> None:
    module = IRModule()
    decl = module.declare_function("sin", 1)
    with pytest.raises(ExecutionError, match="has no body"):
        module.execute(decl)
    add = build_add(module)
    with pytest.raises(ExecutionError, match="cannot be executed"):
        module.execute(add)


def test_execute_binds_externals() -> None:
    module = IRModule()
    cos = module.declare_function("cos", 1)
    main = build_main(module, cos, 0.0)
    assert module.execute(main) == 1.0


def test_execute_division_by_zero_is_ieee() -> None:
    module = IRModule()
    fn = module.declare_function("main", 0)
    module.begin_function_body(fn)
    quotient = module.binary_op("div", module.constant(1.0), module.constant(0.0))
    module.finish_function(fn, quotient)
    assert module.execute(fn) == math.inf


def test_execute_host_domain_error_is_nan() -> None:
    module = IRModule()
    sqrt = module.declare_function("sqrt", 1)
    main = build_main(module, sqrt, -1.0)
    assert math.isnan(module.execute(main))


def test_unresolved_external_is_rejected_before_running() -> None:
    module = IRModule()
    missing = module.declare_function("ember_no_such_symbol", 0)
    main = build_main(module, missing)
    with pytest.raises(
        ExecutionError, match="Unresolved external function 'ember_no_such_symbol'"
    ):
        module.execute(main)


def test_unreachable_declaration_does_not_block_execution() -> None:
    module = IRModule()
    module.declare_function("ember_no_such_symbol", 0)
    main = build_main(module, build_add(module), 1.0, 1.0)
    assert module.execute(main) == 2.0

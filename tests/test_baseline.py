import pytest

from evmbaseline.baseline import (
    CODE_PADDING,
    CodeAnalysis,
    ExecutionResult,
    Halt,
    analyze,
    analyze_jumpdests,
    check_requirements,
    execute,
    get_baseline_cost_table,
    pad_code,
)
from evmbaseline.instructions import (
    GAS_COSTS,
    UNDEFINED,
    WARM_STORAGE_READ_COST,
    Opcode,
    Revision,
    gas_cost,
)
from evmbaseline.state import ExecutionState, Message, StatusCode

O = Opcode


def _ensure_memory(state, end):
    if end > state.memory.size:
        state.memory.grow(((end + 31) // 32) * 32)


def _push1(state, pc):
    state.stack.push(state.analysis.padded_code[pc + 1])
    return pc + 2


def _add(state, pc):
    a = state.stack.pop()
    b = state.stack.pop()
    state.stack.push(a + b)


def _shl(state, pc):
    shift = state.stack.pop()
    value = state.stack.pop()
    state.stack.push(value << shift)


def _pop(state, pc):
    state.stack.pop()


def _jumpdest(state, pc):
    return None


def _jump(state, pc):
    dst = state.stack.pop()
    jumpdests = state.analysis.jumpdest_map
    if dst >= len(jumpdests) or not jumpdests[dst]:
        raise Halt(StatusCode.BAD_JUMP_DESTINATION)
    return dst


def _mstore8(state, pc):
    offset = state.stack.pop()
    value = state.stack.pop()
    _ensure_memory(state, offset + 1)
    state.memory[offset] = value & 0xFF


def _finish(status):
    def handler(state, pc):
        offset = state.stack.pop()
        size = state.stack.pop()
        if size:
            _ensure_memory(state, offset + size)
        state.output_offset = offset if size else 0
        state.output_size = size
        raise Halt(status)

    return handler


def _invalid(state, pc):
    raise Halt(StatusCode.INVALID_INSTRUCTION)


HANDLERS = {
    O.STOP: lambda state, pc: (_ for _ in ()).throw(Halt(StatusCode.SUCCESS)),
    O.PUSH1: _push1,
    O.ADD: _add,
    O.SHL: _shl,
    O.POP: _pop,
    O.JUMPDEST: _jumpdest,
    O.JUMP: _jump,
    O.MSTORE8: _mstore8,
    O.RETURN: _finish(StatusCode.SUCCESS),
    O.REVERT: _finish(StatusCode.REVERT),
    O.INVALID: _invalid,
}


def _run(code, gas=1000, rev=Revision.CANCUN, handlers=HANDLERS):
    state = ExecutionState(Message(gas=gas), rev, None, code)
    analysis = analyze(rev, code)
    return state, execute(state, analysis, handlers)


# --- analysis ---------------------------------------------------------------


def test_jumpdest_single():
    assert analyze_jumpdests(bytes([O.JUMPDEST])) == [True]


def test_jumpdest_inside_push_data_is_skipped():
    code = bytes([O.PUSH1, O.JUMPDEST, O.JUMPDEST])
    assert analyze_jumpdests(code) == [False, False, True]


def test_jumpdest_truncated_push32():
    code = bytes([O.PUSH32, O.JUMPDEST])
    assert analyze_jumpdests(code) == [False, False]


def test_jumpdest_empty_code():
    assert analyze_jumpdests(b"") == []


def test_jumpdest_map_length_matches_code():
    code = bytes(range(256))
    assert len(analyze_jumpdests(code)) == len(code)


def test_pad_code():
    code = bytes([O.PUSH32, 1, 2])
    padded = pad_code(code)
    assert CODE_PADDING == 33
    assert len(padded) == len(code) + CODE_PADDING
    assert padded.startswith(code)
    assert padded[len(code):] == bytes([O.STOP]) * CODE_PADDING


def test_analyze_legacy():
    code = bytes([O.PUSH1, 4, O.JUMP, O.INVALID, O.JUMPDEST])
    analysis = analyze(Revision.BYZANTIUM, code)
    assert isinstance(analysis, CodeAnalysis)
    assert analysis.executable_code == code
    assert analysis.padded_code == pad_code(code)
    assert analysis.jumpdest_map == analyze_jumpdests(code)


# --- cost table -------------------------------------------------------------


def test_cost_table_matches_gas_costs():
    for rev in Revision:
        assert list(get_baseline_cost_table(rev)) == list(GAS_COSTS[rev])
        assert len(get_baseline_cost_table(rev)) == 256


def test_cost_table_values():
    assert get_baseline_cost_table(Revision.BERLIN)[O.SLOAD] == WARM_STORAGE_READ_COST
    assert get_baseline_cost_table(Revision.FRONTIER)[O.SHL] == UNDEFINED
    assert get_baseline_cost_table(Revision.CONSTANTINOPLE)[O.SHL] == 3


# --- requirement checks -----------------------------------------------------


def _state(gas):
    return ExecutionState(Message(gas=gas), Revision.CANCUN, None, b"")


def test_check_requirements_success_charges_gas():
    state = _state(100)
    table = get_baseline_cost_table(Revision.CANCUN)
    assert check_requirements(O.ADD, table, state, 2) == StatusCode.SUCCESS
    assert state.gas_left == 100 - gas_cost(Revision.CANCUN, O.ADD)


def test_check_requirements_undefined_everywhere():
    state = _state(100)
    table = get_baseline_cost_table(Revision.CANCUN)
    assert check_requirements(0x0C, table, state, 0) == StatusCode.UNDEFINED_INSTRUCTION
    assert state.gas_left == 100


def test_check_requirements_undefined_in_revision():
    state = _state(100)
    table = get_baseline_cost_table(Revision.FRONTIER)
    assert check_requirements(O.SHL, table, state, 2) == StatusCode.UNDEFINED_INSTRUCTION


def test_check_requirements_stack_overflow():
    state = _state(100)
    table = get_baseline_cost_table(Revision.CANCUN)
    assert check_requirements(O.PUSH1, table, state, 1024) == StatusCode.STACK_OVERFLOW
    assert check_requirements(O.PUSH1, table, state, 1023) == StatusCode.SUCCESS


def test_check_requirements_stack_underflow():
    state = _state(100)
    table = get_baseline_cost_table(Revision.CANCUN)
    assert check_requirements(O.ADD, table, state, 1) == StatusCode.STACK_UNDERFLOW
    assert check_requirements(O.SWAP16, table, state, 16) == StatusCode.STACK_UNDERFLOW
    assert state.gas_left == 100


def test_check_requirements_out_of_gas():
    state = _state(2)
    table = get_baseline_cost_table(Revision.CANCUN)
    assert check_requirements(O.ADD, table, state, 2) == StatusCode.OUT_OF_GAS
    assert state.gas_left < 0


# --- execution --------------------------------------------------------------


def test_execute_return_output():
    code = bytes([
        O.PUSH1, 2, O.PUSH1, 3, O.ADD, O.PUSH1, 0, O.MSTORE8,
        O.PUSH1, 1, O.PUSH1, 0, O.RETURN,
    ])
    executed = [O.PUSH1, O.PUSH1, O.ADD, O.PUSH1, O.MSTORE8, O.PUSH1, O.PUSH1, O.RETURN]
    state, result = _run(code, gas=1000)
    assert isinstance(result, ExecutionResult)
    assert result.status == StatusCode.SUCCESS
    assert result.output == b"\x05"
    assert result.gas_left == 1000 - sum(gas_cost(Revision.CANCUN, op) for op in executed)
    assert state.status == StatusCode.SUCCESS


def test_execute_empty_code():
    state, result = _run(b"", gas=50)
    assert result.status == StatusCode.SUCCESS
    assert result.gas_left == 50
    assert result.output == b""


def test_execute_sets_analysis_on_state():
    code = bytes([O.JUMPDEST])
    state = ExecutionState(Message(gas=10), Revision.CANCUN, None, code)
    analysis = analyze(Revision.CANCUN, code)
    execute(state, analysis, HANDLERS)
    assert state.analysis is analysis


def test_execute_truncated_push_reads_padding():
    state, result = _run(bytes([O.PUSH1]), gas=10)
    assert result.status == StatusCode.SUCCESS
    assert list(state.stack) == [0]


def test_execute_revert_keeps_gas_drops_refund():
    code = bytes([O.PUSH1, 0, O.PUSH1, 0, O.REVERT])
    state = ExecutionState(Message(gas=100), Revision.CANCUN, None, code)
    state.gas_refund = 7
    result = execute(state, analyze(Revision.CANCUN, code), HANDLERS)
    assert result.status == StatusCode.REVERT
    assert result.gas_left == 100 - 2 * gas_cost(Revision.CANCUN, O.PUSH1)
    assert result.gas_refund == 0


def test_execute_success_keeps_refund():
    code = bytes([O.JUMPDEST])
    state = ExecutionState(Message(gas=100), Revision.CANCUN, None, code)
    state.gas_refund = 7
    result = execute(state, analyze(Revision.CANCUN, code), HANDLERS)
    assert result.gas_refund == 7


def test_execute_out_of_gas():
    code = bytes([O.PUSH1, 1, O.PUSH1, 2, O.ADD])
    state, result = _run(code, gas=5)
    assert result.status == StatusCode.OUT_OF_GAS
    assert result.gas_left == 0


def test_execute_bad_jump():
    code = bytes([O.PUSH1, 3, O.JUMP, O.STOP])
    state, result = _run(code)
    assert result.status == StatusCode.BAD_JUMP_DESTINATION
    assert result.gas_left == 0


def test_execute_valid_jump_skips_invalid():
    code = bytes([O.PUSH1, 4, O.JUMP, O.INVALID, O.JUMPDEST])
    state, result = _run(code)
    assert result.status == StatusCode.SUCCESS


def test_execute_invalid_instruction():
    state, result = _run(bytes([O.INVALID]))
    assert result.status == StatusCode.INVALID_INSTRUCTION
    assert result.gas_left == 0


def test_execute_undefined_opcode_charges_nothing():
    state, result = _run(bytes([0x0C]), gas=40)
    assert result.status == StatusCode.UNDEFINED_INSTRUCTION
    assert state.gas_left == 40
    assert result.gas_left == 0


def test_execute_missing_handler_is_undefined():
    state, result = _run(bytes([O.MUL]), gas=40)
    assert result.status == StatusCode.UNDEFINED_INSTRUCTION
    assert state.gas_left == 40


def test_execute_stack_underflow():
    state, result = _run(bytes([O.ADD]))
    assert result.status == StatusCode.STACK_UNDERFLOW


def test_execute_depends_on_revision():
    code = bytes([O.PUSH1, 1, O.PUSH1, 1, O.SHL])
    _, frontier = _run(code, rev=Revision.FRONTIER)
    assert frontier.status == StatusCode.UNDEFINED_INSTRUCTION
    state, constantinople = _run(code, rev=Revision.CONSTANTINOPLE)
    assert constantinople.status == StatusCode.SUCCESS
    assert list(state.stack) == [2]


def test_execute_negative_position_raises():
    handlers = dict(HANDLERS)
    handlers[O.JUMPDEST] = lambda state, pc: -1
    with pytest.raises(ValueError):
        _run(bytes([O.JUMPDEST]), handlers=handlers)


def test_halt_carries_status():
    halt = Halt(StatusCode.REVERT)
    assert halt.status == StatusCode.REVERT
    assert Halt().status == StatusCode.SUCCESS
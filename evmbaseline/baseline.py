"""Baseline interpreter: jump destination analysis, requirement checks and dispatch."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional, Sequence

from .instructions import GAS_COSTS, Opcode, Revision, has_const_gas_cost, traits_of
from .state import STACK_LIMIT, ExecutionState, StatusCode

#: Padding appended to legacy code: 32 bytes for the data of a truncated PUSH32
#: at the very end and one more STOP so the code always terminates.
CODE_PADDING = 32 + 1

#: Base gas costs of one revision, indexed by opcode byte.
CostTable = Sequence[int]

#: An instruction implementation. It receives the state and the position of
#: the instruction in the code. Returning ``None`` continues with the next
#: byte, returning an int continues at that position. Raising :class:`Halt`
#: ends the execution with the given status.
Handler = Callable[[ExecutionState, int], Optional[int]]

_CONST_COST = tuple(has_const_gas_cost(op) for op in range(256))


class Halt(Exception):
    """Raised by an instruction implementation to end execution."""

    def __init__(self, status: StatusCode = StatusCode.SUCCESS) -> None:
        self.status = StatusCode(status)
        super().__init__(self.status.name)


@dataclass(frozen=True)
class CodeAnalysis:
    """Executable code with its map of valid jump destinations."""

    executable_code: bytes
    jumpdest_map: list[bool]
    padded_code: Optional[bytes] = field(default=None, repr=False)

    def _runnable(self) -> bytes:
        return self.padded_code if self.padded_code is not None else self.executable_code


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of an execution."""

    status: StatusCode
    gas_left: int
    gas_refund: int
    output: bytes = b""


def analyze_jumpdests(code: bytes) -> list[bool]:
    """Return a map telling which code offsets hold a JUMPDEST outside PUSH data."""
    jumpdests = [False] * len(code)
    position = 0
    while position < len(code):
        op = code[position]
        if Opcode.PUSH1 <= op <= Opcode.PUSH32:
            position += op - Opcode.PUSH1 + 1
        elif op == Opcode.JUMPDEST:
            jumpdests[position] = True
        position += 1
    return jumpdests


def pad_code(code: bytes) -> bytes:
    """Return the code followed by the STOP padding."""
    return bytes(code) + bytes([Opcode.STOP]) * CODE_PADDING


def analyze(rev: Revision, code: bytes) -> CodeAnalysis:
    """Analyze legacy code for execution in the given revision."""
    Revision(rev)
    code = bytes(code)
    return CodeAnalysis(code, analyze_jumpdests(code), pad_code(code))


def get_baseline_cost_table(rev: Revision) -> CostTable:
    """Return the base gas cost table of the revision."""
    return GAS_COSTS[Revision(rev)]


def check_requirements(
    op: int, cost_table: CostTable, state: ExecutionState, stack_height: int
) -> StatusCode:
    """Check an instruction is defined, the stack fits, and charge its base gas."""
    op = int(op)
    if _CONST_COST[op]:
        cost = GAS_COSTS[Revision.FRONTIER][op]
    else:
        cost = cost_table[op]
    if cost < 0:
        return StatusCode.UNDEFINED_INSTRUCTION

    traits = traits_of(op)
    if traits.stack_height_change > 0 and stack_height >= STACK_LIMIT:
        return StatusCode.STACK_OVERFLOW
    if traits.stack_height_required > 0 and stack_height < traits.stack_height_required:
        return StatusCode.STACK_UNDERFLOW

    state.gas_left -= cost
    if state.gas_left < 0:
        return StatusCode.OUT_OF_GAS
    return StatusCode.SUCCESS


def _stop(state: ExecutionState, pc: int) -> Optional[int]:
    raise Halt(StatusCode.SUCCESS)


def _dispatch(
    cost_table: CostTable,
    state: ExecutionState,
    code: bytes,
    handlers: Mapping[int, Handler],
) -> StatusCode:
    pc = 0
    while True:
        if pc < 0:
            raise ValueError(f"negative code position: {pc}")
        op = code[pc] if pc < len(code) else Opcode.STOP
        handler = handlers.get(op)
        if handler is None and op == Opcode.STOP:
            handler = _stop
        if handler is None:
            return StatusCode.UNDEFINED_INSTRUCTION

        status = check_requirements(op, cost_table, state, len(state.stack))
        if status != StatusCode.SUCCESS:
            return status

        try:
            next_pc = handler(state, pc)
        except Halt as halt:
            return halt.status
        pc = pc + 1 if next_pc is None else next_pc


def execute(
    state: ExecutionState, analysis: CodeAnalysis, handlers: Mapping[int, Handler]
) -> ExecutionResult:
    """Run the analysed code on the state using the given instruction handlers."""
    state.analysis = analysis
    cost_table = get_baseline_cost_table(state.revision)
    state.status = _dispatch(cost_table, state, analysis._runnable(), handlers)

    status = state.status
    gas_left = state.gas_left if status in (StatusCode.SUCCESS, StatusCode.REVERT) else 0
    gas_refund = state.gas_refund if status == StatusCode.SUCCESS else 0
    output = b""
    if state.output_size != 0:
        start = state.output_offset
        output = bytes(state.memory[start:start + state.output_size])
    return ExecutionResult(status, gas_left, gas_refund, output)
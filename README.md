# evmbaseline

The core of a baseline Ethereum Virtual Machine interpreter, in plain Python,
with no dependencies outside the standard library.

## Modules

- `evmbaseline.instructions`: the `Revision` enum (`FRONTIER` through `PRAGUE`),
  the `Opcode` enum, per-instruction `Traits` (name, immediate size, whether it
  terminates, stack items required, stack height change, revision introduced),
  and the per-revision base gas costs. Use `gas_cost(rev, op)`, `traits_of(op)`
  and `has_const_gas_cost(op)`. An opcode undefined in a revision has the cost
  `UNDEFINED` (-1). Opcodes outside 0..255 raise `ValueError`.
- `evmbaseline.state`: the state of a single call.
  - `Message` and `StatusCode`.
  - `Memory`: word-aligned and growable. `grow()` raises `ValueError` unless the
    new size is a multiple of 32 and larger than the current size. `clear()` and
    `view()` are also provided.
  - `Stack`: up to 1024 words, where index 0 is the top. `push`, `pop` and `reset`
    are provided.
  - `ExecutionState`: has `reset()`, `in_static_mode()`, and `get_tx_context()`,
    which fetches the transaction context from the host once.
- `evmbaseline.baseline`: code analysis and the dispatch loop.
  - `analyze(rev, code)` builds a `CodeAnalysis`. It holds the code, the code
    padded with 33 `STOP` bytes, and the map of valid `JUMPDEST` offsets, which
    `analyze_jumpdests` builds. `JUMPDEST` bytes inside `PUSH` data are not valid
    destinations.
  - `execute(state, analysis, handlers)` runs the code and returns an
    `ExecutionResult`.

## How execution works

For each instruction, `execute` calls `check_requirements`. That checks the
instruction is defined in the state's revision, checks that the stack has enough
items and room for a result, and charges the base gas from
`get_baseline_cost_table(rev)`. Only after that does it call the handler for the
opcode.

A handler is `handler(state, pc)`:

- it returns `None` to continue with the next byte, or
- it returns a code position to continue from there, or
- it raises `Halt(status)` to end the run.

`STOP` needs no handler. Reaching an opcode with no handler ends the run with
`UNDEFINED_INSTRUCTION`.

The run can also end for these reasons:

- too few stack items: `STACK_UNDERFLOW`
- a full stack: `STACK_OVERFLOW`
- exhausted gas: `OUT_OF_GAS`

Only a successful or reverted run keeps its gas left, and only a successful run
keeps its refund. The result output is the memory range
`state.output_offset`/`state.output_size`.

## Example

```python
from evmbaseline.baseline import analyze, execute
from evmbaseline.instructions import Opcode, Revision
from evmbaseline.state import ExecutionState, Message

def push1(state, pc):
    state.stack.push(state.analysis.padded_code[pc + 1])
    return pc + 2

def add(state, pc):
    state.stack.push(state.stack.pop() + state.stack.pop())

code = bytes([Opcode.PUSH1, 2, Opcode.PUSH1, 3, Opcode.ADD, Opcode.STOP])
state = ExecutionState(message=Message(gas=100), revision=Revision.LONDON, code=code)
result = execute(state, analyze(Revision.LONDON, code), {Opcode.PUSH1: push1, Opcode.ADD: add})
print(result.status, result.gas_left, state.stack[0])  # StatusCode.SUCCESS 91 5
```

## What it does not do

The package has no built-in instruction implementations: arithmetic, memory,
storage, calls, logs and the rest are supplied by you as handlers. It has no
host, no world state, no Keccak hashing and no command-line tool. It does not
recognise EOF containers: `analyze` treats all code as legacy code.

## Tests

```
pip install ".[test]"
pytest
```
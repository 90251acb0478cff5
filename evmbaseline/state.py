"""Execution state: EVM memory, stack, call message and per-call state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from typing import Any, Optional, Protocol, Union

from .instructions import Revision

#: The maximum number of EVM stack items.
STACK_LIMIT = 1024

_WORD_MODULUS = 1 << 256


class StatusCode(IntEnum):
    """Outcome of an EVM execution."""

    SUCCESS = 0
    FAILURE = 1
    REVERT = 2
    OUT_OF_GAS = 3
    INVALID_INSTRUCTION = 4
    UNDEFINED_INSTRUCTION = 5
    STACK_OVERFLOW = 6
    STACK_UNDERFLOW = 7
    BAD_JUMP_DESTINATION = 8
    INVALID_MEMORY_ACCESS = 9
    CALL_DEPTH_EXCEEDED = 10
    STATIC_MODE_VIOLATION = 11
    PRECOMPILE_FAILURE = 12
    CONTRACT_VALIDATION_FAILURE = 13
    ARGUMENT_OUT_OF_RANGE = 14
    INTERNAL_ERROR = -1
    REJECTED = -2
    OUT_OF_MEMORY = -3


class CallKind(IntEnum):
    """Kind of a call message."""

    CALL = 0
    DELEGATECALL = 1
    CALLCODE = 2
    CREATE = 3
    CREATE2 = 4


class MessageFlags(IntFlag):
    """Flags carried by a call message."""

    NONE = 0
    STATIC = 1


ZERO_ADDRESS = bytes(20)
ZERO_WORD = bytes(32)


@dataclass
class Message:
    """A call or create message passed to the interpreter."""

    kind: CallKind = CallKind.CALL
    flags: int = MessageFlags.NONE
    depth: int = 0
    gas: int = 0
    recipient: bytes = ZERO_ADDRESS
    sender: bytes = ZERO_ADDRESS
    input_data: bytes = b""
    value: bytes = ZERO_WORD
    create2_salt: bytes = ZERO_WORD
    code_address: bytes = ZERO_ADDRESS


@dataclass
class TxContext:
    """Transaction and block information provided by the host."""

    gas_price: bytes = ZERO_WORD
    origin: bytes = ZERO_ADDRESS
    coinbase: bytes = ZERO_ADDRESS
    block_number: int = 0
    block_timestamp: int = 0
    block_gas_limit: int = 0
    block_prev_randao: bytes = ZERO_WORD
    chain_id: bytes = ZERO_WORD
    block_base_fee: bytes = ZERO_WORD


class Host(Protocol):
    """The part of the host interface used by the execution state."""

    def get_tx_context(self) -> TxContext:
        ...


class Memory:
    """The EVM memory.

    Capacity starts at 4 KiB and at least doubles when it has to grow.
    """

    PAGE_SIZE = 4 * 1024

    def __init__(self) -> None:
        self._capacity = self.PAGE_SIZE
        self._data = bytearray(self._capacity)
        self._size = 0

    @property
    def size(self) -> int:
        return self._size

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return self._size

    def grow(self, new_size: int) -> None:
        """Grow memory to ``new_size`` bytes, zero-filling the extension."""
        if new_size % 32 != 0:
            raise ValueError(f"memory size must be a multiple of 32: {new_size}")
        if new_size <= self._size:
            raise ValueError(
                f"memory can only grow: {new_size} <= current size {self._size}"
            )
        if new_size > self._capacity:
            capacity = self._capacity * 2
            if capacity < new_size:
                page = self.PAGE_SIZE
                capacity = ((new_size + page - 1) // page) * page
            data = bytearray(capacity)
            data[: self._size] = self._data[: self._size]
            self._data = data
            self._capacity = capacity
        self._data[self._size:new_size] = bytes(new_size - self._size)
        self._size = new_size

    def clear(self) -> None:
        """Set the size to zero, keeping the allocated capacity."""
        self._size = 0

    def view(self) -> memoryview:
        """Return a live view of the current memory contents."""
        return memoryview(self._data)[: self._size]

    def __bytes__(self) -> bytes:
        return bytes(self._data[: self._size])

    def __getitem__(self, key: Union[int, slice]) -> Union[int, bytes]:
        if isinstance(key, slice):
            return bytes(self.view()[key])
        return self.view()[key]

    def __setitem__(self, key: Union[int, slice], value: Any) -> None:
        self.view()[key] = value


class Stack:
    """The EVM stack of 256-bit words; index 0 is the top item."""

    def __init__(self) -> None:
        self._items: list[int] = []

    def __len__(self) -> int:
        return len(self._items)

    def push(self, value: int) -> None:
        """Push a word, reduced modulo 2**256."""
        if len(self._items) >= STACK_LIMIT:
            raise OverflowError("stack overflow")
        self._items.append(int(value) % _WORD_MODULUS)

    def pop(self) -> int:
        """Remove and return the top item."""
        if not self._items:
            raise IndexError("stack underflow")
        return self._items.pop()

    def reset(self) -> None:
        """Remove all items."""
        self._items.clear()

    def _position(self, index: int) -> int:
        if not 0 <= index < len(self._items):
            raise IndexError(f"stack index out of range: {index}")
        return len(self._items) - 1 - index

    def __getitem__(self, index: int) -> int:
        return self._items[self._position(index)]

    def __setitem__(self, index: int, value: int) -> None:
        self._items[self._position(index)] = int(value) % _WORD_MODULUS

    def __iter__(self):
        return reversed(self._items)


@dataclass
class ExecutionState:
    """Generic state of a single EVM execution."""

    message: Optional[Message] = None
    revision: Revision = Revision.FRONTIER
    host: Optional[Host] = None
    code: bytes = b""

    gas_left: int = field(init=False, default=0)
    gas_refund: int = field(init=False, default=0)
    memory: Memory = field(init=False, default_factory=Memory)
    stack: Stack = field(init=False, default_factory=Stack)
    return_data: bytearray = field(init=False, default_factory=bytearray)
    status: StatusCode = field(init=False, default=StatusCode.SUCCESS)
    output_offset: int = field(init=False, default=0)
    output_size: int = field(init=False, default=0)
    analysis: Any = field(init=False, default=None)
    _tx: TxContext = field(init=False, default_factory=TxContext, repr=False)

    def __post_init__(self) -> None:
        self.revision = Revision(self.revision)
        self.code = bytes(self.code)
        if self.message is not None:
            self.gas_left = self.message.gas

    @property
    def msg(self) -> Optional[Message]:
        return self.message

    @property
    def rev(self) -> Revision:
        return self.revision

    @property
    def original_code(self) -> bytes:
        return self.code

    def reset(
        self, message: Message, revision: Revision, host: Optional[Host], code: bytes
    ) -> None:
        """Reinitialise the state so it can be reused for another execution."""
        self.message = message
        self.revision = Revision(revision)
        self.host = host
        self.code = bytes(code)
        self.gas_left = message.gas
        self.gas_refund = 0
        self.memory.clear()
        self.stack.reset()
        self.return_data.clear()
        self.status = StatusCode.SUCCESS
        self.output_offset = 0
        self.output_size = 0
        self.analysis = None
        self._tx = TxContext()

    def in_static_mode(self) -> bool:
        """Tell whether the current message forbids state modification."""
        if self.message is None:
            raise RuntimeError("execution state has no message")
        return (int(self.message.flags) & MessageFlags.STATIC) != 0

    def get_tx_context(self) -> TxContext:
        """Return the transaction context, fetching it from the host once."""
        if self._tx.block_timestamp == 0:
            if self.host is None:
                raise RuntimeError("execution state has no host")
            self._tx = self.host.get_tx_context()
        return self._tx
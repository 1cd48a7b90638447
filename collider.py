"""CNF encoding of MD2 using PySAT for preimage/collision experiments.

This module builds a SAT instance that models MD2 over one or more 16-byte
blocks: the checksum pass, then the compression of every message block and
of the checksum block. It supports:
  - fixing some or all input bytes,
  - optionally constraining the final digest,
  - running a configurable number of rounds (1-18),
then asks a SAT solver to find a satisfying assignment.

Each S-box lookup costs 256 * 8 clauses, so full 18-round MD2 is large;
reduced-round instances are the practical ones.
"""
import logging

from pysat.solvers import Solver
from md2 import BLOCK_SIZE, NUM_ROUNDS, PI_SUBST

logger = logging.getLogger(__name__)


class MD2Collider:
    """Builder that encodes MD2 as CNF and solves it with a SAT solver.

    Parameters
    - input_bytes: bytes or None. If provided, must already be padded (a
                   multiple of 16 bytes, see MD2.md2_padded). Those bytes are
                   constrained into the instance. None leaves one block free.
    - exclude_input_bits: iterable of bit indices (bit 0 is the MSB of byte 0).
                   These bits are constrained to the opposite of their value
                   in input_bytes, so solutions differ from the input there.
    - target_digest: optional 16 bytes. If provided, the final state is
                   constrained to match this digest.
    """

    def __init__(self, input_bytes, exclude_input_bits=[], target_digest=None):
        assert input_bytes is None or (len(input_bytes) > 0 and len(input_bytes) % BLOCK_SIZE == 0)
        assert target_digest is None or len(target_digest) == BLOCK_SIZE
        num_blocks = len(input_bytes) // BLOCK_SIZE if input_bytes is not None else 1
        self.solver = Solver(name='g4')
        self.var_idx = 1
        self.num_clauses = 0
        self.x = self._init_number(8 * BLOCK_SIZE * num_blocks)
        self.target_digest = target_digest
        if input_bytes is not None:
            for i in range(len(input_bytes)):
                exclude_bits = [bit % 8 for bit in exclude_input_bits if bit // 8 == i]
                # Bits in exclude_bits get the inverted literal ("bit != constant").
                self._add_constant(self._get_byte_vars(self.x, i), input_bytes[i],
                                   exclude_bits=exclude_bits)

    def _init_number(self, num_bits):
        """Allocate and return a fresh vector of SAT variables of length num_bits."""
        num = list(range(self.var_idx, self.var_idx + num_bits))
        self.var_idx += num_bits
        return num

    def _init_bit(self):
        """Allocate and return a fresh SAT variable (single bit)."""
        bit_var = self.var_idx
        self.var_idx += 1
        return bit_var

    def _init_byte(self, constant=None):
        """Allocate an 8-bit vector, optionally fixed to a constant."""
        byte = self._init_number(8)
        if constant is not None:
            self._add_constant(byte, constant)
        return byte

    def _add_clause(self, clause):
        self.solver.add_clause(clause)
        self.num_clauses += 1

    # Byte 0 is the left most (MSB) byte of the bit array
    def _get_byte_vars(self, bit_array, byte_idx):
        """Return the 8-bit slice vars corresponding to byte_idx."""
        return bit_array[byte_idx*8:(byte_idx+1)*8]

    def _get_block_bytes(self, block_idx):
        """Return the 16 byte vectors of input block block_idx."""
        return [self._get_byte_vars(self.x, block_idx*BLOCK_SIZE + i) for i in range(BLOCK_SIZE)]

    def _add_constant(self, bit_array, constant, exclude_bits=[]):
        assert 2 ** len(bit_array) > constant
        for i in range(len(bit_array)):
            multiplier = -1 if i in exclude_bits else 1
            c_bit = (constant >> (len(bit_array) - i - 1)) & 1
            if c_bit == 1:
                self._add_clause([multiplier * bit_array[i]])
            else:
                self._add_clause([multiplier * -bit_array[i]])
        return bit_array

    def _add_or(self, a, b, c=None):
        """Bitwise OR: c = a | b. Returns c (allocates if None)."""
        assert len(a) == len(b)
        if c is not None:
            assert len(a) == len(c)
        else:
            c = self._init_number(len(a))
        for i in range(len(a)):
            self._add_clause([a[i], b[i], -c[i]])
            self._add_clause([-a[i], c[i]])
            self._add_clause([-b[i], c[i]])
        return c

    def _add_and(self, a, b, c=None):
        """Bitwise AND: c = a & b. Returns c (allocates if None)."""
        assert len(a) == len(b)
        if c is not None:
            assert len(a) == len(c)
        else:
            c = self._init_number(len(a))
        for i in range(len(a)):
            self._add_clause([-a[i], -b[i], c[i]])
            self._add_clause([a[i], -c[i]])
            self._add_clause([b[i], -c[i]])
        return c

    def _add_xor(self, a, b, c=None):
        """Bitwise XOR: c = a ^ b. Returns c (allocates if None)."""
        assert len(a) == len(b)
        if c is not None:
            assert len(a) == len(c)
        else:
            c = self._init_number(len(a))
        for i in range(len(a)):
            self._add_clause([-a[i], -b[i], -c[i]])
            self._add_clause([a[i], b[i], -c[i]])
            self._add_clause([a[i], -b[i], c[i]])
            self._add_clause([-a[i], b[i], c[i]])
        return c

    def _add_sum(self, a, b, c=None):
        """Add two n-bit vectors a and b modulo 2^n (ripple-carry adder)."""
        assert len(a) == len(b)
        if c is not None:
            assert len(a) == len(c)
        else:
            c = self._init_number(len(a))
        carry = self._init_number(len(a))  # carry[k] is the carry into bit k
        for i in range(len(a)):
            # Walk from LSB to MSB using idx (LSB = len(a)-1).
            idx = len(a) - i - 1
            if i == 0:
                self._add_xor([a[idx]], [b[idx]], [c[idx]])
                if idx > 0:
                    self._add_and([a[idx]], [b[idx]], [carry[idx-1]])
            else:
                ab_xor = self._init_bit()
                self._add_xor([a[idx]], [b[idx]], [ab_xor])
                self._add_xor([carry[idx]], [ab_xor], [c[idx]])
                if idx > 0:
                    cout1 = self._init_bit()
                    cout2 = self._init_bit()
                    self._add_and([a[idx]], [b[idx]], [cout1])
                    self._add_and([carry[idx]], [ab_xor], [cout2])
                    self._add_or([cout1], [cout2], [carry[idx-1]])
        return c

    def _add_substitution(self, a, b=None):
        """S-box lookup: b = PI_SUBST[a] for an 8-bit vector a.

        One clause per (input value, output bit): "a != v or b[k] == S[v][k]".
        PI_SUBST is a permutation, so b is fully determined by a and the
        other direction follows.
        """
        assert len(a) == 8
        if b is not None:
            assert len(b) == 8
        else:
            b = self._init_byte()
        for v in range(256):
            # Literals that are all false exactly when a == v.
            differs = [-a[i] if (v >> (7 - i)) & 1 else a[i] for i in range(8)]
            s = PI_SUBST[v]
            for k in range(8):
                out = b[k] if (s >> (7 - k)) & 1 else -b[k]
                self._add_clause(differs + [out])
        return b

    def add_checksum(self):
        """CNF version of the checksum pass over all input blocks.

        Returns the 16 checksum byte vectors.
        """
        checksum = [self._init_byte(0) for _ in range(BLOCK_SIZE)]
        l = self._init_byte(0)
        for block_idx in range(len(self.x) // (8 * BLOCK_SIZE)):
            block = self._get_block_bytes(block_idx)
            for i in range(BLOCK_SIZE):
                s = self._add_substitution(self._add_xor(block[i], l))
                checksum[i] = self._add_xor(checksum[i], s)
                l = checksum[i]
        return checksum

    def add_md2_block(self, state, block, num_rounds=NUM_ROUNDS):
        """Encode the compression of one 16-byte block.

        state and block are lists of 16 byte vectors; returns the new state.
        """
        if not 1 <= num_rounds <= NUM_ROUNDS:
            raise ValueError("Invalid number of rounds: %r" % (num_rounds,))
        assert len(state) == BLOCK_SIZE and len(block) == BLOCK_SIZE

        buf = list(state) + list(block) + [self._add_xor(state[i], block[i]) for i in range(BLOCK_SIZE)]
        t = self._init_byte(0)
        for r in range(num_rounds):
            for j in range(len(buf)):
                t = self._add_xor(buf[j], self._add_substitution(t))
                buf[j] = t
            if r > 0:
                t = self._add_sum(t, self._init_byte(r))
        return buf[:BLOCK_SIZE]

    def solve_md2(self, num_rounds=NUM_ROUNDS):
        """Finalize the encoding (checksum, then every block), add the optional
        digest constraint, and solve.

        Returns (False, None) if UNSAT or interrupted; otherwise
        (True, (x_bytes, digest_bytes)).
        """
        if not 1 <= num_rounds <= NUM_ROUNDS:
            raise ValueError("Invalid number of rounds: %r" % (num_rounds,))
        checksum = self.add_checksum()
        state = [self._init_byte(0) for _ in range(BLOCK_SIZE)]
        for block_idx in range(len(self.x) // (8 * BLOCK_SIZE)):
            state = self.add_md2_block(state, self._get_block_bytes(block_idx), num_rounds)
        state = self.add_md2_block(state, checksum, num_rounds)

        if self.target_digest is not None:
            for i in range(BLOCK_SIZE):
                self._add_constant(state[i], self.target_digest[i])

        sat = self._solve()
        if not sat:
            return False, None
        model = self.solver.get_model()
        return True, (self.solution_to_bytes(model, self.x), self.solution_to_bytes(model, sum(state, [])))

    def solve_checksum(self):
        """Encode only the checksum pass and solve.

        Returns (False, None) if UNSAT or interrupted; otherwise
        (True, (x_bytes, checksum_bytes)).
        """
        checksum = self.add_checksum()
        sat = self._solve()
        if not sat:
            return False, None
        model = self.solver.get_model()
        return True, (self.solution_to_bytes(model, self.x), self.solution_to_bytes(model, sum(checksum, [])))

    def _solve(self):
        logger.debug("solving MD2 instance: %d vars, %d clauses", self.var_idx - 1, self.num_clauses)
        sat = self.solver.solve_limited(expect_interrupt=True)
        logger.debug("solver returned %s", sat)
        return sat

    def solution_to_bytes(self, model, vars):
        """Read a bit-vector assignment from model and pack into bytes.

        Bits inside each byte are read MSB-first.
        """
        byte_vals = bytearray()
        byte = 0
        for j, bit_var in enumerate(vars):
            bit_val = model[bit_var-1] > 0
            byte |= bit_val << (8 - (j % 8) - 1)
            if j % 8 == 7:
                byte_vals.append(byte)
                byte = 0
        return bytes(byte_vals)

    def delete(self):
        """Release the underlying solver."""
        self.solver.delete()

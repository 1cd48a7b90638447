"""MD2 message digest (RFC 1319).

A small, readable implementation of MD2. The message is never copied: the
padding and the checksum are exposed through two read-only views that compute
each byte on demand. The compression function can run a configurable number
of rounds (1-18; full MD2 uses 18) so reduced-round variants can be checked
against the CNF encoding in collider.py.

MD2 is cryptographically broken. This reproduces the legacy algorithm only.
"""

# Permutation of 0..255 built from the digits of pi (RFC 1319, section 3.2)
PI_SUBST = (
    41, 46, 67, 201, 162, 216, 124, 1, 61, 54, 84, 161, 236, 240, 6,
    19, 98, 167, 5, 243, 192, 199, 115, 140, 152, 147, 43, 217, 188,
    76, 130, 202, 30, 155, 87, 60, 253, 212, 224, 22, 103, 66, 111, 24,
    138, 23, 229, 18, 190, 78, 196, 214, 218, 158, 222, 73, 160, 251,
    245, 142, 187, 47, 238, 122, 169, 104, 121, 145, 21, 178, 7, 63,
    148, 194, 16, 137, 11, 34, 95, 33, 128, 127, 93, 154, 90, 144, 50,
    39, 53, 62, 204, 231, 191, 247, 151, 3, 255, 25, 48, 179, 72, 165,
    181, 209, 215, 94, 146, 42, 172, 86, 170, 198, 79, 184, 56, 210,
    150, 164, 125, 182, 118, 252, 107, 226, 156, 116, 4, 241, 69, 157,
    112, 89, 100, 113, 135, 32, 134, 91, 207, 101, 230, 45, 168, 2, 27,
    96, 37, 173, 174, 176, 185, 246, 28, 70, 97, 105, 52, 64, 126, 15,
    85, 71, 163, 35, 221, 81, 175, 58, 195, 92, 249, 206, 186, 197,
    234, 38, 44, 83, 13, 110, 133, 40, 132, 9, 211, 223, 205, 244, 65,
    129, 77, 82, 106, 220, 55, 200, 108, 193, 171, 250, 36, 225, 123,
    8, 12, 189, 177, 74, 120, 136, 149, 139, 227, 99, 232, 109, 233,
    203, 213, 254, 59, 0, 29, 57, 242, 239, 183, 14, 102, 88, 208, 228,
    166, 119, 114, 248, 235, 117, 75, 10, 49, 68, 80, 180, 143, 237,
    31, 26, 219, 153, 141, 51, 159, 17, 131, 20,
)

BLOCK_SIZE = 16
DIGEST_SIZE = 16
NUM_ROUNDS = 18


def padding_amount(length):
    """Return how many padding bytes (1-16) follow a message of this length.

    Padding is always applied: a length that is already a multiple of 16,
    including 0, gets a whole block of padding.
    """
    return BLOCK_SIZE - (length % BLOCK_SIZE)


class PaddedMessage:
    """Read-only view of a message followed by its padding.

    Every padding byte has the value of the padding amount, so the tail is
    stored as that single integer.
    """

    def __init__(self, msg, padding):
        assert 1 <= padding <= BLOCK_SIZE
        self.msg = msg
        self.padding = padding

    def __len__(self):
        return len(self.msg) + self.padding

    def byte_at(self, index):
        assert 0 <= index < len(self)
        if index >= len(self.msg):
            return self.padding
        return self.msg[index]


class ChecksumMessage:
    """Read-only view of a padded message followed by its 16-byte checksum."""

    def __init__(self, padded, checksum):
        assert len(checksum) == BLOCK_SIZE
        self.padded = padded
        self.checksum = checksum

    def __len__(self):
        return len(self.padded) + len(self.checksum)

    def byte_at(self, index):
        assert 0 <= index < len(self)
        if index < len(self.padded):
            return self.padded.byte_at(index)
        return self.checksum[index - len(self.padded)]


class MD2Digest(bytes):
    """A finished 16-byte MD2 digest; str() gives the lowercase hex form."""

    def __new__(cls, value):
        assert len(value) == DIGEST_SIZE
        return super().__new__(cls, value)

    def __str__(self):
        return self.hex()

    def __repr__(self):
        return "MD2Digest('%s')" % self.hex()


class MD2:

    def __init__(self):
        """Start from an all-zero 48-byte working buffer."""
        self.buffer = bytearray(3 * BLOCK_SIZE)

    @staticmethod
    def md2_padded(input_bytes):
        """Return input_bytes with its padding materialized.

        The CNF encoder works on whole blocks of real bytes, so it needs the
        padding spelled out rather than the PaddedMessage view.
        """
        n = padding_amount(len(input_bytes))
        return bytes(input_bytes) + bytes([n]) * n

    @staticmethod
    def checksum(padded):
        """Compute the 16-byte checksum of a padded message view.

        The running value l carries over from one block to the next; it is
        only zero before the very first byte.
        """
        assert len(padded) % BLOCK_SIZE == 0
        checksum = bytearray(BLOCK_SIZE)
        l = 0
        for offset in range(0, len(padded), BLOCK_SIZE):
            for i in range(BLOCK_SIZE):
                c = padded.byte_at(offset + i)
                checksum[i] ^= PI_SUBST[c ^ l]
                l = checksum[i]
        return bytes(checksum)

    def md2_block(self, block, num_rounds=NUM_ROUNDS):
        """Process one 16-byte block and update the running state.

        buffer[0:16] is the state, buffer[16:32] the block and buffer[32:48]
        their XOR. t restarts at zero for every block.
        """
        assert 1 <= num_rounds <= NUM_ROUNDS
        assert len(block) == BLOCK_SIZE
        buf = self.buffer
        for i in range(BLOCK_SIZE):
            buf[BLOCK_SIZE + i] = block[i]
            buf[2 * BLOCK_SIZE + i] = buf[i] ^ block[i]

        t = 0
        for r in range(num_rounds):
            for j in range(3 * BLOCK_SIZE):
                t = buf[j] ^ PI_SUBST[t]
                buf[j] = t
            t = (t + r) & 0xff

    def md2_digest(self, input_bytes, num_rounds=NUM_ROUNDS):
        """Compute the MD2 digest of input_bytes.

        The buffer is cleared first, so an instance can be reused.
        """
        self.buffer[:] = bytes(3 * BLOCK_SIZE)
        padded = PaddedMessage(input_bytes, padding_amount(len(input_bytes)))
        msg = ChecksumMessage(padded, MD2.checksum(padded))
        for offset in range(0, len(msg), BLOCK_SIZE):
            block = [msg.byte_at(offset + i) for i in range(BLOCK_SIZE)]
            self.md2_block(block, num_rounds)
        return MD2Digest(self.buffer[:DIGEST_SIZE])


def _to_bytes(message):
    if isinstance(message, str):
        return message.encode("utf-8")
    if isinstance(message, (bytes, bytearray)):
        return message
    try:
        # Any buffer is read byte by byte, whatever its item size.
        return memoryview(message).cast("B")
    except TypeError:
        raise TypeError("expected str or bytes-like object, got %s" % type(message).__name__) from None


def digest(message):
    """Return the MD2Digest of message (str is hashed as UTF-8)."""
    return MD2().md2_digest(_to_bytes(message))


def hexdigest(message):
    return digest(message).hex()

from array import array
import unittest
from md2 import (MD2, MD2Digest, PI_SUBST, ChecksumMessage, PaddedMessage,
                 digest, hexdigest, padding_amount)


# (message, checksum, digest) from RFC 1319, appendix A.5
RFC_VECTORS = [
    (b"",
     "623867b6af52795e5f214e9720beea8d",
     "8350e5a3e24c153df2275c9f80692773"),
    (b"a",
     "19739cada3ba281693348e9d256fff31",
     "32ec01ec4a6dac72c0ab96fb34c0b5d1"),
    (b"abc",
     "19e29d1b7304368e595a276f302f57cc",
     "da853b0d3f88d99b30283a69e6ded6bb"),
    (b"message digest",
     "56d65157dedfcd75a7b1e82d970eec4b",
     "ab4f496bfb2a530b219ff33031fe06b0"),
    (b"abcdefghijklmnopqrstuvwxyz",
     "4a42d3a377b7e9988fb9289699e4d3a3",
     "4e8ddff3650292ab5a4108c3aa47940b"),
    (b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789",
     "c3db7592ee1dd9b84505cfb4e2f9a765",
     "da33def2a42df13975352846c30338cd"),
    (b"1234567890" * 8,
     "059ca5673c8f931bc41214f56b5c6c01",
     "d5976f79d83d3a0dc9806c3c66f3efd8"),
]


class TestPadding(unittest.TestCase):

    def test_boundary_lengths(self):
        self.assertEqual(padding_amount(15), 1)
        self.assertEqual(padding_amount(16), 16)
        self.assertEqual(padding_amount(17), 15)

    def test_empty_input_gets_full_block(self):
        self.assertEqual(padding_amount(0), 16)

    def test_every_residue(self):
        for length in range(0, 64):
            p = padding_amount(length)
            self.assertTrue(1 <= p <= 16)
            self.assertEqual((length + p) % 16, 0)
            expected = 16 if length % 16 == 0 else 16 - length % 16
            self.assertEqual(p, expected)

    def test_md2_padded_materializes_padding(self):
        self.assertEqual(MD2.md2_padded(b"abc"), b"abc" + bytes([13]) * 13)
        self.assertEqual(MD2.md2_padded(b""), bytes([16]) * 16)
        self.assertEqual(len(MD2.md2_padded(b"x" * 32)), 48)


class TestViews(unittest.TestCase):

    def test_padded_view_indexing(self):
        view = PaddedMessage(b"hello", padding_amount(5))
        self.assertEqual(len(view), 16)
        self.assertEqual(bytes(view.byte_at(i) for i in range(len(view))),
                         b"hello" + bytes([11]) * 11)

    def test_padded_view_does_not_copy(self):
        msg = bytearray(b"abc")
        view = PaddedMessage(msg, padding_amount(len(msg)))
        msg[0] = ord("z")
        self.assertEqual(view.byte_at(0), ord("z"))

    def test_padded_view_out_of_range(self):
        view = PaddedMessage(b"", 16)
        with self.assertRaises(AssertionError):
            view.byte_at(16)

    def test_checksum_view_out_of_range(self):
        padded = PaddedMessage(b"abc", 13)
        view = ChecksumMessage(padded, MD2.checksum(padded))
        self.assertEqual(len(view), 32)
        with self.assertRaises(AssertionError):
            view.byte_at(len(view))

    def test_checksum_view_appends_checksum(self):
        padded = PaddedMessage(b"a", 15)
        checksum = MD2.checksum(padded)
        view = ChecksumMessage(padded, checksum)
        self.assertEqual(len(view), 32)
        self.assertEqual(view.byte_at(0), ord("a"))
        self.assertEqual(view.byte_at(15), 15)
        self.assertEqual(bytes(view.byte_at(i) for i in range(16, 32)), checksum)


class TestMD2(unittest.TestCase):

    def test_substitution_table_is_permutation(self):
        self.assertEqual(len(PI_SUBST), 256)
        self.assertEqual(sorted(PI_SUBST), list(range(256)))

    def test_rfc_checksums(self):
        for message, checksum, _ in RFC_VECTORS:
            padded = PaddedMessage(message, padding_amount(len(message)))
            self.assertEqual(MD2.checksum(padded).hex(), checksum, message)

    def test_rfc_digests(self):
        for message, _, expected in RFC_VECTORS:
            self.assertEqual(digest(message).hex(), expected, message)
            self.assertEqual(hexdigest(message), expected, message)

    def test_digest_is_sixteen_bytes(self):
        for length in (0, 1, 15, 16, 17, 100):
            d = digest(b"\xff" * length)
            self.assertIsInstance(d, MD2Digest)
            self.assertEqual(len(d), 16)

    def test_deterministic(self):
        self.assertEqual(digest(b"abc"), digest(b"abc"))

    def test_instance_reuse_resets_state(self):
        md2 = MD2()
        first = md2.md2_digest(b"message digest")
        second = md2.md2_digest(b"message digest")
        self.assertEqual(first, second)
        self.assertEqual(md2.md2_digest(b"").hex(), "8350e5a3e24c153df2275c9f80692773")

    def test_hex_rendering(self):
        d = digest(b"abc")
        self.assertEqual(str(d), "da853b0d3f88d99b30283a69e6ded6bb")
        self.assertEqual(len(d.hex()), 32)
        self.assertEqual(d.hex(), d.hex().lower())

    def test_str_is_hashed_as_utf8(self):
        self.assertEqual(digest("abc"), digest(b"abc"))
        self.assertEqual(digest("é"), digest("é".encode("utf-8")))

    def test_bytes_like_inputs(self):
        self.assertEqual(digest(bytearray(b"abc")), digest(b"abc"))
        self.assertEqual(digest(memoryview(b"abc")), digest(b"abc"))

    def test_wide_buffers_are_read_as_bytes(self):
        wide = array("H", [1000, 2000])
        self.assertEqual(digest(memoryview(wide)), digest(wide.tobytes()))
        self.assertEqual(digest(wide), digest(wide.tobytes()))

    def test_rejects_non_bytes(self):
        with self.assertRaises(TypeError):
            digest(12345)

    def test_reduced_rounds_differ_from_full(self):
        md2 = MD2()
        self.assertNotEqual(md2.md2_digest(b"abc", num_rounds=2), md2.md2_digest(b"abc"))

    def test_single_round_ignores_message(self):
        # With one round, the first 16 buffer bytes only see the running state.
        md2 = MD2()
        self.assertEqual(md2.md2_digest(b"", num_rounds=1), md2.md2_digest(b"abc", num_rounds=1))

    def test_invalid_round_count(self):
        with self.assertRaises(AssertionError):
            MD2().md2_digest(b"abc", num_rounds=19)


if __name__ == "__main__":
    unittest.main(verbosity=1)

import unittest

from frostdkg import (
    Scalar,
    G,
    CommitmentTable,
    PolynomialCommitment,
    PowerMap,
    QMap,
    WMap,
    MapFormatError,
    ProtocolStateError,
    ConfigurationError,
    sample_polynomial,
    evaluate,
    verify_batch,
    find_invalid_shares,
)


class PowerMapTests(unittest.TestCase):
    def test_rows(self):
        pm = PowerMap.derive(5, 3)
        self.assertEqual(pm.size, 5)
        self.assertEqual(pm[4], (Scalar(1), Scalar(4), Scalar(16)))
        with self.assertRaises(ConfigurationError):
            pm[6]
        with self.assertRaises(ConfigurationError):
            pm[0]


class Fixture(unittest.TestCase):
    n = 5
    t = 3

    def setUp(self):
        self.polys = {i: sample_polynomial(self.t - 1) for i in range(1, self.n + 1)}
        self.table = CommitmentTable(self.n, self.t)
        for i, poly in self.polys.items():
            self.table.register(i, PolynomialCommitment.from_coefficients(poly))
        self.powers = PowerMap.derive(self.n, self.t)

    def inbox(self, x):
        return {i: evaluate(poly, Scalar(x)) for i, poly in self.polys.items()}

    def joint_share(self, x):
        return sum(self.inbox(x).values(), Scalar.zero())


class BatchTests(Fixture):
    def test_honest_inbox_accepted(self):
        for x in range(1, self.n + 1):
            self.assertTrue(verify_batch(self.inbox(x), self.table, self.powers[x]))

    def test_wrong_index_rejected(self):
        self.assertFalse(verify_batch(self.inbox(2), self.table, self.powers[3]))

    def test_single_bad_share(self):
        inbox = self.inbox(4)
        inbox[5] = inbox[5] + Scalar.one()
        self.assertFalse(verify_batch(inbox, self.table, self.powers[4]))
        self.assertEqual(find_invalid_shares(inbox, self.table, self.powers[4]), [5])

    def test_every_bad_share_found(self):
        inbox = self.inbox(1)
        for i in (1, 3, 4):
            inbox[i] = Scalar.random()
        self.assertEqual(find_invalid_shares(inbox, self.table, self.powers[1]), [1, 3, 4])

    def test_subset_inbox(self):
        inbox = {i: s for i, s in self.inbox(2).items() if i in (2, 4)}
        self.assertTrue(verify_batch(inbox, self.table, self.powers[2]))
        self.assertEqual(find_invalid_shares(inbox, self.table, self.powers[2]), [])


class QWMapTests(Fixture):
    def test_q_map_is_sum_of_commitments(self):
        q = QMap.derive(self.table)
        self.assertEqual(q.threshold, self.t)
        secret = sum((p[0] for p in self.polys.values()), Scalar.zero())
        self.assertEqual(q.group_public_key, secret * G)

    def test_w_map_matches_joint_shares(self):
        w = WMap.derive(QMap.derive(self.table), self.powers)
        self.assertEqual(w.size, self.n)
        for x in range(1, self.n + 1):
            self.assertEqual(w[x], self.joint_share(x) * G)
        with self.assertRaises(KeyError):
            w[self.n + 1]

    def test_snapshots_are_values(self):
        q = QMap.derive(self.table)
        w = WMap.derive(q, self.powers)
        self.assertEqual(QMap.from_bytes(q.to_bytes()), q)
        self.assertEqual(WMap.from_bytes(w.to_bytes()), w)
        self.assertEqual(q.fingerprint(), QMap.from_bytes(q.to_bytes()).fingerprint())

    def test_corrupted_snapshot(self):
        data = bytearray(QMap.derive(self.table).to_bytes())
        data[10] ^= 0xFF
        with self.assertRaises(MapFormatError):
            QMap.from_bytes(bytes(data))
        with self.assertRaises(MapFormatError):
            WMap.from_bytes(b"\x00\x00")

    def test_kinds_do_not_mix(self):
        q = QMap.derive(self.table)
        with self.assertRaises(MapFormatError):
            WMap.from_bytes(q.to_bytes())

    def test_incomplete_table(self):
        table = CommitmentTable(self.n, self.t)
        table.register(1, self.table[1])
        with self.assertRaises(ProtocolStateError):
            QMap.derive(table)


if __name__ == "__main__":
    unittest.main()

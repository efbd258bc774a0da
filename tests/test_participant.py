import unittest

from frostdkg import (
    Participant,
    Stage,
    Scalar,
    G,
    SecretProof,
    ConfigurationError,
    ProtocolStateError,
    ShareVerificationError,
    CommitmentConflictError,
    MapMismatchError,
    PublicShareMismatchError,
    Point,
    WMap,
    interpolate,
)


CONTEXT = b"\x00" * 32


def exchange_commitments(participants):
    for sender in participants:
        for receiver in participants:
            if receiver is sender:
                continue
            receiver.update_polynomial_commitments(
                sender.position, sender.polynomial_commitment
            )


def deal_inboxes(participants):
    for p in participants:
        p.calculate_secret_shares()
    return {
        receiver.position: {
            sender.position: sender.get_secret_shares(receiver.position)
            for sender in participants
        }
        for receiver in participants
    }


class ConstructionTests(unittest.TestCase):
    def test_threshold_above_total(self):
        with self.assertRaises(ConfigurationError):
            Participant(n=3, threshold=4, position=1)

    def test_position_out_of_range(self):
        with self.assertRaises(ConfigurationError):
            Participant(n=3, threshold=2, position=4)
        with self.assertRaises(ConfigurationError):
            Participant(n=3, threshold=2, position=0)

    def test_more_dealers_than_indices(self):
        with self.assertRaises(ConfigurationError):
            Participant(n=3, threshold=2, position=1, dealers=4)

    def test_fresh_participant(self):
        p = Participant(n=4, threshold=3, position=2)
        self.assertEqual(p.stage, Stage.CREATED)
        self.assertEqual(len(p.polynomial_commitment), 3)
        self.assertEqual(p.commitments.senders(), [2])
        self.assertIsNone(p.group_public_key)

    def test_single_participant(self):
        p = Participant(n=1, threshold=1, position=1)
        self.assertEqual(p.stage, Stage.COMMITMENTS_EXCHANGED)
        p.calculate_secret_shares()
        p.receive_secret_shares({1: p.get_secret_shares(1)})
        p.derive_power_map()
        p.verify_batch_public_secret_shares()
        share = p.calculate_signing_share()
        p.calculate_internal_public_signing_shares()
        p.derive_external_q_map()
        self.assertEqual(p.calculate_batch_public_signing_shares(exclude=[1]), {})
        self.assertEqual(share * G, p.calculate_group_public_key())
        self.assertEqual(p.stage, Stage.GROUP_KEY_DERIVED)


class ProofTests(unittest.TestCase):
    def setUp(self):
        self.participants = [Participant(4, 3, i) for i in range(1, 5)]
        exchange_commitments(self.participants)

    def test_honest_proofs_verify(self):
        for prover in self.participants:
            proof = prover.calculate_secret_proofs(CONTEXT)
            for verifier in self.participants:
                self.assertTrue(
                    verifier.verify_secret_proofs(
                        CONTEXT, proof, prover.position,
                        prover.polynomial_commitment.constant,
                    )
                )

    def test_proof_bound_to_context(self):
        p1, p2 = self.participants[:2]
        proof = p1.calculate_secret_proofs(CONTEXT)
        self.assertFalse(
            p2.verify_secret_proofs(b"other", proof, 1, p1.polynomial_commitment.constant)
        )

    def test_proof_bound_to_position(self):
        p1, p2 = self.participants[:2]
        proof = p1.calculate_secret_proofs(CONTEXT)
        fresh = Participant(4, 3, 3)
        self.assertFalse(
            fresh.verify_secret_proofs(CONTEXT, proof, 2, p1.polynomial_commitment.constant)
        )

    def test_tampered_constant_commitment(self):
        p1, p2 = self.participants[:2]
        proof = p1.calculate_secret_proofs(CONTEXT)
        forged = p1.polynomial_commitment.constant + G
        self.assertFalse(p2.verify_secret_proofs(CONTEXT, proof, 1, forged))
        unregistered = Participant(4, 3, 3)
        self.assertFalse(unregistered.verify_secret_proofs(CONTEXT, proof, 1, forged))

    def test_tampered_proof_transcript(self):
        p1, p2 = self.participants[:2]
        proof = p1.calculate_secret_proofs(CONTEXT)
        constant = p1.polynomial_commitment.constant
        for forged in (
            SecretProof(R=proof.R, z=proof.z + Scalar.one()),
            SecretProof(R=proof.R + G, z=proof.z),
            SecretProof(R=Point.identity(), z=proof.z),
        ):
            self.assertFalse(p2.verify_secret_proofs(CONTEXT, forged, 1, constant))

    def test_proof_serialisation(self):
        proof = self.participants[0].calculate_secret_proofs(CONTEXT)
        self.assertEqual(SecretProof.from_bytes(proof.to_bytes()), proof)

    def test_conflicting_commitment(self):
        p1, p2, p3 = self.participants[:3]
        with self.assertRaises(CommitmentConflictError):
            p1.update_polynomial_commitments(2, p3.polynomial_commitment)
        # an identical redelivery is accepted
        p1.update_polynomial_commitments(2, p2.polynomial_commitment)


class KeygenTests(unittest.TestCase):
    """n = 4, t = 3, positions 1..4."""

    def setUp(self):
        self.participants = [Participant(4, 3, i) for i in range(1, 5)]
        ps = self.participants
        exchange_commitments(ps)
        for p in ps:
            self.assertEqual(p.stage, Stage.COMMITMENTS_EXCHANGED)

        self.inboxes = deal_inboxes(ps)
        for p in ps:
            p.receive_secret_shares(self.inboxes[p.position])
            p.derive_power_map()

    def finish(self):
        ps = self.participants
        for p in ps:
            p.verify_batch_public_secret_shares()
            p.calculate_signing_share()
            p.calculate_internal_public_signing_shares()

        ps[0].derive_external_q_map()
        ps[0].derive_external_w_map()
        for p in ps[1:]:
            p.parse_q_map(ps[0].copy_q_map())
            p.parse_w_map(ps[0].copy_w_map())

        for p in ps:
            p.calculate_batch_public_signing_shares(exclude=[p.position])
            p.calculate_group_public_key()

    def test_full_protocol(self):
        self.finish()
        ps = self.participants
        for p in ps:
            self.assertEqual(p.stage, Stage.GROUP_KEY_DERIVED)

        keys = {p.calculate_group_public_key().to_bytes() for p in ps}
        self.assertEqual(len(keys), 1)

        for i in ps:
            own = i.get_public_signing_shares(i.position)
            for j in ps:
                self.assertEqual(j.get_public_signing_shares(i.position), own)

        self.assertEqual(
            {p.get_public_signing_shares(1) for p in ps},
            {ps[0].get_public_signing_shares(1)},
        )

    def test_threshold_reconstruction(self):
        self.finish()
        ps = self.participants
        group_key = ps[0].group_public_key
        for subset in ([1, 2, 3], [2, 3, 4], [1, 3, 4]):
            points = [(i, ps[i - 1].signing_share) for i in subset]
            secret = interpolate(points)
            self.assertEqual(secret * G, group_key)
            # every other share lies on the same polynomial
            for p in ps:
                self.assertEqual(interpolate(points, at=p.position), p.signing_share)

        too_few = [(i, ps[i - 1].signing_share) for i in (1, 2)]
        self.assertNotEqual(interpolate(too_few) * G, group_key)

    def test_group_key_is_sum_of_constants(self):
        self.finish()
        ps = self.participants
        expected = ps[0].polynomial_commitment.constant
        for p in ps[1:]:
            expected = expected + p.polynomial_commitment.constant
        self.assertEqual(ps[2].group_public_key, expected)
        self.assertEqual(ps[2].q_map.group_public_key, expected)

    def test_tampered_share_identifies_sender(self):
        ps = self.participants
        bad = dict(self.inboxes[1])
        bad[2] = bad[2] + Scalar.one()
        ps[0].receive_secret_shares(bad)
        with self.assertRaises(ShareVerificationError) as ctx:
            ps[0].verify_batch_public_secret_shares()
        self.assertEqual(ctx.exception.offenders, [2])
        for p in ps[1:]:
            p.verify_batch_public_secret_shares()

    def test_two_bad_shares_that_cancel(self):
        ps = self.participants
        bad = dict(self.inboxes[1])
        delta = Scalar.random()
        bad[2] = bad[2] + delta
        bad[3] = bad[3] - delta
        with self.assertRaises(ShareVerificationError) as ctx:
            ps[0].verify_batch_public_secret_shares(bad, 1)
        self.assertEqual(ctx.exception.offenders, [2, 3])

    def test_flipped_commitment_coefficient(self):
        ps = self.participants
        forged_points = list(ps[2].polynomial_commitment.points)
        forged_points[1] = forged_points[1] + G
        outsider = Participant(4, 3, 1)
        for sender in ps[1:]:
            if sender.position == 3:
                outsider.update_polynomial_commitments(3, forged_points)
            else:
                outsider.update_polynomial_commitments(
                    sender.position, sender.polynomial_commitment
                )
        outsider.derive_power_map()
        outsider.calculate_secret_shares()
        inbox = dict(self.inboxes[2])
        inbox[1] = outsider.get_secret_shares(2)
        with self.assertRaises(ShareVerificationError) as ctx:
            outsider.verify_batch_public_secret_shares(inbox, 2)
        self.assertEqual(ctx.exception.offenders, [3])

    def test_missing_share(self):
        inbox = dict(self.inboxes[1])
        del inbox[4]
        with self.assertRaises(ShareVerificationError) as ctx:
            self.participants[0].verify_batch_public_secret_shares(inbox, 1)
        self.assertEqual(ctx.exception.offenders, [4])

    def test_verification_needs_power_map(self):
        p = Participant(4, 3, 1)
        for peer in self.participants[1:]:
            p.update_polynomial_commitments(peer.position, peer.polynomial_commitment)
        with self.assertRaises(ProtocolStateError):
            p.verify_batch_public_secret_shares(self.inboxes[1], 1)

    def test_verification_needs_all_commitments(self):
        p = Participant(4, 3, 1)
        p.derive_power_map()
        with self.assertRaises(ProtocolStateError):
            p.verify_batch_public_secret_shares(self.inboxes[1], 1)

    def test_recompute_mode_detects_forged_map(self):
        ps = self.participants
        for p in ps:
            p.verify_batch_public_secret_shares()
        ps[0].derive_external_q_map()
        ps[0].derive_external_w_map()
        ps[1].parse_q_map(ps[0].copy_q_map(), verify=True)
        ps[1].parse_w_map(ps[0].copy_w_map(), verify=True)

        stranger = Participant(4, 3, 1)
        for peer in ps[1:]:
            stranger.update_polynomial_commitments(peer.position, peer.polynomial_commitment)
        stranger.derive_external_q_map()
        with self.assertRaises(MapMismatchError):
            ps[2].parse_q_map(stranger.copy_q_map(), verify=True)

    def test_recompute_mode_detects_forged_w_map(self):
        ps = self.participants
        for p in ps:
            p.verify_batch_public_secret_shares()
        ps[0].derive_external_q_map()
        honest = ps[0].derive_external_w_map()
        shares = list(honest.shares)
        shares[1] = shares[1] + G
        forged = WMap(shares=tuple(shares))

        ps[1].parse_q_map(ps[0].copy_q_map(), verify=True)
        with self.assertRaises(MapMismatchError) as ctx:
            ps[1].parse_w_map(forged.to_bytes(), verify=True)
        self.assertEqual(ctx.exception.offenders, [2])
        self.assertIsNone(ps[1].w_map)
        self.assertTrue(ps[1].aborted)

        # without recomputation the forged copy is taken as is
        ps[2].parse_w_map(forged.to_bytes())
        self.assertEqual(ps[2].w_map, forged)

    def test_failed_verification_blocks_later_rounds(self):
        p = self.participants[0]
        bad = dict(self.inboxes[1])
        bad[2] = bad[2] + Scalar.one()
        p.receive_secret_shares(bad)
        with self.assertRaises(ShareVerificationError):
            p.verify_batch_public_secret_shares()
        self.assertEqual(p.stage, Stage.SHARES_DISTRIBUTED)
        self.assertTrue(p.aborted)

        with self.assertRaises(ProtocolStateError):
            p.calculate_signing_share()
        with self.assertRaises(ProtocolStateError):
            p.derive_external_q_map()
        # a corrected inbox does not resume the run
        p.receive_secret_shares(self.inboxes[1])
        with self.assertRaises(ProtocolStateError):
            p.verify_batch_public_secret_shares()
        self.assertEqual(p.stage, Stage.SHARES_DISTRIBUTED)
        self.assertIsNone(p.signing_share)

    def test_operations_need_their_predecessor_stage(self):
        p = self.participants[0]
        with self.assertRaises(ProtocolStateError):
            p.calculate_signing_share()
        self.assertEqual(p.stage, Stage.SHARES_DISTRIBUTED)

        p.verify_batch_public_secret_shares()
        with self.assertRaises(ProtocolStateError):
            p.calculate_internal_public_signing_shares(Scalar.one())
        p.calculate_signing_share()
        with self.assertRaises(ProtocolStateError):
            p.calculate_group_public_key()
        self.assertEqual(p.stage, Stage.SIGNING_SHARE_COMPUTED)

        fresh = Participant(4, 3, 1)
        with self.assertRaises(ProtocolStateError):
            fresh.calculate_secret_shares()

    def test_inbox_closed_after_verification(self):
        p = self.participants[0]
        p.verify_batch_public_secret_shares()
        with self.assertRaises(ProtocolStateError):
            p.receive_secret_shares({2: Scalar.one()})
        self.assertEqual(p.secret_shares_in, self.inboxes[1])

    def test_conflicting_batch_stores_nothing(self):
        p = self.participants[0]
        p.verify_batch_public_secret_shares()
        p.calculate_signing_share()
        p.calculate_internal_public_signing_shares(Scalar.one(), 3)
        p.derive_external_q_map()
        with self.assertRaises(PublicShareMismatchError) as ctx:
            p.calculate_batch_public_signing_shares(exclude=[1])
        self.assertEqual(ctx.exception.offenders, [3])
        self.assertIsNone(p.get_public_signing_shares(2))
        self.assertIsNone(p.get_public_signing_shares(4))
        self.assertEqual(p.get_public_signing_shares(3), G)
        self.assertEqual(p.stage, Stage.SIGNING_SHARE_COMPUTED)

    def test_batch_public_share_disagreeing_with_internal(self):
        ps = self.participants
        p = ps[0]
        p.verify_batch_public_secret_shares()
        p.calculate_signing_share()
        p.calculate_internal_public_signing_shares(p.signing_share + Scalar.one())
        p.derive_external_q_map()
        with self.assertRaises(PublicShareMismatchError) as ctx:
            p.calculate_batch_public_signing_shares()
        self.assertEqual(ctx.exception.offenders, [1])

    def test_batch_from_q_map_only(self):
        ps = self.participants
        for p in ps:
            p.verify_batch_public_secret_shares()
            p.calculate_signing_share()
            p.calculate_internal_public_signing_shares()
        ps[3].derive_external_q_map()
        computed = ps[3].calculate_batch_public_signing_shares(exclude=[4])
        self.assertEqual(sorted(computed), [1, 2, 3])
        for p in ps[:3]:
            self.assertEqual(computed[p.position], p.get_public_signing_shares(p.position))

    def test_public_shares_need_a_map(self):
        with self.assertRaises(ProtocolStateError):
            self.participants[0].calculate_batch_public_signing_shares()


if __name__ == "__main__":
    unittest.main()

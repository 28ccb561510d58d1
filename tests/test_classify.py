import dataclasses
import unittest

from cert_inspector.classify import classify, hash_family, summarize
from cert_inspector.decode import load_certificate
from cert_inspector.models import HashFamily

from tests.certs import CA_CERT, LEAF_CERT, pem

LEAF = load_certificate(pem(LEAF_CERT))
ROOT = load_certificate(pem(CA_CERT))


def signed_with(cert, name):
    return dataclasses.replace(cert, signature_algorithm=name)


class ClassifyTest(unittest.TestCase):
    def test_01(self):
        for x in ['sha1WithRSAEncryption', 'ecdsa-with-SHA1',
                  'dsa-with-SHA1', 'SHA-1']:
            self.assertEqual(hash_family(x), HashFamily.SHA1, x)

    def test_02(self):
        for x in ['sha224WithRSAEncryption', 'sha256WithRSAEncryption',
                  'sha384WithRSAEncryption', 'sha512WithRSAEncryption',
                  'ecdsa-with-SHA256', 'ecdsa-with-SHA384',
                  'dsa_with_SHA256']:
            self.assertEqual(hash_family(x), HashFamily.SHA2, x)

    def test_03(self):
        for x in ['md5WithRSAEncryption', 'rsassaPss', 'ED25519',
                  'ecdsa_with_SHA3-256', '1.2.3.4', '', None]:
            self.assertEqual(hash_family(x), HashFamily.OTHER, x)

    def test_04(self):
        chain = [signed_with(LEAF, 'sha1WithRSAEncryption'),
                 signed_with(ROOT, 'sha256WithRSAEncryption')]
        r = classify(chain)
        self.assertEqual([x.hash_family for x in r],
                         [HashFamily.SHA1, HashFamily.SHA2])
        self.assertIs(r[0].certificate, chain[0])
        self.assertIs(r[1].certificate, chain[1])

    def test_05(self):
        r = classify([LEAF, ROOT])
        self.assertEqual(summarize(r), 'SHA-2 only')

    def test_06(self):
        # SHA-1 signature on the self-signed root does not count
        r = classify([LEAF, signed_with(ROOT, 'sha1WithRSAEncryption')])
        self.assertEqual(r[1].hash_family, HashFamily.SHA1)
        self.assertEqual(summarize(r), 'SHA-2 only')

    def test_07(self):
        r = classify([signed_with(LEAF, 'sha1WithRSAEncryption'), LEAF, ROOT])
        self.assertEqual(summarize(r), 'SHA-1 present')
        r = classify([signed_with(LEAF, 'sha1WithRSAEncryption'), ROOT])
        self.assertEqual(summarize(r), 'SHA-1 only')

    def test_08(self):
        self.assertEqual(classify([]), ())
        self.assertEqual(summarize([]), 'no certificates')


if __name__ == '__main__':
    unittest.main()

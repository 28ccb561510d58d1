import base64
import unittest

from cert_inspector.errors import MalformedInputError
from cert_inspector.models import PemLabel
from cert_inspector.pem import encode, normalize, normalize_all

from tests.certs import (CA_CERT, LEAF_CERT, LEAF_KEY, body, corrupt_inner,
                         csr_der, csr_pem, der, key_pem, make_csr, pem)

CERT = PemLabel.CERTIFICATE
CSR = PemLabel.CERTIFICATE_REQUEST

REQUEST = make_csr('example.org')


class PemTest(unittest.TestCase):
    def test_01(self):
        x = normalize(pem(LEAF_CERT), CERT)
        self.assertEqual(x.label, CERT)
        self.assertEqual(x.body, der(LEAF_CERT))

    def test_02(self):
        # missing delimiters
        x = body(LEAF_CERT)
        wrapped = ('-----BEGIN CERTIFICATE-----\n' + x +
                   '-----END CERTIFICATE-----\n')
        self.assertEqual(normalize(x, CERT), normalize(wrapped, CERT))
        self.assertEqual(normalize(x, CERT).body, der(LEAF_CERT))

    def test_03(self):
        # leading whitespace on every line, bytes input
        x = ''.join('   \t' + line + '\n'
                    for line in pem(LEAF_CERT).splitlines())
        r = normalize(x.encode('ascii'), CERT)
        self.assertEqual(r.body, der(LEAF_CERT))

    def test_04(self):
        # indented body without delimiters, single base64 line
        x = '  ' + base64.b64encode(der(LEAF_CERT)).decode('ascii')
        self.assertEqual(normalize(x, CERT).body, der(LEAF_CERT))

    def test_05(self):
        x = '\n\n' + pem(LEAF_CERT)
        self.assertEqual(normalize(x, CERT).body, der(LEAF_CERT))

    def test_06(self):
        # request body without delimiters
        x = '\n'.join(csr_pem(REQUEST).splitlines()[1:-1])
        r = normalize(x, CSR)
        self.assertEqual(r.label, CSR)
        self.assertEqual(r.body, csr_der(REQUEST))

    def test_07(self):
        x = csr_pem(REQUEST).replace('CERTIFICATE REQUEST',
                                     'NEW CERTIFICATE REQUEST')
        r = normalize(x, CERT)
        self.assertEqual(r.label, CSR)
        self.assertEqual(r.body, csr_der(REQUEST))

    def test_08(self):
        with self.assertRaises(MalformedInputError) as e:
            normalize(key_pem(LEAF_KEY), CERT)
        self.assertIn('PRIVATE KEY', str(e.exception))

    def test_09(self):
        x = body(LEAF_CERT)
        x = x[:10] + '!' + x[11:]
        with self.assertRaises(MalformedInputError) as e:
            normalize(x, CERT)
        self.assertEqual(e.exception.offset, 10)

    def test_10(self):
        # valid base64, truncated DER
        x = base64.b64encode(der(LEAF_CERT)[:-12]).decode('ascii')
        with self.assertRaises(MalformedInputError):
            normalize(x, CERT)

    def test_11(self):
        x = base64.b64encode(b'\x02\x01\x01').decode('ascii')
        with self.assertRaises(MalformedInputError) as e:
            normalize(x, CERT)
        self.assertEqual(e.exception.offset, 0)

    def test_12(self):
        x = pem(LEAF_CERT).replace('-----END CERTIFICATE-----', '')
        with self.assertRaises(MalformedInputError):
            normalize(x, CERT)

    def test_13(self):
        with self.assertRaises(MalformedInputError) as e:
            normalize(b'\x00\xff\xfe', CERT)
        self.assertEqual(e.exception.offset, 1)

    def test_14(self):
        x = pem(LEAF_CERT) + key_pem(LEAF_KEY) + pem(CA_CERT)
        r = normalize_all(x, CERT)
        self.assertEqual([b.body for b in r], [der(LEAF_CERT), der(CA_CERT)])

    def test_15(self):
        with self.assertRaises(MalformedInputError):
            normalize_all(key_pem(LEAF_KEY), CERT)

    def test_16(self):
        x = encode(CERT, der(LEAF_CERT))
        self.assertEqual(x, pem(LEAF_CERT))
        lines = x.splitlines()
        self.assertTrue(all(len(line) <= 64 for line in lines[1:-1]))

    def test_17(self):
        # base64 fine, outer SEQUENCE length fine, inner TLV broken
        x = base64.b64encode(corrupt_inner(der(LEAF_CERT))).decode('ascii')
        with self.assertRaises(MalformedInputError):
            normalize(x, CERT)

    def test_18(self):
        # byte order mark from a Windows editor
        r = normalize(b'\xef\xbb\xbf' + pem(LEAF_CERT).encode('ascii'), CERT)
        self.assertEqual(r.body, der(LEAF_CERT))
        r = normalize('\ufeff' + body(LEAF_CERT), CERT)
        self.assertEqual(r.body, der(LEAF_CERT))


if __name__ == '__main__':
    unittest.main()

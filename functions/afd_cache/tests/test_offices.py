import os
import tempfile
import unittest

from afd_cache.offices import load_offices


class LoadOfficesTests(unittest.TestCase):
    def test_packaged_list_is_uppercase(self):
        offices = load_offices()
        self.assertIn("BOX", offices)
        self.assertTrue(all(code == code.upper() for code in offices))

    def test_custom_file_is_normalized(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "wfos.json")
            with open(path, "w") as f:
                f.write('["box", " okx ", ""]')
            self.assertEqual(load_offices(path), ["BOX", "OKX"])

    def test_missing_or_malformed_file_is_empty(self):
        with tempfile.TemporaryDirectory() as tmp:
            missing = os.path.join(tmp, "missing.json")
            malformed = os.path.join(tmp, "bad.json")
            with open(malformed, "w") as f:
                f.write('{"offices": ["BOX"]}')
            with self.assertLogs("afd_cache.offices", level="WARNING"):
                self.assertEqual(load_offices(missing), [])
                self.assertEqual(load_offices(malformed), [])


if __name__ == "__main__":
    unittest.main()

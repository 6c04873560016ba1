import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import MagicMock, patch

from bucketdraw.cli import main
from bucketdraw.db.migrations import current_revision

ADMIN = "0xadmin"


class CliTests(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.db_url = f"sqlite:///{Path(self._tmpdir.name) / 'cli.db'}"
        dotenv_patch = patch("bucketdraw.config.load_dotenv")
        dotenv_patch.start()
        self.addCleanup(dotenv_patch.stop)
        env_patch = patch.dict(os.environ, {"BUCKETDRAW_ADMIN": ADMIN}, clear=True)
        env_patch.start()
        self.addCleanup(env_patch.stop)
        self.assertEqual(self._run("init-db")[0], 0)

    def tearDown(self):
        self._tmpdir.cleanup()

    def _run(self, *argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = main(["--db-url", self.db_url, *argv])
        return code, out.getvalue(), err.getvalue()

    def test_init_db_applies_migrations(self):
        self.assertEqual(current_revision(self.db_url), "0001_giveaway_buckets")
        self.assertEqual(self._run("init-db")[0], 0)
        self.assertEqual(current_revision(self.db_url), "0001_giveaway_buckets")

    def test_append_and_read_entries(self):
        code, out, _ = self._run("append", "0xaaa", "0xbbb")
        self.assertEqual(code, 0)
        self.assertIn("ledger length is 2", out)

        with tempfile.NamedTemporaryFile("w", suffix=".txt", delete=False) as handle:
            handle.write("# more\n0xccc\n")
        self.addCleanup(os.unlink, handle.name)
        self.assertEqual(self._run("append", "--file", handle.name)[0], 0)

        code, out, _ = self._run("entry", "2")
        self.assertEqual((code, out.strip()), (0, "0xccc"))

    def test_replace_entry(self):
        self._run("append", "0xaaa", "0xbbb")
        self.assertEqual(self._run("replace", "1=0xzzz")[0], 0)
        self.assertEqual(self._run("entry", "1")[1].strip(), "0xzzz")

    def test_errors_exit_with_status_one(self):
        code, _, err = self._run("bucket", "0")
        self.assertEqual(code, 1)
        self.assertIn("error: bucket 0 does not exist", err)

        code, _, err = self._run("entry", "5")
        self.assertEqual(code, 1)
        self.assertIn("out of bounds", err)

    def test_mutations_require_admin(self):
        code, _, err = self._run("--actor", "0xintruder", "append", "0xaaa")
        self.assertEqual(code, 1)
        self.assertIn("not the giveaway administrator", err)

    @patch("bucketdraw.cli.OracleClient")
    def test_create_bucket_and_sync(self, mock_client_cls):
        oracle = MagicMock()
        oracle.request_randomness.return_value = 42
        oracle.get_request.return_value = {
            "request_id": 42,
            "status": "pending",
            "random_words": [],
        }
        mock_client_cls.return_value = oracle

        self._run("append", "0xaaa", "0xbbb", "0xccc")
        code, out, _ = self._run(
            "create-bucket", "0", "--amount", "500", "--min", "0", "--max", "2"
        )
        self.assertEqual(code, 0)
        payload = json.loads(out)
        self.assertEqual(payload["request_id"], "42")
        self.assertEqual(payload["amount"], "500")
        self.assertIsNone(payload["winner"])
        oracle.request_randomness.assert_called_once_with(num_words=1)

        code, _, err = self._run("winner", "0")
        self.assertEqual(code, 1)
        self.assertIn("has not been drawn", err)

        pending = json.loads(self._run("pending")[1])
        self.assertEqual([p["bucket_index"] for p in pending], [0])

        code, out, _ = self._run("sync")
        self.assertEqual(code, 0)
        self.assertIn("0 bucket(s) drawn", out)

        oracle.get_request.return_value = {
            "request_id": 42,
            "status": "fulfilled",
            "random_words": [7],
        }
        code, out, _ = self._run("sync")
        self.assertEqual(code, 0)
        self.assertIn("Bucket 0: winner 0xbbb", out)

        self.assertEqual(self._run("winner", "0")[1].strip(), "0xbbb")
        self.assertEqual(json.loads(self._run("pending")[1]), [])


if __name__ == "__main__":
    unittest.main()

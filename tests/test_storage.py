import io
import tempfile
import unittest
from pathlib import Path

from starlette.datastructures import UploadFile

from services.storage import LocalUploadStore


class TestLocalUploadStore(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.root = Path(tempfile.mkdtemp(prefix="loan-intake-store-"))
        self.store = LocalUploadStore(str(self.root / "uploads"))

    async def test_save_writes_bytes(self):
        upload = UploadFile(file=io.BytesIO(b"%PDF-1.4 deed"), filename="Sale Deed.PDF")
        saved = await self.store.save("dynamicFiles_saleDeed", upload)
        self.assertEqual(saved.field_name, "dynamicFiles_saleDeed")
        self.assertEqual(saved.original_filename, "Sale Deed.PDF")
        self.assertTrue(saved.stored_filename.startswith("dynamicFiles_saleDeed-"))
        self.assertTrue(saved.stored_filename.endswith(".pdf"))
        self.assertEqual((self.root / "uploads" / saved.stored_filename).read_bytes(), b"%PDF-1.4 deed")

    def test_stored_names_are_unique_and_safe(self):
        first = self.store.stored_name("id proof", "../../etc/passwd")
        second = self.store.stored_name("id proof", "../../etc/passwd")
        self.assertNotEqual(first, second)
        self.assertNotIn("/", first)
        self.assertTrue(first.startswith("id-proof-"))


if __name__ == "__main__":
    unittest.main()

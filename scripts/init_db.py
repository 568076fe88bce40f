"""Creates the data directory and seeds the default service types (file backend)."""
import os
import sys

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from washconnect.config import get_settings  # noqa: E402
from washconnect.database import build_storage  # noqa: E402
from washconnect.services.service_types import ServiceTypeCatalog  # noqa: E402


storage = build_storage(get_settings().model_copy(update={"STORAGE_BACKEND": "file"}))

if ServiceTypeCatalog(storage).seed_defaults():
    print(f"Seeded default service types into {storage.data_dir}")
else:
    print("Service types already exist")

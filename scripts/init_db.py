# scripts/init_db.py
import os

from cineverse.documents import SqliteDocumentStore
from cineverse.repo import SqliteAccountRepo
from cineverse.storage import SqliteLocalStore

LOCAL_DB = os.path.join("data", "local.db")
CLOUD_DB = os.path.join("data", "cloud.db")

# each store creates its tables on construction
SqliteLocalStore(LOCAL_DB)
SqliteDocumentStore(CLOUD_DB)
SqliteAccountRepo(CLOUD_DB)
print("initialized local db at", LOCAL_DB, "and cloud db at", CLOUD_DB)

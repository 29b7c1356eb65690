"""Seed script — creates the documents table and a handful of demo contacts.

Idempotent: demo contacts use fixed ids and are merge-written.
Run: python scripts/seed.py [tenant_id] [email]
"""
import asyncio
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from app.core.security import create_access_token
from app.db.base import Base
from app.db.session import AsyncSessionLocal, engine
from app.models.document import StoredDocument  # noqa: F401
from app.services.document_store import SERVER_TIMESTAMP, DocumentStore, collection_path

DEMO_CONTACTS = [
    {"id": "demo-ada", "name": "Ada Lovelace", "type": "Customer", "email": "ada@example.com",
     "tags": ["vip", "engineering"], "score": 92, "lastCommunicationDate": "2026-09-30T00:00:00+00:00"},
    {"id": "demo-grace", "name": "Grace Hopper", "type": "Lead", "email": "grace@example.com",
     "tags": ["navy"], "score": 71},
    {"id": "demo-alan", "name": "Alan Turing", "type": "Prospect", "jobTitle": "Researcher",
     "tags": []},
]


async def seed(tenant_id: str, email: str) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    store = DocumentStore(AsyncSessionLocal)
    contacts = collection_path(tenant_id, "contacts")
    batch = store.batch()
    for contact in DEMO_CONTACTS:
        doc = {k: v for k, v in contact.items() if k != "id"}
        doc.update(companyId=tenant_id, updatedAt=SERVER_TIMESTAMP)
        batch.set(contacts, contact["id"], doc, merge=True)
    await batch.commit()
    print(f"  [ok]   {len(DEMO_CONTACTS)} contacts in {contacts}")
    print(f"  [tok]  {create_access_token(tenant_id, email, tenant_id)}")
    await engine.dispose()


if __name__ == "__main__":
    tenant = sys.argv[1] if len(sys.argv) > 1 else "demo-tenant"
    user_email = sys.argv[2] if len(sys.argv) > 2 else "admin@example.com"
    asyncio.run(seed(tenant, user_email))

# clinic_agenda/database.py
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection

from .config import Settings


def create_client(settings: Settings) -> AsyncIOMotorClient:
    return AsyncIOMotorClient(settings.MONGO_URI)


def get_appointments_collection(client: AsyncIOMotorClient, settings: Settings) -> AsyncIOMotorCollection:
    db = client[settings.DB_NAME]
    return db[settings.COLLECTION_NAME]

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine

from shipdesk.config import settings
from shipdesk.models.fulfillment_log import FulfillmentLog, FulfillmentLogBase

class PostgresAgent:
    def __init__(self, database_url: str | None = None):
        self.engine = create_async_engine(database_url or settings.DATABASE_URL)

    async def get_session(self):
        async with AsyncSession(self.engine) as session:
            yield session
    
    async def insert_fulfillment_log(self, entry: FulfillmentLogBase):
        async for db in self.get_session():
            db_log = FulfillmentLog(**entry.model_dump())
            db.add(db_log)
            await db.commit()
            await db.refresh(db_log)
            return db_log
        return None
    
    async def get_fulfillment_logs(self, order_id: str):
        async for db in self.get_session():
            statement = select(FulfillmentLog).where(FulfillmentLog.order_id == order_id).order_by(FulfillmentLog.created_at)
            result = (await db.exec(statement)).all()
            return list(result)
        return []

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from billing_service.domain.models import Currency, Customer


class CustomerRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, customer_id: int) -> Customer | None:
        result = await self._session.execute(
            text("""
                SELECT id, currency
                FROM customers
                WHERE id = :id
            """),
            {"id": customer_id},
        )
        row = result.fetchone()
        if not row:
            return None
        return Customer(id=row.id, currency=Currency(row.currency))

    async def get_all(self) -> list[Customer]:
        result = await self._session.execute(
            text("""
                SELECT id, currency
                FROM customers
                ORDER BY id
            """),
        )
        return [Customer(id=row.id, currency=Currency(row.currency)) for row in result.fetchall()]

    async def add(self, currency: Currency) -> int:
        result = await self._session.execute(
            text("""
                INSERT INTO customers (currency)
                VALUES (:currency)
                RETURNING id
            """),
            {"currency": currency.value},
        )
        return int(result.scalar_one())

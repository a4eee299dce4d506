"""
Cycle Store.

Durable record of the last known cycle per subscription. Every write is a
single native upsert (INSERT ... ON CONFLICT) so two callers racing on the
same key can neither both create the row nor lose an increment. Only
PostgreSQL and SQLite are supported.

Both write paths record the order they counted in the order ledger, so an
orders/create event that arrives after a recount of the same order finds
it already counted.
"""
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models.subscription_cycle import SubscriptionCycle, SubscriptionCycleOrder
from ..utils.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)

cycles = SubscriptionCycle.__table__
ledger = SubscriptionCycleOrder.__table__

_UPSERT_DIALECTS = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}


@dataclass
class CycleRecord:
    """Values written to a SubscriptionCycle row."""
    subscription_key: str
    shop: str
    customer_id: str
    selling_plan_id: Optional[str] = None
    product_id: Optional[str] = None
    variant_id: Optional[str] = None
    cycle: int = 1
    last_order_id: Optional[str] = None


@dataclass
class CycleAssignment:
    """Outcome of an incremental cycle assignment."""
    cycle: int
    created: bool = False    # first order of the subscription, record created
    duplicate: bool = False  # order was already counted, nothing changed


class CycleStore:
    """
    Store for SubscriptionCycle rows.

    Usage:
        store = CycleStore()
        store.upsert(CycleRecord(key, shop, customer_id, cycle=4))
        assignment = store.increment(CycleRecord(key, shop, customer_id), order_id)
    """

    def __init__(self, session=None):
        self.session = session or db.session

    def _upsert_insert(self):
        """Dialect-specific insert construct with on_conflict support."""
        dialect = self.session.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise StoreUnavailable(f"Cycle store needs PostgreSQL or SQLite, not {dialect}")
        return insert

    def get(self, key: str) -> Optional[SubscriptionCycle]:
        """Return the record for a subscription key, or None."""
        try:
            return self.session.query(SubscriptionCycle).filter_by(subscription_key=key).first()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreUnavailable(f"Could not read cycle record {key}: {e}", original_error=e) from e

    def upsert(self, record: CycleRecord) -> SubscriptionCycle:
        """
        Create the record if absent, else overwrite cycle, product/variant
        and last order id. Used by the recount path, whose cycle comes from
        order history rather than from the stored value.

        record.last_order_id, when set, is written to the order ledger with
        the same cycle in the same transaction.
        """
        insert = self._upsert_insert()
        now = datetime.utcnow()
        values = asdict(record)

        try:
            stmt = insert(cycles).values(created_at=now, updated_at=now, **values)
            stmt = stmt.on_conflict_do_update(
                index_elements=['subscription_key'],
                set_={
                    'cycle': stmt.excluded.cycle,
                    'product_id': stmt.excluded.product_id,
                    'variant_id': stmt.excluded.variant_id,
                    'last_order_id': stmt.excluded.last_order_id,
                    'updated_at': now,
                }
            )
            self.session.execute(stmt)

            if record.last_order_id:
                self._record_order(insert, record.last_order_id, record.subscription_key, record.cycle, now)

            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreUnavailable(
                f"Could not upsert cycle record {record.subscription_key}: {e}",
                original_error=e
            ) from e

        logger.debug(f'Upserted {record.subscription_key} cycle={record.cycle}')
        return self.get(record.subscription_key)

    def _record_order(self, insert, order_id: str, key: str, cycle: int, now: datetime):
        """Write (order_id, key, cycle) to the ledger, overwriting any earlier row."""
        stmt = insert(ledger).values(order_id=order_id, subscription_key=key, cycle=cycle, created_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=['order_id'],
            set_={'subscription_key': key, 'cycle': cycle}
        )
        self.session.execute(stmt)

    def increment(self, record: CycleRecord, order_id: str) -> CycleAssignment:
        """
        Assign the next cycle to `order_id`.

        In one transaction: claim the order id in the ledger, then create
        the record at cycle 1 or bump the stored cycle by one. An order id
        that is already in the ledger returns its recorded cycle and
        changes nothing, so redelivered events are no-ops. So does an
        order that is the record's last_order_id.
        """
        insert = self._upsert_insert()
        key = record.subscription_key

        try:
            claim = SubscriptionCycleOrder(order_id=order_id, subscription_key=key)
            self.session.add(claim)
            self.session.flush()
        except IntegrityError:
            self.session.rollback()
            existing = self.session.query(SubscriptionCycleOrder).filter_by(order_id=order_id).first()
            if existing is None or existing.cycle is None:
                raise StoreUnavailable(f"Order {order_id} is claimed but has no recorded cycle")
            logger.info(f'Order {order_id} already counted for {existing.subscription_key} (cycle {existing.cycle})')
            return CycleAssignment(cycle=existing.cycle, duplicate=True)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreUnavailable(f"Could not claim order {order_id}: {e}", original_error=e) from e

        now = datetime.utcnow()
        values = asdict(record)
        values.update(cycle=1, last_order_id=order_id)

        try:
            current = self.session.execute(
                cycles.select().where(cycles.c.subscription_key == key)
            ).first()
            if current is not None and current.last_order_id == order_id:
                claim.cycle = current.cycle
                self.session.commit()
                logger.info(f'Order {order_id} is the last counted order for {key} (cycle {current.cycle})')
                return CycleAssignment(cycle=current.cycle, duplicate=True)

            stmt = insert(cycles).values(created_at=now, updated_at=now, **values)
            stmt = stmt.on_conflict_do_update(
                index_elements=['subscription_key'],
                set_={
                    'cycle': cycles.c.cycle + 1,
                    'last_order_id': order_id,
                    'updated_at': now,
                }
            ).returning(cycles.c.cycle)
            cycle = self.session.execute(stmt).scalar_one()

            claim.cycle = cycle
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreUnavailable(f"Could not increment cycle for {key}: {e}", original_error=e) from e

        logger.info(f'Assigned cycle {cycle} to order {order_id} ({key})')
        return CycleAssignment(cycle=cycle, created=cycle == 1)

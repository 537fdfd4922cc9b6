"""Stamp and redemption state machine for loyalty customers.

Every mutation is a single conditional UPDATE plus an audit row, committed
together. The scan path compares against the ``stamp_count`` and
``last_scan_at`` it read, so two concurrent scans for the same customer
cannot both pass the cooldown check: the loser matches no row, reloads and
is rate limited.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import NoFreeDrinks, RateLimited
from ..models import Customer, Redemption, Scan

DEFAULT_THRESHOLD = 5
DEFAULT_COOLDOWN = timedelta(minutes=10)
MAX_SCAN_ATTEMPTS = 3


def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(dt: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; they are stored as UTC
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class ScanResult:
    customer_id: str
    stamps: int
    free_available: int
    earned_reward: bool
    threshold: int
    scanned_at: datetime

    def to_dict(self):
        return {
            'customer_id': self.customer_id,
            'stamps': self.stamps,
            'free_available': self.free_available,
            'earned_reward': self.earned_reward,
            'threshold': self.threshold,
            'scanned_at': self.scanned_at.isoformat(),
        }


@dataclass(frozen=True)
class RedeemResult:
    customer_id: str
    free_available: int
    redeemed_at: datetime

    def to_dict(self):
        return {
            'customer_id': self.customer_id,
            'free_available': self.free_available,
            'redeemed_at': self.redeemed_at.isoformat(),
        }


class LoyaltyLedger:
    def __init__(self, session, store_id: str, threshold: int = DEFAULT_THRESHOLD,
                 cooldown: timedelta = DEFAULT_COOLDOWN):
        if threshold < 1:
            raise ValueError('stamp threshold must be at least 1')
        self.session = session
        self.store_id = store_id
        self.threshold = threshold
        self.cooldown = cooldown

    def get_or_create(self, customer_id: str) -> Customer:
        customer = self.session.get(Customer, customer_id)
        if customer is not None:
            return customer

        customer = Customer(id=customer_id, stamp_count=0, free_available=0)
        self.session.add(customer)
        try:
            self.session.commit()
        except IntegrityError:
            # Another request inserted the same id first
            self.session.rollback()
            return self.session.get(Customer, customer_id)
        logger.info('new loyalty customer {}', customer_id)
        return customer

    def _load(self, customer_id: str) -> Customer:
        stmt = (
            select(Customer)
            .where(Customer.id == customer_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalar_one()

    def _apply(self, stmt, customer_id: str) -> int | None:
        """Run a conditional customer UPDATE inside the open transaction.

        Returns the ``free_available`` value it wrote, or None when no row
        matched.
        """
        if self.session.get_bind().dialect.update_returning:
            return self.session.execute(stmt.returning(Customer.free_available)).scalar_one_or_none()
        if self.session.execute(stmt).rowcount != 1:
            return None
        return self.session.scalar(select(Customer.free_available).where(Customer.id == customer_id))

    def cooldown_remaining(self, last_scan_at: datetime | None, now: datetime) -> timedelta | None:
        if last_scan_at is None:
            return None
        elapsed = now - as_utc(last_scan_at)
        if elapsed < self.cooldown:
            return self.cooldown - elapsed
        return None

    def record_scan(self, customer_id: str, store_id: str, now: datetime | None = None) -> ScanResult:
        """Count one scan for ``customer_id``.

        The scan that brings the card to ``threshold`` stamps resets it to 0
        and credits one free item (5 scans -> 1 reward with the default
        threshold). Raises RateLimited, without writing anything, when the
        previous counted scan is inside the cooldown window.
        """
        now = as_utc(now) or utcnow()

        for _ in range(MAX_SCAN_ATTEMPTS):
            self.get_or_create(customer_id)
            seen = self._load(customer_id)
            seen_stamps, seen_last = seen.stamp_count, seen.last_scan_at

            remaining = self.cooldown_remaining(seen_last, now)
            if remaining is not None:
                self.session.rollback()
                retry_after = max(1, math.ceil(remaining.total_seconds()))
                logger.info('scan rate limited customer={} retry_after={}s', customer_id, retry_after)
                raise RateLimited(retry_after, 'already scanned')

            earned = seen_stamps + 1 >= self.threshold
            if earned:
                values = {'stamp_count': 0, 'free_available': Customer.free_available + 1}
            else:
                values = {'stamp_count': Customer.stamp_count + 1}
            if seen_last is None:
                last_matches = Customer.last_scan_at.is_(None)
            else:
                last_matches = Customer.last_scan_at == seen_last

            stmt = (
                update(Customer)
                .where(Customer.id == customer_id, Customer.stamp_count == seen_stamps, last_matches)
                .values(last_scan_at=now, **values)
                .execution_options(synchronize_session=False)
            )
            try:
                written = self._apply(stmt, customer_id)
                if written is not None:
                    self.session.add(Scan(customer_id=customer_id, store_id=store_id, scanned_at=now))
                    self.session.commit()
                    break
                self.session.rollback()
            except SQLAlchemyError:
                self.session.rollback()
                logger.exception('scan transaction failed customer={}', customer_id)
                raise
            logger.info('concurrent scan landed first for customer={}, re-evaluating', customer_id)
        else:
            raise RateLimited(int(self.cooldown.total_seconds()), 'concurrent scan')

        stamps = 0 if earned else seen_stamps + 1
        if earned:
            logger.info('customer={} earned a free item at store={}', customer_id, store_id)
        else:
            logger.info('customer={} stamped {}/{} at store={}', customer_id,
                        stamps, self.threshold, store_id)
        return ScanResult(
            customer_id=customer_id,
            stamps=stamps,
            free_available=written,
            earned_reward=earned,
            threshold=self.threshold,
            scanned_at=now,
        )

    def redeem(self, customer_id: str, store_id: str | None = None,
               now: datetime | None = None) -> RedeemResult:
        now = as_utc(now) or utcnow()
        store_id = store_id or self.store_id
        self.get_or_create(customer_id)

        stmt = (
            update(Customer)
            .where(Customer.id == customer_id, Customer.free_available > 0)
            .values(free_available=Customer.free_available - 1)
            .execution_options(synchronize_session=False)
        )
        try:
            left = self._apply(stmt, customer_id)
            if left is None:
                self.session.rollback()
                raise NoFreeDrinks('no free items available')
            self.session.add(Redemption(customer_id=customer_id, store_id=store_id, redeemed_at=now))
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception('redemption transaction failed customer={}', customer_id)
            raise

        logger.info('customer={} redeemed a free item at store={}, {} left',
                    customer_id, store_id, left)
        return RedeemResult(customer_id=customer_id, free_available=left,
                            redeemed_at=now)

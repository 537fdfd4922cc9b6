from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import CheckConstraint, func
import time, os


def _gen_bigint_id():
    """Generate a sortable 64-bit int: millis timestamp << 16 | 16 bits randomness."""
    return (int(time.time() * 1000) << 16) | int.from_bytes(os.urandom(2), 'big')

db = SQLAlchemy()

class Customer(db.Model):
    __tablename__ = 'customers'
    __table_args__ = (
        CheckConstraint('stamp_count >= 0', name='ck_customers_stamp_count'),
        CheckConstraint('free_available >= 0', name='ck_customers_free_available'),
    )

    id = db.Column(db.String(64), primary_key=True)
    stamp_count = db.Column(db.Integer, nullable=False, default=0, server_default='0')
    free_available = db.Column(db.Integer, nullable=False, default=0, server_default='0')
    last_scan_at = db.Column(db.DateTime(timezone=True))

    def to_dict(self):
        return {
            'id': self.id,
            'stamp_count': self.stamp_count,
            'free_available': self.free_available,
            'last_scan_at': self.last_scan_at.isoformat() if self.last_scan_at else None,
        }

class Scan(db.Model):
    __tablename__ = 'scans'

    # Explicit default: SQLite doesn't autoincrement BIGINT primary keys
    id = db.Column(db.BigInteger, primary_key=True, default=_gen_bigint_id)
    customer_id = db.Column(db.String(64), nullable=False, index=True)
    store_id = db.Column(db.String(128), nullable=False)
    scanned_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

class Redemption(db.Model):
    __tablename__ = 'redemptions'

    id = db.Column(db.BigInteger, primary_key=True, default=_gen_bigint_id)
    customer_id = db.Column(db.String(64), nullable=False, index=True)
    store_id = db.Column(db.String(128), nullable=False)
    redeemed_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

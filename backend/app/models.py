from app import db


class LobbyRecord(db.Model):
    """One lobby snapshot, stored whole as JSON.

    ``version`` is bumped on every write; conditional writes match on it.
    Timestamps are epoch milliseconds from the server clock.
    """
    __tablename__ = 'lobby'
    code = db.Column(db.String(6), primary_key=True)
    payload = db.Column(db.Text, nullable=False)
    version = db.Column(db.Integer, nullable=False, default=1)
    expires_at = db.Column(db.BigInteger, nullable=False, index=True)
    last_activity = db.Column(db.BigInteger, nullable=False)

    def to_dict(self):
        return {
            'code': self.code,
            'version': self.version,
            'expires_at': self.expires_at,
            'last_activity': self.last_activity,
        }

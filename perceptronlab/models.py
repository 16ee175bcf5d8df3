import json
from datetime import datetime, timezone
from perceptronlab import db


class LabSetting(db.Model):
    """
    One row per client × setting key.
    value holds the JSON-encoded setting so numbers, flags and id lists
    round-trip unchanged.
    """
    __tablename__ = 'lab_setting'

    id         = db.Column(db.Integer, primary_key=True)
    client_id  = db.Column(db.String(32), nullable=False, index=True)
    key        = db.Column(db.String(40), nullable=False)
    value      = db.Column(db.Text, nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint('client_id', 'key', name='uq_client_key'),
    )

    @property
    def decoded(self):
        return json.loads(self.value)

    def __repr__(self):
        return f"LabSetting(client={self.client_id}, {self.key}={self.value})"


class SavedDataset(db.Model):
    """
    A named dataset a client saved from the dataset studio.
    kind: 'separable' | 'xor' | 'noisy' | 'custom'
    points: JSON array of {"x": [x1, x2], "y": 0|1}
    """
    __tablename__ = 'saved_dataset'

    id         = db.Column(db.Integer, primary_key=True)
    client_id  = db.Column(db.String(32), nullable=False, index=True)
    name       = db.Column(db.String(100), nullable=False)
    kind       = db.Column(db.String(20), nullable=False, default='custom')
    points     = db.Column(db.Text, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self, include_points=False):
        data = {
            'id':         self.id,
            'name':       self.name,
            'kind':       self.kind,
            'size':       len(json.loads(self.points)),
            'created_at': self.created_at.isoformat(),
        }
        if include_points:
            data['points'] = json.loads(self.points)
        return data

    def __repr__(self):
        return f"SavedDataset('{self.name}', kind={self.kind})"

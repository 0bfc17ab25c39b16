from bosstrack import db
import json

DIFFICULTIES = ('easy', 'medium', 'hard', 'extreme', 'legendary')
MIN_RESPAWN_INTERVAL = 1
MAX_RESPAWN_INTERVAL = 10080  # one week, in minutes


def _iso(value):
    return value.isoformat() if value else None


def _load_list(raw):
    try:
        loaded = json.loads(raw) if raw else []
    except ValueError:
        return []
    return loaded if isinstance(loaded, list) else []


class Guild(db.Model):
    __tablename__ = 'guild'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), unique=True, nullable=False)
    members = db.relationship('User', back_populates='guild')

    def to_dict(self):
        return {'id': self.id, 'name': self.name}


class User(db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    guild_id = db.Column(db.Integer, db.ForeignKey('guild.id'), nullable=True)
    role = db.Column(db.String(16), default='member', nullable=False)  # member, admin
    push_notifications = db.Column(db.Boolean, default=True, nullable=False)
    notification_timing = db.Column(db.Text, nullable=True)  # JSON-encoded list of {unit, value}
    favorite_bosses = db.Column(db.Text, nullable=True)  # JSON-encoded list of boss ids
    guild = db.relationship('Guild', back_populates='members')

    @property
    def is_admin(self):
        return self.role == 'admin'

    @property
    def lead_times(self):
        return _load_list(self.notification_timing)

    @property
    def favorite_boss_ids(self):
        return [int(b) for b in _load_list(self.favorite_bosses)]

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'guild_id': self.guild_id,
            'role': self.role,
            'push_notifications': self.push_notifications,
            'notification_timing': self.lead_times,
            'favorite_bosses': self.favorite_boss_ids,
        }


class Boss(db.Model):
    __tablename__ = 'boss'
    __table_args__ = (
        db.CheckConstraint(
            f'respawn_interval >= {MIN_RESPAWN_INTERVAL} AND respawn_interval <= {MAX_RESPAWN_INTERVAL}',
            name='ck_boss_respawn_interval'),
    )
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    level = db.Column(db.Integer, nullable=False, default=1)
    location = db.Column(db.String(128), nullable=True)
    server = db.Column(db.String(64), nullable=True)
    respawn_interval = db.Column(db.Integer, nullable=False)  # minutes
    last_spawn = db.Column(db.DateTime, nullable=True)
    next_spawn = db.Column(db.DateTime, nullable=True)
    difficulty = db.Column(db.String(16), nullable=False, default='medium')
    created_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    spawn_events = db.relationship('SpawnEvent', backref='boss', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'level': self.level,
            'location': self.location,
            'server': self.server,
            'respawn_interval': self.respawn_interval,
            'last_spawn': _iso(self.last_spawn),
            'next_spawn': _iso(self.next_spawn),
            'difficulty': self.difficulty,
            'created_by': self.created_by,
        }


class SpawnEvent(db.Model):
    __tablename__ = 'spawn_event'
    id = db.Column(db.Integer, primary_key=True)
    boss_id = db.Column(db.Integer, db.ForeignKey('boss.id'), nullable=False, index=True)
    spawn_time = db.Column(db.DateTime, nullable=False, index=True)
    kill_time = db.Column(db.DateTime, nullable=True)
    reported_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    verified = db.Column(db.Boolean, default=False, nullable=False)
    server = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    participants = db.Column(db.Text, nullable=True)  # JSON-encoded ordered list of names or member ids
    x = db.Column(db.Float, nullable=True)
    y = db.Column(db.Float, nullable=True)
    z = db.Column(db.Float, nullable=True)
    credited_members = db.Column(db.Text, nullable=True)  # JSON list of [guild_id, member_name] already credited

    @property
    def participant_names(self):
        return [str(p) for p in _load_list(self.participants)]

    @property
    def credited_keys(self):
        return {(int(pair[0]), str(pair[1])) for pair in _load_list(self.credited_members)
                if isinstance(pair, list) and len(pair) == 2}

    @property
    def coordinates(self):
        if self.x is None or self.y is None:
            return None
        coords = {'x': self.x, 'y': self.y}
        if self.z is not None:
            coords['z'] = self.z
        return coords

    def to_dict(self):
        return {
            'id': self.id,
            'boss_id': self.boss_id,
            'spawn_time': _iso(self.spawn_time),
            'kill_time': _iso(self.kill_time),
            'reported_by': self.reported_by,
            'verified': self.verified,
            'server': self.server,
            'notes': self.notes,
            'participants': self.participant_names,
            'coordinates': self.coordinates,
        }


class Contribution(db.Model):
    __tablename__ = 'contribution'
    __table_args__ = (
        db.UniqueConstraint('guild_id', 'member_name', name='uq_contribution_guild_member'),
        db.CheckConstraint('contribution_score >= 0', name='ck_contribution_score'),
    )
    id = db.Column(db.Integer, primary_key=True)
    guild_id = db.Column(db.Integer, db.ForeignKey('guild.id'), nullable=False, index=True)
    member_name = db.Column(db.String(64), nullable=False)
    member_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    contribution_score = db.Column(db.Integer, default=0, nullable=False)
    last_event_date = db.Column(db.DateTime, nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'guild_id': self.guild_id,
            'member_name': self.member_name,
            'member_id': self.member_id,
            'contribution_score': self.contribution_score,
            'last_event_date': _iso(self.last_event_date),
        }


class NotificationReceipt(db.Model):
    """A lead-time alert already delivered for one spawn cycle of a boss."""
    __tablename__ = 'notification_receipt'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'boss_id', 'lead_key', name='uq_receipt_user_boss_lead'),
    )
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    boss_id = db.Column(db.Integer, db.ForeignKey('boss.id'), nullable=False, index=True)
    lead_key = db.Column(db.String(32), nullable=False)  # e.g. minutes_5
    cycle = db.Column(db.DateTime, nullable=False)  # boss.next_spawn it fired for

"""Record store backed by Flask-SQLAlchemy.

The respawn services never touch ``db.session`` directly; they receive a
``SqlStore`` handle and go through list/get/create/update/delete. The one
operation that needs more than that is the contribution increment, which
is a single conditional UPDATE so concurrent increments for the same
member cannot lose updates.
"""

from __future__ import annotations

import logging
import math
import operator
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from bosstrack.errors import ConcurrencyConflict, NotFound
from bosstrack.models import Contribution, User

logger = logging.getLogger(__name__)

_OPS = {
    '==': operator.eq,
    '!=': operator.ne,
    '>=': operator.ge,
    '<=': operator.le,
    '>': operator.gt,
    '<': operator.lt,
}


@dataclass
class Page:
    items: List[Any] = field(default_factory=list)
    total_items: int = 0
    page: int = 1
    page_size: int = 50

    @property
    def total_pages(self) -> int:
        if not self.page_size:
            return 0
        return math.ceil(self.total_items / self.page_size)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


class SqlStore:
    def __init__(self, db):
        self.db = db

    @property
    def session(self):
        return self.db.session

    def _statement(self, model, filters: Optional[Dict[str, Any]] = None, sort=None):
        stmt = sa.select(model)
        for name, cond in (filters or {}).items():
            column = getattr(model, name)
            if isinstance(cond, dict):
                for op, value in cond.items():
                    if op == 'in':
                        stmt = stmt.where(column.in_(list(value)))
                    elif op in _OPS:
                        stmt = stmt.where(_OPS[op](column, value))
                    else:
                        raise ValueError(f"Unsupported filter operator: {op}")
            else:
                stmt = stmt.where(column == cond)
        if isinstance(sort, str):
            sort = [sort]
        for key in sort or []:
            if key.startswith('-'):
                stmt = stmt.order_by(getattr(model, key[1:]).desc())
            else:
                stmt = stmt.order_by(getattr(model, key).asc())
        return stmt.order_by(model.id.asc())

    def list(self, model, filters=None, sort=None, page: int = 1, page_size: int = 50) -> Page:
        stmt = self._statement(model, filters, sort)
        result = self.db.paginate(stmt, page=page, per_page=page_size, error_out=False, count=True)
        return Page(items=list(result.items), total_items=result.total or 0, page=page, page_size=page_size)

    def all(self, model, filters=None, sort=None) -> List[Any]:
        return list(self.session.execute(self._statement(model, filters, sort)).scalars())

    def first(self, model, filters=None, sort=None):
        return self.session.execute(self._statement(model, filters, sort).limit(1)).scalars().first()

    def get(self, model, record_id):
        record = self.session.get(model, record_id)
        if record is None:
            raise NotFound(f"{model.__name__} not found: {record_id}")
        return record

    def create(self, model, **fields):
        record = model(**fields)
        self.session.add(record)
        self.session.commit()
        return record

    def update(self, model, record_id, **fields):
        record = self.get(model, record_id)
        for name, value in fields.items():
            setattr(record, name, value)
        self.session.add(record)
        self.session.commit()
        return record

    def delete(self, model, record_id) -> bool:
        record = self.get(model, record_id)
        self.session.delete(record)
        self.session.commit()
        return True

    def find_account(self, identifier) -> Optional[User]:
        """Resolve a participant string to an account by username, then by id."""
        text = str(identifier).strip()
        if not text:
            return None
        account = self.first(User, {'username': text})
        if account is None and text.isdigit():
            account = self.session.get(User, int(text))
        return account

    def increment_contribution(self, guild_id, member_name, member_id=None,
                               event_date=None, initial_date=None) -> Contribution:
        """Add one to a member's score, creating the row on first sight.

        The existing-row path is a single UPDATE evaluated by the database.
        A lost race on the insert path surfaces as ``ConcurrencyConflict``
        so the caller can retry, at which point the row exists.
        """
        values = {'contribution_score': Contribution.contribution_score + 1}
        if event_date is not None:
            values['last_event_date'] = sa.case(
                (sa.or_(Contribution.last_event_date.is_(None),
                        Contribution.last_event_date < event_date), event_date),
                else_=Contribution.last_event_date,
            )
        if member_id is not None:
            values['member_id'] = sa.func.coalesce(Contribution.member_id, member_id)
        stmt = (
            sa.update(Contribution)
            .where(Contribution.guild_id == guild_id, Contribution.member_name == member_name)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount == 0:
            self.session.add(Contribution(
                guild_id=guild_id,
                member_name=member_name,
                member_id=member_id,
                contribution_score=1,
                last_event_date=event_date or initial_date,
            ))
            try:
                self.session.flush()
            except IntegrityError as exc:
                self.session.rollback()
                logger.info(f"[ledger-conflict] guild={guild_id} name={member_name} concurrent insert")
                raise ConcurrencyConflict(
                    f"Contribution for {member_name} in guild {guild_id} was created concurrently"
                ) from exc
        self.session.commit()
        stmt = (
            sa.select(Contribution)
            .where(Contribution.guild_id == guild_id, Contribution.member_name == member_name)
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalar_one()

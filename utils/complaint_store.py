"""Relational persistence adapter for complaints and the records they reference."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from models import Complaint, Employee, User
from utils.complaint_lifecycle import ConcurrentUpdateConflict, InfrastructureError


SEARCH_COLUMNS = ("name", "email", "reference", "complaint")


class SqlComplaintStore:
    """find/find_one/save/count over a SQLAlchemy session.

    Filters are column-equality mappings; a list or tuple value matches any of
    its members and the ``search`` key does a case-insensitive substring match.
    """

    def __init__(self, session, logger: Optional[logging.Logger] = None) -> None:
        self.session = session
        self.logger = logger or logging.getLogger(__name__)

    def _query(self, filters: Optional[Dict[str, Any]] = None):
        query = self.session.query(Complaint)
        for key, value in (filters or {}).items():
            if key == "search":
                if value:
                    pattern = f"%{value}%"
                    query = query.filter(or_(*[getattr(Complaint, col).ilike(pattern) for col in SEARCH_COLUMNS]))
                continue
            column = getattr(Complaint, key, None)
            if column is None:
                raise ValueError(f"Unknown complaint filter: {key}")
            if isinstance(value, (list, tuple, set)):
                query = query.filter(column.in_(list(value)))
            elif value is None:
                query = query.filter(column.is_(None))
            else:
                query = query.filter(column == value)
        return query

    def _guard(self, operation: str, func, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except StaleDataError as exc:
            self.session.rollback()
            self.logger.warning("Stale complaint write rejected", extra={"operation": operation})
            raise ConcurrentUpdateConflict("Complaint was modified by another request; reload and retry") from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            self.logger.exception("Datastore failure", extra={"operation": operation})
            raise InfrastructureError("Datastore operation failed") from exc

    def find(
        self,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Iterable = (),
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Complaint]:
        def _run():
            query = self._query(filters)
            ordering = list(order_by) or [Complaint.created_at.desc()]
            query = query.order_by(*ordering)
            if offset:
                query = query.offset(offset)
            if limit:
                query = query.limit(limit)
            return query.all()

        return self._guard("find", _run)

    def find_one(self, filters: Dict[str, Any]) -> Optional[Complaint]:
        return self._guard("find_one", lambda: self._query(filters).first())

    def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        return self._guard("count", lambda: self._query(filters).count())

    def reference_exists(self, reference: str) -> bool:
        return self.count({"reference": reference}) > 0

    def save(self, entity):
        def _run():
            self.session.add(entity)
            self.session.commit()
            return entity

        return self._guard("save", _run)

    def get_employee(self, employee_id: str) -> Optional[Employee]:
        return self._guard("get_employee", lambda: self.session.get(Employee, str(employee_id)))

    def get_user(self, user_id: str) -> Optional[User]:
        return self._guard("get_user", lambda: self.session.get(User, str(user_id)))

    def employees_by_email(self, email: str) -> List[Employee]:
        return self._guard(
            "employees_by_email",
            lambda: self.session.query(Employee).filter(Employee.email == (email or "").strip().lower()).all(),
        )

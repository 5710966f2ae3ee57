# camera_auction/store.py
# 문서형 저장소 인터페이스 (collection, id, fields dict).
#
# - SqlDocumentStore: SQLAlchemy 모델 = 컬렉션, 모델 컬럼 = 스키마
# - 모든 쓰기는 "조건부" 가능: expected={필드: 읽었던 값} 이 그대로일 때만 반영
# - write_tolerant/create_tolerant: 스키마가 모르는 필드는 빼고 재시도,
#   횟수 초과 시 상태 필드만 최소 쓰기 → 그래도 안되면 UpstreamUnavailable
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional

from fastapi import Depends
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from camera_auction import models
from camera_auction.config import project_rules as R
from camera_auction.config.time_policy import UTC, ensure_aware_utc
from camera_auction.database import get_db
from camera_auction.errors import (
    ConcurrentModification,
    ConflictError,
    NotFoundError,
    SchemaDrift,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)

Doc = dict[str, Any]


class DocumentStore:
    """저장소 포트. 하위 클래스는 get/create/update/list/delete 를 구현한다."""

    def get_document(self, collection: str, doc_id: str) -> Doc:
        raise NotImplementedError

    def create_document(self, collection: str, fields: Mapping[str, Any]) -> Doc:
        raise NotImplementedError

    def update_document(
        self,
        collection: str,
        doc_id: str,
        fields: Mapping[str, Any],
        expected: Optional[Mapping[str, Any]] = None,
    ) -> Doc:
        raise NotImplementedError

    def list_documents(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Doc]:
        raise NotImplementedError

    def delete_document(self, collection: str, doc_id: str) -> None:
        raise NotImplementedError

    # ---------------------------------------------------
    # 스키마 관용 쓰기
    # ---------------------------------------------------
    def write_tolerant(
        self,
        collection: str,
        doc_id: str,
        fields: Mapping[str, Any],
        *,
        minimal_keys: Iterable[str],
        expected: Optional[Mapping[str, Any]] = None,
        max_attempts: Optional[int] = None,
    ) -> Doc:
        def _update(payload: Doc) -> Doc:
            return self.update_document(collection, doc_id, payload, expected=expected)

        return self._tolerant(_update, f"{collection}/{doc_id}", fields, minimal_keys, max_attempts)

    def create_tolerant(
        self,
        collection: str,
        fields: Mapping[str, Any],
        *,
        minimal_keys: Iterable[str],
        max_attempts: Optional[int] = None,
    ) -> Doc:
        def _create(payload: Doc) -> Doc:
            return self.create_document(collection, payload)

        return self._tolerant(_create, collection, fields, minimal_keys, max_attempts)

    def _tolerant(
        self,
        write: Callable[[Doc], Doc],
        label: str,
        fields: Mapping[str, Any],
        minimal_keys: Iterable[str],
        max_attempts: Optional[int],
    ) -> Doc:
        attempts = max_attempts or R.SCHEMA_WRITE_MAX_ATTEMPTS
        rejected: set[str] = set()
        payload = dict(fields)

        for _ in range(attempts):
            if not payload:
                break
            try:
                return write(payload)
            except SchemaDrift as e:
                if e.field not in payload:
                    break
                logger.warning("[store] %s: dropping unknown field %r and retrying", label, e.field)
                rejected.add(e.field)
                payload.pop(e.field)

        # 최소 쓰기: 이미 거부된 필드는 빼고, 새로 거부되는 필드도 계속 제거
        minimal = {k: fields[k] for k in minimal_keys if k in fields and k not in rejected}
        logger.warning("[store] %s: falling back to minimal write %s", label, sorted(minimal))
        while minimal:
            try:
                return write(minimal)
            except SchemaDrift as e:
                if e.field not in minimal:
                    raise UpstreamUnavailable(f"{label}: minimal write rejected ({e})") from e
                logger.warning("[store] %s: minimal write dropping %r", label, e.field)
                minimal.pop(e.field)
        raise UpstreamUnavailable(f"{label}: no writable fields left")


# -------------------------------------------------------
# SQLAlchemy 구현
# -------------------------------------------------------
COLLECTIONS = {
    "users": models.User,
    "listings": models.Listing,
    "bids": models.Bid,
    "transactions": models.Transaction,
}

_OPS = {
    "==": lambda col, v: col.is_(None) if v is None else col == v,
    "!=": lambda col, v: col.isnot(None) if v is None else col != v,
    "<": lambda col, v: col < v,
    "<=": lambda col, v: col <= v,
    ">": lambda col, v: col > v,
    ">=": lambda col, v: col >= v,
    "in": lambda col, v: col.in_(list(v)),
}


def _to_db(value: Any) -> Any:
    if isinstance(value, datetime):
        return ensure_aware_utc(value).replace(tzinfo=None)
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_to_db(v) for v in value]
    return value


def _from_db(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)
    return value


class SqlDocumentStore(DocumentStore):
    def __init__(self, db: Session):
        self.db = db

    def _model(self, collection: str):
        model = COLLECTIONS.get(collection)
        if model is None:
            raise NotFoundError(f"unknown collection: {collection}")
        return model

    @staticmethod
    def _columns(model) -> set[str]:
        return set(model.__table__.columns.keys())

    def _check_fields(self, collection: str, model, fields: Iterable[str]) -> None:
        cols = self._columns(model)
        for name in fields:
            if name not in cols:
                raise SchemaDrift(name, collection)

    @staticmethod
    def _to_doc(obj) -> Doc:
        return {c.name: _from_db(getattr(obj, c.name)) for c in obj.__table__.columns}

    def _conditions(self, model, filters: Mapping[str, Any]) -> list:
        conds = []
        for name, raw in filters.items():
            op, value = raw if isinstance(raw, tuple) and len(raw) == 2 and raw[0] in _OPS else ("==", raw)
            conds.append(_OPS[op](getattr(model, name), _to_db(value)))
        return conds

    def _rollback(self, collection: str, exc: Exception) -> None:
        self.db.rollback()
        logger.exception("[store] %s: database error", collection)
        raise UpstreamUnavailable(f"database error on {collection}: {exc.__class__.__name__}") from exc

    # ---------------------------------------------------
    def get_document(self, collection: str, doc_id: str) -> Doc:
        model = self._model(collection)
        try:
            obj = self.db.get(model, doc_id)
        except SQLAlchemyError as e:
            self._rollback(collection, e)
        if obj is None:
            raise NotFoundError(f"{collection[:-1]} not found: {doc_id}")
        return self._to_doc(obj)

    def create_document(self, collection: str, fields: Mapping[str, Any]) -> Doc:
        model = self._model(collection)
        self._check_fields(collection, model, fields)
        obj = model(**{k: _to_db(v) for k, v in fields.items()})
        try:
            self.db.add(obj)
            self.db.commit()
            self.db.refresh(obj)
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError(f"{collection}: duplicate or invalid document") from e
        except SQLAlchemyError as e:
            self._rollback(collection, e)
        return self._to_doc(obj)

    def update_document(
        self,
        collection: str,
        doc_id: str,
        fields: Mapping[str, Any],
        expected: Optional[Mapping[str, Any]] = None,
    ) -> Doc:
        model = self._model(collection)
        self._check_fields(collection, model, fields)
        if not fields:
            return self.get_document(collection, doc_id)

        conds = [model.id == doc_id] + self._conditions(model, expected or {})
        values = {k: _to_db(v) for k, v in fields.items()}
        try:
            updated = (
                self.db.query(model)
                .filter(*conds)
                .update(values, synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self._rollback(collection, e)

        if updated == 0:
            # 행이 없으면 404, 있으면 그 사이 상태가 바뀐 것
            current = self.get_document(collection, doc_id)
            changed = {k: current.get(k) for k in (expected or {})}
            raise ConcurrentModification(
                f"{collection}/{doc_id} changed concurrently (expected={dict(expected or {})}, now={changed})"
            )

        self.db.expire_all()
        return self.get_document(collection, doc_id)

    def delete_document(self, collection: str, doc_id: str) -> None:
        model = self._model(collection)
        try:
            deleted = self.db.query(model).filter(model.id == doc_id).delete(synchronize_session=False)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError(f"{collection}/{doc_id}: still referenced") from e
        except SQLAlchemyError as e:
            self._rollback(collection, e)
        if deleted == 0:
            raise NotFoundError(f"{collection[:-1]} not found: {doc_id}")

    def list_documents(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Doc]:
        model = self._model(collection)
        q = self.db.query(model)
        if filters:
            self._check_fields(collection, model, filters)
            q = q.filter(*self._conditions(model, filters))
        if order_by:
            name = order_by.lstrip("-")
            col = getattr(model, name)
            q = q.order_by(col.desc() if order_by.startswith("-") else col.asc())
        if limit:
            q = q.limit(limit)
        try:
            return [self._to_doc(obj) for obj in q.all()]
        except SQLAlchemyError as e:
            self._rollback(collection, e)


def get_store(db: Session = Depends(get_db)) -> DocumentStore:
    return SqlDocumentStore(db)

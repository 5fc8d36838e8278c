# eumlog/consultation_store.py

import logging
from dataclasses import dataclass

import requests
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from eumlog.entities import Base, ConsultationResult
from eumlog.outcome import NegotiationOutcome
from eumlog.records import ClientRecord

logger = logging.getLogger("eumlog_backend")

SAVE_ACTION = "save_consultation"


class ConsultationStoreError(Exception):
    pass


@dataclass(frozen=True)
class ConsultationWrite:
    """One write per completed session."""

    name: str
    birth: str
    phone: str
    outcome: NegotiationOutcome
    chat_log: str

    @classmethod
    def for_record(cls, record: ClientRecord, outcome: NegotiationOutcome, chat_log: str) -> "ConsultationWrite":
        return cls(
            name=record.name,
            birth=record.birth_token,
            phone=record.phone,
            outcome=outcome,
            chat_log=chat_log,
        )

    def to_payload(self) -> dict:
        return {
            "action": SAVE_ACTION,
            "name": self.name,
            "birth": self.birth,
            "phone": self.phone,
            "updates": dict(self.outcome.updates),
            "changeSummary": self.outcome.change_summary,
            "memo": self.outcome.memo or self.chat_log,
            "chatLog": self.chat_log,
        }


class ConsultationStore:
    def save(self, write: ConsultationWrite) -> str:
        """Persist one completed consultation; returns a store-side reference."""
        raise NotImplementedError


class AppsScriptConsultationStore(ConsultationStore):
    """
    Posts the result to the spreadsheet's Apps Script web app.
    """

    def __init__(self, url: str, timeout: float = 15.0, session: requests.Session = None):
        if not url:
            raise ValueError("Apps Script URL is not configured")
        self.url = url
        self.timeout = timeout
        self.http = session or requests.Session()

    def save(self, write: ConsultationWrite) -> str:
        try:
            resp = self.http.post(self.url, json=write.to_payload(), timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise ConsultationStoreError(f"Apps Script save failed: {e}") from e
        logger.info(f"consultation saved to Apps Script for {write.name} ({resp.status_code})")
        return f"apps-script:{resp.status_code}"


def build_session_factory(db_url: str) -> sessionmaker:
    engine = create_engine(db_url, future=True)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)


class SqlConsultationStore(ConsultationStore):
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @classmethod
    def from_url(cls, db_url: str) -> "SqlConsultationStore":
        return cls(build_session_factory(db_url))

    def save(self, write: ConsultationWrite) -> str:
        """
        Create a ConsultationResult row and return its id.
        """
        session: Session = self.session_factory()
        try:
            row = ConsultationResult(
                name=write.name,
                birth=write.birth,
                phone=write.phone or None,
                updates=dict(write.outcome.updates),
                change_summary=write.outcome.change_summary,
                memo=write.outcome.memo or None,
                chat_log=write.chat_log,
            )
            session.add(row)
            session.commit()
            return row.id
        except SQLAlchemyError as e:
            session.rollback()
            raise ConsultationStoreError(f"database save failed: {e}") from e
        finally:
            session.close()

    def load(self, name: str, birth: str) -> list[ConsultationResult]:
        session: Session = self.session_factory()
        try:
            return (
                session.query(ConsultationResult)
                .filter(ConsultationResult.name == name, ConsultationResult.birth == birth)
                .order_by(ConsultationResult.created_at)
                .all()
            )
        finally:
            session.close()


def build_store(config) -> ConsultationStore:
    if config.apps_script_url:
        return AppsScriptConsultationStore(config.apps_script_url)
    return SqlConsultationStore.from_url(config.consultation_db_url)

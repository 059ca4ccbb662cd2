# productsync/context.py
from flask import current_app

from .db.store import SessionRepository, SyncRecordStore
from .models import Session


def _ext() -> dict:
    return current_app.extensions["productsync"]

def records() -> SyncRecordStore:
    return SyncRecordStore(_ext()["store"], current_app.config["MONGO_DB"])

def sessions() -> SessionRepository:
    return SessionRepository(_ext()["store"], current_app.config["MONGO_DB"],
                             current_app.config["SESSIONS_COLLECTION"])

def client_for(session: Session):
    return _ext()["client_factory"](session)

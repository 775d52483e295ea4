# File: app/crud/base.py
from typing import Any, Dict, Generic, Optional, Type, TypeVar, Union
import functools
import logging
import time

from pydantic import BaseModel
from sqlalchemy.exc import DisconnectionError, OperationalError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import TransientStoreFailure
from app.db.database import Base

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)

TRANSIENT_ERRORS = (OperationalError, DisconnectionError)


def retry_read(func):
    """Retry a read-only store call on connection/timeout errors.

    Backs off exponentially and raises TransientStoreFailure once
    STORE_READ_RETRIES attempts are used up. Never wrap mutations with this.
    """
    @functools.wraps(func)
    def wrapper(self, db: Session, *args, **kwargs):
        attempts = max(1, settings.STORE_READ_RETRIES)
        for attempt in range(1, attempts + 1):
            try:
                return func(self, db, *args, **kwargs)
            except TRANSIENT_ERRORS as e:
                db.rollback()
                if attempt == attempts:
                    logger.error(f"{func.__name__} failed after {attempts} attempts: {e}")
                    raise TransientStoreFailure("Token store is temporarily unavailable") from e
                delay = settings.STORE_RETRY_BACKOFF_SECONDS * (2 ** (attempt - 1))
                logger.warning(
                    f"{func.__name__} attempt {attempt}/{attempts} failed: {e}; retrying in {delay:.2f}s"
                )
                time.sleep(delay)
    return wrapper


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    def __init__(self, model: Type[ModelType]):
        self.model = model

    @retry_read
    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        return db.query(self.model).filter(self.model.id == id).first()

    def create(self, db: Session, *, obj_in: Union[CreateSchemaType, Dict[str, Any]]) -> ModelType:
        obj_data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump()
        db_obj = self.model(**obj_data)
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

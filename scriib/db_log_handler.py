import logging

from scriib.db import SessionLocal
from scriib.db_models import AppLog

class DBLogHandler(logging.Handler):
    """
    Stores log records into app_logs for admin visibility.
    Moderate volume only; attach with DB_LOG_LEVEL at INFO or above.
    """
    def emit(self, record: logging.LogRecord) -> None:
        # records emitted while writing a record would recurse through sqlalchemy logging
        if record.name.startswith("sqlalchemy"):
            return

        db = SessionLocal()
        try:
            db.add(
                AppLog(
                    level=record.levelname,
                    logger=record.name,
                    service=getattr(record, "service", None),
                    message=record.getMessage(),
                    request_id=getattr(record, "request_id", None),
                    task_id=getattr(record, "task_id", None),
                    event=getattr(record, "event", None),
                    data=getattr(record, "data", None),
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            self.handleError(record)
        finally:
            db.close()

def attach_db_log_handler(level: str) -> DBLogHandler:
    handler = DBLogHandler()
    handler.setLevel(level.upper())
    logging.getLogger().addHandler(handler)
    return handler

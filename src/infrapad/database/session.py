# infrapad/src/infrapad/database/session.py

import contextlib
import functools
from sqlalchemy.orm import sessionmaker
from infrapad.database.engine import engine

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

@contextlib.contextmanager
def get_session(session_factory=SessionLocal):
    """
    Use as:
        with get_session() as session:
            ...
    """
    db = session_factory()
    try:
        yield db
    finally:
        db.close()

@contextlib.contextmanager
def transaction(session_factory=SessionLocal):
    """
    One unit of work: commits when the block succeeds, rolls back
    everything written in the block when it raises.

    Use as:
        with transaction() as session:
            ...
    """
    db = session_factory()
    try:
        yield db
        db.commit()
    except BaseException:
        db.rollback()
        raise
    finally:
        db.close()

def db_session(func):
    """
    Decorator to provide a session to the wrapped function.
    The session is automatically closed after the function returns.
    
    Use as:
        @db_session
        def my_function(session, *args, **kwargs):
            ...
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        with get_session() as session:
            return func(session, *args, **kwargs)
    return wrapper

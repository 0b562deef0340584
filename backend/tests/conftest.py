"""Pytest fixtures configuring an isolated transactional database layer.

Each test runs inside a SAVEPOINT-backed transaction against an in-memory
SQLite database so data changes never leak between cases. Signing keys are
generated once per session; RSA key generation dominates test time otherwise.
"""

from __future__ import annotations

import os

import pytest
from sqlalchemy import event
from sqlalchemy.orm import scoped_session, sessionmaker
from taskauth.core.config import TestingConfig
from taskauth.core.extensions import db as _db  # Flask-SQLAlchemy instance
from taskauth.core.security import get_credentials
from taskauth.factory import create_app  # application factory under test
from taskauth.infra.jwt.key_store import generate_rsa_keypair


@pytest.fixture(scope="session")
def app():
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application instance with :class:`TestingConfig` applied and logging
        noise reduced. No PEMs are configured, so the key store runs on an
        ephemeral key.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    app = create_app(TestingConfig, instance_relative_config=False)
    app.logger.setLevel("WARNING")
    return app


@pytest.fixture(scope="session")
def db(app):
    """Create database tables once per test session.

    Yields
    ------
    flask_sqlalchemy.SQLAlchemy
        Database extension bound to the testing application.
    """
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="session")
def connection(db):
    """Keep a dedicated DBAPI connection open for the whole session."""
    conn = db.engine.connect()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def session(db, connection):
    """Provide a SQLAlchemy session wrapped in a nested transaction.

    Notes
    -----
    The fixture mirrors the SQLAlchemy 2.0 pattern for transactional tests: it
    begins a top-level transaction, starts a SAVEPOINT per test, and reinstalls
    the SAVEPOINT whenever SQLAlchemy ends one. Unit-of-work commits inside the
    code under test therefore only release their own SAVEPOINT.
    """
    # 1) Top-level transaction
    top_trans = connection.begin()

    # 2) Scoped session bound to the connection
    SessionFactory = sessionmaker(bind=connection, future=True, autoflush=False)
    scoped = scoped_session(SessionFactory)

    # 3) SAVEPOINT per test
    nested = connection.begin_nested()

    # 4) Re-create SAVEPOINT when the previous nested transaction ends
    @event.listens_for(scoped(), "after_transaction_end")
    def _restart_savepoint(sess, trans):  # pragma: no cover
        if trans.nested and not trans._parent.nested:
            nonlocal nested
            nested = connection.begin_nested()

    # 5) Monkey-patch db.session so app code uses this scoped session
    original_session = db.session
    db.session.remove()
    db.session = scoped

    try:
        yield scoped
    finally:
        scoped.remove()
        db.session = original_session
        top_trans.rollback()


@pytest.fixture()
def client(app, session):
    """Return a Flask test client sharing the transactional session.

    The session-wide app context is reused by every test request, so ``g``
    is cleared when each request starts to mirror a fresh per-request ``g``.
    """
    from flask import g, request_started

    def _fresh_g(sender, **extra):
        g.__dict__.clear()

    request_started.connect(_fresh_g, app)
    try:
        yield app.test_client()
    finally:
        request_started.disconnect(_fresh_g, app)


@pytest.fixture()
def credentials(app):
    """Expose the credential components wired by the factory."""
    with app.app_context():
        yield get_credentials()


@pytest.fixture(autouse=True)
def _reset_rate_limits(app):
    """Start every test with empty rate-limit windows."""
    with app.app_context():
        get_credentials().rate_limiter.reset()
    yield


@pytest.fixture(scope="session")
def rsa_pems():
    """Two PEM pairs as ``[(private, public), ...]`` text, generated once."""
    pairs = []
    for _ in range(2):
        private_pem, public_pem = generate_rsa_keypair()
        pairs.append((private_pem.decode(), public_pem.decode()))
    return pairs


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


# -- Hook up Factory Boy to pytest SQLAlchemy session --------------------------
@pytest.fixture(autouse=True)
def _factories_session(session):
    """Wire Factory Boy's session helper to the transactional session fixture."""
    from tests.factories import SQLAlchemySession

    SQLAlchemySession.set(session)
    yield

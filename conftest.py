import io
import os
import uuid
from datetime import datetime, timedelta, timezone
from itertools import count

import docx
import fitz
import pytest

# Configure the environment before any app module reads it
TEST_DATABASE_URL = "sqlite:///./resume-ranker-test.db"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["AWS_EMF_ENVIRONMENT"] = "Local"
os.environ["OPENAI_API_KEY"] = ""
os.environ["OPENROUTER_API_KEY"] = ""
os.environ["AUTH_ENABLED"] = "false"
os.environ.setdefault("LOG_FORMAT", "console")

from fastapi.testclient import TestClient  # noqa: E402

# Import app and DB dependency function first
from main import app, get_db  # noqa: E402

# Import database components needed for setup
from database import Base, SessionLocal, engine  # noqa: E402
import crud  # noqa: E402
import schemas  # noqa: E402


def _remove_db_files(db_path: str) -> None:
    for path in (db_path, f"{db_path}-wal", f"{db_path}-shm"):
        if os.path.exists(path):
            try:
                os.unlink(path)
            except OSError as e:
                print(f"Error removing test database file {path}: {e}")


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create the test database from models."""
    db_path = TEST_DATABASE_URL.split("///")[-1]
    engine.dispose()
    _remove_db_files(db_path)

    Base.metadata.create_all(bind=engine)

    yield  # Tests run here

    engine.dispose()
    _remove_db_files(db_path)


@pytest.fixture(scope="function")
def db_session(setup_test_database):
    """Yields a SQLAlchemy session directly from the session factory."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def override_get_db():
    """Override the get_db dependency so each API call gets its own session."""

    def _override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    original = app.dependency_overrides.get(get_db)
    app.dependency_overrides[get_db] = _override_get_db

    yield

    if original:
        app.dependency_overrides[get_db] = original
    else:
        del app.dependency_overrides[get_db]


@pytest.fixture(scope="function")
def test_client(override_get_db):
    """Provides a test client configured with our test database session."""
    return TestClient(app)


@pytest.fixture(scope="function")
def user(db_session):
    """A fresh user so every test sees an empty resume and analysis set."""
    db_user = crud.create_user(
        db_session, schemas.UserCreate(email=f"recruiter-{uuid.uuid4().hex[:8]}@example.com")
    )
    db_session.commit()
    return db_user


@pytest.fixture(scope="function")
def make_resume(db_session, user):
    """Factory for stored resumes.

    Each call gets an older `fetched_at` than the previous one, so the
    store's newest-first order equals the order in which a test creates them.
    """
    base = datetime.now(timezone.utc)
    ticks = count()

    def _make_resume(text: str, name: str = None, owner=None):
        resume = crud.create_resume(
            db_session,
            schemas.ResumeCreate(
                extracted_text=text,
                original_file_name=f"{(name or 'resume').lower().replace(' ', '_')}.pdf",
                file_type="application/pdf",
                candidate_name=name,
            ),
            user_id=(owner or user).id,
        )
        resume.fetched_at = base - timedelta(seconds=next(ticks))
        db_session.commit()
        db_session.refresh(resume)
        return resume

    return _make_resume


@pytest.fixture
def make_pdf():
    """Builds an in-memory PDF with one page per text (blank page for "")."""

    def _make_pdf(*pages: str) -> bytes:
        doc = fitz.open()
        for text in pages or ("",):
            page = doc.new_page()
            if text:
                page.insert_text((72, 72), text)
        content = doc.tobytes()
        doc.close()
        return content

    return _make_pdf


@pytest.fixture
def make_docx():
    def _make_docx(*paragraphs: str) -> bytes:
        document = docx.Document()
        for paragraph in paragraphs:
            document.add_paragraph(paragraph)
        buffer = io.BytesIO()
        document.save(buffer)
        return buffer.getvalue()

    return _make_docx

"""Initial schema: projects, versions and sealed secrets.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── 1. projects ──
    op.execute("""
        CREATE TABLE projects (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            owner_id TEXT NOT NULL,
            code_repo_ref TEXT NOT NULL,
            database_ref TEXT NOT NULL,
            thread_id TEXT,
            current_version_id TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_projects_owner_id ON projects (owner_id)")

    # ── 2. project_versions ──
    op.execute("""
        CREATE TABLE project_versions (
            id TEXT PRIMARY KEY,
            project_id TEXT NOT NULL REFERENCES projects(id),
            code_revision TEXT NOT NULL,
            snapshot_id TEXT NOT NULL,
            summary TEXT NOT NULL,
            triggering_message_id TEXT,
            created_at TIMESTAMPTZ NOT NULL
        )
    """)
    op.execute(
        "CREATE INDEX idx_project_versions_project_created "
        "ON project_versions (project_id, created_at DESC)"
    )

    # ── 3. project_secrets ──
    op.execute("""
        CREATE TABLE project_secrets (
            project_version_id TEXT PRIMARY KEY REFERENCES project_versions(id),
            secrets TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # ── 4. current version pointer ──
    op.execute("""
        ALTER TABLE projects
            ADD CONSTRAINT fk_projects_current_version
            FOREIGN KEY (current_version_id) REFERENCES project_versions(id)
    """)


def downgrade() -> None:
    op.execute("ALTER TABLE projects DROP CONSTRAINT IF EXISTS fk_projects_current_version")
    op.execute("DROP TABLE IF EXISTS project_secrets")
    op.execute("DROP TABLE IF EXISTS project_versions")
    op.execute("DROP TABLE IF EXISTS projects")

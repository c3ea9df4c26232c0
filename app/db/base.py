# app/db/base.py
# Alembic model registry — imports Base + every model so Alembic detects all tables.
# Do NOT import this file from model files (use app.db.base_class instead).
# This file is imported by:
#   - alembic/env.py          (schema detection)
#   - app/db/events.py        (change capture needs every mapper configured)
#   - endpoint modules        (relationship() strings must resolve)

from app.db.base_class import Base  # noqa: F401

# ── Import all models here so Alembic can detect them ────────────────────────
# Order matters: parent tables before child tables (foreign key dependencies)

from app.models.user import User, Child                                # noqa: F401, E402
from app.models.teacher import TeacherRate                             # noqa: F401, E402
from app.models.request import Request, RequestApplication             # noqa: F401, E402
from app.models.engagement import (                                    # noqa: F401, E402
    TeacherStudent,
    ParentChildTeacher,
    ParentRequestTeacherChild,
)

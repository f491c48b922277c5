"""
Module: compliance_kernel.db.triggers
Responsibility: Installing, removing and verifying PostgreSQL immutability
    triggers (Layer 2 of 2).  This is the database-level complement to the
    ORM-level listeners in db/immutability.py.
Architecture position: Kernel > DB.  MUST NOT import from models/,
    services/, domain/, or outer layers.

Invariants enforced:
    - audit_entries rows: no UPDATE, no DELETE, ever.
    - site_inspections rows: id, created_at, created_by_id, insertion_seq
      frozen; no DELETE.

Failure modes:
    - PostgreSQL RAISE EXCEPTION on any trigger violation (surfaces as
      InternalError / ProgrammingError from SQLAlchemy).
    - OperationalError on deadlock during installation (caller retries).
"""

from sqlalchemy import text
from sqlalchemy.engine import Engine

AUDIT_ENTRY_SQL = """
CREATE OR REPLACE FUNCTION prevent_audit_entry_modification()
RETURNS TRIGGER AS $$
BEGIN
    RAISE EXCEPTION 'IMMUTABILITY_VIOLATION: audit entry % cannot be %',
        OLD.seq, lower(TG_OP);
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS trg_audit_entry_immutability_update ON audit_entries;
CREATE TRIGGER trg_audit_entry_immutability_update
    BEFORE UPDATE ON audit_entries
    FOR EACH ROW EXECUTE FUNCTION prevent_audit_entry_modification();

DROP TRIGGER IF EXISTS trg_audit_entry_immutability_delete ON audit_entries;
CREATE TRIGGER trg_audit_entry_immutability_delete
    BEFORE DELETE ON audit_entries
    FOR EACH ROW EXECUTE FUNCTION prevent_audit_entry_modification();
"""

SITE_INSPECTION_SQL = """
CREATE OR REPLACE FUNCTION prevent_site_inspection_identity_change()
RETURNS TRIGGER AS $$
BEGIN
    IF NEW.id IS DISTINCT FROM OLD.id
       OR NEW.created_at IS DISTINCT FROM OLD.created_at
       OR NEW.created_by_id IS DISTINCT FROM OLD.created_by_id
       OR NEW.insertion_seq IS DISTINCT FROM OLD.insertion_seq THEN
        RAISE EXCEPTION 'IMMUTABILITY_VIOLATION: identity fields of site inspection % are frozen',
            OLD.id;
    END IF;
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;

CREATE OR REPLACE FUNCTION prevent_site_inspection_delete()
RETURNS TRIGGER AS $$
BEGIN
    RAISE EXCEPTION 'IMMUTABILITY_VIOLATION: site inspection % cannot be deleted',
        OLD.id;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS trg_site_inspection_identity_update ON site_inspections;
CREATE TRIGGER trg_site_inspection_identity_update
    BEFORE UPDATE ON site_inspections
    FOR EACH ROW EXECUTE FUNCTION prevent_site_inspection_identity_change();

DROP TRIGGER IF EXISTS trg_site_inspection_delete ON site_inspections;
CREATE TRIGGER trg_site_inspection_delete
    BEFORE DELETE ON site_inspections
    FOR EACH ROW EXECUTE FUNCTION prevent_site_inspection_delete();
"""

DROP_SQL = """
DROP TRIGGER IF EXISTS trg_audit_entry_immutability_update ON audit_entries;
DROP TRIGGER IF EXISTS trg_audit_entry_immutability_delete ON audit_entries;
DROP TRIGGER IF EXISTS trg_site_inspection_identity_update ON site_inspections;
DROP TRIGGER IF EXISTS trg_site_inspection_delete ON site_inspections;
DROP FUNCTION IF EXISTS prevent_audit_entry_modification();
DROP FUNCTION IF EXISTS prevent_site_inspection_identity_change();
DROP FUNCTION IF EXISTS prevent_site_inspection_delete();
"""

ALL_TRIGGER_NAMES = [
    "trg_audit_entry_immutability_update",
    "trg_audit_entry_immutability_delete",
    "trg_site_inspection_identity_update",
    "trg_site_inspection_delete",
]


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install database-level immutability triggers.

    Preconditions: Tables exist; engine is connected to PostgreSQL.
    Postconditions: All triggers in ALL_TRIGGER_NAMES are installed.
        Functions use CREATE OR REPLACE, so reinstalling is harmless.
    """
    with engine.connect() as conn:
        conn.execute(text(AUDIT_ENTRY_SQL))
        conn.execute(text(SITE_INSPECTION_SQL))
        conn.commit()


def uninstall_immutability_triggers(engine: Engine) -> None:
    """
    Remove database-level immutability triggers.

    WARNING: Only for test teardown and migrations.
    """
    with engine.connect() as conn:
        conn.execute(text(DROP_SQL))
        conn.commit()


def get_installed_triggers(engine: Engine) -> list[str]:
    trigger_list = ", ".join(f"'{name}'" for name in ALL_TRIGGER_NAMES)
    check_sql = f"""
    SELECT tgname FROM pg_trigger
    WHERE tgname IN ({trigger_list})
    ORDER BY tgname;
    """

    with engine.connect() as conn:
        result = conn.execute(text(check_sql))
        return [row[0] for row in result]


def triggers_installed(engine: Engine) -> bool:
    """True iff every trigger in ALL_TRIGGER_NAMES is present in pg_trigger."""
    return len(get_installed_triggers(engine)) == len(ALL_TRIGGER_NAMES)

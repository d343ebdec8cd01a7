from sqlalchemy.dialects import postgresql

from rowaudit.models.target_table import TargetTable
from rowaudit.services.capture import _postgresql_function_ddl, install_capture, remove_capture


class RecordingConnection:
    """PostgreSQL-dialect connection that keeps the SQL it is asked to run."""

    def __init__(self):
        self.dialect = postgresql.dialect()
        self.statements = []

    def exec_driver_sql(self, statement, *args, **kwargs):
        self.statements.append(" ".join(statement.split()))


def _normalized(sql: str) -> str:
    return " ".join(sql.split())


def test_capture_function_records_the_row_images():
    ddl = _normalized(_postgresql_function_ddl())

    assert ddl.startswith("CREATE OR REPLACE FUNCTION rowaudit_capture() RETURNS trigger")
    assert "SET search_path FROM CURRENT" in ddl
    assert "old_row := to_jsonb(OLD)" in ddl
    assert "new_row := to_jsonb(NEW)" in ddl
    assert "INSERT INTO audit_records" in ddl
    assert "TG_ARGV[0]::integer, COALESCE(old_row, new_row) ->> TG_ARGV[1], session_user" in ddl
    assert "clock_timestamp()" in ddl
    assert "RETURN NULL" in ddl


def test_install_replaces_the_trigger_on_its_own_table():
    connection = RecordingConnection()
    orders = TargetTable(id=7, table_name="sales.Orders", key_column="order_id")
    invoices = TargetTable(id=8, table_name="invoices", key_column="id")

    install_capture(connection, orders, ["order_id", "total"])
    install_capture(connection, invoices, ["id"])

    assert connection.statements == [
        'DROP TRIGGER IF EXISTS rowaudit_capture_trg ON sales."Orders"',
        'CREATE TRIGGER rowaudit_capture_trg AFTER INSERT OR UPDATE OR DELETE ON sales."Orders" '
        "FOR EACH ROW EXECUTE FUNCTION rowaudit_capture('7', 'order_id')",
        "DROP TRIGGER IF EXISTS rowaudit_capture_trg ON invoices",
        "CREATE TRIGGER rowaudit_capture_trg AFTER INSERT OR UPDATE OR DELETE ON invoices "
        "FOR EACH ROW EXECUTE FUNCTION rowaudit_capture('8', 'id')",
    ]


def test_remove_drops_the_trigger_of_that_table():
    connection = RecordingConnection()

    remove_capture(connection, "public.user")
    remove_capture(connection, "public.user")

    assert connection.statements == [
        'DROP TRIGGER IF EXISTS rowaudit_capture_trg ON public."user"',
        'DROP TRIGGER IF EXISTS rowaudit_capture_trg ON public."user"',
    ]

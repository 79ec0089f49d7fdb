from sqlalchemy import create_engine, inspect, text

from devicebook.db.migrate import run_migrations


def test_run_migrations_upgrades_old_schema(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'old.db'}")
    with engine.begin() as conn:
        conn.execute(
            text(
                "CREATE TABLE devices (id TEXT PRIMARY KEY, owner_user_id TEXT, model TEXT, storage TEXT,"
                " color TEXT, condition TEXT, status TEXT, purchase_date DATE, purchase_price NUMERIC,"
                " repair_cost NUMERIC, shipping_buy NUMERIC, shipping_sell NUMERIC, sale_price NUMERIC,"
                " sales_fees NUMERIC, repair_date DATE, sale_date DATE, created_at TEXT, updated_at TEXT)"
            )
        )
        conn.execute(
            text(
                "CREATE TABLE device_files (id INTEGER PRIMARY KEY, device_id TEXT, owner_user_id TEXT,"
                " file_name TEXT, file_path TEXT, file_size INTEGER, created_at TEXT, category TEXT)"
            )
        )
        conn.execute(text("INSERT INTO devices (id, status) VALUES ('RS-1', 'STOCK')"))
        for path in ("a.pdf", "b.pdf"):
            conn.execute(
                text(
                    "INSERT INTO device_files (device_id, file_name, file_path, file_size, category)"
                    " VALUES ('RS-1', :path, :path, 1, 'EIGENBELEG')"
                ),
                {"path": path},
            )

    run_migrations(engine)
    run_migrations(engine)

    inspector = inspect(engine)
    device_columns = {column["name"] for column in inspector.get_columns("devices")}
    assert {"imei", "is_diff_tax", "seller_name", "defects"} <= device_columns
    assert "file_type" in {column["name"] for column in inspector.get_columns("device_files")}
    with engine.connect() as conn:
        remaining = conn.execute(text("SELECT file_path FROM device_files")).scalars().all()
        is_diff_tax = conn.execute(text("SELECT is_diff_tax FROM devices")).scalar()
    assert remaining == ["b.pdf"]
    assert is_diff_tax == 1
    engine.dispose()


def test_run_migrations_ignores_missing_tables(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'empty.db'}")

    run_migrations(engine)

    assert inspect(engine).get_table_names() == []
    engine.dispose()

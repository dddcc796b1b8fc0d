"""Load a demo catalogue: schemas, tables, columns, lineage, a project and its change log."""

import argparse
import logging
import os
import random
from datetime import datetime, timedelta
from typing import Dict, Optional

from dotenv import load_dotenv
from faker import Faker
from sqlalchemy.orm import Session, sessionmaker

from .core import CatalogManager, LineageForm, SourceRow
from .models import ChangeType, DataType, MappingType, TransformationType
from .models.base import DATABASE_URL, create_tables, make_engine

logger = logging.getLogger(__name__)

# Initialize Faker for generating realistic change history
fake = Faker()

DEMO_SCHEMAS = {
    "HR_SCHEMA": "Human resources data",
    "FINANCE_SCHEMA": "General ledger and accounts",
    "INVENTORY_SCHEMA": "Stock levels and warehouses",
}

DEMO_TABLES = {
    ("HR_SCHEMA", "employees"): "One row per current or former employee",
    ("HR_SCHEMA", "departments"): "Organisational departments",
    ("FINANCE_SCHEMA", "accounts"): "Chart of accounts",
    ("FINANCE_SCHEMA", "payroll_summary"): "Monthly payroll totals per department",
    ("INVENTORY_SCHEMA", "stock_items"): "Items held in stock",
}

DEMO_COLUMNS = {
    ("HR_SCHEMA", "employees"): [
        dict(name="employee_id", data_type=DataType.NUMBER, precision=10, scale=0, primary_key=True,
             definition="Unique identifier for each employee"),
        dict(name="first_name", data_type=DataType.VARCHAR2, length=50, nullable=False,
             definition="Employee's first name"),
        dict(name="last_name", data_type=DataType.VARCHAR2, length=50, nullable=False,
             definition="Employee's last name"),
        dict(name="department_id", data_type=DataType.NUMBER, precision=6, scale=0,
             definition="Department the employee belongs to"),
        dict(name="salary", data_type=DataType.NUMBER, precision=10, scale=2,
             definition="Annual salary"),
        dict(name="hire_date", data_type=DataType.DATE, partition_column=True,
             definition="Date the employee joined"),
    ],
    ("HR_SCHEMA", "departments"): [
        dict(name="department_id", data_type=DataType.NUMBER, precision=6, scale=0, primary_key=True),
        dict(name="department_name", data_type=DataType.VARCHAR2, length=100, nullable=False),
    ],
    ("FINANCE_SCHEMA", "accounts"): [
        dict(name="account_id", data_type=DataType.NUMBER, precision=12, scale=0, primary_key=True),
        dict(name="account_name", data_type=DataType.VARCHAR2, length=200),
        dict(name="balance", data_type=DataType.NUMBER, precision=15, scale=2, default_value="0"),
    ],
    ("FINANCE_SCHEMA", "payroll_summary"): [
        dict(name="department_id", data_type=DataType.NUMBER, precision=6, scale=0, primary_key=True),
        dict(name="department_name", data_type=DataType.VARCHAR2, length=100),
        dict(name="total_salary", data_type=DataType.NUMBER, precision=15, scale=2),
        dict(name="load_ts", data_type=DataType.TIMESTAMP),
    ],
    ("INVENTORY_SCHEMA", "stock_items"): [
        dict(name="item_id", data_type=DataType.NUMBER, precision=10, scale=0, primary_key=True),
        dict(name="item_code", data_type=DataType.CHAR, length=8),
        dict(name="quantity", data_type=DataType.NUMBER, precision=8, scale=0),
    ],
}

DEMO_LINEAGE = [
    LineageForm(
        target_schema="FINANCE_SCHEMA", target_table="payroll_summary", target_column="department_id",
        mapping_type=MappingType.ONE_TO_ONE,
        sources=[SourceRow("HR_SCHEMA", "departments", "department_id")],
    ),
    LineageForm(
        target_schema="FINANCE_SCHEMA", target_table="payroll_summary", target_column="department_name",
        mapping_type=MappingType.ONE_TO_ONE,
        sources=[SourceRow("HR_SCHEMA", "departments", "department_name")],
    ),
    LineageForm(
        target_schema="FINANCE_SCHEMA", target_table="payroll_summary", target_column="total_salary",
        mapping_type=MappingType.MANY_TO_ONE,
        transformation_type=TransformationType.CONDITIONAL,
        transformation_logic="SUM(salary) GROUP BY department_id",
        sources=[
            SourceRow("HR_SCHEMA", "employees", "salary"),
            SourceRow("HR_SCHEMA", "employees", "department_id"),
        ],
    ),
    LineageForm(
        target_schema="FINANCE_SCHEMA", target_table="payroll_summary", target_column="load_ts",
        mapping_type=MappingType.SYSTEM_FIELD,
        transformation_logic="SYSTIMESTAMP at load",
    ),
]

DEMO_PROJECT = {
    "name": "Payroll Modernisation",
    "description": "Move payroll reporting onto the finance warehouse",
    "schemas": ["HR_SCHEMA", "FINANCE_SCHEMA"],
}


def seed_demo_data(db: Session, user: str = "john.doe") -> Dict[str, int]:
    """Populate an empty catalogue with the demo records and return their counts."""
    catalog_manager = CatalogManager(db)

    for name, description in DEMO_SCHEMAS.items():
        catalog_manager.create_schema(name, description)

    project = catalog_manager.projects.create(**DEMO_PROJECT)

    for (schema_name, table_name), definition in DEMO_TABLES.items():
        project_id = project.id if schema_name in project.schema_set else None
        table = catalog_manager.create_table(schema_name, table_name, definition,
                                             project_id=project_id, user=user)
        for column in DEMO_COLUMNS[(schema_name, table_name)]:
            fields = dict(column)
            catalog_manager.create_column(table.id, fields.pop("name"), project_id=project_id,
                                          user=user, **fields)

    for form in DEMO_LINEAGE:
        catalog_manager.create_lineage(form, created_by=user, project_id=project.id)

    counts = {
        "schemas": catalog_manager.schemas.count(),
        "tables": catalog_manager.tables.count(),
        "columns": catalog_manager.columns.count(),
        "lineage_mappings": catalog_manager.lineage.count(),
        "change_records": catalog_manager.changes.count(),
    }
    logger.info(f"Seeded demo catalogue: {counts}")
    return counts


def seed_if_empty(db: Session) -> Optional[Dict[str, int]]:
    """Seed the demo data unless the catalogue already has schemas."""
    if CatalogManager(db).schemas.count() > 0:
        logger.info("Catalog already populated; skipping demo seed")
        return None
    return seed_demo_data(db)


def generate_fake_changes(db: Session, project_id: int, count: int = 20, days: int = 90) -> int:
    """Add ``count`` made-up change records spread over the last ``days`` days."""
    catalog_manager = CatalogManager(db)
    project = catalog_manager.projects.get(project_id)
    tables = catalog_manager.tables.in_schemas(project.schema_set)
    if not tables:
        logger.warning(f"Project {project.name} has no tables; no changes generated")
        return 0

    for _ in range(count):
        table = random.choice(tables)
        column = random.choice(table.columns).name if table.columns else ""
        change_type = random.choice(list(ChangeType))
        catalog_manager.changes.record(
            project.id,
            change_type,
            table_name=table.name,
            column_name=column,
            description=fake.sentence(nb_words=8),
            user=fake.user_name(),
            timestamp=datetime.utcnow() - timedelta(days=random.randint(0, days), minutes=random.randint(0, 1440)),
        )

    logger.info(f"Generated {count} change records for project {project.name}")
    return count


def main():
    """Seed the database named by DATABASE_URL."""
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(description="Load the MetaPortal demo catalogue")
    parser.add_argument("--fake-changes", type=int, default=0,
                        help="Number of random change records to add to the demo project")
    args = parser.parse_args()

    # Read after load_dotenv so a .env DATABASE_URL is honoured
    engine = make_engine(os.getenv("DATABASE_URL", DATABASE_URL))
    create_tables(bind=engine)
    db = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        counts = seed_if_empty(db)
        if counts is None:
            print("Catalogue already has schemas; nothing loaded.")
            return
        if args.fake_changes:
            project = CatalogManager(db).projects.list()[0]
            counts["change_records"] += generate_fake_changes(db, project.id, args.fake_changes)
    finally:
        db.close()

    print("Demo catalogue loaded:")
    for name, value in counts.items():
        print(f"  {name}: {value}")


if __name__ == "__main__":
    main()

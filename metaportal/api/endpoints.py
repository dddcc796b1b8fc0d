"""JSON API endpoints for the catalog, lineage, projects, reports and admin."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..core import CatalogManager, ChangeFilter, LineageForm, SourceRow
from ..core.admin import AdminService
from ..core.errors import DuplicateError, MetaPortalError, NotFoundError, ValidationError
from ..core.repositories import ConnectionRepository, UserRepository
from ..core.state_store import DisplaySettings, PortalStateStore, get_state_store
from ..models.base import get_db
from ..services.job_manager import JobManager, get_job_manager
from ..services.metadata_backend import MetadataBackend, get_metadata_backend
from .schemas import (
    LoginRequest, AuthStatusResponse,
    SchemaCreate, SchemaUpdate, SchemaResponse,
    TableCreate, TableUpdate, TableResponse,
    ColumnCreate, ColumnUpdate, ColumnResponse, PullSchemaResponse,
    LineageCreate, LineageResponse,
    ProjectCreate, ProjectUpdate, ProjectResponse, ProjectStatsResponse,
    ChangeRecordCreate, ChangeRecordResponse,
    LineageCoverageRow, ImpactAnalysisRow,
    ProjectSetupRequest, SetupJobResponse, JobStatusResponse, ProjectConfigResponse,
    ConnectionCreate, ConnectionResponse,
    UserCreate, UserResponse,
)

router = APIRouter(prefix="/api", tags=["MetaPortal API"])


def get_admin_service(state: PortalStateStore = Depends(get_state_store),
                      backend: MetadataBackend = Depends(get_metadata_backend),
                      jobs: JobManager = Depends(get_job_manager)) -> AdminService:
    return AdminService(state, backend, jobs)


def http_error(e: MetaPortalError) -> HTTPException:
    """Map a domain error to the matching HTTP status."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, DuplicateError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _schema_response(schema) -> SchemaResponse:
    response = SchemaResponse.model_validate(schema)
    response.table_count = len(schema.tables)
    return response


def _table_response(table) -> TableResponse:
    response = TableResponse.model_validate(table)
    response.column_count = len(table.columns)
    return response


# Auth endpoints
@router.post("/auth/login", response_model=AuthStatusResponse)
async def login(credentials: LoginRequest, state: PortalStateStore = Depends(get_state_store)):
    """Sign in with any non-empty username and password."""
    if not state.login(credentials.username, credentials.password):
        raise HTTPException(status_code=401, detail="Username and password are required")
    return AuthStatusResponse(is_authenticated=True, username=state.current_user())


@router.post("/auth/logout", response_model=AuthStatusResponse)
async def logout(state: PortalStateStore = Depends(get_state_store)):
    state.logout()
    return AuthStatusResponse(is_authenticated=False)


@router.get("/auth/status", response_model=AuthStatusResponse)
async def auth_status(state: PortalStateStore = Depends(get_state_store)):
    return AuthStatusResponse(is_authenticated=state.is_authenticated(), username=state.current_user())


# Schema endpoints
@router.get("/schemas", response_model=List[SchemaResponse])
async def list_schemas(search: Optional[str] = Query(None, description="Search in names and descriptions"),
                       db: Session = Depends(get_db)):
    catalog_manager = CatalogManager(db)
    return [_schema_response(s) for s in catalog_manager.schemas.filter(search)]


@router.post("/schemas", response_model=SchemaResponse, status_code=201)
async def create_schema(schema: SchemaCreate, project_id: Optional[int] = None,
                        db: Session = Depends(get_db), state: PortalStateStore = Depends(get_state_store)):
    catalog_manager = CatalogManager(db)
    try:
        new_schema = catalog_manager.create_schema(
            schema.name, schema.description, project_id=project_id, user=state.current_user()
        )
    except MetaPortalError as e:
        raise http_error(e)
    return _schema_response(new_schema)


@router.post("/schemas/pull", response_model=PullSchemaResponse)
async def pull_schema(db: Session = Depends(get_db)):
    """Import a schema from a live database (currently inert)."""
    return PullSchemaResponse(**CatalogManager(db).pull_schema())


@router.patch("/schemas/{schema_id}", response_model=SchemaResponse)
async def update_schema(schema_id: int, update: SchemaUpdate, project_id: Optional[int] = None,
                        db: Session = Depends(get_db), state: PortalStateStore = Depends(get_state_store)):
    catalog_manager = CatalogManager(db)
    try:
        schema = catalog_manager.update_schema(
            schema_id, project_id=project_id, user=state.current_user(), **update.model_dump(exclude_unset=True)
        )
    except MetaPortalError as e:
        raise http_error(e)
    return _schema_response(schema)


@router.delete("/schemas/{schema_id}")
async def delete_schema(schema_id: int, project_id: Optional[int] = None,
                        db: Session = Depends(get_db), state: PortalStateStore = Depends(get_state_store)):
    """Delete a schema with its tables and columns."""
    try:
        return CatalogManager(db).delete_schema(schema_id, project_id=project_id, user=state.current_user())
    except MetaPortalError as e:
        raise http_error(e)


# Table endpoints
@router.get("/tables", response_model=List[TableResponse])
async def list_tables(schema: Optional[str] = Query(None, description="Filter by schema"),
                      db: Session = Depends(get_db)):
    return CatalogManager(db).get_tables(schema)


@router.get("/tables/{table_id}")
async def get_table_details(table_id: int, db: Session = Depends(get_db)):
    """Get a table with its columns."""
    try:
        return CatalogManager(db).get_table_details(table_id)
    except MetaPortalError as e:
        raise http_error(e)


@router.post("/tables", response_model=TableResponse, status_code=201)
async def create_table(table: TableCreate, project_id: Optional[int] = None,
                       db: Session = Depends(get_db), state: PortalStateStore = Depends(get_state_store)):
    catalog_manager = CatalogManager(db)
    try:
        new_table = catalog_manager.create_table(
            table.schema_name, table.name, table.business_definition,
            project_id=project_id, user=state.current_user(),
        )
    except MetaPortalError as e:
        raise http_error(e)
    return _table_response(new_table)


@router.patch("/tables/{table_id}", response_model=TableResponse)
async def update_table(table_id: int, update: TableUpdate, project_id: Optional[int] = None,
                       db: Session = Depends(get_db), state: PortalStateStore = Depends(get_state_store)):
    catalog_manager = CatalogManager(db)
    try:
        table = catalog_manager.update_table(
            table_id, project_id=project_id, user=state.current_user(), **update.model_dump(exclude_unset=True)
        )
    except MetaPortalError as e:
        raise http_error(e)
    return _table_response(table)


@router.delete("/tables/{table_id}")
async def delete_table(table_id: int, project_id: Optional[int] = None,
                       db: Session = Depends(get_db), state: PortalStateStore = Depends(get_state_store)):
    try:
        return CatalogManager(db).delete_table(table_id, project_id=project_id, user=state.current_user())
    except MetaPortalError as e:
        raise http_error(e)


# Column endpoints
@router.get("/columns", response_model=List[ColumnResponse])
async def list_columns(table_id: Optional[int] = Query(None, description="Filter by table"),
                       db: Session = Depends(get_db)):
    catalog_manager = CatalogManager(db)
    return [ColumnResponse.model_validate(c) for c in catalog_manager.columns.filter(table_id)]


@router.post("/columns", response_model=ColumnResponse, status_code=201)
async def create_column(column: ColumnCreate, project_id: Optional[int] = None,
                        db: Session = Depends(get_db), state: PortalStateStore = Depends(get_state_store)):
    catalog_manager = CatalogManager(db)
    fields = column.model_dump(exclude={"table_id", "name"})
    try:
        new_column = catalog_manager.create_column(
            column.table_id, column.name, project_id=project_id, user=state.current_user(), **fields
        )
    except MetaPortalError as e:
        raise http_error(e)
    return ColumnResponse.model_validate(new_column)


@router.patch("/columns/{column_id}", response_model=ColumnResponse)
async def update_column(column_id: int, update: ColumnUpdate, project_id: Optional[int] = None,
                        db: Session = Depends(get_db), state: PortalStateStore = Depends(get_state_store)):
    catalog_manager = CatalogManager(db)
    try:
        column = catalog_manager.update_column(
            column_id, project_id=project_id, user=state.current_user(), **update.model_dump(exclude_unset=True)
        )
    except MetaPortalError as e:
        raise http_error(e)
    return ColumnResponse.model_validate(column)


@router.delete("/columns/{column_id}")
async def delete_column(column_id: int, project_id: Optional[int] = None,
                        db: Session = Depends(get_db), state: PortalStateStore = Depends(get_state_store)):
    try:
        return CatalogManager(db).delete_column(column_id, project_id=project_id, user=state.current_user())
    except MetaPortalError as e:
        raise http_error(e)


# Lineage endpoints
@router.get("/lineage", response_model=List[LineageResponse])
async def list_lineage(
    schema: Optional[str] = Query(None, description="Target schema"),
    table: Optional[str] = Query(None, description="Target table"),
    column: Optional[str] = Query(None, description="Substring of the target column"),
    change_ref: Optional[str] = Query(None, description="Substring of the change reference"),
    db: Session = Depends(get_db),
):
    """List lineage mappings, newest first, narrowed by the given filters."""
    mappings = CatalogManager(db).find_lineage(schema=schema, table=table, column=column, change_ref=change_ref)
    return [LineageResponse.model_validate(m) for m in mappings]


@router.post("/lineage", response_model=LineageResponse, status_code=201)
async def create_lineage(lineage: LineageCreate, project_id: Optional[int] = None,
                         db: Session = Depends(get_db), state: PortalStateStore = Depends(get_state_store)):
    form = LineageForm(
        target_schema=lineage.target_schema,
        target_table=lineage.target_table,
        target_column=lineage.target_column,
        mapping_type=lineage.mapping_type,
        transformation_type=lineage.transformation_type,
        transformation_logic=lineage.transformation_logic,
        sources=[
            SourceRow(s.schema_name, s.table_name, s.column_name, s.transformation_type)
            for s in lineage.sources
        ],
    )
    try:
        mapping = CatalogManager(db).create_lineage(form, created_by=state.current_user(), project_id=project_id)
    except MetaPortalError as e:
        raise http_error(e)
    return LineageResponse.model_validate(mapping)


@router.delete("/lineage/{mapping_id}")
async def delete_lineage(mapping_id: int, project_id: Optional[int] = None,
                         db: Session = Depends(get_db), state: PortalStateStore = Depends(get_state_store)):
    try:
        return CatalogManager(db).delete_lineage(mapping_id, project_id=project_id, user=state.current_user())
    except MetaPortalError as e:
        raise http_error(e)


# Project endpoints
@router.get("/projects", response_model=List[ProjectResponse])
async def list_projects(db: Session = Depends(get_db)):
    return [ProjectResponse.model_validate(p) for p in CatalogManager(db).projects.list()]


@router.post("/projects", response_model=ProjectResponse, status_code=201)
async def create_project(project: ProjectCreate, db: Session = Depends(get_db)):
    try:
        new_project = CatalogManager(db).projects.create(
            project.name, project.description, project.schemas, project.status
        )
    except MetaPortalError as e:
        raise http_error(e)
    return ProjectResponse.model_validate(new_project)


@router.patch("/projects/{project_id}", response_model=ProjectResponse)
async def update_project(project_id: int, update: ProjectUpdate, db: Session = Depends(get_db)):
    try:
        project = CatalogManager(db).projects.update(project_id, **update.model_dump(exclude_unset=True))
    except MetaPortalError as e:
        raise http_error(e)
    return ProjectResponse.model_validate(project)


@router.get("/projects/{project_id}/stats", response_model=ProjectStatsResponse)
async def project_stats(project_id: int, db: Session = Depends(get_db)):
    """Counts derived from the catalog, lineage and change log for one project."""
    try:
        stats = CatalogManager(db).stats_for_project(project_id)
    except MetaPortalError as e:
        raise http_error(e)
    return ProjectStatsResponse(**stats.to_dict())


@router.get("/projects/{project_id}/changes", response_model=List[ChangeRecordResponse])
async def list_changes(
    project_id: int,
    search: Optional[str] = Query(None, description="Search table, column, description, user or reference"),
    table: Optional[str] = Query(None),
    column: Optional[str] = Query(None),
    change_type: Optional[str] = Query(None, description="CREATE, UPDATE, ALTER or DELETE"),
    change_ref: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    catalog_manager = CatalogManager(db)
    filters = ChangeFilter(search=search, table=table, column=column, change_type=change_type, change_ref=change_ref)
    try:
        catalog_manager.projects.get(project_id)
        changes = catalog_manager.changes.filter(project_id, filters)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown change type: {change_type}")
    except MetaPortalError as e:
        raise http_error(e)
    return [ChangeRecordResponse.model_validate(c) for c in changes]


@router.post("/projects/{project_id}/changes", response_model=ChangeRecordResponse, status_code=201)
async def record_change(project_id: int, change: ChangeRecordCreate,
                        db: Session = Depends(get_db), state: PortalStateStore = Depends(get_state_store)):
    try:
        record = CatalogManager(db).changes.record(
            project_id,
            change.change_type,
            table_name=change.table_name,
            column_name=change.column_name,
            description=change.description,
            user=state.current_user(),
            change_ref_number=change.change_ref_number,
        )
    except MetaPortalError as e:
        raise http_error(e)
    return ChangeRecordResponse.model_validate(record)


# Report endpoints
@router.get("/reports/lineage-coverage", response_model=List[LineageCoverageRow])
async def lineage_coverage(schema: Optional[str] = None, db: Session = Depends(get_db)):
    return CatalogManager(db).lineage_coverage(schema)


@router.get("/reports/impact-analysis", response_model=List[ImpactAnalysisRow])
async def impact_analysis(db: Session = Depends(get_db)):
    return CatalogManager(db).impact_analysis()


# Admin endpoints
@router.post("/admin/setup", response_model=SetupJobResponse, status_code=202)
async def setup_project(request: ProjectSetupRequest, admin: AdminService = Depends(get_admin_service),
                        state: PortalStateStore = Depends(get_state_store)):
    """Start project setup; poll the returned job for the outcome."""
    try:
        job_id = admin.submit_setup(
            request.project_name,
            request.connection_string,
            database_type=request.database_type,
            project_description=request.project_description,
            created_by=state.current_user(),
        )
    except ValidationError as e:
        raise http_error(e)
    return SetupJobResponse(job_id=job_id)


@router.get("/admin/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: str, jobs: JobManager = Depends(get_job_manager)):
    job = jobs.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatusResponse(
        job_id=job.id,
        status=job.status.value,
        progress=job.progress.percentage,
        current_step=job.progress.current_step,
        result=job.result,
        error=job.error,
        started_at=job.started_at,
        completed_at=job.completed_at,
    )


@router.get("/admin/project", response_model=ProjectConfigResponse)
async def get_project_config(admin: AdminService = Depends(get_admin_service)):
    config = admin.current_project()
    if config is None:
        raise HTTPException(status_code=404, detail="No project is configured")
    return ProjectConfigResponse.model_validate(config)


@router.delete("/admin/project")
async def reset_project(admin: AdminService = Depends(get_admin_service)):
    """Forget the configured project so setup can run again."""
    return {"reset": admin.reset_project()}


@router.delete("/admin/catalog")
async def reset_catalog(db: Session = Depends(get_db)):
    """Delete every schema, table, column, lineage mapping and change record."""
    return CatalogManager(db).reset_catalog()


# Settings endpoints
@router.get("/settings/display", response_model=DisplaySettings)
async def get_display_settings(state: PortalStateStore = Depends(get_state_store)):
    return state.get_display_settings()


@router.put("/settings/display", response_model=DisplaySettings)
async def save_display_settings(settings: DisplaySettings, state: PortalStateStore = Depends(get_state_store)):
    return state.save_display_settings(settings)


@router.get("/connections", response_model=List[ConnectionResponse])
async def list_connections(db: Session = Depends(get_db)):
    return [ConnectionResponse.model_validate(c) for c in ConnectionRepository(db).list()]


@router.post("/connections", response_model=ConnectionResponse, status_code=201)
async def create_connection(connection: ConnectionCreate, db: Session = Depends(get_db)):
    try:
        new_connection = ConnectionRepository(db).create(**connection.model_dump())
    except MetaPortalError as e:
        raise http_error(e)
    return ConnectionResponse.model_validate(new_connection)


@router.get("/users", response_model=List[UserResponse])
async def list_users(db: Session = Depends(get_db)):
    return [UserResponse.model_validate(u) for u in UserRepository(db).list()]


@router.post("/users", response_model=UserResponse, status_code=201)
async def create_user(user: UserCreate, db: Session = Depends(get_db)):
    try:
        new_user = UserRepository(db).create(user.username, user.email, user.role)
    except MetaPortalError as e:
        raise http_error(e)
    return UserResponse.model_validate(new_user)

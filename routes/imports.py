"""
Import wizard API routes.

Upload a spreadsheet, adjust the column mapping, validate, choose a store
and import. Each step works on a server-side session.

"""

from typing import Optional

from fastapi import APIRouter, UploadFile, File, Form
from fastapi.responses import JSONResponse, Response
import structlog

from models.imports import (
    DataType,
    ImportSessionResponse,
    MappingUpdate,
    StoreSelection,
    TargetFieldSpec,
    get_target_fields,
)
from services.import_session_service import get_import_session_controller
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/imports", tags=["Imports"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# UPLOAD ROUTES
# ===================

@router.post("/sessions", response_model=ImportSessionResponse, status_code=201)
async def create_session(
    file: UploadFile = File(..., description="CSV or Excel (.xlsx) file"),
    data_type: DataType = Form(DataType.INVENTORY),
):
    """
    Upload a file and start an import session.

    The response carries the detected columns, a sample of rows and the
    suggested column mapping.
    """
    try:
        contents = await file.read()
        controller = get_import_session_controller()
        session = controller.create_session(
            contents,
            file.filename,
            data_type,
            content_type=file.content_type,
        )
        return controller.to_response(session)

    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/file", response_model=ImportSessionResponse)
async def upload_file(
    session_id: str,
    file: UploadFile = File(...),
    data_type: Optional[DataType] = Form(None),
):
    """Upload a replacement file into a session that was sent back to upload."""
    try:
        contents = await file.read()
        controller = get_import_session_controller()
        session = controller.upload(
            session_id,
            contents,
            file.filename,
            data_type=data_type,
            content_type=file.content_type,
        )
        return controller.to_response(session)

    except Exception as e:
        return handle_error(e)


# ===================
# SESSION ROUTES
# ===================

@router.get("/sessions/{session_id}", response_model=ImportSessionResponse)
async def get_session(session_id: str):
    """Current state of an import session."""
    try:
        controller = get_import_session_controller()
        return controller.to_response(controller.get(session_id))

    except Exception as e:
        return handle_error(e)


@router.put("/sessions/{session_id}/mapping", response_model=ImportSessionResponse)
async def set_mapping(session_id: str, data: MappingUpdate):
    """Override suggested mappings. A null target ignores the column."""
    try:
        controller = get_import_session_controller()
        return controller.to_response(controller.set_mapping(session_id, data.mapping))

    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/validate", response_model=ImportSessionResponse)
async def validate_session(session_id: str):
    """Validate all rows with the current mapping."""
    try:
        controller = get_import_session_controller()
        return controller.to_response(controller.validate(session_id))

    except Exception as e:
        return handle_error(e)


@router.put("/sessions/{session_id}/store", response_model=ImportSessionResponse)
async def select_store(session_id: str, data: StoreSelection):
    """Choose the store the rows are imported into."""
    try:
        controller = get_import_session_controller()
        return controller.to_response(controller.select_store(session_id, data.store_id))

    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/import", response_model=ImportSessionResponse)
async def run_import(session_id: str):
    """
    Import the validated rows.

    Partial success still returns 200; failed rows are listed in
    import_result.failed_records.
    """
    try:
        controller = get_import_session_controller()
        return controller.to_response(controller.run_import(session_id))

    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/back", response_model=ImportSessionResponse)
async def go_back(session_id: str):
    try:
        controller = get_import_session_controller()
        return controller.to_response(controller.back(session_id))

    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/reset", response_model=ImportSessionResponse)
async def reset_session(session_id: str):
    try:
        controller = get_import_session_controller()
        return controller.to_response(controller.reset(session_id))

    except Exception as e:
        return handle_error(e)


@router.get("/sessions/{session_id}/error-report")
async def download_error_report(session_id: str):
    """Validation errors as a CSV download."""
    try:
        controller = get_import_session_controller()
        csv_text = controller.error_report(session_id)
        return Response(
            content=csv_text,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="import-errors-{session_id}.csv"'}
        )

    except Exception as e:
        return handle_error(e)


@router.get("/sessions/{session_id}/missing-fields-report")
async def download_missing_fields_report(session_id: str):
    """Empty mapped cells as a CSV download."""
    try:
        controller = get_import_session_controller()
        csv_text = controller.missing_fields_report(session_id)
        return Response(
            content=csv_text,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="import-missing-fields-{session_id}.csv"'}
        )

    except Exception as e:
        return handle_error(e)


# ===================
# CATALOG ROUTES
# ===================

@router.get("/target-fields/{data_type}", response_model=list[TargetFieldSpec])
async def list_target_fields(data_type: DataType):
    """Fields a source column can be mapped to."""
    return get_target_fields(data_type)
